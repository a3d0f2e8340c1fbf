"""Tenant-scoped creation, caching and health monitoring of agents.

One AgentFactory is built at process start (see build_agent_factory) and
passed to request handlers. Cached agents are keyed by tenant and agent
type, so two tenants never share an instance.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Type

from tablewise.infra.config import config
from tablewise.infra.error_handler import MissingTenantContextError, TenantAccessError
from tablewise.infra.metrics import (
    agent_cache_events_total,
    agent_health_checks_total,
    agents_created_total,
    cached_agents,
)
from tablewise.logging.event_logger import log_business_event
from tablewise.models.agent import create_default_agent_config
from tablewise.models.tenant import TenantContext
from tablewise.services.ai_service import AIService
from tablewise.services.context_manager import ContextManager
from tablewise.services.restaurant_config_manager import RestaurantConfigManager, RestaurantStorage
from tablewise.services.agents.apollo_agent import APOLLO_CAPABILITIES, ApolloAgent
from tablewise.services.agents.base_agent import BaseAgent
from tablewise.services.agents.conductor_agent import CONDUCTOR_CAPABILITIES, ConductorAgent
from tablewise.services.agents.maya_agent import MAYA_CAPABILITIES, MayaAgent
from tablewise.services.agents.sofia_agent import SOFIA_CAPABILITIES, SofiaAgent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentFeatureRequirement:
    required_features: Tuple[str, ...]
    plan_restrictions: Tuple[str, ...]  # empty means every plan
    description: str


AGENT_FEATURE_REQUIREMENTS: Dict[str, AgentFeatureRequirement] = {
    "booking": AgentFeatureRequirement(
        required_features=(),
        plan_restrictions=(),
        description="Basic booking agent - available on all plans",
    ),
    "reservations": AgentFeatureRequirement(
        required_features=("advancedReporting",),
        plan_restrictions=("professional", "enterprise"),
        description="Advanced reservation management - Professional+ plans only",
    ),
    "conductor": AgentFeatureRequirement(
        required_features=("aiChat", "advancedReporting"),
        plan_restrictions=("professional", "enterprise"),
        description="AI conversation conductor - Professional+ plans only",
    ),
    "availability": AgentFeatureRequirement(
        required_features=("advancedReporting",),
        plan_restrictions=("starter", "professional", "enterprise"),
        description="Advanced availability analysis - Starter+ plans only",
    ),
}

# agent type -> (class, name, description, capabilities, config overrides)
AGENT_DEFINITIONS: Dict[str, Tuple[Type[BaseAgent], str, str, List[str], Dict[str, Any]]] = {
    "booking": (
        SofiaAgent, "Sofia", "Friendly booking specialist for new reservations",
        SOFIA_CAPABILITIES, {},
    ),
    "reservations": (
        MayaAgent, "Maya", "Reservation management specialist for existing bookings",
        MAYA_CAPABILITIES, {},
    ),
    "availability": (
        ApolloAgent, "Apollo", "Availability specialist for alternative times",
        APOLLO_CAPABILITIES, {"primary_model": "sonnet", "max_tokens": 1200, "temperature": 0.7},
    ),
    "conductor": (
        ConductorAgent, "Conductor", "Post-task host and router",
        CONDUCTOR_CAPABILITIES, {"max_tokens": 500},
    ),
}


@dataclass
class AgentSecuritySnapshot:
    created_by: str
    tenant_plan: str
    features_enabled: List[str]
    last_validation: float


@dataclass
class AgentRegistryEntry:
    """A cached agent and the tenant it belongs to."""
    agent: BaseAgent
    agent_type: str
    tenant_id: int
    restaurant_id: int
    tenant_context: TenantContext
    security: AgentSecuritySnapshot
    created_at: float = field(default_factory=time.time)
    last_used: float = field(default_factory=time.time)
    request_count: int = 1
    healthy: bool = True


@dataclass
class TenantAgentUsage:
    """Per-tenant agent creation counters, used for billing."""
    monthly_agent_creations: int = 0
    total_agent_creations: int = 0
    last_creation_at: Optional[datetime] = None
    agent_type_usage: Dict[str, int] = field(
        default_factory=lambda: {agent_type: 0 for agent_type in AGENT_FEATURE_REQUIREMENTS}
    )


def registry_key(tenant_id: int, agent_type: str) -> str:
    return f"{tenant_id}:{agent_type}"


class AgentFactory:
    """
    Creates agents for tenants, with entitlement checks, an LRU cache,
    usage tracking and a background health monitor.
    """

    def __init__(
        self,
        config_manager: RestaurantConfigManager,
        ai_service: AIService,
        context_manager: Optional[ContextManager] = None,
        max_cache_size: int = 50,
        enable_caching: bool = True,
        health_check_interval: float = 300.0,
        stale_after: float = 1800.0,
    ):
        self.config_manager = config_manager
        self.ai_service = ai_service
        self.context_manager = context_manager or ContextManager()
        self.max_cache_size = max_cache_size
        self.enable_caching = enable_caching
        self.health_check_interval = health_check_interval
        self.stale_after = stale_after

        self.created_at = time.time()
        # Oldest use first; a hit moves the entry to the end
        self._registry: "OrderedDict[str, AgentRegistryEntry]" = OrderedDict()
        self._usage: Dict[int, TenantAgentUsage] = {}
        self._health_task: Optional[asyncio.Task] = None

    # Entitlement

    def validate_tenant_access(self, agent_type: str, tenant_context: Optional[TenantContext]) -> None:
        """
        Check that the tenant may use this agent type.

        Raises:
            MissingTenantContextError: No tenant context was supplied
            TenantAccessError: Tenant inactive, plan too low or feature missing
        """
        if tenant_context is None:
            logger.error("Agent creation attempted without tenant context", extra={"agent_type": agent_type})
            raise MissingTenantContextError("Tenant context is required to create an agent")

        restaurant = tenant_context.restaurant
        log_extra = {
            "tenant_id": restaurant.id,
            "agent_type": agent_type,
            "tenant_plan": restaurant.tenant_plan,
            "security_violation": True,
        }

        if not tenant_context.is_active:
            logger.warning("Agent creation denied - tenant not active", extra={**log_extra, "tenant_status": restaurant.tenant_status})
            raise TenantAccessError(
                f"Your account is {restaurant.tenant_status}. Reactivate your subscription to use assistants.",
                tenant_id=restaurant.id, agent_type=agent_type,
            )

        requirement = AGENT_FEATURE_REQUIREMENTS.get(agent_type)
        if requirement is None:
            logger.error("Unknown agent type requested", extra=log_extra)
            raise TenantAccessError(f"Unknown agent type '{agent_type}'", tenant_id=restaurant.id, agent_type=agent_type)

        upgrade_message = (
            f"Agent type '{agent_type}' not available on your plan. "
            f"Required: {requirement.description}. Please upgrade to access this feature."
        )
        if requirement.plan_restrictions and restaurant.tenant_plan not in requirement.plan_restrictions:
            logger.warning("Agent creation denied - plan restriction", extra={**log_extra, "required_plans": list(requirement.plan_restrictions)})
            raise TenantAccessError(upgrade_message, tenant_id=restaurant.id, agent_type=agent_type)

        missing = [feature for feature in requirement.required_features if not tenant_context.has_feature(feature)]
        if missing:
            logger.warning("Agent creation denied - missing required feature", extra={**log_extra, "missing_features": missing})
            raise TenantAccessError(upgrade_message, tenant_id=restaurant.id, agent_type=agent_type)

    # Creation

    async def create_agent(
        self,
        agent_type: str,
        tenant_context: TenantContext,
        custom_config: Optional[Dict[str, Any]] = None,
    ) -> BaseAgent:
        """
        Return a cached agent for (tenant, type) or create a new one.

        Agents built with a custom config are neither cached nor served from
        the cache.

        Raises:
            MissingTenantContextError, TenantAccessError: Entitlement failures
            RestaurantNotFoundError: The tenant's restaurant does not exist
        """
        self.validate_tenant_access(agent_type, tenant_context)

        tenant_id = tenant_context.tenant_id
        key = registry_key(tenant_id, agent_type)
        use_cache = self.enable_caching and not custom_config

        if use_cache:
            cached = self._get_cached(key, tenant_context)
            if cached is not None:
                return cached

        logger.info(
            "Creating new agent",
            extra={
                "agent_type": agent_type,
                "tenant_id": tenant_id,
                "tenant_plan": tenant_context.restaurant.tenant_plan,
                "has_custom_config": bool(custom_config),
            },
        )
        restaurant_config = await self.config_manager.get_config(tenant_context.restaurant.id)
        agent = self._instantiate(agent_type, restaurant_config, custom_config)

        self._track_usage(tenant_context, agent_type)
        if use_cache:
            self._register(key, agent, agent_type, tenant_context)
        return agent

    def _get_cached(self, key: str, tenant_context: TenantContext) -> Optional[BaseAgent]:
        entry = self._registry.get(key)
        if entry is None:
            agent_cache_events_total.labels(event="miss").inc()
            return None
        if not entry.healthy:
            self._evict(key, "unhealthy")
            agent_cache_events_total.labels(event="miss").inc()
            return None

        now = time.time()
        entry.last_used = now
        entry.request_count += 1
        entry.tenant_context = tenant_context
        entry.security.last_validation = now
        self._registry.move_to_end(key)
        agent_cache_events_total.labels(event="hit").inc()
        logger.info(
            "Retrieved cached agent",
            extra={"agent_type": entry.agent_type, "tenant_id": entry.tenant_id, "request_count": entry.request_count},
        )
        return entry.agent

    def _instantiate(self, agent_type: str, restaurant_config, custom_config: Optional[Dict[str, Any]]) -> BaseAgent:
        agent_class, name, description, capabilities, defaults = AGENT_DEFINITIONS[agent_type]
        overrides = {
            "primary_model": config.PRIMARY_MODEL,
            "fallback_model": config.FALLBACK_MODEL,
            **defaults,
            **(custom_config or {}),
        }
        agent_config = create_default_agent_config(
            overrides.pop("name", name),
            overrides.pop("description", description),
            overrides.pop("capabilities", capabilities),
            **overrides,
        )
        return agent_class(agent_config, restaurant_config, self.ai_service, self.context_manager)

    def _register(self, key: str, agent: BaseAgent, agent_type: str, tenant_context: TenantContext) -> None:
        restaurant = tenant_context.restaurant
        self._registry[key] = AgentRegistryEntry(
            agent=agent,
            agent_type=agent_type,
            tenant_id=tenant_context.tenant_id,
            restaurant_id=restaurant.id,
            tenant_context=tenant_context,
            security=AgentSecuritySnapshot(
                created_by="system",
                tenant_plan=restaurant.tenant_plan,
                features_enabled=tenant_context.enabled_features(),
                last_validation=time.time(),
            ),
        )
        self._registry.move_to_end(key)

        while len(self._registry) > self.max_cache_size:
            oldest_key = next(iter(self._registry))
            self._evict(oldest_key, "lru")
        cached_agents.set(len(self._registry))

    def _evict(self, key: str, reason: str) -> None:
        entry = self._registry.pop(key, None)
        if entry is None:
            return
        agent_cache_events_total.labels(event=f"evicted_{reason}").inc()
        cached_agents.set(len(self._registry))
        logger.info(
            "Agent evicted",
            extra={"agent_type": entry.agent_type, "tenant_id": entry.tenant_id, "reason": reason, "cache_size": len(self._registry)},
        )

    def is_cached(self, tenant_id: int, agent_type: str) -> bool:
        return registry_key(tenant_id, agent_type) in self._registry

    def invalidate_tenant_agents(self, tenant_id: int) -> int:
        """Evict every cached agent of a tenant and drop its restaurant config. Returns the number evicted."""
        keys = [key for key, entry in self._registry.items() if entry.tenant_id == tenant_id]
        for key in keys:
            self._evict(key, "invalidated")
        self.config_manager.clear_config_cache(tenant_id)
        log_business_event("tenant_agents_invalidated", tenant_id=tenant_id, evicted=len(keys))
        return len(keys)

    # Usage

    def _track_usage(self, tenant_context: TenantContext, agent_type: str) -> None:
        tenant_id = tenant_context.tenant_id
        usage = self._usage.setdefault(tenant_id, TenantAgentUsage())
        now = datetime.now(timezone.utc)
        last = usage.last_creation_at
        if last is not None and (last.year, last.month) != (now.year, now.month):
            usage.monthly_agent_creations = 0

        usage.monthly_agent_creations += 1
        usage.total_agent_creations += 1
        usage.agent_type_usage[agent_type] = usage.agent_type_usage.get(agent_type, 0) + 1
        usage.last_creation_at = now

        agents_created_total.labels(agent_type=agent_type, plan=tenant_context.restaurant.tenant_plan).inc()
        log_business_event(
            "agent_created",
            tenant_id=tenant_id,
            tenant_plan=tenant_context.restaurant.tenant_plan,
            agent_type=agent_type,
            monthly_creations=usage.monthly_agent_creations,
            total_creations=usage.total_agent_creations,
        )

    def get_tenant_usage(self, tenant_id: int) -> Optional[TenantAgentUsage]:
        return self._usage.get(tenant_id)

    def get_all_tenants_usage(self) -> Dict[int, TenantAgentUsage]:
        return dict(self._usage)

    def reset_tenant_monthly_usage(self, tenant_id: int) -> bool:
        """Start a new billing cycle for the tenant. False if it has no usage yet."""
        usage = self._usage.get(tenant_id)
        if usage is None:
            return False
        usage.monthly_agent_creations = 0
        logger.info("Tenant monthly agent usage reset", extra={"tenant_id": tenant_id})
        return True

    @staticmethod
    def get_agent_feature_requirements(agent_type: Optional[str] = None):
        if agent_type is None:
            return dict(AGENT_FEATURE_REQUIREMENTS)
        return AGENT_FEATURE_REQUIREMENTS.get(agent_type)

    def get_factory_stats(self) -> Dict[str, Any]:
        by_type: Dict[str, int] = {}
        by_tenant: Dict[int, int] = {}
        healthy = 0
        for entry in self._registry.values():
            by_type[entry.agent_type] = by_type.get(entry.agent_type, 0) + 1
            by_tenant[entry.tenant_id] = by_tenant.get(entry.tenant_id, 0) + 1
            healthy += entry.healthy
        return {
            "total_agents": len(self._registry),
            "healthy_agents": healthy,
            "unhealthy_agents": len(self._registry) - healthy,
            "agents_by_type": by_type,
            "agents_by_tenant": by_tenant,
            "tenants_tracked": len(self._usage),
            "caching_enabled": self.enable_caching,
            "max_cache_size": self.max_cache_size,
            "health_monitoring": self._health_task is not None and not self._health_task.done(),
            "uptime": BaseAgent.format_uptime(time.time() - self.created_at),
        }

    # Health

    async def run_health_checks(self) -> Dict[str, int]:
        """
        One monitoring pass: evict stale entries, probe the rest.

        A failing probe marks the entry unhealthy; the next create_agent for
        that tenant and type builds a fresh instance.
        """
        now = time.time()
        summary = {"checked": 0, "healthy": 0, "unhealthy": 0, "stale_evicted": 0}

        for key, entry in list(self._registry.items()):
            if now - entry.last_used > self.stale_after:
                self._evict(key, "stale")
                summary["stale_evicted"] += 1
                continue

            summary["checked"] += 1
            try:
                result = await entry.agent.health_check(entry.tenant_context)
                healthy = bool(result.get("healthy"))
            except Exception as e:
                logger.error(
                    "Agent health probe failed",
                    extra={"agent_type": entry.agent_type, "tenant_id": entry.tenant_id, "error": str(e)},
                )
                healthy = False

            entry.healthy = healthy
            agent_health_checks_total.labels(
                agent_type=entry.agent_type, status="healthy" if healthy else "unhealthy"
            ).inc()
            summary["healthy" if healthy else "unhealthy"] += 1

        logger.info("Agent health check pass finished", extra=summary)
        return summary

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self.health_check_interval)
            try:
                await self.run_health_checks()
            except Exception as e:
                logger.error(f"Health check pass failed: {e}", exc_info=True)

    def start_health_monitoring(self) -> None:
        """Start the periodic health monitor on the running event loop."""
        if self._health_task is not None and not self._health_task.done():
            return
        self._health_task = asyncio.get_running_loop().create_task(self._health_loop())
        logger.info("Agent health monitoring started", extra={"interval_seconds": self.health_check_interval})

    async def stop_health_monitoring(self) -> None:
        task, self._health_task = self._health_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Agent health monitoring stopped")


def build_agent_factory(storage: Optional[RestaurantStorage] = None) -> AgentFactory:
    """Wire the factory with SQL storage, the LLM service and settings from config."""
    if storage is None:
        from tablewise.services.restaurant_storage import SqlRestaurantStorage
        storage = SqlRestaurantStorage()
    return AgentFactory(
        config_manager=RestaurantConfigManager(storage),
        ai_service=AIService(),
        max_cache_size=config.AGENT_CACHE_MAX_SIZE,
        health_check_interval=config.AGENT_HEALTH_CHECK_INTERVAL,
        stale_after=config.AGENT_STALE_AFTER,
    )
