"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

# LLM metrics
llm_calls_total = Counter(
    "llm_calls_total",
    "Total LLM API calls",
    ["provider", "model", "status"],
)

llm_call_duration = Histogram(
    "llm_call_duration_seconds",
    "LLM API call duration in seconds",
    ["provider", "model"],
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total LLM tokens",
    ["provider", "model", "type"],  # type: prompt or completion
)

# Agent metrics
agent_messages_total = Counter(
    "agent_messages_total",
    "Guest messages handled by agents",
    ["agent_type", "status"],
)

agent_response_duration = Histogram(
    "agent_response_seconds",
    "Agent LLM response latency in seconds",
    ["agent_type"],
)

agents_created_total = Counter(
    "agents_created_total",
    "Agent instances created by the factory",
    ["agent_type", "plan"],
)

agent_cache_events_total = Counter(
    "agent_cache_events_total",
    "Agent registry cache events",
    ["event"],  # hit, miss, evicted_lru, evicted_stale, invalidated
)

agent_health_checks_total = Counter(
    "agent_health_checks_total",
    "Agent health probes",
    ["agent_type", "status"],
)

cached_agents = Gauge(
    "cached_agents",
    "Number of agent instances in the registry",
)

business_events_total = Counter(
    "business_events_total",
    "Business events emitted by the agent layer",
    ["event"],
)

# Circuit breaker metrics
circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["service"],
)


def get_metrics_text() -> bytes:
    """Render all metrics in the Prometheus exposition format."""
    return generate_latest()


METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST
