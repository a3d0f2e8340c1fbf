"""Conversational agents and the factory that owns them."""

from tablewise.services.agents.base_agent import BaseAgent
from tablewise.services.agents.sofia_agent import SofiaAgent
from tablewise.services.agents.maya_agent import MayaAgent
from tablewise.services.agents.apollo_agent import ApolloAgent
from tablewise.services.agents.conductor_agent import ConductorAgent
from tablewise.services.agents.agent_factory import AgentFactory, build_agent_factory

__all__ = [
    "BaseAgent",
    "SofiaAgent",
    "MayaAgent",
    "ApolloAgent",
    "ConductorAgent",
    "AgentFactory",
    "build_agent_factory",
]
