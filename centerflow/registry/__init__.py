"""Registry of the agents this deployment can run."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, Mapping, Optional, Type, Union

from ..enums import AgentType
from ..errors import AgentNotRegistered, RegistryConfigurationError
from .models import AgentDescriptor

if TYPE_CHECKING:
    from ..agents.base import Agent
    from ..runner import WorkflowRunner

logger = logging.getLogger(__name__)


class AgentRegistry(Mapping[AgentType, "Agent"]):
    """Read-only ``AgentType -> Agent`` map, fixed once built."""

    def __init__(self, agents: Iterable["Agent"]) -> None:
        entries: Dict[AgentType, "Agent"] = {}
        for agent in agents:
            if agent.agent_type in entries:
                raise RegistryConfigurationError(
                    f"Agent type '{agent.agent_type.value}' is registered twice."
                )
            entries[agent.agent_type] = agent
        self._agents = MappingProxyType(entries)

    def __getitem__(self, agent_type: AgentType) -> "Agent":
        return self._agents[agent_type]

    def __iter__(self) -> Iterator[AgentType]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    def resolve(self, agent_type: Union[AgentType, str]) -> "Agent":
        """Return the agent for ``agent_type`` or raise :class:`AgentNotRegistered`."""
        try:
            key = AgentType(agent_type)
        except ValueError:
            raise AgentNotRegistered(agent_type) from None
        agent = self._agents.get(key)
        if agent is None:
            raise AgentNotRegistered(key)
        return agent

    def descriptors(self) -> Dict[AgentType, AgentDescriptor]:
        return {agent_type: agent.describe() for agent_type, agent in self._agents.items()}


def _implementations() -> Mapping[AgentType, Type["Agent"]]:
    from ..agents import ContentPublishingAgent, EnrollmentManagementAgent

    return {
        AgentType.CONTENT_PUBLISHING: ContentPublishingAgent,
        AgentType.ENROLLMENT: EnrollmentManagementAgent,
    }


def build_registry(
    enabled: Optional[Iterable[Union[AgentType, str]]] = None,
    runner: Optional["WorkflowRunner"] = None,
) -> AgentRegistry:
    """Instantiate the ``enabled`` agents (all implemented ones by default).

    Tags without an implementation are rejected here rather than on first
    use.
    """
    implementations = _implementations()
    if enabled is None:
        types = list(implementations)
    else:
        types = []
        for tag in enabled:
            try:
                types.append(AgentType(tag))
            except ValueError:
                raise AgentNotRegistered(tag) from None

    agents = []
    for agent_type in types:
        agent_cls = implementations.get(agent_type)
        if agent_cls is None:
            raise AgentNotRegistered(agent_type)
        agents.append(agent_cls(runner=runner))

    registry = AgentRegistry(agents)
    logger.debug(f"Agent registry built with {[t.value for t in registry]}")
    return registry


__all__ = ["AgentDescriptor", "AgentRegistry", "build_registry"]
