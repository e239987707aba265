from typing import Dict, List, Any, Optional
from functools import lru_cache
import threading
import structlog

from ber.domain.skill.skill import Agent

logger = structlog.get_logger(__name__)


class AgentRegistry:
    """Registry for managing available agents"""

    def __init__(self):
        self.agents: List[Agent] = []
        self._lock = threading.RLock()

    def register_agent(self, agent: Agent):
        """Register a new agent"""

        logger.info("Registering agent", name=agent.name, tag=agent.tag, skills=len(agent.skills))

        with self._lock:
            self.agents.append(agent)

    def list_agents(self) -> List[Agent]:
        """Get all registered agents"""

        with self._lock:
            return list(self.agents)

    def get_agent_tags(self) -> List[str]:
        """Get the tags of all registered agents"""

        with self._lock:
            return [agent.tag for agent in self.agents]

    def get_agent_by_tag(self, tag: str) -> Optional[Agent]:
        """Get the first agent registered under a tag"""

        with self._lock:
            for agent in self.agents:
                if agent.tag == tag:
                    return agent
        return None

    def search_agents(self, query: str) -> List[Agent]:
        """Search agents by name or description"""

        query_lower = query.lower()
        matching_agents = []

        for agent in self.list_agents():
            name = agent.name.lower()
            description = agent.description.lower()

            if query_lower in name or query_lower in description:
                matching_agents.append(agent)

        return matching_agents

    def get_registry_info(self) -> List[Dict[str, Any]]:
        """Describe every registered agent and its skills"""

        return [agent.get_info() for agent in self.list_agents()]


@lru_cache(maxsize=1)
def get_agent_registry() -> AgentRegistry:
    """Return the process-wide default registry"""

    return AgentRegistry()
