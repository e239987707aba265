"""Built-in agents shipped with the runtime."""

from ber.agents.mermaid import create_mermaid_agent
from ber.domain.skill.skill_registry import AgentRegistry


def register_builtin_agents(registry: AgentRegistry) -> None:
    """Register every built-in agent"""

    registry.register_agent(create_mermaid_agent())
