from typing import Optional
from fastapi import FastAPI
import structlog

from ber.agents import register_builtin_agents
from ber.application.api.route.agent import router as agent_router
from ber.domain.context.memory.memory_store import MemoryStore, get_memory_store
from ber.domain.execution.sandbox import Sandbox
from ber.domain.orchestration.workflow_engine import WorkflowEngine
from ber.domain.skill.skill_matcher import SkillMatcher
from ber.domain.skill.skill_registry import AgentRegistry, get_agent_registry
from ber.infrastructure.config import BerSettings, get_settings
from ber.infrastructure.llm.openai_client import OpenAIClient
from ber.infrastructure.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[BerSettings] = None,
    registry: Optional[AgentRegistry] = None,
    memory_store: Optional[MemoryStore] = None,
    llm_client=None,
    engine: Optional[WorkflowEngine] = None,
) -> FastAPI:
    """Build the HTTP surface around explicitly provided services"""

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    if registry is None:
        registry = get_agent_registry()
        if not registry.list_agents():
            register_builtin_agents(registry)

    llm_client = llm_client or OpenAIClient(settings)

    app = FastAPI(title="BER Agent Runtime")
    app.state.settings = settings
    app.state.registry = registry
    app.state.memory_store = memory_store or get_memory_store()
    app.state.llm_client = llm_client
    app.state.skill_matcher = SkillMatcher(llm_client, threshold=settings.skill_match_threshold)
    app.state.engine = engine or WorkflowEngine(sandbox=Sandbox(settings.operation_timeout_seconds))

    app.include_router(agent_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "agents": registry.get_agent_tags()}

    logger.info("API server created", agents=registry.get_agent_tags())
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
