from typing import List
from fastapi import APIRouter, HTTPException, Request
import structlog

from ber.application.api.schema.chat import AgentInfo, ChatRequest, ChatResponse
from ber.domain.models.agent_state import ChatMessage, ChatRole, WorkflowInput

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1")


@router.get("/agents", response_model=List[AgentInfo])
async def list_agents(request: Request):
    """List registered agents and their skills"""

    registry = request.app.state.registry
    return [AgentInfo(**info) for info in registry.get_registry_info()]


@router.post("/agent/chat", response_model=ChatResponse)
async def chat_endpoint(chat_request: ChatRequest, request: Request):
    """Run one workflow for a chat message"""

    state = request.app.state
    agent = state.registry.get_agent_by_tag(chat_request.agent_tag)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"agent not found: {chat_request.agent_tag}")

    history = list(chat_request.history) + [ChatMessage(role=ChatRole.USER, content=chat_request.message)]

    workflow_input = WorkflowInput(
        message=chat_request.message,
        agent=agent,
        chat_history=history,
        llm_client=state.llm_client,
        skill_matcher=state.skill_matcher,
        memory_store=state.memory_store,
    )
    result = await state.engine.execute_workflow(workflow_input)

    logger.info(
        "Chat workflow finished",
        agent_tag=agent.tag,
        workflow_id=result.workflow_id,
        skill_tag=result.skill_tag,
        success=result.success,
    )

    return ChatResponse(
        response=result.response,
        success=result.success,
        workflow_id=result.workflow_id,
        skill=result.skill_tag,
        error=str(result.error) if result.error else None,
        error_kind=getattr(result.error, "kind", None) if result.error else None,
    )
