from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
import secrets
import time


def generate_workflow_id() -> str:
    """Generate a 16 hex character workflow id"""

    try:
        return secrets.token_hex(8)
    except (NotImplementedError, OSError):
        # Low-entropy fallback when the OS randomness source is unavailable
        return f"{time.time_ns() & 0xFFFFFFFFFFFFFFFF:016x}"


class ChatRole(str, Enum):
    """Roles of chat messages sent to the LLM"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A role-tagged message in the chat thread"""
    role: ChatRole
    content: str


class WorkflowPhase(str, Enum):
    """Nodes of the workflow state machine"""
    VALIDATE_INPUT = "validate_input"
    MATCH_SKILL = "match_skill"
    RUN_ACTION = "run_action"
    RUN_QUERY = "run_query"
    RENDER = "render"
    FAIL = "fail"


class ExecutionContext(BaseModel):
    """Context handed to every hook, validator and action"""
    workflow_id: str = Field(description="Workflow identifier")
    message: str = Field(description="User message that started the workflow")
    agent_tag: Optional[str] = Field(None, description="Tag of the agent handling the workflow")
    skill_tag: Optional[str] = Field(None, description="Tag of the matched skill")
    is_action: bool = Field(default=False)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WorkflowInput(BaseModel):
    """Everything needed to execute one workflow"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    message: str = Field(default="", description="User message")
    agent: Optional[Any] = Field(None, description="Agent handling the workflow")
    chat_history: List[ChatMessage] = Field(default_factory=list)
    llm_client: Optional[Any] = Field(None, description="Client for structured queries and embeddings")
    skill_matcher: Optional[Any] = Field(None, description="Callable (message, agent) -> skill")
    is_action: bool = Field(default=False, description="Whether the message is an action command")
    memory_store: Optional[Any] = Field(None, description="Store for payloads awaiting an action")
    workflow_id: str = Field(default_factory=generate_workflow_id)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WorkflowResult(BaseModel):
    """Final output of a workflow execution"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    response: str
    error: Optional[Exception] = None
    workflow_id: str
    skill_tag: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None
