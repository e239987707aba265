from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field

from ber.domain.models.agent_state import ChatMessage


class ChatRequest(BaseModel):
    """Incoming chat message addressed to an agent"""
    agent_tag: str = Field(description="Tag of the agent that should handle the message")
    message: str = Field(description="User message or @ber action command")
    history: List[ChatMessage] = Field(default_factory=list, description="Prior messages, oldest first")


class ChatResponse(BaseModel):
    """Rendered workflow result"""
    response: str
    success: bool
    workflow_id: str
    skill: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


class AgentInfo(BaseModel):
    """Public description of a registered agent"""
    name: str
    tag: str
    description: str
    skills: List[Dict[str, Any]] = Field(default_factory=list)
