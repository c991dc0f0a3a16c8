from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum

# Models
from models.chat_message_data import ChatMessage


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_INPUT = "awaiting_input"
    TERMINATED = "terminated"


class EngineMode(str, Enum):
    """
    preview: authoring preview, narrates every node and resumes on buttons
    public: published link, bot content only
    """
    PREVIEW = "preview"
    PUBLIC = "public"


class RunSnapshot(BaseModel):
    """
    Externally visible state of one run
    """
    status: RunStatus = RunStatus.IDLE
    awaiting_input: bool = False
    current_node_id: Optional[str] = None
    workflow_id: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    messages: List[ChatMessage] = Field(default_factory=list)


class RunResult(BaseModel):
    """
    Outcome of start_run / submit_response: the events emitted by this call
    plus the state the run settled in
    """
    accepted: bool = True
    status: RunStatus
    awaiting_input: bool = False
    current_node_id: Optional[str] = None
    events: List[ChatMessage] = Field(default_factory=list)
    detail: Optional[str] = None
