from pydantic import BaseModel, Field

# Models
from models.run_state_data import EngineMode, RunResult


class SessionResponse(BaseModel):
    """
    Response model for session start/resume calls
    """
    session_id: str = Field(..., description="Conversation session id")
    mode: EngineMode = Field(..., description="preview or public")
    workflow_id: str = Field(..., description="Workflow being executed")
    result: RunResult = Field(..., description="Events emitted by this call and the resulting run state")
