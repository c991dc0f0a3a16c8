from typing import Optional
from pydantic import BaseModel, Field


class SubmitResponseRequest(BaseModel):
    """
    The option (response or button) the user picked
    """
    response_id: str = Field(..., description="Id of the selected response option or button")


class RestartSessionRequest(BaseModel):
    """
    Restart a preview, optionally switching it to another workflow
    """
    workflow_id: Optional[str] = Field(default=None, description="Workflow to switch to; defaults to the current one")
