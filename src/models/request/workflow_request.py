from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class CreateWorkflowRequest(BaseModel):
    """
    Request model for creating an empty workflow
    """
    name: str = Field(..., min_length=1, description="Workflow name")
    description: str = Field(default="", description="Free text description")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Insurance sales",
                "description": "Qualifies leads before handing over to an agent"
            }
        }


class AddNodeRequest(BaseModel):
    """
    Request model for adding a node from the editor palette
    """
    type: str = Field(..., description="Node kind (start, end, text, question, condition, ...)")
    position: Optional[Dict[str, float]] = Field(default=None, description="Canvas position {x, y}")

    class Config:
        json_schema_extra = {
            "example": {
                "type": "question",
                "position": {"x": 240, "y": 120}
            }
        }


class UpdateWorkflowRequest(BaseModel):
    """
    Request model for replacing top level workflow fields.
    Lists, when provided, replace the stored list entirely.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    nodes: Optional[List[Dict[str, Any]]] = None
    edges: Optional[List[Dict[str, Any]]] = None
    variables: Optional[List[Dict[str, Any]]] = None
