from pydantic import BaseModel, Field


class PublishResponse(BaseModel):
    """
    Response model for publishing a workflow
    """
    workflow_id: str = Field(..., description="Published workflow id")
    published_id: str = Field(..., description="Public id to share; replaces any previous one")
