from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

# Models
from models.workflow_data import ResponseOption, ButtonOption, new_id, utc_now


class ChatMessage(BaseModel):
    """
    One conversation event emitted by the engine.
    system: engine narration, bot: content shown to the user, user: echoed selection
    """
    id: str = Field(default_factory=new_id)
    type: Literal["system", "bot", "user"]
    content: str
    nodeId: Optional[str] = None
    responses: Optional[List[ResponseOption]] = None
    buttons: Optional[List[ButtonOption]] = None
    mediaUrl: Optional[str] = None
    mediaType: Optional[Literal["image", "video", "audio"]] = None
    timestamp: datetime = Field(default_factory=utc_now)
