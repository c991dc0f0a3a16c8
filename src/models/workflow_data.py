from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class NodeType(str, Enum):
    START = "start"
    END = "end"
    TEXT = "text"
    PARAGRAPH = "paragraph"
    QUESTION = "question"
    ACTION = "action"
    CONDITION = "condition"
    DELAY = "delay"
    WEBHOOK = "webhook"
    VARIABLE = "variable"
    MEDIA = "media"
    BUTTON = "button"
    CAROUSEL = "carousel"


class NodePosition(BaseModel):
    x: float = 0
    y: float = 0

class NodeStyle(BaseModel):
    model_config = ConfigDict(extra='allow')

    backgroundColor: str = "#ffffff"
    borderColor: str = "#e5e7eb"
    borderWidth: int = 2
    borderRadius: int = 8
    textColor: str = "#374151"
    fontSize: int = 14

class ResponseOption(BaseModel):
    id: str = Field(default_factory=new_id)
    text: str = ""
    value: str = ""
    targetNodeId: Optional[str] = None
    color: str = "#3b82f6"

class ConditionRule(BaseModel):
    id: str = Field(default_factory=new_id)
    variable: str = ""
    operator: str = "equals"  # unknown operators evaluate to False
    value: str = ""
    targetNodeId: Optional[str] = None

class ButtonOption(BaseModel):
    id: str = Field(default_factory=new_id)
    text: str = ""
    action: Literal["navigate", "url", "phone", "email"] = "navigate"
    value: str = ""
    style: Literal["primary", "secondary", "success", "danger"] = "primary"

class CarouselItem(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str = ""
    description: str = ""
    imageUrl: str = ""
    buttons: List[ButtonOption] = []

class NodeData(BaseModel):
    model_config = ConfigDict(extra='allow')  # Editor-only fields survive a round trip

    label: str = ""
    content: str = ""
    responses: Optional[List[ResponseOption]] = None
    conditions: Optional[List[ConditionRule]] = None
    delay: Optional[int] = None  # Milliseconds
    webhookUrl: Optional[str] = None
    variableName: Optional[str] = None
    variableValue: Optional[str] = None
    mediaUrl: Optional[str] = None
    mediaType: Optional[Literal["image", "video", "audio"]] = None
    buttons: Optional[List[ButtonOption]] = None
    carouselItems: Optional[List[CarouselItem]] = None
    style: NodeStyle = Field(default_factory=NodeStyle)

class WorkflowNode(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: str
    type: str  # NodeType value; unknown kinds are kept and skipped at runtime
    position: NodePosition = Field(default_factory=NodePosition)
    data: NodeData = Field(default_factory=NodeData)

class EdgeStyle(BaseModel):
    stroke: str = "#b1b1b7"
    strokeWidth: int = 2
    strokeDasharray: Optional[str] = None

class WorkflowEdge(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: str = Field(default_factory=new_id)
    source: str
    target: str
    type: Optional[str] = None
    label: Optional[str] = None
    responseId: Optional[str] = None
    conditionId: Optional[str] = None
    style: Optional[EdgeStyle] = None

    def is_unconditional(self) -> bool:
        return not self.responseId and not self.conditionId

class WorkflowVariable(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    type: Literal["string", "number", "boolean", "array"] = "string"
    defaultValue: Any = None
    description: str = ""

class WorkflowData(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    nodes: List[WorkflowNode] = []
    edges: List[WorkflowEdge] = []
    variables: List[WorkflowVariable] = []
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)
    publishedId: Optional[str] = None

    def get_node(self, node_id: Optional[str]) -> Optional[WorkflowNode]:
        if node_id is None:
            return None
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def entry_node(self) -> Optional[WorkflowNode]:
        """
        First start node, else the first node in document order
        """
        for node in self.nodes:
            if node.type == NodeType.START.value:
                return node
        return self.nodes[0] if self.nodes else None

    def outgoing_edges(self, node_id: str) -> List[WorkflowEdge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def get_edge(self, edge_id: str) -> Optional[WorkflowEdge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def get_variable(self, variable_id: str) -> Optional[WorkflowVariable]:
        for variable in self.variables:
            if variable.id == variable_id:
                return variable
        return None

    def touch(self) -> None:
        self.updatedAt = utc_now()


# Kind specific defaults applied when the editor adds a node
NODE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    NodeType.START.value: {"label": "Start", "content": "Start of the bot"},
    NodeType.END.value: {"label": "End", "content": "End of the conversation"},
    NodeType.TEXT.value: {"label": "Text message", "content": "Your message here..."},
    NodeType.PARAGRAPH.value: {"label": "Paragraph", "content": "Your detailed paragraph here..."},
    NodeType.QUESTION.value: {"label": "Question", "content": "Your question here?", "responses": []},
    NodeType.ACTION.value: {"label": "Action", "content": "Action to run"},
    NodeType.CONDITION.value: {"label": "Condition", "content": "Logical condition", "conditions": []},
    NodeType.DELAY.value: {"label": "Delay", "content": "Wait before continuing", "delay": 2000},
    NodeType.WEBHOOK.value: {"label": "Webhook", "content": "External API call", "webhookUrl": ""},
    NodeType.VARIABLE.value: {"label": "Variable", "content": "Set a variable", "variableName": "", "variableValue": ""},
    NodeType.MEDIA.value: {"label": "Media", "content": "Image, video or audio", "mediaUrl": "", "mediaType": "image"},
    NodeType.BUTTON.value: {"label": "Buttons", "content": "Action buttons", "buttons": []},
    NodeType.CAROUSEL.value: {"label": "Carousel", "content": "Carousel of items", "carouselItems": []},
}


def build_node_data(node_type: str) -> NodeData:
    return NodeData(**NODE_DEFAULTS.get(node_type, {}))
