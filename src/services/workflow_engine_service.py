"""
Workflow Engine Service
Interpreter that walks a workflow graph one node at a time, emitting
conversation events and suspending where user input is needed.
"""
import inspect
from dataclasses import dataclass
from typing import Optional, Dict, List, Callable, Awaitable, Union

from utils.log_utils import LogUtil

# Models
from models.workflow_data import WorkflowData, WorkflowNode, WorkflowEdge, NodeType
from models.chat_message_data import ChatMessage
from models.run_state_data import RunStatus, EngineMode, RunSnapshot, RunResult

# Services
from services.condition_evaluator import evaluate_condition
from services.variable_environment import VariableEnvironment, LAST_RESPONSE_KEY
from services.pacing_scheduler_service import PacingScheduler


EventListener = Callable[[ChatMessage], Union[None, Awaitable[None]]]

# Pauses in milliseconds, per engine mode
PREVIEW_PACING: Dict[str, int] = {
    "start": 1000,
    "text": 1500,
    "action": 2000,
    "condition": 1500,
    "variable": 1500,
    "webhook": 2000,
    "media": 2000,
    "delay_default": 2000,
    "edge": 500,
    "response": 1000,
    "silent": 0,
}

PUBLIC_PACING: Dict[str, int] = {
    "start": 0,
    "text": 1500,
    "action": 100,
    "condition": 100,
    "variable": 100,
    "webhook": 100,
    "media": 1500,
    "delay_default": 1000,
    "edge": 500,
    "response": 1000,
    "silent": 100,
}


@dataclass
class StepOutcome:
    """
    What the run does after a node has been executed
    """
    pause_ms: int = 0
    suspend: bool = False
    terminate: bool = False
    jump_to: Optional[str] = None
    condition_id: Optional[str] = None


class WorkflowEngine:
    """
    One engine per conversation session. A run is replaced, never mutated in
    place, when start_run is called again.
    """

    def __init__(
        self,
        log_util: LogUtil,
        mode: EngineMode = EngineMode.PREVIEW,
        pacing_scheduler: Optional[PacingScheduler] = None,
        max_delay_ms: int = 60000,
        max_auto_steps: int = 500
    ):
        self.log_util = log_util
        self.mode = mode
        self.pacing_scheduler = pacing_scheduler or PacingScheduler(log_util=log_util)
        self.max_delay_ms = max_delay_ms
        self.max_auto_steps = max_auto_steps
        self.pacing = PREVIEW_PACING if mode == EngineMode.PREVIEW else PUBLIC_PACING

        self.workflow: Optional[WorkflowData] = None
        self.status = RunStatus.IDLE
        self.current_node_id: Optional[str] = None
        self.messages: List[ChatMessage] = []
        self.variables = VariableEnvironment()
        self._generation = 0
        self._listeners: List[EventListener] = []

        self._handlers: Dict[str, Callable[..., Awaitable[StepOutcome]]] = {
            NodeType.START.value: self._handle_start,
            NodeType.TEXT.value: self._handle_text,
            NodeType.PARAGRAPH.value: self._handle_text,
            NodeType.QUESTION.value: self._handle_question,
            NodeType.BUTTON.value: self._handle_button,
            NodeType.ACTION.value: self._handle_action,
            NodeType.DELAY.value: self._handle_delay,
            NodeType.WEBHOOK.value: self._handle_webhook,
            NodeType.VARIABLE.value: self._handle_variable,
            NodeType.MEDIA.value: self._handle_media,
            NodeType.CONDITION.value: self._handle_condition,
            NodeType.END.value: self._handle_end,
        }

    # Observers

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Public boundary

    @property
    def awaiting_input(self) -> bool:
        return self.status == RunStatus.AWAITING_INPUT

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            status=self.status,
            awaiting_input=self.awaiting_input,
            current_node_id=self.current_node_id,
            workflow_id=self.workflow.id if self.workflow else None,
            variables=self.variables.snapshot(),
            messages=list(self.messages)
        )

    def reset(self) -> None:
        """
        Drop the current run, if any, and go back to idle
        """
        self._supersede()
        self.workflow = None
        self.status = RunStatus.IDLE
        self.current_node_id = None
        self.messages = []
        self.variables = VariableEnvironment()

    async def start_run(self, workflow: WorkflowData) -> RunResult:
        """
        Start a new run of the workflow from its entry node.

        Any run in flight is abandoned: its pending pauses are cancelled and
        its trace and variables are replaced by fresh ones.
        """
        self._supersede()
        generation = self._generation

        # The run keeps its own copy; later edits in the store do not reach it
        self.workflow = workflow.model_copy(deep=True)
        self.messages = []
        self.variables = VariableEnvironment()
        self.current_node_id = None
        self.status = RunStatus.RUNNING
        events: List[ChatMessage] = []

        self.log_util.info(
            service_name="WorkflowEngine",
            message=f"[RUN] Starting {self.mode.value} run of workflow {workflow.id} ('{workflow.name}')"
        )

        entry_node = self.workflow.entry_node()
        if entry_node is None:
            self.log_util.warning(
                service_name="WorkflowEngine",
                message=f"[RUN] Workflow {workflow.id} has no nodes"
            )
            await self._complete(generation, events)
            return self._result(generation, events)

        if self.mode == EngineMode.PREVIEW:
            await self._emit(self._system(f"Bot started: {workflow.name}"), generation, events)
            if not await self._pause(self.pacing["start"], generation):
                return self._result(generation, events)

        await self._run_from(entry_node.id, generation, events)
        return self._result(generation, events)

    async def submit_response(self, response_id: str) -> RunResult:
        """
        Resume a suspended run with the option the user selected.

        Rejected (accepted=False, state unchanged) when the run is not waiting
        for input, when the id is not an option of the current node, or when a
        public conversation receives a button click.
        """
        generation = self._generation
        events: List[ChatMessage] = []

        if self.workflow is None or self.status != RunStatus.AWAITING_INPUT:
            return self._rejected("Run is not awaiting input")

        node = self.workflow.get_node(self.current_node_id)
        if node is None:
            return self._rejected("Current node no longer exists")

        option = self._find_option(node, response_id)
        if option is None:
            self.log_util.warning(
                service_name="WorkflowEngine",
                message=f"[RESPOND] Unknown response {response_id} for node {node.id}"
            )
            return self._rejected(f"Unknown response: {response_id}")

        if node.type == NodeType.BUTTON.value and self.mode == EngineMode.PUBLIC:
            return self._rejected("Buttons do not resume public conversations")

        self.status = RunStatus.RUNNING
        if option.value:
            self.variables.set(LAST_RESPONSE_KEY, option.value)
        await self._emit(ChatMessage(type="user", content=option.text), generation, events)

        if not await self._pause(self.pacing["response"], generation):
            return self._result(generation, events)

        edge = self._select_edge(node.id, response_id=option.id)
        if edge is None:
            await self._complete(generation, events)
            return self._result(generation, events)

        if edge.responseId != option.id:
            if not await self._pause(self.pacing["edge"], generation):
                return self._result(generation, events)

        await self._run_from(edge.target, generation, events)
        return self._result(generation, events)

    # Stepping

    async def _run_from(self, node_id: str, generation: int, events: List[ChatMessage]) -> None:
        next_node_id: Optional[str] = node_id
        steps = 0

        while next_node_id is not None:
            if generation != self._generation:
                return

            node = self.workflow.get_node(next_node_id)
            if node is None:
                self.log_util.warning(
                    service_name="WorkflowEngine",
                    message=f"[STEP] Node {next_node_id} does not exist, ending run"
                )
                await self._complete(generation, events)
                return

            steps += 1
            if steps > self.max_auto_steps:
                self.log_util.warning(
                    service_name="WorkflowEngine",
                    message=f"[STEP] More than {self.max_auto_steps} automatic steps without user input, ending run"
                )
                await self._emit(self._system("Step limit reached", node.id), generation, events)
                self._terminate(generation)
                return

            self.current_node_id = node.id
            self.log_util.debug(
                service_name="WorkflowEngine",
                message=f"[STEP] Executing {node.type} node {node.id}"
            )

            handler = self._handlers.get(node.type, self._handle_passthrough)
            outcome = await handler(node, generation, events)
            if generation != self._generation:
                return

            if outcome.suspend:
                self.status = RunStatus.AWAITING_INPUT
                return
            if outcome.terminate:
                self._terminate(generation)
                return

            if not await self._pause(outcome.pause_ms, generation):
                return

            if outcome.jump_to:
                next_node_id = outcome.jump_to
                continue

            edge = self._select_edge(node.id, condition_id=outcome.condition_id)
            if edge is None:
                await self._complete(generation, events)
                return
            if not await self._pause(self.pacing["edge"], generation):
                return
            next_node_id = edge.target

    def _select_edge(
        self,
        source_id: str,
        response_id: Optional[str] = None,
        condition_id: Optional[str] = None
    ) -> Optional[WorkflowEdge]:
        """
        Edge matching the resolved response/condition first, then the first
        edge carrying neither id, in document order.
        """
        edges = self.workflow.outgoing_edges(source_id)
        if response_id:
            for edge in edges:
                if edge.responseId == response_id:
                    return edge
        if condition_id:
            for edge in edges:
                if edge.conditionId == condition_id:
                    return edge
        for edge in edges:
            if edge.is_unconditional():
                return edge
        return None

    @staticmethod
    def _find_option(node: WorkflowNode, option_id: str):
        if node.type == NodeType.QUESTION.value:
            options = node.data.responses or []
        elif node.type == NodeType.BUTTON.value:
            options = node.data.buttons or []
        else:
            options = []
        for option in options:
            if option.id == option_id:
                return option
        return None

    # Node handlers

    async def _handle_start(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        return StepOutcome(pause_ms=self.pacing["silent"])

    async def _handle_passthrough(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        # Unknown kinds and carousels have no runtime behaviour
        return StepOutcome(pause_ms=0)

    async def _handle_text(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        await self._emit(
            ChatMessage(type="bot", content=node.data.content or node.data.label, nodeId=node.id),
            generation,
            events
        )
        return StepOutcome(pause_ms=self.pacing["text"])

    async def _handle_question(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        await self._emit(
            ChatMessage(
                type="bot",
                content=node.data.content or node.data.label,
                nodeId=node.id,
                responses=list(node.data.responses or [])
            ),
            generation,
            events
        )
        return StepOutcome(suspend=True)

    async def _handle_button(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        await self._emit(
            ChatMessage(
                type="bot",
                content=node.data.content or node.data.label,
                nodeId=node.id,
                buttons=list(node.data.buttons or [])
            ),
            generation,
            events
        )
        return StepOutcome(suspend=True)

    async def _handle_action(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        await self._narrate(f"Action: {node.data.content or node.data.label}", node, generation, events)
        return StepOutcome(pause_ms=self.pacing["action"])

    async def _handle_delay(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        delay_ms = node.data.delay or self.pacing["delay_default"]
        delay_ms = max(0, min(delay_ms, self.max_delay_ms))
        await self._narrate(f"Waiting {delay_ms / 1000:g}s...", node, generation, events)
        return StepOutcome(pause_ms=delay_ms)

    async def _handle_webhook(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        # Only the intent is recorded, no request is sent
        await self._narrate(f"Webhook call: {node.data.webhookUrl or 'URL not set'}", node, generation, events)
        return StepOutcome(pause_ms=self.pacing["webhook"])

    async def _handle_variable(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        name = node.data.variableName
        value = node.data.variableValue
        if name and value:
            self.variables.set(name, value)
        await self._narrate(f'Variable "{name or ""}" = "{value or ""}"', node, generation, events)
        return StepOutcome(pause_ms=self.pacing["variable"])

    async def _handle_media(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        await self._emit(
            ChatMessage(
                type="bot",
                content=node.data.content or f"Media {node.data.mediaType or ''}".strip(),
                nodeId=node.id,
                mediaUrl=node.data.mediaUrl,
                mediaType=node.data.mediaType
            ),
            generation,
            events
        )
        return StepOutcome(pause_ms=self.pacing["media"])

    async def _handle_condition(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        matched_rule = None
        for rule in node.data.conditions or []:
            actual_value = self.variables.get(rule.variable)
            if evaluate_condition(actual_value, rule.operator, rule.value):
                matched_rule = rule
                break

        self.log_util.debug(
            service_name="WorkflowEngine",
            message=f"[CONDITION] Node {node.id} evaluated to {matched_rule is not None}"
                    f"{f' by rule {matched_rule.id}' if matched_rule else ''}"
        )

        outcome_text = "true" if matched_rule else "false"
        await self._narrate(f"Condition {outcome_text}: {node.data.content}", node, generation, events)

        if matched_rule and matched_rule.targetNodeId:
            return StepOutcome(pause_ms=self.pacing["condition"], jump_to=matched_rule.targetNodeId)
        return StepOutcome(
            pause_ms=self.pacing["condition"],
            condition_id=matched_rule.id if matched_rule else None
        )

    async def _handle_end(self, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> StepOutcome:
        if self.mode == EngineMode.PREVIEW:
            await self._emit(self._system("End of conversation", node.id), generation, events)
        elif node.data.content:
            await self._emit(ChatMessage(type="bot", content=node.data.content, nodeId=node.id), generation, events)
        return StepOutcome(terminate=True)

    # Helpers

    def _system(self, content: str, node_id: Optional[str] = None) -> ChatMessage:
        return ChatMessage(type="system", content=content, nodeId=node_id)

    async def _narrate(self, content: str, node: WorkflowNode, generation: int, events: List[ChatMessage]) -> None:
        # Public conversations only show bot content
        if self.mode == EngineMode.PREVIEW:
            await self._emit(self._system(content, node.id), generation, events)

    async def _emit(self, message: ChatMessage, generation: int, events: List[ChatMessage]) -> None:
        if generation != self._generation:
            return
        self.messages.append(message)
        events.append(message)
        for listener in list(self._listeners):
            result = listener(message)
            if inspect.isawaitable(result):
                await result

    async def _pause(self, milliseconds: int, generation: int) -> bool:
        completed = await self.pacing_scheduler.wait(milliseconds)
        return completed and generation == self._generation

    async def _complete(self, generation: int, events: List[ChatMessage]) -> None:
        if self.mode == EngineMode.PREVIEW:
            await self._emit(self._system("Conversation completed"), generation, events)
        self._terminate(generation)

    def _terminate(self, generation: int) -> None:
        if generation != self._generation:
            return
        self.status = RunStatus.TERMINATED
        self.log_util.info(
            service_name="WorkflowEngine",
            message=f"[RUN] Run of workflow {self.workflow.id if self.workflow else None} terminated at node {self.current_node_id}"
        )

    def _supersede(self) -> None:
        self._generation += 1
        self.pacing_scheduler.cancel()

    def _result(self, generation: int, events: List[ChatMessage]) -> RunResult:
        if generation != self._generation:
            return RunResult(
                accepted=False,
                status=self.status,
                awaiting_input=self.awaiting_input,
                current_node_id=self.current_node_id,
                events=events,
                detail="Run was replaced by a newer run"
            )
        return RunResult(
            status=self.status,
            awaiting_input=self.awaiting_input,
            current_node_id=self.current_node_id,
            events=events
        )

    def _rejected(self, detail: str) -> RunResult:
        return RunResult(
            accepted=False,
            status=self.status,
            awaiting_input=self.awaiting_input,
            current_node_id=self.current_node_id,
            detail=detail
        )
