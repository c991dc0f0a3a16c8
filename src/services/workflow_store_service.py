"""
Workflow Store Service
Owns the workflow documents and every authoring operation on them.
Persistence happens only through the explicit load/save/remove calls.
"""
import json
import os
from typing import Optional, List, Dict, Any, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ValidationError

# Utils
from utils.log_utils import LogUtil

# Database
from database.workflow_db import WorkflowDB

# Models
from models.workflow_data import (
    WorkflowData, WorkflowNode, WorkflowEdge, WorkflowVariable, NodePosition,
    ResponseOption, ConditionRule, NodeType, build_node_data
)

# Services
from services.workflow_codec_service import WorkflowCodecService

# Exceptions
from exceptions.workflow_exception import WorkflowNotFoundException, WorkflowValidationException

ModelT = TypeVar("ModelT", bound=BaseModel)

WORKFLOW_UPDATABLE_FIELDS = ("name", "description", "nodes", "edges", "variables")


class WorkflowStoreService:
    def __init__(
        self,
        log_util: LogUtil,
        codec_service: WorkflowCodecService,
        workflow_db: Optional[WorkflowDB] = None,
        default_workflows_dir: Optional[str] = None
    ):
        self.log_util = log_util
        self.codec_service = codec_service
        self.workflow_db = workflow_db
        self.default_workflows_dir = default_workflows_dir
        self.workflows: Dict[str, WorkflowData] = {}

    # Lifecycle

    async def load(self) -> int:
        """
        Load every workflow from the backend, then seed the bundled defaults
        when nothing was stored yet.

        Returns:
            Number of workflows held after loading
        """
        if self.workflow_db is not None:
            stored = await self.workflow_db.get_workflows()
            self.workflows = {workflow.id: workflow for workflow in stored}
            self.log_util.info(
                service_name="WorkflowStoreService",
                message=f"Loaded {len(stored)} workflow(s) from the database"
            )

        if not self.workflows:
            for workflow in self._read_default_workflows():
                self.workflows[workflow.id] = workflow
                await self.save(workflow.id)

        return len(self.workflows)

    async def save(self, workflow_id: str) -> None:
        workflow = self.get_workflow(workflow_id)
        if self.workflow_db is not None:
            await self.workflow_db.save_workflow(workflow)

    async def remove(self, workflow_id: str) -> None:
        if self.workflow_db is not None:
            await self.workflow_db.delete_workflow(workflow_id)

    def _read_default_workflows(self) -> List[WorkflowData]:
        if not self.default_workflows_dir or not os.path.isdir(self.default_workflows_dir):
            return []

        defaults: List[WorkflowData] = []
        for file_name in sorted(os.listdir(self.default_workflows_dir)):
            if not file_name.endswith(".json"):
                continue
            path = os.path.join(self.default_workflows_dir, file_name)
            try:
                with open(path, "r", encoding="utf-8") as handle:
                    defaults.append(WorkflowData.model_validate(json.load(handle)))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                self.log_util.warning(
                    service_name="WorkflowStoreService",
                    message=f"Skipping default workflow {file_name}: {str(e)}"
                )

        self.log_util.info(
            service_name="WorkflowStoreService",
            message=f"Seeded {len(defaults)} default workflow(s) from {self.default_workflows_dir}"
        )
        return defaults

    # Workflows

    def list_workflows(self) -> List[WorkflowData]:
        return list(self.workflows.values())

    def get_workflow(self, workflow_id: str) -> WorkflowData:
        workflow = self.workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundException(message=f"Workflow {workflow_id} not found")
        return workflow

    def create_workflow(self, name: str, description: str = "") -> WorkflowData:
        workflow = WorkflowData(name=name, description=description)
        self.workflows[workflow.id] = workflow
        self.log_util.info(
            service_name="WorkflowStoreService",
            message=f"Workflow '{name}' created with ID: {workflow.id}"
        )
        return workflow

    def update_workflow(self, workflow_id: str, updates: Dict[str, Any]) -> WorkflowData:
        """
        Replace top level fields of a workflow. Identity, timestamps and the
        published id cannot be changed here.
        """
        workflow = self.get_workflow(workflow_id)
        allowed = {key: value for key, value in updates.items() if key in WORKFLOW_UPDATABLE_FIELDS}
        updated = self._merge(workflow, allowed, WorkflowData)
        updated.touch()
        self.workflows[workflow_id] = updated
        return updated

    def delete_workflow(self, workflow_id: str) -> None:
        self.get_workflow(workflow_id)
        del self.workflows[workflow_id]
        self.log_util.info(
            service_name="WorkflowStoreService",
            message=f"Workflow {workflow_id} deleted"
        )

    # Nodes

    def add_node(self, workflow_id: str, node_type: str, position: Optional[Dict[str, float]] = None) -> WorkflowNode:
        workflow = self.get_workflow(workflow_id)
        if node_type not in {kind.value for kind in NodeType}:
            raise WorkflowValidationException(message=f"Unknown node type: {node_type}")

        node = WorkflowNode(
            id=str(uuid4()),
            type=node_type,
            position=NodePosition(**(position or {})),
            data=build_node_data(node_type)
        )
        workflow.nodes.append(node)
        workflow.touch()
        return node

    def update_node(self, workflow_id: str, node_id: str, updates: Dict[str, Any]) -> WorkflowNode:
        """
        Merge updates into a node; a "data" mapping is merged key by key
        """
        workflow = self.get_workflow(workflow_id)
        index, node = self._find_node(workflow, node_id)

        changes = dict(updates)
        if isinstance(changes.get("data"), dict):
            data = node.data.model_dump()
            data.update(changes["data"])
            changes["data"] = data

        updated = self._merge(node, changes, WorkflowNode)
        workflow.nodes[index] = updated
        workflow.touch()
        return updated

    def delete_node(self, workflow_id: str, node_id: str) -> None:
        """
        Remove a node and every edge that starts or ends at it
        """
        workflow = self.get_workflow(workflow_id)
        self._find_node(workflow, node_id)
        workflow.nodes = [node for node in workflow.nodes if node.id != node_id]
        workflow.edges = [edge for edge in workflow.edges if edge.source != node_id and edge.target != node_id]
        workflow.touch()

    # Edges

    def add_edge(self, workflow_id: str, edge: Dict[str, Any]) -> WorkflowEdge:
        workflow = self.get_workflow(workflow_id)
        new_edge = self._validate(WorkflowEdge, edge)
        workflow.edges.append(new_edge)
        workflow.touch()
        return new_edge

    def update_edge(self, workflow_id: str, edge_id: str, updates: Dict[str, Any]) -> WorkflowEdge:
        workflow = self.get_workflow(workflow_id)
        for index, edge in enumerate(workflow.edges):
            if edge.id == edge_id:
                updated = self._merge(edge, updates, WorkflowEdge)
                workflow.edges[index] = updated
                workflow.touch()
                return updated
        raise WorkflowNotFoundException(message=f"Edge {edge_id} not found")

    def delete_edge(self, workflow_id: str, edge_id: str) -> None:
        workflow = self.get_workflow(workflow_id)
        if workflow.get_edge(edge_id) is None:
            raise WorkflowNotFoundException(message=f"Edge {edge_id} not found")
        workflow.edges = [edge for edge in workflow.edges if edge.id != edge_id]
        workflow.touch()

    # Responses

    def add_response(self, workflow_id: str, node_id: str, response: Dict[str, Any]) -> ResponseOption:
        workflow = self.get_workflow(workflow_id)
        _, node = self._find_node(workflow, node_id)
        fields = {key: value for key, value in response.items() if key != "id"}
        new_response = self._validate(ResponseOption, fields)
        node.data.responses = list(node.data.responses or []) + [new_response]
        workflow.touch()
        return new_response

    def update_response(self, workflow_id: str, node_id: str, response_id: str, updates: Dict[str, Any]) -> ResponseOption:
        workflow = self.get_workflow(workflow_id)
        _, node = self._find_node(workflow, node_id)
        responses = list(node.data.responses or [])
        for index, response in enumerate(responses):
            if response.id == response_id:
                responses[index] = self._merge(response, updates, ResponseOption)
                node.data.responses = responses
                workflow.touch()
                return responses[index]
        raise WorkflowNotFoundException(message=f"Response {response_id} not found on node {node_id}")

    def delete_response(self, workflow_id: str, node_id: str, response_id: str) -> None:
        """
        Remove a response option and the edges routed by it
        """
        workflow = self.get_workflow(workflow_id)
        _, node = self._find_node(workflow, node_id)
        responses = list(node.data.responses or [])
        if not any(response.id == response_id for response in responses):
            raise WorkflowNotFoundException(message=f"Response {response_id} not found on node {node_id}")
        node.data.responses = [response for response in responses if response.id != response_id]
        workflow.edges = [edge for edge in workflow.edges if edge.responseId != response_id]
        workflow.touch()

    # Conditions

    def add_condition(self, workflow_id: str, node_id: str, condition: Dict[str, Any]) -> ConditionRule:
        workflow = self.get_workflow(workflow_id)
        _, node = self._find_node(workflow, node_id)
        fields = {key: value for key, value in condition.items() if key != "id"}
        new_condition = self._validate(ConditionRule, fields)
        node.data.conditions = list(node.data.conditions or []) + [new_condition]
        workflow.touch()
        return new_condition

    def update_condition(self, workflow_id: str, node_id: str, condition_id: str, updates: Dict[str, Any]) -> ConditionRule:
        workflow = self.get_workflow(workflow_id)
        _, node = self._find_node(workflow, node_id)
        conditions = list(node.data.conditions or [])
        for index, condition in enumerate(conditions):
            if condition.id == condition_id:
                conditions[index] = self._merge(condition, updates, ConditionRule)
                node.data.conditions = conditions
                workflow.touch()
                return conditions[index]
        raise WorkflowNotFoundException(message=f"Condition {condition_id} not found on node {node_id}")

    def delete_condition(self, workflow_id: str, node_id: str, condition_id: str) -> None:
        """
        Remove a condition rule and the edges routed by it
        """
        workflow = self.get_workflow(workflow_id)
        _, node = self._find_node(workflow, node_id)
        conditions = list(node.data.conditions or [])
        if not any(condition.id == condition_id for condition in conditions):
            raise WorkflowNotFoundException(message=f"Condition {condition_id} not found on node {node_id}")
        node.data.conditions = [condition for condition in conditions if condition.id != condition_id]
        workflow.edges = [edge for edge in workflow.edges if edge.conditionId != condition_id]
        workflow.touch()

    # Declared variables

    def add_variable(self, workflow_id: str, variable: Dict[str, Any]) -> WorkflowVariable:
        workflow = self.get_workflow(workflow_id)
        fields = {key: value for key, value in variable.items() if key != "id"}
        new_variable = self._validate(WorkflowVariable, fields)
        workflow.variables.append(new_variable)
        workflow.touch()
        return new_variable

    def update_variable(self, workflow_id: str, variable_id: str, updates: Dict[str, Any]) -> WorkflowVariable:
        workflow = self.get_workflow(workflow_id)
        for index, variable in enumerate(workflow.variables):
            if variable.id == variable_id:
                updated = self._merge(variable, updates, WorkflowVariable)
                workflow.variables[index] = updated
                workflow.touch()
                return updated
        raise WorkflowNotFoundException(message=f"Variable {variable_id} not found")

    def delete_variable(self, workflow_id: str, variable_id: str) -> None:
        workflow = self.get_workflow(workflow_id)
        if workflow.get_variable(variable_id) is None:
            raise WorkflowNotFoundException(message=f"Variable {variable_id} not found")
        workflow.variables = [variable for variable in workflow.variables if variable.id != variable_id]
        workflow.touch()

    # Publishing

    def publish(self, workflow_id: str) -> str:
        """
        Mint a new public id. Only the latest one is stored, so links handed
        out before a republish stop resolving.
        """
        workflow = self.get_workflow(workflow_id)
        previous_id = workflow.publishedId
        workflow.publishedId = str(uuid4())
        workflow.touch()
        if previous_id:
            self.log_util.warning(
                service_name="WorkflowStoreService",
                message=f"Workflow {workflow_id} republished, public id {previous_id} no longer resolves"
            )
        self.log_util.info(
            service_name="WorkflowStoreService",
            message=f"Workflow {workflow_id} published as {workflow.publishedId}"
        )
        return workflow.publishedId

    def lookup_by_published_id(self, published_id: str) -> Optional[WorkflowData]:
        for workflow in self.workflows.values():
            if workflow.publishedId == published_id:
                return workflow
        return None

    # Import / Export

    def export_workflow(self, workflow_id: str) -> str:
        return self.codec_service.serialize(self.get_workflow(workflow_id))

    def import_workflow(self, text: str) -> WorkflowData:
        # Nothing is added when the codec rejects the document
        workflow = self.codec_service.deserialize(text)
        self.workflows[workflow.id] = workflow
        return workflow

    # Helpers

    @staticmethod
    def _find_node(workflow: WorkflowData, node_id: str):
        for index, node in enumerate(workflow.nodes):
            if node.id == node_id:
                return index, node
        raise WorkflowNotFoundException(message=f"Node {node_id} not found")

    @staticmethod
    def _validate(model_cls: Type[ModelT], fields: Any) -> ModelT:
        if isinstance(fields, model_cls):
            return fields
        try:
            return model_cls.model_validate(fields)
        except ValidationError as e:
            raise WorkflowValidationException(message=f"Invalid {model_cls.__name__}: {str(e)}")

    @classmethod
    def _merge(cls, model: ModelT, updates: Dict[str, Any], model_cls: Type[ModelT]) -> ModelT:
        merged = model.model_dump()
        merged.update({key: value for key, value in updates.items() if key != "id"})
        return cls._validate(model_cls, merged)
