from fastapi import APIRouter, Request
from fastapi.exceptions import HTTPException
from fastapi.responses import Response

# Utils
from utils.log_utils import LogUtil

# Models
from models.request.workflow_request import CreateWorkflowRequest, AddNodeRequest, UpdateWorkflowRequest
from models.response.publish_response import PublishResponse

# Services
from services.workflow_store_service import WorkflowStoreService

# Exceptions
from exceptions.workflow_exception import WorkflowException, MalformedDocumentException

IMPORT_FAILED_MESSAGE = "Import failed, check the file format"


def create_workflow_api(
    log_util: LogUtil,
    workflow_store_service: WorkflowStoreService
) -> APIRouter:
    router = APIRouter(
        prefix="/workflow",
        tags=["workflow"],
    )

    # Workflows

    @router.get("/list")
    async def list_workflows():
        return workflow_store_service.list_workflows()

    @router.post("/create")
    async def create_workflow(payload: CreateWorkflowRequest):
        try:
            workflow = workflow_store_service.create_workflow(name=payload.name, description=payload.description)
            await workflow_store_service.save(workflow.id)
            return workflow
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error creating workflow: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.get("/detail/{workflow_id}")
    async def get_workflow(workflow_id: str):
        try:
            return workflow_store_service.get_workflow(workflow_id)
        except WorkflowException as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.put("/update/{workflow_id}")
    async def update_workflow(workflow_id: str, payload: UpdateWorkflowRequest):
        try:
            workflow = workflow_store_service.update_workflow(workflow_id, payload.model_dump(exclude_none=True))
            await workflow_store_service.save(workflow_id)
            return workflow
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error updating workflow {workflow_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.delete("/delete/{workflow_id}")
    async def delete_workflow(workflow_id: str):
        try:
            workflow_store_service.delete_workflow(workflow_id)
            await workflow_store_service.remove(workflow_id)
            return {"deleted": True, "workflow_id": workflow_id}
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error deleting workflow {workflow_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    # Nodes

    @router.post("/{workflow_id}/node")
    async def add_node(workflow_id: str, payload: AddNodeRequest):
        try:
            node = workflow_store_service.add_node(workflow_id, payload.type, payload.position)
            await workflow_store_service.save(workflow_id)
            return node
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error adding node to {workflow_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.patch("/{workflow_id}/node/{node_id}")
    async def update_node(workflow_id: str, node_id: str, updates: dict):
        try:
            node = workflow_store_service.update_node(workflow_id, node_id, updates)
            await workflow_store_service.save(workflow_id)
            return node
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error updating node {node_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.delete("/{workflow_id}/node/{node_id}")
    async def delete_node(workflow_id: str, node_id: str):
        try:
            workflow_store_service.delete_node(workflow_id, node_id)
            await workflow_store_service.save(workflow_id)
            return {"deleted": True, "node_id": node_id}
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error deleting node {node_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    # Edges

    @router.post("/{workflow_id}/edge")
    async def add_edge(workflow_id: str, edge: dict):
        try:
            new_edge = workflow_store_service.add_edge(workflow_id, edge)
            await workflow_store_service.save(workflow_id)
            return new_edge
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error adding edge to {workflow_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.patch("/{workflow_id}/edge/{edge_id}")
    async def update_edge(workflow_id: str, edge_id: str, updates: dict):
        try:
            edge = workflow_store_service.update_edge(workflow_id, edge_id, updates)
            await workflow_store_service.save(workflow_id)
            return edge
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error updating edge {edge_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.delete("/{workflow_id}/edge/{edge_id}")
    async def delete_edge(workflow_id: str, edge_id: str):
        try:
            workflow_store_service.delete_edge(workflow_id, edge_id)
            await workflow_store_service.save(workflow_id)
            return {"deleted": True, "edge_id": edge_id}
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error deleting edge {edge_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    # Response options of question nodes

    @router.post("/{workflow_id}/node/{node_id}/response")
    async def add_response(workflow_id: str, node_id: str, response: dict):
        try:
            new_response = workflow_store_service.add_response(workflow_id, node_id, response)
            await workflow_store_service.save(workflow_id)
            return new_response
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error adding response to node {node_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.patch("/{workflow_id}/node/{node_id}/response/{response_id}")
    async def update_response(workflow_id: str, node_id: str, response_id: str, updates: dict):
        try:
            response = workflow_store_service.update_response(workflow_id, node_id, response_id, updates)
            await workflow_store_service.save(workflow_id)
            return response
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error updating response {response_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.delete("/{workflow_id}/node/{node_id}/response/{response_id}")
    async def delete_response(workflow_id: str, node_id: str, response_id: str):
        try:
            workflow_store_service.delete_response(workflow_id, node_id, response_id)
            await workflow_store_service.save(workflow_id)
            return {"deleted": True, "response_id": response_id}
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error deleting response {response_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    # Condition rules of condition nodes

    @router.post("/{workflow_id}/node/{node_id}/condition")
    async def add_condition(workflow_id: str, node_id: str, condition: dict):
        try:
            new_condition = workflow_store_service.add_condition(workflow_id, node_id, condition)
            await workflow_store_service.save(workflow_id)
            return new_condition
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error adding condition to node {node_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.patch("/{workflow_id}/node/{node_id}/condition/{condition_id}")
    async def update_condition(workflow_id: str, node_id: str, condition_id: str, updates: dict):
        try:
            condition = workflow_store_service.update_condition(workflow_id, node_id, condition_id, updates)
            await workflow_store_service.save(workflow_id)
            return condition
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error updating condition {condition_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.delete("/{workflow_id}/node/{node_id}/condition/{condition_id}")
    async def delete_condition(workflow_id: str, node_id: str, condition_id: str):
        try:
            workflow_store_service.delete_condition(workflow_id, node_id, condition_id)
            await workflow_store_service.save(workflow_id)
            return {"deleted": True, "condition_id": condition_id}
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error deleting condition {condition_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    # Declared variables

    @router.post("/{workflow_id}/variable")
    async def add_variable(workflow_id: str, variable: dict):
        try:
            new_variable = workflow_store_service.add_variable(workflow_id, variable)
            await workflow_store_service.save(workflow_id)
            return new_variable
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error adding variable to {workflow_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.patch("/{workflow_id}/variable/{variable_id}")
    async def update_variable(workflow_id: str, variable_id: str, updates: dict):
        try:
            variable = workflow_store_service.update_variable(workflow_id, variable_id, updates)
            await workflow_store_service.save(workflow_id)
            return variable
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error updating variable {variable_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.delete("/{workflow_id}/variable/{variable_id}")
    async def delete_variable(workflow_id: str, variable_id: str):
        try:
            workflow_store_service.delete_variable(workflow_id, variable_id)
            await workflow_store_service.save(workflow_id)
            return {"deleted": True, "variable_id": variable_id}
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error deleting variable {variable_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    # Publishing

    @router.post("/publish/{workflow_id}", response_model=PublishResponse)
    async def publish_workflow(workflow_id: str):
        """
        Publish a workflow under a new public id. Any previously handed out
        public link stops resolving.
        """
        try:
            published_id = workflow_store_service.publish(workflow_id)
            await workflow_store_service.save(workflow_id)
            return PublishResponse(workflow_id=workflow_id, published_id=published_id)
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error publishing workflow {workflow_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    # Import / Export

    @router.get("/export/{workflow_id}")
    async def export_workflow(workflow_id: str):
        try:
            return Response(
                content=workflow_store_service.export_workflow(workflow_id),
                media_type="application/json",
                headers={"Content-Disposition": f'attachment; filename="workflow-{workflow_id}.json"'}
            )
        except WorkflowException as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.post("/import")
    async def import_workflow(request: Request):
        """
        Import an exported workflow document (raw JSON body). The imported
        workflow gets a new id and is never published.
        """
        body = await request.body()
        try:
            workflow = workflow_store_service.import_workflow(body.decode("utf-8"))
            await workflow_store_service.save(workflow.id)
            return workflow
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail=IMPORT_FAILED_MESSAGE)
        except MalformedDocumentException as e:
            log_util.warning(service_name="WorkflowAPI", message=f"[IMPORT] {e.message}")
            raise HTTPException(status_code=400, detail=IMPORT_FAILED_MESSAGE)
        except WorkflowException as e:
            log_util.error(service_name="WorkflowAPI", message=f"Error importing workflow: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    return router
