from fastapi import APIRouter
from fastapi.exceptions import HTTPException

# Utils
from utils.log_utils import LogUtil

# Models
from models.request.session_request import SubmitResponseRequest
from models.response.session_response import SessionResponse

# Services
from services.workflow_store_service import WorkflowStoreService
from services.chat_session_service import ChatSessionService

# Exceptions
from exceptions.workflow_exception import WorkflowException

NOT_FOUND_MESSAGE = "Workflow not found"


def create_public_api(
    log_util: LogUtil,
    workflow_store_service: WorkflowStoreService,
    chat_session_service: ChatSessionService
) -> APIRouter:
    """
    Routes behind shared public links. Only the published id is known to the
    caller, never the workflow id.
    """
    router = APIRouter(
        prefix="/public",
        tags=["public"],
    )

    @router.get("/{published_id}")
    async def get_published_workflow(published_id: str):
        workflow = workflow_store_service.lookup_by_published_id(published_id)
        if workflow is None:
            log_util.warning(service_name="PublicAPI", message=f"Unknown published id {published_id}")
            raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
        return workflow

    @router.post("/{published_id}/start", response_model=SessionResponse)
    async def start_public(published_id: str):
        try:
            started = await chat_session_service.start_public_session(published_id)
        except WorkflowException as e:
            log_util.error(service_name="PublicAPI", message=f"Error starting public session {published_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

        if started is None:
            raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
        session, result = started
        return SessionResponse(
            session_id=session.id,
            mode=session.mode,
            workflow_id=session.workflow_id,
            result=result
        )

    @router.post("/session/{session_id}/respond", response_model=SessionResponse)
    async def respond(session_id: str, payload: SubmitResponseRequest):
        try:
            result = await chat_session_service.submit_response(session_id, payload.response_id)
            session = chat_session_service.get_session(session_id)
            return SessionResponse(
                session_id=session.id,
                mode=session.mode,
                workflow_id=session.workflow_id,
                result=result
            )
        except WorkflowException as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.get("/session/{session_id}")
    async def get_session_state(session_id: str):
        try:
            return chat_session_service.get_snapshot(session_id)
        except WorkflowException as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    return router
