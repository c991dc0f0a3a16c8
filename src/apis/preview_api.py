from typing import Optional

from fastapi import APIRouter
from fastapi.exceptions import HTTPException

# Utils
from utils.log_utils import LogUtil

# Models
from models.request.session_request import SubmitResponseRequest, RestartSessionRequest
from models.response.session_response import SessionResponse

# Services
from services.chat_session_service import ChatSessionService

# Exceptions
from exceptions.workflow_exception import WorkflowException


def create_preview_api(
    log_util: LogUtil,
    chat_session_service: ChatSessionService
) -> APIRouter:
    router = APIRouter(
        prefix="/preview",
        tags=["preview"],
    )

    @router.post("/start/{workflow_id}", response_model=SessionResponse)
    async def start_preview(workflow_id: str):
        """
        Open a preview conversation on a workflow being edited.
        The response carries every event emitted until the bot waits for
        input or the conversation ends.
        """
        try:
            session, result = await chat_session_service.start_preview_session(workflow_id)
            return SessionResponse(
                session_id=session.id,
                mode=session.mode,
                workflow_id=session.workflow_id,
                result=result
            )
        except WorkflowException as e:
            log_util.error(service_name="PreviewAPI", message=f"Error starting preview of {workflow_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.post("/{session_id}/respond", response_model=SessionResponse)
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
            log_util.error(service_name="PreviewAPI", message=f"Error submitting response in {session_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.post("/{session_id}/restart", response_model=SessionResponse)
    async def restart(session_id: str, payload: Optional[RestartSessionRequest] = None):
        try:
            workflow_id = payload.workflow_id if payload else None
            result = await chat_session_service.restart_session(session_id, workflow_id)
            session = chat_session_service.get_session(session_id)
            return SessionResponse(
                session_id=session.id,
                mode=session.mode,
                workflow_id=session.workflow_id,
                result=result
            )
        except WorkflowException as e:
            log_util.error(service_name="PreviewAPI", message=f"Error restarting {session_id}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.get("/{session_id}")
    async def get_session_state(session_id: str):
        try:
            return chat_session_service.get_snapshot(session_id)
        except WorkflowException as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    @router.delete("/{session_id}")
    async def end_session(session_id: str):
        try:
            chat_session_service.end_session(session_id)
            return {"closed": True, "session_id": session_id}
        except WorkflowException as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    return router
