import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

# Utils
from utils.log_utils import LogUtil
from utils.environment_utils import EnvironmentUtils

# Database
from database.workflow_db import WorkflowDB

# Services
from services.workflow_codec_service import WorkflowCodecService
from services.workflow_store_service import WorkflowStoreService
from services.chat_session_service import ChatSessionService

# APIs
from apis.workflow_api import create_workflow_api
from apis.preview_api import create_preview_api
from apis.public_api import create_public_api

# Utils
log_util = LogUtil()
environment_utils = EnvironmentUtils(log_util=log_util)

# Database (only when a persistent backend is configured)
workflow_db = None
if environment_utils.get_env_variable("STORAGE_BACKEND") == "mongo":
    workflow_db = WorkflowDB(log_util=log_util, environment_utils=environment_utils)

# Services
workflow_codec_service = WorkflowCodecService(log_util=log_util)

workflow_store_service = WorkflowStoreService(
    log_util=log_util,
    codec_service=workflow_codec_service,
    workflow_db=workflow_db,
    default_workflows_dir=environment_utils.get_env_variable("DEFAULT_WORKFLOWS_DIR")
)

chat_session_service = ChatSessionService(
    log_util=log_util,
    workflow_store_service=workflow_store_service,
    pacing_enabled=environment_utils.get_env_variable("PACING_ENABLED"),
    max_delay_ms=environment_utils.get_env_variable("MAX_DELAY_MS"),
    max_auto_steps=environment_utils.get_env_variable("MAX_AUTO_STEPS"),
    session_ttl_seconds=environment_utils.get_env_variable("SESSION_TTL_SECONDS"),
    max_sessions=environment_utils.get_env_variable("MAX_SESSIONS")
)

# Define lifespan function
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    count = await workflow_store_service.load()
    log_util.info(service_name="BotflowService", message=f"Workflow store loaded with {count} workflow(s)")
    log_util.info(service_name="BotflowService", message="Application startup complete")

    yield

    # Shutdown
    chat_session_service.close()
    log_util.info(service_name="BotflowService", message="Chat sessions closed")

    if workflow_db is not None:
        workflow_db.close()
    log_util.info(service_name="BotflowService", message="Application shutdown complete")

# Create FastAPI app
app = FastAPI(
    title="botflow service",
    description="Chatbot workflow authoring, preview and public execution service",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Workflow authoring APIs
workflow_api_router = create_workflow_api(
    log_util=log_util,
    workflow_store_service=workflow_store_service
)
app.include_router(workflow_api_router)

# Editor preview conversations
preview_router = create_preview_api(
    log_util=log_util,
    chat_session_service=chat_session_service
)
app.include_router(preview_router)

# Published link conversations
public_router = create_public_api(
    log_util=log_util,
    workflow_store_service=workflow_store_service,
    chat_session_service=chat_session_service
)
app.include_router(public_router)

# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "botflow_service"}

# Global exception handler for HTTPExceptions
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    log_util.error(service_name="BotflowService", message=f"HTTPException: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error": str(exc),
            "status_code": exc.status_code
        }
    )

# Global exception handler for any unhandled exceptions
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    log_util.error(service_name="BotflowService", message=f"Exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "status_code": 500
        }
    )

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=environment_utils.get_env_variable("HOST"),
        port=environment_utils.get_env_variable("PORT")
    )
