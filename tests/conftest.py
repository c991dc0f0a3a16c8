"""Pytest configuration and fixtures."""
import os
import pytest

# Set test environment before importing the app
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["PACING_ENABLED"] = "false"
os.environ["LOKI_URL"] = ""

from utils.log_utils import LogUtil
from models.workflow_data import WorkflowData
from models.run_state_data import EngineMode
from services.pacing_scheduler_service import PacingScheduler
from services.workflow_engine_service import WorkflowEngine
from services.workflow_codec_service import WorkflowCodecService
from services.workflow_store_service import WorkflowStoreService
from services.chat_session_service import ChatSessionService


def node(node_id, node_type, **data):
    return {"id": node_id, "type": node_type, "data": data}


def edge(source, target, **fields):
    suffix = fields.get("responseId") or fields.get("conditionId") or "default"
    return {"id": f"{source}-{target}-{suffix}", "source": source, "target": target, **fields}


@pytest.fixture
def build_workflow():
    """Build a workflow document from node and edge dicts."""
    def _build(nodes, edges=(), name="Test bot", **fields):
        return WorkflowData.model_validate(
            {"name": name, "nodes": list(nodes), "edges": list(edges), **fields}
        )
    return _build


@pytest.fixture
def log_util():
    return LogUtil()


@pytest.fixture
def engine(log_util):
    """Preview engine with pacing disabled."""
    return WorkflowEngine(
        log_util=log_util,
        mode=EngineMode.PREVIEW,
        pacing_scheduler=PacingScheduler(log_util=log_util, enabled=False),
    )


@pytest.fixture
def public_engine(log_util):
    """Public engine with pacing disabled."""
    return WorkflowEngine(
        log_util=log_util,
        mode=EngineMode.PUBLIC,
        pacing_scheduler=PacingScheduler(log_util=log_util, enabled=False),
    )


@pytest.fixture
def codec_service(log_util):
    return WorkflowCodecService(log_util=log_util)


@pytest.fixture
def store(log_util, codec_service):
    """In-memory store without default workflows."""
    return WorkflowStoreService(log_util=log_util, codec_service=codec_service)


@pytest.fixture
def session_service(log_util, store):
    return ChatSessionService(
        log_util=log_util,
        workflow_store_service=store,
        pacing_enabled=False,
    )


@pytest.fixture
def question_workflow(build_workflow):
    """start -> Q, Q routes r1 to A and r2 to B, both end."""
    return build_workflow(
        nodes=[
            node("S", "start"),
            node("Q", "question", content="Continue?", responses=[
                {"id": "r1", "text": "Yes", "value": "yes"},
                {"id": "r2", "text": "No", "value": ""},
            ]),
            node("A", "text", content="You said yes"),
            node("B", "text", content="You said no"),
            node("E", "end", content="Bye"),
        ],
        edges=[
            edge("S", "Q"),
            edge("Q", "A", responseId="r1"),
            edge("Q", "B", responseId="r2"),
            edge("A", "E"),
            edge("B", "E"),
        ],
        name="Question bot",
    )


@pytest.fixture
def client():
    """Test client on the application, lifespan included."""
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app) as test_client:
        yield test_client
