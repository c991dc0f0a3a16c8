"""Tests for the MongoDB workflow backend, with mocked collections."""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from pymongo.errors import ServerSelectionTimeoutError

from database.workflow_db import WorkflowDB
from exceptions.workflow_exception import WorkflowDBException
from utils.environment_utils import EnvironmentUtils


class FakeCursor:
    def __init__(self, documents):
        self.documents = documents

    def sort(self, *args, **kwargs):
        return self

    def __aiter__(self):
        self._iterator = iter(self.documents)
        return self

    async def __anext__(self):
        try:
            return next(self._iterator)
        except StopIteration:
            raise StopAsyncIteration


@pytest.fixture
def collection():
    return MagicMock()


@pytest.fixture
def workflow_db(log_util, collection):
    db = WorkflowDB(log_util=log_util, environment_utils=EnvironmentUtils(log_util=log_util))
    with patch.object(db, "_get_client_for_current_loop", return_value={"collections": {"workflows": collection}}):
        yield db


def test_connection_string_without_credentials(log_util):
    """Test credentials are only put in the URI when configured."""
    db = WorkflowDB(log_util=log_util, environment_utils=EnvironmentUtils(log_util=log_util))
    db.username = ""
    assert db._connection_string() == f"mongodb://{db.host}:{db.port}/"

    db.username, db.password = "bot", "secret"
    assert db._connection_string().startswith("mongodb://bot:secret@")


@pytest.mark.asyncio
async def test_save_workflow_upserts_by_id(workflow_db, collection, question_workflow):
    """Test saving replaces the document keyed by the workflow id."""
    collection.replace_one = AsyncMock()

    await workflow_db.save_workflow(question_workflow)

    args, kwargs = collection.replace_one.call_args
    assert args[0] == {"_id": question_workflow.id}
    assert args[1]["_id"] == question_workflow.id
    assert "id" not in args[1]
    assert kwargs["upsert"] is True


@pytest.mark.asyncio
async def test_get_workflows_maps_documents(workflow_db, collection, question_workflow):
    """Test stored documents come back as workflows."""
    document = question_workflow.model_dump(exclude={"id"})
    document["_id"] = question_workflow.id
    collection.find = MagicMock(return_value=FakeCursor([document]))

    workflows = await workflow_db.get_workflows()

    assert [workflow.id for workflow in workflows] == [question_workflow.id]
    assert workflows[0].edges == question_workflow.edges


@pytest.mark.asyncio
async def test_get_missing_workflow(workflow_db, collection):
    """Test a missing document gives None."""
    collection.find_one = AsyncMock(return_value=None)

    assert await workflow_db.get_workflow("missing") is None


@pytest.mark.asyncio
async def test_delete_workflow(workflow_db, collection):
    """Test delete reports whether a document was removed."""
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))

    assert await workflow_db.delete_workflow("some-id") is True


@pytest.mark.asyncio
async def test_connection_errors_become_503(workflow_db, collection, question_workflow):
    """Test connection failures are wrapped as service unavailable."""
    collection.replace_one = AsyncMock(side_effect=ServerSelectionTimeoutError("no server"))

    with pytest.raises(WorkflowDBException) as exc_info:
        await workflow_db.save_workflow(question_workflow)

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_other_errors_become_500(workflow_db, collection):
    """Test unexpected database errors are wrapped as internal errors."""
    collection.find_one = AsyncMock(side_effect=RuntimeError("boom"))

    with pytest.raises(WorkflowDBException) as exc_info:
        await workflow_db.get_workflow("any")

    assert exc_info.value.status_code == 500


def test_classes_are_documented():
    """Test the backend and config classes carry their docstrings."""
    assert "keyed by the workflow id" in WorkflowDB.__doc__
    assert "environment variables" in EnvironmentUtils.__doc__
