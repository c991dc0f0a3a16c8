from motor.motor_asyncio import AsyncIOMotorClient
import urllib.parse
import threading
import asyncio
from typing import Optional, List, Dict, Any
from pymongo.errors import NetworkTimeout, ServerSelectionTimeoutError, ConnectionFailure

# Utils
from utils.log_utils import LogUtil
from utils.environment_utils import EnvironmentUtils

# Exceptions
from exceptions.workflow_exception import WorkflowDBException

# Models
from models.workflow_data import WorkflowData

# Errors meaning the server is unreachable rather than the request being wrong
CONNECTION_ERRORS = (NetworkTimeout, ServerSelectionTimeoutError, ConnectionFailure)

# Connection pool settings; connections are opened on demand
CLIENT_OPTIONS: Dict[str, Any] = {
    "maxPoolSize": 20,
    "minPoolSize": 0,
    "maxIdleTimeMS": 30000,
    "waitQueueTimeoutMS": 10000,
    "connectTimeoutMS": 10000,
    "serverSelectionTimeoutMS": 10000,
    "socketTimeoutMS": 10000,
    "tz_aware": True,
    "retryWrites": True,
    "retryReads": True,
}


class WorkflowDB:
    """
    Database class for workflow documents.
    Documents are keyed by the workflow id (string _id).
    """

    def __init__(self, log_util: LogUtil, environment_utils: EnvironmentUtils):
        self.log_util = log_util
        self.environment_utils = environment_utils

        self.username = urllib.parse.quote_plus(self.environment_utils.get_env_variable("MONGO_USERNAME"))
        self.password = urllib.parse.quote_plus(self.environment_utils.get_env_variable("MONGO_PASSWORD"))
        self.auth_source = self.environment_utils.get_env_variable("MONGO_AUTH_SOURCE")
        self.host = self.environment_utils.get_env_variable("MONGO_HOST")
        self.port = int(self.environment_utils.get_env_variable("MONGO_PORT"))
        self.db_name = self.environment_utils.get_env_variable("MONGO_DB_NAME")

        # Motor clients are bound to the loop that created them: {loop_id: {client, collections}}
        self._clients: Dict[int, Dict[str, Any]] = {}
        self._client_lock = threading.Lock()

    def _connection_string(self) -> str:
        if self.username:
            return f"mongodb://{self.username}:{self.password}@{self.host}:{self.port}/?authSource={self.auth_source}"
        return f"mongodb://{self.host}:{self.port}/"

    def _get_client_for_current_loop(self) -> Dict[str, Any]:
        """
        Lazily create the client of the running event loop.

        Raises:
            RuntimeError: called outside of a running event loop
        """
        loop_id = id(asyncio.get_running_loop())

        with self._client_lock:
            client_data = self._clients.get(loop_id)
            if client_data is None:
                client = AsyncIOMotorClient(self._connection_string(), **CLIENT_OPTIONS)
                client_data = {
                    "client": client,
                    "collections": {"workflows": client[self.db_name].workflows},
                }
                self._clients[loop_id] = client_data
                self.log_util.info(
                    service_name="WorkflowDB",
                    message=f"MongoDB client created for event loop {loop_id} ({self.host}:{self.port}/{self.db_name})"
                )
            return client_data

    def _workflows(self):
        return self._get_client_for_current_loop()["collections"]["workflows"]

    def close(self):
        with self._client_lock:
            for loop_id, client_data in self._clients.items():
                try:
                    client_data["client"].close()
                except Exception as e:
                    self.log_util.warning(
                        service_name="WorkflowDB",
                        message=f"Error closing client for loop {loop_id}: {str(e)}"
                    )
            closed = len(self._clients)
            self._clients.clear()

        self.log_util.info(service_name="WorkflowDB", message=f"Closed {closed} MongoDB client(s)")

    def _handle_db_operation(self, operation_name: str, error: Exception) -> None:
        """
        Log a failed operation and raise it as WorkflowDBException:
        503 when MongoDB is unreachable, 500 otherwise.
        """
        status_code = 503 if isinstance(error, CONNECTION_ERRORS) else 500
        self.log_util.error(
            service_name="WorkflowDB",
            message=f"[{operation_name}] {type(error).__name__}: {str(error)}"
        )
        raise WorkflowDBException(
            message=f"Database {'unavailable' if status_code == 503 else 'error'}: {str(error)}",
            status_code=status_code
        )

    @staticmethod
    def _to_document(workflow: WorkflowData) -> Dict[str, Any]:
        document = workflow.model_dump(exclude={"id"})
        document["_id"] = workflow.id
        return document

    @staticmethod
    def _from_document(document: Dict[str, Any]) -> WorkflowData:
        fields = dict(document)
        fields["id"] = str(fields.pop("_id"))
        return WorkflowData.model_validate(fields)

    async def save_workflow(self, workflow: WorkflowData) -> WorkflowData:
        """
        Insert or replace a workflow
        """
        try:
            await self._workflows().replace_one({"_id": workflow.id}, self._to_document(workflow), upsert=True)
            return workflow
        except Exception as e:
            self._handle_db_operation("save_workflow", e)

    async def get_workflow(self, workflow_id: str) -> Optional[WorkflowData]:
        try:
            document = await self._workflows().find_one({"_id": workflow_id})
            return self._from_document(document) if document else None
        except Exception as e:
            self._handle_db_operation("get_workflow", e)

    async def get_workflows(self) -> List[WorkflowData]:
        """
        Every stored workflow, oldest first
        """
        try:
            cursor = self._workflows().find({}).sort("createdAt", 1)
            return [self._from_document(document) async for document in cursor]
        except Exception as e:
            self._handle_db_operation("get_workflows", e)

    async def delete_workflow(self, workflow_id: str) -> bool:
        try:
            result = await self._workflows().delete_one({"_id": workflow_id})
            return result.deleted_count > 0
        except Exception as e:
            self._handle_db_operation("delete_workflow", e)
