"""
Workflow Codec Service
JSON export/import of workflow documents.
"""
import json
from typing import Any, Dict

from pydantic import ValidationError

# Utils
from utils.log_utils import LogUtil

# Models
from models.workflow_data import WorkflowData, new_id, utc_now

# Exceptions
from exceptions.workflow_exception import MalformedDocumentException


class WorkflowCodecService:
    """
    Serializes workflows to the editor's JSON interchange format and back.
    Imports always get a new document identity; node, edge, response and
    condition ids are kept so that routing survives the round trip.
    """

    def __init__(self, log_util: LogUtil):
        self.log_util = log_util

    def serialize(self, workflow: WorkflowData) -> str:
        return json.dumps(
            workflow.model_dump(mode="json"),
            indent=2,
            ensure_ascii=False
        )

    def deserialize(self, text: str) -> WorkflowData:
        """
        Parse an exported document.

        Args:
            text: JSON produced by serialize (or by the editor's export)

        Returns:
            WorkflowData with a fresh id and timestamps and no publishedId

        Raises:
            MalformedDocumentException: text is not a valid workflow document
        """
        try:
            document = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            self.log_util.warning(
                service_name="WorkflowCodecService",
                message=f"Import rejected, invalid JSON: {str(e)}"
            )
            raise MalformedDocumentException(message=f"Invalid JSON: {str(e)}")

        if not isinstance(document, dict):
            raise MalformedDocumentException(message="Workflow document must be a JSON object")

        now = utc_now()
        fields: Dict[str, Any] = dict(document)
        fields["id"] = new_id()
        fields["createdAt"] = now
        fields["updatedAt"] = now
        fields["publishedId"] = None

        try:
            workflow = WorkflowData.model_validate(fields)
        except ValidationError as e:
            self.log_util.warning(
                service_name="WorkflowCodecService",
                message=f"Import rejected, invalid workflow structure: {e.error_count()} error(s)"
            )
            raise MalformedDocumentException(message=f"Invalid workflow structure: {str(e)}")

        self.log_util.info(
            service_name="WorkflowCodecService",
            message=f"Imported workflow '{workflow.name}' as {workflow.id} ({len(workflow.nodes)} nodes, {len(workflow.edges)} edges)"
        )
        return workflow
