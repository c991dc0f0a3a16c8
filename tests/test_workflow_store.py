"""Tests for the workflow store."""
import json
import pytest
from unittest.mock import AsyncMock

from conftest import node, edge
from exceptions.workflow_exception import (
    WorkflowNotFoundException, WorkflowValidationException, MalformedDocumentException
)


def test_create_and_list(store):
    """Test created workflows are listed in creation order."""
    first = store.create_workflow("First", "one")
    second = store.create_workflow("Second")

    assert [workflow.id for workflow in store.list_workflows()] == [first.id, second.id]
    assert store.get_workflow(first.id).description == "one"
    assert first.nodes == [] and first.edges == []


def test_missing_workflow_raises(store):
    """Test unknown ids raise WorkflowNotFoundException."""
    with pytest.raises(WorkflowNotFoundException):
        store.get_workflow("missing")
    with pytest.raises(WorkflowNotFoundException):
        store.delete_workflow("missing")


def test_update_workflow_only_changes_allowed_fields(store):
    """Test identity and public id cannot be overwritten."""
    workflow = store.create_workflow("Draft")
    original_id = workflow.id

    updated = store.update_workflow(workflow.id, {"name": "Final", "id": "hijack", "publishedId": "x"})

    assert updated.id == original_id
    assert updated.name == "Final"
    assert updated.publishedId is None
    assert updated.updatedAt >= updated.createdAt


def test_add_node_applies_kind_defaults(store):
    """Test nodes get their kind defaults and a fresh id."""
    workflow = store.create_workflow("Bot")

    delay = store.add_node(workflow.id, "delay", {"x": 10, "y": 20})
    question = store.add_node(workflow.id, "question")

    assert delay.data.delay == 2000
    assert delay.position.x == 10
    assert question.data.responses == []
    assert question.data.style.backgroundColor == "#ffffff"
    assert delay.id != question.id


def test_add_node_rejects_unknown_kind(store):
    """Test the authoring surface only adds known kinds."""
    workflow = store.create_workflow("Bot")

    with pytest.raises(WorkflowValidationException):
        store.add_node(workflow.id, "hologram")


def test_update_node_merges_data(store):
    """Test node data updates keep untouched fields."""
    workflow = store.create_workflow("Bot")
    added = store.add_node(workflow.id, "webhook")

    updated = store.update_node(workflow.id, added.id, {"data": {"webhookUrl": "https://hooks.example.com"}})

    assert updated.data.webhookUrl == "https://hooks.example.com"
    assert updated.data.label == "Webhook"
    assert store.get_workflow(workflow.id).nodes[0].data.webhookUrl == "https://hooks.example.com"


def test_delete_node_removes_touching_edges(store):
    """Test deleting a node deletes its incoming and outgoing edges."""
    workflow = store.create_workflow("Bot")
    a = store.add_node(workflow.id, "text")
    b = store.add_node(workflow.id, "text")
    c = store.add_node(workflow.id, "text")
    store.add_edge(workflow.id, edge(a.id, b.id))
    store.add_edge(workflow.id, edge(b.id, c.id))
    store.add_edge(workflow.id, edge(a.id, c.id))

    store.delete_node(workflow.id, b.id)

    remaining = store.get_workflow(workflow.id)
    assert [n.id for n in remaining.nodes] == [a.id, c.id]
    assert [(e.source, e.target) for e in remaining.edges] == [(a.id, c.id)]


def test_edge_update_and_delete(store):
    """Test edges can be relabelled and removed."""
    workflow = store.create_workflow("Bot")
    added = store.add_edge(workflow.id, {"source": "a", "target": "b"})

    updated = store.update_edge(workflow.id, added.id, {"label": "next"})
    assert updated.label == "next"

    store.delete_edge(workflow.id, added.id)
    assert store.get_workflow(workflow.id).edges == []
    with pytest.raises(WorkflowNotFoundException):
        store.delete_edge(workflow.id, added.id)


def test_invalid_edge_is_rejected(store):
    """Test an edge without a target fails validation."""
    workflow = store.create_workflow("Bot")

    with pytest.raises(WorkflowValidationException):
        store.add_edge(workflow.id, {"source": "a"})


def test_delete_response_removes_its_edges(store):
    """Test a removed response takes its routed edges with it."""
    workflow = store.create_workflow("Bot")
    question = store.add_node(workflow.id, "question")
    yes = store.add_response(workflow.id, question.id, {"id": "ignored", "text": "Yes", "value": "yes"})
    no = store.add_response(workflow.id, question.id, {"text": "No"})
    store.add_edge(workflow.id, edge(question.id, "A", responseId=yes.id))
    store.add_edge(workflow.id, edge(question.id, "B", responseId=no.id))

    assert yes.id != "ignored"
    store.update_response(workflow.id, question.id, no.id, {"text": "Nope"})
    store.delete_response(workflow.id, question.id, yes.id)

    remaining = store.get_workflow(workflow.id)
    assert [r.text for r in remaining.nodes[0].data.responses] == ["Nope"]
    assert [e.responseId for e in remaining.edges] == [no.id]


def test_delete_condition_removes_its_edges(store):
    """Test a removed condition takes its routed edges with it."""
    workflow = store.create_workflow("Bot")
    condition_node = store.add_node(workflow.id, "condition")
    rule = store.add_condition(workflow.id, condition_node.id, {"variable": "age", "operator": "greater", "value": "18"})
    store.add_edge(workflow.id, edge(condition_node.id, "ADULT", conditionId=rule.id))
    store.add_edge(workflow.id, edge(condition_node.id, "OTHER"))

    updated = store.update_condition(workflow.id, condition_node.id, rule.id, {"value": "21"})
    assert updated.value == "21"

    store.delete_condition(workflow.id, condition_node.id, rule.id)

    remaining = store.get_workflow(workflow.id)
    assert remaining.nodes[0].data.conditions == []
    assert [e.target for e in remaining.edges] == ["OTHER"]


def test_variables_crud(store):
    """Test declared variables can be added, changed and removed."""
    workflow = store.create_workflow("Bot")
    variable = store.add_variable(workflow.id, {"name": "age", "type": "number", "defaultValue": 0})

    updated = store.update_variable(workflow.id, variable.id, {"description": "Age in years"})
    assert updated.description == "Age in years"
    assert updated.type == "number"

    store.delete_variable(workflow.id, variable.id)
    assert store.get_workflow(workflow.id).variables == []
    with pytest.raises(WorkflowValidationException):
        store.add_variable(workflow.id, {"name": "flag", "type": "date"})


def test_publish_and_lookup(store):
    """Test republishing invalidates the previous public id."""
    workflow = store.create_workflow("Bot")

    first_id = store.publish(workflow.id)
    assert store.lookup_by_published_id(first_id).id == workflow.id

    second_id = store.publish(workflow.id)
    assert second_id != first_id
    assert store.lookup_by_published_id(first_id) is None
    assert store.lookup_by_published_id(second_id).id == workflow.id
    assert store.lookup_by_published_id("unknown") is None


def test_import_failure_leaves_store_unchanged(store):
    """Test a malformed import adds nothing."""
    store.create_workflow("Existing")

    with pytest.raises(MalformedDocumentException):
        store.import_workflow("{broken")

    assert len(store.list_workflows()) == 1


def test_export_then_import_creates_a_copy(store):
    """Test importing an export adds an unpublished copy."""
    workflow = store.create_workflow("Original")
    store.add_node(workflow.id, "start")
    store.publish(workflow.id)

    copy = store.import_workflow(store.export_workflow(workflow.id))

    assert copy.id != workflow.id
    assert copy.publishedId is None
    assert len(copy.nodes) == 1
    assert len(store.list_workflows()) == 2


@pytest.mark.asyncio
async def test_load_seeds_default_workflows(log_util, codec_service, tmp_path):
    """Test an empty store is seeded from the defaults directory."""
    from services.workflow_store_service import WorkflowStoreService

    default = {
        "id": "default-1",
        "name": "Default bot",
        "nodes": [node("S", "start"), node("E", "end")],
        "edges": [edge("S", "E")],
    }
    (tmp_path / "default.json").write_text(json.dumps(default), encoding="utf-8")
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    store = WorkflowStoreService(log_util=log_util, codec_service=codec_service, default_workflows_dir=str(tmp_path))

    assert await store.load() == 1
    assert store.get_workflow("default-1").name == "Default bot"


@pytest.mark.asyncio
async def test_load_and_save_use_the_database(log_util, codec_service, question_workflow, tmp_path):
    """Test stored workflows win over defaults and saves go to the backend."""
    from services.workflow_store_service import WorkflowStoreService

    workflow_db = AsyncMock()
    workflow_db.get_workflows.return_value = [question_workflow]
    (tmp_path / "default.json").write_text(json.dumps({"name": "Default"}), encoding="utf-8")

    store = WorkflowStoreService(
        log_util=log_util,
        codec_service=codec_service,
        workflow_db=workflow_db,
        default_workflows_dir=str(tmp_path),
    )

    assert await store.load() == 1
    assert store.get_workflow(question_workflow.id).name == "Question bot"

    await store.save(question_workflow.id)
    workflow_db.save_workflow.assert_awaited_once_with(question_workflow)

    await store.remove(question_workflow.id)
    workflow_db.delete_workflow.assert_awaited_once_with(question_workflow.id)
