import re

import pytest

from conftest import RacingStore, make_workflow
from flowpatch.catalog.registry import NodeCatalog
from flowpatch.config import Settings
from flowpatch.errors import ConcurrencyError, NodeNotFoundError, OperationError, StoreError
from flowpatch.service import VERSION_DRIFT, WorkflowEditor
from flowpatch.store.client import N8nStore
from flowpatch.store.memory import MemoryStore


@pytest.fixture
def editor(store, sleeps):
    return WorkflowEditor(store, sleep=sleeps.append)


def _node(store, node_id):
    return next(n for n in store.get("wf-1")[0]["nodes"] if n["id"] == node_id)


# ---- batch path ----

def test_apply_batch_persists(editor, store):
    result = editor.apply_batch("wf-1", [
        {"type": "addTag", "tag": "beta"},
        {"type": "setParam", "nodeId": "c", "paramPath": "options.dotNotation", "value": False},
    ])
    assert result["success"]
    assert result["workflow"]["tags"] == ["prod", "beta"]
    assert store.writes == 1
    assert _node(store, "c")["parameters"] == {"options": {"dotNotation": False}}


def test_apply_batch_failure_writes_nothing(editor, store):
    before = store.get("wf-1")
    result = editor.apply_batch("wf-1", [
        {"type": "addTag", "tag": "beta"},
        {"type": "deleteNode", "nodeId": "missing"},
    ])
    assert not result["success"]
    assert result["errors"][0]["operationIndex"] == 1
    assert store.writes == 0
    assert store.get("wf-1") == before


def test_apply_batch_empty_rewrites_same_document(editor, store):
    result = editor.apply_batch("wf-1", [])
    assert result["success"]
    assert result["workflow"] == make_workflow()


def test_apply_batch_reports_drift_without_retry(sleeps):
    store = RacingStore(races=1)
    store.create(make_workflow())
    editor = WorkflowEditor(store, sleep=sleeps.append)
    op = {"type": "addTag", "tag": "beta"}
    result = editor.apply_batch("wf-1", [op])
    assert result == {
        "success": False,
        "errors": [{
            "operationIndex": -1,
            "operation": op,
            "error": VERSION_DRIFT,
            "details": "Precondition failed: the workflow has been modified by another user",
        }],
    }
    assert store.gets == 1
    assert sleeps == []
    assert "beta" not in store.get("wf-1")[0]["tags"]


def test_apply_batch_missing_workflow(editor):
    result = editor.apply_batch("nope", [])
    err = result["errors"][0]
    assert err["operationIndex"] == -1
    assert err["operation"] == {"type": "unknown"}
    assert err["error"] == "Failed to retrieve workflow: Workflow nope not found"


def test_apply_batch_save_failure():
    class BrokenStore(MemoryStore):
        def put(self, workflow_id, workflow, if_match=None):
            raise StoreError("disk full", status=500)

    store = BrokenStore()
    store.create(make_workflow())
    result = WorkflowEditor(store).apply_batch("wf-1", [{"type": "addTag", "tag": "x"}])
    assert result["errors"][0]["error"] == "Failed to save workflow: disk full"
    assert result["errors"][0]["details"] == "disk full"


# ---- point mutations ----

def test_create_node_defaults(editor, store):
    out = editor.create_node("wf-1", "n8n-nodes-base.httpRequest")
    assert re.fullmatch(r"node_\d+_[a-z0-9]{6}", out["nodeId"])
    node = _node(store, out["nodeId"])
    assert node["name"] == "httpRequest"
    assert node["position"] == [850, 280]
    assert node["typeVersion"] == 1
    assert node["parameters"] == {}
    assert node["credentials"] == {}


def test_create_node_numbers_repeated_default_names(editor, store):
    editor.create_node("wf-1", "n8n-nodes-base.noOp")
    second = editor.create_node("wf-1", "n8n-nodes-base.noOp")
    assert _node(store, second["nodeId"])["name"] == "noOp1"


def test_create_node_explicit(editor, store):
    out = editor.create_node(
        "wf-1", "n8n-nodes-base.set",
        name="Shape", parameters={"fields": {"values": []}}, position=[10, 20],
        credentials={"api": "c"},
    )
    node = _node(store, out["nodeId"])
    assert (node["name"], node["position"], node["credentials"]) == ("Shape", [10, 20], {"api": "c"})


def test_create_node_duplicate_name(editor, store):
    with pytest.raises(OperationError, match="already exists"):
        editor.create_node("wf-1", "n8n-nodes-base.webhook", name="Webhook")
    assert store.writes == 0


def test_create_node_on_empty_workflow(sleeps):
    store = MemoryStore()
    wid = store.create({"name": "Empty", "nodes": [], "connections": {}})
    out = WorkflowEditor(store, sleep=sleeps.append).create_node(wid, "n8n-nodes-base.webhook")
    assert store.get(wid)[0]["nodes"][0]["position"] == [250, 300]
    assert out["nodeId"] == store.get(wid)[0]["nodes"][0]["id"]


def test_create_node_keeps_id_across_retries(sleeps):
    store = RacingStore(races=1)
    store.create(make_workflow())
    out = WorkflowEditor(store, sleep=sleeps.append).create_node("wf-1", "n8n-nodes-base.noOp")
    ids = [n["id"] for n in store.get("wf-1")[0]["nodes"]]
    assert ids.count(out["nodeId"]) == 1
    assert sleeps == [0.2]


def test_update_node_merges(editor, store):
    out = editor.update_node(
        "wf-1", "b",
        parameters={"url": "https://example.org"},
        credentials={"oAuth2Api": "cred-2"},
        type_version=5,
    )
    assert out == {"nodeId": "b"}
    node = _node(store, "b")
    assert node["parameters"] == {
        "method": "GET",
        "url": "https://example.org",
        "options": {"retry": {"count": 1}},
    }
    assert node["credentials"] == {"httpHeaderAuth": "cred-1", "oAuth2Api": "cred-2"}
    assert node["typeVersion"] == 5


def test_update_node_rename_keeps_connections(editor, store):
    editor.update_node("wf-1", "b", name="Fetch")
    wf = store.get("wf-1")[0]
    assert wf["connections"]["Webhook"]["main"][0][0]["node"] == "Fetch"
    assert "Fetch" in wf["connections"]


def test_update_missing_node(editor):
    with pytest.raises(NodeNotFoundError, match='Node with ID "zz" not found'):
        editor.update_node("wf-1", "zz", name="x")


def test_connect_nodes(editor, store):
    assert editor.connect_nodes("wf-1", {"nodeId": "c"}, {"nodeId": "a", "inputIndex": 1}) == {"ok": True}
    assert store.get("wf-1")[0]["connections"]["Edit Fields"] == {
        "main": [[{"node": "Webhook", "type": "main", "index": 1}]],
    }


def test_connect_nodes_output_index(editor, store):
    editor.connect_nodes("wf-1", {"nodeId": "a", "outputIndex": 1}, {"nodeId": "c"})
    slots = store.get("wf-1")[0]["connections"]["Webhook"]["main"]
    assert slots[1] == [{"node": "Edit Fields", "type": "main", "index": 0}]


def test_connect_nodes_duplicate(editor, store):
    with pytest.raises(OperationError, match="Connection already exists"):
        editor.connect_nodes("wf-1", {"nodeId": "a"}, {"nodeId": "b"})
    assert store.writes == 0


@pytest.mark.parametrize("from_, to", [
    ({"nodeId": "c", "outputIndex": -1}, {"nodeId": "a"}),
    ({"nodeId": "c"}, {"nodeId": "a", "inputIndex": -2}),
    ({"nodeId": "c", "outputIndex": True}, {"nodeId": "a"}),
    ({"nodeId": "c", "outputIndex": "1"}, {"nodeId": "a"}),
])
def test_connect_nodes_rejects_bad_index(editor, store, from_, to):
    with pytest.raises(OperationError, match="index must be a non-negative integer"):
        editor.connect_nodes("wf-1", from_, to)
    assert store.writes == 0
    assert "Edit Fields" not in store.get("wf-1")[0]["connections"]


@pytest.mark.parametrize("src, dst, role", [("zz", "a", "Source node"), ("a", "zz", "Target node")])
def test_connect_nodes_unknown(editor, src, dst, role):
    with pytest.raises(NodeNotFoundError, match=f'{role} with ID "zz" not found'):
        editor.connect_nodes("wf-1", {"nodeId": src}, {"nodeId": dst})


def test_delete_node_cascades(editor, store):
    assert editor.delete_node("wf-1", "b") == {"ok": True}
    wf = store.get("wf-1")[0]
    assert [n["id"] for n in wf["nodes"]] == ["a", "c"]
    assert wf["connections"] == {}


def test_set_node_position(editor, store):
    assert editor.set_node_position("wf-1", "c", 900, 120) == {"ok": True}
    assert _node(store, "c")["position"] == [900, 120]


def test_point_mutation_gives_up(sleeps):
    store = RacingStore(races=5)
    store.create(make_workflow())
    editor = WorkflowEditor(store, max_attempts=2, base_delay=0.5, sleep=sleeps.append)
    with pytest.raises(ConcurrencyError):
        editor.set_node_position("wf-1", "c", 0, 0)
    assert sleeps == [1.0]


# ---- catalog and validation ----

def test_validate_node_config_uses_editor_catalog(store):
    catalog = NodeCatalog({"x.thing": {"name": "x.thing", "properties": [
        {"name": "size", "type": "number", "required": True},
    ]}})
    editor = WorkflowEditor(store, catalog=catalog)
    assert editor.validate_node_config("x.thing", {"size": 1}) == {"valid": True, "errors": []}
    assert editor.validate_node_config("httpRequest", {})["errors"][0]["property"] == "type"


def test_list_node_types_and_examples(editor):
    names = [d["name"] for d in editor.list_node_types()]
    assert names == sorted(names)
    assert "n8n-nodes-base.webhook" in names
    examples = editor.get_node_examples("httpRequest")
    assert examples[0]["name"] == "Simple GET Request"
    assert editor.get_node_examples("unknown") == []


def test_get_workflow(editor):
    assert editor.get_workflow("wf-1")["name"] == "Lead intake"


def test_from_settings(tmp_path):
    catalog_file = tmp_path / "extra.json"
    catalog_file.write_text('[{"name": "x.extra", "properties": []}]', encoding="utf-8")
    settings = Settings(api_key="k", max_attempts=5, base_delay=0.3, catalog_paths=[str(catalog_file)])
    editor = WorkflowEditor.from_settings(settings)
    assert isinstance(editor.store, N8nStore)
    assert editor.max_attempts == 5
    assert editor.base_delay == 0.3
    assert editor.catalog.describe("x.extra") is not None
    editor.store.close()


def test_connect_nodes_survives_concurrent_write(sleeps):
    store = RacingStore(races=1)
    store.create(make_workflow())
    editor = WorkflowEditor(store, sleep=sleeps.append)
    assert editor.connect_nodes("wf-1", {"nodeId": "c"}, {"nodeId": "b"}) == {"ok": True}
    wf = store.get("wf-1")[0]
    assert wf["connections"]["Edit Fields"]["main"][0] == [{"node": "HTTP Request", "type": "main", "index": 0}]
    assert wf["name"] == "Lead intake (edited elsewhere)"
    assert sleeps == [0.2]
