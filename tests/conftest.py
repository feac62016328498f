import pytest

from flowpatch.store.memory import MemoryStore


def make_workflow():
    return {
        "id": "wf-1",
        "name": "Lead intake",
        "active": False,
        "tags": ["prod"],
        "settings": {},
        "nodes": [
            {
                "id": "a",
                "name": "Webhook",
                "type": "n8n-nodes-base.webhook",
                "typeVersion": 2,
                "position": [250, 300],
                "parameters": {"httpMethod": "POST", "path": "lead"},
            },
            {
                "id": "b",
                "name": "HTTP Request",
                "type": "n8n-nodes-base.httpRequest",
                "typeVersion": 4,
                "position": [450, 300],
                "parameters": {
                    "method": "GET",
                    "url": "https://example.com/api",
                    "options": {"retry": {"count": 1}},
                },
                "credentials": {"httpHeaderAuth": "cred-1"},
            },
            {
                "id": "c",
                "name": "Edit Fields",
                "type": "n8n-nodes-base.set",
                "typeVersion": 3,
                "position": [650, 280],
                "parameters": {},
            },
        ],
        "connections": {
            "Webhook": {"main": [[{"node": "HTTP Request", "type": "main", "index": 0}]]},
            "HTTP Request": {"main": [[{"node": "Edit Fields", "type": "main", "index": 0}]]},
        },
    }


class RacingStore(MemoryStore):
    """MemoryStore where another writer commits right after each of the first `races` reads."""

    def __init__(self, races: int = 0) -> None:
        super().__init__()
        self.races = races
        self.gets = 0

    def get(self, workflow_id):
        doc, tag = super().get(workflow_id)
        self.gets += 1
        if self.races > 0:
            self.races -= 1
            other, other_tag = super().get(workflow_id)
            other["name"] = other["name"] + " (edited elsewhere)"
            super().put(workflow_id, other, if_match=other_tag)
        return doc, tag


@pytest.fixture
def workflow():
    return make_workflow()


@pytest.fixture
def store():
    s = MemoryStore()
    s.create(make_workflow())
    return s


@pytest.fixture
def sleeps():
    """Recorded backoff delays; pass `sleeps.append` as the sleep function."""
    return []
