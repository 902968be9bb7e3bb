"""Integration tests for the workflow API endpoints."""
import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from workflow_engine.api.main import create_app
from workflow_engine.channels import (
    InMemoryStatusChannel,
    StatusEvent,
    Subscription,
    SubscriptionTokenIssuer,
)
from workflow_engine.executors import create_default_registry
from workflow_engine.config import Settings
from workflow_engine.models import NodeState, RunStatus
from workflow_engine.runtime import WorkflowInterpreter
from workflow_engine.storage import (
    ExecutionRecord,
    InMemoryExecutionStore,
    InMemoryWorkflowStore,
)

GREETING_GRAPH = {
    "name": "Greeting",
    "nodes": [
        {"id": "t", "type": "WEBHOOK_TRIGGER", "data": {"variableName": "hook"}},
        {
            "id": "s",
            "type": "SET_VARIABLE",
            "data": {"variableName": "greeting", "value": "Hello {{trigger.name}}"},
        },
    ],
    "connections": [{"fromNodeId": "t", "toNodeId": "s"}],
}


class ScriptedSubscription(Subscription):
    """Yields a fixed list of events, then ends."""

    def __init__(self, events):
        self._events = list(events)
        self.closed = False

    async def __anext__(self):
        if not self._events:
            raise StopAsyncIteration
        return self._events.pop(0)

    async def close(self):
        self.closed = True


class ScriptedChannel:
    def __init__(self, events):
        self.events = events
        self.subscriptions = []

    async def publish(self, channel, topic, event):
        pass

    async def subscribe(self, channel, topic):
        self.subscriptions.append((channel, topic))
        return ScriptedSubscription(self.events)


@pytest.fixture
def issuer():
    return SubscriptionTokenIssuer("test-secret", ttl_s=300, refresh_margin_s=30)


@pytest.fixture
def api(settings, issuer):
    """App over in-memory collaborators; enqueued runs execute inline."""
    registry = create_default_registry(freeze=True)
    execution_store = InMemoryExecutionStore()
    workflow_store = InMemoryWorkflowStore()
    channel = InMemoryStatusChannel()
    interpreter = WorkflowInterpreter(
        registry=registry,
        channel=channel,
        execution_store=execution_store,
        workflow_store=workflow_store,
        settings=settings,
    )
    enqueued = []

    def enqueue(workflow_id, payload, execution_id, mode):
        enqueued.append((workflow_id, payload, execution_id, mode))
        asyncio.run(interpreter.start_run(workflow_id, payload, execution_id=execution_id))

    app = create_app(
        settings,
        execution_store=execution_store,
        workflow_store=workflow_store,
        channel=channel,
        registry=registry,
        token_issuer=issuer,
        enqueue_run=enqueue,
    )
    app.state.enqueued = enqueued
    return app


@pytest.fixture
def client(api):
    return TestClient(api)


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["node_types"] > 0


def test_root_endpoint(client):
    """Test root endpoint."""
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["service"] == "workflow-engine"


def test_save_workflow_returns_validation(client):
    """Test saving a graph snapshot."""
    response = client.put("/v1/workflows/wf-1", json=GREETING_GRAPH)

    assert response.status_code == 200
    data = response.json()
    assert data["workflow"]["id"] == "wf-1"
    assert data["workflow"]["name"] == "Greeting"
    assert data["workflow"]["edges"][0]["source"] == "t"
    assert data["validation"]["errors"] == []


def test_save_empty_workflow_collapses_to_placeholder(client):
    """Test saving an emptied graph."""
    response = client.put("/v1/workflows/wf-1", json={"nodes": [], "edges": []})

    data = response.json()
    assert [node["type"] for node in data["workflow"]["nodes"]] == ["INITIAL"]
    assert [e["code"] for e in data["validation"]["errors"]] == ["empty_workflow"]


def test_start_run_end_to_end(client, api, issuer):
    """Test a run enqueued through the API completes and is recorded."""
    client.put("/v1/workflows/wf-1", json=GREETING_GRAPH)

    response = client.post("/v1/workflows/wf-1/runs", json={"payload": {"name": "Ava"}})

    assert response.status_code == 202
    data = response.json()
    execution_id = data["execution_id"]
    assert data["status"] == "PENDING"
    assert data["channel"] == f"execution:{execution_id}"
    assert data["topic"] == "status"
    issuer.verify(data["subscription_token"], data["channel"], "status")
    assert api.state.enqueued == [("wf-1", {"name": "Ava"}, execution_id, "trigger")]

    record = client.get(f"/v1/executions/{execution_id}")
    assert record.status_code == 200
    assert record.json()["status"] == "COMPLETED"
    assert record.json()["output"]["greeting"] == "Hello Ava"

    events = api.state.channel.history(data["channel"], "status")
    assert [(e.node_id, e.state) for e in events] == [
        ("t", NodeState.RUNNING),
        ("t", NodeState.SUCCESS),
        ("s", NodeState.RUNNING),
        ("s", NodeState.SUCCESS),
    ]


def test_start_run_unknown_workflow(client, api):
    """Test starting a run of a missing workflow."""
    response = client.post("/v1/workflows/nope/runs", json={})

    assert response.status_code == 404
    assert "not found" in response.json()["detail"].lower()
    assert api.state.enqueued == []


def test_node_variables(client):
    """Test the variable context endpoint."""
    client.put("/v1/workflows/wf-1", json=GREETING_GRAPH)

    response = client.get("/v1/workflows/wf-1/nodes/s/variables")

    assert response.status_code == 200
    names = [item["name"] for item in response.json()]
    assert names == ["trigger", "hook"]
    assert "sampleValue" in response.json()[0]


def test_node_variables_unknown_node(client):
    client.put("/v1/workflows/wf-1", json=GREETING_GRAPH)
    assert client.get("/v1/workflows/wf-1/nodes/zzz/variables").status_code == 404


def test_bundle_node_variables_include_inputs(client, api):
    """Test a bundle workflow exposes its declared inputs."""
    api.state.workflow_store.save(
        "bundle-1",
        [{"id": "t", "type": "MANUAL_TRIGGER"}, {"id": "s", "type": "SET_VARIABLE"}],
        [{"source": "t", "target": "s"}],
        name="Enrich",
        is_bundle=True,
        bundle_inputs=[{"name": "email", "type": "string"}],
    )

    response = client.get("/v1/workflows/bundle-1/nodes/s/variables")

    names = [item["name"] for item in response.json()]
    assert "email" in names
    assert "Enrich" in names


def test_get_execution_not_found(client):
    """Test get execution with non-existent ID."""
    response = client.get("/v1/executions/non-existent-id")

    assert response.status_code == 404
    assert "not found" in response.json()["detail"].lower()


def test_get_execution(client, api):
    api.state.execution_store.create(ExecutionRecord(id="e1", workflow_id="wf-1"))

    response = client.get("/v1/executions/e1")

    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"


class TestSubscriptionToken:
    """Test token issue and refresh."""

    def test_issue_new_token(self, client, issuer):
        response = client.post("/v1/executions/e1/subscription-token")

        assert response.status_code == 200
        data = response.json()
        assert data["channel"] == "execution:e1"
        issuer.verify(data["token"], "execution:e1", "status")

    def test_fresh_token_is_kept(self, client, issuer):
        token = issuer.issue("execution:e1").token

        response = client.post("/v1/executions/e1/subscription-token", json={"token": token})

        assert response.json()["token"] == token

    def test_stale_token_is_replaced(self, client, issuer):
        stale = SubscriptionTokenIssuer("test-secret", ttl_s=10).issue("execution:e1").token

        response = client.post("/v1/executions/e1/subscription-token", json={"token": stale})

        assert response.status_code == 200
        assert response.json()["token"] != stale

    def test_token_for_other_channel_forbidden(self, client, issuer):
        token = issuer.issue("execution:other").token

        response = client.post("/v1/executions/e1/subscription-token", json={"token": token})

        assert response.status_code == 403


class TestStatusStream:
    """Test the status WebSocket."""

    def test_rejects_invalid_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/v1/executions/e1/status?token=bad") as websocket:
                websocket.receive_json()
        assert exc_info.value.code == 1008

    def test_streams_events(self, settings, issuer):
        events = [
            StatusEvent(node_id="t", state=NodeState.RUNNING, execution_id="e1"),
            StatusEvent(node_id="t", state=NodeState.SUCCESS, execution_id="e1"),
        ]
        channel = ScriptedChannel(events)
        app = create_app(
            settings,
            execution_store=InMemoryExecutionStore(),
            workflow_store=InMemoryWorkflowStore(),
            channel=channel,
            registry=create_default_registry(),
            token_issuer=issuer,
            enqueue_run=lambda *args: None,
        )
        token = issuer.issue("execution:e1").token

        with TestClient(app).websocket_connect(f"/v1/executions/e1/status?token={token}") as websocket:
            first = websocket.receive_json()
            second = websocket.receive_json()

        assert first["nodeId"] == "t"
        assert first["state"] == "RUNNING"
        assert second["state"] == "SUCCESS"
        assert channel.subscriptions == [("execution:e1", "status")]

    def _stream_app(self, channel, store, issuer):
        return create_app(
            Settings(status_stream_idle_s=0.05),
            execution_store=store,
            workflow_store=InMemoryWorkflowStore(),
            channel=channel,
            registry=create_default_registry(),
            token_issuer=issuer,
            enqueue_run=lambda *args: None,
        )

    def test_stream_closes_once_run_finished(self, issuer):
        store = InMemoryExecutionStore()
        store.create(ExecutionRecord(id="e1", workflow_id="wf-1", status=RunStatus.COMPLETED))
        channel = InMemoryStatusChannel()
        app = self._stream_app(channel, store, issuer)
        token = issuer.issue("execution:e1").token

        with TestClient(app).websocket_connect(f"/v1/executions/e1/status?token={token}") as websocket:
            with pytest.raises(WebSocketDisconnect):
                websocket.receive_json()

        assert channel.subscriber_count("execution:e1", "status") == 0

    def test_client_disconnect_releases_subscription(self, issuer):
        store = InMemoryExecutionStore()
        store.create(ExecutionRecord(id="e1", workflow_id="wf-1", status=RunStatus.RUNNING))
        channel = InMemoryStatusChannel()
        app = self._stream_app(channel, store, issuer)
        token = issuer.issue("execution:e1").token

        with TestClient(app).websocket_connect(f"/v1/executions/e1/status?token={token}"):
            pass

        assert channel.subscriber_count("execution:e1", "status") == 0
