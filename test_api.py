"""
API Tests

FastAPI app on a fake service container:
1. Health and liveness
2. /integration/execute and /invoices/sync return the saga result (409 while
   a run with the same process_id is open)
3. /logs/{process_id} serves retained step logs
4. /ws/logs streams live entries
5. /metrics
"""

import time

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from api.server import create_app
from core.services import set_services
from core.steplog import StepLogHub, StepLogger

ORDER_ID = "2000012345678"


@pytest.fixture
def client(services):
    """Test client with the lifespan running (hub started)."""
    services.hub = StepLogHub()
    services.mappings.upsert("psa", "MLB111", "ABC123", "17")
    services.marketplace.add_order(ORDER_ID, [{"id": "MLB111", "price": 150.0}])
    set_services(services)
    try:
        with TestClient(create_app()) as test_client:
            yield test_client
    finally:
        set_services(None)


def wait_for_subscriber(hub, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not hub._subscribers and time.monotonic() < deadline:
        time.sleep(0.01)
    assert hub._subscribers, "websocket never subscribed"


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["step_log_hub"] == "up"
        assert data["services"]["notifier"] == "configured"

    def test_live(self, client):
        assert client.get("/live").json() == {"status": "alive"}


class TestIntegrationEndpoint:
    """POST /integration/execute"""

    def test_success(self, client, services):
        response = client.post(
            "/integration/execute",
            json={"account": "psa", "order_id": ORDER_ID, "process_id": "api-run-1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["process_id"] == "api-run-1"
        assert data["success_count"] == 1
        assert data["results"][0]["document_number"] == "778899"
        assert data["logs"][-1]["step"] == "ledger-final-write"
        assert data["logs"][-1]["level"] == "success"

    def test_failure_is_still_200(self, client, services):
        services.erp.fail_at = "submit_order"

        response = client.post("/integration/execute", json={"account": "psa", "order_id": ORDER_ID})

        assert response.status_code == 200
        data = response.json()
        assert data["error_count"] == 1
        assert data["results"][0]["step"] == "order-submit"

    def test_process_id_still_running_is_conflict(self, client, services):
        StepLogger("api-run-2", services.log_store).info("token", "still running")

        response = client.post(
            "/integration/execute",
            json={"account": "psa", "order_id": ORDER_ID, "process_id": "api-run-2"},
        )

        assert response.status_code == 409
        assert "api-run-2" in response.json()["detail"]
        assert services.erp.calls == []

    @pytest.mark.parametrize("body", [
        {"order_id": ORDER_ID},
        {"account": "psa"},
        {"account": "", "order_id": ORDER_ID},
    ])
    def test_invalid_body(self, client, body):
        assert client.post("/integration/execute", json=body).status_code == 422


class TestInvoiceEndpoint:
    """POST /invoices/sync"""

    def test_without_body(self, client):
        response = client.post("/invoices/sync")

        assert response.status_code == 200
        assert response.json()["total_processed"] == 0

    def test_order_filter(self, client, services):
        services.ledger.insert_initial(ORDER_ID, "99887766", "PSA", "Mercado Livre", "44001122", "Mercado Envios")
        services.ledger.mark_submitted("99887766", ORDER_ID, "778899")

        response = client.post("/invoices/sync", json={"order_id": ORDER_ID})

        data = response.json()
        assert data["total_processed"] == 1
        assert data["results"][0]["outcome"] == "no_invoice"


class TestLogs:
    """Retained and live step logs."""

    def test_retained_log(self, client):
        client.post("/integration/execute", json={"account": "psa", "order_id": ORDER_ID, "process_id": "run-42"})

        response = client.get("/logs/run-42")

        assert response.status_code == 200
        data = response.json()
        assert data["sealed"] is True
        assert data["logs"][0]["step"] == "idempotency-check"
        assert all(entry["process_id"] == "run-42" for entry in data["logs"])

    def test_unknown_process(self, client):
        assert client.get("/logs/nope").status_code == 404

    def test_websocket_streams_run(self, client, services):
        with client.websocket_connect("/ws/logs?process_id=live-1") as ws:
            wait_for_subscriber(services.hub)
            result = client.post(
                "/integration/execute",
                json={"account": "psa", "order_id": ORDER_ID, "process_id": "live-1"},
            ).json()

            received = [ws.receive_json() for _ in range(len(result["logs"]))]

        assert received == result["logs"]

    def test_websocket_closed_without_hub(self, services):
        set_services(services)
        try:
            client = TestClient(create_app())
            with client.websocket_connect("/ws/logs") as ws:
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    ws.receive_json()
            assert exc_info.value.code == 1011
        finally:
            set_services(None)


class TestMetricsEndpoint:
    def test_metrics(self, client):
        client.post("/integration/execute", json={"account": "psa", "order_id": ORDER_ID})

        data = client.get("/metrics").json()

        assert data["sagas"]["by_type"]["order_integration"]["started"] >= 1
        assert "order-submit" in data["steps"]
