"""Tests for the WattWise HTTP and WebSocket API."""

import dataclasses
import itertools
import threading

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from api.app import build_app, create_app
from api.models import ScriptRequest, TradeRequest
from engine.config import MarketConfig
from engine.market_kernel import MarketKernel
from engine.schemas import Participant


def _flat(pid, credits):
    return Participant(
        id=pid,
        generation_kw=1.0,
        demand_kw=1.0,
        battery_capacity_kwh=5.0,
        soc_kwh=2.5,
        credits=credits,
    )


def _make_test_client(participants=None, **config):
    """Create a TestClient backed by a fresh MarketKernel.

    Returns (client, kernel) so tests can inspect or mutate engine state.
    """
    config.setdefault("random_seed", 42)
    counter = itertools.count(1_700_000_000_000)
    kernel = MarketKernel(
        config=MarketConfig(**config),
        participants=participants,
        clock=lambda: next(counter),
    )
    return TestClient(create_app(kernel)), kernel


@pytest.fixture
def client_and_kernel():
    return _make_test_client([_flat("A", 100.0), _flat("B", 5.0), _flat("C", 50.0)])


class TestModels:
    def test_trade_request_rejects_string_amount(self):
        with pytest.raises(ValueError):
            TradeRequest(seller="A", buyer="B", amount="5")

    def test_script_request_accepts_wire_alias(self):
        body = ScriptRequest.model_validate({"action": "spike", "flatId": "F1", "value": 6})
        assert body.flat_id == "F1"
        assert body.value == 6


class TestReadEndpoints:
    def test_health(self, client_and_kernel):
        client, _ = client_and_kernel
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "blocks": 1}

    def test_flats(self, client_and_kernel):
        client, _ = client_and_kernel
        data = client.get("/api/flats").json()
        assert list(data) == ["A", "B", "C"]
        assert data["A"]["credits"] == 100.0
        assert data["A"]["battery_capacity_kwh"] == 5.0

    def test_ledger_and_head(self, client_and_kernel):
        client, kernel = client_and_kernel
        kernel.tick()
        chain = client.get("/api/ledger").json()
        head = client.get("/api/ledger/head").json()
        assert chain[0]["hash"] == "genesis"
        assert chain[-1] == head
        assert head["prevHash"] == chain[-2]["hash"]
        assert set(head["trades"][0]) == {
            "tradeId", "seller", "buyer", "amount_kwh", "energy_credits", "timestamp",
        }

    def test_metrics(self, client_and_kernel):
        client, _ = client_and_kernel
        data = client.get("/api/metrics").json()
        assert data["participants"] == 3
        assert data["total_credits"] == pytest.approx(155.0)
        assert data["leaderboard"][0] == {"id": "A", "credits": 100.0}
        assert data["subscribers"] == 0
        assert data["top_up_events"] == 0

    def test_error_model_documented(self, client_and_kernel):
        client, _ = client_and_kernel
        schema = client.get("/openapi.json").json()
        responses = schema["paths"]["/api/trade"]["post"]["responses"]
        assert {"400", "404", "503"} <= set(responses)
        assert "ErrorResponse" in schema["components"]["schemas"]


class TestTradeEndpoint:
    def test_successful_trade(self, client_and_kernel):
        client, kernel = client_and_kernel
        resp = client.post("/api/trade", json={"seller": "A", "buyer": "C", "amount": 10})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["trade"]["seller"] == "A"
        assert body["trade"]["amount_kwh"] == 10.0
        flats = client.get("/api/flats").json()
        assert flats["A"]["credits"] == pytest.approx(110.0)
        assert flats["C"]["credits"] == pytest.approx(40.0)
        assert len(kernel.get_ledger()) == 2

    def test_insufficient_credits(self, client_and_kernel):
        client, kernel = client_and_kernel
        resp = client.post("/api/trade", json={"seller": "A", "buyer": "B", "amount": 10})
        assert resp.status_code == 400
        assert resp.json()["reason"] == "insufficient_credits"
        assert len(kernel.get_ledger()) == 1

    def test_unknown_participant(self, client_and_kernel):
        client, _ = client_and_kernel
        resp = client.post("/api/trade", json={"seller": "A", "buyer": "Z", "amount": 1})
        assert resp.status_code == 404
        assert resp.json()["reason"] == "not_found"

    @pytest.mark.parametrize("amount", [0, -3])
    def test_invalid_amount(self, client_and_kernel, amount):
        client, _ = client_and_kernel
        resp = client.post("/api/trade", json={"seller": "A", "buyer": "C", "amount": amount})
        assert resp.status_code == 400
        assert resp.json()["reason"] == "invalid_amount"

    def test_self_trade(self, client_and_kernel):
        client, _ = client_and_kernel
        resp = client.post("/api/trade", json={"seller": "A", "buyer": "A", "amount": 1})
        assert resp.status_code == 400
        assert resp.json()["reason"] == "self_trade"

    def test_malformed_body(self, client_and_kernel):
        client, _ = client_and_kernel
        resp = client.post("/api/trade", json={"seller": "A", "buyer": "C"})
        assert resp.status_code == 422

    def test_busy_engine_returns_503(self):
        client, kernel = _make_test_client(lock_timeout=0.05)
        holding = threading.Event()
        release = threading.Event()

        def hold():
            with kernel._lock:
                holding.set()
                release.wait(2)

        worker = threading.Thread(target=hold)
        worker.start()
        try:
            assert holding.wait(2)
            resp = client.post("/api/trade", json={"seller": "F1", "buyer": "F2", "amount": 0.1})
        finally:
            release.set()
            worker.join()
        assert resp.status_code == 503
        assert resp.json()["reason"] == "engine_busy"


class TestScriptEndpoint:
    def test_spike(self, client_and_kernel):
        client, _ = client_and_kernel
        resp = client.post("/api/script", json={"action": "spike", "flatId": "A", "value": 6})
        assert resp.status_code == 200
        assert resp.json()["flat"]["generation_kw"] == pytest.approx(7.0)

    def test_drain(self, client_and_kernel):
        client, _ = client_and_kernel
        resp = client.post("/api/script", json={"action": "drain", "flatId": "B", "value": 3.5})
        assert resp.json()["flat"]["demand_kw"] == pytest.approx(4.5)

    def test_unknown_action(self, client_and_kernel):
        client, _ = client_and_kernel
        resp = client.post("/api/script", json={"action": "flood", "flatId": "A", "value": 1})
        assert resp.status_code == 400
        assert resp.json()["reason"] == "invalid_action"

    def test_unknown_flat(self, client_and_kernel):
        client, _ = client_and_kernel
        resp = client.post("/api/script", json={"action": "spike", "flatId": "Z", "value": 1})
        assert resp.status_code == 404


class TestValidation:
    def test_own_ledger_valid(self, client_and_kernel):
        client, kernel = client_and_kernel
        kernel.tick()
        data = client.get("/api/ledger/validate").json()
        assert data["valid"] is True
        assert data["violation"] is None

    def test_fetched_copy_validates_and_tampering_is_caught(self, client_and_kernel):
        client, kernel = client_and_kernel
        for _ in range(3):
            kernel.tick()
        chain = client.get("/api/ledger").json()
        assert client.post("/api/ledger/validate", json=chain).json()["valid"] is True

        chain[2]["trades"][0]["energy_credits"] = 1000
        data = client.post("/api/ledger/validate", json=chain).json()
        assert data["valid"] is False
        assert data["violation"]["index"] == 2

    def test_health_degraded_on_tampered_ledger(self, client_and_kernel):
        client, kernel = client_and_kernel
        kernel.tick()
        blocks = kernel.ledger._blocks
        blocks[1] = dataclasses.replace(blocks[1], nonce=blocks[1].nonce + 1)
        data = client.get("/health").json()
        assert data["status"] == "degraded"
        assert "block 1" in data["reason"]
        assert client.get("/api/ledger/validate").json()["valid"] is False

    def test_health_degraded_when_sim_thread_dead(self, client_and_kernel):
        client, _ = client_and_kernel
        dead = threading.Thread(target=lambda: None)
        dead.start()
        dead.join()
        client.app.state.sim_thread = dead
        assert client.get("/health").json() == {
            "status": "degraded", "reason": "simulation thread stopped",
        }


class TestWebSocket:
    def test_init_then_state_on_manual_trade(self, client_and_kernel):
        client, _ = client_and_kernel
        with client.websocket_connect("/ws") as ws:
            init = ws.receive_json()
            assert init["type"] == "init"
            assert set(init["flats"]) == {"A", "B", "C"}
            assert init["trades"] == []
            assert init["ledgerHead"]["index"] == 0

            client.post("/api/trade", json={"seller": "A", "buyer": "C", "amount": 2})
            update = ws.receive_json()
            assert update["type"] == "state"
            assert update["trades"][0]["seller"] == "A"
            assert update["ledgerHead"]["index"] == 1
            assert update["flats"]["A"]["credits"] == pytest.approx(102.0)

    def test_tick_announcements_reach_socket(self, client_and_kernel):
        client, kernel = client_and_kernel
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["type"] == "init"
            kernel.tick()
            update = ws.receive_json()
            assert update["type"] == "state"
            assert update["ledgerHead"] == kernel.get_head()


    def test_busy_engine_closes_socket_with_try_again_later(self):
        client, kernel = _make_test_client(lock_timeout=0.05)
        holding = threading.Event()
        release = threading.Event()

        def hold():
            with kernel._lock:
                holding.set()
                release.wait(2)

        worker = threading.Thread(target=hold)
        worker.start()
        try:
            assert holding.wait(2)
            with client.websocket_connect("/ws") as ws:
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    ws.receive_json()
        finally:
            release.set()
            worker.join()
        assert exc_info.value.code == 1013
        assert kernel.get_metrics()["subscribers"] == 0


class TestBuildApp:
    def test_build_app_with_data_dir(self, tmp_path):
        app = build_app(MarketConfig(random_seed=1), data_dir=str(tmp_path))
        kernel = app.state.wattwise["kernel"]
        kernel.tick()
        assert (tmp_path / "ledger.db").exists()
        with TestClient(app) as client:
            assert client.get("/health").json()["status"] == "ok"
