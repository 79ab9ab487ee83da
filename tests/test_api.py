"""Tests for the HTTP API (catalog, simulations, streaming, pre-patch)."""

import json
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fastapi.testclient import TestClient

from ttklab.main import app


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


def sse_events(text):
    events = []
    for block in text.strip().split("\n\n"):
        for line in block.splitlines():
            if line.startswith("data: "):
                events.append(json.loads(line[len("data: "):]))
    return events


class TestRoot:
    """Tests for service endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "TTK Lab"

    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "healthy", "catalog_loaded": True}


class TestCatalog:
    """Tests for catalog listing."""

    def test_weapons(self, client):
        weapons = client.get("/api/v1/catalog/weapons").json()
        by_name = {w["name"]: w for w in weapons}

        assert len(weapons) == 5
        assert by_name["Kettle"]["max_tier"] == 4
        assert by_name["Kettle"]["patched"] is True
        assert by_name["Anvil"]["patched"] is False
        assert "Compensator" in by_name["Kettle"]["attachments"]
        assert by_name["Tempest"]["bullets_per_shot"] == 3

    def test_targets(self, client):
        targets = client.get("/api/v1/catalog/targets").json()
        assert [t["id"] for t in targets] == ["NoShield", "Light", "Medium", "Heavy"]
        assert targets[1]["label"] == "Light shield"

    def test_presets(self, client):
        presets = client.get("/api/v1/catalog/presets").json()
        assert len(presets) == 5
        assert presets[0]["mode"] == "deterministic"


class TestSimulations:
    """Tests for running sweeps over HTTP."""

    def test_monte_carlo(self, client):
        response = client.post("/api/v1/simulations", json={
            "weapons": ["Anvil"],
            "targets": ["NoShield", "Heavy"],
            "body": 0.7, "head": 0.1, "limbs": 0.2, "miss": 0.05,
            "trials": 300,
            "profile_name": "Typical",
        })
        assert response.status_code == 200
        body = response.json()

        assert body["total"] == 2
        assert body["failures"] == []
        assert [r["target"] for r in body["rows"]] == ["NoShield", "Heavy"]
        assert body["rows"][0]["n_trials"] == 300
        assert body["rows"][0]["accuracy_profile"] == "Typical"

    def test_deterministic(self, client):
        response = client.post("/api/v1/simulations", json={
            "weapons": ["Anvil"],
            "targets": "NoShield",
            "mode": "deterministic",
        })
        row = response.json()["rows"][0]
        assert row["bullets_to_kill"] == 3
        assert row["ttk_std"] == 0.0

    def test_same_seed_same_rows(self, client):
        request = {"weapons": ["Kettle"], "tiers": [1], "targets": ["Light"], "trials": 200, "seed": 5}
        a = client.post("/api/v1/simulations", json=request).json()
        b = client.post("/api/v1/simulations", json=request).json()
        assert a == b

    def test_squad(self, client):
        response = client.post("/api/v1/simulations", json={
            "weapons": ["Anvil"], "squad": ["NoShield", "Light"], "trials": 100,
        })
        assert [r["target"] for r in response.json()["rows"]] == ["NoShield > Light"]

    def test_unknown_target(self, client):
        response = client.post("/api/v1/simulations", json={"targets": ["Titan"], "trials": 10})
        assert response.status_code == 400
        assert "Titan" in response.json()["detail"]

    def test_unknown_weapon(self, client):
        response = client.post("/api/v1/simulations", json={"weapons": ["Railgun"], "trials": 10})
        assert response.status_code == 400

    def test_too_many_trials(self, client):
        response = client.post("/api/v1/simulations", json={"weapons": ["Anvil"], "trials": 10_000_000})
        assert response.status_code == 400

    def test_bad_confidence(self, client):
        response = client.post("/api/v1/simulations", json={"confidence": 1.5})
        assert response.status_code == 422


class TestStreaming:
    """Tests for the SSE endpoint."""

    def test_progress_then_done(self, client):
        response = client.post("/api/v1/simulations/stream", json={
            "weapons": ["Kettle"], "tiers": [1], "trials": 20,
        })
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = sse_events(response.text)
        types = [e["type"] for e in events]
        # 6 attachment combos x 4 targets, progress every 10 configurations
        assert types == ["progress", "progress", "done"]
        assert events[0]["done"] == 10
        assert events[-1]["data"]["total"] == 24
        assert len(events[-1]["data"]["rows"]) == 24

    def test_invalid_request_rejected_before_stream(self, client):
        response = client.post("/api/v1/simulations/stream", json={"trials": 10_000_000})
        assert response.status_code == 400

    def test_error_event(self, client):
        response = client.post("/api/v1/simulations/stream", json={"targets": ["Titan"], "trials": 10})
        events = sse_events(response.text)
        assert events[-1]["type"] == "error"
        assert "Titan" in events[-1]["data"]


class TestPrepatch:
    """Tests for the pre-patch comparison endpoint."""

    def test_deltas(self, client):
        response = client.post("/api/v1/simulations/prepatch", json={
            "weapons": ["Kettle", "Anvil"], "tiers": [1], "targets": ["NoShield"],
            "mode": "deterministic",
        })
        assert response.status_code == 200
        body = response.json()

        assert {r["weapon"] for r in body["current"]["rows"]} == {"Kettle"}
        assert all(r["prepatch"] for r in body["baseline"]["rows"])
        assert len(body["deltas"]) == len(body["current"]["rows"]) == 6

        plain = next(r for r in body["baseline"]["rows"] if r["attachments"] == "none")
        assert plain["damage_per_bullet"] == 10 - 1

    def test_approximate_baseline(self, client):
        response = client.post("/api/v1/simulations/prepatch", json={
            "weapons": ["Il Toro"], "tiers": [1], "targets": ["NoShield"], "mode": "deterministic",
        })
        rows = response.json()["baseline"]["rows"]
        assert rows
        assert all(r["baseline_approximate"] for r in rows)
