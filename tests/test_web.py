from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from recap_engine.models import RecapPolicy
from recap_engine.web.app import app


@pytest.fixture
def client(store):
    app.state.store = store
    app.state.policy = RecapPolicy()
    app.state.sessions = {}
    return TestClient(app)


def test_recap_json(client):
    resp = client.get("/works/w1/recap.json")
    assert resp.status_code == 200
    data = resp.json()
    assert data["calculations"]["grandTotal"] == pytest.approx(2990)
    assert data["totalEstimatedCost"] == pytest.approx(2800)
    assert data["taxes"][0]["applyTo"] == "part_b"
    assert data["dirty"] is False


def test_unknown_work_is_404(client):
    assert client.get("/works/missing/recap").status_code == 404
    assert client.get("/works/missing/recap.json").status_code == 404


def test_recap_page(client):
    resp = client.get("/works/w1/recap")
    assert resp.status_code == 200
    assert "Village Road" in resp.text
    assert "Gross Total Estimated Amount" in resp.text


def test_unit_edit_is_kept_in_memory_until_saved(client, store):
    resp = client.post("/works/w1/recap/unit", data={"subwork_id": "sw1", "value": "3"}, follow_redirects=False)
    assert resp.status_code == 303
    data = client.get("/works/w1/recap.json").json()
    assert data["calculations"]["partA"]["subtotal"] == 3000
    assert data["unitInputs"] == {"sw1": 3}
    assert data["dirty"] is True
    assert store.select_one("works", id="w1")["recap_json"] is None

    resp = client.post("/works/w1/recap/save", follow_redirects=False)
    assert resp.status_code == 303
    assert "saved=1" in resp.headers["location"]
    snap = json.loads(store.select_one("works", id="w1")["recap_json"])
    assert snap["unitInputs"] == {"sw1": 3}


def test_unknown_subwork_unit_is_404(client):
    resp = client.post("/works/w1/recap/unit", data={"subwork_id": "zz", "value": "3"}, follow_redirects=False)
    assert resp.status_code == 404


def test_tax_add_update_delete(client):
    client.post("/works/w1/recap/taxes", data={"name": "Cess", "type": "fixed", "value": "250", "apply_to": "part_a_b_combined"})
    taxes = client.get("/works/w1/recap.json").json()["taxes"]
    cess = taxes[-1]
    assert (cess["name"], cess["type"], cess["fixedAmount"]) == ("Cess", "fixed", 250)

    client.post(f"/works/w1/recap/taxes/{cess['id']}", data={"type": "percentage", "value": "10"})
    data = client.get("/works/w1/recap.json").json()
    combined = data["calculations"]["partABCombined"]
    assert combined["taxes"][cess["id"]] == pytest.approx(259)

    client.post(f"/works/w1/recap/taxes/{cess['id']}/delete")
    data = client.get("/works/w1/recap.json").json()
    assert [t["id"] for t in data["taxes"]] == ["1"]


def test_invalid_apply_to_is_rejected(client):
    resp = client.post("/works/w1/recap/taxes", data={"apply_to": "everything"}, follow_redirects=False)
    assert resp.status_code == 303
    assert "error=invalid-tax" in resp.headers["location"]
    assert len(client.get("/works/w1/recap.json").json()["taxes"]) == 1


def test_update_unknown_tax_is_404(client):
    assert client.post("/works/w1/recap/taxes/nope", data={"name": "x"}).status_code == 404


def test_reload_discards_unsaved_edits(client):
    client.post("/works/w1/recap/unit", data={"subwork_id": "sw1", "value": "7"})
    client.post("/works/w1/recap/reload")
    data = client.get("/works/w1/recap.json").json()
    assert data["unitInputs"] == {}
    assert data["calculations"]["partA"]["subtotal"] == 2000


def test_unknown_tax_type_is_rejected(client):
    resp = client.post("/works/w1/recap/taxes/1", data={"type": "bogus", "value": "5"}, follow_redirects=False)
    assert resp.status_code == 303
    assert "error=invalid-tax" in resp.headers["location"]
    [gst] = client.get("/works/w1/recap.json").json()["taxes"]
    assert (gst["type"], gst["percentage"]) == ("percentage", 18)
