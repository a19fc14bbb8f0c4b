from __future__ import annotations

from pathlib import Path

import pytest

from recap_engine.models import RecapPolicy
from recap_engine.store import JsonStore


def seed(store: JsonStore) -> JsonStore:
    """One work, a mixed subwork (unit 2) and a purchases-only subwork.

    Derived category totals for sw1 are {regular 1000, royalty 200, testing 50}.
    The purchased bins carry no rate rows, so sw2 derives all zeros.
    """
    store.insert("works", [
        {"id": "w1", "name": "Village Road", "village": "Kothur", "fund_head": "SBM", "type": "Solid waste", "recap_json": None},
        {"id": "w2", "name": "Empty Work", "village": "Kothur", "fund_head": None, "type": None, "recap_json": None},
    ])
    store.insert("subworks", [
        {"id": "sw2", "work_id": "w1", "sequence": 2, "name": "Material purchase", "unit": None},
        {"id": "sw1", "work_id": "w1", "sequence": 1, "name": "Compost pit", "unit": "2"},
    ])
    store.insert("subwork_items", [
        {"subwork_id": "sw1", "sequence": 101, "category": "", "description": "Excavation", "total_item_amount": 1000},
        {"subwork_id": "sw1", "sequence": 102, "category": "royalty", "description": "Royalty", "total_item_amount": 200},
        {"subwork_id": "sw1", "sequence": 103, "category": "testing", "description": "Cube test", "total_item_amount": 50},
        {"subwork_id": "sw2", "sequence": 201, "category": "materials", "description": "Bins", "total_item_amount": 300},
    ])
    store.insert("item_rates", [
        {"item_sequence": 101, "rate": 500, "rate_total_amount": 1000, "description": "Excavation in soil"},
        {"item_sequence": 102, "rate": 100, "rate_total_amount": 0, "description": "HB metal royalty"},
        {"item_sequence": 103, "rate": 25, "rate_total_amount": 0, "description": "Cube test"},
    ])
    store.insert("royalty_measurements", [
        {"subwork_sequence": 1, "hb_metal": 2, "murum": 0, "sand": 0},
    ])
    store.insert("testing_measurements", [
        {"item_sequence": 103, "required_tests": 2},
    ])
    return store


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    d = tmp_path / "data"
    seed(JsonStore(d))
    return d


@pytest.fixture
def store(data_dir: Path) -> JsonStore:
    return JsonStore(data_dir)


@pytest.fixture
def policy() -> RecapPolicy:
    return RecapPolicy()
