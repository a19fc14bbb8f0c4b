from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .calculators import classify, taxes as tax_ops
from .engine import compute_recap
from .errors import RecapError, WorkNotFoundError
from .logic import category_totals as totals_logic
from .models import (
    CategoryTotals,
    RecapCalculations,
    RecapPolicy,
    RecapSnapshot,
    Subwork,
    SubworkItem,
    TaxEntry,
    TaxType,
    Work,
)
from .store import JsonStore
from .utils import to_number


logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecapSession:
    """One user's recap of one work.

    Holds the loaded inputs and the in-memory edits (taxes, unit inputs)
    until ``save``. Every edit recomputes the calculations in full.

    Pass ``unit_inputs`` to share the unit mapping with a parent view; the
    session then reads and writes that dict instead of its own.
    """

    def __init__(
        self,
        work_id: str,
        store: JsonStore,
        policy: RecapPolicy | None = None,
        unit_inputs: Optional[Dict[str, float]] = None,
    ):
        self.work_id = str(work_id)
        self.store = store
        self.policy = policy or RecapPolicy()
        self._external_units = unit_inputs
        self._local_units: Dict[str, float] = {}

        self.work: Optional[Work] = None
        self.subworks: List[Subwork] = []
        self.items: Dict[str, List[SubworkItem]] = {}
        self.category_totals: Dict[str, CategoryTotals] = {}
        self.taxes: List[TaxEntry] = tax_ops.default_taxes(self.policy)
        self.calculations: Optional[RecapCalculations] = None
        self.dirty = False

    @property
    def unit_inputs(self) -> Dict[str, float]:
        return self._external_units if self._external_units is not None else self._local_units

    # -- Load ---------------------------------------------------------

    def _fetch(self) -> None:
        row = self.store.select_one("works", id=self.work_id)
        if not row:
            raise WorkNotFoundError(self.work_id)
        work = Work.model_validate(row)

        subworks = [Subwork.model_validate(r) for r in self.store.select("subworks", order_by="sequence", work_id=self.work_id)]
        items: Dict[str, List[SubworkItem]] = {}
        for sw in subworks:
            rows = self.store.select("subwork_items", order_by="sequence", subwork_id=sw.id)
            items[sw.id] = [SubworkItem.model_validate({**r, "subwork_id": sw.id}) for r in rows]

        item_seqs = [i.sequence for sw_items in items.values() for i in sw_items if i.sequence]
        sw_seqs = [sw.sequence for sw in subworks]
        totals = totals_logic.compute(
            subworks,
            items,
            self.store.select_in("item_rates", "item_sequence", item_seqs),
            self.store.select_in("royalty_measurements", "subwork_sequence", sw_seqs),
            self.store.select_in("testing_measurements", "item_sequence", item_seqs),
        )

        self.work = work
        self.subworks = subworks
        self.items = items
        self.category_totals = totals
        self._restore(work.recap_json)

    def _restore(self, recap_json: Optional[str]) -> None:
        saved: Dict[str, Any] = {}
        if recap_json:
            try:
                saved = json.loads(recap_json) or {}
            except ValueError:
                logger.warning("Ignoring unreadable recap_json on work %s", self.work_id)
                saved = {}
        if isinstance(saved.get("work"), dict) and self.work is not None:
            # Saved header wins; the live row fills gaps and keeps recap_json
            try:
                self.work = Work.model_validate(
                    {**self.work.model_dump(), **saved["work"], "id": self.work.id,
                     "recap_json": self.work.recap_json, "total_estimated_cost": self.work.total_estimated_cost}
                )
            except ValidationError:
                logger.warning("Ignoring unreadable saved work header on work %s", self.work_id)
        if saved.get("taxes"):
            self.taxes = tax_ops.migrate_taxes(saved["taxes"])
        else:
            self.taxes = tax_ops.default_taxes(self.policy)
        # A parent that owns the unit mapping keeps its own values
        if self._external_units is None:
            self._local_units = {str(k): to_number(v) for k, v in (saved.get("unitInputs") or {}).items()}

    def load(self) -> bool:
        """Fetch the work fresh from the store. Returns False on failure."""
        try:
            self._fetch()
        except (RecapError, ValidationError):
            logger.error("Error fetching work data for %s", self.work_id, exc_info=True)
            return False
        self.dirty = False
        self.recompute()
        logger.info("Loaded recap for work %s (%d subworks)", self.work_id, len(self.subworks))
        return True

    # -- Calculation --------------------------------------------------

    def recompute(self) -> Optional[RecapCalculations]:
        if self.work is None or not self.subworks:
            self.calculations = None
            return None
        self.calculations = compute_recap(
            self.subworks, self.items, self.category_totals, self.taxes, self.unit_inputs, self.policy
        )
        return self.calculations

    def sheet_rows(self) -> Dict[str, List[Dict[str, Any]]]:
        return classify.sheet_rows(self.subworks, self.items, self.category_totals, self.unit_inputs, self.policy)

    # -- Edits --------------------------------------------------------

    def _changed(self) -> Optional[RecapCalculations]:
        self.dirty = True
        return self.recompute()

    def set_unit(self, subwork_id: str, value: Any) -> Optional[RecapCalculations]:
        self.unit_inputs[str(subwork_id)] = to_number(value)
        return self._changed()

    def add_tax(self, **fields: Any) -> TaxEntry:
        self.taxes = tax_ops.add_tax(self.taxes, **fields)
        self._changed()
        return self.taxes[-1]

    def update_tax(self, tax_id: str, **fields: Any) -> Optional[RecapCalculations]:
        self.taxes = tax_ops.update_tax(self.taxes, tax_id, **fields)
        return self._changed()

    def set_tax_type(self, tax_id: str, tax_type: TaxType) -> Optional[RecapCalculations]:
        self.taxes = tax_ops.set_tax_type(self.taxes, tax_id, tax_type)
        return self._changed()

    def remove_tax(self, tax_id: str) -> Optional[RecapCalculations]:
        self.taxes = tax_ops.remove_tax(self.taxes, tax_id)
        return self._changed()

    # -- Save ---------------------------------------------------------

    def snapshot(self, work_type: Optional[str], work_name: Optional[str]) -> RecapSnapshot:
        return RecapSnapshot(
            work_id=self.work_id,
            work=self.work.model_dump(exclude={"recap_json"}) if self.work else None,
            type=work_type,
            work_name=work_name,
            subworks=[sw.model_dump() for sw in self.subworks],
            subwork_items={k: [i.model_dump(mode="json") for i in v] for k, v in self.items.items()},
            taxes=list(self.taxes),
            calculations=self.calculations,
            unit_inputs=dict(self.unit_inputs),
            saved_at=_now(),
        )

    def save(self) -> bool:
        """Write the recap snapshot and estimated cost onto the work row."""
        if self.calculations is None:
            logger.warning("Nothing to save for work %s: no calculations", self.work_id)
            return False
        try:
            row = self.store.select_one("works", id=self.work_id)
            if not row:
                raise WorkNotFoundError(self.work_id)
            snap = self.snapshot(row.get("type"), row.get("name"))
            recap_json = snap.model_dump_json(by_alias=True)
            updated = self.store.update(
                "works",
                {"id": self.work_id},
                {
                    "recap_json": recap_json,
                    "total_estimated_cost": self.calculations.total_estimated_cost,
                    "updated_at": snap.saved_at,
                },
            )
            if not updated:
                raise WorkNotFoundError(self.work_id)
        except RecapError:
            logger.error("Error saving recap data for %s", self.work_id, exc_info=True)
            return False
        if self.work is not None:
            self.work = self.work.model_copy(update={"recap_json": recap_json})
        self.dirty = False
        logger.info("Recap data updated for work %s", self.work_id)
        return True
