from __future__ import annotations

from typing import Any, Dict, List

from ..models import CategoryTotals, ItemCategory, Subwork, SubworkItem
from ..utils import to_number


def _royalty_quantity(description: str, royalty: Dict[str, float]) -> float:
    desc = (description or "").lower()
    if "metal" in desc:
        return royalty["hb_metal"]
    if "murum" in desc:
        return royalty["murum"]
    if "sand" in desc:
        return royalty["sand"]
    return 0.0


def compute(
    subworks: List[Subwork],
    items_by_subwork: Dict[str, List[SubworkItem]],
    rate_rows: List[Dict[str, Any]],
    royalty_rows: List[Dict[str, Any]],
    testing_rows: List[Dict[str, Any]],
) -> Dict[str, CategoryTotals]:
    """Derive regular/royalty/testing amounts per subwork from detail rows.

    rate_rows: {item_sequence, rate, rate_total_amount, description}
    royalty_rows: {subwork_sequence, hb_metal, murum, sand}
    testing_rows: {item_sequence, required_tests}

    Every subwork gets a record, zero when nothing matches. Any item that
    is not a measured royalty or testing item counts toward ``regular``,
    Part C categories included.
    """
    totals: Dict[str, CategoryTotals] = {sw.id: CategoryTotals() for sw in subworks}
    if not subworks:
        return totals

    seq_to_id = {sw.sequence: sw.id for sw in subworks}

    royalty_by_subwork: Dict[str, Dict[str, float]] = {}
    for row in royalty_rows or []:
        sw_id = seq_to_id.get(row.get("subwork_sequence"))
        if not sw_id:
            continue
        acc = royalty_by_subwork.setdefault(sw_id, {"hb_metal": 0.0, "murum": 0.0, "sand": 0.0})
        acc["hb_metal"] += to_number(row.get("hb_metal"))
        acc["murum"] += to_number(row.get("murum"))
        acc["sand"] += to_number(row.get("sand"))

    tests_by_item: Dict[Any, float] = {}
    for row in testing_rows or []:
        tests_by_item[row.get("item_sequence")] = to_number(row.get("required_tests"))

    rates_by_item: Dict[Any, List[Dict[str, Any]]] = {}
    for row in rate_rows or []:
        rates_by_item.setdefault(row.get("item_sequence"), []).append(row)

    for sw_id, items in items_by_subwork.items():
        for item in items:
            bucket = totals.setdefault(item.subwork_id or sw_id, CategoryTotals())
            item_rates = rates_by_item.get(item.sequence, []) if item.sequence is not None else []
            royalty = royalty_by_subwork.get(item.subwork_id or sw_id)
            tests = tests_by_item.get(item.sequence, 0.0) if item.sequence else 0.0

            if item.category is ItemCategory.ROYALTY and royalty:
                bucket.royalty += sum(
                    _royalty_quantity(r.get("description", ""), royalty) * to_number(r.get("rate"))
                    for r in item_rates
                )
            elif item.category is ItemCategory.TESTING and tests:
                bucket.testing += sum(tests * to_number(r.get("rate")) for r in item_rates)
            else:
                bucket.regular += sum(to_number(r.get("rate_total_amount")) for r in item_rates)
    return totals
