from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Mapping

from ..models import (
    PART_A_CATEGORIES,
    PART_B_CATEGORIES,
    PART_C_CATEGORIES,
    CategoryTotals,
    ItemCategory,
    RecapPolicy,
    Subwork,
    SubworkItem,
)


def _has_category(items: List[SubworkItem], categories: FrozenSet[ItemCategory]) -> bool:
    return any(item.category in categories for item in items)


def items_amount(items: List[SubworkItem], categories: FrozenSet[ItemCategory]) -> float:
    return sum((item.total_item_amount for item in items if item.category in categories), 0.0)


def part_a_subworks(subworks: List[Subwork], items_by_subwork: Mapping[str, List[SubworkItem]]) -> List[Subwork]:
    return [sw for sw in subworks if _has_category(items_by_subwork.get(sw.id, []), PART_A_CATEGORIES)]


def part_b_subworks(subworks: List[Subwork], items_by_subwork: Mapping[str, List[SubworkItem]]) -> List[Subwork]:
    return [sw for sw in subworks if _has_category(items_by_subwork.get(sw.id, []), PART_B_CATEGORIES)]


def part_c_subworks(subworks: List[Subwork], items_by_subwork: Mapping[str, List[SubworkItem]]) -> List[Subwork]:
    return [sw for sw in subworks if _has_category(items_by_subwork.get(sw.id, []), PART_C_CATEGORIES)]


def royalty_subworks(subworks: List[Subwork], category_totals: Mapping[str, CategoryTotals]) -> List[Subwork]:
    return [sw for sw in subworks if sw.id in category_totals and category_totals[sw.id].royalty > 0]


def testing_subworks(subworks: List[Subwork], category_totals: Mapping[str, CategoryTotals]) -> List[Subwork]:
    return [sw for sw in subworks if sw.id in category_totals and category_totals[sw.id].testing > 0]


def unit_for(subwork: Subwork, unit_inputs: Mapping[str, float]) -> float:
    if subwork.id in unit_inputs:
        return unit_inputs[subwork.id]
    return subwork.multiplier


def _row(index: int, subwork: Subwork, unit: float, per_unit: float, policy: RecapPolicy) -> Dict[str, Any]:
    total = unit * per_unit
    return {
        "index": index,
        "subwork_id": subwork.id,
        "name": subwork.name,
        "type_of_work": policy.type_of_work,
        "unit": unit,
        "amount_per_unit": per_unit,
        "total": total,
        "funding": [total * f.share for f in policy.funding_split],
    }


def sheet_rows(
    subworks: List[Subwork],
    items_by_subwork: Mapping[str, List[SubworkItem]],
    category_totals: Mapping[str, CategoryTotals],
    unit_inputs: Mapping[str, float],
    policy: RecapPolicy | None = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """Display rows for each recap group.

    Part A and Part C rows price a subwork by its own items of that part;
    royalty and testing rows take the derived category totals.
    """
    policy = policy or RecapPolicy()
    groups: Dict[str, List[Dict[str, Any]]] = {"part_a": [], "royalty": [], "testing": [], "part_c": []}

    for i, sw in enumerate(part_a_subworks(subworks, items_by_subwork), start=1):
        per_unit = items_amount(items_by_subwork.get(sw.id, []), PART_A_CATEGORIES)
        groups["part_a"].append(_row(i, sw, unit_for(sw, unit_inputs), per_unit, policy))

    for i, sw in enumerate(royalty_subworks(subworks, category_totals), start=1):
        per_unit = category_totals[sw.id].royalty
        groups["royalty"].append(_row(i, sw, unit_for(sw, unit_inputs), per_unit, policy))

    for i, sw in enumerate(testing_subworks(subworks, category_totals), start=1):
        per_unit = category_totals[sw.id].testing
        groups["testing"].append(_row(i, sw, unit_for(sw, unit_inputs), per_unit, policy))

    for i, sw in enumerate(part_c_subworks(subworks, items_by_subwork), start=1):
        per_unit = items_amount(items_by_subwork.get(sw.id, []), PART_C_CATEGORIES)
        groups["part_c"].append(_row(i, sw, unit_for(sw, unit_inputs), per_unit, policy))

    return groups
