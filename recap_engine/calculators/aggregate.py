from __future__ import annotations

from typing import Dict, List, Mapping

from ..models import (
    PART_A_CATEGORIES,
    PART_B_CATEGORIES,
    PART_C_CATEGORIES,
    CategoryTotals,
    Subwork,
    SubworkItem,
)
from .classify import items_amount, unit_for


def subtotals(
    subworks: List[Subwork],
    items_by_subwork: Mapping[str, List[SubworkItem]],
    category_totals: Mapping[str, CategoryTotals],
    unit_inputs: Mapping[str, float],
) -> Dict[str, float]:
    """Part A/B/C subtotals, each subwork scaled by its unit multiplier.

    Parts A and B come from the category totals when the subwork has a
    record (even an all-zero one) and from its own items otherwise.
    Part C is always summed from items, once per subwork.
    """
    part_a = 0.0
    part_b = 0.0
    part_c = 0.0
    for sw in subworks:
        unit = unit_for(sw, unit_inputs)
        items = items_by_subwork.get(sw.id, [])
        totals = category_totals.get(sw.id)
        if totals is not None:
            part_a += (totals.regular or 0.0) * unit
            part_b += ((totals.royalty or 0.0) + (totals.testing or 0.0)) * unit
        else:
            part_a += items_amount(items, PART_A_CATEGORIES) * unit
            part_b += items_amount(items, PART_B_CATEGORIES) * unit
        part_c += items_amount(items, PART_C_CATEGORIES) * unit
    return {"part_a": part_a, "part_b": part_b, "part_c": part_c}
