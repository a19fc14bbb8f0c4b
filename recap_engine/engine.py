"""Recap sheet calculation — pure functions, no store access."""

from __future__ import annotations

from typing import List, Mapping

from .calculators import aggregate, combine
from .models import CategoryTotals, RecapCalculations, RecapPolicy, Subwork, SubworkItem, TaxEntry


def compute_recap(
    subworks: List[Subwork],
    items_by_subwork: Mapping[str, List[SubworkItem]],
    category_totals: Mapping[str, CategoryTotals],
    taxes: List[TaxEntry],
    unit_inputs: Mapping[str, float],
    policy: RecapPolicy | None = None,
) -> RecapCalculations:
    """Full recompute of the recap from its inputs.

    Callers invoke this again after any change to subworks, items,
    category totals, taxes or unit inputs; nothing is patched in place.
    """
    subtotals = aggregate.subtotals(subworks, items_by_subwork, category_totals, unit_inputs)
    return combine.combine(subtotals, taxes, policy)


__all__ = ["compute_recap"]
