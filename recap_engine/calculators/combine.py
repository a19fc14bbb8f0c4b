from __future__ import annotations

from typing import Dict, List

from ..models import AdditionalCharges, PartResult, RecapCalculations, RecapPolicy, TaxEntry
from . import taxes as tax_engine


def _part(subtotal: float, part_taxes: Dict[str, float]) -> PartResult:
    tax_total = sum(part_taxes.values(), 0.0)
    return PartResult(subtotal=subtotal, taxes=part_taxes, total=subtotal + tax_total)


def additional_charges(part_a_total: float, policy: RecapPolicy) -> AdditionalCharges:
    return AdditionalCharges(
        contingencies=part_a_total * policy.contingency_rate,
        inspection_charges=part_a_total * policy.inspection_rate,
        dpr_charges=min(part_a_total * policy.dpr_rate, policy.dpr_cap),
    )


def combine(subtotals: Dict[str, float], taxes: List[TaxEntry], policy: RecapPolicy | None = None) -> RecapCalculations:
    """Tax each part, then build the A+B combined block and the grand total.

    Parts A and B are finalised before the combined stage, which taxes
    their post-tax totals. Contingencies and inspection charges are
    reported but not part of the grand total.
    """
    policy = policy or RecapPolicy()

    part_a = _part(subtotals["part_a"], tax_engine.part_taxes(subtotals["part_a"], "part_a", taxes))
    part_b = _part(subtotals["part_b"], tax_engine.part_taxes(subtotals["part_b"], "part_b", taxes))
    part_c = _part(subtotals["part_c"], tax_engine.part_taxes(subtotals["part_c"], "part_c", taxes))

    combined = _part(part_a.total + part_b.total, tax_engine.combined_taxes(part_a.total + part_b.total, taxes))
    charges = additional_charges(part_a.total, policy)

    grand_total = combined.subtotal + combined.tax_total + part_c.total + charges.dpr_charges

    return RecapCalculations(
        part_a=part_a,
        part_b=part_b,
        part_c=part_c,
        part_ab_combined=combined,
        additional_charges=charges,
        grand_total=grand_total,
    )
