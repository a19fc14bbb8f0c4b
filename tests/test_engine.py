from __future__ import annotations

import pytest

from recap_engine.engine import compute_recap
from recap_engine.models import CategoryTotals, Subwork, SubworkItem, TaxEntry


def sw(id, unit=1, seq=1):
    return Subwork(id=id, sequence=seq, name=f"Subwork {id}", unit=unit)


def item(subwork_id, category, amount, seq=None):
    return SubworkItem(subwork_id=subwork_id, sequence=seq, category=category, total_item_amount=amount)


def pct(id, percentage, apply_to):
    return TaxEntry(id=id, name=f"Tax {id}", type="percentage", percentage=percentage, apply_to=apply_to)


def fixed(id, amount, apply_to):
    return TaxEntry(id=id, name=f"Tax {id}", type="fixed", fixed_amount=amount, apply_to=apply_to)


def test_end_to_end_single_subwork():
    calc = compute_recap(
        [sw("s1", unit=2)],
        {"s1": [item("s1", "", 1000), item("s1", "royalty", 200), item("s1", "testing", 50)]},
        {"s1": CategoryTotals(regular=1000, royalty=200, testing=50)},
        [pct("1", 18, "part_b")],
        {},
    )
    assert calc.part_a.subtotal == 2000
    assert calc.part_b.subtotal == 500
    assert calc.part_b.taxes == {"1": pytest.approx(90)}
    assert calc.part_b.total == pytest.approx(590)
    assert calc.part_c.subtotal == 0
    assert calc.part_ab_combined.subtotal == pytest.approx(2590)
    assert calc.additional_charges.dpr_charges == pytest.approx(100)
    assert calc.grand_total == pytest.approx(2690)


def test_recompute_is_idempotent():
    args = (
        [sw("s1", unit=3), sw("s2", seq=2)],
        {"s1": [item("s1", "", 10)], "s2": [item("s2", "With GST", 7.5)]},
        {"s1": CategoryTotals(regular=123.45, royalty=6.7)},
        [pct("1", 12.5, "both"), fixed("2", 40, "part_a_b_combined")],
        {"s2": 4},
    )
    assert compute_recap(*args) == compute_recap(*args)


def test_subworks_without_items_total_zero():
    calc = compute_recap(
        [sw("s1"), sw("s2", seq=2)],
        {"s1": [], "s2": []},
        {"s1": CategoryTotals(), "s2": CategoryTotals()},
        [pct("1", 18, "part_b")],
        {},
    )
    assert calc.part_a.subtotal == calc.part_b.subtotal == calc.part_c.subtotal == 0
    assert calc.additional_charges.dpr_charges == 0
    assert calc.grand_total == 0


def test_both_applies_to_each_part_but_not_combined():
    calc = compute_recap(
        [sw("s1")],
        {"s1": [item("s1", "purchasing", 200)]},
        {"s1": CategoryTotals(regular=1000, royalty=500)},
        [pct("t", 10, "both")],
        {},
    )
    assert calc.part_a.taxes == {"t": pytest.approx(100)}
    assert calc.part_b.taxes == {"t": pytest.approx(50)}
    assert calc.part_c.taxes == {"t": pytest.approx(20)}
    assert calc.part_ab_combined.taxes == {}


def test_combined_tax_uses_post_tax_part_totals():
    calc = compute_recap(
        [sw("s1")],
        {"s1": []},
        {"s1": CategoryTotals(regular=1000, royalty=500)},
        [pct("a", 10, "part_a"), pct("ab", 10, "part_a_b_combined")],
        {},
    )
    assert calc.part_a.total == pytest.approx(1100)
    assert calc.part_ab_combined.subtotal == pytest.approx(1600)
    assert calc.part_ab_combined.taxes == {"ab": pytest.approx(160)}
    assert calc.part_ab_combined.total == pytest.approx(1760)
    assert "ab" not in calc.part_a.taxes and "ab" not in calc.part_b.taxes


@pytest.mark.parametrize("part_a_total, expected", [(3_000_000, 100_000), (1_000_000, 50_000)])
def test_dpr_charges_capped(part_a_total, expected):
    calc = compute_recap([sw("s1")], {"s1": []}, {"s1": CategoryTotals(regular=part_a_total)}, [], {})
    assert calc.additional_charges.dpr_charges == pytest.approx(expected)


def test_fixed_tax_ignores_subtotal_and_percentage_scales():
    calc = compute_recap(
        [sw("s1")],
        {"s1": []},
        {"s1": CategoryTotals(regular=10_000, royalty=1)},
        [fixed("f", 500, "part_b"), pct("p", 18, "part_a")],
        {},
    )
    assert calc.part_b.taxes["f"] == 500
    assert calc.part_a.taxes["p"] == pytest.approx(1800)


def test_unit_input_overrides_subwork_unit():
    calc = compute_recap([sw("s1", unit=1)], {"s1": []}, {"s1": CategoryTotals(regular=1000)}, [], {"s1": 3})
    assert calc.part_a.subtotal == 3000


def test_zero_unit_input_is_kept_but_zero_subwork_unit_means_one():
    totals = {"s1": CategoryTotals(regular=1000)}
    assert compute_recap([sw("s1", unit=5)], {"s1": []}, totals, [], {"s1": 0}).part_a.subtotal == 0
    assert compute_recap([sw("s1", unit=0)], {"s1": []}, totals, [], {}).part_a.subtotal == 1000
    assert compute_recap([sw("s1", unit="n/a")], {"s1": []}, totals, [], {}).part_a.subtotal == 1000


def test_dual_path_aggregation_and_part_c_from_items():
    # s1 has a category totals record, s2 does not and falls back to its items
    subworks = [sw("s1"), sw("s2", unit=2, seq=2)]
    items = {
        "s1": [item("s1", "", 999), item("s1", "With GST", 50)],
        "s2": [
            item("s2", "", 10),
            item("s2", "royalty", 20),
            item("s2", "materials", 5),
            item("s2", "misc", 1000),
        ],
    }
    calc = compute_recap(subworks, items, {"s1": CategoryTotals(regular=100)}, [], {})
    assert calc.part_a.subtotal == pytest.approx(100 + 10 * 2)
    assert calc.part_b.subtotal == pytest.approx(20 * 2)
    assert calc.part_c.subtotal == pytest.approx(50 + 5 * 2)


def test_zero_category_totals_record_still_wins_over_items():
    calc = compute_recap([sw("s1")], {"s1": [item("s1", "", 700)]}, {"s1": CategoryTotals()}, [], {})
    assert calc.part_a.subtotal == 0


def test_grand_total_excludes_contingencies_and_inspection():
    calc = compute_recap(
        [sw("s1")],
        {"s1": [item("s1", "materials", 400)]},
        {"s1": CategoryTotals(regular=20_000, testing=1000)},
        [pct("c", 5, "part_c"), fixed("ab", 250, "part_a_b_combined")],
        {},
    )
    charges = calc.additional_charges
    assert charges.contingencies == pytest.approx(100)
    assert charges.inspection_charges == pytest.approx(100)
    assert charges.dpr_charges == pytest.approx(1000)
    assert calc.part_c.total == pytest.approx(420)
    assert calc.grand_total == pytest.approx(21_000 + 250 + 420 + 1000)


def test_negative_amounts_are_not_clamped():
    calc = compute_recap([sw("s1")], {"s1": [item("s1", "purchasing", -50)]}, {"s1": CategoryTotals(regular=-100)}, [], {})
    assert calc.part_a.subtotal == -100
    assert calc.part_c.subtotal == -50
    assert calc.additional_charges.dpr_charges == pytest.approx(-5)


def test_serialized_keys():
    calc = compute_recap([sw("s1")], {"s1": []}, {"s1": CategoryTotals(regular=10)}, [], {})
    data = calc.model_dump(by_alias=True)
    assert set(data) == {"partA", "partB", "partC", "partABCombined", "additionalCharges", "grandTotal"}
    assert set(data["additionalCharges"]) == {"contingencies", "inspectionCharges", "dprCharges"}
    assert calc.total_estimated_cost == 10
