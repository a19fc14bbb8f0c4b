from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import RecapCalculations, RecapPolicy, TaxEntry, Work
from .utils import money


TEMPLATES_DIR = Path(__file__).parent / "templates"


def _env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["amount"] = lambda x: money(x)
    return env


def _tax_lines(part_taxes: Dict[str, float], taxes: List[TaxEntry], policy: RecapPolicy) -> List[Dict[str, Any]]:
    lines = []
    for tax in taxes:
        if tax.id not in part_taxes:
            continue
        value = part_taxes[tax.id]
        label = tax.name
        if tax.type == "percentage":
            label = f"{tax.name} @ {tax.percentage or 0:g}%"
        lines.append({"label": label, "amount": value, "funding": [value * f.share for f in policy.funding_split]})
    return lines


def recap_context(
    work: Work,
    rows: Dict[str, List[Dict[str, Any]]],
    calculations: RecapCalculations,
    taxes: List[TaxEntry],
    policy: RecapPolicy | None = None,
) -> Dict[str, Any]:
    policy = policy or RecapPolicy()

    def funding(x: float) -> List[float]:
        return [x * f.share for f in policy.funding_split]

    parts = {}
    for key, part in (
        ("part_a", calculations.part_a),
        ("part_b", calculations.part_b),
        ("part_c", calculations.part_c),
        ("combined", calculations.part_ab_combined),
    ):
        parts[key] = {
            "subtotal": part.subtotal,
            "subtotal_funding": funding(part.subtotal),
            "taxes": _tax_lines(part.taxes, taxes, policy),
            "total": part.total,
            "total_funding": funding(part.total),
        }

    charges = calculations.additional_charges
    return {
        "work": work,
        "policy": policy,
        "rows": rows,
        "parts": parts,
        "dpr": charges.dpr_charges,
        "dpr_funding": funding(charges.dpr_charges),
        "grand_total": calculations.grand_total,
        "grand_total_funding": funding(calculations.grand_total),
    }


def render_recap(
    work: Work,
    rows: Dict[str, List[Dict[str, Any]]],
    calculations: RecapCalculations,
    taxes: List[TaxEntry],
    policy: RecapPolicy | None = None,
    out_path: Optional[Path] = None,
    fragment: bool = False,
) -> str:
    """Render the recap sheet as HTML; optionally write it to ``out_path``.

    ``fragment`` renders just the table block for embedding in a page.
    """
    template = _env().get_template("recap_table.html.j2" if fragment else "recap_sheet.html.j2")
    html = template.render(**recap_context(work, rows, calculations, taxes, policy))
    if out_path is not None:
        out_file = Path(out_path)
        out_file.parent.mkdir(parents=True, exist_ok=True)
        out_file.write_text(html, encoding="utf-8")
    return html
