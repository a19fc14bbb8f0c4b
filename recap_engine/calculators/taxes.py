from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, get_args

from ..errors import TaxNotFoundError
from ..models import PartKey, RecapPolicy, TaxEntry, TaxType


_ALIASES = {"fixedAmount": "fixed_amount", "applyTo": "apply_to"}


def amount(tax: TaxEntry, subtotal: float) -> float:
    if tax.type == "fixed":
        return tax.fixed_amount or 0.0
    return (subtotal * (tax.percentage or 0.0)) / 100


def _amounts(subtotal: float, taxes: Iterable[TaxEntry]) -> Dict[str, float]:
    return {tax.id: amount(tax, subtotal) for tax in taxes}


def part_taxes(subtotal: float, part: PartKey, taxes: List[TaxEntry]) -> Dict[str, float]:
    """Taxes routed to one part; ``both`` entries apply to every part."""
    return _amounts(subtotal, (t for t in taxes if t.apply_to == part or t.apply_to == "both"))


def combined_taxes(subtotal: float, taxes: List[TaxEntry]) -> Dict[str, float]:
    """Taxes on the Part A+B total. Only explicit ``part_a_b_combined`` entries."""
    return _amounts(subtotal, (t for t in taxes if t.apply_to == "part_a_b_combined"))


# Tax list editing. Every operation returns a new list.


def default_taxes(policy: RecapPolicy | None = None) -> List[TaxEntry]:
    policy = policy or RecapPolicy()
    return [t.model_copy() for t in policy.default_taxes]


def new_tax_id() -> str:
    return uuid.uuid4().hex[:12]


def add_tax(taxes: List[TaxEntry], **fields: Any) -> List[TaxEntry]:
    data: Dict[str, Any] = {"id": new_tax_id(), "name": "New Tax", "type": "percentage", "percentage": 0, "apply_to": "both"}
    data.update({_ALIASES.get(k, k): v for k, v in fields.items()})
    return [*taxes, TaxEntry.model_validate(data)]


def _index(taxes: List[TaxEntry], tax_id: str) -> int:
    for i, tax in enumerate(taxes):
        if tax.id == tax_id:
            return i
    raise TaxNotFoundError(tax_id)


def update_tax(taxes: List[TaxEntry], tax_id: str, **fields: Any) -> List[TaxEntry]:
    i = _index(taxes, tax_id)
    data = taxes[i].model_dump()
    data.update({_ALIASES.get(k, k): v for k, v in fields.items()})
    out = list(taxes)
    out[i] = TaxEntry.model_validate(data)
    return out


def set_tax_type(taxes: List[TaxEntry], tax_id: str, tax_type: TaxType) -> List[TaxEntry]:
    """Switch a tax between percentage and fixed, resetting both values."""
    if tax_type not in get_args(TaxType):
        raise ValueError(f"Unknown tax type: {tax_type!r}")
    if tax_type == "percentage":
        return update_tax(taxes, tax_id, type="percentage", percentage=0.0, fixed_amount=None)
    return update_tax(taxes, tax_id, type="fixed", fixed_amount=0.0, percentage=None)


def remove_tax(taxes: List[TaxEntry], tax_id: str) -> List[TaxEntry]:
    return [t for t in taxes if t.id != tax_id]


def migrate_taxes(raw: List[Dict[str, Any]]) -> List[TaxEntry]:
    """Restore a saved tax list; older recaps carried no ``type``."""
    out: List[TaxEntry] = []
    for entry in raw or []:
        data = dict(entry)
        data["type"] = data.get("type") or "percentage"
        data["percentage"] = data.get("percentage") or 0
        out.append(TaxEntry.model_validate(data))
    return out
