from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import to_number, unit_multiplier


TaxType = Literal["percentage", "fixed"]
TaxTarget = Literal["part_a", "part_b", "part_c", "part_a_b_combined", "both"]
PartKey = Literal["part_a", "part_b", "part_c"]


class ItemCategory(str, Enum):
    REGULAR = ""
    ROYALTY = "royalty"
    TESTING = "testing"
    WITH_GST = "With GST"
    MATERIALS = "materials"
    PURCHASING = "purchasing"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: Any) -> "ItemCategory":
        """Map a free-text category tag onto a known category.

        Matching is exact. Empty or missing tags are regular works; any
        other unrecognised tag becomes OTHER and belongs to no part.
        """
        if isinstance(raw, cls):
            return raw
        if raw is None or raw == "":
            return cls.REGULAR
        for member in cls:
            if member is not cls.REGULAR and member.value == raw:
                return member
        return cls.OTHER


PART_A_CATEGORIES = frozenset({ItemCategory.REGULAR})
PART_B_CATEGORIES = frozenset({ItemCategory.ROYALTY, ItemCategory.TESTING})
PART_C_CATEGORIES = frozenset({ItemCategory.WITH_GST, ItemCategory.MATERIALS, ItemCategory.PURCHASING})


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class Work(_Record):
    id: str
    name: str = ""
    village: Optional[str] = None
    fund_head: Optional[str] = None
    type: Optional[str] = None
    recap_json: Optional[str] = None
    total_estimated_cost: Optional[float] = None

    @field_validator("total_estimated_cost", mode="before")
    @classmethod
    def _coerce_cost(cls, v):
        return None if v is None else to_number(v)


class Subwork(_Record):
    id: str
    work_id: Optional[str] = None
    sequence: int = 0
    name: str = ""
    unit: Any = None

    @field_validator("sequence", mode="before")
    @classmethod
    def _coerce_sequence(cls, v):
        return int(to_number(v))

    @property
    def multiplier(self) -> float:
        return unit_multiplier(self.unit)


class SubworkItem(_Record):
    subwork_id: Optional[str] = None
    sequence: Optional[int] = None
    category: ItemCategory = ItemCategory.REGULAR
    description: str = ""
    total_item_amount: float = 0.0

    @field_validator("sequence", mode="before")
    @classmethod
    def _coerce_sequence(cls, v):
        if v is None or v == "":
            return None
        return int(to_number(v))

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, v):
        return ItemCategory.parse(v)

    @field_validator("total_item_amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return to_number(v)


class CategoryTotals(BaseModel):
    regular: float = 0.0
    royalty: float = 0.0
    testing: float = 0.0


class TaxEntry(_Record):
    id: str
    name: str = ""
    type: TaxType = "percentage"
    percentage: Optional[float] = None
    fixed_amount: Optional[float] = Field(default=None, alias="fixedAmount")
    apply_to: TaxTarget = Field(default="both", alias="applyTo")

    @field_validator("percentage", "fixed_amount", mode="before")
    @classmethod
    def _coerce_value(cls, v):
        # Unset stays unset; anything else unusable reads as 0
        return None if v is None else to_number(v)


class PartResult(BaseModel):
    subtotal: float = 0.0
    taxes: Dict[str, float] = Field(default_factory=dict)
    total: float = 0.0

    @property
    def tax_total(self) -> float:
        return sum(self.taxes.values(), 0.0)


class AdditionalCharges(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contingencies: float = 0.0
    inspection_charges: float = Field(default=0.0, alias="inspectionCharges")
    dpr_charges: float = Field(default=0.0, alias="dprCharges")


class RecapCalculations(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    part_a: PartResult = Field(default_factory=PartResult, alias="partA")
    part_b: PartResult = Field(default_factory=PartResult, alias="partB")
    part_c: PartResult = Field(default_factory=PartResult, alias="partC")
    part_ab_combined: PartResult = Field(default_factory=PartResult, alias="partABCombined")
    additional_charges: AdditionalCharges = Field(default_factory=AdditionalCharges, alias="additionalCharges")
    grand_total: float = Field(default=0.0, alias="grandTotal")

    @property
    def total_estimated_cost(self) -> float:
        return (self.part_a.subtotal or 0.0) + (self.part_b.subtotal or 0.0) + (self.part_c.subtotal or 0.0)


class RecapSnapshot(BaseModel):
    """Document persisted in ``works.recap_json`` on save."""

    model_config = ConfigDict(populate_by_name=True)

    work_id: str = Field(alias="workId")
    work: Optional[Dict[str, Any]] = None
    type: Optional[str] = None
    work_name: Optional[str] = None
    subworks: List[Dict[str, Any]] = Field(default_factory=list)
    subwork_items: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict, alias="subworkItems")
    taxes: List[TaxEntry] = Field(default_factory=list)
    calculations: Optional[RecapCalculations] = None
    unit_inputs: Dict[str, float] = Field(default_factory=dict, alias="unitInputs")
    saved_at: str = Field(alias="savedAt")


class FundingShare(BaseModel):
    label: str
    share: float


class RecapPolicy(BaseModel):
    contingency_rate: float = 0.005
    inspection_rate: float = 0.005
    dpr_rate: float = 0.05
    dpr_cap: float = 100000.0
    default_taxes: List[TaxEntry] = Field(
        default_factory=lambda: [
            TaxEntry(id="1", name="GST", type="percentage", percentage=18, apply_to="part_b"),
        ]
    )
    currency_label: str = "Rs."
    type_of_work: str = "Solid waste management"
    funding_split: List[FundingShare] = Field(
        default_factory=lambda: [
            FundingShare(label="SBM (G)", share=0.7),
            FundingShare(label="15th FC", share=0.3),
        ]
    )
