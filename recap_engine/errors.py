from __future__ import annotations


class RecapError(Exception):
    """Base error for the recap engine."""


class StoreError(RecapError):
    """The record store could not answer a request."""


class WorkNotFoundError(RecapError):
    def __init__(self, work_id: str):
        super().__init__(f"Work not found: {work_id}")
        self.work_id = work_id


class TaxNotFoundError(RecapError):
    def __init__(self, tax_id: str):
        super().__init__(f"Tax entry not found: {tax_id}")
        self.tax_id = tax_id
