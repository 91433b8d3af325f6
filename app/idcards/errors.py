"""
Error taxonomy for the ID card workflow.

Callers (the request gateway) map these onto user-facing outcomes:
ValidationError -> bad input, ConflictError -> "already exists",
NotFoundError -> not found, StoreError -> generic failure.
"""
from __future__ import annotations


class WorkflowError(RuntimeError):
    pass


class ValidationError(WorkflowError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ConflictError(WorkflowError):
    def __init__(self, message: str = "A record with this register number already exists.", *, identifier: str | None = None, table: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.table = table


class NotFoundError(WorkflowError):
    def __init__(self, message: str, *, identifier: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class StoreError(WorkflowError):
    pass


class TransferIncompleteError(StoreError):
    """Some rows of a batch archive failed; the rest were archived and committed."""

    def __init__(self, message: str, *, identifier: str, transferred_count: int, failed_count: int) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.transferred_count = transferred_count
        self.failed_count = failed_count
