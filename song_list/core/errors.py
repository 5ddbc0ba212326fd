from __future__ import annotations


class ImportPreconditionError(ValueError):
    """The batch cannot start: nothing has been written."""


class RowError(ValueError):
    pass


class ImportFailedError(RuntimeError):
    """The batch failed part-way and its transaction was rolled back."""


class InvalidImageError(ImportPreconditionError):
    pass
