"""Exception types raised by the dashboard pipeline.

Only store I/O and caller-level preconditions raise; normalization,
matching and filtering are total and never do.
"""


class DashboardError(Exception):
    """Base class for all dashboard pipeline errors."""


class FetchError(DashboardError):
    """A collection could not be read from the store.

    The previously applied snapshot (possibly empty) stays current.
    """

    def __init__(self, collection: str, cause: BaseException | None = None):
        self.collection = collection
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to fetch '{collection}'{detail}")


class MutationError(DashboardError):
    """The store rejected an edit, insert or delete batch."""

    def __init__(self, collection: str, action: str,
                 cause: BaseException | None = None, applied: int = 0):
        self.collection = collection
        self.action = action
        self.cause = cause
        # Records already committed by earlier batches of the same request.
        self.applied = applied
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to {action} records in '{collection}'{detail}")


class EmptyExportError(DashboardError, ValueError):
    """An export was requested for a selection with no records."""

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(
            f"No Data to Export: no {entity} records match the current filters"
        )


class UnknownEntityError(DashboardError, ValueError):
    """The requested entity name has no definition."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown entity '{name}'")


class UploadError(DashboardError, ValueError):
    """An uploaded file could not be parsed."""
