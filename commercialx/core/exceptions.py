"""Error taxonomy for catalog reconciliation and listing creation."""


class CatalogError(Exception):
    """Base class for failures surfaced by I/O-touching catalog operations."""


class NotFoundError(CatalogError):
    """A referenced catalog row does not exist."""

    def __init__(self, table: str, row_id: int | None) -> None:
        self.table = table
        self.row_id = row_id
        super().__init__(f"{table} {row_id} not found")


class ValidationFailure(CatalogError):
    """A spec is malformed or missing required fields; nothing was written."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        self.fields = fields or []
        super().__init__(message)


class UpstreamUnavailable(CatalogError):
    """A registry or fuel-economy provider call failed or timed out."""

    def __init__(self, service: str, message: str) -> None:
        self.service = service
        super().__init__(f"{service}: {message}")
