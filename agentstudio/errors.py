"""Error taxonomy for the provisioning pipeline.

Every failure the pipeline reports is a ``ProvisioningError``:

- ``ValidationFailure``: malformed or missing input, or a duplicate unique key
- ``VendorFailure``: the ingestion or activation service answered non-success
- ``PersistenceFailure``: the database transaction failed and was rolled back
- ``UnexpectedFailure``: anything else, always logged with its traceback
"""

from __future__ import annotations

import re
from typing import Any

from fastapi import status


class ProvisioningError(Exception):
    """Base class for failures surfaced to the caller of a deploy."""

    kind = "unexpected"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {"kind": self.kind, "message": self.message, **self.details}


class ValidationFailure(ProvisioningError):
    """Input was rejected before or during persistence."""

    kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        field: str | None = None,
        constraint: str | None = None,
        **details: Any,
    ) -> None:
        super().__init__(message, field=field, constraint=constraint, **details)
        self.field = field
        self.constraint = constraint


class ConflictFailure(ValidationFailure):
    """A unique key (trigger code, organization name, id) is already taken."""

    status_code = status.HTTP_409_CONFLICT


class DocumentValidationError(ValidationFailure):
    """A document failed the type or size check before any network call."""

    def __init__(self, message: str, document: str, field: str = "file") -> None:
        super().__init__(message, field=field, document=document)
        self.document = document


class VendorFailure(ProvisioningError):
    """An external service returned a non-success answer or was unreachable."""

    kind = "vendor"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        vendor: str,
        vendor_status: int | None = None,
        body: Any = None,
        document: str | None = None,
    ) -> None:
        super().__init__(
            message,
            vendor=vendor,
            vendor_status=vendor_status,
            body=body,
            document=document,
        )
        self.vendor = vendor
        self.vendor_status = vendor_status
        self.body = body
        self.document = document


class PersistenceFailure(ProvisioningError):
    """The repository transaction failed for a reason other than a duplicate."""

    kind = "persistence"


class UnexpectedFailure(ProvisioningError):
    """An uncaught exception, wrapped so the caller still gets one result."""

    kind = "unexpected"


_UNIQUE_PATTERNS = (
    # SQLite: "UNIQUE constraint failed: agents.trigger_code"
    re.compile(r"UNIQUE constraint failed: (?P<name>[\w.]+)"),
    # PostgreSQL: 'duplicate key value violates unique constraint "agents_trigger_code_key"'
    re.compile(r'unique constraint "(?P<name>[^"]+)"'),
)


def unique_constraint_name(message: str) -> str | None:
    """Extract the violated unique constraint from a driver error message."""
    for pattern in _UNIQUE_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group("name")
    return None


def field_for_constraint(constraint: str) -> str:
    """Map a constraint name to the column it guards."""
    for column in ("trigger_code", "name", "id"):
        if constraint.endswith(f".{column}") or f"_{column}_" in constraint:
            return column
    return constraint
