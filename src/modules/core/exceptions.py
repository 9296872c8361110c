"""Domain error taxonomy.

Services raise these; repositories never do (they return ``None``).
The DRF exception handler in ``modules.core.exception_handler`` is the
single place that turns them into HTTP responses, using ``status_code``
and ``code``.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for every business-rule failure."""

    status_code = 400
    code = "domain_error"
    error_type = "client_error"

    def __init__(self, detail: str = "", attr: str | None = None) -> None:
        self.detail = detail or (self.__class__.__doc__ or self.code).strip()
        self.attr = attr
        super().__init__(self.detail)


class ValidationFailed(DomainError):
    """Malformed input (missing association, wrong shape, mismatched dates)."""

    code = "validation_error"
    error_type = "validation_error"


class NotFound(DomainError):
    """A referenced entity does not exist."""

    status_code = 404
    code = "not_found"


class InvalidStatus(DomainError):
    """The status value is not recognised after normalization."""

    code = "invalid_status"
    error_type = "validation_error"


class InvalidTransition(DomainError):
    """The status change regresses or skips a step."""

    code = "invalid_transition"


class PermissionDenied(DomainError):
    """The actor's role may not perform this change."""

    status_code = 403
    code = "permission_denied"


class DuplicateEntry(DomainError):
    """A unique identifier is already taken."""

    status_code = 409
    code = "duplicate_entry"


class PersistenceIntegrityError(DomainError):
    """The store does not hold what was just written."""

    status_code = 500
    code = "persistence_integrity_error"
    error_type = "server_error"


class MalformedIdentifier(DomainError):
    """The lookup key does not have the shape of any known identifier."""

    code = "invalid_identifier"
    error_type = "validation_error"
