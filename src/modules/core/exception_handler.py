"""DRF exception handler producing the standard error envelope.

Every failure leaving the API has the shape::

    {"type": "validation_error" | "client_error" | "server_error",
     "errors": [{"code": "...", "detail": "...", "attr": "..." | null}]}

Domain errors raised by the service layer are recovered here, so views
never need per-exception ``try/except`` ladders.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from modules.core.exceptions import DomainError, PersistenceIntegrityError

logger = structlog.get_logger(__name__)


def domain_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    if isinstance(exc, DomainError):
        return _handle_domain_error(exc, context)

    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    error_type = (
        "validation_error"
        if isinstance(exc, drf_exceptions.ValidationError)
        else "client_error"
    )
    response.data = {
        "type": error_type,
        "errors": _flatten_drf_errors(getattr(exc, "detail", response.data)),
    }
    return response


def _handle_domain_error(exc: DomainError, context: Dict[str, Any]) -> Response:
    view = context.get("view")
    log = logger.bind(
        error_code=exc.code,
        view=view.__class__.__name__ if view is not None else None,
    )
    if isinstance(exc, PersistenceIntegrityError):
        log.error("api.persistence_integrity_error", detail=exc.detail)
    else:
        log.info("api.domain_error", detail=exc.detail)

    return Response(
        {
            "type": exc.error_type,
            "errors": [{"code": exc.code, "detail": exc.detail, "attr": exc.attr}],
        },
        status=exc.status_code,
    )


def _flatten_drf_errors(detail: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(detail, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in detail.items():
            nested_attr = key if attr is None else f"{attr}.{key}"
            if key == "non_field_errors":
                nested_attr = attr
            errors.extend(_flatten_drf_errors(value, nested_attr))
        return errors
    if isinstance(detail, list):
        errors = []
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                nested_attr = f"{attr}.{index}" if attr else str(index)
                errors.extend(_flatten_drf_errors(value, nested_attr))
            else:
                errors.extend(_flatten_drf_errors(value, attr))
        return errors
    return [
        {
            "code": getattr(detail, "code", "error"),
            "detail": str(detail),
            "attr": attr,
        }
    ]
