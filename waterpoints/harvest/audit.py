"""Non-blocking shape audit for upstream payloads."""

from __future__ import annotations

import logging
from typing import Any, Collection

from waterpoints.common.logging import log_event

logger = logging.getLogger(__name__)


def audit_shape(record: Any, allowed_keys: Collection[str], *, context: str, **event_fields: Any) -> list[str]:
    """Log every key of ``record`` missing from ``allowed_keys`` and return them.

    Upstream schema drift is reported here and nowhere else; the record is
    never modified and nothing is raised.
    """
    if not isinstance(record, dict):
        log_event(
            logger,
            f"{context} payload is not an object: {type(record).__name__}",
            level=logging.WARNING,
            event="SHAPE_DRIFT",
            status="warning",
            **event_fields,
        )
        return []

    unexpected = [key for key in record if key not in allowed_keys]
    for key in unexpected:
        log_event(
            logger,
            f"unexpected {context} field: {key}",
            level=logging.WARNING,
            event="SHAPE_DRIFT",
            status="warning",
            **event_fields,
        )
    return unexpected
