"""Turns one report listing row into a single flat record."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from waterpoints.common.constants import DETAIL_FIELDS, DETAIL_SCALAR_FIELDS, LOCATION_FIELDS, QUESTION_SECTIONS
from waterpoints.common.logging import log_event
from waterpoints.common.models import FlatRecord
from waterpoints.harvest.audit import audit_shape
from waterpoints.harvest.client import ApiClient
from waterpoints.harvest.source_cache import SourceLocationCache

logger = logging.getLogger(__name__)


def question_map(questions: Iterable[dict[str, Any] | None] | None) -> dict[str, Any]:
    """``"{questionId} : {questionText}" -> answerText``, skipping blank answers."""
    out: dict[str, Any] = {}
    for question in questions or ():
        if not question:
            continue
        answer = question.get("answerText")
        if answer is None or answer == "":
            continue
        out[f"{question.get('questionId')} : {question.get('questionText')}"] = answer
    return out


def parts_used_map(parts: Iterable[dict[str, Any]] | None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for part in parts or ():
        name = part.get("name")
        out[f"part : {name} : quantity"] = part.get("quantity")
        out[f"part : {name} : costMwk"] = part.get("costMwk")
    return out


def image_urls(images: Iterable[dict[str, Any]] | None) -> str:
    return "\n".join(str(image.get("url", "")) for image in images or ())


def staff_names(staff: Iterable[dict[str, Any]] | None) -> str:
    return "\n".join(f"{member.get('firstName')} {member.get('lastName')}" for member in staff or ())


def split_lat_lng(value: Any) -> tuple[float, float] | None:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return value[0], value[1]
    return None


def flatten_detail(location: dict[str, Any], detail: dict[str, Any]) -> FlatRecord:
    """Merge listing row and detail payload; detail scalars override listing fields."""
    record: FlatRecord = dict(location)
    for field in DETAIL_SCALAR_FIELDS:
        record[field] = detail.get(field)
    for section in QUESTION_SECTIONS:
        record.update(question_map(detail.get(section)))
    record.update(question_map([detail.get("comment")]))
    record["imageUrls"] = image_urls(detail.get("imageAnswers"))
    record["visitStaff"] = staff_names(detail.get("visitStaff"))
    record.update(parts_used_map(detail.get("partUsed")))
    return record


async def resolve_coordinates(
    code: Any,
    client: ApiClient,
    source_cache: SourceLocationCache,
    *,
    answer_id: Any = None,
) -> tuple[float, float] | None:
    if not code:
        log_event(
            logger,
            f"answer {answer_id} has no newSourceCode",
            level=logging.WARNING,
            answer_id=answer_id,
            event="COORDINATES_MISSING",
            status="warning",
        )
        return None

    try:
        lat_lng = await source_cache.resolve(code, client.get_secondary_source)
    except Exception as exc:
        log_event(
            logger,
            f"could not look up newSourceCode {code}: {exc}",
            level=logging.WARNING,
            answer_id=answer_id,
            source_code=code,
            event="SOURCE_LOOKUP_FAIL",
            status="warning",
            error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
        )
        return None

    pair = split_lat_lng(lat_lng)
    if pair is None:
        log_event(
            logger,
            f"could not retrieve lat/long for newSourceCode: {code}",
            level=logging.WARNING,
            answer_id=answer_id,
            source_code=code,
            event="COORDINATES_MISSING",
            status="warning",
        )
    return pair


async def enrich_record(
    location: dict[str, Any],
    client: ApiClient,
    source_cache: SourceLocationCache,
) -> FlatRecord:
    answer_id = location.get("answerId")
    audit_shape(location, LOCATION_FIELDS, context="location", answer_id=answer_id)

    detail = await client.get_record_detail(answer_id)
    audit_shape(detail, DETAIL_FIELDS, context="detail", answer_id=answer_id)

    record = flatten_detail(location, detail)
    pair = await resolve_coordinates(detail.get("newSourceCode"), client, source_cache, answer_id=answer_id)
    if pair is not None:
        record["latitude"], record["longitude"] = pair
    return record
