"""Typed operations against the Madzi Alipo reporting API."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from waterpoints.common.config_loader import HarvestSettings
from waterpoints.common.constants import SOURCE_FIELDS
from waterpoints.common.credentials import get_token
from waterpoints.common.http import HttpClient, HttpRequestError, TimeoutConfig
from waterpoints.common.logging import log_event
from waterpoints.common.models import Agency
from waterpoints.common.time_utils import year_bounds_utc
from waterpoints.harvest.audit import audit_shape

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str]


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        http_client: HttpClient | None = None,
        selected_report_type: str = "5",
        water_source: tuple[str, ...] = ("1_t",),
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.http = http_client or HttpClient()
        self.selected_report_type = selected_report_type
        self.water_source = water_source

    @classmethod
    def from_settings(cls, settings: HarvestSettings) -> "ApiClient":
        return cls(
            settings.base_url,
            lambda: get_token(settings.token_env_var),
            http_client=HttpClient(
                timeout=TimeoutConfig(connect=settings.connect_timeout, read=settings.read_timeout)
            ),
            selected_report_type=settings.selected_report_type,
            water_source=settings.water_source,
        )

    async def close(self) -> None:
        await self.http.close()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token_provider()}"}

    async def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        return await self.http.get_json(
            f"{self.base_url}/{path}",
            params=params,
            headers=self._auth_headers(),
        )

    async def _get_list(self, path: str, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        payload = await self._get(path, params)
        if not isinstance(payload, list):
            raise HttpRequestError(f"Expected a JSON array from {path}, got {type(payload).__name__}")
        return payload

    async def _get_object(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        payload = await self._get(path, params)
        if not isinstance(payload, dict):
            raise HttpRequestError(f"Expected a JSON object from {path}, got {type(payload).__name__}")
        return payload

    async def list_agencies(self) -> list[Agency]:
        payload = await self._get_list("Api_Agency/GetAgencies")
        agencies = [Agency.from_payload(item) for item in payload]
        log_event(logger, f"listed {len(agencies)} agencies", event="AGENCIES_LISTED", rows_out=len(agencies))
        return agencies

    def partition_query(self, year: int, agency_id: int) -> dict[str, str]:
        from_date, to_date = year_bounds_utc(year)
        return {
            "selectedReportType": self.selected_report_type,
            "agencyId": f"[{agency_id}]",
            "agencyUser": "[]",
            "fromDate": from_date,
            "toDate": to_date,
            "waterSource": json.dumps(list(self.water_source), separators=(",", ":")),
            "indicatorID": "[]",
            "countryId": "",
            "districtZoneId": "",
            "localZoneId": "",
            "regionZoneId": "",
            "radius": "",
        }

    async def list_partition_records(self, year: int, agency_id: int) -> list[dict[str, Any]]:
        return await self._get_list("Api_Report/GetReportData/", self.partition_query(year, agency_id))

    async def get_record_detail(self, answer_id: int | str) -> dict[str, Any]:
        return await self._get_object("Api_NewSourceAnswers/GetAnswerDetail/", {"answerId": str(answer_id)})

    async def get_secondary_source(self, new_source_code: str) -> dict[str, Any]:
        payload = await self._get_object(
            "Api_NewSourceAnswers/GetNewSourceAnswerDetail/",
            {"newSourceAnswerCode": new_source_code},
        )
        audit_shape(payload, SOURCE_FIELDS, context="source", source_code=new_source_code)
        return payload
