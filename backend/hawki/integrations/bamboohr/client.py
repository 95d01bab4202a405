"""BambooHR REST client (directory and time-off requests)."""

from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Any, Callable
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from hawki.core.config import settings
from hawki.core.exceptions import BambooHRRequestError, InvalidConfigurationError
from hawki.integrations.bamboohr.payloads import DirectoryEmployee, TimeOffRequest

logger = logging.getLogger(__name__)

DIRECTORY_FIELDS = (
    "id,displayName,firstName,lastName,preferredName,jobTitle,workEmail,"
    "department,location,division,photoUrl"
)


class BambooHRClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        subdomain: str | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = (api_key if api_key is not None else settings.BAMBOOHR_API_KEY).strip()
        self.subdomain = (subdomain if subdomain is not None else settings.BAMBOOHR_SUBDOMAIN).strip()
        if not self.api_key:
            raise InvalidConfigurationError("BambooHR API key is not configured", setting="BAMBOOHR_API_KEY")
        if not self.subdomain:
            raise InvalidConfigurationError("BambooHR subdomain is not configured", setting="BAMBOOHR_SUBDOMAIN")
        self.base_url = f"{settings.BAMBOOHR_BASE_URL.rstrip('/')}/{quote(self.subdomain, safe='')}"
        self.timeout = settings.ADO_REQUEST_TIMEOUT_SECONDS
        self.max_retries = max(1, settings.ADO_MAX_RETRIES)
        self._transport = transport
        self._sleep = sleep

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        last_status: int | None = None
        last_body: str | None = None
        with httpx.Client(
            timeout=self.timeout,
            auth=(self.api_key, "x"),
            headers={"Accept": "application/json"},
            transport=self._transport,
        ) as client:
            for attempt in range(1, self.max_retries + 1):
                final = attempt >= self.max_retries
                try:
                    response = client.get(url, params=params)
                except httpx.HTTPError as exc:
                    last_status, last_body = None, str(exc)
                    logger.warning("BambooHR GET %s failed (attempt %s/%s): %s", path, attempt, self.max_retries, exc)
                    if not final:
                        self._sleep(2**attempt)
                    continue
                if response.is_success:
                    try:
                        return response.json()
                    except ValueError:
                        return None
                last_status, last_body = response.status_code, response.text
                if response.status_code == 429:
                    raw = response.headers.get("Retry-After") or ""
                    wait = float(raw) if raw.strip().isdigit() else float(settings.ADO_DEFAULT_RETRY_AFTER_SECONDS)
                    logger.warning("Rate limited by BambooHR on %s. Waiting %ss.", path, wait)
                    if not final:
                        self._sleep(wait)
                    continue
                logger.error("BambooHR API error status=%s path=%s attempt=%s", response.status_code, path, attempt)
                if not final:
                    self._sleep(2**attempt)

        raise BambooHRRequestError(
            f"BambooHR request failed after {self.max_retries} attempts: {(last_body or '')[:500]}",
            endpoint=url,
            attempts=self.max_retries,
            response_status=last_status,
            response_body=last_body,
        )

    def get_directory(self) -> tuple[list[DirectoryEmployee], int]:
        """Return decoded directory employees and the number of rows that failed to decode."""
        data = self._get("/v1/employees/directory", {"fields": DIRECTORY_FIELDS})
        rows = data.get("employees") if isinstance(data, dict) else None
        employees: list[DirectoryEmployee] = []
        rejected = 0
        for row in rows or []:
            try:
                employees.append(DirectoryEmployee.model_validate(row))
            except ValidationError as exc:
                rejected += 1
                logger.warning("Skipping malformed BambooHR employee: %s", exc.errors()[:3])
        return employees, rejected

    def get_time_off_requests(
        self,
        start: dt.date,
        end: dt.date,
        *,
        status: str | None = None,
    ) -> tuple[list[TimeOffRequest], int]:
        params: dict[str, Any] = {"start": start.isoformat(), "end": end.isoformat()}
        if status:
            params["status"] = status
        data = self._get("/v1/time_off/requests", params)
        requests: list[TimeOffRequest] = []
        rejected = 0
        for row in data if isinstance(data, list) else []:
            try:
                requests.append(TimeOffRequest.model_validate(row))
            except ValidationError as exc:
                rejected += 1
                logger.warning("Skipping malformed BambooHR time-off request: %s", exc.errors()[:3])
        return requests, rejected
