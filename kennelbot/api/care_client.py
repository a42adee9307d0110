# kennelbot/api/care_client.py
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List

import httpx
from pydantic import ValidationError

from kennelbot.care.models import CareCategory, CareEvent, CareLog, CareRecord, DogCareStatus
from kennelbot.config import CareApiConfig

logger = logging.getLogger(__name__)

RETRY_BACKOFFS = [0.5, 1.0, 2.0, 4.0]
MAX_ATTEMPTS = 4


class CareAPIError(RuntimeError):
    """Care API call failed."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


def _items(payload: Any) -> list:
    # Endpoints answer either with a bare list or with {"items": [...]} / {"data": [...]}.
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("items", "data", "result"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


@dataclass
class CareApiClient:
    base_url: str
    api_key: str = ""
    timeout_s: float = 20.0
    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        self._http_client = httpx.AsyncClient(
            base_url=self.base_url.rstrip("/"),
            timeout=self.timeout_s,
            headers=headers,
            transport=self.transport,
        )

    @classmethod
    def from_config(cls, cfg: CareApiConfig) -> "CareApiClient":
        return cls(base_url=cfg.base_url, api_key=cfg.api_key, timeout_s=cfg.timeout_s)

    async def aclose(self) -> None:
        await self._http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> Any:
        """Send a request with retries on transport errors, 429 and 5xx."""

        suffix = path if path.startswith("/") else f"/{path}"
        r: httpx.Response | None = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                r = await self._http_client.request(method, suffix, params=params, json=json)
            except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as exc:
                if attempt >= MAX_ATTEMPTS:
                    raise CareAPIError(f"{method} {suffix} failed: {exc}") from exc

                delay = RETRY_BACKOFFS[min(attempt - 1, len(RETRY_BACKOFFS) - 1)] + random.uniform(0, 0.25)
                logger.warning(
                    "Care API %s %s retry %s/%s after %.2fs due to %s",
                    method,
                    suffix,
                    attempt,
                    MAX_ATTEMPTS,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
                continue

            status = r.status_code
            retryable_status = status == 429 or status in {500, 502, 503, 504}
            if retryable_status and attempt < MAX_ATTEMPTS:
                retry_after: float | None = None
                if status == 429:
                    try:
                        retry_after = float(r.headers.get("Retry-After", ""))
                    except ValueError:
                        retry_after = None

                delay = retry_after if retry_after is not None else RETRY_BACKOFFS[min(attempt - 1, len(RETRY_BACKOFFS) - 1)]
                delay += random.uniform(0, 0.25)
                logger.warning(
                    "Care API %s %s retry %s/%s on HTTP %s in %.2fs",
                    method,
                    suffix,
                    attempt,
                    MAX_ATTEMPTS,
                    status,
                    delay,
                )
                await asyncio.sleep(delay)
                continue

            break

        if r is None:
            raise CareAPIError("HTTP client did not return a response")

        status = r.status_code
        if status >= 400:
            logger.warning("Care API %s %s -> HTTP %s: %s", method, suffix, status, r.text[:500])
            raise CareAPIError(f"{method} {suffix} -> HTTP {status}", status=status)

        if status == 204 or not r.content:
            return None

        try:
            return r.json()
        except ValueError as exc:
            logger.error("Care API %s %s -> JSON decode failed: %r", method, suffix, r.text[:500])
            raise CareAPIError(f"{method} {suffix}: invalid JSON", status=status) from exc

    # ---------- Dogs ----------

    async def fetch_dogs_with_care_status(self, day: date) -> List[DogCareStatus]:
        payload = await self._request("GET", "/dogs/care-status", params={"date": day.isoformat()})
        dogs: List[DogCareStatus] = []
        for raw in _items(payload):
            try:
                dogs.append(DogCareStatus.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping malformed dog care status %r: %s", raw, exc)
        return dogs

    # ---------- Care logs ----------

    async def fetch_care_logs(self, day: date, category: CareCategory | None = None) -> List[CareLog]:
        params: Dict[str, Any] = {"date": day.isoformat()}
        if category is not None:
            params["category"] = category.value
        payload = await self._request("GET", "/care-logs", params=params)
        logs: List[CareLog] = []
        for raw in _items(payload):
            try:
                logs.append(CareLog.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping malformed care log %r: %s", raw, exc)
        return logs

    async def record_care(self, record: CareRecord) -> CareLog | None:
        payload = await self._request("POST", "/care-logs", json=record.model_dump(exclude_none=True))
        if isinstance(payload, dict):
            data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
            try:
                return CareLog.model_validate(data)
            except ValidationError:
                logger.debug("Care API returned no care log body for dog=%s", record.dog_id)
        return None

    async def delete_care_log(self, log_id: str) -> None:
        await self._request("DELETE", f"/care-logs/{log_id}")

    # ---------- Events ----------

    async def fetch_events(self, day: date | None = None) -> List[CareEvent]:
        params = {"date": day.isoformat()} if day else None
        payload = await self._request("GET", "/events", params=params)
        events: List[CareEvent] = []
        for raw in _items(payload):
            try:
                events.append(CareEvent.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping malformed event %r: %s", raw, exc)
        return events


__all__ = ["CareAPIError", "CareApiClient"]
