"""
Transports

How a SyncClient reaches the event log store.

- InProcessTransport: direct calls on a store in the same process
- HttpTransport: the launch-day HTTP surface over httpx

read() raises TransportError on any failure; the client decides what a
failed poll means. write() never raises: transport failures come back
as WriteOutcome.network_failure.
"""

from __future__ import annotations
import logging
import math
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Mapping, Optional

import httpx

from ..contracts.base import ActorContext, ErrorCode, LogKind, ensure_utc, utc_now
from ..contracts.records import ReadBatch, WriteOutcome
from ..store.event_log import EventLogStore


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/launch-day"

DEFAULT_RETRY_AFTER_SECONDS = 5.0


class TransportError(Exception):
    """A read could not complete."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class EventLogTransport:
    """Async port onto an EventLogStore."""

    async def read(
        self,
        event_id: str,
        kind: LogKind,
        cursor: Optional[int] = None,
        limit: Optional[int] = None
    ) -> ReadBatch:
        raise NotImplementedError

    async def write(
        self,
        event_id: str,
        kind: LogKind,
        payload: Mapping[str, Any],
        actor: ActorContext
    ) -> WriteOutcome:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class InProcessTransport(EventLogTransport):

    def __init__(self, store: EventLogStore):
        self._store = store

    async def read(self, event_id, kind, cursor=None, limit=None) -> ReadBatch:
        return self._store.read(event_id, kind, cursor=cursor, limit=limit)

    async def write(self, event_id, kind, payload, actor) -> WriteOutcome:
        return self._store.write(event_id, kind, payload, actor)


def actor_headers(actor: ActorContext) -> Dict[str, str]:
    headers = {}
    if actor.actor_id:
        headers['X-Actor-Id'] = actor.actor_id
    if actor.session_id:
        headers['X-Session-Id'] = actor.session_id
    if actor.display_name:
        headers['X-Actor-Name'] = actor.display_name
    return headers


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> float:
    """
    Seconds to wait from a Retry-After header.

    Accepts delta-seconds or an HTTP-date; anything unreadable falls
    back to DEFAULT_RETRY_AFTER_SECONDS. Never negative.
    """
    if not value:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(0.0, seconds) if math.isfinite(seconds) else DEFAULT_RETRY_AFTER_SECONDS
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return DEFAULT_RETRY_AFTER_SECONDS
    if when is None:
        return DEFAULT_RETRY_AFTER_SECONDS
    return max(0.0, (ensure_utc(when) - (now or utc_now())).total_seconds())


class HttpTransport(EventLogTransport):
    """
    httpx client for the launch-day API.

    Every request is bounded by `timeout`. Pass `client` to share a
    connection pool or to mount an ASGI app in tests.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 8.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    def _path(self, event_id: str, kind: LogKind) -> str:
        return f"{API_PREFIX}/{event_id}/{kind.value}"

    async def read(self, event_id, kind, cursor=None, limit=None) -> ReadBatch:
        params = {}
        if cursor is not None:
            params['cursor'] = cursor
        if limit is not None:
            params['limit'] = limit

        try:
            response = await self._client.get(self._path(event_id, kind), params=params)
        except httpx.TimeoutException as e:
            raise TransportError(f"Read timed out: {e}", timed_out=True) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Read failed: {e}") from e

        if response.status_code != 200:
            raise TransportError(f"HTTP {response.status_code}")
        try:
            return ReadBatch.from_dict(response.json()['data'])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise TransportError(f"Malformed read response: {e}") from e

    async def write(self, event_id, kind, payload, actor) -> WriteOutcome:
        try:
            response = await self._client.post(
                self._path(event_id, kind),
                json=dict(payload),
                headers=actor_headers(actor),
            )
        except httpx.TimeoutException:
            return WriteOutcome.network_failure("Request timed out", timed_out=True)
        except httpx.HTTPError as e:
            return WriteOutcome.network_failure(f"Network error: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        if response.status_code == 200:
            try:
                return WriteOutcome.from_dict(body['data'])
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning("Malformed write response for %s: %r", kind.value, e)
                return WriteOutcome.network_failure(f"Malformed write response: {e!r}")

        error = body.get('error')
        if not isinstance(error, dict):
            error = {}

        if response.status_code == 429:
            retry_after = error.get('retry_after_seconds')
            if (not isinstance(retry_after, (int, float)) or isinstance(retry_after, bool)
                    or not math.isfinite(retry_after)):
                retry_after = parse_retry_after(response.headers.get('Retry-After'))
            return WriteOutcome.rate_limited(max(0.0, float(retry_after)))

        if response.status_code in (400, 409):
            code = error.get('code')
            return WriteOutcome.invalid(
                str(error.get('message') or f"HTTP {response.status_code}"),
                ErrorCode[code] if isinstance(code, str) and code in ErrorCode.__members__
                else ErrorCode.INVALID_PAYLOAD,
            )

        logger.warning("Unexpected HTTP %d writing %s", response.status_code, kind.value)
        return WriteOutcome.network_failure(f"HTTP {response.status_code}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
