"""Person Directory client.

Cases and sessions reference people (parties, mediators, attendees) by id
only. Those ids are resolved against the external Person Directory over
HTTP; services depend on the PersonDirectory protocol so tests can swap in
an in-memory directory.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol
from urllib.parse import quote

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from reconciliation.core.exceptions import InternalError
from reconciliation.models.domain import PersonProfile

if TYPE_CHECKING:
    from reconciliation.core.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


class PersonDirectory(Protocol):
    """Lookup contract for the external person registry."""

    async def exists(self, person_id: str) -> bool: ...

    async def lookup(self, person_id: str) -> PersonProfile | None: ...


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


class HttpPersonDirectory:
    """Async HTTP client for the Person Directory REST API.

    GET {base}/persons/{id} returns the person record; 404 means unknown.
    Transport errors and 5xx responses are retried with exponential backoff.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._base_url = settings.person_directory_url.rstrip("/")
        self._api_key = settings.person_directory_api_key
        self._client = http_client or httpx.AsyncClient(timeout=settings.person_directory_timeout)
        self._owns_client = http_client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def close(self) -> None:
        """Close the underlying HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        reraise=True,
    )
    async def _get_person(self, person_id: str) -> dict[str, object] | None:
        url = f"{self._base_url}/persons/{quote(person_id, safe='')}"
        logger.debug("person_directory_request", url=url)
        response = await self._client.get(url, headers=self._headers())
        if response.status_code == 404:
            return None
        response.raise_for_status()
        body = response.json()
        # The directory wraps records as {"data": {...}}; accept bare records too.
        record = body.get("data", body) if isinstance(body, dict) else None
        return record if isinstance(record, dict) else None

    async def lookup(self, person_id: str) -> PersonProfile | None:
        """Fetch a person profile, or None when the directory does not know the id."""
        try:
            record = await self._get_person(person_id)
        except (httpx.HTTPStatusError, httpx.TransportError) as exc:
            logger.error(
                "person_directory_unavailable",
                person_id=person_id,
                error_type=type(exc).__name__,
            )
            raise InternalError(
                "Person directory lookup failed",
                details={"person_id": person_id},
            ) from exc

        if record is None:
            return None
        return PersonProfile.model_validate({**record, "person_id": person_id})

    async def exists(self, person_id: str) -> bool:
        return await self.lookup(person_id) is not None
