"""Jules REST client -- thin aiohttp wrapper over the v1alpha endpoints.

No retries and no pagination loops: every method is a single request.
Retrying is the caller's decision (the cron engine retries scheduled
firings; interactive tool calls surface errors immediately).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, TypeVar
from urllib.parse import quote

import aiohttp
from pydantic import BaseModel, ValidationError

from ..config.settings import DEFAULT_API_BASE_URL
from .jules_models import (
    CreateSessionRequest,
    ListActivitiesResponse,
    ListSessionsResponse,
    ListSourcesResponse,
    Session,
    Source,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_PERMANENT_EXEMPT = frozenset({408, 429})


class JulesAPIError(Exception):
    """Raised for non-2xx responses and transport failures."""

    def __init__(
        self, message: str, status_code: int | None = None, response: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    @property
    def is_permanent(self) -> bool:
        """4xx responses other than 408/429 will not succeed on retry."""
        return (
            self.status_code is not None
            and 400 <= self.status_code < 500
            and self.status_code not in _PERMANENT_EXEMPT
        )


class JulesClient:
    """Authenticated client for ``https://jules.googleapis.com/v1alpha``."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 60.0,
        http: aiohttp.ClientSession | None = None,
    ) -> None:
        if not api_key:
            raise ValueError(
                "JULES_API_KEY environment variable is required. "
                "Generate a key at https://jules.google/settings"
            )
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._http = http
        self._owns_http = http is None

    async def close(self) -> None:
        if self._http is not None and self._owns_http and not self._http.closed:
            await self._http.close()
        if self._owns_http:
            self._http = None

    def _session(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_http = True
        return self._http

    async def _request(
        self,
        method: str,
        endpoint: str,
        model: type[M],
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> M:
        url = f"{self._base_url}{endpoint}"
        kwargs: dict[str, Any] = {
            "headers": {"X-Goog-Api-Key": self._api_key},
            "timeout": self._timeout,
        }
        if params:
            kwargs["params"] = params
        if body is not None:
            kwargs["data"] = json.dumps(body)
            kwargs["headers"]["Content-Type"] = "application/json"

        logger.debug("[jules] %s %s", method, endpoint)
        try:
            async with self._session().request(method, url, **kwargs) as resp:
                if resp.status < 200 or resp.status >= 300:
                    text = await resp.text()
                    logger.warning(
                        "[jules] %s %s -> HTTP %s: %s", method, endpoint, resp.status, text[:300],
                    )
                    raise JulesAPIError(
                        f"Jules API error: {resp.status} {resp.reason or ''}".rstrip(),
                        resp.status,
                        text,
                    )
                data = await resp.json(content_type=None)
        except JulesAPIError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise JulesAPIError(f"Network error: {exc or type(exc).__name__}") from exc

        try:
            return model.model_validate(data or {})
        except ValidationError as exc:
            raise JulesAPIError(f"Unexpected response from {endpoint}: {exc}") from exc

    # -- sources -------------------------------------------------------------

    async def list_sources(self, page_size: int = 100) -> ListSourcesResponse:
        return await self._request(
            "GET", "/sources", ListSourcesResponse, params={"pageSize": page_size},
        )

    async def get_source(self, source_name: str) -> Source:
        return await self._request("GET", f"/{quote(source_name)}", Source)

    # -- sessions ------------------------------------------------------------

    async def create_session(self, request: CreateSessionRequest) -> Session:
        return await self._request("POST", "/sessions", Session, body=request.to_api())

    async def list_sessions(self, page_size: int = 20) -> ListSessionsResponse:
        return await self._request(
            "GET", "/sessions", ListSessionsResponse, params={"pageSize": page_size},
        )

    async def get_session(self, session_id: str) -> Session:
        return await self._request("GET", f"/sessions/{quote(session_id, safe='')}", Session)

    async def approve_plan(self, session_id: str) -> Session:
        return await self._request(
            "POST", f"/sessions/{quote(session_id, safe='')}:approvePlan", Session, body={},
        )

    async def send_message(self, session_id: str, prompt: str) -> Session:
        return await self._request(
            "POST",
            f"/sessions/{quote(session_id, safe='')}:sendMessage",
            Session,
            body={"prompt": prompt},
        )

    async def list_activities(
        self, session_id: str, page_size: int = 50,
    ) -> ListActivitiesResponse:
        return await self._request(
            "GET",
            f"/sessions/{quote(session_id, safe='')}/activities",
            ListActivitiesResponse,
            params={"pageSize": page_size},
        )
