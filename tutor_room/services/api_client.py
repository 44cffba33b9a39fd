"""
HTTP client for the remote tutoring backend.

Every collaborator (dialogue, speech, analysis, language) lives behind the
same REST API, so all gateways share one client and one aiohttp session.
In mock mode the scripted payloads from ``tutor_room.mock_data`` are returned
instead and nothing touches the network.
"""

import asyncio
import logging
import re
import time

import aiohttp

from tutor_room.config import DEFAULT_TIMEOUT_S, MOCK_MODE, TUTOR_API_TOKEN, TUTOR_API_URL
from tutor_room.errors import CollaboratorError

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:[^,]*;base64,")

MESSAGE_PATH = "/api/conversation/message"


def unwrap_data(body: dict) -> dict:
    """Return the ``data`` envelope of a response body, or the body itself."""
    data = body.get("data") if isinstance(body, dict) else None
    if isinstance(data, dict):
        return data
    return body if isinstance(body, dict) else {}


def strip_data_url_prefix(payload: str) -> str:
    """Drop a leading ``data:<mime>;base64,`` header from an encoded payload."""
    return _DATA_URL_PREFIX.sub("", payload or "", count=1)


class TutorApiClient:
    """Thin JSON/multipart client with per-call deadlines."""

    def __init__(self, base_url: str | None = None, auth_token: str | None = None, mock_mode: bool | None = None):
        self.mock_mode = MOCK_MODE if mock_mode is None else mock_mode
        self._base_url = (base_url or TUTOR_API_URL).rstrip("/")
        self._auth_token = TUTOR_API_TOKEN if auth_token is None else auth_token
        self._session: aiohttp.ClientSession | None = None
        self._mock_turn = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _reset_session(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self) -> dict:
        if self._auth_token:
            return {"Authorization": f"Bearer {self._auth_token}"}
        return {}

    async def post_json(self, path: str, payload: dict, timeout: float = DEFAULT_TIMEOUT_S) -> dict:
        if self.mock_mode:
            return self._mock_post(path, payload)
        return await self._post(path, timeout, json=payload)

    async def post_form(
        self,
        path: str,
        fields: dict[str, str],
        files: dict[str, tuple[str, bytes]] | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> dict:
        """POST multipart form data. ``files`` maps field name to (filename, bytes)."""
        if self.mock_mode:
            return self._mock_post(path, dict(fields))
        form = aiohttp.FormData()
        for name, value in fields.items():
            form.add_field(name, value)
        for name, (filename, data) in (files or {}).items():
            form.add_field(name, data, filename=filename, content_type="application/octet-stream")
        return await self._post(path, timeout, data=form)

    def _mock_post(self, path: str, payload: dict) -> dict:
        from tutor_room.mock_data import mock_response

        turn = self._mock_turn
        if path == MESSAGE_PATH:
            self._mock_turn += 1
        body = mock_response(path, payload, turn=turn)
        return self._check_body(path, body)

    async def _post(self, path: str, timeout: float, **kwargs) -> dict:
        url = f"{self._base_url}{path}"
        t0 = time.perf_counter()
        try:
            session = await self._get_session()
            async with session.post(
                url, headers=self._headers(), timeout=aiohttp.ClientTimeout(total=timeout), **kwargs
            ) as resp:
                try:
                    body = await resp.json(content_type=None)
                except ValueError:
                    body = None
                if resp.status >= 400:
                    detail = body.get("error") if isinstance(body, dict) else None
                    logger.warning("POST %s → HTTP %d", path, resp.status)
                    raise CollaboratorError(detail or f"{path} returned HTTP {resp.status}", status=resp.status)
        except asyncio.TimeoutError:
            logger.warning("POST %s timed out after %.0fs", path, timeout)
            # Stale connection, start fresh next call
            await self._reset_session()
            raise CollaboratorError(f"{path} timed out after {timeout:.0f}s") from None
        except aiohttp.ClientError as exc:
            logger.warning("POST %s failed: %s", path, exc)
            await self._reset_session()
            raise CollaboratorError(f"{path} failed: {exc}") from exc

        logger.debug("POST %s: %dms", path, int((time.perf_counter() - t0) * 1000))
        if not isinstance(body, dict):
            raise CollaboratorError(f"{path} returned a non-JSON body")
        return self._check_body(path, body)

    @staticmethod
    def _check_body(path: str, body: dict) -> dict:
        if body.get("success") is False:
            raise CollaboratorError(body.get("error") or f"{path} reported failure")
        return body

    async def close(self):
        await self._reset_session()
