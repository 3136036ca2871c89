"""Async httpx client for a git-hosting "contents" API (GitHub v3 shape).

Stores one JSON snapshot per file. Reads return the file's blob SHA as the
version token; writes pass it back so the API rejects stale updates.

Endpoints:
    GET {api}/repos/{repo}/contents/{path}?ref={branch}
    PUT {api}/repos/{repo}/contents/{path}   {message, content, branch, sha?}
Auth: Authorization: Bearer <credential>
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from remindly.config import settings
from remindly.errors import (
    PayloadTooLarge,
    RemoteConflict,
    RemoteUnauthorized,
    RemoteUnavailable,
)
from remindly.schemas.sync import RemoteLocation

logger = logging.getLogger(__name__)

_ACCEPT = "application/vnd.github+json"


@dataclass(frozen=True)
class RemoteFile:
    """Decoded file content plus the version token it was read at."""

    content: Any
    version: str


# ── Transport encoding ───────────────────────────────────────────────


def encode_content(value: Any) -> str:
    """JSON-serialize ``value`` as UTF-8 and base64 it for transport."""
    raw = json.dumps(value, ensure_ascii=False, indent=2).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_content(text: str) -> Any:
    """Inverse of encode_content. Tolerates the line breaks the API inserts."""
    raw = base64.b64decode("".join(text.split()), validate=True)
    return json.loads(raw.decode("utf-8"))


# ── Client ───────────────────────────────────────────────────────────


class RemoteFileStore:
    """Thin async wrapper around the contents API for one credential.

    No retries: a conflict or failure is reported once and the caller decides.
    """

    def __init__(
        self,
        credential: str,
        *,
        api_url: str | None = None,
        timeout: float | None = None,
        max_bytes: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credential = credential
        self._api_url = (api_url or settings.remote.github_api_url).rstrip("/")
        self._timeout = httpx.Timeout(timeout or settings.remote.remote_timeout)
        self._max_bytes = max_bytes or settings.remote.remote_max_bytes
        self._transport = transport

    async def get(self, location: RemoteLocation) -> RemoteFile | None:
        """Read and decode the file. Returns None if it does not exist yet."""
        response = await self._request("GET", location, params={"ref": location.branch})
        if response.status_code == 404:
            logger.debug("Remote file %s not found on %s@%s", location.path, location.repo, location.branch)
            return None
        self._raise_for_status(response, location)

        payload = self._json_object(response, location)
        if payload.get("encoding") != "base64":
            # Files above the API's inline limit come back without content
            msg = f"Remote file {location.path} has no inline content (encoding={payload.get('encoding')!r})"
            raise RemoteUnavailable(msg)

        sha = payload.get("sha")
        if not isinstance(sha, str) or not sha:
            msg = f"Remote file {location.path} came back without a version"
            raise RemoteUnavailable(msg)

        encoded = payload.get("content", "")
        if not isinstance(encoded, str):
            msg = f"Remote file {location.path} has non-text content"
            raise RemoteUnavailable(msg)
        try:
            content = decode_content(encoded)
        except ValueError as exc:
            msg = f"Remote file {location.path} is not valid base64 JSON"
            raise RemoteUnavailable(msg) from exc

        return RemoteFile(content=content, version=sha)

    async def put(
        self,
        location: RemoteLocation,
        content: Any,
        message: str,
        expected_version: str | None = None,
    ) -> str:
        """Write ``content`` to the file and return the new version token.

        ``expected_version`` must be the version from the last read of this
        file; None means "the file must not exist yet".
        """
        encoded = encode_content(content)
        if len(encoded) > self._max_bytes:
            msg = f"Encoded snapshot is {len(encoded)} bytes, limit is {self._max_bytes}"
            raise PayloadTooLarge(msg)

        body: dict[str, Any] = {
            "message": message,
            "content": encoded,
            "branch": location.branch,
        }
        if expected_version:
            body["sha"] = expected_version

        response = await self._request("PUT", location, json=body)

        # 409: sha mismatch. 422 without a sha: the file appeared since we looked.
        if response.status_code == 409 or (response.status_code == 422 and not expected_version):
            msg = f"Remote file {location.path} changed since it was read"
            raise RemoteConflict(msg)
        self._raise_for_status(response, location)

        committed = self._json_object(response, location).get("content")
        new_version = committed.get("sha") if isinstance(committed, dict) else None
        if not isinstance(new_version, str) or not new_version:
            msg = f"Remote store accepted the write to {location.path} but returned no version"
            raise RemoteUnavailable(msg)

        logger.info("Wrote %s to %s@%s (version %s)", location.path, location.repo, location.branch, new_version[:7])
        return new_version

    # ── Internals ────────────────────────────────────────────────────

    def _url(self, location: RemoteLocation) -> str:
        return f"{self._api_url}/repos/{location.repo}/contents/{quote(location.path, safe='/')}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._credential}",
            "Accept": _ACCEPT,
        }

    async def _request(self, method: str, location: RemoteLocation, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                return await client.request(method, self._url(location), headers=self._headers(), **kwargs)
        except httpx.TimeoutException as exc:
            msg = f"Remote store timed out ({method} {location.path})"
            raise RemoteUnavailable(msg) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            msg = f"Remote store unreachable ({method} {location.path}): {exc}"
            raise RemoteUnavailable(msg) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, location: RemoteLocation) -> None:
        if response.is_success:
            return

        try:
            body = response.json()
            detail = body.get("message", "") if isinstance(body, dict) else ""
        except ValueError:
            detail = response.text[:200]

        if response.status_code in (401, 403):
            msg = f"Remote store rejected the credential for {location.repo}: {detail}"
            raise RemoteUnauthorized(msg)

        msg = f"Remote store error {response.status_code} for {location.path}: {detail}"
        raise RemoteUnavailable(msg)

    @staticmethod
    def _json_object(response: httpx.Response, location: RemoteLocation) -> dict[str, Any]:
        """Decode a 2xx body that must be a single file object."""
        try:
            payload = response.json()
        except ValueError as exc:
            msg = f"Remote store returned a non-JSON body for {location.path}"
            raise RemoteUnavailable(msg) from exc
        if not isinstance(payload, dict):
            # A directory path lists its entries instead
            msg = f"Remote store returned a {type(payload).__name__} for {location.path}, expected a file"
            raise RemoteUnavailable(msg)
        return payload
