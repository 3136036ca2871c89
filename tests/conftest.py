"""Shared fixtures: temp SQLite store, fake contents API, fake webhook, fake Redis."""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from remindly.context import AppContext, build_context
from remindly.db.engine import build_engine, build_session_factory
from remindly.models import Base
from remindly.schemas.settings import SettingsUpdate
from remindly.security.encryption import CredentialCipher, FieldEncryptor
from remindly.settings.service import SettingsService
from remindly.storage.local import LocalRecordStore
from remindly.storage.remote import RemoteFileStore, decode_content, encode_content

API_URL = "https://api.test"
REPO = "acme/remindly-data"
TOKEN = "ghp_testtoken1234"

_EMIT_TARGETS = (
    "remindly.sync.coordinator.emit",
    "remindly.appointments.service.emit",
    "remindly.settings.service.emit",
    "remindly.reminders.dispatcher.emit",
)


# ── Fakes ────────────────────────────────────────────────────────────


class FakeContentsAPI:
    """In-memory git-hosting contents API with sha-based optimistic concurrency."""

    def __init__(self) -> None:
        self.files: dict[tuple[str, str, str], tuple[str, str]] = {}
        self.requests: list[httpx.Request] = []
        self.commit_messages: list[str] = []
        self.fail_status: int | None = None
        self.raise_exc: Exception | None = None
        self._counter = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_exc is not None:
            raise self.raise_exc
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"message": "simulated failure"})

        prefix, path = request.url.path.split("/contents/", 1)
        repo = prefix.removeprefix("/repos/")

        if request.method == "GET":
            entry = self.files.get((repo, request.url.params.get("ref", "main"), path))
            if entry is None:
                return httpx.Response(404, json={"message": "Not Found"})
            content, sha = entry
            # The real API wraps base64 at 60 columns
            wrapped = "\n".join(content[i:i + 60] for i in range(0, len(content), 60))
            return httpx.Response(200, json={"sha": sha, "encoding": "base64", "content": wrapped})

        body = json.loads(request.content)
        key = (repo, body["branch"], path)
        current = self.files.get(key)
        sent_sha = body.get("sha")
        if current is not None and sent_sha is None:
            return httpx.Response(422, json={"message": 'Invalid request. "sha" wasn\'t supplied.'})
        if current is not None and sent_sha != current[1]:
            return httpx.Response(409, json={"message": f"{path} does not match {sent_sha}"})
        if current is None and sent_sha is not None:
            return httpx.Response(409, json={"message": f"{path} does not exist"})

        new_sha = self._next_sha(body["content"])
        self.files[key] = (body["content"], new_sha)
        self.commit_messages.append(body["message"])
        return httpx.Response(201 if current is None else 200, json={"content": {"path": path, "sha": new_sha}})

    def seed(self, path: str, value: Any, *, repo: str = REPO, branch: str = "main") -> str:
        """Write a file as a concurrent writer would. Returns its sha."""
        encoded = encode_content(value)
        sha = self._next_sha(encoded)
        self.files[(repo, branch, path)] = (encoded, sha)
        return sha

    def read(self, path: str, *, repo: str = REPO, branch: str = "main") -> Any:
        content, _ = self.files[(repo, branch, path)]
        return decode_content(content)

    def _next_sha(self, content: str) -> str:
        self._counter += 1
        return hashlib.sha1(f"{self._counter}:{content}".encode()).hexdigest()


class FakeWebhook:
    """Reminder webhook double. Set ``status_code`` or ``raise_exc`` per test."""

    def __init__(self) -> None:
        self.status_code = 200
        self.raise_exc: Exception | None = None
        self.calls: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.raise_exc is not None:
            raise self.raise_exc
        return httpx.Response(self.status_code, text="ok" if self.status_code < 400 else "workflow error")


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the in-flight guard."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool | None:
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def delete(self, key: str) -> int:
        return 1 if self.store.pop(key, None) is not None else 0


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def mock_emit():
    """Keep the event bus out of unit tests; yields {target: AsyncMock}."""
    with contextlib.ExitStack() as stack:
        yield {
            target: stack.enter_context(patch(target, new_callable=AsyncMock))
            for target in _EMIT_TARGETS
        }


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'remindly.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture()
def local_store(session_factory) -> LocalRecordStore:
    return LocalRecordStore(session_factory)


@pytest.fixture()
def contents_api() -> FakeContentsAPI:
    return FakeContentsAPI()


@pytest.fixture()
def remote_factory(contents_api):
    transport = httpx.MockTransport(contents_api.handler)

    def _factory(credential: str) -> RemoteFileStore:
        return RemoteFileStore(credential, api_url=API_URL, timeout=2.0, transport=transport)

    return _factory


@pytest.fixture()
def webhook() -> FakeWebhook:
    return FakeWebhook()


@pytest.fixture()
def cipher() -> CredentialCipher:
    return CredentialCipher(FieldEncryptor(os.urandom(32)))


@pytest.fixture()
def ctx(session_factory, remote_factory, webhook, cipher) -> AppContext:
    return build_context(
        session_factory=session_factory,
        redis=FakeRedis(),
        remote_factory=remote_factory,
        cipher=cipher,
        webhook_timeout=1.0,
        webhook_transport=httpx.MockTransport(webhook.handler),
    )


@pytest.fixture()
def enable_remote(ctx):
    """Async helper switching ``ctx`` to local+remote persistence against the fake API."""

    async def _enable(webhook_url: str = "") -> None:
        changes: dict[str, Any] = {
            "use_remote": True,
            "remote_credential": TOKEN,
            "remote_repo": REPO,
            "remote_branch": "main",
        }
        if webhook_url:
            changes["webhook_url"] = webhook_url
        await SettingsService(ctx).update(SettingsUpdate(**changes))

    return _enable
