"""Pytest configuration and shared fixtures."""

import base64
import hashlib
import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import httpx
import pytest

from moments.images import ImagePipeline
from moments.llm.gateway import Classification
from moments.orchestrator import Orchestrator
from moments.session import PrincipalSession
from moments.store.github import GitHubStore

OWNER_ID = 4242
TZ = "Europe/Amsterdam"
FIXED_NOW = datetime(2026, 10, 18, 9, 30, 15, tzinfo=ZoneInfo(TZ))


class FakeGitHub:
    """In-memory GitHub contents API (GET/PUT with sha checks)."""

    prefix = "/repos/owner/repo/contents/"

    def __init__(self):
        self.files: dict[str, tuple[bytes, str]] = {}
        self.puts: list[tuple[str, str]] = []
        self.fail_paths: set[str] = set()
        # GET answers 404 for these while PUT still sees the file (a lost create race)
        self.hidden_paths: set[str] = set()

    def seed(self, path: str, text: str) -> str:
        sha = hashlib.sha1(f"seed:{path}:{text}".encode()).hexdigest()
        self.files[path] = (text.encode("utf-8"), sha)
        return sha

    def text(self, path: str) -> str:
        return self.files[path][0].decode("utf-8")

    def sha(self, path: str) -> str:
        return self.files[path][1]

    def handler(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path.startswith(self.prefix)
        path = request.url.path[len(self.prefix):]

        if path in self.fail_paths:
            return httpx.Response(500, json={"message": "Server Error"})

        if request.method == "GET":
            if path not in self.files or path in self.hidden_paths:
                return httpx.Response(404, json={"message": "Not Found"})
            raw, sha = self.files[path]
            return httpx.Response(200, json={
                "type": "file",
                "path": path,
                "sha": sha,
                "encoding": "base64",
                "content": base64.b64encode(raw).decode("ascii"),
            })

        if request.method == "PUT":
            body = json.loads(request.content)
            current = self.files.get(path)
            sha = body.get("sha")
            if current and not sha:
                return httpx.Response(422, json={"message": "Invalid request.\n\n\"sha\" wasn't supplied."})
            if sha and (current is None or current[1] != sha):
                return httpx.Response(409, json={"message": f"{path} does not match {sha}"})
            raw = base64.b64decode(body["content"])
            new_sha = hashlib.sha1(raw + str(len(self.puts)).encode()).hexdigest()
            self.files[path] = (raw, new_sha)
            self.puts.append((path, body["message"]))
            return httpx.Response(200 if current else 201, json={"content": {"path": path, "sha": new_sha}})

        return httpx.Response(405)


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingResponder:
    """Collects everything the orchestrator sends."""

    def __init__(self):
        self.messages: list[tuple[str, list]] = []

    async def send_text(self, text: str) -> None:
        self.messages.append((text, []))

    async def send_choices(self, text: str, choices) -> None:
        self.messages.append((text, list(choices)))

    @property
    def texts(self) -> list[str]:
        return [t for t, _ in self.messages]

    @property
    def last_text(self) -> str:
        return self.messages[-1][0]

    @property
    def last_choices(self) -> list:
        for _, choices in reversed(self.messages):
            if choices:
                return choices
        return []


@pytest.fixture
def owner_id():
    return OWNER_ID


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def store(github):
    return GitHubStore(
        token="ghp_test",
        owner="owner",
        repo="repo",
        timezone=TZ,
        clock=lambda: FIXED_NOW,
        transport=httpx.MockTransport(github.handler),
    )


@pytest.fixture
def downloader():
    return AsyncMock(return_value=b"\x89PNG\r\n\x1a\nfake-image")


@pytest.fixture
def images(store, downloader):
    return ImagePipeline(store, downloader, url_prefix="/images/moments", timezone=TZ, clock=lambda: FIXED_NOW)


@pytest.fixture
def gateway():
    gw = MagicMock()
    gw.classify = AsyncMock(return_value=Classification(label="content"))
    gw.review = AsyncMock()
    gw.craft = AsyncMock()
    gw.execute_edit = AsyncMock()
    return gw


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(clock):
    return PrincipalSession(ttl_seconds=300, clock=clock)


@pytest.fixture
def orchestrator(gateway, store, images, session):
    return Orchestrator(
        gateway=gateway,
        store=store,
        images=images,
        authorized_user_id=OWNER_ID,
        session=session,
        recent_days=3,
    )


@pytest.fixture
def reply():
    return RecordingResponder()
