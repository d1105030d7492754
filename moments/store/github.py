"""GitHub content store — reads/creates/updates dated moment files
and uploads images through the repository contents API.

Every write carries the revision token (blob sha) that was read before
the write was computed, so a concurrent change is rejected by GitHub
instead of being overwritten.
"""

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import httpx

from ..dates import date_key_days_ago, today_key

logger = logging.getLogger("moments.store.github")

ENTRY_SEPARATOR = "\n\n---\n\n"


class StoreError(Exception):
    """Base class for content store failures."""
    pass


class StoreConflict(StoreError):
    """The file changed (or appeared) since its revision token was read."""

    def __init__(self, path: str, message: str):
        super().__init__(message)
        self.path = path


class AppendConflict(StoreConflict):
    """A new entry lost a race with another write to the same day file."""
    pass


class StoreResponseError(StoreError):
    """GitHub answered with a shape we don't understand."""
    pass


@dataclass(frozen=True)
class DatedFile:
    date_key: str
    content: str
    revision_token: str


@dataclass(frozen=True)
class PublishResult:
    date_key: str
    created: bool
    url: str
    revision_token: str


def new_day_content(date_key: str, text: str) -> str:
    """First entry of a day, with the dated front matter header."""
    return f'---\ndate: "{date_key}"\n---\n\n{text.strip()}\n'


def append_entry_content(existing: str, text: str) -> str:
    """Existing day file with one more entry after a separator."""
    return existing.rstrip() + ENTRY_SEPARATOR + text.strip() + "\n"


class GitHubStore:
    """Dated text files and image blobs on one branch of one repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        branch: str = "main",
        moments_path: str = "content/moments",
        images_path: str = "static/images/moments",
        timezone: str = "Europe/Amsterdam",
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        clock: Optional[Callable[[], datetime]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.moments_path = moments_path.strip("/")
        self.images_path = images_path.strip("/")
        self.timezone = timezone
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._clock = clock
        self._transport = transport

    # ── Paths and dates ──────────────────────────────────────

    def _now(self) -> Optional[datetime]:
        return self._clock() if self._clock else None

    def today_key(self) -> str:
        return today_key(self.timezone, self._now())

    def date_key_days_ago(self, days_ago: int) -> str:
        return date_key_days_ago(days_ago, self.timezone, self._now())

    def file_path(self, date_key: str) -> str:
        return f"{self.moments_path}/{date_key}.md"

    def image_path(self, filename: str) -> str:
        return f"{self.images_path}/{filename}"

    def file_url(self, date_key: str) -> str:
        """Browser URL of a dated file."""
        return f"https://github.com/{self.owner}/{self.repo}/blob/{self.branch}/{self.file_path(date_key)}"

    # ── HTTP plumbing ────────────────────────────────────────

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _contents_url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/contents/{path}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, headers=self._headers(), transport=self._transport)

    async def _get(self, path: str) -> Optional[dict]:
        """Fetch contents metadata for a path. Returns None on 404."""
        async with self._client() as client:
            resp = await client.get(self._contents_url(path), params={"ref": self.branch})
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict) or not isinstance(data.get("sha"), str):
            raise StoreResponseError(f"Unexpected contents response for {path}")
        return data

    async def _put(self, path: str, raw: bytes, message: str, sha: Optional[str]) -> str:
        body = {
            "message": message,
            "content": base64.b64encode(raw).decode("ascii"),
            "branch": self.branch,
        }
        if sha:
            body["sha"] = sha

        async with self._client() as client:
            resp = await client.put(self._contents_url(path), json=body)

        if resp.status_code == 409:
            raise StoreConflict(path, f"{path} changed since it was read (stale revision)")
        if resp.status_code == 422 and not sha and "sha" in resp.text:
            raise StoreConflict(path, f"{path} already exists")
        resp.raise_for_status()

        data = resp.json()
        try:
            return data["content"]["sha"]
        except (KeyError, TypeError) as e:
            raise StoreResponseError(f"Unexpected write response for {path}") from e

    # ── Public API ───────────────────────────────────────────

    async def read(self, date_key: str) -> Optional[DatedFile]:
        """Read a dated file, or None if the day has no file."""
        path = self.file_path(date_key)
        data = await self._get(path)
        if data is None:
            return None
        if data.get("type", "file") != "file" or not isinstance(data.get("content"), str):
            raise StoreResponseError(f"{path} is not a file")
        try:
            content = base64.b64decode(data["content"]).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise StoreResponseError(f"Could not decode {path}") from e
        return DatedFile(date_key=date_key, content=content, revision_token=data["sha"])

    async def write(
        self,
        date_key: str,
        full_text: str,
        message: str,
        expected_revision: Optional[str] = None,
    ) -> str:
        """Write a dated file and return its new revision token.

        Without ``expected_revision`` the file must not exist yet; with it,
        GitHub rejects the write when the token is stale. Both cases raise
        StoreConflict.
        """
        path = self.file_path(date_key)
        logger.info(f"Writing {path} ({'update' if expected_revision else 'create'})")
        return await self._put(path, full_text.encode("utf-8"), message, expected_revision)

    async def write_image(self, filename: str, data: bytes) -> None:
        """Upload an image, replacing any existing blob at the same path."""
        path = self.image_path(filename)
        existing = await self._get(path)
        sha = existing["sha"] if existing else None
        await self._put(path, data, f"Add moment image {filename}", sha)
        logger.info(f"Uploaded image {path} ({len(data)} bytes)")

    async def append_entry(self, text: str, date_key: Optional[str] = None) -> PublishResult:
        """Append an entry to a day's file (today by default).

        Creates the file with its date header when the day has no entry yet.
        Losing a race with another write raises AppendConflict.
        """
        key = date_key or self.today_key()
        existing = await self.read(key)

        try:
            if existing:
                content = append_entry_content(existing.content, text)
                revision = await self.write(key, content, f"Add moment for {key}", existing.revision_token)
            else:
                content = new_day_content(key, text)
                revision = await self.write(key, content, f"Create moments for {key}")
        except StoreConflict as e:
            raise AppendConflict(e.path, str(e)) from e

        return PublishResult(
            date_key=key,
            created=existing is None,
            url=self.file_url(key),
            revision_token=revision,
        )

    async def read_recent(self, days: int = 3) -> list[DatedFile]:
        """Read today plus up to ``days`` days back. Most recent first."""
        keys = [self.date_key_days_ago(i) for i in range(days + 1)]
        files = await asyncio.gather(*(self.read(k) for k in keys))
        return [f for f in files if f is not None]
