"""Image processing — picks image attachments out of a message,
downloads them through the transport, and uploads them to the store.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from .communication.inbound import AttachmentRef, InboundMessage
from .dates import time_of_day_stamp
from .store.github import GitHubStore

logger = logging.getLogger("moments.images")

SUPPORTED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
})

MIME_TO_EXT = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}

Downloader = Callable[[AttachmentRef], Awaitable[bytes]]


@dataclass(frozen=True)
class UploadedImage:
    filename: str
    embed: str          # markdown embed, e.g. ![image](/images/moments/2026-02-11-084037-1.png)


def extract_attachments(message: Optional[InboundMessage]) -> list[AttachmentRef]:
    """Return the attachments of a message that are supported images."""
    if message is None:
        return []
    return [a for a in message.attachments if a.mime_type in SUPPORTED_MIME_TYPES]


class ImagePipeline:
    """Download → name → upload, one attachment at a time.

    A failed transfer skips that attachment only; the batch carries on.
    The filename sequence number runs for the life of the pipeline, so
    photos arriving as separate messages in the same second (Telegram
    albums) never share a name.
    """

    def __init__(
        self,
        store: GitHubStore,
        downloader: Downloader,
        url_prefix: str = "/images/moments",
        timezone: str = "Europe/Amsterdam",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.downloader = downloader
        self.url_prefix = url_prefix.rstrip("/")
        self.timezone = timezone
        self._clock = clock
        self._sequence = itertools.count(1)

    def embed_for(self, filename: str) -> str:
        return f"![image]({self.url_prefix}/{filename})"

    async def fetch_and_upload(self, attachments: list[AttachmentRef], date_key: str) -> list[UploadedImage]:
        """Transfer every attachment; returns only the ones that made it."""
        if not attachments:
            return []

        stamp = time_of_day_stamp(self.timezone, self._clock() if self._clock else None)
        results: list[UploadedImage] = []

        for attachment in attachments:
            index = next(self._sequence)
            ext = MIME_TO_EXT.get(attachment.mime_type, "png")
            filename = f"{date_key}-{stamp}-{index}.{ext}"
            try:
                logger.info(f"Downloading {attachment.name} ({attachment.mime_type})...")
                data = await self.downloader(attachment)
                if not data:
                    raise ValueError("downloaded file is empty")
                await self.store.write_image(filename, data)
            except Exception as e:
                logger.warning(f"Skipping image {attachment.name}: {type(e).__name__}: {e}")
                continue
            results.append(UploadedImage(filename=filename, embed=self.embed_for(filename)))

        if len(results) < len(attachments):
            logger.warning(f"Uploaded {len(results)}/{len(attachments)} images for {date_key}")
        return results
