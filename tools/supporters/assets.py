"""Avatar download layer – fetch, sniff and store supporter images."""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import struct
from contextlib import nullcontext
from pathlib import Path
from urllib.parse import quote

import httpx
from PIL import Image, UnidentifiedImageError

from .config import AssetConfig
from .errors import AssetError
from .models import Supporter, SupporterDataset

logger = logging.getLogger("supporters.assets")

# Blank #f9f9f9 PNGs from https://png-pixel.com/, used whenever the avatar
# endpoint answers with something that is not a PNG.
BLANK_64 = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAEAAAABACAQAAAAAYLlVAAAAPElEQVR42u3OMQEAAAgDINc/sZfG2AMJyN5URUBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQKAdeHK9fkGpx7l4AAAAAElFTkSuQmCC"
)
BLANK_32 = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAACAAAAAgCAQAAADZc7J/AAAAIUlEQVR42mP8+Z+BIsA4asCoAaMGjBowasCoAaMGDDcDAC5IPyHFDzg6AAAAAElFTkSuQmCC"
)
BLANK_64_SIZE = (64, 64)

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

# Characters encodeURI() leaves alone, plus "%" so pre-encoded URLs survive.
_URI_SAFE = ";,/?:@&=+$!*'()#%[]"


def encode_uri(url: str) -> str:
    return quote(url, safe=_URI_SAFE)


def inspect_image(data: bytes) -> tuple[str | None, tuple[int, int] | None]:
    """Identify an image by its bytes.

    Returns (format, (width, height)), or (None, None) when Pillow does not
    recognise the payload. Any declared content type is ignored.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.format, img.size
    except Image.DecompressionBombError:
        # Pillow parsed the header but refuses the declared size
        return _png_header(data)
    except (UnidentifiedImageError, OSError, ValueError):
        return None, None


def _png_header(data: bytes) -> tuple[str | None, tuple[int, int] | None]:
    if data[:8] != PNG_MAGIC or data[12:16] != b"IHDR" or len(data) < 24:
        return None, None
    width, height = struct.unpack(">II", data[16:24])
    return "PNG", (width, height)


class AssetSync:
    """Download every supporter's avatar into the output directory."""

    def __init__(self, cfg: AssetConfig | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.cfg = cfg or AssetConfig.from_env()
        self._transport = transport
        self.stats = {"images": 0, "placeholders": 0}

    # ── helpers ──────────────────────────────────────────────────

    def prepare_output_dir(self) -> Path:
        self.cfg.output_dir.mkdir(parents=True, exist_ok=True)
        return self.cfg.output_dir

    def asset_path(self, supporter: Supporter) -> Path:
        sid = supporter.id
        if not sid or sid in (".", "..") or "/" in sid or "\\" in sid:
            raise AssetError(sid, supporter.avatar or "", "id cannot be used as a file name")
        return self.cfg.output_dir / f"{sid}.png"

    async def _get_bytes(self, client: httpx.AsyncClient, supporter: Supporter) -> bytes:
        url = encode_uri(supporter.avatar or "")
        for attempt in range(1, self.cfg.max_retries + 1):
            try:
                resp = await client.get(url)
                if resp.is_error:
                    logger.warning("%d: %s", resp.status_code, url)
                return resp.content
            except httpx.TransportError as exc:
                logger.warning("Attempt %d/%d failed for %s: %s", attempt, self.cfg.max_retries, url, exc)
                if attempt == self.cfg.max_retries:
                    raise AssetError(supporter.id, url, str(exc)) from exc
                await asyncio.sleep(2 ** attempt)
        raise AssetError(supporter.id, url, "max_retries must be at least 1")

    # ── per-supporter unit ───────────────────────────────────────

    async def _sync_one(
        self,
        client: httpx.AsyncClient,
        supporter: Supporter,
        placeholder: bytes,
        *,
        measure: bool,
    ) -> None:
        path = self.asset_path(supporter)
        body = await self._get_bytes(client, supporter) if supporter.avatar else b""
        fmt, size = inspect_image(body)

        if fmt == "PNG":
            data = body
            self.stats["images"] += 1
            if measure and size:
                supporter.width, supporter.height = size
        else:
            # Open Collective sometimes answers with a non-image
            logger.debug("Avatar for %s is %s, using placeholder", supporter.slug, fmt or "not an image")
            data = placeholder
            self.stats["placeholders"] += 1
            if measure:
                supporter.width, supporter.height = BLANK_64_SIZE

        await asyncio.to_thread(path.write_bytes, data)

    async def _sync_bucket(
        self,
        client: httpx.AsyncClient,
        name: str,
        supporters: list[Supporter],
        placeholder: bytes,
        *,
        measure: bool,
    ) -> None:
        limit = asyncio.Semaphore(self.cfg.max_concurrency) if self.cfg.max_concurrency > 0 else None

        async def unit(supporter: Supporter) -> None:
            async with limit or nullcontext():
                await self._sync_one(client, supporter, placeholder, measure=measure)

        try:
            async with asyncio.TaskGroup() as tg:
                for supporter in supporters:
                    tg.create_task(unit(supporter))
        except ExceptionGroup as group:
            logger.error("Avatar sync for %s aborted: %d unit(s) failed", name, len(group.exceptions))
            raise group.exceptions[0] from group
        logger.debug("Synced %d %s avatars", len(supporters), name)

    # ── public API ───────────────────────────────────────────────

    async def sync(self, dataset: SupporterDataset) -> SupporterDataset:
        """Fetch and store avatars for both buckets, sponsors first.

        Sponsors get width/height attached. The first failed download
        cancels the rest of its bucket and is re-raised.
        """
        self.prepare_output_dir()
        async with httpx.AsyncClient(
            timeout=self.cfg.timeout,
            headers={"User-Agent": "supporters-sync/1.0"},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            await self._sync_bucket(client, "sponsors", dataset.sponsors, BLANK_64, measure=True)
            await self._sync_bucket(client, "backers", dataset.backers, BLANK_32, measure=False)
        return dataset

    def run(self, dataset: SupporterDataset) -> SupporterDataset:
        return asyncio.run(self.sync(dataset))
