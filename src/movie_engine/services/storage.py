"""Asset storage for generated media."""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import httpx

from movie_engine.config import settings
from movie_engine.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StoredAsset:
    """Metadata for a stored asset."""

    url: str
    storage_type: str  # "local" or "reference"
    file_path: Path | None = None
    file_size_bytes: int | None = None
    mime_type: str | None = None
    checksum: str | None = None


class StorageService:
    """Stores pipeline outputs and returns the URL they are served from.

    Local storage writes under ``base_path``; when ``public_base_url`` is set
    the returned URL points there, otherwise it is a ``file://`` URI. In
    simulation mode nothing is written and remote URLs are kept as references.
    """

    SUBDIRS = {
        "scene_audio": "audio",
        "music": "audio",
        "final_video": "final",
        "cover": "covers",
    }

    def __init__(
        self,
        base_path: Path | str | None = None,
        public_base_url: str | None = None,
        simulated: bool = False,
    ) -> None:
        self.base_path = Path(base_path or settings.storage_base_path)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.simulated = simulated

    @property
    def name(self) -> str:
        return "simulated" if self.simulated else "local"

    def _destination(self, asset_type: str, movie_id: UUID, ext: str) -> Path:
        subdir = self.base_path / self.SUBDIRS.get(asset_type, "misc") / str(movie_id)
        subdir.mkdir(parents=True, exist_ok=True)
        return subdir / f"{asset_type}_{uuid4().hex[:8]}{ext}"

    def _url_for(self, path: Path) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{path.relative_to(self.base_path).as_posix()}"
        return path.resolve().as_uri()

    def _write(self, path: Path, content: bytes, mime_type: str | None) -> StoredAsset:
        path.write_bytes(content)
        return StoredAsset(
            url=self._url_for(path),
            storage_type="local",
            file_path=path,
            file_size_bytes=len(content),
            mime_type=mime_type,
            checksum=hashlib.sha256(content).hexdigest(),
        )

    async def store_from_url(
        self,
        url: str,
        asset_type: str,
        movie_id: UUID,
        ext: str = ".mp4",
    ) -> StoredAsset:
        """Download a provider-hosted asset into storage.

        Raises:
            httpx.HTTPError: If the download fails.
            OSError: If the file cannot be written.
        """
        if self.simulated:
            return StoredAsset(url=url, storage_type="reference")

        path = self._destination(asset_type, movie_id, ext)
        logger.info(
            "storage_download_started",
            url=url[:100],
            asset_type=asset_type,
            destination=str(path),
        )

        async with httpx.AsyncClient(timeout=300.0, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()

        asset = self._write(path, response.content, response.headers.get("content-type"))
        logger.info(
            "storage_download_completed",
            asset_type=asset_type,
            size=asset.file_size_bytes,
        )
        return asset

    async def store_bytes(
        self,
        data: bytes,
        asset_type: str,
        movie_id: UUID,
        ext: str = ".mp3",
        mime_type: str | None = None,
    ) -> StoredAsset:
        """Write raw bytes (e.g. synthesized audio) into storage."""
        if self.simulated:
            return StoredAsset(
                url=f"https://simulated.invalid/storage/{movie_id}/{asset_type}_{uuid4().hex[:8]}{ext}",
                storage_type="reference",
                file_size_bytes=len(data),
                mime_type=mime_type,
            )
        return self._write(self._destination(asset_type, movie_id, ext), data, mime_type)

    def info(self) -> dict[str, Any]:
        return {
            "provider": self.name,
            "base_path": str(self.base_path),
            "public_base_url": self.public_base_url,
        }
