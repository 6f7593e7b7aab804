"""Media library: the persistent store generated images are sideloaded into"""

import json
import logging
import re
import shutil
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from PIL import Image

from errors import IngestionError
from models.asset import MediaAsset

logger = logging.getLogger("MediaLibrary")

INDEX_FILENAME = "library.json"
LOG_FILENAME = "ingest_log.jsonl"
STORED_FILENAME_REGEX = re.compile(r'^[a-z0-9][a-z0-9._-]{0,80}\.(webp|png|jpg|jpeg)$')
MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_text(value: Optional[str]) -> str:
    """Strip markup and collapse whitespace, like a plain-text form field"""
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", _TAG_RE.sub("", str(value))).strip()


def is_within(child_path: Union[str, Path], parent_path: Union[str, Path]) -> bool:
    """Check containment after resolving symlinks and ``..`` segments"""
    try:
        return Path(child_path).resolve().is_relative_to(Path(parent_path).resolve())
    except (OSError, ValueError, RuntimeError):
        return False


class MediaLibrary:
    """Stores files under ``media_root`` and keeps an index of asset records.

    The index is a JSON file rewritten atomically under a process-level lock.
    """

    def __init__(self, media_root: Union[str, Path], public_base_url: str = "/media-files"):
        self.media_root = Path(media_root).resolve()
        self.media_root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        self._lock = threading.Lock()
        self._assets: Dict[str, MediaAsset] = self._load_index()
        logger.info(f"Initialized MediaLibrary at {self.media_root} ({len(self._assets)} assets)")

    @property
    def index_path(self) -> Path:
        return self.media_root / INDEX_FILENAME

    def _load_index(self) -> Dict[str, MediaAsset]:
        if not self.index_path.exists():
            return {}
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return {asset_id: MediaAsset.from_dict(record) for asset_id, record in raw.items()}
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to read media index, starting empty: {e}")
            return {}

    def _write_index(self):
        temp_path = self.index_path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump({asset_id: asset.to_dict() for asset_id, asset in self._assets.items()}, f, indent=2)
            temp_path.replace(self.index_path)
        except (OSError, TypeError) as e:
            if temp_path.exists():
                temp_path.unlink()
            raise IngestionError(f"Failed to update media index: {e}") from e

    def _unique_target(self, filename: str) -> Path:
        """``name.ext``, then ``name-1.ext``, ``name-2.ext``, ..."""
        candidate = self.media_root / filename
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while candidate.exists():
            candidate = self.media_root / f"{stem}-{counter}{suffix}"
            counter += 1
        return candidate

    def create_asset_from_file(self, file_path: Union[str, Path], metadata: Optional[Dict[str, Any]] = None) -> MediaAsset:
        """Copy a local file into the library and register it.

        Raises:
            IngestionError: invalid file name, unreadable source or storage failure.
                Nothing is left behind in the library when this is raised.
        """
        source = Path(file_path)
        filename = source.name.lower()
        if not STORED_FILENAME_REGEX.match(filename):
            raise IngestionError(f"Refusing to store file with invalid name: '{source.name}'")
        if not source.is_file():
            raise IngestionError(f"Source file does not exist: {source}")

        with self._lock:
            target = self._unique_target(filename)
            if not is_within(target, self.media_root):
                raise IngestionError(f"Target path {target} is outside media root {self.media_root}")

            temp_path = target.with_suffix(target.suffix + ".tmp")
            try:
                shutil.copyfile(source, temp_path)
                temp_path.replace(target)
            except OSError as e:
                if temp_path.exists():
                    temp_path.unlink()
                raise IngestionError(f"Failed to store {source.name}: {e}") from e

            width, height = self._read_dimensions(target)
            asset = MediaAsset(
                asset_id=str(uuid.uuid4()),
                filename=target.name,
                url=f"{self.public_base_url}/{target.name}",
                mime_type=MIME_TYPES.get(target.suffix, "application/octet-stream"),
                bytes_size=target.stat().st_size,
                width=width,
                height=height,
                created_at=datetime.now(timezone.utc),
                metadata=dict(metadata or {}),
            )
            self._assets[asset.asset_id] = asset
            try:
                self._write_index()
            except IngestionError:
                del self._assets[asset.asset_id]
                target.unlink()
                raise

        logger.info(f"Stored asset {asset.asset_id}: {source.name} -> {target.name} ({asset.bytes_size} bytes)")
        self._log_ingest(asset, str(source))
        return asset

    def _read_dimensions(self, path: Path):
        try:
            with Image.open(path) as im:
                return im.width, im.height
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read dimensions of {path.name}: {e}")
            return None, None

    def update_metadata(self, asset_id: str, alt: Optional[str] = None, caption: Optional[str] = None) -> MediaAsset:
        """Attach alt text and/or caption to a stored asset"""
        with self._lock:
            asset = self._assets.get(asset_id)
            if asset is None:
                raise IngestionError(f"Asset {asset_id} not found")
            previous = (asset.alt, asset.caption)
            if alt is not None:
                asset.alt = sanitize_text(alt)
            if caption is not None:
                asset.caption = sanitize_text(caption)
            try:
                self._write_index()
            except IngestionError:
                asset.alt, asset.caption = previous
                raise
        logger.debug(f"Updated metadata for asset {asset_id}")
        return asset

    def get_asset(self, asset_id: str) -> Optional[MediaAsset]:
        return self._assets.get(asset_id)

    def list_assets(self) -> List[MediaAsset]:
        return sorted(self._assets.values(), key=lambda asset: asset.created_at)

    def _log_ingest(self, asset: MediaAsset, source: str):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "asset_id": asset.asset_id,
            "source": source,
            "filename": asset.filename,
            "bytes_size": asset.bytes_size,
        }
        try:
            with open(self.media_root / LOG_FILENAME, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry) + "\n")
        except OSError as e:
            logger.warning(f"Failed to write to ingest log: {e}")
