"""Sideloading generated images into the media library"""

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import requests

from errors import FetchError, ImagenFlowError, IngestionError, MetadataAttachError
from image_processor import ImageProcessor
from managers.media_library import MediaLibrary
from managers.settings_manager import ImagenFlowConfig
from models.asset import MediaAsset
from models.generation import GeneratedImage

logger = logging.getLogger("ImagenFlow")

WORK_DIR_PREFIX = "imagen-flow-"
DOWNLOAD_CHUNK_SIZE = 64 * 1024


@dataclass
class IngestionMetadata:
    """Alt text, caption and file name hint for an ingested image"""
    alt: Optional[str] = None
    caption: Optional[str] = None
    filename_hint: str = ""

    @property
    def has_seo_fields(self) -> bool:
        return self.alt is not None or self.caption is not None


def _safe_unlink(path: Optional[Path]):
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {path}: {e}")


def _is_url(source) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


class MediaIngestionService:
    def __init__(
        self,
        config: ImagenFlowConfig,
        processor: ImageProcessor,
        library: MediaLibrary,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.processor = processor
        self.library = library
        self.session = session or requests.Session()

    def apply_config(self, config: ImagenFlowConfig):
        self.config = config

    def _download(self, url: str, work_dir: Path) -> Path:
        """Stream a remote image into ``work_dir``. Raises FetchError."""
        suffix = Path(url.split("?", 1)[0]).suffix.lower()
        path = work_dir / ("source" + (suffix if 0 < len(suffix) <= 5 else ".img"))
        try:
            with self.session.get(url, stream=True, timeout=self.config.download_timeout) as response:
                response.raise_for_status()
                with open(path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
        except requests.RequestException as e:
            logger.error(f"Failed to fetch image from {url}: {e}")
            raise FetchError(f"Failed to download {url}: {e}") from e
        except OSError as e:
            raise FetchError(f"Failed to save download from {url}: {e}") from e
        return path

    def _resolve_source(self, source: Union[GeneratedImage, str, Path], work_dir: Path) -> Path:
        if isinstance(source, GeneratedImage):
            if source.data is not None:
                path = work_dir / ("source" + source.extension)
                try:
                    path.write_bytes(source.data)
                except OSError as e:
                    raise IngestionError(f"Failed to write temporary file: {e}") from e
                return path
            if source.url:
                return self._download(source.url, work_dir)
            raise IngestionError("Generated image carries neither data nor a URL")
        if _is_url(source):
            return self._download(source, work_dir)
        path = Path(source)
        if not path.is_file():
            raise FetchError(f"Local image not found: {path}")
        # Work on a copy so processing never writes beside the caller's file
        copy_path = work_dir / ("source" + path.suffix.lower())
        try:
            shutil.copyfile(path, copy_path)
        except OSError as e:
            raise FetchError(f"Failed to read local image {path}: {e}") from e
        return copy_path

    def ingest(
        self,
        source: Union[GeneratedImage, str, Path],
        metadata: Optional[IngestionMetadata] = None,
    ) -> MediaAsset:
        """Process an image and store it as a media asset.

        ``source`` may be generated image bytes, a URL or a local path.
        Downloads, decoded bytes and a copy of a local file live in a per-call
        work directory that is removed on every exit path. A local path is
        treated as a temporary input too: the original is deleted once the
        call returns, and nothing else in its folder is touched.

        Raises:
            FetchError, ImageProcessingError, IngestionError: nothing was stored.
            MetadataAttachError: the asset exists but alt/caption were not set.
        """
        metadata = metadata or IngestionMetadata()
        self.config.temp_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix=WORK_DIR_PREFIX, dir=self.config.temp_dir) as work_dir:
            source_path = None
            processed_path = None
            try:
                source_path = self._resolve_source(source, Path(work_dir))
                processed = self.processor.process(
                    source_path,
                    quality=self.config.default_quality,
                    target_format=self.config.preferred_format,
                    filename_hint=metadata.filename_hint,
                )
                processed_path = processed.path
                asset = self.library.create_asset_from_file(
                    processed.path,
                    metadata={"quality": processed.quality, "format": processed.format},
                )
            finally:
                _safe_unlink(source_path)
                if processed_path is not None and processed_path != source_path:
                    _safe_unlink(processed_path)
                if source_path is not None and not isinstance(source, GeneratedImage) and not _is_url(source):
                    _safe_unlink(Path(source))

        if metadata.has_seo_fields:
            try:
                asset = self.library.update_metadata(asset.asset_id, alt=metadata.alt, caption=metadata.caption)
            except ImagenFlowError as e:
                raise MetadataAttachError(
                    f"Stored asset {asset.asset_id} but could not attach metadata: {e}",
                    asset_id=asset.asset_id,
                ) from e
        return asset
