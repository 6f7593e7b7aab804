"""Image post-processing: metadata stripping, recompression and format conversion"""

import logging
import re
import unicodedata
from pathlib import Path
from typing import Union

from PIL import Image, ImageOps, features

from errors import ImageProcessingError
from models.asset import ProcessedImage

logger = logging.getLogger("ImageProcessor")

DEFAULT_FILENAME = "generated-image"
MAX_FILENAME_LENGTH = 64
FORMAT_EXTENSIONS = {"webp": ".webp", "jpeg": ".jpg"}
PIL_FORMATS = {"webp": "WEBP", "jpeg": "JPEG"}


def sanitize_filename_hint(hint: str) -> str:
    """Turn free text into a slug safe for use as a file name.

    Accents are folded to ASCII, anything that is not a letter or digit
    becomes a single hyphen. Empty results fall back to ``generated-image``.
    """
    normalized = unicodedata.normalize("NFKD", hint or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text).strip("-")
    slug = slug[:MAX_FILENAME_LENGTH].rstrip("-")
    return slug or DEFAULT_FILENAME


class NoOpMetadataStripper:
    """Used when metadata stripping is disabled or unsupported"""

    name = "none"
    preserves_metadata = True

    def strip(self, path: Path):
        return None


class PillowMetadataStripper:
    """Rewrites the file in place without EXIF, ICC profile or comment chunks"""

    name = "pillow"
    preserves_metadata = False

    def strip(self, path: Path):
        with Image.open(path) as loaded:
            source_format = loaded.format
            # Bake in the EXIF rotation before the orientation tag goes away
            im = ImageOps.exif_transpose(loaded)
            im.load()

        clean = Image.frombytes(im.mode, im.size, im.tobytes())
        if im.mode == "P":
            clean.putpalette(im.getpalette())

        save_kwargs = {"format": source_format}
        if source_format == "JPEG":
            save_kwargs["quality"] = 95
        # tRNS is pixel data, not metadata
        if "transparency" in im.info:
            save_kwargs["transparency"] = im.info["transparency"]
        clean.save(path, **save_kwargs)
        logger.debug(f"Stripped metadata from {path}")


def select_metadata_stripper(enabled: bool):
    """Pick the stripping capability once, at startup"""
    if not enabled:
        logger.info("Metadata stripping disabled; using no-op stripper")
        return NoOpMetadataStripper()
    return PillowMetadataStripper()


def _prepare_mode(im: Image.Image, target_format: str) -> Image.Image:
    if target_format == "jpeg":
        # JPEG has no alpha: flatten onto white
        if im.mode in ("RGBA", "LA", "P"):
            if im.mode == "P":
                im = im.convert("RGBA")
            background = Image.new("RGB", im.size, (255, 255, 255))
            background.paste(im, mask=im.split()[-1])
            return background
        if im.mode != "RGB":
            return im.convert("RGB")
        return im

    if im.mode == "P" or (im.mode != "RGBA" and "transparency" in im.info):
        return im.convert("RGBA")
    if im.mode not in ("RGB", "RGBA"):
        return im.convert("RGBA" if "A" in im.getbands() else "RGB")
    return im


class ImageProcessor:
    def __init__(self, stripper=None):
        self.stripper = stripper or NoOpMetadataStripper()
        if not features.check("webp"):
            logger.warning("Pillow was built without WebP support; webp output will fail")

    def process(
        self,
        source_path: Union[str, Path],
        quality: int,
        target_format: str,
        filename_hint: str = "",
    ) -> ProcessedImage:
        """Normalise an image on disk and return the re-encoded result.

        The output is written next to the source as ``<slug>.<ext>``.

        Raises:
            ImageProcessingError: unsupported format, bad quality, corrupt source
                or filesystem failure while encoding
        """
        source_path = Path(source_path)
        target_format = "jpeg" if target_format == "jpg" else target_format
        if target_format not in FORMAT_EXTENSIONS:
            raise ImageProcessingError(f"Unsupported target format: {target_format}")
        if isinstance(quality, bool) or not isinstance(quality, int) or not 1 <= quality <= 100:
            raise ImageProcessingError(f"Quality must be an integer between 1 and 100, got {quality!r}")

        try:
            self.stripper.strip(source_path)
        except Exception as e:
            logger.warning(f"Metadata strip failed for {source_path.name}, continuing with original: {e}")

        output_path = source_path.parent / (sanitize_filename_hint(filename_hint) + FORMAT_EXTENSIONS[target_format])

        try:
            with Image.open(source_path) as loaded:
                loaded.load()
                exif = loaded.info.get("exif")
                icc_profile = loaded.info.get("icc_profile")
                im = _prepare_mode(loaded, target_format)
                if im is loaded:
                    im = loaded.copy()

            save_kwargs = {"format": PIL_FORMATS[target_format], "quality": quality}
            if target_format == "webp":
                save_kwargs["method"] = 5
            else:
                save_kwargs["optimize"] = True
            if self.stripper.preserves_metadata:
                if exif:
                    save_kwargs["exif"] = exif
                if icc_profile:
                    save_kwargs["icc_profile"] = icc_profile

            im.save(output_path, **save_kwargs)
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            if output_path.exists() and output_path != source_path:
                output_path.unlink()
            raise ImageProcessingError(f"Failed to re-encode {source_path.name} as {target_format}: {e}") from e

        bytes_size = output_path.stat().st_size
        logger.info(
            f"Processed image: {source_path.name} -> {output_path.name} "
            f"format={target_format} quality={quality} size={bytes_size}B"
        )
        return ProcessedImage(path=output_path, format=target_format, quality=quality, bytes_size=bytes_size)
