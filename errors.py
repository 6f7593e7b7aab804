"""Exception hierarchy for the ImagenFlow server"""

from typing import Optional


class ImagenFlowError(Exception):
    """Base class for every error the pipeline reports to callers"""


class ConfigurationError(ImagenFlowError):
    """Invalid settings value (quality out of range, unknown format, ...)"""


class MissingCredential(ImagenFlowError):
    """No API key configured. Terminal: the user must configure one."""

    def __init__(self, message: str = "Gemini API Key is missing."):
        super().__init__(message)


class UpstreamError(ImagenFlowError):
    """Transport failure or error reported by the generation API"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamTimeout(UpstreamError):
    """Upstream call exceeded its fixed timeout"""


class FetchError(ImagenFlowError):
    """Downloading a remote image failed (non-2xx or network error)"""


class ImageProcessingError(ImagenFlowError):
    """Decoding or re-encoding an image failed"""


class IngestionError(ImagenFlowError):
    """The media library could not store an asset"""


class MetadataAttachError(IngestionError):
    """Asset was stored but alt text / caption could not be attached.

    The asset is not rolled back; ``asset_id`` identifies it.
    """

    def __init__(self, message: str, asset_id: str):
        super().__init__(message)
        self.asset_id = asset_id
