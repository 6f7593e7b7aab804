"""Data models for the ImagenFlow server"""

from models.asset import MediaAsset, ProcessedImage
from models.generation import (
    ORIENTATION_ASPECT_RATIOS,
    GeneratedImage,
    GenerationRequest,
)

__all__ = [
    "MediaAsset",
    "ProcessedImage",
    "GeneratedImage",
    "GenerationRequest",
    "ORIENTATION_ASPECT_RATIOS",
]
