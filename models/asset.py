"""Asset data models"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class ProcessedImage:
    """Re-encoded image on local disk, waiting to be handed to the media library"""
    path: Path
    format: str  # "webp" | "jpeg"
    quality: int
    bytes_size: int

    @property
    def mime_type(self) -> str:
        return "image/webp" if self.format == "webp" else "image/jpeg"


@dataclass
class MediaAsset:
    """Record of an image stored in the media library"""
    asset_id: str
    filename: str
    url: str
    mime_type: str
    bytes_size: int
    width: Optional[int]
    height: Optional[int]
    created_at: datetime
    alt: str = ""
    caption: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaAsset":
        values = dict(data)
        values["created_at"] = datetime.fromisoformat(values["created_at"])
        return cls(**values)

    def to_response(self) -> Dict[str, Any]:
        """Shape used by the generate endpoint's ``images`` list"""
        return {
            "id": self.asset_id,
            "url": self.url,
            "alt": self.alt,
            "caption": self.caption,
        }
