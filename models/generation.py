"""Generation request/response models"""

import base64
from dataclasses import dataclass
from typing import Any, Dict, Optional

ORIENTATION_ASPECT_RATIOS = {
    "square": "1:1",
    "portrait": "3:4",
    "landscape": "16:9",
}
MIN_SAMPLES = 1
MAX_SAMPLES = 4


@dataclass
class GenerationRequest:
    """A single user-initiated generation action. Never persisted."""
    prompt: str = ""
    samples: int = 1
    orientation: str = "square"
    filename_keyword: str = ""
    auto_generate: bool = False
    content: str = ""

    @property
    def aspect_ratio(self) -> str:
        return ORIENTATION_ASPECT_RATIOS[self.orientation]

    def validate(self):
        if isinstance(self.samples, bool) or not isinstance(self.samples, int):
            raise ValueError(f"samples must be an integer, got {self.samples!r}")
        if not MIN_SAMPLES <= self.samples <= MAX_SAMPLES:
            raise ValueError(f"samples must be between {MIN_SAMPLES} and {MAX_SAMPLES}, got {self.samples}")
        if self.orientation not in ORIENTATION_ASPECT_RATIOS:
            raise ValueError(
                f"Invalid orientation '{self.orientation}'. "
                f"Must be one of: {', '.join(ORIENTATION_ASPECT_RATIOS)}"
            )

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GenerationRequest":
        """Build and validate a request from a decoded JSON body.

        Numbers may arrive as strings from form-style clients, so ``samples``
        is coerced before validation. Article text is taken from ``content``
        or, failing that, from ``title`` and ``body``.
        """
        if not isinstance(payload, dict):
            raise ValueError("Request body must be a JSON object")

        samples = payload.get("samples", 1)
        if isinstance(samples, str) and samples.strip().isdigit():
            samples = int(samples)
        elif isinstance(samples, float) and samples.is_integer():
            samples = int(samples)

        auto_generate = payload.get("auto_generate", False)
        if isinstance(auto_generate, str):
            auto_generate = auto_generate.strip().lower() in {"1", "true", "yes", "y"}

        content = str(payload.get("content") or "")
        if not content and ("title" in payload or "body" in payload):
            content = str(payload.get("title") or "") + "\n" + str(payload.get("body") or "")

        request = cls(
            prompt=str(payload.get("prompt") or "").strip(),
            samples=samples,
            orientation=str(payload.get("orientation") or "square").strip().lower(),
            filename_keyword=str(payload.get("filename_keyword") or "").strip(),
            auto_generate=bool(auto_generate),
            content=content,
        )
        request.validate()
        return request


@dataclass
class GeneratedImage:
    """Raw output of the image model: inline bytes or a fetchable URL"""
    data: Optional[bytes] = None
    url: Optional[str] = None
    mime_type: str = "image/png"

    @classmethod
    def from_prediction(cls, prediction: Dict[str, Any]) -> Optional["GeneratedImage"]:
        encoded = prediction.get("bytesBase64Encoded")
        if not encoded:
            return None
        return cls(
            data=base64.b64decode(encoded),
            mime_type=prediction.get("mimeType", "image/png"),
        )

    @property
    def extension(self) -> str:
        return {
            "image/png": ".png",
            "image/jpeg": ".jpg",
            "image/webp": ".webp",
        }.get(self.mime_type, ".png")
