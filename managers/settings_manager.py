"""Settings management: typed configuration with persisted admin overrides"""

import json
import logging
import os
import platform
import tempfile
import threading
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from errors import ConfigurationError

logger = logging.getLogger("ImagenFlow")

SUPPORTED_FORMATS = ("webp", "jpeg")
FORMAT_ALIASES = {"jpg": "jpeg"}
# Keys the settings tools may read and write; everything else is deploy-time config
EDITABLE_KEYS = ("api_key", "default_quality", "preferred_format", "strip_metadata")


def get_settings_dir() -> Path:
    """Get platform-specific config directory for persisted settings.

    Returns:
        Windows: %APPDATA%/imagen-flow
        Mac: ~/Library/Application Support/imagen-flow
        Linux: ~/.config/imagen-flow
    """
    system = platform.system()
    if system == "Windows":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata) / "imagen-flow"
        return Path.home() / "AppData" / "Roaming" / "imagen-flow"
    elif system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "imagen-flow"
    else:
        return Path.home() / ".config" / "imagen-flow"


def get_settings_file() -> Path:
    return get_settings_dir() / "settings.json"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return bool(value)


@dataclass
class ImagenFlowConfig:
    """Process-wide configuration record. Read-mostly."""
    api_key: str = ""
    default_quality: int = 80
    preferred_format: str = "webp"
    strip_metadata: bool = True
    api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    image_model: str = "imagen-4.0-generate-001"
    text_model: str = "gemini-3-flash-preview"
    media_root: Path = field(default_factory=lambda: Path.cwd() / "media")
    public_base_url: str = "/media-files"
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    download_timeout: int = 30
    host: str = "127.0.0.1"
    port: int = 9000

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def validate(self) -> "ImagenFlowConfig":
        """Normalise and check values. Raises ConfigurationError."""
        try:
            quality = int(self.default_quality)
        except (TypeError, ValueError):
            raise ConfigurationError(f"default_quality must be an integer, got {self.default_quality!r}")
        if isinstance(self.default_quality, bool) or not 1 <= quality <= 100:
            raise ConfigurationError(f"default_quality must be between 1 and 100, got {self.default_quality!r}")
        self.default_quality = quality

        fmt = str(self.preferred_format or "").strip().lower()
        fmt = FORMAT_ALIASES.get(fmt, fmt)
        if fmt not in SUPPORTED_FORMATS:
            raise ConfigurationError(
                f"preferred_format must be one of {', '.join(SUPPORTED_FORMATS)}, got {self.preferred_format!r}"
            )
        self.preferred_format = fmt

        self.api_key = str(self.api_key or "").strip()
        self.strip_metadata = _parse_bool(self.strip_metadata)
        self.media_root = Path(self.media_root)
        self.temp_dir = Path(self.temp_dir)
        self.public_base_url = self.public_base_url.rstrip("/")
        return self

    def editable_view(self, mask_key: bool = True) -> Dict[str, Any]:
        """Admin-editable settings, with the API key masked by default"""
        view = {key: getattr(self, key) for key in EDITABLE_KEYS}
        if mask_key and view["api_key"]:
            view["api_key"] = "*" * 8 + view["api_key"][-4:]
        view["api_key_configured"] = self.has_credential
        return view


def _get_env_overrides() -> Dict[str, Any]:
    """Load configuration from environment variables"""
    overrides: Dict[str, Any] = {}
    api_key = os.getenv("IMAGEN_FLOW_API_KEY") or os.getenv("GEMINI_API_KEY")
    if api_key:
        overrides["api_key"] = api_key
    env_map = {
        "IMAGEN_FLOW_QUALITY": "default_quality",
        "IMAGEN_FLOW_FORMAT": "preferred_format",
        "IMAGEN_FLOW_STRIP_METADATA": "strip_metadata",
        "IMAGEN_FLOW_API_BASE_URL": "api_base_url",
        "IMAGEN_FLOW_IMAGE_MODEL": "image_model",
        "IMAGEN_FLOW_TEXT_MODEL": "text_model",
        "IMAGEN_FLOW_MEDIA_ROOT": "media_root",
        "IMAGEN_FLOW_PUBLIC_URL": "public_base_url",
        "IMAGEN_FLOW_TEMP_DIR": "temp_dir",
        "IMAGEN_FLOW_HOST": "host",
        "IMAGEN_FLOW_PORT": "port",
    }
    for env_name, key in env_map.items():
        value = os.getenv(env_name)
        if value:
            overrides[key] = value
    if "port" in overrides:
        overrides["port"] = int(overrides["port"])
    return overrides


class SettingsManager:
    """Loads configuration with precedence: explicit > settings file > env > hardcoded.

    Updates coming from the settings tools are validated, persisted to the
    settings file and swapped in atomically; listeners are told about the
    new config so services holding a reference can refresh.
    """

    def __init__(self, settings_file: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None):
        self.settings_file = Path(settings_file) if settings_file else get_settings_file()
        self._explicit = dict(overrides or {})
        self._lock = threading.Lock()
        self._listeners = []
        self.config = self._load()

    def _load_settings_file(self) -> Dict[str, Any]:
        if not self.settings_file.exists():
            return {}
        try:
            with open(self.settings_file, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load settings from {self.settings_file}: {e}")
            return {}
        if not isinstance(stored, dict):
            return {}
        return {key: value for key, value in stored.items() if key in EDITABLE_KEYS}

    def _load(self) -> ImagenFlowConfig:
        known = {f.name for f in fields(ImagenFlowConfig)}
        values: Dict[str, Any] = {}
        values.update(_get_env_overrides())
        values.update(self._load_settings_file())
        values.update({k: v for k, v in self._explicit.items() if v is not None})
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        config = ImagenFlowConfig(**values).validate()
        logger.info(
            "Loaded configuration: format=%s quality=%s strip_metadata=%s api_key=%s",
            config.preferred_format,
            config.default_quality,
            config.strip_metadata,
            "set" if config.has_credential else "missing",
        )
        return config

    def add_listener(self, callback):
        self._listeners.append(callback)

    def update(self, changes: Dict[str, Any], persist: bool = True) -> ImagenFlowConfig:
        """Apply admin changes. Raises ConfigurationError on invalid input."""
        unknown = set(changes) - set(EDITABLE_KEYS)
        if unknown:
            raise ConfigurationError(
                f"Cannot update {sorted(unknown)}. Editable settings: {', '.join(EDITABLE_KEYS)}"
            )

        with self._lock:
            updated = replace(self.config, **changes).validate()
            if persist:
                self._persist({key: getattr(updated, key) for key in changes})
            self.config = updated

        logger.info(f"Updated settings: {sorted(changes)}")
        for callback in self._listeners:
            callback(updated)
        return updated

    def _persist(self, values: Dict[str, Any]):
        self.settings_file.parent.mkdir(parents=True, exist_ok=True)
        existing = self._load_settings_file()
        existing.update(values)

        temp_path = self.settings_file.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(existing, f, indent=2)
            temp_path.replace(self.settings_file)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigurationError(f"Failed to save settings to {self.settings_file}: {e}") from e
        logger.info(f"Saved settings to {self.settings_file}")

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self.config)
        data["media_root"] = str(self.config.media_root)
        data["temp_dir"] = str(self.config.temp_dir)
        data.pop("api_key")
        return data
