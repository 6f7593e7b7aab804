"""Settings tools for the ImagenFlow server"""

from typing import Optional

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from errors import ConfigurationError
from image_processor import ImageProcessor
from managers.settings_manager import SettingsManager


def register_configuration_tools(
    mcp: FastMCP,
    settings: SettingsManager,
    processor: ImageProcessor
):
    """Register settings and health endpoints"""

    @mcp.custom_route("/health", methods=["GET"])
    async def health_route(request: Request) -> JSONResponse:
        config = settings.config
        warnings = []
        if not config.has_credential:
            warnings.append("Gemini API Key is missing. Set it with update_settings or IMAGEN_FLOW_API_KEY.")
        return JSONResponse({
            "status": "ready" if config.has_credential else "needs_api_key",
            "api_key_configured": config.has_credential,
            "metadata_stripper": processor.stripper.name,
            "preferred_format": config.preferred_format,
            "default_quality": config.default_quality,
            "warnings": warnings,
        })

    @mcp.tool()
    def get_settings() -> dict:
        """Get the current image settings.

        The API key is never returned in full; ``api_key_configured`` tells
        whether one is set.
        """
        return settings.config.editable_view()

    @mcp.tool()
    def update_settings(
        api_key: Optional[str] = None,
        default_quality: Optional[int] = None,
        preferred_format: Optional[str] = None,
        strip_metadata: Optional[bool] = None,
        persist: bool = True
    ) -> dict:
        """Update image settings.

        Args:
            api_key: Google Gemini API key
            default_quality: Compression level, 1-100
            preferred_format: "webp" or "jpeg"
            strip_metadata: Remove EXIF/ICC/comments before re-encoding
            persist: Write the change to the settings file (default True)

        Returns:
            {"success": True, "settings": {...}} or {"success": False, "message": ...}
        """
        changes = {
            key: value
            for key, value in {
                "api_key": api_key,
                "default_quality": default_quality,
                "preferred_format": preferred_format,
                "strip_metadata": strip_metadata,
            }.items()
            if value is not None
        }
        if not changes:
            return {"success": False, "message": "No settings provided"}
        try:
            updated = settings.update(changes, persist=persist)
        except ConfigurationError as e:
            return {"success": False, "message": str(e)}
        return {"success": True, "settings": updated.editable_view()}
