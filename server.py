import argparse
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import requests
from mcp.server.fastmcp import FastMCP

from gemini_client import GeminiClient
from image_processor import ImageProcessor, select_metadata_stripper
from managers.ingestion_service import MediaIngestionService
from managers.media_library import MediaLibrary
from managers.orchestrator import GenerationOrchestrator
from managers.settings_manager import ImagenFlowConfig, SettingsManager
from tools.asset import register_asset_tools
from tools.configuration import register_configuration_tools
from tools.generation import register_generation_tools

logger = logging.getLogger("ImagenFlow")


@dataclass
class AppContext:
    """Every long-lived service, built once at startup"""
    mcp: FastMCP
    settings: SettingsManager
    client: GeminiClient
    processor: ImageProcessor
    library: MediaLibrary
    ingestion: MediaIngestionService
    orchestrator: GenerationOrchestrator


def create_server(
    settings: Optional[SettingsManager] = None,
    session: Optional[requests.Session] = None,
) -> AppContext:
    """Construct the services, wire them together and register all routes/tools"""
    settings = settings or SettingsManager()
    config = settings.config
    session = session or requests.Session()

    client = GeminiClient(config, session=session)
    processor = ImageProcessor(select_metadata_stripper(config.strip_metadata))
    library = MediaLibrary(config.media_root, config.public_base_url)
    ingestion = MediaIngestionService(config, processor, library, session=session)
    orchestrator = GenerationOrchestrator(client, ingestion)

    def _on_settings_changed(updated: ImagenFlowConfig):
        client.apply_config(updated)
        ingestion.apply_config(updated)
        processor.stripper = select_metadata_stripper(updated.strip_metadata)

    settings.add_listener(_on_settings_changed)

    @asynccontextmanager
    async def app_lifespan(server: FastMCP) -> AsyncIterator[None]:
        logger.info("Starting MCP session lifecycle...")
        if not settings.config.has_credential:
            logger.warning("Gemini API Key is missing; generation requests will fail until it is set")
        try:
            yield
        finally:
            logger.info("MCP session closed")

    mcp = FastMCP("ImagenFlow", host=config.host, port=config.port, lifespan=app_lifespan)
    register_generation_tools(mcp, orchestrator)
    register_configuration_tools(mcp, settings, processor)
    register_asset_tools(mcp, library)
    logger.info(
        "Registered routes /summarize, /generate, /health, /media/{asset_id} "
        "(metadata stripper: %s)",
        processor.stripper.name,
    )

    return AppContext(
        mcp=mcp,
        settings=settings,
        client=client,
        processor=processor,
        library=library,
        ingestion=ingestion,
        orchestrator=orchestrator,
    )


def main():
    parser = argparse.ArgumentParser(description="ImagenFlow image generation server")
    parser.add_argument("--host", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port (default: 9000)")
    parser.add_argument("--media-root", help="Directory the media library stores files in")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    settings = SettingsManager(overrides={
        "host": args.host,
        "port": args.port,
        "media_root": args.media_root,
    })
    app = create_server(settings)
    app.mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
