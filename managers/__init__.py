"""Manager classes for the ImagenFlow server"""

from managers.settings_manager import ImagenFlowConfig, SettingsManager
from managers.media_library import MediaLibrary
from managers.ingestion_service import IngestionMetadata, MediaIngestionService
from managers.orchestrator import GenerationOrchestrator

__all__ = [
    "ImagenFlowConfig",
    "SettingsManager",
    "MediaLibrary",
    "IngestionMetadata",
    "MediaIngestionService",
    "GenerationOrchestrator",
]
