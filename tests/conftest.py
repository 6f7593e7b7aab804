"""Shared fixtures for ImagenFlow tests"""

import base64
import os
from io import BytesIO
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image

from image_processor import ImageProcessor, PillowMetadataStripper
from managers.ingestion_service import MediaIngestionService
from managers.media_library import MediaLibrary
from managers.settings_manager import SettingsManager


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of configuration loading"""
    for name in list(os.environ):
        if name.startswith("IMAGEN_FLOW_") or name == "GEMINI_API_KEY":
            monkeypatch.delenv(name, raising=False)


def make_image_bytes(fmt="PNG", size=(64, 48), mode="RGB", color=(200, 30, 30), exif=None) -> bytes:
    img = Image.new(mode, size, color)
    buf = BytesIO()
    save_kwargs = {"format": fmt}
    if exif is not None:
        save_kwargs["exif"] = exif
    img.save(buf, **save_kwargs)
    return buf.getvalue()


def make_response(status_code=200, payload=None, text=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    if payload is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = payload
    response.text = text if text is not None else str(payload)
    return response


def text_payload(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def predictions_payload(*images: bytes) -> dict:
    return {
        "predictions": [
            {"bytesBase64Encoded": base64.b64encode(data).decode("ascii"), "mimeType": "image/png"}
            for data in images
        ]
    }


@pytest.fixture
def settings(tmp_path):
    return SettingsManager(
        settings_file=tmp_path / "config" / "settings.json",
        overrides={
            "api_key": "test-key-1234",
            "media_root": tmp_path / "media",
            "temp_dir": tmp_path / "tmp",
        },
    )


@pytest.fixture
def config(settings):
    return settings.config


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def library(config):
    return MediaLibrary(config.media_root, config.public_base_url)


@pytest.fixture
def processor():
    return ImageProcessor(PillowMetadataStripper())


@pytest.fixture
def ingestion(config, processor, library, session):
    return MediaIngestionService(config, processor, library, session=session)
