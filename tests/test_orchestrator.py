"""Tests for the summarize/generate pipeline"""

from unittest.mock import Mock

import pytest

from conftest import make_image_bytes
from errors import IngestionError, MissingCredential, UpstreamError, UpstreamTimeout
from gemini_client import GeminiClient
from managers.orchestrator import (
    NO_CONTENT_MESSAGE,
    NO_PROMPT_MESSAGE,
    GenerationOrchestrator,
    build_summary_content,
    fallback_alt_text,
    truncate_summary_content,
)
from models.generation import GeneratedImage, GenerationRequest


@pytest.fixture
def client():
    client = Mock(spec=GeminiClient)
    client.generate_alt_text.return_value = "A lighthouse at dusk"
    return client


@pytest.fixture
def orchestrator(client, ingestion):
    return GenerationOrchestrator(client, ingestion)


def _images(count):
    return [GeneratedImage(data=make_image_bytes("PNG", color=(10 * i, 20, 30))) for i in range(count)]


def _temp_leftovers(config):
    return list(config.temp_dir.iterdir()) if config.temp_dir.exists() else []


class TestSummarize:
    def test_returns_essence(self, orchestrator, client):
        client.summarize.return_value = "A lone lighthouse, stormy sea, oil painting"

        result = orchestrator.summarize("Article about lighthouses")

        assert result == {"success": True, "essence": "A lone lighthouse, stormy sea, oil painting"}
        client.summarize.assert_called_once_with("Article about lighthouses")

    @pytest.mark.parametrize("content", ["", "   \n"])
    def test_empty_content_skips_upstream(self, orchestrator, client, content):
        result = orchestrator.summarize(content)

        assert result == {"success": False, "message": NO_CONTENT_MESSAGE}
        client.summarize.assert_not_called()

    def test_upstream_error_message_is_surfaced(self, orchestrator, client):
        client.summarize.side_effect = UpstreamError("API key not valid. Please pass a valid API key.")

        result = orchestrator.summarize("text")

        assert result["success"] is False
        assert result["message"] == "API key not valid. Please pass a valid API key."

    def test_missing_credential(self, orchestrator, client):
        client.summarize.side_effect = MissingCredential()

        assert orchestrator.summarize("text") == {"success": False, "message": "Gemini API Key is missing."}

    def test_empty_model_output(self, orchestrator, client):
        client.summarize.return_value = ""

        assert orchestrator.summarize("text")["success"] is False


class TestGenerate:
    @pytest.mark.parametrize(
        "orientation, aspect_ratio",
        [("square", "1:1"), ("portrait", "3:4"), ("landscape", "16:9")],
    )
    def test_orientation_maps_to_aspect_ratio(self, orchestrator, client, orientation, aspect_ratio):
        client.generate_image.return_value = _images(1)

        orchestrator.generate(GenerationRequest(prompt="p", samples=1, orientation=orientation))

        client.generate_image.assert_called_once_with("p", 1, aspect_ratio)

    def test_single_image(self, orchestrator, client, library):
        client.generate_image.return_value = _images(1)

        result = orchestrator.generate(GenerationRequest(prompt="A lighthouse", filename_keyword="Lighthouse"))

        assert result["success"] is True
        assert result["prompt"] == "A lighthouse"
        assert "errors" not in result
        [image] = result["images"]
        assert image["alt"] == "A lighthouse at dusk"
        assert image["caption"] == "A lighthouse at dusk"
        stored = library.get_asset(image["id"])
        assert stored.filename == "lighthouse.webp"
        assert image["url"] == stored.url
        client.generate_alt_text.assert_called_once_with("A lighthouse", "Lighthouse")

    def test_batch_filenames_are_numbered(self, orchestrator, client, library):
        client.generate_image.return_value = _images(3)

        result = orchestrator.generate(GenerationRequest(prompt="p", samples=3, filename_keyword="sea"))

        names = [library.get_asset(image["id"]).filename for image in result["images"]]
        assert names == ["sea-1.webp", "sea-2.webp", "sea-3.webp"]

    def test_default_filename_without_keyword(self, orchestrator, client, library):
        client.generate_image.return_value = _images(1)

        result = orchestrator.generate(GenerationRequest(prompt="p"))

        assert library.get_asset(result["images"][0]["id"]).filename == "generated-image.webp"

    def test_empty_prompt_skips_upstream(self, orchestrator, client):
        result = orchestrator.generate(GenerationRequest(prompt=""))

        assert result == {"success": False, "message": NO_PROMPT_MESSAGE}
        client.generate_image.assert_not_called()
        client.summarize.assert_not_called()

    def test_generation_failure_ingests_nothing(self, orchestrator, client, library):
        client.generate_image.side_effect = UpstreamTimeout("Request to imagen timed out after 60s")

        result = orchestrator.generate(GenerationRequest(prompt="p", samples=2))

        assert result == {"success": False, "message": "Request to imagen timed out after 60s"}
        assert library.list_assets() == []
        client.generate_alt_text.assert_not_called()

    def test_one_bad_image_does_not_abort_batch(self, orchestrator, client, library, config):
        images = _images(3)
        images[1] = GeneratedImage(data=b"not an image")
        client.generate_image.return_value = images

        result = orchestrator.generate(GenerationRequest(prompt="p", samples=3, filename_keyword="k"))

        assert result["success"] is True
        assert len(result["images"]) == 2
        assert [error["index"] for error in result["errors"]] == [1]
        assert len(library.list_assets()) == 2
        assert _temp_leftovers(config) == []

    def test_all_images_failing(self, orchestrator, client, library):
        client.generate_image.return_value = [GeneratedImage(data=b"x"), GeneratedImage(data=b"y")]

        result = orchestrator.generate(GenerationRequest(prompt="p", samples=2))

        assert result["success"] is False
        assert len(result["errors"]) == 2
        assert library.list_assets() == []

    def test_alt_text_failure_falls_back_to_prompt(self, orchestrator, client):
        client.generate_alt_text.side_effect = UpstreamError("quota exceeded")
        client.generate_image.return_value = _images(1)

        result = orchestrator.generate(GenerationRequest(prompt='A "glowing" lighthouse on a cliff'))

        assert result["success"] is True
        assert result["images"][0]["alt"] == "A glowing lighthouse on a cliff"

    def test_metadata_failure_still_reports_asset(self, orchestrator, client, library, monkeypatch):
        client.generate_image.return_value = _images(1)

        def _fail(*args, **kwargs):
            raise IngestionError("index locked")

        monkeypatch.setattr(library, "update_metadata", _fail)

        result = orchestrator.generate(GenerationRequest(prompt="p"))

        assert result["success"] is True
        [image] = result["images"]
        assert image["alt"] == ""
        assert result["errors"][0]["asset_id"] == image["id"]

    def test_auto_generate_uses_essence(self, orchestrator, client):
        client.summarize.return_value = "Foggy harbour at dawn"
        client.generate_image.return_value = _images(1)

        result = orchestrator.generate(
            GenerationRequest(prompt="ignored", auto_generate=True, content="Long article text")
        )

        assert result["prompt"] == "Foggy harbour at dawn"
        client.summarize.assert_called_once_with("Long article text")
        client.generate_image.assert_called_once_with("Foggy harbour at dawn", 1, "1:1")

    def test_auto_generate_truncates_long_articles(self, orchestrator, client):
        client.summarize.return_value = "Foggy harbour at dawn"
        client.generate_image.return_value = _images(1)

        orchestrator.generate_from_payload({"auto_generate": True, "content": "Title\n" + "x" * 5000})

        client.summarize.assert_called_once_with("Title\n" + "x" * 1000)

    def test_auto_generate_from_title_and_body(self, orchestrator, client):
        client.summarize.return_value = "Foggy harbour at dawn"
        client.generate_image.return_value = _images(1)

        result = orchestrator.generate_from_payload({"auto_generate": True, "title": "Harbour", "body": "y" * 1500})

        assert result["success"] is True
        client.summarize.assert_called_once_with("Harbour\n" + "y" * 1000)

    def test_fallback_alt_text_never_contains_quotes_or_asterisks(self, orchestrator, client):
        client.generate_alt_text.side_effect = UpstreamError("quota exceeded")
        client.generate_image.return_value = _images(1)

        result = orchestrator.generate(GenerationRequest(prompt="a lighthouse", filename_keyword='best "*deal*"'))

        alt = result["images"][0]["alt"]
        assert alt == "best deal: a lighthouse"
        assert '"' not in result["images"][0]["caption"]

    def test_unexpected_error_stays_with_its_image(self, orchestrator, client, ingestion, monkeypatch):
        client.generate_image.return_value = _images(3)
        real_ingest = ingestion.ingest
        calls = []

        def _flaky_ingest(image, metadata=None):
            calls.append(image)
            if len(calls) == 2:
                raise OSError("disk full")
            return real_ingest(image, metadata)

        monkeypatch.setattr(ingestion, "ingest", _flaky_ingest)

        result = orchestrator.generate(GenerationRequest(prompt="p", samples=3))

        assert result["success"] is True
        assert len(result["images"]) == 2
        assert result["errors"] == [{"index": 1, "message": "Unexpected error: disk full"}]

    def test_auto_generate_without_content(self, orchestrator, client):
        result = orchestrator.generate(GenerationRequest(auto_generate=True))

        assert result == {"success": False, "message": NO_CONTENT_MESSAGE}
        client.generate_image.assert_not_called()


class TestFromPayload:
    def test_invalid_samples(self, orchestrator, client):
        result = orchestrator.generate_from_payload({"prompt": "p", "samples": 9})

        assert result["success"] is False
        assert "samples" in result["message"]
        client.generate_image.assert_not_called()

    def test_string_samples_are_coerced(self, orchestrator, client):
        client.generate_image.return_value = _images(2)

        result = orchestrator.generate_from_payload({"prompt": "p", "samples": "2", "orientation": "Landscape"})

        assert len(result["images"]) == 2
        client.generate_image.assert_called_once_with("p", 2, "16:9")


class TestHelpers:
    def test_build_summary_content_truncates_body(self):
        content = build_summary_content("Title", "x" * 1500)

        assert content == "Title\n" + "x" * 1000

    def test_fallback_alt_text_limits_words(self):
        prompt = " ".join(f"w{i}" for i in range(30))

        assert fallback_alt_text(prompt).split() == [f"w{i}" for i in range(15)]

    def test_truncate_summary_content(self):
        assert truncate_summary_content("T\n" + "b" * 1200) == "T\n" + "b" * 1000
        assert truncate_summary_content("short text") == "short text"
        assert truncate_summary_content("z" * 1200) == "z" * 1000

    def test_fallback_alt_text_includes_keyword(self):
        assert fallback_alt_text("a red barn", "farm") == "farm: a red barn"
        assert fallback_alt_text("a red barn", "barn") == "a red barn"
