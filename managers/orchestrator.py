"""Summarize/generate pipeline behind the HTTP routes and MCP tools"""

import logging
from typing import Any, Dict, List, Optional

from errors import ImagenFlowError, MetadataAttachError
from gemini_client import GeminiClient, clean_alt_text
from image_processor import DEFAULT_FILENAME
from managers.ingestion_service import IngestionMetadata, MediaIngestionService
from models.generation import GenerationRequest

logger = logging.getLogger("ImagenFlow")

SUMMARY_BODY_LIMIT = 1000
ALT_TEXT_MAX_WORDS = 15
NO_PROMPT_MESSAGE = "Please provide a prompt or some content."
NO_CONTENT_MESSAGE = "There is no content to summarize."


def build_summary_content(title: str, body: str) -> str:
    """Title plus the first 1000 characters of the article body"""
    return (title or "") + "\n" + (body or "")[:SUMMARY_BODY_LIMIT]


def truncate_summary_content(content: str) -> str:
    """Apply the body limit to a blob whose first line is the title.

    Content without a line break is treated as body only.
    """
    title, separator, body = (content or "").partition("\n")
    if not separator:
        return title[:SUMMARY_BODY_LIMIT]
    return build_summary_content(title, body)


def fallback_alt_text(prompt: str, keyword: str = "") -> str:
    """Alt text derived locally when the model call fails"""
    words = clean_alt_text(prompt).split()[:ALT_TEXT_MAX_WORDS]
    text = " ".join(words)
    keyword = clean_alt_text(keyword)
    if keyword and keyword.lower() not in text.lower():
        text = f"{keyword}: {text}" if text else keyword
    return text


def failure(message: str, **extra) -> Dict[str, Any]:
    return {"success": False, "message": message, **extra}


class GenerationOrchestrator:
    """Sequences summarize -> generate -> alt text -> ingest for one request"""

    def __init__(self, client: GeminiClient, ingestion: MediaIngestionService):
        self.client = client
        self.ingestion = ingestion

    def summarize(self, content: str) -> Dict[str, Any]:
        if not content or not content.strip():
            return failure(NO_CONTENT_MESSAGE)
        try:
            essence = self.client.summarize(content)
        except ImagenFlowError as e:
            logger.warning(f"Summarize failed: {e}")
            return failure(str(e))
        if not essence:
            return failure("The model returned an empty summary.")
        return {"success": True, "essence": essence}

    def _alt_text(self, prompt: str, keyword: str) -> str:
        try:
            alt = self.client.generate_alt_text(prompt, keyword)
        except ImagenFlowError as e:
            logger.warning(f"Alt text generation failed, deriving from prompt: {e}")
            alt = ""
        return alt or fallback_alt_text(prompt, keyword)

    def _filename_hint(self, keyword: str, index: int, total: int) -> str:
        hint = keyword or DEFAULT_FILENAME
        return f"{hint}-{index + 1}" if total > 1 else hint

    def generate(self, request: GenerationRequest) -> Dict[str, Any]:
        """Run the full pipeline.

        One image failing does not abort the batch: its reason is reported in
        ``errors`` and the remaining images are still ingested, in order.
        """
        prompt = request.prompt
        if request.auto_generate:
            summary = self.summarize(truncate_summary_content(request.content))
            if not summary["success"]:
                return summary
            prompt = summary["essence"]

        if not prompt:
            return failure(NO_PROMPT_MESSAGE)

        try:
            generated = self.client.generate_image(prompt, request.samples, request.aspect_ratio)
        except ImagenFlowError as e:
            logger.error(f"Image generation failed: {e}")
            return failure(str(e))

        images: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []
        for index, image in enumerate(generated):
            alt = self._alt_text(prompt, request.filename_keyword)
            metadata = IngestionMetadata(
                alt=alt,
                caption=alt,
                filename_hint=self._filename_hint(request.filename_keyword, index, len(generated)),
            )
            try:
                asset = self.ingestion.ingest(image, metadata)
            except MetadataAttachError as e:
                logger.warning(f"Image {index} stored without metadata: {e}")
                stored = self.ingestion.library.get_asset(e.asset_id)
                if stored is not None:
                    images.append(stored.to_response())
                errors.append({"index": index, "message": str(e), "asset_id": e.asset_id})
                continue
            except ImagenFlowError as e:
                logger.warning(f"Skipping image {index}: {e}")
                errors.append({"index": index, "message": str(e)})
                continue
            except Exception as e:
                logger.exception(f"Unexpected error ingesting image {index}")
                errors.append({"index": index, "message": f"Unexpected error: {e}"})
                continue
            images.append(asset.to_response())

        if not images:
            return failure(errors[0]["message"] if errors else "No images were generated.", errors=errors)

        response: Dict[str, Any] = {"success": True, "prompt": prompt, "images": images}
        if errors:
            response["errors"] = errors
        logger.info(f"Generated {len(images)}/{len(generated)} image(s)")
        return response

    def generate_from_payload(self, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            request = GenerationRequest.from_payload(payload or {})
        except ValueError as e:
            return failure(str(e))
        return self.generate(request)
