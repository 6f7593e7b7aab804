import base64
import logging
from typing import Any, Dict, List, Optional

import requests

from errors import MissingCredential, UpstreamError, UpstreamTimeout
from models.generation import GeneratedImage

logger = logging.getLogger("GeminiClient")

# Fixed per-call timeouts in seconds
GENERATE_TIMEOUT = 60
SUMMARIZE_TIMEOUT = 30
ANALYZE_TIMEOUT = 30
ALT_TEXT_TIMEOUT = 20

SUMMARIZE_INSTRUCTION = (
    "Extract the visual essence of the following text to create a detailed image "
    "generation prompt. Focus on mood, subjects, and style:\n\n"
)
DEFAULT_ANALYZE_PROMPT = "Describe this image for a visual prompt."
ALT_TEXT_STRIP_CHARS = ('"', "*")


def clean_alt_text(text: str) -> str:
    """Trim model output and drop quote/markdown characters"""
    cleaned = (text or "").strip()
    for char in ALT_TEXT_STRIP_CHARS:
        cleaned = cleaned.replace(char, "")
    return cleaned.strip()


class GeminiClient:
    def __init__(self, config, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def apply_config(self, config):
        self.config = config

    def _require_key(self) -> str:
        if not self.config.has_credential:
            raise MissingCredential()
        return self.config.api_key

    def _model_url(self, model: str, method: str) -> str:
        return f"{self.config.api_base_url}/models/{model}:{method}"

    def _post(self, model: str, method: str, body: Dict[str, Any], timeout: int) -> Dict[str, Any]:
        api_key = self._require_key()
        url = self._model_url(model, method)
        logger.info("POST %s (timeout=%ss)", url, timeout)
        try:
            response = self.session.post(
                url,
                params={"key": api_key},
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=timeout,
            )
        except requests.Timeout as e:
            raise UpstreamTimeout(f"Request to {model} timed out after {timeout}s") from e
        except requests.RequestException as e:
            # Scrub the key: requests puts the full URL (with ?key=) into its messages
            message = str(e).replace(api_key, "***")
            raise UpstreamError(f"Gemini API request failed: {message}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and "error" in data:
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.warning("Gemini API error from %s: %s", model, message)
            raise UpstreamError(message or "Unknown API error", status_code=response.status_code)
        if response.status_code != 200:
            raise UpstreamError(
                f"Gemini API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise UpstreamError("Gemini API returned a non-JSON response", status_code=response.status_code)
        return data

    def _generate_text(self, parts: List[Dict[str, Any]], timeout: int) -> str:
        data = self._post(self.config.text_model, "generateContent", {"contents": [{"parts": parts}]}, timeout)
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Gemini response had no text candidate")
            return ""

    def summarize(self, content: str) -> str:
        """Extract the visual essence of article text as a generation prompt"""
        text = self._generate_text([{"text": SUMMARIZE_INSTRUCTION + content}], SUMMARIZE_TIMEOUT)
        return text.strip()

    def generate_image(self, prompt: str, sample_count: int = 1, aspect_ratio: str = "1:1") -> List[GeneratedImage]:
        body = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "sampleCount": int(sample_count),
                "aspectRatio": aspect_ratio,
            },
        }
        data = self._post(self.config.image_model, "predict", body, GENERATE_TIMEOUT)

        images = []
        for prediction in data.get("predictions") or []:
            image = GeneratedImage.from_prediction(prediction)
            if image is None:
                logger.warning("Skipping prediction without image bytes: %s", sorted(prediction))
                continue
            images.append(image)
        if not images:
            raise UpstreamError("No images returned by the image model")
        logger.info(f"Generated {len(images)} image(s) for aspect ratio {aspect_ratio}")
        return images

    def generate_alt_text(self, prompt: str, keyword: str = "") -> str:
        instruction = (
            f'Generate a concise, 1-sentence SEO alt text (max 15 words) for an image described as: "{prompt}".'
        )
        if keyword:
            instruction += f' Ensure the keyword "{keyword}" is naturally included.'
        instruction += " Do not include any prefixes like 'Alt text:' or markdown."
        return clean_alt_text(self._generate_text([{"text": instruction}], ALT_TEXT_TIMEOUT))

    def analyze_image(self, image_bytes: bytes, prompt: str = DEFAULT_ANALYZE_PROMPT, mime_type: str = "image/jpeg") -> str:
        """Describe an image with the vision model. Not used by the generate flow."""
        parts = [
            {"text": prompt},
            {
                "inline_data": {
                    "mime_type": mime_type,
                    "data": base64.b64encode(image_bytes).decode("ascii"),
                }
            },
        ]
        return self._generate_text(parts, ANALYZE_TIMEOUT).strip()
