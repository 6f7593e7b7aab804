"""Summarize and generate operations, exposed as HTTP routes and MCP tools"""

import logging

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from managers.orchestrator import GenerationOrchestrator, build_summary_content, failure
from models.generation import GenerationRequest
from tools.helpers import call_guarded, read_json_body, respond_guarded

logger = logging.getLogger("ImagenFlow")


def register_generation_tools(mcp: FastMCP, orchestrator: GenerationOrchestrator):
    """Register the summarize/generate routes and tools"""

    @mcp.custom_route("/summarize", methods=["POST"])
    async def summarize_route(request: Request) -> JSONResponse:
        payload, error = await read_json_body(request)
        if error:
            return error
        content = payload.get("content")
        if content is None and ("title" in payload or "body" in payload):
            content = build_summary_content(str(payload.get("title") or ""), str(payload.get("body") or ""))
        if content is not None and not isinstance(content, str):
            return JSONResponse(failure("'content' must be a string"), status_code=400)
        return await respond_guarded("summarize", orchestrator.summarize, content or "")

    @mcp.custom_route("/generate", methods=["POST"])
    async def generate_route(request: Request) -> JSONResponse:
        payload, error = await read_json_body(request)
        if error:
            return error
        try:
            generation_request = GenerationRequest.from_payload(payload)
        except ValueError as e:
            return JSONResponse(failure(str(e)), status_code=400)
        return await respond_guarded("generate", orchestrator.generate, generation_request)

    @mcp.tool()
    def summarize_content(content: str) -> dict:
        """Extract the visual essence of article text as an image prompt.

        Args:
            content: Article title and body text

        Returns:
            {"success": True, "essence": ...} or {"success": False, "message": ...}
        """
        return call_guarded("summarize", orchestrator.summarize, content)

    @mcp.tool()
    def generate_images(
        prompt: str = "",
        samples: int = 1,
        orientation: str = "square",
        filename_keyword: str = "",
        auto_generate: bool = False,
        content: str = "",
    ) -> dict:
        """Generate images with Imagen and store them in the media library.

        Args:
            prompt: Text prompt. Ignored when auto_generate is set.
            samples: Number of images, 1-4
            orientation: "square" (1:1), "portrait" (3:4) or "landscape" (16:9)
            filename_keyword: Keyword used for file names and worked into the alt text
            auto_generate: Build the prompt by summarizing ``content``
            content: Article text for auto_generate

        Returns:
            {"success": True, "images": [{"id", "url", "alt", "caption"}], "errors"?: [...]}
            or {"success": False, "message": ...}
        """
        payload = {
            "prompt": prompt,
            "samples": samples,
            "orientation": orientation,
            "filename_keyword": filename_keyword,
            "auto_generate": auto_generate,
            "content": content,
        }
        return call_guarded("generate", orchestrator.generate_from_payload, payload)
