"""Media asset lookup tools"""

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from managers.media_library import MediaLibrary


def register_asset_tools(mcp: FastMCP, library: MediaLibrary):
    """Register read-only access to stored assets"""

    @mcp.custom_route("/media/{asset_id}", methods=["GET"])
    async def asset_route(request: Request) -> JSONResponse:
        asset_id = request.path_params["asset_id"]
        asset = library.get_asset(asset_id)
        if asset is None:
            return JSONResponse({"success": False, "message": f"Asset {asset_id} not found"}, status_code=404)
        return JSONResponse({"success": True, "asset": asset.to_dict()})

    @mcp.tool()
    def get_media_asset(asset_id: str) -> dict:
        """Look up a stored image by ID.

        Returns the full record: url, alt, caption, mime type, size and
        dimensions.
        """
        asset = library.get_asset(asset_id)
        if asset is None:
            return {"error": f"Asset {asset_id} not found"}
        return asset.to_dict()

    @mcp.tool()
    def list_media_assets(limit: int = 20) -> dict:
        """List the most recently stored images"""
        assets = library.list_assets()[-limit:] if limit > 0 else []
        return {
            "assets": [asset.to_response() for asset in reversed(assets)],
            "count": len(assets),
            "total": len(library.list_assets()),
        }
