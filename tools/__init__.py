"""MCP tool and HTTP route registration for the ImagenFlow server"""
