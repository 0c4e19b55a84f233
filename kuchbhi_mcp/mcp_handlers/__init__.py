# kuchbhi_mcp/mcp_handlers/__init__.py

from .workspace_mcp_app import workspace_mcp, WORKSPACE_SESSION_STATE_KEY
