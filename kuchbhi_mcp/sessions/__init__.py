# kuchbhi_mcp/sessions/__init__.py
"""
Per-connection state for MCP clients: the Google credential copy and the
identifiers produced by earlier tool calls.
"""

from .session_data import SessionCredential, WorkspaceSession
from .session_manager import WorkspaceSessionManager, get_workspace_session_manager

__all__ = [
    "SessionCredential",
    "WorkspaceSession",
    "WorkspaceSessionManager",
    "get_workspace_session_manager",
]
