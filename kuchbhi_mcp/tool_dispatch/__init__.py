# kuchbhi_mcp/tool_dispatch/__init__.py
"""
The closed set of Google Workspace tools and the dispatcher that runs them.
"""

from .dispatcher import ToolDispatcher, ToolResult, get_tool_dispatcher
from .registry import WORKSPACE_TOOLS, build_tool_registry
from .variants import (
    AUTHORIZE_FIRST_TEXT,
    REAUTHORIZATION_HINT,
    MISSING_DOCUMENT_TEXT,
    MISSING_SPREADSHEET_TEXT,
    ToolVariant,
)
