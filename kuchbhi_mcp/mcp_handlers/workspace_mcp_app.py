# kuchbhi_mcp/mcp_handlers/workspace_mcp_app.py
import logging
from typing import Any, Dict, List, Literal, Optional, Union

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_http_request

from ..sessions import WorkspaceSession
from ..settings import settings
from ..tool_dispatch import WORKSPACE_TOOLS, get_tool_dispatcher

logger = logging.getLogger(__name__)

WORKSPACE_SESSION_STATE_KEY = "workspace_session"

_DESCRIPTIONS = {variant.name: variant.description for variant in WORKSPACE_TOOLS}


def _current_session() -> Optional[WorkspaceSession]:
    """The WorkspaceSession the MCP endpoint injected into this request's scope."""
    try:
        request = get_http_request()
    except RuntimeError as e:
        logger.debug(f"No active HTTP request for tool call: {e}")
        return None
    scope_state = request.scope.get("state", {})
    if not isinstance(scope_state, dict):
        return None
    session = scope_state.get(WORKSPACE_SESSION_STATE_KEY)
    return session if isinstance(session, WorkspaceSession) else None


async def _run_tool(tool_name: str, arguments: Dict[str, Any]) -> str:
    provided = {key: value for key, value in arguments.items() if value is not None}
    result = await get_tool_dispatcher().dispatch(tool_name, provided, _current_session())
    return result.text


workspace_mcp = FastMCP(
    name=settings.app_name,
    instructions=(
        "Google Workspace tools for Gmail, Drive, Docs and Sheets, acting as the user "
        "who authorized this connection. Docs and Sheets tools default to the document "
        "or spreadsheet most recently created in this session."
    ),
)


@workspace_mcp.tool(name="validate", description=_DESCRIPTIONS["validate"])
async def validate() -> str:
    return await _run_tool("validate", {})


@workspace_mcp.tool(name="send_gmail", description=_DESCRIPTIONS["send_gmail"])
async def send_gmail(to: str, subject: str, body: str) -> str:
    return await _run_tool("send_gmail", {"to": to, "subject": subject, "body": body})


@workspace_mcp.tool(name="drive_list_files", description=_DESCRIPTIONS["drive_list_files"])
async def drive_list_files(
    q: Optional[str] = None,
    page_size: int = 50,
    fields: Optional[str] = None,
    page_token: Optional[str] = None,
) -> str:
    return await _run_tool(
        "drive_list_files",
        {"q": q, "page_size": page_size, "fields": fields, "page_token": page_token},
    )


@workspace_mcp.tool(name="docs_create", description=_DESCRIPTIONS["docs_create"])
async def docs_create(title: str) -> str:
    return await _run_tool("docs_create", {"title": title})


@workspace_mcp.tool(name="docs_append_text", description=_DESCRIPTIONS["docs_append_text"])
async def docs_append_text(text: str, doc_id: Optional[str] = None) -> str:
    return await _run_tool("docs_append_text", {"text": text, "doc_id": doc_id})


@workspace_mcp.tool(name="docs_get", description=_DESCRIPTIONS["docs_get"])
async def docs_get(doc_id: Optional[str] = None) -> str:
    return await _run_tool("docs_get", {"doc_id": doc_id})


@workspace_mcp.tool(name="docs_create_and_append", description=_DESCRIPTIONS["docs_create_and_append"])
async def docs_create_and_append(title: str, text: str) -> str:
    return await _run_tool("docs_create_and_append", {"title": title, "text": text})


@workspace_mcp.tool(name="sheets_create", description=_DESCRIPTIONS["sheets_create"])
async def sheets_create(title: str) -> str:
    return await _run_tool("sheets_create", {"title": title})


@workspace_mcp.tool(name="sheets_append_values", description=_DESCRIPTIONS["sheets_append_values"])
async def sheets_append_values(
    range: str,
    values: List[List[Union[bool, int, float, str]]],
    value_input_option: Literal["RAW", "USER_ENTERED"] = "USER_ENTERED",
    spreadsheet_id: Optional[str] = None,
) -> str:
    return await _run_tool(
        "sheets_append_values",
        {
            "range": range,
            "values": values,
            "value_input_option": value_input_option,
            "spreadsheet_id": spreadsheet_id,
        },
    )


@workspace_mcp.tool(name="sheets_get_values", description=_DESCRIPTIONS["sheets_get_values"])
async def sheets_get_values(range: str, spreadsheet_id: Optional[str] = None) -> str:
    return await _run_tool("sheets_get_values", {"range": range, "spreadsheet_id": spreadsheet_id})


logger.info(f"Workspace FastMCP server '{workspace_mcp.name}' created with {len(_DESCRIPTIONS)} tools.")
