# kuchbhi_mcp/tool_dispatch/registry.py
import logging
from typing import Dict, Iterable, Tuple

from . import handlers
from .variants import (
    DocsAppendTextArgs,
    DocsCreateAndAppendArgs,
    DocsCreateArgs,
    DocsGetArgs,
    DriveListFilesArgs,
    SendGmailArgs,
    SheetsAppendValuesArgs,
    SheetsCreateArgs,
    SheetsGetValuesArgs,
    ToolVariant,
    ValidateArgs,
)

logger = logging.getLogger(__name__)

WORKSPACE_TOOLS: Tuple[ToolVariant, ...] = (
    ToolVariant(
        name="validate",
        description="Return the server owner's phone number for host validation.",
        arguments_model=ValidateArgs,
        handler=handlers.handle_validate,
        requires_google_auth=False,
    ),
    ToolVariant(
        name="send_gmail",
        description="Send a plain-text email from the authorized Gmail account.",
        arguments_model=SendGmailArgs,
        handler=handlers.handle_send_gmail,
    ),
    ToolVariant(
        name="drive_list_files",
        description="List Google Drive files, newest first, with an optional Drive search query.",
        arguments_model=DriveListFilesArgs,
        handler=handlers.handle_drive_list_files,
    ),
    ToolVariant(
        name="docs_create",
        description="Create a Google Doc. It becomes the default document for later Docs tools.",
        arguments_model=DocsCreateArgs,
        handler=handlers.handle_docs_create,
    ),
    ToolVariant(
        name="docs_append_text",
        description="Append text to the end of a Google Doc (defaults to the last created document).",
        arguments_model=DocsAppendTextArgs,
        handler=handlers.handle_docs_append_text,
    ),
    ToolVariant(
        name="docs_get",
        description="Fetch a Google Doc's JSON (defaults to the last created document).",
        arguments_model=DocsGetArgs,
        handler=handlers.handle_docs_get,
    ),
    ToolVariant(
        name="docs_create_and_append",
        description="Create a Google Doc and append text to it in one step.",
        arguments_model=DocsCreateAndAppendArgs,
        handler=handlers.handle_docs_create_and_append,
    ),
    ToolVariant(
        name="sheets_create",
        description="Create a Google Sheets spreadsheet. It becomes the default for later Sheets tools.",
        arguments_model=SheetsCreateArgs,
        handler=handlers.handle_sheets_create,
    ),
    ToolVariant(
        name="sheets_append_values",
        description="Append rows to a spreadsheet range (defaults to the last created spreadsheet).",
        arguments_model=SheetsAppendValuesArgs,
        handler=handlers.handle_sheets_append_values,
    ),
    ToolVariant(
        name="sheets_get_values",
        description="Read values from a spreadsheet range (defaults to the last created spreadsheet).",
        arguments_model=SheetsGetValuesArgs,
        handler=handlers.handle_sheets_get_values,
    ),
)


def build_tool_registry(variants: Iterable[ToolVariant] = WORKSPACE_TOOLS) -> Dict[str, ToolVariant]:
    """Name -> variant map. Duplicate names are a configuration error."""
    registry: Dict[str, ToolVariant] = {}
    for variant in variants:
        if variant.name in registry:
            raise ValueError(f"Duplicate tool name: {variant.name}")
        registry[variant.name] = variant
    logger.info(f"Tool registry built with {len(registry)} tools: {sorted(registry)}")
    return registry
