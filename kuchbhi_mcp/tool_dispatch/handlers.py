# kuchbhi_mcp/tool_dispatch/handlers.py
"""
One handler per tool. Success passes Google's response body through as text;
failure goes through ToolCallContext.failure_text.
"""
import logging

from ..external_services.google import workspace_api
from .context import ToolCallContext
from .variants import (
    MISSING_DOCUMENT_TEXT,
    MISSING_SPREADSHEET_TEXT,
    DocsAppendTextArgs,
    DocsCreateAndAppendArgs,
    DocsCreateArgs,
    DocsGetArgs,
    DriveListFilesArgs,
    SendGmailArgs,
    SheetsAppendValuesArgs,
    SheetsCreateArgs,
    SheetsGetValuesArgs,
    ValidateArgs,
)

logger = logging.getLogger(__name__)


async def handle_validate(ctx: ToolCallContext, args: ValidateArgs) -> str:
    """Returns the operator's phone number, used by MCP hosts to verify the server owner."""
    phone_number = ctx.app_settings.phone_number
    if not phone_number:
        logger.warning("validate called but PHONE_NUMBER is not configured.")
        return "PHONE_NUMBER not set"
    return phone_number


async def handle_send_gmail(ctx: ToolCallContext, args: SendGmailArgs) -> str:
    result = await ctx.call(workspace_api.gmail_send_request(args.to, args.subject, args.body))
    if not result.ok:
        return ctx.failure_text(result)
    logger.info(f"send_gmail: message sent for user '{ctx.session.user_id}'.")
    return result.body


async def handle_drive_list_files(ctx: ToolCallContext, args: DriveListFilesArgs) -> str:
    result = await ctx.call(
        workspace_api.drive_list_files_request(
            q=args.q,
            page_size=args.page_size,
            fields=args.fields,
            page_token=args.page_token,
        )
    )
    return result.body if result.ok else ctx.failure_text(result)


async def handle_docs_create(ctx: ToolCallContext, args: DocsCreateArgs) -> str:
    result = await ctx.call(workspace_api.docs_create_request(args.title))
    if not result.ok:
        return ctx.failure_text(result)

    document_id = result.json_body().get("documentId")
    if document_id:
        ctx.session.remember_document(document_id)
        logger.info(f"docs_create: document '{document_id}' is now the session's last document.")
    return result.body


async def handle_docs_append_text(ctx: ToolCallContext, args: DocsAppendTextArgs) -> str:
    # An explicit id always wins over the session default
    document_id = args.doc_id or ctx.session.last_document_id
    if not document_id:
        return MISSING_DOCUMENT_TEXT

    result = await ctx.call(workspace_api.docs_append_text_request(document_id, args.text))
    return result.body if result.ok else ctx.failure_text(result)


async def handle_docs_get(ctx: ToolCallContext, args: DocsGetArgs) -> str:
    document_id = args.doc_id or ctx.session.last_document_id
    if not document_id:
        return MISSING_DOCUMENT_TEXT

    result = await ctx.call(workspace_api.docs_get_request(document_id))
    return result.body if result.ok else ctx.failure_text(result)


async def handle_docs_create_and_append(ctx: ToolCallContext, args: DocsCreateAndAppendArgs) -> str:
    """
    Create a document, then append text to it. Each step is its own guarded
    call; a failed append still reports the id of the created document.
    """
    created = await ctx.call(workspace_api.docs_create_request(args.title))
    if not created.ok:
        return ctx.failure_text(created)

    document_id = created.json_body().get("documentId")
    if not document_id:
        return f"Document created but its id could not be read from the response: {created.body}"
    ctx.session.remember_document(document_id)

    appended = await ctx.call(workspace_api.docs_append_text_request(document_id, args.text))
    if not appended.ok:
        return (
            f"Created document {document_id} ('{args.title}'), but appending text failed.\n"
            f"{ctx.failure_text(appended)}"
        )
    return f"Created document {document_id} ('{args.title}') and appended text.\n{appended.body}"


async def handle_sheets_create(ctx: ToolCallContext, args: SheetsCreateArgs) -> str:
    result = await ctx.call(workspace_api.sheets_create_request(args.title))
    if not result.ok:
        return ctx.failure_text(result)

    spreadsheet_id = result.json_body().get("spreadsheetId")
    if spreadsheet_id:
        ctx.session.remember_spreadsheet(spreadsheet_id)
    return result.body


async def handle_sheets_append_values(ctx: ToolCallContext, args: SheetsAppendValuesArgs) -> str:
    spreadsheet_id = args.spreadsheet_id or ctx.session.last_spreadsheet_id
    if not spreadsheet_id:
        return MISSING_SPREADSHEET_TEXT

    result = await ctx.call(
        workspace_api.sheets_append_values_request(
            spreadsheet_id, args.range, args.values, args.value_input_option
        )
    )
    return result.body if result.ok else ctx.failure_text(result)


async def handle_sheets_get_values(ctx: ToolCallContext, args: SheetsGetValuesArgs) -> str:
    spreadsheet_id = args.spreadsheet_id or ctx.session.last_spreadsheet_id
    if not spreadsheet_id:
        return MISSING_SPREADSHEET_TEXT

    result = await ctx.call(workspace_api.sheets_get_values_request(spreadsheet_id, args.range))
    return result.body if result.ok else ctx.failure_text(result)
