# tests/test_tool_dispatch.py
import base64
import json

import httpx
import pytest

from kuchbhi_mcp.guard import TokenRefreshGuard
from kuchbhi_mcp.settings import settings
from kuchbhi_mcp.tool_dispatch import (
    AUTHORIZE_FIRST_TEXT,
    MISSING_DOCUMENT_TEXT,
    MISSING_SPREADSHEET_TEXT,
    REAUTHORIZATION_HINT,
    ToolDispatcher,
    WORKSPACE_TOOLS,
    build_tool_registry,
)
from kuchbhi_mcp.external_services.google.workspace_api import (
    DOCS_API_BASE_URL,
    DRIVE_API_BASE_URL,
    GMAIL_API_BASE_URL,
    SHEETS_API_BASE_URL,
)

from conftest import TOKEN_URL, make_exchanger, make_session

DOCUMENTS_URL = f"{DOCS_API_BASE_URL}/documents"


def _dispatcher(recording_transport) -> ToolDispatcher:
    guard = TokenRefreshGuard(
        exchanger=make_exchanger(recording_transport.transport),
        transport=recording_transport.transport,
    )
    return ToolDispatcher(guard=guard, app_settings=settings)


def test_registry_is_closed_set_of_workspace_tools():
    registry = build_tool_registry()
    assert sorted(registry) == sorted([
        "validate", "send_gmail", "drive_list_files", "docs_create", "docs_append_text",
        "docs_get", "docs_create_and_append", "sheets_create", "sheets_append_values",
        "sheets_get_values",
    ])


def test_duplicate_tool_names_are_rejected():
    with pytest.raises(ValueError):
        build_tool_registry(WORKSPACE_TOOLS + (WORKSPACE_TOOLS[0],))


@pytest.mark.asyncio
async def test_create_then_append_uses_remembered_document(recording_transport):
    recording_transport.add("POST", f"{DOCUMENTS_URL}/doc-42:batchUpdate", (200, {"documentId": "doc-42", "replies": [{}]}))
    recording_transport.add("POST", DOCUMENTS_URL, (200, {"documentId": "doc-42", "title": "Notes"}))
    dispatcher = _dispatcher(recording_transport)
    session = make_session()

    created = await dispatcher.dispatch("docs_create", {"title": "Notes"}, session)
    assert not created.is_error
    assert json.loads(created.text)["documentId"] == "doc-42"
    assert session.last_document_id == "doc-42"

    appended = await dispatcher.dispatch("docs_append_text", {"text": "Hello"}, session)
    assert not appended.is_error
    assert "doc-42" in appended.text

    append_request = recording_transport.requests[1]
    assert str(append_request.url) == f"{DOCUMENTS_URL}/doc-42:batchUpdate"
    assert json.loads(append_request.content) == {
        "requests": [{"insertText": {"endOfSegmentLocation": {}, "text": "Hello"}}]
    }


@pytest.mark.asyncio
async def test_explicit_document_id_is_used_without_prior_create(recording_transport):
    recording_transport.add("POST", f"{DOCUMENTS_URL}/explicit-doc:batchUpdate", (200, {"documentId": "explicit-doc"}))
    session = make_session()

    result = await _dispatcher(recording_transport).dispatch(
        "docs_append_text", {"text": "Hi", "doc_id": "explicit-doc"}, session
    )

    assert not result.is_error
    assert len(recording_transport.requests) == 1
    assert str(recording_transport.requests[0].url) == f"{DOCUMENTS_URL}/explicit-doc:batchUpdate"
    assert session.last_document_id is None


@pytest.mark.asyncio
async def test_explicit_document_id_wins_over_remembered_one(recording_transport):
    recording_transport.add("GET", f"{DOCUMENTS_URL}/other-doc", (200, {"documentId": "other-doc"}))
    session = make_session()
    session.remember_document("doc-42")

    await _dispatcher(recording_transport).dispatch("docs_get", {"doc_id": "other-doc"}, session)

    assert str(recording_transport.requests[0].url) == f"{DOCUMENTS_URL}/other-doc"


@pytest.mark.asyncio
async def test_missing_implicit_document_makes_no_call(recording_transport):
    result = await _dispatcher(recording_transport).dispatch("docs_get", {}, make_session())
    assert result.text == MISSING_DOCUMENT_TEXT
    assert recording_transport.requests == []


@pytest.mark.asyncio
async def test_missing_implicit_spreadsheet_makes_no_call(recording_transport):
    result = await _dispatcher(recording_transport).dispatch(
        "sheets_get_values", {"range": "Sheet1!A1:B2"}, make_session()
    )
    assert result.text == MISSING_SPREADSHEET_TEXT
    assert recording_transport.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("tool_name, arguments", [
    ("send_gmail", {"to": "not-an-email", "subject": "s", "body": "b"}),
    ("send_gmail", {"subject": "s", "body": "b"}),
    ("drive_list_files", {"page_size": 0}),
    ("sheets_append_values", {"range": "A1", "values": [[{"nested": "object"}]]}),
    ("sheets_append_values", {"range": "A1", "values": [["x"]], "value_input_option": "FORMULA"}),
    ("docs_create", {"title": "Notes", "unexpected": True}),
])
async def test_invalid_arguments_are_rejected_before_any_network_call(recording_transport, tool_name, arguments):
    result = await _dispatcher(recording_transport).dispatch(tool_name, arguments, make_session())

    assert result.is_error
    assert result.text.startswith(f"Invalid arguments for {tool_name}:")
    assert recording_transport.requests == []


@pytest.mark.asyncio
async def test_tool_without_token_asks_to_authenticate(recording_transport):
    result = await _dispatcher(recording_transport).dispatch(
        "drive_list_files", {}, make_session(access_token="")
    )
    assert result.text == AUTHORIZE_FIRST_TEXT
    assert recording_transport.requests == []


@pytest.mark.asyncio
async def test_tool_without_session_asks_to_authenticate(recording_transport):
    result = await _dispatcher(recording_transport).dispatch("docs_create", {"title": "Notes"}, None)
    assert result.text == AUTHORIZE_FIRST_TEXT


@pytest.mark.asyncio
async def test_unknown_tool(recording_transport):
    result = await _dispatcher(recording_transport).dispatch("calendar_create", {}, make_session())
    assert result.is_error
    assert result.text == "Unknown tool: calendar_create"


@pytest.mark.asyncio
async def test_validate_returns_phone_number_without_google(recording_transport, monkeypatch):
    monkeypatch.setattr(settings, "phone_number", "919876543210")
    result = await _dispatcher(recording_transport).dispatch("validate", {}, None)
    assert result.text == "919876543210"
    assert recording_transport.requests == []


@pytest.mark.asyncio
async def test_validate_without_phone_number(recording_transport, monkeypatch):
    monkeypatch.setattr(settings, "phone_number", None)
    result = await _dispatcher(recording_transport).dispatch("validate", {}, None)
    assert result.text == "PHONE_NUMBER not set"


@pytest.mark.asyncio
async def test_upstream_failure_body_is_reported_verbatim(recording_transport):
    recording_transport.add("GET", f"{DRIVE_API_BASE_URL}/files", (500, "Backend Error"))

    result = await _dispatcher(recording_transport).dispatch("drive_list_files", {}, make_session())

    assert result.text == "drive_list_files failed: Backend Error"
    assert recording_transport.count(TOKEN_URL) == 0


@pytest.mark.asyncio
async def test_refresh_then_second_rejection_carries_reauthorization_hint(recording_transport):
    recording_transport.add("GET", f"{DRIVE_API_BASE_URL}/files", (401, "first"), (401, "second"))
    recording_transport.add("POST", TOKEN_URL, (200, {"access_token": "ya29.fresh"}))

    result = await _dispatcher(recording_transport).dispatch("drive_list_files", {}, make_session())

    assert result.text == f"{REAUTHORIZATION_HINT}\ndrive_list_files failed: second"
    assert recording_transport.count(f"{DRIVE_API_BASE_URL}/files") == 2


@pytest.mark.asyncio
async def test_failed_refresh_reports_original_failure_with_hint(recording_transport):
    recording_transport.add("POST", f"{GMAIL_API_BASE_URL}/users/me/messages/send", (401, "Invalid Credentials"))
    recording_transport.add("POST", TOKEN_URL, (400, '{"error": "invalid_grant"}'))

    result = await _dispatcher(recording_transport).dispatch(
        "send_gmail", {"to": "bob@example.com", "subject": "Hi", "body": "Hello Bob"}, make_session()
    )

    assert result.text == f"{REAUTHORIZATION_HINT}\nsend_gmail failed: Invalid Credentials"


@pytest.mark.asyncio
async def test_transport_error_becomes_failure_text():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    transport = httpx.MockTransport(handler)
    dispatcher = ToolDispatcher(
        guard=TokenRefreshGuard(exchanger=make_exchanger(transport), transport=transport),
        app_settings=settings,
    )

    result = await dispatcher.dispatch("docs_get", {"doc_id": "d1"}, make_session())

    assert result.text == "docs_get failed: timed out"


@pytest.mark.asyncio
async def test_create_and_append_reports_created_id_when_append_fails(recording_transport):
    recording_transport.add("POST", f"{DOCUMENTS_URL}/doc-7:batchUpdate", (400, "Invalid requests[0].insertText"))
    recording_transport.add("POST", DOCUMENTS_URL, (200, {"documentId": "doc-7"}))
    session = make_session()

    result = await _dispatcher(recording_transport).dispatch(
        "docs_create_and_append", {"title": "Plan", "text": "Step 1"}, session
    )

    assert result.text == (
        "Created document doc-7 ('Plan'), but appending text failed.\n"
        "docs_create_and_append failed: Invalid requests[0].insertText"
    )
    assert session.last_document_id == "doc-7"


@pytest.mark.asyncio
async def test_create_and_append_success(recording_transport):
    recording_transport.add("POST", f"{DOCUMENTS_URL}/doc-8:batchUpdate", (200, {"documentId": "doc-8"}))
    recording_transport.add("POST", DOCUMENTS_URL, (200, {"documentId": "doc-8"}))

    result = await _dispatcher(recording_transport).dispatch(
        "docs_create_and_append", {"title": "Plan", "text": "Step 1"}, make_session()
    )

    assert result.text.startswith("Created document doc-8 ('Plan') and appended text.\n")


@pytest.mark.asyncio
async def test_send_gmail_encodes_raw_message(recording_transport):
    recording_transport.add("POST", f"{GMAIL_API_BASE_URL}/users/me/messages/send", (200, {"id": "msg-1"}))

    result = await _dispatcher(recording_transport).dispatch(
        "send_gmail", {"to": "bob@example.com", "subject": "Hi", "body": "Hello Bob"}, make_session()
    )

    assert json.loads(result.text) == {"id": "msg-1"}
    raw = json.loads(recording_transport.requests[0].content)["raw"]
    assert "=" not in raw
    message = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode("utf-8")
    assert "To: bob@example.com" in message
    assert "Subject: Hi" in message
    assert "Hello Bob" in message


@pytest.mark.asyncio
async def test_drive_list_files_query_parameters(recording_transport):
    recording_transport.add("GET", f"{DRIVE_API_BASE_URL}/files", (200, {"files": []}))

    await _dispatcher(recording_transport).dispatch(
        "drive_list_files", {"q": "name contains 'report'", "page_size": 10}, make_session()
    )

    params = recording_transport.requests[0].url.params
    assert params["q"] == "name contains 'report'"
    assert params["pageSize"] == "10"
    assert params["spaces"] == "drive"
    assert params["orderBy"] == "modifiedTime desc"


@pytest.mark.asyncio
async def test_sheets_create_then_append_uses_remembered_spreadsheet(recording_transport):
    recording_transport.add("POST", f"{SHEETS_API_BASE_URL}/spreadsheets/sheet-1/values/", (200, {"updates": {"updatedRows": 1}}))
    recording_transport.add("POST", f"{SHEETS_API_BASE_URL}/spreadsheets", (200, {"spreadsheetId": "sheet-1"}))
    session = make_session()
    dispatcher = _dispatcher(recording_transport)

    await dispatcher.dispatch("sheets_create", {"title": "Budget"}, session)
    result = await dispatcher.dispatch(
        "sheets_append_values", {"range": "Sheet1!A1", "values": [["Rent", 1200, True]]}, session
    )

    assert not result.is_error
    assert session.last_spreadsheet_id == "sheet-1"
    create_request, append_request = recording_transport.requests
    assert json.loads(create_request.content) == {"properties": {"title": "Budget"}}
    assert append_request.url.path == "/v4/spreadsheets/sheet-1/values/Sheet1!A1:append"
    assert append_request.url.params["valueInputOption"] == "USER_ENTERED"
    assert json.loads(append_request.content) == {"values": [["Rent", 1200, True]]}
