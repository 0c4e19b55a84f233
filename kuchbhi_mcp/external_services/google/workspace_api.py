# kuchbhi_mcp/external_services/google/workspace_api.py
"""
Request builders for the Gmail, Drive, Docs and Sheets REST APIs.

Each function takes the tool arguments and returns a RequestBuilder: a
function from an access token to an httpx.Request. The refresh guard calls
it once per attempt, so a retry is rebuilt with the refreshed token.
"""
import base64
import logging
from email.message import EmailMessage
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from ...guard import RequestBuilder

logger = logging.getLogger(__name__)

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
DRIVE_API_BASE_URL = "https://www.googleapis.com/drive/v3"
DOCS_API_BASE_URL = "https://docs.googleapis.com/v1"
SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4"

DEFAULT_DRIVE_FIELDS = (
    "files(id,name,mimeType,modifiedTime,owners(displayName,emailAddress)),nextPageToken"
)

CellValue = Union[str, int, float, bool]


def _auth_headers(access_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}


def _builder(
    method: str,
    url: str,
    json_payload: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> RequestBuilder:
    def build(access_token: str) -> httpx.Request:
        return httpx.Request(
            method,
            url,
            headers=_auth_headers(access_token),
            json=json_payload,
            params=params,
        )
    return build


def build_raw_email(to: str, subject: str, body: str) -> str:
    """RFC 822 message encoded as unpadded base64url, the form Gmail's `raw` field takes."""
    message = EmailMessage()
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body, charset="utf-8")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")


# Gmail

def gmail_send_request(to: str, subject: str, body: str) -> RequestBuilder:
    return _builder(
        "POST",
        f"{GMAIL_API_BASE_URL}/users/me/messages/send",
        json_payload={"raw": build_raw_email(to, subject, body)},
    )


# Drive

def drive_list_files_request(
    q: Optional[str] = None,
    page_size: int = 50,
    fields: str = DEFAULT_DRIVE_FIELDS,
    page_token: Optional[str] = None,
) -> RequestBuilder:
    params: Dict[str, Any] = {
        "pageSize": page_size,
        "fields": fields,
        "spaces": "drive",
        "orderBy": "modifiedTime desc",
    }
    if q:
        params["q"] = q
    if page_token:
        params["pageToken"] = page_token
    return _builder("GET", f"{DRIVE_API_BASE_URL}/files", params=params)


# Docs

def docs_create_request(title: str) -> RequestBuilder:
    return _builder("POST", f"{DOCS_API_BASE_URL}/documents", json_payload={"title": title})


def docs_append_text_request(document_id: str, text: str) -> RequestBuilder:
    payload = {
        "requests": [
            {
                "insertText": {
                    "endOfSegmentLocation": {},
                    "text": text,
                }
            }
        ]
    }
    return _builder(
        "POST",
        f"{DOCS_API_BASE_URL}/documents/{quote(document_id, safe='')}:batchUpdate",
        json_payload=payload,
    )


def docs_get_request(document_id: str) -> RequestBuilder:
    return _builder("GET", f"{DOCS_API_BASE_URL}/documents/{quote(document_id, safe='')}")


# Sheets

def sheets_create_request(title: str) -> RequestBuilder:
    return _builder(
        "POST",
        f"{SHEETS_API_BASE_URL}/spreadsheets",
        json_payload={"properties": {"title": title}},
    )


def _values_url(spreadsheet_id: str, cell_range: str) -> str:
    return (
        f"{SHEETS_API_BASE_URL}/spreadsheets/{quote(spreadsheet_id, safe='')}"
        f"/values/{quote(cell_range, safe='')}"
    )


def sheets_append_values_request(
    spreadsheet_id: str,
    cell_range: str,
    values: List[List[CellValue]],
    value_input_option: str = "USER_ENTERED",
) -> RequestBuilder:
    return _builder(
        "POST",
        f"{_values_url(spreadsheet_id, cell_range)}:append",
        json_payload={"values": values},
        params={"valueInputOption": value_input_option},
    )


def sheets_get_values_request(spreadsheet_id: str, cell_range: str) -> RequestBuilder:
    return _builder("GET", _values_url(spreadsheet_id, cell_range))
