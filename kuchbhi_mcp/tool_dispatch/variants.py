# kuchbhi_mcp/tool_dispatch/variants.py
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator

from ..external_services.google.workspace_api import DEFAULT_DRIVE_FIELDS

if TYPE_CHECKING:
    from .context import ToolCallContext

AUTHORIZE_FIRST_TEXT = (
    "Authenticate with Google first. Connect this server again to authorize Google access."
)
REAUTHORIZATION_HINT = (
    "Google authorization expired or was revoked. Re-authorize this connection to continue."
)
MISSING_DOCUMENT_TEXT = (
    "No doc_id given and no document has been created in this session. "
    "Pass doc_id or create a document first."
)
MISSING_SPREADSHEET_TEXT = (
    "No spreadsheet_id given and no spreadsheet has been created in this session. "
    "Pass spreadsheet_id or create a spreadsheet first."
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

CellValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class ToolArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ValidateArgs(ToolArguments):
    pass


class SendGmailArgs(ToolArguments):
    to: str = Field(description="Recipient email address.")
    subject: str
    body: str

    @field_validator("to")
    @classmethod
    def _validate_to(cls, value: str) -> str:
        value = value.strip()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("must be a valid email address")
        return value


class DriveListFilesArgs(ToolArguments):
    q: Optional[str] = Field(default=None, description="Drive search query.")
    page_size: int = Field(default=50, ge=1, le=1000)
    fields: str = DEFAULT_DRIVE_FIELDS
    page_token: Optional[str] = None


class DocsCreateArgs(ToolArguments):
    title: str = Field(min_length=1)


class DocsAppendTextArgs(ToolArguments):
    text: str = Field(min_length=1)
    doc_id: Optional[str] = Field(
        default=None,
        description="Document to append to. Defaults to the last document created in this session."
    )


class DocsGetArgs(ToolArguments):
    doc_id: Optional[str] = None


class DocsCreateAndAppendArgs(ToolArguments):
    title: str = Field(min_length=1)
    text: str = Field(min_length=1)


class SheetsCreateArgs(ToolArguments):
    title: str = Field(min_length=1)


class SheetsAppendValuesArgs(ToolArguments):
    range: str = Field(min_length=1, description="A1 notation, e.g. 'Sheet1!A1'.")
    values: List[List[CellValue]] = Field(min_length=1)
    value_input_option: Literal["RAW", "USER_ENTERED"] = "USER_ENTERED"
    spreadsheet_id: Optional[str] = None


class SheetsGetValuesArgs(ToolArguments):
    range: str = Field(min_length=1)
    spreadsheet_id: Optional[str] = None


ToolHandler = Callable[["ToolCallContext", Any], Awaitable[str]]


@dataclass(frozen=True)
class ToolVariant:
    """One member of the closed set of tools: its argument record and its handler."""
    name: str
    description: str
    arguments_model: Type[ToolArguments]
    handler: ToolHandler
    requires_google_auth: bool = True
