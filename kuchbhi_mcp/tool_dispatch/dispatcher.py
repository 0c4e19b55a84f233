# kuchbhi_mcp/tool_dispatch/dispatcher.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..guard import MissingAccessTokenError, TokenRefreshGuard
from ..oauth.upstream import get_upstream_exchanger
from ..sessions import WorkspaceSession
from ..settings import Settings, settings
from .context import ToolCallContext
from .registry import build_tool_registry
from .variants import AUTHORIZE_FIRST_TEXT, ToolVariant

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """A single text payload, the only shape a tool ever returns."""
    text: str
    is_error: bool = False

    def to_content(self) -> Dict[str, List[Dict[str, str]]]:
        return {"content": [{"type": "text", "text": self.text}]}


def _format_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(loc) for loc in err.get("loc", ())) or "arguments"
        parts.append(f"{location}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


class ToolDispatcher:
    """
    Resolves a tool name to its variant, validates the arguments and runs the
    handler. Never raises: every failure is returned as result text.
    """

    def __init__(
        self,
        guard: TokenRefreshGuard,
        app_settings: Settings,
        registry: Optional[Dict[str, ToolVariant]] = None,
    ):
        self.guard = guard
        self.app_settings = app_settings
        self.registry = registry if registry is not None else build_tool_registry()

    @property
    def tool_names(self) -> List[str]:
        return list(self.registry)

    async def dispatch(
        self,
        tool_name: str,
        raw_arguments: Optional[Mapping[str, Any]],
        session: Optional[WorkspaceSession],
    ) -> ToolResult:
        variant = self.registry.get(tool_name)
        if variant is None:
            logger.warning(f"dispatch: unknown tool '{tool_name}'.")
            return ToolResult(text=f"Unknown tool: {tool_name}", is_error=True)

        # Arguments are checked before anything touches the network
        try:
            arguments = variant.arguments_model.model_validate(dict(raw_arguments or {}))
        except PydanticValidationError as e:
            logger.info(f"dispatch: invalid arguments for '{tool_name}': {e.error_count()} error(s).")
            return ToolResult(
                text=f"Invalid arguments for {tool_name}: {_format_validation_error(e)}",
                is_error=True,
            )

        if variant.requires_google_auth and (session is None or not session.credential.has_access_token):
            logger.info(f"dispatch: '{tool_name}' called without a Google access token.")
            return ToolResult(text=AUTHORIZE_FIRST_TEXT, is_error=True)

        ctx = ToolCallContext(
            tool_name=tool_name,
            session=session,
            guard=self.guard,
            app_settings=self.app_settings,
        )
        try:
            text = await variant.handler(ctx, arguments)
        except MissingAccessTokenError:
            return ToolResult(text=AUTHORIZE_FIRST_TEXT, is_error=True)
        except Exception as e:
            logger.error(f"dispatch: tool '{tool_name}' raised unexpectedly: {e}", exc_info=True)
            return ToolResult(text=f"{tool_name} failed: {e}", is_error=True)

        return ToolResult(text=text)


_tool_dispatcher_instance: Optional[ToolDispatcher] = None


def get_tool_dispatcher() -> ToolDispatcher:
    global _tool_dispatcher_instance
    if _tool_dispatcher_instance is None:
        guard = TokenRefreshGuard(
            exchanger=get_upstream_exchanger(),
            timeout=settings.upstream_http_timeout_seconds,
        )
        _tool_dispatcher_instance = ToolDispatcher(guard=guard, app_settings=settings)
    return _tool_dispatcher_instance
