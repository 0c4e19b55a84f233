# kuchbhi_mcp/tool_dispatch/context.py
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..guard import RequestBuilder, TokenRefreshGuard
from ..sessions import WorkspaceSession
from ..settings import Settings
from .variants import REAUTHORIZATION_HINT

logger = logging.getLogger(__name__)


@dataclass
class GuardedResult:
    """What a tool handler sees of one guarded Google call."""
    ok: bool
    body: str
    status_code: Optional[int] = None
    reauthorization_required: bool = False

    def json_body(self) -> Dict[str, Any]:
        try:
            parsed = json.loads(self.body)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}


@dataclass
class ToolCallContext:
    """Everything a handler needs for one invocation."""
    tool_name: str
    session: Optional[WorkspaceSession]
    guard: TokenRefreshGuard
    app_settings: Settings

    async def call(self, request_builder: RequestBuilder) -> GuardedResult:
        """Run one guarded call. Transport errors come back as a failed result."""
        if self.session is None:
            raise RuntimeError(f"Tool '{self.tool_name}' needs a session for Google calls.")
        try:
            outcome = await self.guard.guarded_call(request_builder, self.session)
        except httpx.HTTPError as e:
            logger.warning(f"Tool '{self.tool_name}': transport error calling Google: {e}")
            return GuardedResult(ok=False, body=str(e) or type(e).__name__)

        if not outcome.is_success:
            logger.info(
                f"Tool '{self.tool_name}': Google answered {outcome.response.status_code} "
                f"(state={outcome.final_state.value}, refresh_attempted={outcome.refresh_attempted})."
            )
        return GuardedResult(
            ok=outcome.is_success,
            body=outcome.response.text,
            status_code=outcome.response.status_code,
            reauthorization_required=outcome.reauthorization_required,
        )

    def failure_text(self, result: GuardedResult) -> str:
        text = f"{self.tool_name} failed: {result.body}"
        if result.reauthorization_required:
            text = f"{REAUTHORIZATION_HINT}\n{text}"
        return text
