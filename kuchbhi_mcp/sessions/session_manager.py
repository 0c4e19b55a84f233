# kuchbhi_mcp/sessions/session_manager.py
import logging
from typing import Dict, Optional, Tuple

from .session_data import SessionCredential, WorkspaceSession

logger = logging.getLogger(__name__)


class WorkspaceSessionManager:
    """
    In-memory registry of live MCP sessions keyed by Mcp-Session-Id.

    Sessions die with the connection (DELETE) or the process. Nothing here is
    persisted; the grant store keeps the credential the next session starts from.
    """

    def __init__(self):
        # No expiry or eviction: entries leave on DELETE or process exit
        self._sessions: Dict[str, WorkspaceSession] = {}
        logger.info("WorkspaceSessionManager initialized (in-memory).")

    def __len__(self) -> int:
        return len(self._sessions)

    def _new_session(
        self, mcp_session_id: Optional[str], grant_id: str, credential: SessionCredential
    ) -> WorkspaceSession:
        return WorkspaceSession(
            mcp_session_id=mcp_session_id,
            grant_id=grant_id,
            credential=credential.model_copy(),
        )

    def get_session(
        self,
        client_provided_mcp_session_id: Optional[str],
        grant_id: str,
        credential: SessionCredential,
    ) -> Tuple[WorkspaceSession, bool]:
        """
        Retrieve or create the session for a request.

        Returns a tuple of (WorkspaceSession, is_newly_created). Without a
        session id (the initialize request) a detached session is returned and
        not registered. A stored session owned by another user or grant is
        replaced rather than shared.
        """
        if not client_provided_mcp_session_id:
            logger.debug(f"get_session: No Mcp-Session-Id, detached session for grant '{grant_id}'.")
            return self._new_session(None, grant_id, credential), True

        session = self._sessions.get(client_provided_mcp_session_id)
        if session is not None:
            if session.grant_id == grant_id and session.user_id == credential.user_id:
                session.touch()
                return session, False
            logger.warning(
                f"get_session: Session '{client_provided_mcp_session_id}' belongs to grant "
                f"'{session.grant_id}', request carries grant '{grant_id}'. Creating new session."
            )

        session = self._new_session(client_provided_mcp_session_id, grant_id, credential)
        self._sessions[client_provided_mcp_session_id] = session
        logger.info(
            f"get_session: New session '{client_provided_mcp_session_id}' for user '{credential.user_id}'."
        )
        return session, True

    def delete_session(self, mcp_session_id: str) -> None:
        if self._sessions.pop(mcp_session_id, None) is not None:
            logger.info(f"delete_session: Session '{mcp_session_id}' discarded.")

    def clear(self) -> None:
        self._sessions.clear()


_workspace_session_manager_instance: Optional[WorkspaceSessionManager] = None


def get_workspace_session_manager() -> WorkspaceSessionManager:
    global _workspace_session_manager_instance
    if _workspace_session_manager_instance is None:
        _workspace_session_manager_instance = WorkspaceSessionManager()
    return _workspace_session_manager_instance
