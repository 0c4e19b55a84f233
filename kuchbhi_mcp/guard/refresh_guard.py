# kuchbhi_mcp/guard/refresh_guard.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import httpx

from ..oauth.models import UpstreamError
from ..oauth.upstream import UpstreamTokenExchanger
from ..sessions import WorkspaceSession

logger = logging.getLogger(__name__)

# Builds the outbound request for a given access token. Must be safe to call twice.
RequestBuilder = Callable[[str], httpx.Request]

AUTH_FAILURE_STATUSES = frozenset({401, 403})


class GuardState(str, Enum):
    INITIAL_ATTEMPT = "initial_attempt"
    REFRESHING = "refreshing"
    RETRY_ATTEMPT = "retry_attempt"
    DONE = "done"
    DONE_WITH_ERROR = "done_with_error"


class MissingAccessTokenError(Exception):
    """Raised when a guarded call is attempted for a session without an access token."""


@dataclass
class GuardOutcome:
    """
    Final response of a guarded call.

    `reauthorization_required` is set when an authorization failure could not
    be recovered: no refresh token, a failed refresh, or a retry that was
    rejected again.
    """
    response: httpx.Response
    final_state: GuardState
    refresh_attempted: bool = False
    retried: bool = False
    reauthorization_required: bool = False
    refresh_error: Optional[UpstreamError] = None

    @property
    def is_success(self) -> bool:
        return self.response.is_success


class TokenRefreshGuard:
    """
    Wraps one outbound Google API call with a single refresh-and-retry.

        INITIAL_ATTEMPT -> DONE                      (anything but 401/403)
        INITIAL_ATTEMPT -> DONE_WITH_ERROR           (401/403, no refresh token)
        INITIAL_ATTEMPT -> REFRESHING                (401/403, refresh token present)
        REFRESHING      -> DONE_WITH_ERROR           (refresh failed)
        REFRESHING      -> RETRY_ATTEMPT -> DONE     (retried once, whatever the result)

    Calls for the same session are serialized on the session lock, so two
    concurrent calls never refresh at the same time and the second one is
    built with the token the first one obtained.
    """

    def __init__(
        self,
        exchanger: UpstreamTokenExchanger,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.exchanger = exchanger
        self.timeout = timeout
        self._transport = transport

    async def guarded_call(
        self, request_builder: RequestBuilder, session: WorkspaceSession
    ) -> GuardOutcome:
        """
        Issue the request, refreshing the session's access token at most once.

        Raises:
            MissingAccessTokenError: If the session has no access token
            httpx.HTTPError: On transport failures of the API call itself
        """
        credential = session.credential
        if not credential.has_access_token:
            raise MissingAccessTokenError("Session has no Google access token.")

        async with session.lock:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as http_client:
                state = GuardState.INITIAL_ATTEMPT
                request = request_builder(credential.access_token)
                response = await http_client.send(request)
                logger.debug(
                    f"Guard [{state.value}]: {request.method} {request.url} -> {response.status_code}"
                )

                if response.status_code not in AUTH_FAILURE_STATUSES:
                    return GuardOutcome(response=response, final_state=GuardState.DONE)

                if not credential.refresh_token:
                    logger.warning(
                        f"Guard: {response.status_code} for user '{credential.user_id}' "
                        "and no refresh token is stored. Re-authorization required."
                    )
                    return GuardOutcome(
                        response=response,
                        final_state=GuardState.DONE_WITH_ERROR,
                        reauthorization_required=True,
                    )

                state = GuardState.REFRESHING
                logger.info(
                    f"Guard [{state.value}]: {response.status_code} from {request.url.host}, "
                    f"refreshing token for user '{credential.user_id}'."
                )
                refreshed = await self.exchanger.exchange("refresh_token", credential.refresh_token)
                if isinstance(refreshed, UpstreamError) or not refreshed.access_token:
                    if isinstance(refreshed, UpstreamError):
                        logger.warning(
                            f"Guard: refresh failed with status {refreshed.status_code}. "
                            "Returning the original authorization failure."
                        )
                    else:
                        logger.warning("Guard: refresh returned no access token. Returning the original failure.")
                    return GuardOutcome(
                        response=response,
                        final_state=GuardState.DONE_WITH_ERROR,
                        refresh_attempted=True,
                        reauthorization_required=True,
                        refresh_error=refreshed if isinstance(refreshed, UpstreamError) else None,
                    )

                # The refresh token is kept even if Google sent a new one
                credential.access_token = refreshed.access_token
                session.touch()

                state = GuardState.RETRY_ATTEMPT
                retry_request = request_builder(credential.access_token)
                retry_response = await http_client.send(retry_request)
                logger.info(
                    f"Guard [{state.value}]: {retry_request.method} {retry_request.url} "
                    f"-> {retry_response.status_code}"
                )
                return GuardOutcome(
                    response=retry_response,
                    final_state=GuardState.DONE,
                    refresh_attempted=True,
                    retried=True,
                    reauthorization_required=retry_response.status_code in AUTH_FAILURE_STATUSES,
                )
