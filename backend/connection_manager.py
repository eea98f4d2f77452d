"""
Ownership of the single live Supabase client
"""

import inspect
import logging
from typing import Any, Callable, Mapping, Optional

from supabase import AsyncClient, AuthError

from core.serialization import to_jsonable
from events import event_bus, EventTypes
from .models import AuthResult, BackendConfig, Credentials

logger = logging.getLogger(__name__)

NOT_INITIALIZED_MESSAGE = "Supabase client is not initialized."


class ConnectionManager:
    """
    Owns the one live backend client.

    Other components always read ``get_client()`` at call time instead of
    caching the handle, so a reconfiguration is seen by every command issued
    after it resolves.
    """

    def __init__(self, client_factory: Optional[Callable[[str, str], Any]] = None):
        """
        Args:
            client_factory: ``(endpoint, credential_key) -> client``; defaults
                to the library's ``AsyncClient``, whose constructor does no I/O
        """
        self.client_factory = client_factory or AsyncClient
        self.client = None
        self.config: Optional[BackendConfig] = None

    def initialize(self, config: BackendConfig) -> None:
        """Replace the live client with one bound to ``config`` (last write wins)"""
        self.client = None
        self.config = None
        self.client = self.client_factory(config.endpoint, config.credential_key)
        self.config = config
        logger.info("Backend client initialized for %s", config.endpoint)
        event_bus.emit(EventTypes.CONNECTION_INITIALIZED, {
            "endpoint": config.endpoint
        }, source="ConnectionManager")

    def get_client(self):
        return self.client

    @property
    def is_initialized(self) -> bool:
        return self.client is not None

    async def sign_in(self, credentials: Credentials) -> AuthResult:
        """
        Authenticate with e-mail and password.

        Never raises: a missing client, a backend-reported error and any
        unexpected exception all come back as a failed ``AuthResult``.
        """
        client = self.client
        if client is None:
            return AuthResult.failure(NOT_INITIALIZED_MESSAGE)

        try:
            await self._call(client.auth.sign_in_with_password, {
                "email": credentials.principal,
                "password": credentials.secret,
            })
        except AuthError as e:
            message = getattr(e, "message", None) or str(e)
            logger.info("Sign-in rejected for %s: %s", credentials.principal, message)
            event_bus.emit(EventTypes.AUTH_SIGN_IN_FAILED, {
                "principal": credentials.principal,
                "error": message
            }, source="ConnectionManager")
            return AuthResult.failure(message)
        except Exception as e:
            logger.error("Sign-in failed for %s: %s", credentials.principal, e, exc_info=True)
            event_bus.emit(EventTypes.AUTH_SIGN_IN_FAILED, {
                "principal": credentials.principal,
                "error": str(e)
            }, source="ConnectionManager")
            return AuthResult.failure(str(e))

        logger.info("Signed in as %s", credentials.principal)
        event_bus.emit(EventTypes.AUTH_SIGN_IN, {
            "principal": credentials.principal
        }, source="ConnectionManager")
        return AuthResult.ok()

    async def sign_out(self) -> None:
        """Sign out of the live client; a no-op without one. Never raises."""
        client = self.client
        if client is None:
            return

        try:
            await self._call(client.auth.sign_out)
        except Exception as e:
            logger.warning("Error during sign-out: %s", e, exc_info=True)
            return

        logger.info("Signed out")
        event_bus.emit(EventTypes.AUTH_SIGN_OUT, {}, source="ConnectionManager")

    async def get_session(self) -> Optional[Any]:
        """Current session of the live client in JSON-structural form"""
        client = self.client
        if client is None:
            return None
        session = await self._call(client.auth.get_session)
        return to_jsonable(session)

    async def restore_session(self, session: Any) -> bool:
        """
        Re-apply a persisted session to the live client.

        Returns:
            True if the backend accepted the session
        """
        client = self.client
        if client is None:
            return False
        if not isinstance(session, Mapping):
            return False

        access_token = session.get("access_token")
        refresh_token = session.get("refresh_token")
        if not access_token or not refresh_token:
            logger.debug("Persisted session has no tokens, not restoring")
            return False

        try:
            await self._call(client.auth.set_session, access_token, refresh_token)
        except Exception as e:
            logger.warning("Could not restore persisted session: %s", e)
            return False

        logger.info("Restored persisted session")
        event_bus.emit(EventTypes.AUTH_SESSION_RESTORED, {}, source="ConnectionManager")
        return True

    async def _call(self, method, *args):
        # Runs on the loop thread only; scripts share this client
        result = method(*args)
        if inspect.isawaitable(result):
            result = await result
        return result
