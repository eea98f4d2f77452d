"""
Persistence of the backend configuration and the signed-in session
"""

import logging
from typing import Any, Optional

from backend.models import BackendConfig

logger = logging.getLogger(__name__)

CONFIG_KEY = "supabase-config"
SESSION_KEY = "user-session"


class StorageError(Exception):
    """Base exception for persistent store usage errors"""
    pass


class StorageNotInitializedError(StorageError):
    """Raised when the store is used before initialize()"""
    def __init__(self):
        super().__init__("PersistentStore not initialized. Call initialize() first.")


class StorageAlreadyInitializedError(StorageError):
    """Raised when initialize() is called a second time"""
    def __init__(self):
        super().__init__("PersistentStore is already initialized.")


class PersistentStore:
    """
    Durable slots for the current BackendConfig and Session.

    Bound once to a key/value facility exposing ``get(key)`` and an
    awaitable ``put(key, value)``. Writes suspend until the facility has
    persisted them; reads are answered from the facility's in-memory mirror.
    """

    def __init__(self):
        self._backend = None

    def initialize(self, backend) -> None:
        if self._backend is not None:
            raise StorageAlreadyInitializedError()
        self._backend = backend
        logger.debug("PersistentStore initialized with %s", type(backend).__name__)

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    def _require_backend(self):
        if self._backend is None:
            raise StorageNotInitializedError()
        return self._backend

    async def put_config(self, config: BackendConfig) -> None:
        backend = self._require_backend()
        await backend.put(CONFIG_KEY, config.to_dict())
        logger.info("Backend config saved")

    def get_config(self) -> Optional[BackendConfig]:
        raw = self._require_backend().get(CONFIG_KEY)
        if raw is None:
            return None
        return BackendConfig.from_dict(raw)

    async def put_session(self, session: Any) -> None:
        backend = self._require_backend()
        await backend.put(SESSION_KEY, session)
        logger.info("User session saved")

    def get_session(self) -> Optional[Any]:
        return self._require_backend().get(SESSION_KEY)

    async def clear_session(self) -> None:
        backend = self._require_backend()
        await backend.put(SESSION_KEY, None)
        logger.info("User session cleared")
