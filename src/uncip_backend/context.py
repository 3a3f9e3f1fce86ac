import logging
from typing import Optional
from fastapi import Request

from uncip_backend.repositories.base import ResourceRepository
from uncip_backend.services.audit import AuditRecorder
from uncip_backend.services.identity import IdentityProvider, KeycloakIdentityProvider
from uncip_backend.settings import BackendSettings, settings as default_settings
from uncip_backend.store.base import DocumentStore
from uncip_backend.store.memory import MemoryDocumentStore

logger = logging.getLogger(__name__)


class BackendContext:
    """Collaborators shared by every request"""

    def __init__(
        self,
        store: DocumentStore,
        identity_provider: Optional[IdentityProvider] = None,
        settings: Optional[BackendSettings] = None,
    ):
        self.store = store
        self.identity_provider = identity_provider
        self.settings = settings or default_settings
        self.repository = ResourceRepository(store)
        self.audit = AuditRecorder(store)


def build_store(settings: BackendSettings) -> DocumentStore:
    if settings.DOCUMENT_STORE == "memory":
        logger.warning("Using the in-memory document store; data is lost on restart")
        return MemoryDocumentStore()

    if settings.DOCUMENT_STORE != "postgres":
        raise RuntimeError(f"Unknown DOCUMENT_STORE: {settings.DOCUMENT_STORE}")

    from uncip_backend.database import build_engine, build_session_factory
    from uncip_backend.store.sql import SqlDocumentStore

    return SqlDocumentStore(build_session_factory(build_engine(settings)))


def build_context(settings: Optional[BackendSettings] = None) -> BackendContext:
    settings = settings or default_settings
    return BackendContext(
        store=build_store(settings),
        identity_provider=KeycloakIdentityProvider(settings),
        settings=settings,
    )


def get_context(request: Request) -> BackendContext:
    return request.app.state.context
