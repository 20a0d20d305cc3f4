import logging
from dataclasses import dataclass
from typing import Optional

from supabase import Client, create_client

from .auth_service import AuthService
from .config import Settings
from .cookie_store import CookieRecordStore, InMemoryCookieRecords, SupabaseCookieRecords
from .domain_index import DomainIndex, InMemoryDomainIndex, SupabaseDomainIndex
from .errors import ServiceUnavailable
from .profiles import InMemoryProfileStore, ProfileStore, SupabaseProfileStore
from .sync import SyncReconciler

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Optional[Client]:
    """Supabase client, or None when Supabase is not configured at all.

    Raises ServiceUnavailable if credentials are set but the client cannot be built.
    """
    if not settings.supabase_configured:
        logger.warning(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are not properly configured. Falling back to in-memory storage."
        )
        return None
    try:
        client = create_client(settings.supabase_url, settings.supabase_service_role_key)
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}")
        raise ServiceUnavailable('Storage service unavailable', detail=str(e)) from e
    logger.info("Supabase client initialized successfully")
    return client


@dataclass
class AppContext:
    """Services shared by request handlers for the lifetime of the process."""

    settings: Settings
    domain_index: DomainIndex
    cookie_store: CookieRecordStore
    reconciler: SyncReconciler
    profiles: ProfileStore
    auth: AuthService
    supabase: Optional[Client] = None

    @property
    def backend(self) -> str:
        return 'supabase' if self.supabase is not None else 'memory'

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        client = create_supabase_client(settings)
        if client is None:
            return cls.in_memory(settings)

        domain_index = SupabaseDomainIndex(client, table=settings.domain_index_table)
        cookie_store = CookieRecordStore(
            SupabaseCookieRecords(client, table=settings.cookie_records_table),
            domain_index,
        )
        return cls(
            settings=settings,
            domain_index=domain_index,
            cookie_store=cookie_store,
            reconciler=SyncReconciler(cookie_store, domain_timeout=settings.sync_domain_timeout_seconds),
            profiles=SupabaseProfileStore(client, table=settings.profiles_table),
            auth=AuthService(client),
            supabase=client,
        )

    @classmethod
    def in_memory(cls, settings: Settings, auth_client: Optional[Client] = None) -> "AppContext":
        """Process-local stores; ``auth_client`` optionally provides an identity provider."""
        domain_index = InMemoryDomainIndex()
        cookie_store = CookieRecordStore(InMemoryCookieRecords(), domain_index)
        return cls(
            settings=settings,
            domain_index=domain_index,
            cookie_store=cookie_store,
            reconciler=SyncReconciler(cookie_store, domain_timeout=settings.sync_domain_timeout_seconds),
            profiles=InMemoryProfileStore(),
            auth=AuthService(auth_client),
        )

    def close(self) -> None:
        if self.cookie_store.index_failures:
            logger.warning(
                f"Shutting down with {self.cookie_store.index_failures} domain index update failure(s) since start"
            )
        logger.info(f"Cookie relay context closed (backend={self.backend})")
