import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client

from .errors import StorageFailure

logger = logging.getLogger(__name__)

# Request keys accepted for a profile, mapped to their columns
PROFILE_FIELDS = {
    'email': 'email',
    'displayName': 'display_name',
    'photoURL': 'photo_url',
}


class ProfileStore(ABC):
    """User profiles keyed by user id. createdAt is kept across repeated creates."""

    def create(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            existing = self._read(user_id)
            now = datetime.now(timezone.utc).isoformat()
            row = {
                "id": user_id,
                **{column: data[key] for key, column in PROFILE_FIELDS.items() if data.get(key) is not None},
                "created_at": (existing or {}).get("created_at") or now,
                "updated_at": now,
            }
            self._write(row)
        except Exception as e:
            logger.error(f"Error creating profile for user={user_id}: {e}")
            raise StorageFailure('Failed to create user', detail=str(e)) from e

        logger.info(f"Profile saved for user={user_id}")
        return row

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._read(user_id)
        except Exception as e:
            raise StorageFailure('Failed to load user', detail=str(e)) from e

    @abstractmethod
    def _read(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def _write(self, row: Dict[str, Any]) -> None:
        ...


class SupabaseProfileStore(ProfileStore):

    def __init__(self, supabase_client: Client, table: str = 'profiles'):
        self.supabase = supabase_client
        self.table = table

    def _read(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self.supabase.table(self.table).select("*").eq("id", user_id).limit(1).execute().data
        return rows[0] if rows else None

    def _write(self, row: Dict[str, Any]) -> None:
        self.supabase.table(self.table).upsert(row, on_conflict="id").execute()


class InMemoryProfileStore(ProfileStore):

    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _read(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._rows.get(user_id)
            return copy.deepcopy(row) if row is not None else None

    def _write(self, row: Dict[str, Any]) -> None:
        with self._lock:
            merged = {**self._rows.get(row["id"], {}), **row}
            self._rows[row["id"]] = merged
