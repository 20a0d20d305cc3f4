"""
Cookie Record Store

Keeps one record per (user, domain) with the last-known cookie set, and keeps
the Domain Index in step with it.

Index maintenance is best-effort: a failed index update after a successful
record write or delete is logged and counted in ``index_failures`` but never
raised. ``repair_index`` re-derives a user's index from their records and is
the way to clear any drift this leaves behind.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from supabase import Client

from .cookies import normalize_cookies, normalize_domain, record_id
from .domain_index import DomainIndex
from .errors import NotFound, StorageFailure
from .views import CookieRecord, DomainSummary, IndexRepairReport, UserStats

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ===================================================================
# Record persistence backends
# ===================================================================

class CookieRecordRepository(ABC):
    """Raw row access for cookie records, keyed by record id."""

    @abstractmethod
    def get(self, rec_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def put(self, row: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete(self, rec_id: str) -> None:
        ...

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        ...


class SupabaseCookieRecords(CookieRecordRepository):

    def __init__(self, supabase_client: Client, table: str = 'cookie_records'):
        self.supabase = supabase_client
        self.table = table

    def get(self, rec_id: str) -> Optional[Dict[str, Any]]:
        rows = (
            self.supabase.table(self.table)
            .select("*")
            .eq("id", rec_id)
            .limit(1)
            .execute()
            .data
        )
        return rows[0] if rows else None

    def put(self, row: Dict[str, Any]) -> None:
        self.supabase.table(self.table).upsert(row, on_conflict="id").execute()

    def delete(self, rec_id: str) -> None:
        self.supabase.table(self.table).delete().eq("id", rec_id).execute()

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return (
            self.supabase.table(self.table)
            .select("id,user_id,domain,cookie_count,saved_at,updated_at")
            .eq("user_id", user_id)
            .execute()
            .data
        ) or []


class InMemoryCookieRecords(CookieRecordRepository):

    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, rec_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._rows.get(rec_id)
            return copy.deepcopy(row) if row is not None else None

    def put(self, row: Dict[str, Any]) -> None:
        with self._lock:
            self._rows[row["id"]] = copy.deepcopy(row)

    def delete(self, rec_id: str) -> None:
        with self._lock:
            self._rows.pop(rec_id, None)

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._rows.values() if r.get("user_id") == user_id]


# ===================================================================
# Store
# ===================================================================

class CookieRecordStore:

    def __init__(
        self,
        records: CookieRecordRepository,
        domain_index: DomainIndex,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.records = records
        self.domain_index = domain_index
        self._clock = clock
        self._failures_lock = threading.Lock()
        self.index_failures = 0

    def upsert(self, user_id: str, domain: str, cookies: Any) -> CookieRecord:
        """Save ``cookies`` as the current set for (user_id, domain).

        savedAt is kept from an existing record; updatedAt is always now.
        Raises ValidationError for bad input, StorageFailure if the write fails.
        """
        domain = normalize_domain(domain)
        entries = normalize_cookies(cookies)
        rec_id = record_id(user_id, domain)

        try:
            existing = self.records.get(rec_id)
            now = self._clock()
            record = CookieRecord(
                id=rec_id,
                user_id=user_id,
                domain=domain,
                cookies=entries,
                saved_at=(existing or {}).get("saved_at") or now,
                updated_at=now,
            )
            self.records.put(record.to_row())
        except Exception as e:
            logger.error(f"Error saving cookies for user={user_id} domain={domain}: {e}")
            raise StorageFailure('Failed to save cookies', detail=str(e)) from e

        logger.info(f"Saved {record.cookie_count} cookies for user={user_id} domain={domain}")
        self._update_index(user_id, domain, 'add')
        return record

    def fetch(self, user_id: str, domain: str) -> CookieRecord:
        domain = normalize_domain(domain)
        try:
            row = self.records.get(record_id(user_id, domain))
        except Exception as e:
            logger.error(f"Error loading cookies for user={user_id} domain={domain}: {e}")
            raise StorageFailure('Failed to load cookies', detail=str(e)) from e
        if not row:
            raise NotFound(f'No cookies found for {domain}')
        return CookieRecord.model_validate(row)

    def remove(self, user_id: str, domain: str) -> None:
        """Delete the record, then drop the domain from the index.

        If the delete fails the index is left untouched.
        """
        domain = normalize_domain(domain)
        try:
            self.records.delete(record_id(user_id, domain))
        except Exception as e:
            logger.error(f"Error deleting cookies for user={user_id} domain={domain}: {e}")
            raise StorageFailure('Failed to delete cookies', detail=str(e)) from e

        logger.info(f"Deleted cookies for user={user_id} domain={domain}")
        self._update_index(user_id, domain, 'remove')

    def domains(self, user_id: str) -> List[str]:
        try:
            return self.domain_index.list_domains(user_id)
        except Exception as e:
            logger.error(f"Error getting domains for user={user_id}: {e}")
            raise StorageFailure('Failed to get domains', detail=str(e)) from e

    def stats_for(self, user_id: str) -> UserStats:
        try:
            rows = self.records.list_for_user(user_id)
        except Exception as e:
            logger.error(f"Error getting stats for user={user_id}: {e}")
            raise StorageFailure('Failed to get stats', detail=str(e)) from e

        summaries = sorted(
            (
                DomainSummary(
                    domain=r["domain"],
                    cookie_count=r.get("cookie_count") or 0,
                    saved_at=r.get("saved_at"),
                    updated_at=r.get("updated_at"),
                )
                for r in rows
            ),
            key=lambda s: s.domain,
        )
        return UserStats(
            total_domains=len(summaries),
            total_cookies=sum(s.cookie_count for s in summaries),
            per_domain_summary=summaries,
        )

    def repair_index(self, user_id: str) -> IndexRepairReport:
        """Bring the user's Domain Index back in line with their stored records."""
        try:
            stored = {r["domain"] for r in self.records.list_for_user(user_id)}
            indexed = set(self.domain_index.list_domains(user_id))

            report = IndexRepairReport(
                added=sorted(stored - indexed),
                removed=sorted(indexed - stored),
            )
            for domain in report.added:
                self.domain_index.add(user_id, domain)
            for domain in report.removed:
                self.domain_index.remove(user_id, domain)
        except Exception as e:
            logger.error(f"Error repairing domain index for user={user_id}: {e}")
            raise StorageFailure('Failed to repair domain index', detail=str(e)) from e

        if report.changed:
            logger.warning(
                f"Repaired domain index for user={user_id}: added={report.added} removed={report.removed}"
            )
        return report

    def _update_index(self, user_id: str, domain: str, action: str) -> None:
        # Best-effort: the record operation already succeeded
        try:
            if action == 'add':
                self.domain_index.add(user_id, domain)
            else:
                self.domain_index.remove(user_id, domain)
        except Exception as e:
            with self._failures_lock:
                self.index_failures += 1
            logger.warning(
                f"Domain index {action} failed for user={user_id} domain={domain}, index may have drifted: {e}"
            )
