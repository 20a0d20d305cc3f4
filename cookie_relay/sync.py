"""
Sync Reconciler

Pushes a snapshot of the extension's local storage into the cookie record
store, one domain at a time, and reports what happened per domain.

Snapshot shape (chrome.storage.local):
    { "<domain>": '{"cookies": [...], ...}', "autoSync": true, ... }

- preference keys stored next to the domains are never treated as domains
- payloads that do not decode, or carry no "cookies" array, are skipped
  without an outcome (stale or foreign cache entries must not break a sync)
- a failing domain is recorded as a failed outcome and the batch continues
- with a per-domain timeout, a slow upsert is reported as "Timed out" but is
  not cancelled: its worker thread may still store the record and index
  entry after the report is returned
"""

import asyncio
import logging
from typing import Any, List, Mapping, Optional

import orjson

from .cookie_store import CookieRecordStore
from .errors import CookieRelayError, ValidationError
from .views import CookieRecord, SyncOutcome, SyncReport

logger = logging.getLogger(__name__)

# Non-domain keys the extension keeps in the same storage area
RESERVED_KEYS = frozenset({
    '__DOMAIN_LIST__',
    'autoSync',
    'syncInterval',
    'backupEnabled',
    'notificationsEnabled',
})


def candidate_domains(snapshot: Mapping[str, Any]) -> List[str]:
    return [key for key in snapshot if key not in RESERVED_KEYS]


def parse_payload(payload: Any) -> Optional[list]:
    """Return the payload's cookie list, or None when it has none to sync."""
    if isinstance(payload, (str, bytes)):
        try:
            payload = orjson.loads(payload)
        except orjson.JSONDecodeError:
            return None
    if not isinstance(payload, dict):
        return None
    cookies = payload.get('cookies')
    return cookies if isinstance(cookies, list) else None


class SyncReconciler:

    def __init__(self, store: CookieRecordStore, domain_timeout: Optional[float] = None):
        self.store = store
        self.domain_timeout = domain_timeout

    async def reconcile(self, user_id: str, snapshot: Mapping[str, Any]) -> SyncReport:
        if not isinstance(snapshot, Mapping):
            raise ValidationError('Snapshot must be an object of domain entries')

        synced_count = 0
        outcomes: List[SyncOutcome] = []

        # One domain at a time; outcomes follow snapshot order
        for domain in candidate_domains(snapshot):
            cookies = parse_payload(snapshot[domain])
            if cookies is None:
                logger.debug(f"Skipping {domain!r} for user={user_id}: no cookies array in payload")
                continue

            try:
                record = await self._upsert(user_id, domain, cookies)
            except asyncio.TimeoutError:
                logger.warning(f"Sync of {domain!r} for user={user_id} timed out after {self.domain_timeout}s")
                outcomes.append(SyncOutcome(
                    domain=domain,
                    success=False,
                    error_detail=f'Timed out after {self.domain_timeout}s',
                ))
            except CookieRelayError as e:
                logger.warning(f"Sync of {domain!r} for user={user_id} failed: {e.message} ({e.detail})")
                outcomes.append(SyncOutcome(domain=domain, success=False, error_detail=e.message))
            else:
                synced_count += 1
                outcomes.append(SyncOutcome(domain=domain, success=True, saved_count=record.cookie_count))

        report = SyncReport(
            synced_count=synced_count,
            total_domains=len(outcomes),
            per_domain_outcomes=outcomes,
        )
        logger.info(
            f"Synced {report.synced_count}/{report.total_domains} domains for user={user_id}"
            + (f", {len(report.failed)} failed" if report.failed else "")
        )
        return report

    async def _upsert(self, user_id: str, domain: str, cookies: list) -> CookieRecord:
        # The Supabase client is blocking; keep it off the event loop
        call = asyncio.to_thread(self.store.upsert, user_id, domain, cookies)
        if self.domain_timeout:
            return await asyncio.wait_for(call, timeout=self.domain_timeout)
        return await call
