"""
Domain Index

Per-user set of domains that currently have a saved cookie record.

- DomainIndex: capability interface used by the cookie record store
- SupabaseDomainIndex: one row per (user_id, domain) in a Supabase table
- InMemoryDomainIndex: process-local fallback when Supabase is not configured

add/remove are idempotent: adding a present domain or removing an absent
one is a no-op. Implementations raise whatever their backend raises; the
record store decides which failures are propagated.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Set

from supabase import Client


class DomainIndex(ABC):

    @abstractmethod
    def add(self, user_id: str, domain: str) -> None:
        ...

    @abstractmethod
    def remove(self, user_id: str, domain: str) -> None:
        ...

    @abstractmethod
    def list_domains(self, user_id: str) -> List[str]:
        """Domains for ``user_id`` in lexicographic order."""


class SupabaseDomainIndex(DomainIndex):

    def __init__(self, supabase_client: Client, table: str = 'user_domains'):
        self.supabase = supabase_client
        self.table = table

    def add(self, user_id: str, domain: str) -> None:
        row = {
            "user_id": user_id,
            "domain": domain,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self.supabase.table(self.table).upsert(row, on_conflict="user_id,domain").execute()

    def remove(self, user_id: str, domain: str) -> None:
        self.supabase.table(self.table).delete().eq("user_id", user_id).eq("domain", domain).execute()

    def list_domains(self, user_id: str) -> List[str]:
        rows = (
            self.supabase.table(self.table)
            .select("domain")
            .eq("user_id", user_id)
            .execute()
            .data
        ) or []
        return sorted({r["domain"] for r in rows if r.get("domain")})


class InMemoryDomainIndex(DomainIndex):

    def __init__(self):
        self._domains: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def add(self, user_id: str, domain: str) -> None:
        with self._lock:
            self._domains.setdefault(user_id, set()).add(domain)

    def remove(self, user_id: str, domain: str) -> None:
        with self._lock:
            domains = self._domains.get(user_id)
            if domains is not None:
                domains.discard(domain)

    def list_domains(self, user_id: str) -> List[str]:
        with self._lock:
            return sorted(self._domains.get(user_id, ()))
