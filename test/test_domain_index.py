from unittest.mock import MagicMock

from cookie_relay.domain_index import InMemoryDomainIndex, SupabaseDomainIndex


def test_add_is_idempotent():
    index = InMemoryDomainIndex()
    index.add("u1", "example.com")
    index.add("u1", "example.com")
    assert index.list_domains("u1") == ["example.com"]


def test_remove_is_idempotent():
    index = InMemoryDomainIndex()
    index.add("u1", "example.com")
    index.remove("u1", "example.com")
    index.remove("u1", "example.com")
    index.remove("u1", "never-added.com")
    index.remove("unknown-user", "example.com")
    assert index.list_domains("u1") == []


def test_list_is_lexicographic_and_per_user():
    index = InMemoryDomainIndex()
    for domain in ["zeta.io", "alpha.dev", "mid.org"]:
        index.add("u1", domain)
    index.add("u2", "other.com")

    assert index.list_domains("u1") == ["alpha.dev", "mid.org", "zeta.io"]
    assert index.list_domains("u2") == ["other.com"]
    assert index.list_domains("nobody") == []


def test_supabase_index_upserts_one_row_per_domain():
    supabase = MagicMock()
    index = SupabaseDomainIndex(supabase, table="user_domains")

    index.add("u1", "example.com")

    supabase.table.assert_called_with("user_domains")
    row = supabase.table.return_value.upsert.call_args.args[0]
    assert row["user_id"] == "u1"
    assert row["domain"] == "example.com"
    assert supabase.table.return_value.upsert.call_args.kwargs == {"on_conflict": "user_id,domain"}


def test_supabase_index_remove_filters_by_user_and_domain():
    supabase = MagicMock()
    index = SupabaseDomainIndex(supabase)

    index.remove("u1", "example.com")

    delete = supabase.table.return_value.delete.return_value
    delete.eq.assert_called_once_with("user_id", "u1")
    delete.eq.return_value.eq.assert_called_once_with("domain", "example.com")


def test_supabase_index_list_sorts_and_dedupes():
    supabase = MagicMock()
    query = supabase.table.return_value.select.return_value.eq.return_value
    query.execute.return_value.data = [{"domain": "b.com"}, {"domain": "a.com"}, {"domain": "b.com"}]

    assert SupabaseDomainIndex(supabase).list_domains("u1") == ["a.com", "b.com"]
