"""Tests for RedisCredentialStorage against an in-process Redis double."""

import pytest
from taskboard_auth.storage import CredentialStorage, RedisCredentialStorage

HOUR_MS = 60 * 60 * 1000
KEY = "cred:token:linear"


@pytest.fixture
def storage(fake_redis, clock) -> RedisCredentialStorage:
    return RedisCredentialStorage(fake_redis, clock=clock)


def test_satisfies_protocol(storage):
    assert isinstance(storage, CredentialStorage)


async def test_store_sets_json_and_ttl(storage, fake_redis, make_record):
    record = make_record(access_token="abc", lifetime_ms=HOUR_MS)
    await storage.store_token(record)

    assert KEY in fake_redis.data
    assert await fake_redis.ttl(KEY) == 3600
    assert await storage.get_token("linear") == record


async def test_ttl_is_at_least_one_second(storage, fake_redis, make_record, clock):
    await storage.store_token(make_record(lifetime_ms=500))
    assert fake_redis.expiry_ms[KEY] == clock.now + 1000


async def test_store_already_expired_record_still_gets_ttl(storage, fake_redis, make_record, clock):
    record = make_record(lifetime_ms=HOUR_MS)
    clock.advance(2 * HOUR_MS)
    await storage.store_token(record)
    assert fake_redis.expiry_ms[KEY] == clock.now + 1000


async def test_native_expiry_removes_key(storage, make_record, clock):
    await storage.store_token(make_record(lifetime_ms=HOUR_MS))
    clock.advance(HOUR_MS)
    assert await storage.get_token() is None


async def test_get_valid_token_evicts_expired(storage, fake_redis, make_record, clock):
    # Write without a TTL so only the application-level check can catch it.
    record = make_record(lifetime_ms=HOUR_MS)
    await fake_redis.set(KEY, record.to_json())
    clock.advance(HOUR_MS + 1)

    assert await storage.get_valid_token() is None
    assert KEY not in fake_redis.data


async def test_get_valid_token_returns_live_record(storage, make_record):
    record = make_record()
    await storage.store_token(record)
    assert await storage.get_valid_token() == record
    assert await storage.has_valid_token() is True


async def test_corrupt_entry_is_treated_as_absent_and_deleted(storage, fake_redis):
    await fake_redis.set(KEY, "{not valid json")

    assert await storage.get_token() is None
    assert KEY not in fake_redis.data


async def test_non_utf8_entry_is_treated_as_absent_and_deleted(storage, fake_redis):
    await fake_redis.set(KEY, b"\xff\xfe garbage")

    assert await storage.get_token() is None
    assert KEY not in fake_redis.data


async def test_non_utf8_entry_hidden_from_valid_read(storage, fake_redis):
    await fake_redis.set(KEY, b"\xff\xfe garbage")

    assert await storage.get_valid_token() is None
    assert await storage.has_valid_token() is False
    assert KEY not in fake_redis.data


async def test_non_utf8_entry_in_bulk_operations(storage, fake_redis, make_record):
    record = make_record(provider="github")
    await storage.store_token(record)
    await fake_redis.set(KEY, b"\xff\xfe garbage")

    assert await storage.list_tokens() == {"github": record}
    stats = await storage.stats()
    assert (stats.total_tokens, stats.valid_tokens, stats.expired_tokens) == (2, 1, 1)
    assert await storage.cleanup_expired_tokens() == 1
    assert KEY not in fake_redis.data


def test_from_url_reads_raw_bytes():
    storage = RedisCredentialStorage.from_url("redis://localhost:6379/0")
    assert storage._redis.connection_pool.connection_kwargs["decode_responses"] is False


async def test_corrupt_heal_does_not_clobber_newer_write(storage, fake_redis, make_record):
    """Compare-and-delete only removes the exact value that failed to parse."""
    fresh = make_record(access_token="fresh")
    await fake_redis.set(KEY, fresh.to_json())

    assert await storage._delete_if_unchanged(KEY, b"{stale corrupt value") is False
    assert await storage.get_token() == fresh


async def test_clear_single_provider_leaves_other_keys(storage, fake_redis, make_record):
    await storage.store_token(make_record(provider="linear"))
    await storage.store_token(make_record(provider="github"))
    await fake_redis.set("session:abc", "unrelated")

    await storage.clear_tokens("linear")

    assert KEY not in fake_redis.data
    assert "cred:token:github" in fake_redis.data
    assert fake_redis.data["session:abc"] == b"unrelated"


async def test_clear_all_only_touches_owned_namespace(storage, fake_redis, make_record):
    await storage.store_token(make_record(provider="linear"))
    await storage.store_token(make_record(provider="github"))
    await fake_redis.set("oauth:state:xyz", "1")

    await storage.clear_tokens()

    assert fake_redis.data == {"oauth:state:xyz": b"1"}


async def test_cleanup_counts_expired_and_corrupt(storage, fake_redis, make_record, clock):
    expired = make_record(provider="linear", lifetime_ms=HOUR_MS)
    await fake_redis.set(KEY, expired.to_json())
    await fake_redis.set("cred:token:broken", "garbage")
    await storage.store_token(make_record(provider="github", lifetime_ms=3 * HOUR_MS))
    clock.advance(2 * HOUR_MS)

    assert await storage.cleanup_expired_tokens() == 2
    assert set(await storage.list_tokens()) == {"github"}


async def test_list_tokens_skips_corrupt(storage, fake_redis, make_record):
    record = make_record()
    await storage.store_token(record)
    await fake_redis.set("cred:token:broken", "garbage")

    assert await storage.list_tokens() == {"linear": record}
    assert "cred:token:broken" in fake_redis.data


async def test_stats_counts_corrupt_as_expired(storage, fake_redis, make_record):
    await storage.store_token(make_record())
    await fake_redis.set("cred:token:broken", "garbage")

    stats = await storage.stats()
    assert (stats.total_tokens, stats.valid_tokens, stats.expired_tokens) == (2, 1, 1)


async def test_close_leaves_shared_connection_open(storage, fake_redis):
    await storage.close()
    assert fake_redis.closed is False


async def test_close_owned_connection(fake_redis, clock):
    storage = RedisCredentialStorage(fake_redis, owns_connection=True, clock=clock)
    await storage.close()
    assert fake_redis.closed is True
