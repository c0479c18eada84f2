"""
Tests for the per-account store
"""
import pytest

from lp_analytics.core.cache import (
    AccountStore,
    ActionType,
    CacheKey,
    StoreAction,
    reducer,
)

ACCOUNT = "0xAbCdEf0000000000000000000000000000000001"
PAIR = "0xPAIR000000000000000000000000000000000001"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def update(action_type, payload, account=ACCOUNT, pair_address=None):
    return StoreAction(action_type, account, payload, pair_address=pair_address)


class TestAccountStore:
    def test_empty_store_returns_none(self, store):
        assert store.get(ACCOUNT, CacheKey.TRANSACTIONS) is None
        assert not store.has(ACCOUNT, CacheKey.POSITIONS)

    def test_dispatch_then_get(self, store):
        store.dispatch(update(ActionType.UPDATE_TRANSACTIONS, {"mints": []}))

        assert store.get(ACCOUNT, CacheKey.TRANSACTIONS) == {"mints": []}
        # accounts are case-insensitive
        assert store.get(ACCOUNT.lower(), CacheKey.TRANSACTIONS) == {"mints": []}

    def test_empty_list_counts_as_loaded(self, store):
        store.dispatch(update(ActionType.UPDATE_MINING_POSITIONS, []))
        assert store.has(ACCOUNT, CacheKey.MINING_POSITIONS)

    def test_accounts_are_isolated(self, store):
        store.dispatch(update(ActionType.UPDATE_POSITIONS, [1]))
        assert store.get("0x0000000000000000000000000000000000000002", CacheKey.POSITIONS) is None

    def test_pair_returns_are_keyed_by_pair(self, store):
        store.dispatch(update(ActionType.UPDATE_USER_PAIR_RETURNS, ["a"], pair_address=PAIR))

        assert store.get(ACCOUNT, CacheKey.PAIR_RETURNS, PAIR.lower()) == ["a"]
        assert store.get(ACCOUNT, CacheKey.PAIR_RETURNS, "0xother") is None
        assert store.get(ACCOUNT, CacheKey.PAIR_RETURNS) is None

    def test_later_write_replaces_value(self, store):
        store.dispatch(update(ActionType.UPDATE_POSITIONS, [1]))
        store.dispatch(update(ActionType.UPDATE_POSITIONS, [2]))
        assert store.get(ACCOUNT, CacheKey.POSITIONS) == [2]

    def test_entries_never_expire_without_ttl(self):
        clock = FakeClock()
        store = AccountStore(clock=clock)
        store.dispatch(update(ActionType.UPDATE_POSITIONS, [1]))

        clock.now += 10 ** 9

        assert store.get(ACCOUNT, CacheKey.POSITIONS) == [1]

    def test_ttl_expires_entries(self):
        clock = FakeClock()
        store = AccountStore(ttl_seconds=60, clock=clock)
        store.dispatch(update(ActionType.UPDATE_POSITIONS, [1]))

        clock.now += 59
        assert store.has(ACCOUNT, CacheKey.POSITIONS)

        clock.now += 1
        assert not store.has(ACCOUNT, CacheKey.POSITIONS)

    def test_invalidate_single_key(self, store):
        store.dispatch(update(ActionType.UPDATE_POSITIONS, [1]))
        store.dispatch(update(ActionType.UPDATE_TRANSACTIONS, {}))

        store.invalidate(ACCOUNT, CacheKey.POSITIONS)

        assert not store.has(ACCOUNT, CacheKey.POSITIONS)
        assert store.has(ACCOUNT, CacheKey.TRANSACTIONS)

    def test_invalidate_one_pair(self, store):
        store.dispatch(update(ActionType.UPDATE_USER_PAIR_RETURNS, ["a"], pair_address=PAIR))
        store.dispatch(update(ActionType.UPDATE_USER_PAIR_RETURNS, ["b"], pair_address="0xother"))

        store.invalidate(ACCOUNT, CacheKey.PAIR_RETURNS, PAIR)

        assert not store.has(ACCOUNT, CacheKey.PAIR_RETURNS, PAIR)
        assert store.get(ACCOUNT, CacheKey.PAIR_RETURNS, "0xother") == ["b"]

    def test_invalidate_account(self, store):
        store.dispatch(update(ActionType.UPDATE_POSITIONS, [1]))
        store.invalidate(ACCOUNT)
        store.invalidate("0x0000000000000000000000000000000000000009")
        assert store.snapshot() == {ACCOUNT.lower(): {}}

    def test_snapshot_is_a_copy(self, store):
        store.dispatch(update(ActionType.UPDATE_POSITIONS, [{"id": 1}]))

        copy = store.snapshot()
        copy[ACCOUNT.lower()]["positions"][0]["id"] = 2

        assert store.get(ACCOUNT, CacheKey.POSITIONS) == [{"id": 1}]


class TestReducer:
    def test_state_is_not_mutated(self):
        state = {}
        new_state = reducer(state, update(ActionType.UPDATE_POSITIONS, [1]), now=0)

        assert state == {}
        assert new_state[ACCOUNT.lower()][CacheKey.POSITIONS].value == [1]

    def test_unknown_action_is_rejected(self):
        with pytest.raises(ValueError):
            reducer({}, update("UPDATE_SOMETHING_ELSE", [1]), now=0)

    def test_pair_returns_need_a_pair(self):
        with pytest.raises(ValueError):
            reducer({}, update(ActionType.UPDATE_USER_PAIR_RETURNS, []), now=0)
