"""
Per-account in-process store.

Every cached value lives under (account, key) and, for pair returns, under a
pair address as well. Reads go through `get`; the only write path is
`dispatch`, which applies one `StoreAction` through `reducer`. Presence of a
fresh entry means "authoritative, do not refetch".
"""
import copy
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class CacheKey(str, Enum):
    TRANSACTIONS = "transactions"
    POSITIONS = "positions"
    MINING_POSITIONS = "mining_positions"
    SNAPSHOTS = "snapshots"
    PAIR_RETURNS = "pair_returns"


class ActionType(str, Enum):
    UPDATE_TRANSACTIONS = "UPDATE_TRANSACTIONS"
    UPDATE_POSITIONS = "UPDATE_POSITIONS"
    UPDATE_MINING_POSITIONS = "UPDATE_MINING_POSITIONS"
    UPDATE_USER_POSITION_HISTORY = "UPDATE_USER_POSITION_HISTORY"
    UPDATE_USER_PAIR_RETURNS = "UPDATE_USER_PAIR_RETURNS"


ACTION_KEYS = {
    ActionType.UPDATE_TRANSACTIONS: CacheKey.TRANSACTIONS,
    ActionType.UPDATE_POSITIONS: CacheKey.POSITIONS,
    ActionType.UPDATE_MINING_POSITIONS: CacheKey.MINING_POSITIONS,
    ActionType.UPDATE_USER_POSITION_HISTORY: CacheKey.SNAPSHOTS,
    ActionType.UPDATE_USER_PAIR_RETURNS: CacheKey.PAIR_RETURNS,
}


@dataclass(frozen=True)
class StoreAction:
    type: ActionType
    account: str
    payload: Any
    pair_address: Optional[str] = None


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


def normalize(address: Optional[str]) -> Optional[str]:
    return address.lower() if address else address


def reducer(state: Dict[str, Dict], action: StoreAction, now: float) -> Dict[str, Dict]:
    """Return a new state with `action` applied. `state` is never mutated."""
    key = ACTION_KEYS.get(action.type)
    if key is None:
        raise ValueError(f"Unexpected action type in account store reducer: '{action.type}'.")

    account = normalize(action.account)
    account_state = dict(state.get(account, {}))
    entry = CacheEntry(value=action.payload, stored_at=now)

    if key == CacheKey.PAIR_RETURNS:
        if not action.pair_address:
            raise ValueError("Pair returns updates need a pair address")
        pair_returns = dict(account_state.get(key, {}))
        pair_returns[normalize(action.pair_address)] = entry
        account_state[key] = pair_returns
    else:
        account_state[key] = entry

    return {**state, account: account_state}


class AccountStore:
    """In-process cache keyed by account, with an explicit staleness policy.

    ttl_seconds=None keeps entries until they are invalidated or the process
    exits. Any number expires entries that many seconds after they were written.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._state: Dict[str, Dict] = {}

    def _is_fresh(self, entry: CacheEntry) -> bool:
        if self.ttl_seconds is None:
            return True
        return self._clock() - entry.stored_at < self.ttl_seconds

    def get(self, account: str, key: CacheKey, pair_address: Optional[str] = None) -> Optional[Any]:
        """Return the cached value or None when absent or stale"""
        account_state = self._state.get(normalize(account))
        if not account_state:
            return None

        entry = account_state.get(key)
        if key == CacheKey.PAIR_RETURNS:
            if entry is None or pair_address is None:
                return None
            entry = entry.get(normalize(pair_address))

        if entry is None or not self._is_fresh(entry):
            return None
        return entry.value

    def has(self, account: str, key: CacheKey, pair_address: Optional[str] = None) -> bool:
        return self.get(account, key, pair_address) is not None

    def dispatch(self, action: StoreAction) -> None:
        """Sole mutation path for the store"""
        self._state = reducer(self._state, action, self._clock())
        logger.debug(f"Store updated: {action.type.value} for {normalize(action.account)}")

    def invalidate(self, account: str, key: Optional[CacheKey] = None, pair_address: Optional[str] = None) -> None:
        """Drop cached values so the next access refetches them"""
        account = normalize(account)
        if account not in self._state:
            return
        account_state = dict(self._state[account])
        if key is None:
            account_state = {}
        elif key == CacheKey.PAIR_RETURNS and pair_address is not None:
            pair_returns = dict(account_state.get(key, {}))
            pair_returns.pop(normalize(pair_address), None)
            account_state[key] = pair_returns
        else:
            account_state.pop(key, None)
        self._state = {**self._state, account: account_state}

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Deep copy of the fresh values, for inspection and debugging"""
        result: Dict[str, Dict[str, Any]] = {}
        for account, account_state in self._state.items():
            values: Dict[str, Any] = {}
            for key, entry in account_state.items():
                if key == CacheKey.PAIR_RETURNS:
                    values[key.value] = {
                        pair: copy.deepcopy(e.value) for pair, e in entry.items() if self._is_fresh(e)
                    }
                elif self._is_fresh(entry):
                    values[key.value] = copy.deepcopy(entry.value)
            result[account] = values
        return result
