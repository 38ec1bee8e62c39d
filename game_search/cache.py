"""
In-memory TTL cache injected into the HTTP data sources.
Entries expire after their TTL; the oldest entries are evicted when the cache is full.
The ranking core never touches this cache.
"""

import time  # monotonic clock for expiry
from collections import OrderedDict  # insertion order doubles as eviction order
from typing import Any, Awaitable, Callable, Hashable, Optional, Tuple

from loguru import logger  # console logging

_MISSING = object()  # distinguishes "not cached" from a cached None


class TTLCache:
	"""
	Key/value store with a per-entry time-to-live.

	- get() returns the default for missing or expired entries (expired ones are dropped)
	- set() stores a value with the given TTL, or default_ttl_s when omitted
	- max_entries bounds memory; inserting past it evicts expired entries first,
	  then the oldest ones
	"""

	def __init__(
		self,
		default_ttl_s: float = 300.0,
		max_entries: int = 10_000,
		clock: Callable[[], float] = time.monotonic,
	):
		if default_ttl_s <= 0:
			raise ValueError("default_ttl_s must be positive")
		if max_entries < 1:
			raise ValueError("max_entries must be at least 1")
		self.default_ttl_s = default_ttl_s
		self.max_entries = max_entries
		self._clock = clock
		self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()  # key -> (expires_at, value)

	def __len__(self) -> int:
		return len(self._entries)

	def __contains__(self, key: Hashable) -> bool:
		return self.get(key, _MISSING) is not _MISSING

	def get(self, key: Hashable, default: Any = None) -> Any:
		entry = self._entries.get(key)
		if entry is None:
			return default
		expires_at, value = entry
		if expires_at <= self._clock():
			del self._entries[key]
			return default
		return value

	def set(self, key: Hashable, value: Any, ttl_s: Optional[float] = None) -> None:
		ttl = self.default_ttl_s if ttl_s is None else ttl_s
		self._entries.pop(key, None)  # re-insert at the end so eviction order stays fresh
		self._entries[key] = (self._clock() + ttl, value)
		if len(self._entries) > self.max_entries:
			self._evict()

	def delete(self, key: Hashable) -> None:
		self._entries.pop(key, None)

	def clear(self) -> None:
		self._entries.clear()

	def evict_expired(self) -> int:
		"""Drop every expired entry and return how many were removed."""
		now = self._clock()
		expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
		for key in expired:
			del self._entries[key]
		return len(expired)

	async def get_or_set(
		self,
		key: Hashable,
		fetcher: Callable[[], Awaitable[Any]],
		ttl_s: Optional[float] = None,
	) -> Any:
		"""Return the cached value, or await fetcher() and cache its result."""
		value = self.get(key, _MISSING)
		if value is not _MISSING:
			logger.debug(f"[Cache] Hit for '{key}'")
			return value
		logger.debug(f"[Cache] Miss for '{key}'")
		value = await fetcher()
		self.set(key, value, ttl_s)
		return value

	def _evict(self) -> None:
		removed = self.evict_expired()
		while len(self._entries) > self.max_entries:
			self._entries.popitem(last=False)
			removed += 1
		logger.debug(f"[Cache] Evicted {removed} entries (size={len(self._entries)})")
