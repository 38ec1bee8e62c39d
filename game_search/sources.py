"""
Data sources for the search engine.
Defines the collaborator contracts (candidate pool, batch ratings), in-memory
implementations, and HTTP implementations backed by the Rolimons game list and
the public Roblox votes API.
"""

import asyncio  # bounded concurrency and rate-limit sleeps
import math  # rounding helpers
import time  # monotonic clock for the rate limiter
from contextlib import asynccontextmanager  # shared-or-owned HTTP client
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import httpx  # async HTTP client

from loguru import logger  # console logging

from .cache import TTLCache  # injected TTL cache
from .config import SearchSettings  # endpoints, TTLs, batch sizes
from .errors import CandidateSourceError, RatingSourceError, SourceError
from .models import Candidate, RatingInfo

GenreClassifier = Callable[[str], Iterable[str]]


class CandidateSource(Protocol):
	async def fetch_all_candidates(self) -> Sequence[Candidate]:
		...


class RatingSource(Protocol):
	async def fetch_ratings(self, ids: Sequence[str]) -> Mapping[str, RatingInfo]:
		...


def calculate_rating(up_votes: int, down_votes: int) -> Optional[float]:
	"""Percentage of positive votes rounded half up, or None when nobody voted."""
	total = up_votes + down_votes
	if total <= 0:
		return None
	return float(math.floor(up_votes / total * 100 + 0.5))


def parse_candidate(
	place_id: str,
	row: Any,
	genre_classifier: Optional[GenreClassifier] = None,
) -> Optional[Candidate]:
	"""
	Convert one game-list row ([name, player_count, thumbnail_url]) into a Candidate.
	Returns None for malformed rows so a single bad entry never aborts the batch.
	"""
	if not isinstance(row, (list, tuple)) or len(row) < 2:
		logger.warning(f"[Sources] Skipping malformed row for place {place_id}: {row!r}")
		return None
	name, player_count = row[0], row[1]
	thumbnail = row[2] if len(row) > 2 and isinstance(row[2], str) else None
	if not isinstance(name, str) or not name.strip():
		logger.warning(f"[Sources] Skipping place {place_id}: missing title")
		return None
	try:
		live_count = max(0, int(player_count or 0))
	except (TypeError, ValueError):
		logger.warning(f"[Sources] Skipping place {place_id}: bad player count {player_count!r}")
		return None
	genres = frozenset(g.lower() for g in genre_classifier(name)) if genre_classifier else frozenset()
	return Candidate(
		id=str(place_id),
		title=name,
		live_count=live_count,
		genre_tags=genres,
		thumbnail_url=thumbnail,
	)


class StaticCandidateSource:
	"""Serves a fixed, read-only candidate pool."""

	def __init__(self, candidates: Iterable[Candidate]):
		self._candidates = tuple(candidates)

	async def fetch_all_candidates(self) -> Sequence[Candidate]:
		return self._candidates


class StaticRatingSource:
	"""Serves ratings from a fixed mapping; unknown ids are simply absent."""

	def __init__(self, ratings: Optional[Mapping[str, RatingInfo]] = None):
		self._ratings = dict(ratings or {})

	async def fetch_ratings(self, ids: Sequence[str]) -> Mapping[str, RatingInfo]:
		return {i: self._ratings[i] for i in ids if i in self._ratings}


class RateLimiter:
	"""Sliding-window limiter: at most max_requests calls per window_s seconds."""

	def __init__(
		self,
		max_requests: int = 60,
		window_s: float = 60.0,
		clock: Callable[[], float] = time.monotonic,
		sleep: Callable[[float], Any] = asyncio.sleep,
	):
		self.max_requests = max_requests
		self.window_s = window_s
		self._clock = clock
		self._sleep = sleep
		self._requests: List[float] = []

	async def throttle(self) -> None:
		while True:
			now = self._clock()
			self._requests = [t for t in self._requests if now - t < self.window_s]
			if len(self._requests) < self.max_requests:
				self._requests.append(now)
				return
			wait = self.window_s - (now - self._requests[0])
			logger.debug(f"[Sources] Rate limit reached, waiting {wait:.2f}s")
			await self._sleep(wait)


class _HttpSource:
	"""Shared plumbing: optional injected client, JSON GET with error mapping."""

	error_type = SourceError

	def __init__(self, settings: Optional[SearchSettings] = None, client: Optional[httpx.AsyncClient] = None):
		self.settings = settings or SearchSettings()
		self._client = client

	@asynccontextmanager
	async def _session(self):
		if self._client is not None:
			yield self._client
			return
		async with httpx.AsyncClient(timeout=self.settings.http_timeout_s) as client:
			yield client

	async def _get_json(self, client: httpx.AsyncClient, url: str, params: Optional[Dict[str, str]] = None) -> Any:
		try:
			response = await client.get(url, params=params)
		except httpx.TimeoutException as e:
			logger.error(f"[Sources] Timeout calling {url}: {e}")
			raise self.error_type(f"Request to {url} timed out") from e
		except httpx.HTTPError as e:
			logger.error(f"[Sources] Transport error calling {url}: {e}")
			raise self.error_type(f"Request to {url} failed: {e}") from e

		if response.status_code != 200:
			logger.warning(f"[Sources] {url} returned {response.status_code}")
			raise self.error_type(f"{url} returned status {response.status_code}", response.status_code)
		try:
			return response.json()
		except ValueError as e:
			raise self.error_type(f"{url} returned invalid JSON") from e


class RolimonsCandidateSource(_HttpSource):
	"""
	Candidate pool from the Rolimons game list (thousands of games with live player counts).
	The parsed pool is cached for settings.candidate_ttl_s and handed out as a read-only tuple.
	"""

	error_type = CandidateSourceError
	CACHE_KEY = "rolimons:games"

	def __init__(
		self,
		cache: TTLCache,
		settings: Optional[SearchSettings] = None,
		client: Optional[httpx.AsyncClient] = None,
		genre_classifier: Optional[GenreClassifier] = None,
	):
		super().__init__(settings, client)
		self.cache = cache
		self.genre_classifier = genre_classifier

	async def fetch_all_candidates(self) -> Sequence[Candidate]:
		return await self.cache.get_or_set(self.CACHE_KEY, self._fetch, self.settings.candidate_ttl_s)

	async def _fetch(self) -> Tuple[Candidate, ...]:
		logger.info(f"[Sources] Fetching game list from {self.settings.gamelist_url}")
		async with self._session() as client:
			data = await self._get_json(client, self.settings.gamelist_url)
		games = data.get("games") if isinstance(data, dict) else None
		if not isinstance(games, dict):
			raise CandidateSourceError("Game list response has no 'games' mapping")

		candidates = []
		for place_id, row in games.items():
			candidate = parse_candidate(place_id, row, self.genre_classifier)
			if candidate is not None:
				candidates.append(candidate)
		logger.info(f"[Sources] Loaded {len(candidates)} of {len(games)} games")
		return tuple(candidates)


class RobloxRatingSource(_HttpSource):
	"""
	Batch rating lookup keyed by place id.
	Place ids are converted to universe ids (one call each, bounded concurrency), then
	votes are fetched in batches. Failures are logged and leave ids out of the result.
	"""

	error_type = RatingSourceError

	def __init__(
		self,
		cache: TTLCache,
		settings: Optional[SearchSettings] = None,
		client: Optional[httpx.AsyncClient] = None,
		rate_limiter: Optional[RateLimiter] = None,
	):
		super().__init__(settings, client)
		self.cache = cache
		self.rate_limiter = rate_limiter or RateLimiter(
			self.settings.rate_limit_requests, self.settings.rate_limit_window_s
		)

	async def fetch_ratings(self, ids: Sequence[str]) -> Mapping[str, RatingInfo]:
		if not ids:
			return {}
		async with self._session() as client:
			universe_map = await self._resolve_universe_ids(client, ids)
			votes = await self._fetch_votes(client, sorted(set(universe_map.values())))

		ratings: Dict[str, RatingInfo] = {}
		for place_id, universe_id in universe_map.items():
			if universe_id not in votes:
				continue
			up, down = votes[universe_id]
			ratings[place_id] = RatingInfo(rating=calculate_rating(up, down), total_votes=up + down)
		logger.info(f"[Sources] Ratings resolved for {len(ratings)}/{len(ids)} games")
		return ratings

	async def _resolve_universe_ids(self, client: httpx.AsyncClient, place_ids: Sequence[str]) -> Dict[str, int]:
		resolved: Dict[str, int] = {}
		pending: List[str] = []
		for place_id in place_ids:
			cached = self.cache.get(f"place:{place_id}", False)
			if cached is False:
				pending.append(place_id)
			elif cached:  # None means a cached "unknown place"
				resolved[place_id] = cached

		if pending:
			logger.debug(f"[Sources] Resolving {len(pending)}/{len(place_ids)} uncached place ids")
			semaphore = asyncio.Semaphore(self.settings.universe_concurrency)

			async def resolve(place_id: str) -> None:
				async with semaphore:
					universe_id = await self._fetch_universe_id(client, place_id)
				if universe_id:
					resolved[place_id] = universe_id

			await asyncio.gather(*(resolve(p) for p in pending))
		return resolved

	async def _fetch_universe_id(self, client: httpx.AsyncClient, place_id: str) -> Optional[int]:
		key = f"place:{place_id}"
		if not str(place_id).isdigit():
			logger.warning(f"[Sources] Place id {place_id!r} is not numeric")
			return None
		await self.rate_limiter.throttle()
		url = self.settings.universe_url.format(place_id=place_id)
		try:
			data = await self._get_json(client, url)
		except RatingSourceError as e:
			logger.warning(f"[Sources] Could not resolve place {place_id}: {e}")
			if e.status_code:  # the API answered; remember the miss
				self.cache.set(key, None, self.settings.universe_ttl_s)
			return None
		universe_id = data.get("universeId") if isinstance(data, dict) else None
		self.cache.set(key, universe_id, self.settings.universe_ttl_s)
		return universe_id

	async def _fetch_votes(self, client: httpx.AsyncClient, universe_ids: Sequence[int]) -> Dict[int, Tuple[int, int]]:
		votes: Dict[int, Tuple[int, int]] = {}
		uncached: List[int] = []
		for universe_id in universe_ids:
			cached = self.cache.get(f"votes:{universe_id}")
			if cached is None:
				uncached.append(universe_id)
			else:
				votes[universe_id] = cached

		size = self.settings.votes_batch_size
		for start in range(0, len(uncached), size):
			batch = uncached[start:start + size]
			await self.rate_limiter.throttle()
			try:
				data = await self._get_json(
					client, self.settings.votes_url, params={"universeIds": ",".join(str(u) for u in batch)}
				)
			except RatingSourceError as e:
				logger.warning(f"[Sources] Votes batch of {len(batch)} failed: {e}")
				continue

			rows = data.get("data") if isinstance(data, dict) else None
			for row in rows or []:
				try:
					entry = (int(row.get("upVotes") or 0), int(row.get("downVotes") or 0))
					universe_id = int(row["id"])
				except (AttributeError, KeyError, TypeError, ValueError):
					logger.warning(f"[Sources] Ignoring malformed votes row: {row!r}")
					continue
				votes[universe_id] = entry
				self.cache.set(f"votes:{universe_id}", entry, self.settings.votes_ttl_s)
			# Games missing from a successful response have no votes yet
			for universe_id in batch:
				if universe_id not in votes:
					votes[universe_id] = (0, 0)
					self.cache.set(f"votes:{universe_id}", (0, 0), self.settings.votes_ttl_s)
			logger.debug(f"[Sources] Votes batch fetched: {len(rows or [])} rows for {len(batch)} ids")
		return votes
