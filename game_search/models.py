"""
Data models for the Game Search Engine.
Defines the core data structures used throughout the system.
"""

# Import dataclass helpers to define immutable "record-like" classes without boilerplate
from dataclasses import dataclass, field, replace  # replace() builds modified copies
# Enum for the closed set of sort modes
from enum import Enum  # str-backed enum so values serialize cleanly
# Import typing helpers for precise and self-documenting types
from typing import FrozenSet, Iterable, Optional, Tuple  # sets, optional values, and fixed tuples

from .errors import InvalidSearchRequest  # raised on invalid request values


@dataclass(frozen=True)
class Candidate:
	"""
	Represents a single searchable game for the duration of one search call.
	Instances are never mutated; enrichment produces a new record via with_rating().
	"""
	id: str  # external stable identifier (place id), unique per game
	title: str  # display name, may contain emoji or decorative brackets
	live_count: int = 0  # current player count from the live feed
	genre_tags: FrozenSet[str] = field(default_factory=frozenset)  # lowercase genre labels
	rating: Optional[float] = None  # 0..100 percentage; None means not enriched / no data
	total_votes: int = 0  # number of votes backing the rating
	thumbnail_url: Optional[str] = None  # optional: image URL for the UI

	def with_rating(self, rating: Optional[float], total_votes: int) -> "Candidate":
		"""Return a copy carrying enrichment data; the original stays untouched."""
		return replace(self, rating=rating, total_votes=total_votes)


@dataclass(frozen=True)
class ScoredCandidate:
	"""
	A candidate together with its relevance score.
	Lower scores are more relevant (fuzzy-match convention).
	"""
	candidate: Candidate  # matched game
	score: float  # final composite relevance score
	matched_fields: Tuple[str, ...] = ("title",)  # attributes that produced the match

	@property
	def id(self) -> str:
		return self.candidate.id

	@property
	def title(self) -> str:
		return self.candidate.title

	@property
	def live_count(self) -> int:
		return self.candidate.live_count

	@property
	def rating(self) -> Optional[float]:
		return self.candidate.rating

	def with_candidate(self, candidate: Candidate) -> "ScoredCandidate":
		"""Rebind this result to an enriched candidate, keeping score and fields."""
		return replace(self, candidate=candidate)


@dataclass(frozen=True)
class RatingInfo:
	"""Rating data returned by the enrichment collaborator for one game."""
	rating: Optional[float]  # 0..100, None when the game has no votes
	total_votes: int = 0  # up + down votes


class SortMode(str, Enum):
	"""How the final result list is ordered."""
	RELEVANCE = "relevance"
	RATING = "rating"
	PLAYERS = "players"
	TRENDING = "trending"


@dataclass(frozen=True)
class SearchRequest:
	"""
	Represents what the caller asked for.
	Every optional field has a default that disables the corresponding filter.
	"""
	query: str  # the text the user typed (must not be blank)
	genre_filter: FrozenSet[str] = field(default_factory=frozenset)  # OR semantics; empty = no filter
	min_rating: Optional[float] = None  # lower bound 0..100, None = unbounded
	max_rating: Optional[float] = None  # upper bound 0..100, None = unbounded
	min_live_count: Optional[int] = None  # minimum live players, None = no filter
	sort_mode: SortMode = SortMode.RELEVANCE  # final ordering
	limit: int = 10  # number of results returned to the caller

	def __post_init__(self):
		if not isinstance(self.query, str) or not self.query.strip():
			raise InvalidSearchRequest("Query cannot be empty")
		if not isinstance(self.limit, int) or self.limit < 1:
			raise InvalidSearchRequest(f"limit must be a positive integer, got {self.limit!r}")
		for name in ("min_rating", "max_rating"):
			value = getattr(self, name)
			if value is not None and not (0 <= value <= 100):
				raise InvalidSearchRequest(f"{name} must be within [0, 100], got {value!r}")
		if self.min_rating is not None and self.max_rating is not None and self.min_rating > self.max_rating:
			raise InvalidSearchRequest(f"min_rating {self.min_rating} exceeds max_rating {self.max_rating}")
		if self.min_live_count is not None and self.min_live_count < 0:
			raise InvalidSearchRequest(f"min_live_count must be non-negative, got {self.min_live_count!r}")

		# Coerce loose inputs into their canonical forms (frozen, so bypass __setattr__)
		object.__setattr__(self, "genre_filter", _normalize_genres(self.genre_filter))
		try:
			object.__setattr__(self, "sort_mode", SortMode(self.sort_mode))
		except ValueError as e:
			raise InvalidSearchRequest(f"Unknown sort mode: {self.sort_mode!r}") from e

	@property
	def has_rating_filter(self) -> bool:
		return self.min_rating is not None or self.max_rating is not None


def _normalize_genres(genres: Optional[Iterable[str]]) -> FrozenSet[str]:
	if not genres:
		return frozenset()
	if isinstance(genres, str):  # a single tag passed by mistake
		genres = [genres]
	return frozenset(g.strip().lower() for g in genres if g and g.strip())
