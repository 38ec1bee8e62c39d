"""
Shared fixtures for the game search tests.
"""

import asyncio
from typing import List, Mapping, Optional, Sequence

import pytest

from game_search.models import Candidate, RatingInfo


def _make_candidate(
	id: str,
	title: str,
	live_count: int = 1000,
	genres=(),
	rating: Optional[float] = None,
	total_votes: int = 0,
) -> Candidate:
	return Candidate(
		id=id,
		title=title,
		live_count=live_count,
		genre_tags=frozenset(genres),
		rating=rating,
		total_votes=total_votes,
	)


class RecordingRatingSource:
	"""Returns fixed ratings and remembers every id batch it was asked for."""

	def __init__(self, ratings: Optional[Mapping[str, RatingInfo]] = None):
		self.ratings = dict(ratings or {})
		self.calls: List[List[str]] = []

	async def fetch_ratings(self, ids: Sequence[str]):
		self.calls.append(list(ids))
		return {i: self.ratings[i] for i in ids if i in self.ratings}


class FailingRatingSource:
	"""Simulates the rating service being unreachable."""

	def __init__(self, error: Exception = None):
		self.error = error or ConnectionError("votes API unreachable")

	async def fetch_ratings(self, ids: Sequence[str]):
		raise self.error


class SlowRatingSource:
	"""Never answers within a short timeout."""

	def __init__(self, delay_s: float = 5.0):
		self.delay_s = delay_s
		self.started = False

	async def fetch_ratings(self, ids: Sequence[str]):
		self.started = True
		await asyncio.sleep(self.delay_s)
		return {}


@pytest.fixture
def make_candidate():
	return _make_candidate


@pytest.fixture
def tower_pool():
	"""Five games that all match the query "tower"."""
	return [
		_make_candidate("1", "Tower of Hell", live_count=40000),
		_make_candidate("2", "Tower Defense Simulator", live_count=30000),
		_make_candidate("3", "Tower Heroes", live_count=5000),
		_make_candidate("4", "Toilet Tower Defense", live_count=80000),
		_make_candidate("5", "Tower Blitz", live_count=2000),
	]
