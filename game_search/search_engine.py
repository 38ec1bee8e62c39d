"""
Search engine module.
Runs the query-time pipeline: pre-filter, fuzzy match, relevance scoring, rating
enrichment, rating post-filter, and the final sort.
"""

import asyncio  # enrichment timeout
from typing import List, Mapping, Optional, Sequence  # type annotations

# Import project modules for data structures and components
from .config import SearchSettings  # tunables
from .filters import apply_prefilters, apply_rating_filter  # two-phase filtering
from .fuzzy_matcher import FuzzyMatcher  # approximate title/genre matching
from .models import Candidate, RatingInfo, ScoredCandidate, SearchRequest, SortMode  # core data classes
from .ranking import Ranker  # relevance heuristics
from .sources import CandidateSource, RatingSource  # external collaborators

# Import loguru for console logging
from loguru import logger  # simple structured logger


def trending_score(result: ScoredCandidate) -> float:
	return result.live_count * (1 + (result.rating or 0) / 100)


def sort_results(results: Sequence[ScoredCandidate], mode: SortMode) -> List[ScoredCandidate]:
	"""Return a new list ordered by the requested mode; ties keep relevance order."""
	if mode == SortMode.RATING:
		# Unrated games trail every rated one
		return sorted(results, key=lambda r: (r.rating is None, -(r.rating or 0)))
	if mode == SortMode.PLAYERS:
		return sorted(results, key=lambda r: -r.live_count)
	if mode == SortMode.TRENDING:
		return sorted(results, key=lambda r: -trending_score(r))
	return list(results)  # relevance: already ordered by score


def merge_ratings(results: Sequence[ScoredCandidate], ratings: Mapping[str, RatingInfo]) -> List[ScoredCandidate]:
	"""Attach enrichment data as new records; ids without data keep rating=None."""
	merged = []
	for r in results:
		info = ratings.get(r.id)
		if info is None:
			merged.append(r)
		else:
			merged.append(r.with_candidate(r.candidate.with_rating(info.rating, info.total_votes)))
	return merged


class SearchEngine:
	"""
	High-level search API combining matching, ranking, enrichment, and filtering.
	Holds no per-request state, so one instance can serve concurrent searches.
	"""

	def __init__(
		self,
		candidate_source: CandidateSource,  # full game pool (may be cached upstream)
		rating_source: RatingSource,  # batch rating enrichment
		matcher: Optional[FuzzyMatcher] = None,
		ranker: Optional[Ranker] = None,
		settings: Optional[SearchSettings] = None,
	):
		self.settings = settings or SearchSettings()
		self.candidate_source = candidate_source
		self.rating_source = rating_source
		self.matcher = matcher or FuzzyMatcher(
			threshold=self.settings.fuzzy_threshold,
			min_match_char_length=self.settings.min_match_char_length,
			title_weight=self.settings.title_weight,
			genre_weight=self.settings.genre_weight,
		)
		self.ranker = ranker or Ranker()

	def retention_count(self, request: SearchRequest) -> int:
		"""How many provisional results to keep ahead of enrichment."""
		if request.has_rating_filter:
			headroom = min(request.limit * self.settings.retention_multiplier, self.settings.retention_ceiling)
			return max(request.limit, headroom)  # never fewer than the caller asked for
		return request.limit

	def rank(self, candidates: Sequence[Candidate], request: SearchRequest) -> List[ScoredCandidate]:
		"""Synchronous part of the pipeline: filter, match, score, sort, slice."""
		pool = apply_prefilters(candidates, request)
		logger.debug(f"[Engine] Pre-filters kept {len(pool)} of {len(candidates)} candidates")

		matches = self.matcher.match(pool, request.query)
		scored = [
			ScoredCandidate(
				candidate=m.candidate,
				score=self.ranker.compute_score(m.candidate, m.base_score, request.query),
				matched_fields=m.matched_fields,
			)
			for m in matches
		]
		# Ties broken by id so the order never depends on the pool's order
		scored = sorted(scored, key=lambda r: (r.score, r.id))
		retained = scored[:self.retention_count(request)]
		logger.debug(f"[Engine] Retaining {len(retained)} of {len(scored)} scored matches")
		return retained

	async def search(
		self,
		request: SearchRequest,
		candidates: Optional[Sequence[Candidate]] = None,
	) -> List[ScoredCandidate]:
		"""Run the full pipeline and return at most request.limit results."""
		if candidates is None:
			candidates = await self.candidate_source.fetch_all_candidates()
		logger.debug(
			f"[Engine] Search | query='{request.query}' genres={sorted(request.genre_filter)} "
			f"rating={request.min_rating}-{request.max_rating} min_players={request.min_live_count} "
			f"sort={request.sort_mode.value} limit={request.limit}"
		)

		provisional = self.rank(candidates, request)
		if not provisional:
			logger.info(f"[Engine] No matches for '{request.query}'")
			return []

		ratings = await self._fetch_ratings([r.id for r in provisional])
		enriched = merge_ratings(provisional, ratings)

		outcome = apply_rating_filter(enriched, request.min_rating, request.max_rating)
		ordered = sort_results(outcome.results, request.sort_mode)
		final = ordered[:request.limit]
		logger.info(
			f"[Engine] Returning {len(final)} results for '{request.query}' "
			f"(matched={len(provisional)}, rated={len(ratings)}, rating_filter_skipped={outcome.skipped})"
		)
		return final

	async def _fetch_ratings(self, ids: List[str]) -> Mapping[str, RatingInfo]:
		"""Ask the rating source for ids; any failure degrades to "no data"."""
		try:
			ratings = await asyncio.wait_for(
				self.rating_source.fetch_ratings(ids), timeout=self.settings.enrichment_timeout_s
			)
		except asyncio.TimeoutError:
			logger.warning(f"[Engine] Rating enrichment timed out after {self.settings.enrichment_timeout_s}s")
			return {}
		except Exception as e:  # any collaborator failure means "no ratings", never a failed search
			logger.warning(f"[Engine] Rating enrichment failed, continuing without ratings: {e!r}")
			return {}
		if ratings is None:
			return {}
		# Only keep ids we asked for
		wanted = set(ids)
		return {k: v for k, v in ratings.items() if k in wanted}
