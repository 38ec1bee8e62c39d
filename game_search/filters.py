"""
Filtering module.
Pre-match filters (genre, live players) run on the raw pool before fuzzy matching.
The rating filter runs only after enrichment and fails open when no ratings arrived.
"""

from dataclasses import dataclass  # outcome container
from typing import List, Optional, Sequence  # type annotations

from loguru import logger  # console logging

from .models import Candidate, ScoredCandidate, SearchRequest


@dataclass(frozen=True)
class RatingFilterOutcome:
	results: List[ScoredCandidate]  # survivors, in input order
	skipped: bool  # True when the filter was bypassed for lack of rating data


def apply_prefilters(candidates: Sequence[Candidate], request: SearchRequest) -> List[Candidate]:
	"""Apply genre (OR across requested tags) and minimum live player filters."""
	filtered = list(candidates)  # never touch the caller's pool

	if request.genre_filter:
		wanted = request.genre_filter  # already lowercased by SearchRequest
		filtered = [c for c in filtered if any(g.lower() in wanted for g in c.genre_tags)]
		logger.debug(f"[Filters] Genre filter {sorted(wanted)} kept {len(filtered)} candidates")

	if request.min_live_count is not None and request.min_live_count > 0:
		filtered = [c for c in filtered if c.live_count >= request.min_live_count]
		logger.debug(f"[Filters] Min players {request.min_live_count} kept {len(filtered)} candidates")

	return filtered


def has_valid_rating(rating: Optional[float]) -> bool:
	# 0 is indistinguishable from "no votes" upstream, so it does not count
	return rating is not None and rating > 0


def apply_rating_filter(
	results: Sequence[ScoredCandidate],
	min_rating: Optional[float] = None,
	max_rating: Optional[float] = None,
) -> RatingFilterOutcome:
	"""
	Keep results whose rating lies in [min_rating, max_rating].
	Results with a missing or zero rating are dropped, unless no result has a valid
	rating at all (enrichment outage), in which case the filter is skipped entirely.
	"""
	if min_rating is None and max_rating is None:
		return RatingFilterOutcome(results=list(results), skipped=False)

	if not any(has_valid_rating(r.rating) for r in results):
		logger.warning(
			f"[Filters] No valid ratings among {len(results)} results - skipping rating filter "
			f"({min_rating}-{max_rating})"
		)
		return RatingFilterOutcome(results=list(results), skipped=True)

	low = 0 if min_rating is None else min_rating
	high = 100 if max_rating is None else max_rating
	kept = [r for r in results if has_valid_rating(r.rating) and low <= r.rating <= high]
	logger.debug(f"[Filters] Rating filter ({low}-{high}) kept {len(kept)} of {len(results)} results")
	return RatingFilterOutcome(results=kept, skipped=False)
