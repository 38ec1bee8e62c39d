"""
Fuzzy matching module.
Scores every candidate against the query on title (primary) and genre tags (secondary)
using rapidfuzz, and keeps the candidates within the distance threshold.
"""

from dataclasses import dataclass  # lightweight result container
from typing import List, Optional, Sequence, Tuple  # type annotations

from rapidfuzz import fuzz  # approximate string similarity (0..100)

from loguru import logger  # console logging

from .models import Candidate  # searchable game record
from .normalizer import normalize_text  # strip decoration before comparing

# Distance used in place of an exact 0 so weighted products still separate fields
PERFECT_MATCH_FLOOR = 0.001


@dataclass(frozen=True)
class FuzzyMatch:
	candidate: Candidate  # matched game
	base_score: float  # 0 = perfect match, 1 = no match
	matched_fields: Tuple[str, ...]  # e.g. ("title",) or ("title", "genres")


class FuzzyMatcher:
	"""
	Approximate matcher tolerant of typos and word reordering.
	Match location is ignored; where the query occurs is handled by the Ranker.

	Per-field distances are combined as a weighted product, so a perfect match on the
	low-weight genre field scores worse than a perfect match on the title.
	"""

	def __init__(
		self,
		threshold: float = 0.4,
		min_match_char_length: int = 2,
		title_weight: float = 2.0,
		genre_weight: float = 0.5,
	):
		if not 0.0 <= threshold <= 1.0:
			raise ValueError(f"threshold must be within [0, 1], got {threshold}")
		total = title_weight + genre_weight
		if total <= 0:
			raise ValueError("At least one field weight must be positive")
		self.threshold = threshold
		self.min_match_char_length = min_match_char_length
		# Normalize weights so they sum to 1 (defaults give title 0.8, genres 0.2)
		self.title_weight = title_weight / total
		self.genre_weight = genre_weight / total

	def match(self, candidates: Sequence[Candidate], query: str) -> List[FuzzyMatch]:
		"""Return candidates within the threshold, in input order (not ranked)."""
		pattern = self._prepare_query(query)
		if not pattern or not candidates:
			logger.debug(f"[Matcher] Nothing to match | pattern='{pattern}' | pool={len(candidates)}")
			return []

		results: List[FuzzyMatch] = []
		skipped = 0
		for candidate in candidates:
			title = normalize_text(candidate.title).lower()
			if not title:  # malformed record: no usable title
				skipped += 1
				continue

			fields = []
			score = 1.0
			title_distance = self._distance(pattern, title)
			if title_distance <= self.threshold:
				fields.append("title")
				score *= max(title_distance, PERFECT_MATCH_FLOOR) ** self.title_weight

			genre_distance = self._best_genre_distance(pattern, candidate.genre_tags)
			if genre_distance is not None and genre_distance <= self.threshold:
				fields.append("genres")
				score *= max(genre_distance, PERFECT_MATCH_FLOOR) ** self.genre_weight

			if fields:
				results.append(FuzzyMatch(candidate=candidate, base_score=score, matched_fields=tuple(fields)))

		if skipped:
			logger.warning(f"[Matcher] Skipped {skipped} candidates without a usable title")
		logger.debug(f"[Matcher] '{pattern}' matched {len(results)} of {len(candidates)} candidates")
		return results

	def _prepare_query(self, query: str) -> str:
		"""Drop fragments too short to be meaningful, unless nothing would be left."""
		tokens = normalize_text(query).lower().split()
		kept = [t for t in tokens if len(t) >= self.min_match_char_length]
		return " ".join(kept or tokens)

	def _best_genre_distance(self, pattern: str, genres) -> Optional[float]:
		if not genres:
			return None
		return min(self._distance(pattern, g.lower()) for g in genres)

	@staticmethod
	def _distance(pattern: str, text: str) -> float:
		# Substring alignment only makes sense when the pattern fits inside the text
		if len(pattern) <= len(text):
			similarity = fuzz.partial_ratio(pattern, text)
		else:
			similarity = fuzz.ratio(pattern, text)
		similarity = max(similarity, fuzz.token_set_ratio(pattern, text))  # word reordering
		return 1.0 - similarity / 100.0
