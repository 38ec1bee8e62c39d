"""
Ranking module.
Turns a fuzzy base score into a composite relevance score using title heuristics
and popularity/rating signals. Lower scores are better.
"""

from typing import List, Tuple

from .models import Candidate
from .normalizer import normalize_text


def has_consecutive_match(text: str, query: str) -> bool:
	"""
	True when the query words line up with a contiguous run of title words,
	each query word being a substring of the title word it is aligned with.
	"""
	text_words = text.lower().split() or [""]
	query_words = query.lower().split() or [""]

	if len(query_words) == 1:
		return True

	for i in range(len(text_words) - len(query_words) + 1):
		if all(q in text_words[i + j] for j, q in enumerate(query_words)):
			return True
	return False


class Ranker:
	"""
	Computes final relevance scores from multiple signals:
	- base fuzzy score from the matcher (0..1, lower is better)
	- title heuristics: exact, prefix, consecutive words, containment, position, word ratio
	- metadata nudges: live player count (capped) and high rating
	Every signal is a multiplicative factor, so the result is base * 100 * product(factors).
	"""

	def __init__(
		self,
		exact_factor: float = 0.05,
		prefix_factor: float = 0.3,
		raw_prefix_factor: float = 0.5,
		consecutive_factor: float = 0.4,
		contains_factor: float = 0.6,
		raw_contains_factor: float = 0.7,
		position_weight: float = 0.2,
		word_ratio_weight: float = 0.3,
		popularity_scale: float = 100_000,
		popularity_cap: float = 1.5,
		popularity_weight: float = 0.2,
		high_rating_threshold: float = 90,
		high_rating_factor: float = 0.97,
	):
		self.exact_factor = exact_factor
		self.prefix_factor = prefix_factor
		self.raw_prefix_factor = raw_prefix_factor
		self.consecutive_factor = consecutive_factor
		self.contains_factor = contains_factor
		self.raw_contains_factor = raw_contains_factor
		self.position_weight = position_weight
		self.word_ratio_weight = word_ratio_weight
		self.popularity_scale = popularity_scale
		self.popularity_cap = popularity_cap
		self.popularity_weight = popularity_weight
		self.high_rating_threshold = high_rating_threshold
		self.high_rating_factor = high_rating_factor

	def compute_score(self, candidate: Candidate, base_score: float, query: str) -> float:
		"""Combine all signals into a single score (lower = more relevant)."""
		score = base_score * 100
		for _, factor in self.explain(candidate, query):
			score *= factor
		return score

	def explain(self, candidate: Candidate, query: str) -> List[Tuple[str, float]]:
		"""
		List the (name, multiplier) pairs that apply to this candidate, in application order.
		Useful for debugging why one title outranks another.
		"""
		factors: List[Tuple[str, float]] = []

		raw_name = (candidate.title or "").lower()
		raw_query = (query or "").lower()
		name = normalize_text(candidate.title).lower()
		norm_query = normalize_text(query).lower()

		# Exact title
		if raw_name == raw_query or name == norm_query:
			factors.append(("exact", self.exact_factor))

		# Prefix: normalized form wins, the two never stack
		if name.startswith(norm_query):
			factors.append(("prefix", self.prefix_factor))
		elif raw_name.startswith(raw_query):
			factors.append(("raw_prefix", self.raw_prefix_factor))

		if has_consecutive_match(name, norm_query):
			factors.append(("consecutive", self.consecutive_factor))

		# Phrase containment, same precedence as prefix
		if norm_query in name:
			factors.append(("contains", self.contains_factor))
		elif raw_query in raw_name:
			factors.append(("raw_contains", self.raw_contains_factor))

		position = name.find(norm_query)
		if position != -1 and name:
			factors.append(("position", 1 - (position / len(name)) * self.position_weight))

		query_words = len(norm_query.split()) or 1
		name_words = len(name.split()) or 1
		factors.append(("word_ratio", 2 - (query_words / name_words) * self.word_ratio_weight))

		popularity = min(candidate.live_count / self.popularity_scale, self.popularity_cap)
		factors.append(("popularity", 2 - popularity * self.popularity_weight))

		if candidate.rating is not None and candidate.rating >= self.high_rating_threshold:
			factors.append(("high_rating", self.high_rating_factor))

		return factors
