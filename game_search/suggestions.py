"""
Autocomplete and display helpers built on the same candidate pool as search.
"""

import html  # escape text around highlighted matches
from typing import List, Sequence

from .models import Candidate


def get_search_suggestions(candidates: Sequence[Candidate], partial_query: str, limit: int = 5) -> List[str]:
	"""
	Titles containing the partial query (case-insensitive), most played first.
	Queries shorter than two characters return nothing.
	"""
	query = (partial_query or "").strip().lower()
	if len(query) < 2:
		return []

	best = {}  # title -> highest live count seen for that title
	for c in candidates:
		if c.title and query in c.title.lower():
			best[c.title] = max(best.get(c.title, 0), c.live_count)

	ranked = sorted(best.items(), key=lambda item: (-item[1], item[0]))
	return [title for title, _ in ranked[:limit]]



def highlight_match(text: str, query: str, tag: str = "mark") -> str:
	"""Wrap the first case-insensitive occurrence of query in <tag>...</tag>; other text is escaped."""
	if not text or not query:
		return html.escape(text or "")
	index = text.lower().find(query.lower())
	if index == -1:
		return html.escape(text)
	end = index + len(query)
	return (
		f"{html.escape(text[:index])}<{tag}>{html.escape(text[index:end])}</{tag}>"
		f"{html.escape(text[end:])}"
	)
