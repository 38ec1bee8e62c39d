"""
Text normalization for fuzzy matching.
Strips emoji, decorative brackets, and redundant whitespace from game titles and queries.
"""

import re  # precompiled patterns below
from typing import Optional

# Emoji blocks commonly used to decorate game titles (pictographs, misc symbols, dingbats)
RE_EMOJI = re.compile("[\U0001F300-\U0001F9FF\u2600-\u26FF\u2700-\u27BF]")
# ASCII brackets plus the full-width and CJK variants seen in decorated titles
RE_BRACKETS = re.compile(r"[\[\]()（）【】《》〈〉]")
RE_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
	"""
	Remove emoji and bracket characters, collapse whitespace, and trim.
	Case is preserved; callers lowercase when they compare.
	"""
	if not text:
		return ""
	cleaned = RE_EMOJI.sub("", text)
	cleaned = RE_BRACKETS.sub("", cleaned)
	return RE_WHITESPACE.sub(" ", cleaned).strip()
