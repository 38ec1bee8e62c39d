"""
Exception types raised by the game search engine and its data sources.
"""


class GameSearchError(Exception):
	"""Base exception for game search errors."""

	pass


class InvalidSearchRequest(GameSearchError, ValueError):
	"""Raised when a SearchRequest is constructed with out-of-range values."""

	pass


class SourceError(GameSearchError):
	"""Raised when an external data source fails; status_code is 0 for transport errors."""

	def __init__(self, message: str, status_code: int = 0):
		super().__init__(message)
		self.status_code = status_code


class CandidateSourceError(SourceError):
	"""Raised when the candidate pool cannot be fetched."""

	pass


class RatingSourceError(SourceError):
	"""Raised when the rating service cannot be reached."""

	pass
