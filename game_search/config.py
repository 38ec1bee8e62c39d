"""
Configuration for the game search engine.
All tunables live here with their defaults; any field can be overridden with a
GAME_SEARCH_<FIELD> environment variable (or a .env file).
"""

from functools import lru_cache  # load settings once per process

from loguru import logger  # console logging
from pydantic import Field  # defaults with bounds
from pydantic_settings import BaseSettings, SettingsConfigDict  # environment-driven settings

ENV_PREFIX = "GAME_SEARCH_"


class SearchSettings(BaseSettings):
	"""Engine, cache, and upstream HTTP tunables."""

	model_config = SettingsConfigDict(
		env_prefix=ENV_PREFIX,
		env_file=".env",
		env_file_encoding="utf-8",
		case_sensitive=False,
		extra="ignore",
		frozen=True,
	)

	# Fuzzy matcher
	fuzzy_threshold: float = Field(default=0.4, ge=0.0, le=1.0)  # 0 = exact match only, 1 = match anything
	min_match_char_length: int = Field(default=2, ge=1)  # query fragments shorter than this are ignored
	title_weight: float = Field(default=2.0, gt=0)  # title matters most
	genre_weight: float = Field(default=0.5, ge=0)  # genre tags help a little

	# Orchestrator
	retention_multiplier: int = Field(default=3, ge=1)  # headroom kept for rating-filter attrition
	retention_ceiling: int = Field(default=60, ge=1)  # cap on retained candidates, never below the limit
	enrichment_timeout_s: float = Field(default=10.0, gt=0)  # rating fetch timeout before failing open
	default_limit: int = Field(default=10, ge=1)  # /search limit when none is given
	max_limit: int = Field(default=50, ge=1)  # largest /search limit accepted

	# Cache TTLs
	candidate_ttl_s: float = Field(default=300.0, gt=0)  # game list refreshes often
	universe_ttl_s: float = Field(default=3600.0, gt=0)  # place -> universe ids never change
	votes_ttl_s: float = Field(default=600.0, gt=0)
	cache_max_entries: int = Field(default=10_000, ge=1)

	# HTTP sources
	http_timeout_s: float = Field(default=15.0, gt=0)
	votes_batch_size: int = Field(default=30, ge=1)  # votes endpoint returns at most 30 rows per call
	universe_concurrency: int = Field(default=10, ge=1)
	rate_limit_requests: int = Field(default=60, ge=1)
	rate_limit_window_s: float = Field(default=60.0, gt=0)
	gamelist_url: str = "https://api.rolimons.com/games/v1/gamelist"
	universe_url: str = "https://apis.roblox.com/universes/v1/places/{place_id}/universe"
	votes_url: str = "https://games.roblox.com/v1/games/votes"


@lru_cache
def get_settings() -> SearchSettings:
	"""Process-wide settings, read from the environment on first use."""
	settings = SearchSettings()
	logger.info(
		f"[Config] Loaded settings (threshold={settings.fuzzy_threshold}, "
		f"enrichment_timeout={settings.enrichment_timeout_s}s, max_limit={settings.max_limit})"
	)
	return settings
