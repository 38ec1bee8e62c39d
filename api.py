"""
FastAPI server exposing the game search API.
Endpoints:
- GET /health: basic health check
- GET /search?q=...&limit=10: returns ranked games with live players and ratings
- GET /suggest?q=...: autocomplete titles from the cached game list

Startup wires the search engine to the Rolimons game list and the Roblox votes API,
sharing one TTL cache between them.
"""

# Import standard libraries for timing
import time  # measure startup and request latencies
from typing import List, Optional  # precise typing for clarity

# Import FastAPI for building the web API and Pydantic for response models
from fastapi import FastAPI, HTTPException, Query  # FastAPI primitives
from pydantic import BaseModel  # response schema definitions

# Import our internal modules for configuration, caching, data sources, and search
from game_search.cache import TTLCache  # shared TTL cache for upstream calls
from game_search.config import SearchSettings, get_settings  # tunables with env overrides
from game_search.errors import CandidateSourceError, InvalidSearchRequest  # error types
from game_search.models import ScoredCandidate, SearchRequest, SortMode  # request/result types
from game_search.search_engine import SearchEngine  # core search engine
from game_search.sources import RobloxRatingSource, RolimonsCandidateSource  # HTTP sources
from game_search.suggestions import get_search_suggestions, highlight_match  # autocomplete and display helpers

# Import loguru for simple, structured console logging
from loguru import logger  # convenient console logger

# Instantiate the FastAPI application with metadata
app = FastAPI(title="Game Search API", version="1.0.0")  # web app

# Globals that hold the search engine instance and measured startup time
ENGINE: Optional[SearchEngine] = None  # will point to the initialized engine
STARTUP_TIME_S: float = 0.0  # measures how long startup took


# Pydantic model that describes the shape of a single game in responses
class GameOut(BaseModel):
	id: str  # place id
	title: str  # display name
	live_count: int  # current players
	genres: List[str]  # genre tags
	rating: Optional[float] = None  # 0..100, null when unknown
	total_votes: int = 0  # votes backing the rating
	thumbnail_url: Optional[str] = None  # optional image URL


# Pydantic model for a single ranked search item
class SearchResponseItem(BaseModel):
	game: GameOut  # game metadata
	highlighted_title: str  # HTML-escaped title with the query wrapped in <mark>
	score: float  # relevance score (lower is better)
	matched_fields: List[str]  # which attributes matched the query


# Pydantic model for the complete search response payload
class SearchResponse(BaseModel):
	query: str  # original query string
	sort: SortMode  # ordering applied
	limit: int  # number of results requested
	elapsed_ms: float  # server-side search time in ms
	results: List[SearchResponseItem]  # ranked items


class SuggestResponse(BaseModel):
	query: str
	suggestions: List[str]


def build_engine(settings: SearchSettings) -> SearchEngine:
	"""Wire the HTTP data sources and the engine together."""
	cache = TTLCache(default_ttl_s=settings.candidate_ttl_s, max_entries=settings.cache_max_entries)
	return SearchEngine(
		candidate_source=RolimonsCandidateSource(cache, settings=settings),
		rating_source=RobloxRatingSource(cache, settings=settings),
		settings=settings,
	)


def to_item(result: ScoredCandidate, query: str) -> SearchResponseItem:
	c = result.candidate
	return SearchResponseItem(
		highlighted_title=highlight_match(c.title, query),
		game=GameOut(
			id=c.id,
			title=c.title,
			live_count=c.live_count,
			genres=sorted(c.genre_tags),
			rating=c.rating,
			total_votes=c.total_votes,
			thumbnail_url=c.thumbnail_url,
		),
		score=round(result.score, 6),
		matched_fields=list(result.matched_fields),
	)


# FastAPI startup hook to initialize the search engine once
@app.on_event("startup")
async def startup_event():
	"""Initialize the search engine from environment-driven settings."""
	global ENGINE, STARTUP_TIME_S  # refer to module-level globals
	start = time.time()  # start timer for startup latency
	logger.info("[API] Startup: initializing search engine...")  # log intent

	ENGINE = build_engine(get_settings())  # create engine

	STARTUP_TIME_S = time.time() - start  # elapsed seconds
	logger.info(f"[API] Startup complete in {STARTUP_TIME_S:.2f}s.")  # summary log


# Simple health endpoint for readiness checks
@app.get("/health")
async def health():
	"""Return minimal health info for liveness/readiness probes."""
	return {
		"status": "ok",  # constant indicator
		"engine_ready": ENGINE is not None,  # True if engine initialized
		"startup_seconds": round(STARTUP_TIME_S, 2)  # startup latency
	}


# Main search endpoint that accepts a free-text query
@app.get("/search", response_model=SearchResponse)
async def search(
	q: str = Query(..., min_length=1, description="Game title query"),
	genres: Optional[List[str]] = Query(None, description="Genre tags (any may match)"),
	rating_min: Optional[float] = Query(None, ge=0, le=100),
	rating_max: Optional[float] = Query(None, ge=0, le=100),
	min_players: Optional[int] = Query(None, ge=0),
	sort: SortMode = SortMode.RELEVANCE,
	limit: Optional[int] = Query(None, ge=1, description="Defaults to the configured default_limit"),
):
	"""Execute a fuzzy search and return ranked games."""
	settings = ENGINE.settings if ENGINE is not None else get_settings()
	limit = settings.default_limit if limit is None else limit
	if limit > settings.max_limit:
		raise HTTPException(status_code=422, detail=f"limit must be at most {settings.max_limit}")

	if ENGINE is None:  # engine must be ready to serve
		logger.warning("[API] Search requested but engine not initialized")  # guard log
		return SearchResponse(query=q, sort=sort, limit=limit, elapsed_ms=0.0, results=[])  # return empty

	try:
		request = SearchRequest(
			query=q,
			genre_filter=frozenset(genres or []),
			min_rating=rating_min,
			max_rating=rating_max,
			min_live_count=min_players,
			sort_mode=sort,
			limit=limit,
		)
	except InvalidSearchRequest as e:
		raise HTTPException(status_code=422, detail=str(e)) from e

	# Time the search for latency insight
	start = time.time()  # start timer
	logger.debug(f"[API] /search q='{q}' sort={sort.value} limit={limit}")  # debug log of input

	try:
		results = await ENGINE.search(request)  # run search
	except CandidateSourceError as e:
		logger.error(f"[API] Game list unavailable: {e}")
		raise HTTPException(status_code=503, detail="Game list is temporarily unavailable") from e
	elapsed_ms = (time.time() - start) * 1000  # compute ms
	logger.info(f"[API] /search served {len(results)} results in {elapsed_ms:.2f} ms")  # summary

	return SearchResponse(
		query=q,
		sort=sort,
		limit=limit,
		elapsed_ms=round(elapsed_ms, 2),
		results=[to_item(r, q) for r in results],
	)


@app.get("/suggest", response_model=SuggestResponse)
async def suggest(
	q: str = Query(..., min_length=1),
	limit: int = Query(5, ge=1, le=20),
):
	"""Autocomplete titles for a partial query."""
	if ENGINE is None:
		return SuggestResponse(query=q, suggestions=[])
	try:
		candidates = await ENGINE.candidate_source.fetch_all_candidates()
	except CandidateSourceError as e:
		raise HTTPException(status_code=503, detail="Game list is temporarily unavailable") from e
	return SuggestResponse(query=q, suggestions=get_search_suggestions(candidates, q, limit=limit))
