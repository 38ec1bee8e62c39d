"""
End-to-end tests for SearchEngine: ranking, enrichment, fail-open filtering, and sort modes.
"""

import asyncio

import pytest

from conftest import FailingRatingSource, RecordingRatingSource, SlowRatingSource
from game_search.config import SearchSettings
from game_search.fuzzy_matcher import FuzzyMatcher
from game_search.models import RatingInfo, ScoredCandidate, SearchRequest, SortMode
from game_search.search_engine import SearchEngine, merge_ratings, sort_results
from game_search.sources import StaticCandidateSource

UNRELATED_TITLES = [
	"Adopt Me!", "Brookhaven RP", "Jailbreak", "Arsenal", "Murder Mystery 2", "Tower of Hell",
	"Piggy", "Doors", "Natural Disaster Survival", "Work at a Pizza Place", "Royale High",
	"Bee Swarm Simulator", "Phantom Forces", "Theme Park Tycoon 2", "Welcome to Bloxburg",
	"Shindo Life", "Da Hood", "Greenville", "Super Golf", "Epic Minigames", "Speed Run 4",
	"Flee the Facility", "Lumber Tycoon 2", "Mad City", "Vehicle Legends", "Survive the Killer",
	"Dungeon Quest", "Mining Simulator", "Car Dealership Tycoon", "Funky Friday", "Islands",
	"Ninja Legends", "Pet Simulator X", "Restaurant Tycoon 2", "Hide and Seek Extreme",
	"Counter Blox", "Bad Business", "Evade", "Criminality", "Ro-Ghoul", "Combat Warriors",
	"Break In", "Dragon Adventures", "Wacky Wizards", "Anime Fighting Simulator",
	"Project Slayers", "Grand Piece Online", "Sharkbite 2", "Big Paintball", "Horrific Housing",
]


def make_engine(pool, rating_source=None, settings=None, matcher=None):
	return SearchEngine(
		candidate_source=StaticCandidateSource(pool),
		rating_source=rating_source or RecordingRatingSource(),
		matcher=matcher,
		settings=settings,
	)


def titles(results):
	return [r.title for r in results]


@pytest.mark.asyncio
async def test_scenario_exact_title_ranks_first(make_candidate):
	pool = [make_candidate(f"u{i}", t, live_count=1000 * i) for i, t in enumerate(UNRELATED_TITLES)]
	pool.append(make_candidate("blox", "Blox Fruits", live_count=400000, rating=93))
	pool.append(make_candidate("sim", "Blox Fruits Simulator", live_count=1_000_000))
	ratings = RecordingRatingSource({"blox": RatingInfo(rating=93, total_votes=1000)})

	results = await make_engine(pool, ratings).search(SearchRequest(query="blox fruits", limit=10))

	assert results[0].id == "blox"
	assert results[0].rating == 93
	assert len(results) <= 10


@pytest.mark.asyncio
async def test_scenario_focused_title_ranks_first(make_candidate):
	pool = [
		make_candidate("long", "99 Nights Ripoff Simulator Extra Long Title", live_count=5000),
		make_candidate("forest", "99 Nights in the Forest", live_count=5000),
	]
	results = await make_engine(pool).search(SearchRequest(query="99 nights"))
	assert [r.id for r in results] == ["forest", "long"]


@pytest.mark.asyncio
async def test_scenario_rating_outage_skips_filter(tower_pool):
	engine = make_engine(tower_pool, RecordingRatingSource({}))
	request = SearchRequest(query="tower", min_rating=80, max_rating=100)

	expected = engine.rank(tower_pool, request)[:request.limit]
	results = await engine.search(request)

	assert len(expected) == 5
	assert len(results) == len(expected)
	assert all(r.rating is None for r in results)


@pytest.mark.asyncio
async def test_scenario_genre_filter_limits_fuzzy_stage(make_candidate):
	class RecordingMatcher(FuzzyMatcher):
		seen = None

		def match(self, candidates, query):
			self.seen = [c.id for c in candidates]
			return super().match(candidates, query)

	pool = [make_candidate(f"h{i}", f"Night Shift {i}", genres={"horror"}) for i in range(3)]
	pool += [make_candidate(f"n{i}", f"Night Shift {i + 3}", genres={"simulator"}) for i in range(7)]
	matcher = RecordingMatcher()

	results = await make_engine(pool, matcher=matcher).search(
		SearchRequest(query="night shift", genre_filter={"horror"}, limit=10)
	)

	assert sorted(matcher.seen) == ["h0", "h1", "h2"]
	assert sorted(r.id for r in results) == ["h0", "h1", "h2"]


@pytest.mark.asyncio
async def test_scenario_trending_blends_players_and_rating(make_candidate):
	pool = [
		make_candidate("zero", "Arena Clash", live_count=5000),
		make_candidate("ninety", "Arena Clash Remastered", live_count=5000),
	]
	ratings = RecordingRatingSource({
		"zero": RatingInfo(rating=0.0, total_votes=12),
		"ninety": RatingInfo(rating=90.0, total_votes=400),
	})
	results = await make_engine(pool, ratings).search(SearchRequest(query="arena clash", sort_mode="trending"))
	assert [r.id for r in results] == ["ninety", "zero"]


@pytest.mark.asyncio
async def test_search_is_idempotent(make_candidate, tower_pool):
	ratings = RecordingRatingSource({"1": RatingInfo(88, 100), "3": RatingInfo(95, 50)})
	engine = make_engine(tower_pool, ratings)
	request = SearchRequest(query="tower", sort_mode=SortMode.RATING)
	first = await engine.search(request)
	second = await engine.search(request)
	assert first == second


@pytest.mark.asyncio
async def test_exact_match_precedes_partial_matches(make_candidate):
	pool = [
		make_candidate("2", "Doors 2", live_count=2_000_000),
		make_candidate("3", "Doors Hotel Update", live_count=900_000),
		make_candidate("4", "The Doors Remake", live_count=300_000),
		make_candidate("1", "Doors", live_count=10),
	]
	results = await make_engine(pool).search(SearchRequest(query="doors"))
	assert results[0].id == "1"


@pytest.mark.asyncio
async def test_rating_filter_correctness(tower_pool):
	ratings = RecordingRatingSource({
		"1": RatingInfo(92, 1000),
		"2": RatingInfo(79, 500),
		"3": RatingInfo(0, 0),
		"4": RatingInfo(85, 700),
	})
	results = await make_engine(tower_pool, ratings).search(
		SearchRequest(query="tower", min_rating=80, max_rating=100)
	)
	assert sorted(r.id for r in results) == ["1", "4"]
	for r in results:
		assert r.rating is not None and r.rating != 0
		assert 80 <= r.rating <= 100


@pytest.mark.asyncio
async def test_players_sort_is_non_increasing(tower_pool):
	results = await make_engine(tower_pool).search(SearchRequest(query="tower", sort_mode="players"))
	counts = [r.live_count for r in results]
	assert counts == sorted(counts, reverse=True)


@pytest.mark.asyncio
async def test_rating_sort_puts_unrated_last(tower_pool):
	ratings = RecordingRatingSource({"2": RatingInfo(60, 10), "5": RatingInfo(97, 10), "3": RatingInfo(80, 10)})
	results = await make_engine(tower_pool, ratings).search(SearchRequest(query="tower", sort_mode="rating"))
	assert [r.rating for r in results[:3]] == [97, 80, 60]
	assert all(r.rating is None for r in results[3:])


@pytest.mark.asyncio
async def test_enrichment_failure_fails_open(tower_pool):
	engine = make_engine(tower_pool, FailingRatingSource())
	results = await engine.search(SearchRequest(query="tower", min_rating=90))
	assert len(results) == 5
	assert all(r.rating is None for r in results)


@pytest.mark.asyncio
async def test_enrichment_timeout_fails_open(tower_pool):
	settings = SearchSettings(enrichment_timeout_s=0.01)
	engine = make_engine(tower_pool, SlowRatingSource(), settings=settings)
	results = await engine.search(SearchRequest(query="tower", min_rating=90))
	assert len(results) == 5


@pytest.mark.asyncio
async def test_retention_headroom_for_rating_filter(make_candidate):
	pool = [make_candidate(str(i), f"Obby Course {i}") for i in range(100)]
	ratings = RecordingRatingSource()
	engine = make_engine(pool, ratings)

	await engine.search(SearchRequest(query="obby course", limit=5))
	await engine.search(SearchRequest(query="obby course", limit=5, min_rating=50))
	await engine.search(SearchRequest(query="obby course", limit=40, max_rating=90))

	assert [len(call) for call in ratings.calls] == [5, 15, 60]


def test_retention_count(tower_pool):
	engine = make_engine(tower_pool)
	assert engine.retention_count(SearchRequest(query="x", limit=10)) == 10
	assert engine.retention_count(SearchRequest(query="x", limit=10, min_rating=0)) == 30
	assert engine.retention_count(SearchRequest(query="x", limit=50, max_rating=100)) == 60


@pytest.mark.asyncio
async def test_no_matches_skips_enrichment(tower_pool):
	ratings = RecordingRatingSource()
	results = await make_engine(tower_pool, ratings).search(SearchRequest(query="zzqqxx"))
	assert results == []
	assert ratings.calls == []


@pytest.mark.asyncio
async def test_pool_is_not_mutated(tower_pool):
	snapshot = list(tower_pool)
	ratings = RecordingRatingSource({c.id: RatingInfo(90, 10) for c in tower_pool})
	await make_engine(tower_pool, ratings).search(SearchRequest(query="tower", sort_mode="rating"), candidates=tower_pool)
	assert tower_pool == snapshot
	assert all(c.rating is None for c in tower_pool)


@pytest.mark.asyncio
async def test_concurrent_searches_are_independent(make_candidate, tower_pool):
	pool = tower_pool + [make_candidate("b", "Blox Fruits"), make_candidate("d", "Doors")]
	engine = make_engine(pool, RecordingRatingSource({"b": RatingInfo(95, 10)}))
	towers, blox = await asyncio.gather(
		engine.search(SearchRequest(query="tower")),
		engine.search(SearchRequest(query="blox fruits", limit=1)),
	)
	assert {r.id for r in towers} == {"1", "2", "3", "4", "5"}
	assert [r.id for r in blox] == ["b"]
	assert blox[0].rating == 95


@pytest.mark.asyncio
async def test_limit_truncates_results(make_candidate):
	pool = [make_candidate(str(i), f"Obby Course {i}") for i in range(20)]
	results = await make_engine(pool).search(SearchRequest(query="obby course", limit=3))
	assert len(results) == 3


def test_merge_ratings_builds_new_records(make_candidate):
	original = ScoredCandidate(candidate=make_candidate("1", "Arsenal"), score=1.0)
	untouched = ScoredCandidate(candidate=make_candidate("2", "Piggy"), score=2.0)
	merged = merge_ratings([original, untouched], {"1": RatingInfo(91, 300)})
	assert merged[0].rating == 91 and merged[0].candidate.total_votes == 300
	assert original.rating is None
	assert merged[1] is untouched


def test_relevance_sort_keeps_order(make_candidate):
	results = [
		ScoredCandidate(candidate=make_candidate(str(i), f"G{i}", live_count=i), score=float(i))
		for i in range(4)
	]
	assert sort_results(results, SortMode.RELEVANCE) == results
	assert sort_results(results, SortMode.PLAYERS) == list(reversed(results))


@pytest.mark.asyncio
async def test_rating_filter_never_retains_fewer_than_limit(make_candidate):
	pool = [make_candidate(str(i), f"Obby Course {i}") for i in range(100)]
	engine = make_engine(pool, RecordingRatingSource({}))
	unfiltered = await engine.search(SearchRequest(query="obby course", limit=80))
	during_outage = await engine.search(SearchRequest(query="obby course", limit=80, min_rating=80, max_rating=100))
	assert len(unfiltered) == 80
	assert len(during_outage) == len(unfiltered)
	assert engine.retention_count(SearchRequest(query="x", limit=80, min_rating=1)) == 80


@pytest.mark.asyncio
async def test_cancelled_search_propagates_cancellation(tower_pool):
	rating_source = SlowRatingSource(delay_s=60)
	engine = make_engine(tower_pool, rating_source, settings=SearchSettings(enrichment_timeout_s=30))
	task = asyncio.create_task(engine.search(SearchRequest(query="tower")))
	while not rating_source.started:
		await asyncio.sleep(0)
	task.cancel()
	with pytest.raises(asyncio.CancelledError):
		await task
	assert task.cancelled()
