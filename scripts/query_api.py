"""
Query a running Game Search API and print the ranked results.

This script:
1) Sends the query and filters to GET /search
2) Logs each result with its score, players, and rating

Usage:
    uvicorn api:app --reload
    python -m scripts.query_api "blox fruits" --sort trending --rating-min 80

Handy for eyeballing ranking changes against live data.
"""

import argparse  # command-line options

import requests  # make web requests to the FastAPI server

from loguru import logger  # console logging

DEFAULT_API_URL = "http://localhost:8000"  # default API base URL


def parse_args(argv=None):
	parser = argparse.ArgumentParser(description="Query the game search API")
	parser.add_argument("query", help="game title to search for")
	parser.add_argument("--api-url", default=DEFAULT_API_URL)
	parser.add_argument("--genre", action="append", dest="genres", default=None, help="repeatable")
	parser.add_argument("--rating-min", type=float, default=None)
	parser.add_argument("--rating-max", type=float, default=None)
	parser.add_argument("--min-players", type=int, default=None)
	parser.add_argument("--sort", choices=["relevance", "rating", "players", "trending"], default="relevance")
	parser.add_argument("--limit", type=int, default=10)
	return parser.parse_args(argv)


def build_params(args) -> dict:
	params = {"q": args.query, "sort": args.sort, "limit": args.limit}
	if args.genres:
		params["genres"] = args.genres
	if args.rating_min is not None:
		params["rating_min"] = args.rating_min
	if args.rating_max is not None:
		params["rating_max"] = args.rating_max
	if args.min_players is not None:
		params["min_players"] = args.min_players
	return params


def main(argv=None) -> int:
	args = parse_args(argv)
	url = f"{args.api_url.rstrip('/')}/search"
	try:
		response = requests.get(url, params=build_params(args), timeout=30)
		response.raise_for_status()
	except requests.RequestException as e:
		logger.error(f"Search request failed: {e}")
		return 1

	payload = response.json()
	logger.info(f"'{payload['query']}' -> {len(payload['results'])} results in {payload['elapsed_ms']} ms")
	for i, item in enumerate(payload["results"], 1):
		game = item["game"]
		rating = "n/a" if game["rating"] is None else f"{game['rating']:.0f}%"
		logger.info(
			f"  {i}. [score {item['score']:.4f}] {game['title']} | players={game['live_count']} | rating={rating}"
		)
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
