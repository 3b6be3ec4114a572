# File: tests/test_frontier.py
import pytest

from site_mirror.crawler.frontier import Frontier, matches_prefix
from site_mirror.crawler.models import FrontierEntry

SEED = "https://x.org/"


def test_initialize_queues_seed_at_depth_zero():
    frontier = Frontier(SEED, 2)
    frontier.initialize()
    assert frontier.pop_round(0) == [FrontierEntry("https://x.org/", 0)]
    assert frontier.depth_of("https://x.org") == 0


def test_duplicates_and_equivalent_urls_rejected():
    frontier = Frontier(SEED, 3)
    frontier.initialize()
    assert frontier.add_to_queue("https://x.org/a?b=1&c=2", 1)
    assert not frontier.add_to_queue("https://x.org/a/?c=2&b=1#top", 1)
    assert not frontier.add_to_queue("https://x.org/a?b=1&c=2", 2)
    assert frontier.queue_size == 2


def test_visited_is_terminal():
    frontier = Frontier(SEED, 3)
    frontier.initialize()
    frontier.pop_round(0)
    frontier.mark_visited(SEED)
    assert frontier.is_visited("https://x.org")
    assert not frontier.add_to_queue("https://x.org/", 1)
    assert frontier.visited_count == 1


def test_depth_bound():
    frontier = Frontier(SEED, 1)
    assert frontier.add_to_queue("https://x.org/a", 1)
    assert not frontier.add_to_queue("https://x.org/b", 2)


def test_first_seen_depth_wins():
    frontier = Frontier(SEED, 3)
    frontier.add_to_queue("https://x.org/a", 1)
    frontier.add_to_queue("https://x.org/a", 2)
    assert frontier.depth_of("https://x.org/a") == 1


def test_pop_round_keeps_other_depths():
    frontier = Frontier(SEED, 3)
    frontier.initialize()
    frontier.add_to_queue("https://x.org/a", 1)
    frontier.add_to_queue("https://x.org/b", 2)
    assert [e.url for e in frontier.pop_round(1)] == ["https://x.org/a"]
    assert frontier.queue_size == 2
    assert [e.url for e in frontier.pop_round(2)] == ["https://x.org/b"]


def test_prefix_filter():
    frontier = Frontier(SEED, 3, prefix="/docs")
    assert frontier.add_to_queue("https://x.org/docs/intro", 1)
    assert frontier.add_to_queue("https://x.org/en/docs/intro", 1)
    assert not frontier.add_to_queue("https://x.org/blog", 1)


@pytest.mark.parametrize(
    "url,prefix,expected",
    [
        ("https://x.org/docs", "/docs", True),
        ("https://x.org/docs/a", "/docs", True),
        ("https://x.org/v2/docs/a", "/docs", True),
        ("https://x.org/blog", "/docs", False),
        ("https://x.org/blog", None, True),
    ],
)
def test_matches_prefix(url, prefix, expected):
    assert matches_prefix(url, prefix) is expected


def test_assets_deduplicated():
    frontier = Frontier(SEED, 1)
    assert frontier.add_asset("https://x.org/s.css")
    assert not frontier.add_asset("https://x.org/s.css#x")
    assert frontier.asset_count == 1


def test_snapshot_and_status():
    frontier = Frontier(SEED, 2)
    frontier.initialize()
    frontier.mark_visited("https://x.org/b")
    frontier.mark_visited("https://x.org/a")
    frontier.add_asset("https://x.org/z.js")
    visited, assets = frontier.get_all_urls()
    assert visited == ["https://x.org/a", "https://x.org/b"]
    assert assets == ["https://x.org/z.js"]
    assert frontier.status() == {"visited": 2, "queued": 1, "assets": 1, "max_depth": 2}


def test_negative_depth_rejected():
    with pytest.raises(ValueError):
        Frontier(SEED, -1)
