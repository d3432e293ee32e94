"""
Tests — Stats cache.
"""

from unittest.mock import MagicMock, patch

from opex.services import stats_cache


def test_ttl_zero_always_computes():
    compute = MagicMock(return_value=1)

    stats_cache.get_or_compute(("dashboard", "Brazil", "FOUNDATION", "pt"), 0, compute)
    stats_cache.get_or_compute(("dashboard", "Brazil", "FOUNDATION", "pt"), 0, compute)

    assert compute.call_count == 2


def test_hit_within_ttl():
    compute = MagicMock(return_value={"gap_elements": 2})
    key = ("dashboard", "Brazil", "FOUNDATION", "pt")

    first = stats_cache.get_or_compute(key, 60, compute)
    second = stats_cache.get_or_compute(key, 60, compute)

    assert first is second
    compute.assert_called_once()


def test_expired_entry_is_recomputed():
    compute = MagicMock(side_effect=[1, 2])
    key = ("levels", "Brazil", None, "pt")

    with patch("opex.services.stats_cache.time.time", side_effect=[1000.0, 1100.0, 1100.0]):
        assert stats_cache.get_or_compute(key, 60, compute) == 1
        assert stats_cache.get_or_compute(key, 60, compute) == 2


def test_invalidate_country_drops_country_and_global_entries():
    keys = [
        ("dashboard", "Brazil", "FOUNDATION", "pt"),
        ("dashboard", "France", "FOUNDATION", "pt"),
        ("dashboard", "Global", "FOUNDATION", "pt"),
        ("global", None, "FOUNDATION", "en"),
    ]
    for key in keys:
        stats_cache.get_or_compute(key, 60, lambda: object())

    stats_cache.invalidate_country("Brazil")

    compute = MagicMock(return_value=0)
    for key in keys:
        stats_cache.get_or_compute(key, 60, compute)
    # Only the France entry survived
    assert compute.call_count == 3


def test_invalidate_all():
    key = ("pillars", "Brazil", "FOUNDATION", "pt")
    stats_cache.get_or_compute(key, 60, lambda: 1)

    stats_cache.invalidate_all()

    assert stats_cache.get_or_compute(key, 60, lambda: 2) == 2


def test_value_computed_across_an_invalidation_is_not_stored():
    key = ("dashboard", "Brazil", "FOUNDATION", "pt")

    def compute():
        stats_cache.invalidate_country("Brazil")
        return "stale"

    assert stats_cache.get_or_compute(key, 60, compute) == "stale"
    assert stats_cache.get_or_compute(key, 60, lambda: "fresh") == "fresh"
    assert stats_cache.get_or_compute(key, 60, lambda: "later") == "fresh"
