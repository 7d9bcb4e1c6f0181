"""Tests for level progression."""

import pytest

from homequest.services.level_service import compute_level, xp_for_next_level


@pytest.mark.unit
@pytest.mark.parametrize(
    ("total_xp", "expected_level"),
    [
        (-50, 1),
        (0, 1),
        (199, 1),
        (200, 2),
        (499, 2),
        (500, 3),
        (1_999, 4),
        (2_000, 5),
        (3_500, 6),
        (8_999, 7),
        (9_000, 8),
        (13_000, 9),
        (17_999, 9),
        (18_000, 10),
        (1_000_000, 10),
    ],
)
def test_compute_level(total_xp: int, expected_level: int) -> None:
    assert compute_level(total_xp) == expected_level


@pytest.mark.unit
def test_compute_level_is_monotonic() -> None:
    levels = [compute_level(xp) for xp in range(0, 20_000, 50)]

    assert levels == sorted(levels)


@pytest.mark.unit
@pytest.mark.parametrize(("level", "expected"), [(1, 200), (4, 2_000), (9, 18_000), (10, 18_000)])
def test_xp_for_next_level(level: int, expected: int) -> None:
    assert xp_for_next_level(level) == expected
