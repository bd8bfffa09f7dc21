"""Tests for duration string parsing."""

import pytest

from datastore.config.durations import format_duration, parse_duration


@pytest.mark.parametrize(
    "text, seconds",
    [
        ("30s", 30.0),
        ("1m", 60.0),
        ("1m30s", 90.0),
        ("1h", 3600.0),
        ("1.5h", 5400.0),
        ("250ms", 0.25),
        ("100us", 0.0001),
        ("100µs", 0.0001),
        ("2h45m", 9900.0),
        (".5s", 0.5),
        ("0", 0.0),
        ("+5s", 5.0),
        ("-5s", -5.0),
    ],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "30", "1.5", "abc", "5 s", "1d", "s", "-", "1m30"])
def test_parse_duration_rejects(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_missing_unit_message():
    with pytest.raises(ValueError, match="missing unit"):
        parse_duration("30")


@pytest.mark.parametrize(
    "seconds, text",
    [(0, "0s"), (30, "30s"), (90, "1m30s"), (3600, "1h"), (0.25, "250ms"), (5400, "1h30m")],
)
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text
