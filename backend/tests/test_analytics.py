from datetime import datetime
from itertools import count

import pytest

from backend.toolsuite.analytics import NO_DATA, compute_analytics, format_percentage, round_half_up
from backend.toolsuite.schemas import ToolUsage

_ids = count()


def _event(tool_name, success=True, processing_time=None, category="pdf"):
    return ToolUsage(
        id=f"evt-{next(_ids)}",
        tool_name=tool_name,
        category=category,
        timestamp=datetime(2026, 10, 1, 12, 0, 0),
        processing_time=processing_time,
        success=success,
    )


def test_empty_log_returns_zero_state():
    summary = compute_analytics([])

    assert summary.total_usage == 0
    assert summary.most_popular == NO_DATA
    assert summary.popular_usage == 0
    assert summary.success_rate == "0%"
    assert summary.tool_stats == []


def test_mixed_events_produce_expected_rollup():
    events = [_event("pdf-to-word", processing_time=100) for _ in range(3)]
    events.append(_event("pdf-to-word", success=False))
    events.append(_event("merge-pdf", processing_time=200))

    summary = compute_analytics(events)

    assert summary.total_usage == 5
    assert summary.success_rate == "80.0%"
    assert summary.most_popular == "pdf-to-word"
    assert summary.popular_usage == 4
    first, second = summary.tool_stats
    assert (first.name, first.usage_count, first.success_rate, first.avg_processing_time) == (
        "pdf-to-word",
        4,
        75,
        100,
    )
    assert (second.name, second.usage_count, second.success_rate, second.avg_processing_time) == (
        "merge-pdf",
        1,
        100,
        200,
    )


def test_tool_stat_matches_event_counts():
    events = [_event("X", success=idx % 3 != 0) for idx in range(7)]
    stat = compute_analytics(events).tool_stats[0]

    assert stat.name == "X"
    assert stat.usage_count == 7
    assert stat.success_rate == round_half_up(100 * 4 / 7)


def test_average_ignores_events_without_processing_time():
    events = [
        _event("compress-pdf", processing_time=0),
        _event("compress-pdf", processing_time=301),
        _event("compress-pdf"),
    ]
    assert compute_analytics(events).tool_stats[0].avg_processing_time == 151


def test_average_is_zero_when_no_event_is_timed():
    assert compute_analytics([_event("calculator")]).tool_stats[0].avg_processing_time == 0


def test_ties_keep_first_seen_order():
    events = [
        _event("word-counter", category="text"),
        _event("qr-generator", category="productivity"),
        _event("qr-generator", category="productivity"),
        _event("word-counter", category="text"),
        _event("calculator", category="productivity"),
    ]
    stats = compute_analytics(events).tool_stats

    assert [stat.name for stat in stats] == ["word-counter", "qr-generator", "calculator"]
    assert [stat.category for stat in stats] == ["text", "productivity", "productivity"]


def test_success_rate_rounds_half_up():
    events = [_event("merge-pdf", success=idx == 0) for idx in range(8)]
    # 1/8 is 12.5%, which banker's rounding would turn into 12.
    assert compute_analytics(events).tool_stats[0].success_rate == 13


def test_accepts_a_single_pass_iterator():
    events = (_event("image-resizer", processing_time=10) for _ in range(3))
    summary = compute_analytics(events)
    assert summary.total_usage == 3
    assert summary.tool_stats[0].usage_count == 3


@pytest.mark.parametrize(
    "numerator, denominator, expected",
    [(0, 0, "0%"), (12, 13, "92.3%"), (1, 3, "33.3%"), (5, 5, "100.0%")],
)
def test_format_percentage(numerator, denominator, expected):
    assert format_percentage(numerator, denominator) == expected
