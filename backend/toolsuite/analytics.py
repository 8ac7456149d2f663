"""Aggregate statistics computed from the tool usage log."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable

from .schemas import AnalyticsSummary, ToolStat, ToolUsage

NO_DATA = "No data"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_percentage(numerator: int, denominator: int) -> str:
    if denominator == 0:
        return "0%"
    return f"{numerator / denominator * 100:.1f}%"


@dataclass
class _ToolAccumulator:
    name: str
    category: str
    usage_count: int = 0
    success_count: int = 0
    timed_count: int = 0
    total_processing_time: int = 0

    def add(self, event: ToolUsage) -> None:
        self.usage_count += 1
        if event.success:
            self.success_count += 1
        # Events without a processing time stay out of the average entirely.
        if event.processing_time is not None:
            self.timed_count += 1
            self.total_processing_time += event.processing_time

    def to_stat(self) -> ToolStat:
        success_rate = 0
        if self.usage_count:
            success_rate = round_half_up(self.success_count / self.usage_count * 100)
        avg_processing_time = 0
        if self.timed_count:
            avg_processing_time = round_half_up(self.total_processing_time / self.timed_count)
        return ToolStat(
            name=self.name,
            category=self.category,
            usage_count=self.usage_count,
            success_rate=success_rate,
            avg_processing_time=avg_processing_time,
        )


def empty_summary() -> AnalyticsSummary:
    return AnalyticsSummary(
        total_usage=0,
        most_popular=NO_DATA,
        popular_usage=0,
        success_rate="0%",
        tool_stats=[],
    )


def compute_analytics(events: Iterable[ToolUsage]) -> AnalyticsSummary:
    """Reduce ``events`` into global totals and per-tool statistics.

    ``events`` is consumed once, so a lazily loaded event stream works as well
    as a list. Tools are ordered by usage count, most used first; tools with
    equal counts keep the order in which they first appear in ``events``.
    """

    tools: Dict[str, _ToolAccumulator] = {}
    total = 0
    successes = 0
    for event in events:
        total += 1
        if event.success:
            successes += 1
        accumulator = tools.get(event.tool_name)
        if accumulator is None:
            accumulator = _ToolAccumulator(name=event.tool_name, category=event.category)
            tools[event.tool_name] = accumulator
        accumulator.add(event)

    if total == 0:
        return empty_summary()

    tool_stats = sorted(
        (accumulator.to_stat() for accumulator in tools.values()),
        key=lambda stat: stat.usage_count,
        reverse=True,
    )
    top = tool_stats[0]
    return AnalyticsSummary(
        total_usage=total,
        most_popular=top.name,
        popular_usage=top.usage_count,
        success_rate=format_percentage(successes, total),
        tool_stats=tool_stats,
    )
