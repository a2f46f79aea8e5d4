"""Rule-derived action-item flags from a sparse weekly utilization series.

Two windows are read relative to the current ISO week: the trailing
completed weeks of actuals and the leading weeks of forecast starting next
week. Missing weeks are left out of the means, never counted as zero.

An under-populated forecast window is missing data, not evidence of
adequate utilization, so it never produces a ``False`` flag. A stale
rule-set ``True`` is retracted with ``CLEAR`` instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from staffsync.core.config import Settings
from staffsync.core.errors import StoreError
from staffsync.models.entities import StatusSource
from staffsync.sync.status_resolution import CLEAR, StatusResolutionStore
from staffsync.sync.weeks import IsoWeek, leading_weeks, trailing_weeks

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UtilizationSeries:
    """Weekly utilization percentages for one entity, split into actual and forecast."""

    entity_key: str
    owner: str | None = None
    actual: dict[IsoWeek, float] = field(default_factory=dict)
    forecast: dict[IsoWeek, float] = field(default_factory=dict)

    @classmethod
    def from_labels(
        cls,
        entity_key: str,
        *,
        owner: str | None = None,
        actual: Mapping[str, float | None] | None = None,
        forecast: Mapping[str, float | None] | None = None,
    ) -> UtilizationSeries:
        """Build a series from ``YY/WW`` keyed maps, dropping ``None`` points."""
        return cls(
            entity_key=entity_key,
            owner=owner,
            actual={IsoWeek.parse(label): value for label, value in (actual or {}).items() if value is not None},
            forecast={IsoWeek.parse(label): value for label, value in (forecast or {}).items() if value is not None},
        )


@dataclass(frozen=True, slots=True)
class WindowStats:
    mean: float | None
    count: int

    @classmethod
    def over(cls, points: Mapping[IsoWeek, float], weeks: Iterable[IsoWeek]) -> WindowStats:
        values = [points[week] for week in weeks if week in points]
        if not values:
            return cls(mean=None, count=0)
        return cls(mean=sum(values) / len(values), count=len(values))


@dataclass(frozen=True, slots=True)
class RuleEvaluation:
    entity_key: str
    actual: WindowStats
    forecast: WindowStats
    candidate: Any = None
    skipped: bool = False

    @property
    def has_candidate(self) -> bool:
        return self.candidate is not None


class ActionItemRuleEngine:
    """Computes action-item candidates and merges them under manual precedence."""

    def __init__(
        self,
        *,
        threshold_pct: float = 25.0,
        min_forecast_points: int = 3,
        actual_window_weeks: int = 4,
        forecast_window_weeks: int = 8,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.threshold_pct = threshold_pct
        self.min_forecast_points = min_forecast_points
        self.actual_window_weeks = actual_window_weeks
        self.forecast_window_weeks = forecast_window_weeks
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], date] = date.today) -> ActionItemRuleEngine:
        return cls(
            threshold_pct=settings.rule_forecast_threshold_pct,
            min_forecast_points=settings.rule_min_forecast_points,
            actual_window_weeks=settings.rule_actual_window_weeks,
            forecast_window_weeks=settings.rule_forecast_window_weeks,
            clock=clock,
        )

    def windows(self) -> tuple[list[IsoWeek], list[IsoWeek]]:
        current = IsoWeek.from_date(self._clock())
        return (
            trailing_weeks(current, self.actual_window_weeks),
            leading_weeks(current, self.forecast_window_weeks),
        )

    def evaluate(
        self,
        series: Iterable[UtilizationSeries],
        store: StatusResolutionStore,
    ) -> list[RuleEvaluation]:
        actual_weeks, forecast_weeks = self.windows()
        evaluations: list[RuleEvaluation] = []
        for item in series:
            actual = WindowStats.over(item.actual, actual_weeks)
            forecast = WindowStats.over(item.forecast, forecast_weeks)
            if not item.owner:
                evaluations.append(RuleEvaluation(item.entity_key, actual, forecast, skipped=True))
                continue
            evaluations.append(
                RuleEvaluation(item.entity_key, actual, forecast, candidate=self._candidate(item, forecast, store))
            )
        return evaluations

    def _candidate(self, item: UtilizationSeries, forecast: WindowStats, store: StatusResolutionStore) -> Any:
        if (
            forecast.mean is not None
            and forecast.count >= self.min_forecast_points
            and forecast.mean <= self.threshold_pct
        ):
            return True
        if store.get_source(item.entity_key) is StatusSource.RULE and store.get(item.entity_key) is True:
            return CLEAR
        return None

    @staticmethod
    def candidates(evaluations: Iterable[RuleEvaluation]) -> dict[str, Any]:
        return {row.entity_key: row.candidate for row in evaluations if row.has_candidate}

    async def apply(
        self,
        series: Iterable[UtilizationSeries],
        store: StatusResolutionStore,
    ) -> list[RuleEvaluation]:
        evaluations = self.evaluate(series, store)
        await store.merge_rule_candidates(self.candidates(evaluations))
        return evaluations


class RuleRunner:
    """Re-runs the rule engine whenever the utilization series changes.

    A cycle that cannot load or persist status entries is logged and dropped;
    the next series change recomputes every candidate.
    """

    def __init__(self, engine: ActionItemRuleEngine, store: StatusResolutionStore) -> None:
        self.engine = engine
        self.store = store

    async def on_series_changed(self, series: Iterable[UtilizationSeries]) -> list[RuleEvaluation] | None:
        if not self.store.loaded:
            try:
                await self.store.load()
            except StoreError as exc:
                logger.warning("Skipping %s rule cycle, status entries unavailable: %s", self.store.attribute, exc)
                return None
        try:
            return await self.engine.apply(series, self.store)
        except StoreError as exc:
            # Entries already merged this cycle stay; the failed one was put back.
            logger.warning("Aborted %s rule cycle, persistence write failed: %s", self.store.attribute, exc)
            return None
