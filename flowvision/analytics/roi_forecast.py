"""
ROI forecast model.

current:
    total_investment  sum of budgets
    realized_roi      sum(benefit) / sum(cost) over completed initiatives
    pending_roi       progress-weighted projected ROI of active initiatives
    portfolio_value   total_investment * (1 + (realized + pending) / 100)

forecast:
    slope = mean period-over-period delta over the trailing window
    horizon(h) = clamp(realized + slope * h, lower_bound, upper_bound)
    confidence = clamp(100 - variance_index - small_sample_penalty
                           - overflow_penalty, 0, 100)

Confidence never increases as the history gets shorter (variance held
fixed): the small-sample penalty grows linearly as the history falls below
min_window and reaches 100 with no history at all.
"""

import logging
import math
import statistics
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from flowvision.analytics.errors import ComputationOverflow
from flowvision.analytics.models import (
    Initiative,
    RoiCurrent,
    RoiForecast,
    RoiProjection,
    TopPerformer,
    clamp,
    parse_timestamp,
    utcnow,
)
from flowvision.analytics.portfolio import period_deltas, realized_portfolio_roi
from flowvision.analytics.settings import ForecastSettings

logger = logging.getLogger(__name__)

HORIZONS = (3, 6, 12)

_RECOMMENDATIONS = {
    "realized": "Realized ROI is the weakest signal - review initiative selection criteria and apply lessons from completed work",
    "pending": "Pending ROI is the weakest signal - focus resources on active initiatives closest to delivering value",
    "trend": "ROI trend is the weakest signal - investigate recent declines before committing new investment",
}
_HEALTHY_RECOMMENDATION = "Initiative portfolio is performing well - maintain current execution standards"
_STRONG_SIGNAL = 75.0


# =============================================================================
# CURRENT POSITION
# =============================================================================


def current_position(initiatives: Sequence[Initiative]) -> RoiCurrent:
    total_investment = sum(i.budget for i in initiatives if i.budget)
    realized = realized_portfolio_roi(initiatives) or 0.0

    weighted = 0.0
    weight = 0.0
    plain = []
    for initiative in initiatives:
        if not initiative.is_active:
            continue
        projected = initiative.projected_roi if initiative.projected_roi is not None else initiative.realized_roi
        if projected is None:
            continue
        plain.append(projected)
        weighted += projected * initiative.progress
        weight += initiative.progress
    if weight > 0:
        pending = weighted / weight
    elif plain:
        pending = sum(plain) / len(plain)
    else:
        pending = 0.0

    return RoiCurrent(
        total_investment=total_investment,
        realized_roi=realized,
        pending_roi=pending,
        portfolio_value=total_investment * (1 + (realized + pending) / 100.0),
    )


# =============================================================================
# PROJECTION
# =============================================================================


@dataclass
class TrendFit:
    slope: float = 0.0
    deltas: list[float] = field(default_factory=list)
    sample_size: int = 0


def fit_trend(historical_roi: Sequence[float], window: int) -> TrendFit:
    values = [float(v) for v in historical_roi if v is not None and not math.isnan(float(v))]
    deltas = period_deltas(values, window)
    slope = sum(deltas) / len(deltas) if deltas else 0.0
    return TrendFit(slope=slope, deltas=deltas, sample_size=len(values))


def variance_index(deltas: Sequence[float], scale: float) -> float:
    if len(deltas) < 2:
        return 0.0
    return min(100.0, statistics.pstdev(deltas) * scale)


def small_sample_penalty(sample_size: int, min_window: int) -> float:
    if sample_size >= min_window:
        return 0.0
    return (min_window - sample_size) * 100.0 / min_window


def project(
    realized: float, fit: TrendFit, settings: ForecastSettings
) -> tuple[RoiProjection, list[ComputationOverflow]]:
    overflows = []
    values = []
    for horizon in HORIZONS:
        raw = realized + fit.slope * horizon
        bounded = clamp(raw, settings.lower_bound, settings.upper_bound)
        if bounded != raw:
            overflows.append(
                ComputationOverflow(f"forecast_{horizon}m", raw, settings.lower_bound, settings.upper_bound)
            )
        values.append(bounded)

    confidence = (
        100.0
        - variance_index(fit.deltas, settings.variance_scale)
        - small_sample_penalty(fit.sample_size, settings.min_window)
        - (settings.overflow_penalty if overflows else 0.0)
    )
    three, six, twelve = values
    return (
        RoiProjection(
            three_month=three,
            six_month=six,
            twelve_month=twelve,
            confidence=clamp(confidence, 0.0, 100.0),
        ),
        overflows,
    )


# =============================================================================
# PERFORMERS / RECOMMENDATIONS
# =============================================================================


def top_performers(initiatives: Iterable[Initiative], limit: int = 5) -> list[TopPerformer]:
    ranked = sorted(
        (i for i in initiatives if i.realized_roi is not None and i.realized_roi > 0),
        key=lambda i: (-i.realized_roi, i.id),
    )
    return [
        TopPerformer(id=i.id, title=i.title, roi=i.realized_roi, status=i.status.value)
        for i in ranked[:limit]
    ]


def signal_strengths(current: RoiCurrent, slope: float) -> dict[str, float]:
    """
    Put realized ROI, pending ROI and trend on one 0-100 scale.

    0% ROI maps to 50 and 100% ROI to 100; a slope of +/-5 points per
    period maps to 100/0.
    """
    return {
        "realized": clamp(50.0 + current.realized_roi * 0.5, 0.0, 100.0),
        "pending": clamp(50.0 + current.pending_roi * 0.5, 0.0, 100.0),
        "trend": clamp(50.0 + slope * 10.0, 0.0, 100.0),
    }


def build_recommendations(
    initiatives: Sequence[Initiative],
    current: RoiCurrent,
    projection: RoiProjection,
    slope: float,
    settings: ForecastSettings,
    as_of: datetime,
) -> list[str]:
    strengths = signal_strengths(current, slope)
    # min() keeps declaration order on ties: realized, pending, trend
    weakest = min(strengths, key=strengths.get)
    if strengths[weakest] >= _STRONG_SIGNAL:
        recommendations = [_HEALTHY_RECOMMENDATION]
    else:
        recommendations = [_RECOMMENDATIONS[weakest]]

    if projection.confidence < settings.low_confidence:
        recommendations.append(
            "Low forecast confidence - gather more initiative outcome data to improve predictions"
        )

    active = sum(1 for i in initiatives if i.is_active)
    completed = sum(1 for i in initiatives if i.is_done)
    if active > completed * 2 and active > 0:
        recommendations.append(
            "High number of active initiatives - consider focusing resources for faster completion"
        )

    overdue = sum(
        1 for i in initiatives if i.is_active and i.timeline_end is not None and i.timeline_end < as_of
    )
    if overdue:
        recommendations.append(
            f"{overdue} initiatives are overdue - review resource allocation and priorities"
        )

    return recommendations[: settings.max_recommendations]


# =============================================================================
# ENTRY POINTS
# =============================================================================


def evaluate_forecast(
    initiatives: Iterable[Initiative] | None,
    historical_roi: Sequence[float] | None,
    settings: ForecastSettings | None = None,
    as_of: datetime | None = None,
) -> tuple[RoiForecast, list[ComputationOverflow]]:
    """Forecast plus any overflow that was clamped along the way."""
    settings = settings or ForecastSettings()
    as_of = parse_timestamp(as_of) or utcnow()
    initiatives = list(initiatives or [])

    current = current_position(initiatives)
    fit = fit_trend(historical_roi or [], settings.window)
    projection, overflows = project(current.realized_roi, fit, settings)
    for overflow in overflows:
        logger.warning("ROI forecast clamped: %s", overflow)

    forecast = RoiForecast(
        current=current,
        forecast=projection,
        top_performers=top_performers(initiatives, settings.top_performers),
        recommendations=build_recommendations(initiatives, current, projection, fit.slope, settings, as_of),
        last_updated=as_of,
    )
    return forecast, overflows


def forecast_roi(
    initiatives: Iterable[Initiative] | None,
    historical_roi: Sequence[float] | None,
    settings: ForecastSettings | None = None,
    as_of: datetime | None = None,
) -> RoiForecast:
    """
    3/6/12-month ROI projections with confidence.

    Empty history gives a flat forecast at realized ROI with confidence 0.
    """
    forecast, _ = evaluate_forecast(initiatives, historical_roi, settings, as_of)
    return forecast
