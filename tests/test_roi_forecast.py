"""Tests for the ROI forecast model."""

import pytest

from flowvision.analytics.models import InitiativeStatus
from flowvision.analytics.roi_forecast import (
    current_position,
    evaluate_forecast,
    forecast_roi,
    small_sample_penalty,
    top_performers,
)
from flowvision.analytics.settings import ForecastSettings
from tests.fixtures import AS_OF, ROI_HISTORY, days, make_initiative, portfolio_initiatives


def _done(initiative_id, roi, spend=1000, **overrides):
    return make_initiative(
        initiative_id,
        status=InitiativeStatus.DONE,
        progress=100,
        budget=spend,
        actual_spend=spend,
        realized_roi=roi,
        **overrides,
    )


class TestCurrentPosition:
    def test_reference_portfolio(self):
        current = current_position(portfolio_initiatives())

        assert current.total_investment == 110_000
        # (20k * 35% + 10k * 5%) / 30k
        assert current.realized_roi == pytest.approx(25.0)
        # progress-weighted: (40 * 20 + 25 * 55) / 75
        assert current.pending_roi == pytest.approx(29.0)
        assert current.portfolio_value == pytest.approx(110_000 * 1.54)

    def test_empty_portfolio(self):
        current = current_position([])
        assert current.realized_roi == 0
        assert current.pending_roi == 0
        assert current.portfolio_value == 0

    def test_pending_falls_back_to_plain_mean_without_progress(self):
        initiatives = [
            make_initiative("A", progress=0, projected_roi=10),
            make_initiative("B", progress=0, projected_roi=30),
        ]
        assert current_position(initiatives).pending_roi == pytest.approx(20.0)


class TestForecast:
    def test_reference_projection(self):
        forecast = forecast_roi(portfolio_initiatives(), ROI_HISTORY, as_of=AS_OF)

        # mean delta 1.0 per period from realized 25
        assert forecast.forecast.three_month == pytest.approx(28.0)
        assert forecast.forecast.six_month == pytest.approx(31.0)
        assert forecast.forecast.twelve_month == pytest.approx(37.0)
        assert 90 < forecast.forecast.confidence <= 100
        assert forecast.last_updated == AS_OF

    def test_empty_history_is_flat_with_zero_confidence(self):
        forecast = forecast_roi(portfolio_initiatives(), [], as_of=AS_OF)

        assert forecast.forecast.confidence == 0
        assert forecast.forecast.three_month == pytest.approx(forecast.current.realized_roi)
        assert forecast.forecast.twelve_month == pytest.approx(forecast.current.realized_roi)

    def test_missing_history_behaves_like_empty(self):
        forecast = forecast_roi(portfolio_initiatives(), None, as_of=AS_OF)
        assert forecast.forecast.confidence == 0

    def test_confidence_drops_with_noisy_history(self):
        steady = forecast_roi([], [10, 11, 12, 13, 14, 15], as_of=AS_OF)
        noisy = forecast_roi([], [10, 20, 5, 25, 0, 15], as_of=AS_OF)
        assert noisy.forecast.confidence < steady.forecast.confidence

    def test_confidence_never_rises_as_history_shrinks(self):
        history = [10.0 + 2 * n for n in range(8)]
        confidences = [
            forecast_roi([], history[-n:], as_of=AS_OF).forecast.confidence for n in range(8, 1, -1)
        ]
        assert confidences == sorted(confidences, reverse=True)

    def test_small_sample_penalty(self):
        assert small_sample_penalty(6, 6) == 0
        assert small_sample_penalty(3, 6) == pytest.approx(50.0)
        assert small_sample_penalty(0, 6) == pytest.approx(100.0)

    def test_extreme_trend_is_clamped_and_reported(self):
        history = [0, 100, 200, 300, 400, 500]

        forecast, overflows = evaluate_forecast([], history, as_of=AS_OF)

        assert forecast.forecast.twelve_month == 500
        assert overflows
        assert all(o.kind == "computation_overflow" for o in overflows)
        # clamping costs confidence
        assert forecast.forecast.confidence <= 80

    def test_negative_trend_is_clamped_low(self):
        forecast, overflows = evaluate_forecast([], [0, -50, -100, -150], as_of=AS_OF)
        assert forecast.forecast.twelve_month == -100
        assert overflows


class TestTopPerformers:
    def test_ranked_by_realized_roi_and_limited(self):
        initiatives = [_done(f"I{n}", roi=n * 10) for n in range(1, 8)]
        performers = top_performers(initiatives, limit=5)
        assert [p.id for p in performers] == ["I7", "I6", "I5", "I4", "I3"]

    def test_non_positive_roi_excluded(self):
        initiatives = [_done("A", roi=0), _done("B", roi=-5), _done("C", roi=12)]
        assert [p.id for p in top_performers(initiatives)] == ["C"]


class TestRecommendations:
    def test_weakest_signal_drives_first_recommendation(self):
        forecast = forecast_roi(portfolio_initiatives(), ROI_HISTORY, as_of=AS_OF)
        assert forecast.recommendations[0].startswith("ROI trend is the weakest signal")

    def test_strong_portfolio_gets_healthy_message(self):
        initiatives = [_done("A", roi=80), make_initiative("B", progress=50, projected_roi=80)]
        history = [50, 53, 56, 59, 62, 65]
        forecast = forecast_roi(initiatives, history, as_of=AS_OF)
        assert forecast.recommendations == [
            "Initiative portfolio is performing well - maintain current execution standards"
        ]

    def test_low_confidence_and_overdue_templates(self):
        initiatives = [
            make_initiative("A", progress=10, timeline_start=days(-30), timeline_end=days(-1)),
            make_initiative("B", progress=10),
            make_initiative("C", progress=10),
        ]
        forecast = forecast_roi(initiatives, [], as_of=AS_OF)

        text = " | ".join(forecast.recommendations)
        assert "Low forecast confidence" in text
        assert "High number of active initiatives" in text
        assert "1 initiatives are overdue" in text

    def test_at_most_four(self):
        settings = ForecastSettings(max_recommendations=2)
        initiatives = [make_initiative("A", timeline_start=days(-30), timeline_end=days(-1))]
        forecast = forecast_roi(initiatives, [], settings=settings, as_of=AS_OF)
        assert len(forecast.recommendations) == 2
        assert len(forecast_roi(initiatives, [], as_of=AS_OF).recommendations) <= 4
