"""
Error taxonomy for the analytics engine.

None of these cross a sub-engine boundary: each sub-engine catches them,
substitutes its documented default, and reports the fault through the
EngineResult wrapper instead.
"""


class AnalyticsError(Exception):
    """Base class for analytics faults."""

    kind = "analytics_error"


class DataUnavailable(AnalyticsError):
    """A repository read failed or returned nothing."""

    kind = "data_unavailable"

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"{source} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidConfiguration(AnalyticsError):
    """Settings are malformed or missing a field."""

    kind = "invalid_configuration"

    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(f"{field_name}: {reason}")


class ComputationOverflow(AnalyticsError):
    """A derived value fell outside its documented range and was clamped."""

    kind = "computation_overflow"

    def __init__(self, metric: str, value: float, low: float, high: float):
        self.metric = metric
        self.value = value
        self.low = low
        self.high = high
        super().__init__(f"{metric}={value:.2f} outside [{low}, {high}]")
