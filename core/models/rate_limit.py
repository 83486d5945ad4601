"""Mimir Rate Limit Model - Per provider and call-kind admission budget."""

from dataclasses import dataclass
from typing import Optional

from ..exceptions import ValidationError


@dataclass(frozen=True)
class RateLimitBudget:
    """Admission budget for one provider and call kind.

    Attributes:
        concurrency: Maximum number of calls in flight
        requests_per_window: Maximum calls started per rolling window
        tokens_per_window: Optional maximum estimated tokens per rolling window
        retries: Retry attempts after the first failure
        batch_size: Texts per embedding request
        window_seconds: Length of the rolling window
    """

    concurrency: int = 5
    requests_per_window: Optional[int] = None
    tokens_per_window: Optional[int] = None
    retries: int = 5
    batch_size: int = 50
    window_seconds: float = 60.0

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValidationError("concurrency", self.concurrency, "Concurrency must be at least 1")
        if self.retries < 0:
            raise ValidationError("retries", self.retries, "Retries cannot be negative")
        if self.batch_size < 1:
            raise ValidationError("batch_size", self.batch_size, "Batch size must be at least 1")
        if self.window_seconds <= 0:
            raise ValidationError("window_seconds", self.window_seconds, "Window must be positive")
        for name in ("requests_per_window", "tokens_per_window"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValidationError(name, value, "Limit must be positive when set")
