"""Failure threshold policy deciding when a run has failed.

Individual item failures never abort a run on their own. A run is declared
failed when failures exceed an absolute count, or when the share of failed
items exceeds a ratio. During the run the ratio is only consulted once
enough items were processed to make it meaningful; it is always checked at
the end. Denied (restricted) items are not failures.
"""

from dataclasses import dataclass
from typing import Optional

# Items processed before the ratio is consulted mid-run
MIN_ITEMS_FOR_RATIO = 20


@dataclass(frozen=True)
class FailureThreshold:
    """Limits on failed items.

    Attributes:
        max_failures: Failures allowed before the run fails (None: unlimited)
        max_failure_ratio: Failed share (0..1) allowed (None: unlimited)

    Example:
        >>> FailureThreshold(max_failures=2).check(failed=3, processed=10)
        '3 failures exceeded threshold of 2'
    """
    max_failures: Optional[int] = None
    max_failure_ratio: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_failures is not None and self.max_failures < 0:
            raise ValueError("max_failures cannot be negative")
        if self.max_failure_ratio is not None and not 0 <= self.max_failure_ratio <= 1:
            raise ValueError("max_failure_ratio must be between 0 and 1")

    def check(self, failed: int, processed: int, final: bool = False) -> Optional[str]:
        """Return why the run has failed, or None if it has not.

        Args:
            failed: Items that failed so far
            processed: Items that terminated so far (any status)
            final: True for the end-of-run evaluation
        """
        if self.max_failures is not None and failed > self.max_failures:
            return f"{failed} failures exceeded threshold of {self.max_failures}"

        if self.max_failure_ratio is not None and processed > 0:
            if final or processed >= MIN_ITEMS_FOR_RATIO:
                ratio = failed / processed
                if ratio > self.max_failure_ratio:
                    return (
                        f"{ratio:.1%} failure rate exceeded threshold of "
                        f"{self.max_failure_ratio:.1%}"
                    )
        return None
