"""
Builds the batch response from per-file outcomes.
"""

from datetime import datetime, timezone
from typing import Sequence

from models.analysis import AggregateResponse, FileOutcome


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def aggregate(outcomes: Sequence[FileOutcome]) -> AggregateResponse:
    """
    Summarize a finished batch.

    Per-file failures do not fail the batch, so ``success`` is always true here;
    the order of ``outcomes`` is kept as given.
    """
    results = list(outcomes)
    return AggregateResponse(
        success=True,
        timestamp=utc_timestamp(),
        total_files=len(results),
        successful_analyses=sum(1 for outcome in results if outcome.success),
        results=results
    )
