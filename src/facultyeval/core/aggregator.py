"""Score aggregation over recorded responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..schemas import Response

SCORE_PRECISION = 4


@dataclass(frozen=True, slots=True)
class Aggregate:
    """Running score of an evaluation."""

    average_score: float | None
    response_count: int


def response_score(response: Response) -> float:
    """A response's own score is the plain sum of its ratings."""
    return float(sum(line.rating for line in response.scores))


def recompute(responses: Iterable[Response]) -> Aggregate:
    """Mean of response scores on the criteria weight scale.

    Depends only on the given responses, so rebuilding from stored rows yields
    the same values as the incremental path.
    """
    totals = sorted(response_score(response) for response in responses)
    if not totals:
        return Aggregate(average_score=None, response_count=0)
    average = round(sum(totals) / len(totals), SCORE_PRECISION)
    return Aggregate(average_score=average, response_count=len(totals))
