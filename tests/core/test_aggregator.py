from __future__ import annotations

import pendulum

from facultyeval.core import Aggregate, recompute, response_score
from facultyeval.schemas import Response, Role, ScoreLine


def build_response(response_id: str, ratings: list[float]) -> Response:
    return Response(
        id=response_id,
        evaluation_id="E-1",
        evaluator_id=f"user-{response_id}",
        evaluator_role=Role.STUDENT,
        scores=[
            ScoreLine(criterion_id=f"c{idx}", rating=rating)
            for idx, rating in enumerate(ratings, start=1)
        ],
        submitted_at=pendulum.datetime(2025, 3, 10, tz="UTC"),
    )


def test_response_score_is_sum_of_ratings():
    assert response_score(build_response("r1", [40, 25, 12.5])) == 77.5


def test_recompute_empty():
    assert recompute([]) == Aggregate(average_score=None, response_count=0)


def test_recompute_mean_on_weight_scale():
    responses = [
        build_response("r1", [40, 30, 30]),
        build_response("r2", [20, 15, 15]),
        build_response("r3", [30, 20, 25]),
    ]

    aggregate = recompute(responses)

    assert aggregate.response_count == 3
    assert aggregate.average_score == 75.0


def test_recompute_is_order_independent_and_repeatable():
    responses = [build_response(str(idx), [idx * 0.1, 10, 3.3]) for idx in range(1, 8)]

    first = recompute(responses)
    second = recompute(list(reversed(responses)))

    assert first == second
    assert recompute(iter(responses)) == first
