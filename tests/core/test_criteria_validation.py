from __future__ import annotations

import pytest

from facultyeval.core import CriteriaPolicy, CriteriaValidator, InvalidCriteria, validate_criteria
from facultyeval.schemas import Criterion


def build_criteria(*weights: int) -> list[Criterion]:
    return [
        Criterion(id=f"c{idx}", category=f"Dimension {idx}", weight=weight)
        for idx, weight in enumerate(weights, start=1)
    ]


def test_accepts_weights_summing_to_hundred():
    criteria = build_criteria(40, 30, 30)

    accepted = validate_criteria(criteria)

    assert [c.weight for c in accepted] == [40, 30, 30]
    assert all(c.weight > 0 for c in accepted)


def test_rejects_empty_set():
    with pytest.raises(InvalidCriteria):
        validate_criteria([])


@pytest.mark.parametrize("weight", [0, -5, 101])
def test_rejects_weight_outside_bounds(weight: int):
    criteria = build_criteria(weight, 100 - weight)

    with pytest.raises(InvalidCriteria) as exc:
        validate_criteria(criteria, required_total=None)
    assert exc.value.details["criterion_id"] == "c1"


def test_rejects_sum_mismatch():
    with pytest.raises(InvalidCriteria) as exc:
        validate_criteria(build_criteria(40, 30, 20))
    assert exc.value.details["total"] == 90


def test_rejects_duplicate_ids():
    criteria = [
        Criterion(id="same", category="A", weight=50),
        Criterion(id="same", category="B", weight=50),
    ]
    with pytest.raises(InvalidCriteria):
        validate_criteria(criteria)


def test_disabled_total_only_warns():
    validator = CriteriaValidator(policy=CriteriaPolicy(required_total=None))

    accepted = validator(build_criteria(10, 20))

    assert len(accepted) == 2
    assert validator.required_total is None


def test_custom_total():
    validator = CriteriaValidator(policy=CriteriaPolicy(required_total=10))

    assert len(validator(build_criteria(5, 5))) == 2
    with pytest.raises(InvalidCriteria):
        validator(build_criteria(40, 30, 30))
