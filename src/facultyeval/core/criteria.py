"""Criterion set validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import structlog

from ..schemas import Criterion
from .errors import InvalidCriteria

MIN_WEIGHT = 1
MAX_WEIGHT = 100


@dataclass
class CriteriaPolicy:
    """Weight-sum policy; ``required_total=None`` downgrades a mismatch to a warning."""

    required_total: int | None = 100


def validate_criteria(
    criteria: Sequence[Criterion],
    *,
    required_total: int | None = 100,
) -> list[Criterion]:
    """Return the criteria unchanged or raise :class:`InvalidCriteria`."""
    if not criteria:
        raise InvalidCriteria("At least one criterion is required")

    seen: set[str] = set()
    for criterion in criteria:
        if criterion.id in seen:
            raise InvalidCriteria("Duplicate criterion id", criterion_id=criterion.id)
        seen.add(criterion.id)
        if not criterion.category.strip():
            raise InvalidCriteria("Criterion category is required", criterion_id=criterion.id)
        if not MIN_WEIGHT <= criterion.weight <= MAX_WEIGHT:
            raise InvalidCriteria(
                f"Weight must be between {MIN_WEIGHT} and {MAX_WEIGHT}",
                criterion_id=criterion.id,
                weight=criterion.weight,
            )

    total = sum(criterion.weight for criterion in criteria)
    if required_total is not None and total != required_total:
        raise InvalidCriteria(
            f"Criteria weights must sum to {required_total}",
            total=total,
        )
    if required_total is None and total != 100:
        structlog.get_logger(__name__).warning("criteria.weight_total_mismatch", total=total)
    return list(criteria)


class CriteriaValidator:
    """Callable wrapper binding :func:`validate_criteria` to a policy."""

    def __init__(self, *, policy: CriteriaPolicy | None = None) -> None:
        self._policy = policy or CriteriaPolicy()

    @property
    def required_total(self) -> int | None:
        return self._policy.required_total

    def __call__(self, criteria: Sequence[Criterion]) -> list[Criterion]:
        return validate_criteria(criteria, required_total=self._policy.required_total)
