from __future__ import annotations

from enum import Enum


class DistanceMetric(str, Enum):
    """pgvector distance functions. Index opclass and query operator must agree.

    Only operators whose result is a non-negative distance are offered;
    pgvector's ``<#>`` yields a negated inner product and is not one of them.
    """

    COSINE = "cosine"
    L2 = "l2"

    @property
    def operator(self) -> str:
        return _OPERATORS[self]

    @property
    def opclass(self) -> str:
        return _OPCLASSES[self]


_OPERATORS = {
    DistanceMetric.COSINE: "<=>",
    DistanceMetric.L2: "<->",
}

_OPCLASSES = {
    DistanceMetric.COSINE: "vector_cosine_ops",
    DistanceMetric.L2: "vector_l2_ops",
}
