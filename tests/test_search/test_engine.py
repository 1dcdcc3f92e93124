from __future__ import annotations

import random
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kwsearch.config import settings
from kwsearch.core.errors import DataError, ProviderError, StoreError
from kwsearch.db.distance import DistanceMetric
from kwsearch.schemas.store import KeywordDistanceRow
from kwsearch.search.engine import search, shape_matches


def _row(student_id: int, keyword_id: int, distance: float, name: str | None = None) -> KeywordDistanceRow:
    return KeywordDistanceRow(
        student_id=student_id,
        student_name=name or f"student-{student_id}",
        keyword_id=keyword_id,
        keyword_text=f"kw-{keyword_id}",
        distance=distance,
    )


def _make_provider(vector: list[float] | None = None) -> AsyncMock:
    provider = AsyncMock()
    provider.embed = AsyncMock(return_value=vector or [0.1, 0.2, 0.3])
    return provider


# ---------------------------------------------------------------------------
# shape_matches
# ---------------------------------------------------------------------------


def test_nlp_example_ranks_student_with_nlp_keyword_first() -> None:
    rows = [
        KeywordDistanceRow(2, "S2", 3, "料理", 0.82),
        KeywordDistanceRow(1, "S1", 1, "機械学習", 0.31),
        KeywordDistanceRow(1, "S1", 2, "自然言語処理", 0.12),
    ]

    matches = shape_matches(rows, top_k=10)

    assert [m.student_id for m in matches] == [1, 2]
    assert [k.keyword_id for k in matches[0].keywords] == [2, 1]
    assert [k.text for k in matches[0].keywords] == ["自然言語処理", "機械学習"]
    assert matches[0].best_distance == pytest.approx(0.12)


def test_order_independent_of_row_order() -> None:
    rows = [
        _row(1, 11, 0.5),
        _row(1, 12, 0.2),
        _row(2, 21, 0.3),
        _row(3, 31, 0.9),
        _row(3, 32, 0.1),
    ]
    expected = shape_matches(rows, top_k=10)
    shuffled = rows[:]
    random.Random(7).shuffle(shuffled)

    assert shape_matches(shuffled, top_k=10) == expected
    assert [m.student_id for m in expected] == [3, 1, 2]
    assert [k.keyword_id for k in expected[0].keywords] == [32, 31]


def test_ties_broken_by_id() -> None:
    rows = [
        _row(5, 9, 0.4),
        _row(5, 2, 0.4),
        _row(4, 7, 0.4),
    ]

    matches = shape_matches(rows, top_k=10)

    assert [m.student_id for m in matches] == [4, 5]
    assert [k.keyword_id for k in matches[1].keywords] == [2, 9]


def test_all_keywords_kept_not_only_best() -> None:
    rows = [_row(1, k, 0.1 * k) for k in range(1, 6)]
    matches = shape_matches(rows, top_k=1)
    assert len(matches) == 1
    assert len(matches[0].keywords) == 5


def test_truncates_to_top_k() -> None:
    rows = [_row(s, s * 10, 0.1 * s) for s in range(1, 6)]
    assert [m.student_id for m in shape_matches(rows, top_k=2)] == [1, 2]


@pytest.mark.parametrize("top_k", [0, -3])
def test_non_positive_top_k_is_empty(top_k: int) -> None:
    assert shape_matches([_row(1, 1, 0.1)], top_k=top_k) == []


def test_no_rows_is_empty() -> None:
    assert shape_matches([], top_k=5) == []


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("top_k", [0, -1])
async def test_search_non_positive_top_k_skips_provider_and_store(top_k: int) -> None:
    provider = _make_provider()
    with patch("kwsearch.db.entity_store.fetch_keyword_distances", new=AsyncMock()) as fetch:
        result = await search("NLP", top_k, MagicMock(), provider)

    assert result == []
    provider.embed.assert_not_awaited()
    fetch.assert_not_awaited()


async def test_search_blank_query_raises() -> None:
    with pytest.raises(DataError):
        await search("   ", 5, MagicMock(), _make_provider())


async def test_search_embeds_query_and_shapes_rows() -> None:
    provider = _make_provider([0.5, 0.5, 0.5])
    session = MagicMock()
    rows = [_row(2, 20, 0.7), _row(1, 10, 0.2), _row(1, 11, 0.4)]

    with patch(
        "kwsearch.db.entity_store.fetch_keyword_distances", new=AsyncMock(return_value=rows)
    ) as fetch:
        result = await search("NLP", 2, session, provider, metric=DistanceMetric.L2)

    provider.embed.assert_awaited_once_with("NLP")
    fetch.assert_awaited_once_with(session, [0.5, 0.5, 0.5], 2, DistanceMetric.L2)
    assert [m.student_id for m in result] == [1, 2]
    assert [k.keyword_id for k in result[0].keywords] == [10, 11]


async def test_search_defaults_to_configured_metric() -> None:
    with patch(
        "kwsearch.db.entity_store.fetch_keyword_distances", new=AsyncMock(return_value=[])
    ) as fetch:
        await search("NLP", 3, MagicMock(), _make_provider())

    assert fetch.await_args.args[3] is DistanceMetric(settings.distance_metric)


async def test_search_provider_failure_propagates() -> None:
    provider = _make_provider()
    provider.embed = AsyncMock(side_effect=ProviderError("rate limited"))

    with patch("kwsearch.db.entity_store.fetch_keyword_distances", new=AsyncMock()) as fetch:
        with pytest.raises(ProviderError):
            await search("NLP", 3, MagicMock(), provider)
    fetch.assert_not_awaited()


async def test_search_store_failure_propagates() -> None:
    with patch(
        "kwsearch.db.entity_store.fetch_keyword_distances",
        new=AsyncMock(side_effect=StoreError("connection lost")),
    ):
        with pytest.raises(StoreError):
            await search("NLP", 3, MagicMock(), _make_provider())
