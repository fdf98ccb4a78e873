"""
Unit tests for temporal decay and freshness labels

Pure functions with an explicit `now` for determinism, plus freezegun
checks that the wall-clock default behaves the same way.
"""

from datetime import datetime, timedelta, timezone

import pytest

from vidrecall.retrieval.decay import (
    age_in_days,
    apply_temporal_decay,
    calculate_temporal_decay,
    freshness_label,
)
from vidrecall.retrieval.types import SCORE_KEYWORD, SearchResult


NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _result(chunk_id, similarity, published_at=None, score_kind=SCORE_KEYWORD):
    return SearchResult(
        chunk_id=chunk_id,
        content="content",
        start_time=0.0,
        end_time=10.0,
        similarity=similarity,
        video_id=chunk_id,
        video_title=f"Video {chunk_id}",
        published_at=published_at,
        score_kind=score_kind,
    )


class TestCalculateDecay:
    """Half-life decay factor"""

    def test_one_half_life_halves(self):
        """Published exactly one half-life ago gives 0.5"""
        published = NOW - timedelta(days=180)
        assert calculate_temporal_decay(published, 180, NOW) == pytest.approx(0.5)

    def test_two_half_lives_quarter(self):
        """Two half-lives give 0.25"""
        published = NOW - timedelta(days=730)
        assert calculate_temporal_decay(published, 365, NOW) == pytest.approx(0.25)

    def test_no_publish_date(self):
        """Unknown publish date is never decayed"""
        assert calculate_temporal_decay(None, 30, NOW) == 1.0

    def test_future_date_not_boosted(self):
        """Future-dated content is treated as brand new"""
        published = NOW + timedelta(days=30)
        assert calculate_temporal_decay(published, 180, NOW) == 1.0

    def test_naive_datetime_treated_as_utc(self):
        """A naive timestamp is read as UTC"""
        naive = datetime(2024, 12, 2)
        assert age_in_days(naive, NOW) == pytest.approx(30.0)

    @pytest.mark.parametrize("half_life", [0, -1, -365.0])
    def test_non_positive_half_life(self, half_life):
        """Zero or negative half-lives are rejected"""
        with pytest.raises(ValueError):
            calculate_temporal_decay(NOW - timedelta(days=1), half_life, NOW)

    def test_wall_clock_default(self, frozen_now):
        """Without `now`, the current time is used"""
        published = frozen_now - timedelta(days=90)
        assert calculate_temporal_decay(published, 90) == pytest.approx(0.5)


class TestApplyDecay:
    """Reweighting a result list"""

    def test_scenario_half_life_180(self):
        """Raw 1.0, half-life 180, published 180 days ago gives about 0.5"""
        results = [_result(1, 1.0, NOW - timedelta(days=180))]

        decayed = apply_temporal_decay(results, enabled=True, half_life_days=180, now=NOW)

        assert decayed[0].similarity == pytest.approx(0.5)
        assert decayed[0].decay == pytest.approx(0.5)

    def test_disabled_is_identity(self):
        """Disabled decay returns identical scores whatever the half-life"""
        results = [
            _result(1, 0.8, NOW - timedelta(days=1000)),
            _result(2, 0.6, NOW - timedelta(days=1)),
        ]

        for half_life in (None, 1, 30, 365, -5):
            out = apply_temporal_decay(results, enabled=False, half_life_days=half_life, now=NOW)
            assert out is results
            assert [r.similarity for r in out] == [0.8, 0.6]
            assert [r.decay for r in out] == [1.0, 1.0]

    def test_no_date_keeps_score(self):
        """Results without a publish date keep their score"""
        decayed = apply_temporal_decay([_result(1, 0.7)], enabled=True, half_life_days=30, now=NOW)

        assert decayed[0].similarity == 0.7
        assert decayed[0].decay == 1.0

    def test_resorts_by_decayed_score(self):
        """A fresh result can overtake an older, higher-scoring one"""
        old = _result(1, 0.9, NOW - timedelta(days=730))
        fresh = _result(2, 0.6, NOW - timedelta(days=1))

        decayed = apply_temporal_decay([old, fresh], enabled=True, half_life_days=365, now=NOW)

        assert [r.chunk_id for r in decayed] == [2, 1]
        assert decayed[1].similarity == pytest.approx(0.9 * 0.25)

    def test_equal_scores_keep_order(self):
        """Stable sort: equal decayed scores keep their incoming order"""
        results = [_result(1, 0.5), _result(2, 0.5), _result(3, 0.5)]

        decayed = apply_temporal_decay(results, enabled=True, half_life_days=30, now=NOW)

        assert [r.chunk_id for r in decayed] == [1, 2, 3]

    def test_scores_stay_in_unit_interval(self):
        """Decayed scores are clamped to [0, 1]"""
        results = [
            _result(1, 1.0, NOW + timedelta(days=10)),
            _result(2, 1e-9, NOW - timedelta(days=100000)),
        ]

        for result in apply_temporal_decay(results, enabled=True, half_life_days=1, now=NOW):
            assert 0.0 <= result.similarity <= 1.0

    def test_default_half_life(self):
        """Without a half-life the 365-day default applies"""
        results = [_result(1, 1.0, NOW - timedelta(days=365))]

        decayed = apply_temporal_decay(results, enabled=True, now=NOW)

        assert decayed[0].similarity == pytest.approx(0.5)

    def test_inputs_not_mutated(self):
        """Decay returns new result objects"""
        original = _result(1, 1.0, NOW - timedelta(days=365))

        apply_temporal_decay([original], enabled=True, half_life_days=365, now=NOW)

        assert original.similarity == 1.0
        assert original.decay == 1.0

    def test_score_kind_preserved(self):
        """Decay changes the score, not what kind of score it is"""
        decayed = apply_temporal_decay(
            [_result(1, 1.0, NOW - timedelta(days=10))], enabled=True, half_life_days=10, now=NOW
        )
        assert decayed[0].score_kind == SCORE_KEYWORD


class TestFreshnessLabel:
    """Short age labels shown next to videos"""

    @pytest.mark.parametrize(
        "days, label",
        [
            (0, "Fresh"),
            (89, "Fresh"),
            (90, "3mo"),
            (200, "6mo"),
            (364, "12mo"),
            (365, "1y old"),
            (800, "2y old"),
        ],
    )
    def test_labels(self, days, label):
        assert freshness_label(NOW - timedelta(days=days), NOW) == label

    def test_unknown_date(self):
        assert freshness_label(None, NOW) is None

    def test_future_date_is_fresh(self):
        assert freshness_label(NOW + timedelta(days=5), NOW) == "Fresh"
