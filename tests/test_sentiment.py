"""
Unit tests for the sentiment aggregator
"""
import pytest

from fundraising.analytics.sentiment import aggregate_sentiment, sentiment_from_distribution
from fundraising.core.errors import ValidationError


class TestAggregateSentiment:

    def test_mixed_ratings(self):
        summary = aggregate_sentiment([5, 5, 4, 3, 2, 1])

        assert summary.total_feedback == 6
        assert summary.average_rating == 3.3
        assert summary.positive == 50.0
        assert summary.neutral == 16.7
        assert summary.negative == 33.3
        assert summary.rating_distribution == {1: 1, 2: 1, 3: 1, 4: 1, 5: 2}

    def test_empty_is_all_zeros(self):
        summary = aggregate_sentiment([])

        assert summary.total_feedback == 0
        assert summary.average_rating == 0
        assert (summary.positive, summary.neutral, summary.negative) == (0, 0, 0)
        assert summary.rating_distribution == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}

    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_out_of_range_rating_rejected(self, rating):
        with pytest.raises(ValidationError):
            aggregate_sentiment([5, rating])


class TestSentimentFromDistribution:

    def test_matches_aggregate(self):
        summary = sentiment_from_distribution({5: 2, 4: 1, 3: 1, 2: 1, 1: 1})

        assert summary == aggregate_sentiment([5, 5, 4, 3, 2, 1])

    def test_all_positive(self):
        summary = sentiment_from_distribution({4: 3})

        assert summary.positive == 100.0
        assert summary.average_rating == 4.0
