"""
Tests for the Matching Module

These tests verify that:
1. euclidean_distance computes the plain L2 distance
2. confidence_from_distance maps distances into [0, 100]
3. EuclideanMatcher decides with distance < threshold
4. Missing or mismatched descriptors fail closed with a reason code
"""

import numpy as np
import pytest

from core.matching import (
    MAX_DISTANCE_SENTINEL,
    EuclideanMatcher,
    MatchResult,
    confidence_from_distance,
    euclidean_distance,
)


# ============================================================
# Test Fixtures
# ============================================================

@pytest.fixture
def matcher():
    return EuclideanMatcher({"distance_threshold": 0.6})


@pytest.fixture
def descriptor_128():
    rng = np.random.default_rng(42)
    return rng.uniform(-0.2, 0.2, 128).astype(np.float32)


# ============================================================
# Distance
# ============================================================

class TestEuclideanDistance:

    def test_identical(self, descriptor_128):
        assert euclidean_distance(descriptor_128, descriptor_128) == 0.0

    def test_known_value(self):
        assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)

    def test_symmetric(self, descriptor_128):
        other = descriptor_128[::-1].copy()
        assert euclidean_distance(descriptor_128, other) == pytest.approx(
            euclidean_distance(other, descriptor_128)
        )

    def test_length_mismatch_returns_sentinel(self):
        assert euclidean_distance(np.zeros(128), np.zeros(512)) == MAX_DISTANCE_SENTINEL

    def test_missing_returns_sentinel(self):
        assert euclidean_distance(None, np.zeros(128)) == MAX_DISTANCE_SENTINEL
        assert euclidean_distance(np.zeros(128), None) == MAX_DISTANCE_SENTINEL


# ============================================================
# Confidence
# ============================================================

class TestConfidence:

    @pytest.mark.parametrize("distance,expected", [
        (0.0, 100),
        (0.25, 75),
        (0.6, 40),
        (1.0, 0),
        (1.5, 0),
    ])
    def test_mapping(self, distance, expected):
        assert confidence_from_distance(distance) == expected

    def test_rounds_half_up(self):
        assert confidence_from_distance(0.125) == 88
        assert confidence_from_distance(0.375) == 63

    def test_monotonic_non_increasing(self):
        distances = np.linspace(0.0, 2.0, 201)
        values = [confidence_from_distance(float(d)) for d in distances]
        assert all(a >= b for a, b in zip(values, values[1:]))
        assert all(0 <= v <= 100 for v in values)


# ============================================================
# Matcher
# ============================================================

class TestEuclideanMatcher:

    def test_identical_descriptors_match(self, matcher, descriptor_128):
        result = matcher.compare(descriptor_128, descriptor_128)

        assert isinstance(result, MatchResult)
        assert result.is_match
        assert result.distance == 0.0
        assert result.confidence_percent == 100
        assert result.error is None
        assert result.details["method"] == "euclidean"

    def test_offset_descriptor_does_not_match(self, matcher):
        """A uniform 0.1 shift over 128 dims is sqrt(1.28) ~ 1.131 away."""
        template = np.zeros(128, dtype=np.float32)
        live = np.full(128, 0.1, dtype=np.float32)

        result = matcher.compare(template, live)

        assert result.distance == pytest.approx(1.1314, abs=1e-3)
        assert not result.is_match
        assert result.confidence_percent == 0

    def test_close_descriptor_matches(self, matcher):
        template = np.zeros(128, dtype=np.float32)
        live = np.full(128, 0.02, dtype=np.float32)

        result = matcher.compare(template, live)

        assert result.distance == pytest.approx(0.2263, abs=1e-3)
        assert result.is_match
        assert result.confidence_percent == 77

    def test_threshold_is_strict(self):
        matcher = EuclideanMatcher({"distance_threshold": 5.0})
        result = matcher.compare(np.array([0.0, 0.0]), np.array([3.0, 4.0]))
        assert not result.is_match

    def test_length_mismatch_fails_closed(self, matcher):
        result = matcher.compare(np.zeros(128), np.zeros(512))

        assert not result.is_match
        assert result.distance == MAX_DISTANCE_SENTINEL
        assert result.confidence_percent == 0
        assert result.error == "DESCRIPTOR_LENGTH_MISMATCH"
        assert result.details["template_dim"] == 128
        assert result.details["live_dim"] == 512

    @pytest.mark.parametrize("template", [None, np.zeros(0)])
    def test_missing_template_fails_closed(self, matcher, template):
        result = matcher.compare(template, np.zeros(128))

        assert not result.is_match
        assert result.distance == MAX_DISTANCE_SENTINEL
        assert result.error == "MISSING_TEMPLATE"

    def test_default_threshold(self):
        assert EuclideanMatcher().threshold == 0.6
