"""
Unit tests for GPS distance and proximity checks.
"""

import pytest

from propertysnap.geo import (
    calculate_distance,
    check_proximity,
    format_distance,
    is_within_threshold,
)


SYDNEY = (-33.8688, 151.2093)
MELBOURNE = (-37.8136, 144.9631)
OPERA_HOUSE = (-33.8568, 151.2153)
# 0.0004 degrees of latitude south of the Opera House, about 44.5m
NEARBY = (-33.8572, 151.2153)
# 0.0045 degrees of latitude south of the Opera House, about 500m
HALF_KM_SOUTH = (-33.8613, 151.2153)
CIRCULAR_QUAY = (-33.8523, 151.2108)


class TestCalculateDistance:
    """Tests for the Haversine distance."""

    def test_identical_points_are_zero(self):
        """Same coordinates give exactly zero."""
        assert calculate_distance(*SYDNEY, *SYDNEY) == 0.0

    def test_sydney_to_melbourne(self):
        """Known city pair lands in the expected range."""
        distance = calculate_distance(*SYDNEY, *MELBOURNE)
        assert 700_000 < distance < 750_000

    def test_opera_house_to_circular_quay(self):
        """Neighbouring landmarks are a few hundred meters apart."""
        distance = calculate_distance(*OPERA_HOUSE, *CIRCULAR_QUAY)
        assert 500 < distance < 800

    def test_symmetric(self):
        """Distance does not depend on argument order."""
        forward = calculate_distance(*SYDNEY, *MELBOURNE)
        backward = calculate_distance(*MELBOURNE, *SYDNEY)
        assert forward == pytest.approx(backward)

    def test_short_distance(self):
        """Short hops are measured in meters."""
        assert calculate_distance(*OPERA_HOUSE, *NEARBY) == pytest.approx(44.48, abs=0.05)

    def test_never_negative(self):
        """Distances across hemispheres and the antimeridian stay positive."""
        assert calculate_distance(10.0, 179.9, -10.0, -179.9) > 0
        assert calculate_distance(0.0, 0.0, 0.0, 0.0) == 0.0


class TestFormatDistance:
    """Tests for display formatting."""

    @pytest.mark.parametrize("meters,expected", [
        (0, "0m"),
        (50, "50m"),
        (44.5, "45m"),
        (999, "999m"),
        (1000, "1.0km"),
        (1500, "1.5km"),
        (10000, "10.0km"),
    ])
    def test_format(self, meters, expected):
        """Below 1000m shows whole meters, otherwise km to one decimal."""
        assert format_distance(meters) == expected

    @pytest.mark.parametrize("meters,expected", [
        (999.5, "1000m"),
        (1250, "1.3km"),
        (2250, "2.3km"),
    ])
    def test_ties_round_half_up(self, meters, expected):
        """Exact halves round up in both the meter and km ranges."""
        assert format_distance(meters) == expected


class TestThreshold:
    """Tests for threshold checks."""

    def test_within_default_threshold(self):
        """44m is within the default 100m."""
        assert is_within_threshold(*OPERA_HOUSE, *NEARBY) is True

    def test_outside_custom_threshold(self):
        """44m is outside a 10m threshold."""
        assert is_within_threshold(*OPERA_HOUSE, *NEARBY, threshold_meters=10) is False


class TestCheckProximity:
    """Tests for check_proximity()."""

    def test_near_property(self):
        """Close photos are near with a plain message."""
        result = check_proximity(*NEARBY, *OPERA_HOUSE)

        assert result.near is True
        assert result.distance_meters == 44
        assert result.message == "Photo taken 44m from property"

    def test_far_from_property(self):
        """Distant photos get a warning."""
        result = check_proximity(*SYDNEY, *OPERA_HOUSE)

        assert result.near is False
        assert result.distance_meters > 100
        assert result.message.startswith("Warning: Photo taken ")
        assert result.message.endswith("m from property")

    def test_five_hundred_meters_is_not_near(self):
        """About 500m away is outside the default 100m threshold."""
        result = check_proximity(*HALF_KM_SOUTH, *OPERA_HOUSE)

        assert result.near is False
        assert result.distance_meters == 500
        assert result.message == "Warning: Photo taken 500m from property"

    def test_custom_threshold(self):
        """max_distance_meters overrides the default."""
        result = check_proximity(*NEARBY, *OPERA_HOUSE, max_distance_meters=10)

        assert result.near is False
        assert result.message == "Warning: Photo taken 44m from property"

    def test_missing_photo_location(self):
        """No photo fix means proximity is unknown."""
        result = check_proximity(None, None, *OPERA_HOUSE)

        assert result.near is False
        assert result.distance_meters is None
        assert result.message == "Photo location not available"

    def test_missing_property_location(self):
        """No property location means proximity is unknown."""
        result = check_proximity(*NEARBY, None, 151.2)

        assert result.near is False
        assert result.distance_meters is None
        assert result.message == "Property location not set"

    def test_zero_coordinates_are_valid(self):
        """(0, 0) is a real location, not a missing one."""
        result = check_proximity(0.0, 0.0, 0.0, 0.0)

        assert result.near is True
        assert result.distance_meters == 0
