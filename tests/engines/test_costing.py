"""
Tests for the moving-average cost formula.
"""

from decimal import Decimal

import pytest

from shopfloor_engines.costing import CostSample, weighted_average_cost


def _s(qty, cost):
    return CostSample(qty=Decimal(qty), unit_cost=Decimal(cost))


class TestWeightedAverageCost:

    def test_history_and_new_receipt(self):
        """Prior receipt 10 @ 100, new receipt 10 @ 120 -> 110.00."""
        cost = weighted_average_cost(
            history=[_s("10", "100")],
            receipt=_s("10", "120"),
        )

        assert cost == Decimal("110.00")

    def test_first_receipt_uses_its_own_cost(self):
        assert weighted_average_cost(history=[], receipt=_s("60", "0.25")) == Decimal("0.25")

    def test_rounds_half_up_to_two_places(self):
        # (1 * 1 + 2 * 1.0075) / 3 = 1.005
        cost = weighted_average_cost(
            history=[_s("1", "1")],
            receipt=_s("2", "1.0075"),
        )

        assert cost == Decimal("1.01")

    def test_non_positive_history_ignored(self):
        cost = weighted_average_cost(
            history=[_s("-5", "999"), _s("0", "500"), _s("10", "10")],
            receipt=_s("10", "20"),
        )

        assert cost == Decimal("15.00")

    def test_window_keeps_most_recent_samples(self):
        history = [_s("1", "10")] * 10 + [_s("1000", "1000")]

        assert weighted_average_cost(history=history) == Decimal("10.00")

    def test_window_is_configurable(self):
        history = [_s("1", "10"), _s("1", "20"), _s("1", "90")]

        assert weighted_average_cost(history=history, window=2) == Decimal("15.00")

    def test_receipt_weighed_beyond_the_window(self):
        history = [_s("1", "10")] * 10

        cost = weighted_average_cost(history=history, receipt=_s("10", "20"))

        assert cost == Decimal("15.00")

    def test_nothing_to_weigh_returns_none(self):
        assert weighted_average_cost(history=[]) is None
        assert weighted_average_cost(history=[_s("0", "5")]) is None

    def test_zero_quantity_receipt_keeps_its_cost(self):
        assert weighted_average_cost(history=[], receipt=_s("0", "7.50")) == Decimal("7.50")

    def test_decimal_places_configurable(self):
        cost = weighted_average_cost(
            history=[_s("3", "1")],
            receipt=_s("1", "2"),
            decimal_places=4,
        )

        assert cost == Decimal("1.2500")

    def test_idempotent(self):
        history = [_s("7", "3.33"), _s("2", "4.10")]

        assert weighted_average_cost(history=history) == weighted_average_cost(history=history)

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            weighted_average_cost(history=[], window=0)
