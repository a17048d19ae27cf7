"""
Property-based tests for the weighted-average cost formula.
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from shopfloor_engines.costing import CostSample, weighted_average_cost

costs = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("9999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
samples = st.builds(
    CostSample,
    qty=st.integers(min_value=1, max_value=500).map(Decimal),
    unit_cost=costs,
)


class TestWeightedAverageProperties:

    @given(history=st.lists(samples, max_size=15), receipt=samples)
    @settings(max_examples=200, deadline=None)
    def test_result_between_cheapest_and_dearest(self, history, receipt):
        weighed = history[:10] + [receipt]

        cost = weighted_average_cost(history=history, receipt=receipt)

        assert min(s.unit_cost for s in weighed) <= cost <= max(s.unit_cost for s in weighed)
        assert cost == cost.quantize(Decimal("0.01"))

    @given(
        history=st.lists(samples, min_size=10, max_size=10),
        older=st.lists(samples, min_size=1, max_size=5),
    )
    @settings(max_examples=100, deadline=None)
    def test_samples_beyond_window_ignored(self, history, older):
        assert weighted_average_cost(history=history) == weighted_average_cost(
            history=history + older
        )

    @given(cost=costs, qtys=st.lists(st.integers(min_value=1, max_value=100), min_size=1, max_size=10))
    @settings(max_examples=100, deadline=None)
    def test_uniform_cost_is_preserved(self, cost, qtys):
        history = [CostSample(Decimal(q), cost) for q in qtys]

        assert weighted_average_cost(history=history) == cost

    @given(history=st.lists(samples, max_size=12))
    @settings(max_examples=100, deadline=None)
    def test_non_positive_history_samples_never_count(self, history):
        padded = [CostSample(Decimal("0"), Decimal("5000")), *history]
        padded.insert(len(padded) // 2, CostSample(Decimal("-4"), Decimal("1")))

        assert weighted_average_cost(history=padded) == weighted_average_cost(history=history)
