"""
Tests for historical summaries and benchmark fallbacks.
"""
import math

import numpy as np
import pandas as pd
import pytest

from core.errors import ConfigurationError
from core.schema import AssetReturnSeries
from distributions.benchmarks import (
    benchmark_allocation,
    benchmark_correlation_matrix,
    benchmarks_to_dataframe,
    get_benchmark,
)
from distributions.historical import (
    allocations_from_history,
    annual_returns_from_prices,
    derive_correlation_matrix,
    summarize_return_series,
    summaries_to_dataframe,
)


@pytest.mark.unit
class TestHistoricalSummaries:

    def test_summary(self):
        summaries = summarize_return_series([AssetReturnSeries.from_values("VTI", [0.1, 0.2, 0.3])])
        s = summaries["VTI"]
        assert s.mean == pytest.approx(0.2)
        assert s.std == pytest.approx(0.1)
        assert (s.min_val, s.max_val, s.n_observations) == (0.1, 0.3, 3)
        assert "VTI" in repr(s)

    def test_short_series_gets_nan(self):
        s = summarize_return_series([AssetReturnSeries.from_values("NEW", [0.05])])["NEW"]
        assert s.mean == pytest.approx(0.05)
        assert math.isnan(s.std)

    def test_frame(self):
        frame = summaries_to_dataframe(
            summarize_return_series([AssetReturnSeries.from_values("VTI", [0.1, 0.2])])
        )
        assert list(frame["Asset"]) == ["VTI"]

    def test_unequal_lengths_refused(self):
        with pytest.raises(ConfigurationError):
            derive_correlation_matrix([
                AssetReturnSeries.from_values("A", [0.1, 0.2, 0.3]),
                AssetReturnSeries.from_values("B", [0.1, 0.2]),
            ])

    def test_returns_from_prices(self):
        prices = pd.DataFrame({"A": [100.0, 110.0, 121.0], "B": [50.0, 50.0, 55.0]})
        series = annual_returns_from_prices(prices)
        assert [s.asset_id for s in series] == ["A", "B"]
        np.testing.assert_allclose(series[0].returns, [0.1, 0.1])
        np.testing.assert_allclose(series[1].returns, [0.0, 0.1])

    def test_missing_prices_are_dropped(self):
        prices = pd.DataFrame({"A": [100.0, None, 120.0], "B": [50.0, 55.0, 60.0]})
        series = annual_returns_from_prices(prices)
        assert len(series[0]) == 1
        assert series[0].returns[0] == pytest.approx(0.2)

    def test_allocations_from_history(self):
        series = [
            AssetReturnSeries.from_values("VTI", [0.1, 0.2, 0.3]),
            AssetReturnSeries.from_values("BND", [0.02, 0.04, 0.03]),
        ]
        allocations = allocations_from_history(series, {"VTI": 0.6, "BND": 0.4}, {"BND": "bond"})
        assert [a.asset_class for a in allocations] == ["equity", "bond"]
        assert allocations[0].resolved_mean == pytest.approx(0.2)


@pytest.mark.unit
class TestBenchmarks:

    def test_lookup(self):
        assert get_benchmark("Equity").mean_return == 0.10
        with pytest.raises(KeyError):
            get_benchmark("crypto")

    def test_allocation(self):
        allocation = benchmark_allocation("BND", "bond", 0.4)
        assert allocation.resolved_mean == 0.05
        assert allocation.resolved_stddev == 0.06
        assert allocation.asset_class == "bond"

    def test_correlation_submatrix(self):
        np.testing.assert_array_equal(
            benchmark_correlation_matrix(["equity", "cash"]),
            [[1.0, 0.0], [0.0, 1.0]],
        )
        np.testing.assert_array_equal(
            benchmark_correlation_matrix(["bond", "cash"]),
            [[1.0, 0.2], [0.2, 1.0]],
        )

    def test_frame(self):
        assert len(benchmarks_to_dataframe()) == 3
