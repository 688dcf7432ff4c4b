"""Tests for global and local Moran's I."""
import numpy as np
import pandas as pd
import pytest

from src.spatial.autocorrelation import (
    LISA_CATEGORIES,
    MISMATCH,
    NO_DATA,
    MoranDiagnostic,
    MoranResult,
    classify_quadrants,
    global_moran,
    global_moran_by_year,
    local_moran,
    local_moran_by_year,
    moran_table,
)


class TestGlobalMoran:
    """Tests for global Moran's I and its diagnostics."""

    def test_result_fields(self, path_graph):
        """A clustered pattern on a path gives positive I."""
        outcome = global_moran([10.0, 9.0, 1.0, 0.0], path_graph, year=2019)
        assert isinstance(outcome, MoranResult)
        assert outcome.year == 2019
        assert outcome.I > 0
        assert outcome.expected == pytest.approx(-1.0 / 3.0)
        assert 0.0 <= outcome.p_value <= 1.0

    def test_empty_values_is_no_data(self, path_graph):
        outcome = global_moran([], path_graph, year=2019)
        assert isinstance(outcome, MoranDiagnostic)
        assert outcome.reason == NO_DATA

    def test_length_mismatch(self, path_graph):
        outcome = global_moran([1.0, 2.0, 3.0], path_graph, year=2019)
        assert isinstance(outcome, MoranDiagnostic)
        assert outcome.reason == MISMATCH

    def test_by_year_reports_diagnostics_and_continues(self, toy_observations, full_graph):
        """Missing and incomplete years are reported without stopping the loop."""
        partial = toy_observations[
            ~((toy_observations['year'] == 2020) & (toy_observations['area_id'] == 4))
        ]
        with pytest.warns(UserWarning):
            outcomes = global_moran_by_year(partial, full_graph, years=[2019, 2020, 2021])

        assert [o.year for o in outcomes] == [2019, 2020, 2021]
        assert isinstance(outcomes[0], MoranResult)
        assert outcomes[1].reason == MISMATCH
        assert outcomes[2].reason == NO_DATA

    def test_unknown_area_with_matching_row_count(self, toy_observations, full_graph):
        """An area outside the graph is a mismatch even when the row count fits."""
        obs = toy_observations[toy_observations['year'] == 2019].copy()
        obs.loc[obs['area_id'] == 4, 'area_id'] = 99
        with pytest.warns(UserWarning, match="mismatch"):
            outcomes = global_moran_by_year(obs, full_graph)

        assert len(outcomes) == 1
        assert isinstance(outcomes[0], MoranDiagnostic)
        assert outcomes[0].reason == MISMATCH
        assert '99' in outcomes[0].message

    def test_rows_reordered_to_graph_nodes(self, toy_observations, full_graph):
        """Row order does not change the statistic."""
        year = toy_observations[toy_observations['year'] == 2019]
        shuffled = year.iloc[[2, 0, 3, 1]]
        a = global_moran_by_year(year, full_graph)[0]
        b = global_moran_by_year(shuffled, full_graph)[0]
        assert a.I == pytest.approx(b.I)

    def test_missing_smr_treated_as_zero(self, toy_observations, full_graph):
        """NaN SMR values do not produce a diagnostic."""
        obs = toy_observations.copy()
        obs.loc[0, 'smr'] = np.nan
        outcomes = global_moran_by_year(obs, full_graph)
        assert all(isinstance(o, MoranResult) for o in outcomes)
        assert all(np.isfinite(o.I) for o in outcomes)

    def test_moran_table(self, path_graph):
        outcomes = [
            global_moran([10.0, 9.0, 1.0, 0.0], path_graph, 2019),
            MoranDiagnostic(2020, NO_DATA, "No rows"),
        ]
        table = moran_table(outcomes)
        assert list(table['year']) == [2019, 2020]
        assert np.isnan(table.loc[1, 'moran_i'])
        assert table.loc[1, 'diagnostic'] == NO_DATA
        assert pd.isna(table.loc[0, 'diagnostic'])


class TestQuadrants:
    """Tests for the hotspot classification."""

    def test_two_clusters(self, path_graph):
        labels = classify_quadrants(np.array([10, 9, 1, 0]), path_graph, np.zeros(4))
        assert list(labels) == ["High-High", "High-High", "Low-Low", "Low-Low"]

    def test_outliers(self, path_graph):
        labels = classify_quadrants(np.array([10, 0, 0, 0]), path_graph, np.zeros(4))
        assert list(labels) == ["High-Low", "Low-High", "Low-Low", "Low-Low"]

    def test_insignificant_areas(self, path_graph):
        p = np.array([0.01, 0.5, 0.01, 0.5])
        labels = classify_quadrants(np.array([10, 9, 1, 0]), path_graph, p, alpha=0.05)
        assert list(labels) == ["High-High", "Not significant", "Low-Low", "Not significant"]


class TestLocalMoran:
    """Tests for LISA."""

    def test_columns_and_categories(self, path_graph):
        result = local_moran([10.0, 9.0, 1.0, 0.0], path_graph, permutations=99, seed=1)
        assert list(result.columns) == ['area_id', 'local_i', 'p_value', 'category']
        assert list(result['area_id']) == [0, 1, 2, 3]
        assert set(result['category']) <= set(LISA_CATEGORIES)

    def test_alpha_zero_means_nothing_significant(self, path_graph):
        """Permutation p-values are never zero."""
        result = local_moran([10.0, 9.0, 1.0, 0.0], path_graph, alpha=0.0, permutations=99)
        assert (result['category'] == "Not significant").all()

    def test_seed_is_reproducible(self, path_graph):
        a = local_moran([10.0, 9.0, 1.0, 0.0], path_graph, permutations=99, seed=3)
        b = local_moran([10.0, 9.0, 1.0, 0.0], path_graph, permutations=99, seed=3)
        pd.testing.assert_frame_equal(a, b)

    def test_length_mismatch_raises(self, path_graph):
        with pytest.raises(ValueError):
            local_moran([1.0, 2.0], path_graph)

    def test_by_year_covers_every_area_year(self, toy_observations, full_graph):
        result = local_moran_by_year(toy_observations, full_graph, permutations=99)
        assert len(result) == 8
        assert list(result.columns) == ['area_id', 'year', 'local_i', 'p_value', 'category']
        assert list(result['category'].cat.categories) == list(LISA_CATEGORIES)
        assert sorted(result['year'].unique()) == [2019, 2020]
