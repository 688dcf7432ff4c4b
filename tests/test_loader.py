"""Tests for data preparation."""
import numpy as np
import pandas as pd
import pytest

from src.data.loader import (
    add_index_columns,
    compute_expected,
    compute_smr,
    prepare_observations,
    save_observations,
    load_observations,
)


class TestPrepareObservations:
    """Tests for prepare_observations."""

    def test_renames_to_canonical_columns(self, raw_frame, column_map):
        """Raw column names are mapped to canonical names."""
        obs = prepare_observations(raw_frame, columns=column_map)
        for col in ['area_id', 'year', 'observed', 'expected', 'population',
                    'pop_density', 'poverty']:
            assert col in obs.columns
        assert 'cases' not in obs.columns

    def test_sentinel_mapped_back_to_zero(self, raw_frame, column_map):
        """The small sentinel value becomes a true zero count."""
        obs = prepare_observations(raw_frame, columns=column_map, zero_sentinel=0.0001)
        row = obs[(obs['area_id'] == 2) & (obs['year'] == 2019)].iloc[0]
        assert row['observed'] == 0
        assert (obs['observed'] == 0).sum() == 2

    def test_density_rescaled_per_thousand(self, raw_frame, column_map):
        """Population density is divided by 1000."""
        obs = prepare_observations(raw_frame, columns=column_map)
        row = obs[(obs['area_id'] == 3) & (obs['year'] == 2019)].iloc[0]
        assert row['pop_density'] == pytest.approx(3.5)

    def test_input_not_modified(self, raw_frame, column_map):
        """The raw frame is left untouched."""
        before = raw_frame.copy()
        prepare_observations(raw_frame, columns=column_map)
        pd.testing.assert_frame_equal(raw_frame, before)

    def test_missing_columns_raise(self, raw_frame):
        """Without the column map required canonical columns are missing."""
        with pytest.raises(KeyError) as exc_info:
            prepare_observations(raw_frame, columns={})
        assert 'observed' in str(exc_info.value)

    def test_duplicate_area_year_raises(self, raw_frame, column_map):
        """One record per (area, year) is enforced."""
        dup = pd.concat([raw_frame, raw_frame.iloc[[0]]], ignore_index=True)
        with pytest.raises(ValueError, match="Duplicate"):
            prepare_observations(dup, columns=column_map)

    def test_negative_counts_raise(self, raw_frame, column_map):
        """Observed counts must be non-negative."""
        bad = raw_frame.copy()
        bad.loc[0, 'cases'] = -3
        with pytest.raises(ValueError, match="non-negative"):
            prepare_observations(bad, columns=column_map)

    def test_expected_standardized_when_absent(self, raw_frame, column_map):
        """Inputs without expected counts get them by indirect standardization."""
        raw = raw_frame.drop(columns='expected_cases')
        obs = prepare_observations(raw, columns=column_map)
        assert obs['expected'].sum() == pytest.approx(33.0)
        rate = 33.0 / raw_frame['population'].sum()
        np.testing.assert_allclose(obs['expected'], obs['population'] * rate)

    def test_recompute_replaces_given_expected(self, raw_frame, column_map):
        kept = prepare_observations(raw_frame, columns=column_map)
        redone = prepare_observations(raw_frame, columns=column_map, recompute_expected=True)
        assert redone['expected'].sum() == pytest.approx(float(redone['observed'].sum()))
        assert not np.allclose(kept['expected'], redone['expected'])


class TestIndexColumns:
    """Tests for add_index_columns."""

    def test_indices_follow_graph_and_years(self, raw_frame, column_map):
        """area_idx follows the graph order, time_idx the sorted years."""
        obs = prepare_observations(raw_frame, columns=column_map)
        indexed = add_index_columns(obs, [4, 3, 2, 1])

        first = indexed.iloc[0]
        assert first['area_id'] == 4
        assert first['area_idx'] == 1
        assert first['time_idx'] == 1
        assert set(indexed['time_idx']) == {1, 2}
        assert list(indexed['interaction_idx']) == list(range(1, 9))

    def test_unknown_area_raises(self, raw_frame, column_map):
        """Areas missing from the graph are rejected."""
        obs = prepare_observations(raw_frame, columns=column_map)
        with pytest.raises(ValueError, match="missing from adjacency graph"):
            add_index_columns(obs, [1, 2, 3])


class TestSmrAndExpected:
    """Tests for compute_smr and compute_expected."""

    def test_smr_keeps_zero_counts_by_default(self, toy_observations):
        """Zero observed counts give SMR 0, not missing."""
        zero = toy_observations[toy_observations['observed'] == 0]
        assert (zero['smr'] == 0).all()

    def test_smr_zero_as_missing_flag(self, toy_observations):
        """The legacy convention maps zero counts to a missing SMR, with a warning."""
        with pytest.warns(UserWarning, match="zero observed counts"):
            obs = compute_smr(toy_observations, zero_as_missing=True)
        zero = obs[obs['observed'] == 0]
        assert zero['smr'].isna().all()

    def test_smr_missing_when_expected_zero(self):
        """Division by a zero expectation yields NaN, not inf."""
        df = pd.DataFrame({'observed': [3, 1], 'expected': [0.0, 2.0]})
        obs = compute_smr(df)
        assert np.isnan(obs['smr'].iloc[0])
        assert obs['smr'].iloc[1] == pytest.approx(0.5)

    def test_expected_sums_to_observed(self, toy_observations):
        """Indirect standardization preserves the total count."""
        obs = compute_expected(toy_observations.drop(columns='expected'))
        assert obs['expected'].sum() == pytest.approx(float(toy_observations['observed'].sum()))

    def test_expected_by_year(self, toy_observations):
        """Year-specific reference rates preserve each year's total."""
        obs = compute_expected(toy_observations.drop(columns='expected'), by=['year'])
        totals = obs.groupby('year')[['observed', 'expected']].sum()
        np.testing.assert_allclose(totals['expected'], totals['observed'].astype(float))


def test_observations_parquet_round_trip(tmp_path, toy_observations):
    """Observation records survive a parquet round trip."""
    path = save_observations(toy_observations, tmp_path / "obs.parquet")
    loaded = load_observations(path)
    assert len(loaded) == len(toy_observations)
    assert list(loaded['observed']) == list(toy_observations['observed'])


def test_load_observations_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_observations(tmp_path / "nope.parquet")
