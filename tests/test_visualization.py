"""Tests for maps, posterior plots and table output."""
import matplotlib
matplotlib.use('Agg')

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
from scipy.integrate import trapezoid
from shapely.geometry import box

from src.evaluation.descriptive import categorize_observed
from src.models.specs import ModelSpec
from src.visualization.maps import (
    diverging_norm,
    join_polygons,
    plot_exceedance_map,
    plot_lisa_map,
    plot_observed_category_map,
    plot_relative_risk_map,
    save_figure_with_description,
)
from src.visualization.posterior import density_curve, plot_posterior_densities
from src.visualization.tables import save_table


@pytest.fixture
def polygons():
    return gpd.GeoDataFrame(
        {'area_id': [1, 2, 3, 4],
         'geometry': [box(0, 0, 1, 1), box(1, 0, 2, 1), box(0, 1, 1, 2), box(1, 1, 2, 2)]},
        geometry='geometry'
    )


class TestMaps:
    """Tests for the choropleth helpers."""

    def test_join_polygons_long_format(self, polygons, toy_observations):
        joined = join_polygons(polygons, toy_observations[['area_id', 'year', 'smr']])
        assert len(joined) == 8
        assert isinstance(joined, gpd.GeoDataFrame)

    def test_lisa_map_saved(self, tmp_path, polygons):
        lisa = pd.DataFrame({
            'area_id': [1, 2, 3, 4],
            'year': [2019] * 4,
            'category': ['High-High', 'Low-Low', 'Not significant', 'High-Low'],
        })
        fig = plot_lisa_map(join_polygons(polygons, lisa))
        png = save_figure_with_description(fig, tmp_path / "lisa", "LISA", "Clusters")
        assert png.exists()
        assert (tmp_path / "lisa.txt").read_text().startswith("FIGURE: LISA")

    def test_observed_and_relative_risk_maps(self, polygons, toy_observations, fake_engine,
                                             full_graph):
        observed = categorize_observed(toy_observations)
        fig = plot_observed_category_map(join_polygons(polygons, observed))
        assert len([ax for ax in fig.axes if ax.get_visible()]) >= 2

        fit = fake_engine.fit(ModelSpec('bym'), toy_observations, full_graph)
        fig = plot_relative_risk_map(join_polygons(polygons, fit.relative_risk))
        # two year panels plus the colorbar
        assert len(fig.axes) == 3


class TestColourNorms:
    """Tests for the diverging colour scales."""

    def test_relative_risk_centred_at_one(self):
        norm = diverging_norm(pd.Series([0.6, 1.0, 1.8]))
        assert norm.vcenter == 1.0
        assert norm(1.0) == pytest.approx(0.5)

    def test_limits_widened_around_centre(self):
        """All risks above 1 still leave room below the centre."""
        norm = diverging_norm(pd.Series([1.2, 1.5]))
        assert norm.vmin < 1.0 < norm.vmax

    def test_exceedance_map_uses_probability_scale(self, polygons, toy_observations,
                                                   fake_engine, full_graph):
        """High exceedance probabilities land at the top of the scale."""
        fit = fake_engine.fit(ModelSpec('bym'), toy_observations, full_graph)
        fig = plot_exceedance_map(join_polygons(polygons, fit.relative_risk))

        norm = fig.axes[0].collections[0].norm
        assert (norm.vmin, norm.vcenter, norm.vmax) == (0.0, 0.5, 1.0)
        scaled = norm(np.array([0.02, 0.5, 0.99]))
        np.testing.assert_allclose(scaled, [0.02, 0.5, 0.99])


class TestPosterior:
    """Tests for posterior density plots."""

    def test_density_integrates_to_about_one(self):
        draws = np.random.default_rng(2).normal(size=2000)
        grid, dens = density_curve(draws)
        assert trapezoid(dens, grid) == pytest.approx(1.0, abs=0.05)

    def test_constant_draws(self):
        grid, dens = density_curve(np.ones(50))
        assert np.all(dens == 0)

    def test_posterior_grid(self, fake_engine, toy_observations, full_graph):
        spec = ModelSpec('bym_cov', covariates=('poverty',))
        fit = fake_engine.fit(spec, toy_observations, full_graph)
        fig = plot_posterior_densities(fit)
        titles = [ax.get_title() for ax in fig.axes if ax.get_visible()]
        assert set(titles) == set(fit.draws)


def test_save_table(tmp_path):
    table = pd.DataFrame({'dic': [10.123456, 12.5]}, index=pd.Index(['bym', 'bym_cov'], name='model'))
    paths = save_table(table, tmp_path / "comparison", title="Model comparison")
    html = paths['html'].read_text()
    assert "<h3>Model comparison</h3>" in html
    assert "10.123" in html
    reloaded = pd.read_csv(paths['csv'], index_col='model')
    assert list(reloaded.index) == ['bym', 'bym_cov']
