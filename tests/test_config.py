"""Tests for configuration loading and output locations."""
import pytest
import yaml

from src.config import get_data_path, get_project_root, load_config, output_dirs


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        cfg = load_config()
        assert cfg['mcmc']['n_chains'] == 4
        assert cfg['cv']['group_sizes'] == [3, 5, 10]
        assert cfg['data']['processed']['areas'].endswith('areas.gpkg')

    def test_run_config_merged_over_defaults(self, tmp_path):
        """A partial run config only changes the keys it names."""
        path = tmp_path / "quick.yaml"
        path.write_text(yaml.safe_dump({
            'mcmc': {'n_chains': 2, 'n_samples': 200},
            'cv': {'group_sizes': [3]},
        }))
        cfg = load_config(str(path))
        assert cfg['mcmc']['n_chains'] == 2
        assert cfg['mcmc']['n_samples'] == 200
        assert cfg['mcmc']['n_warmup'] == 1000
        assert cfg['cv']['group_sizes'] == [3]
        assert cfg['priors']['default']['rate'] == pytest.approx(0.0005)

    def test_empty_run_config_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)) == load_config()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))


class TestPaths:
    """Tests for data and output paths."""

    def test_relative_paths_resolve_under_root(self):
        path = get_data_path("data/processed/observations.parquet")
        assert path == get_project_root() / "data" / "processed" / "observations.parquet"

    def test_absolute_path_unchanged(self, tmp_path):
        assert get_data_path(str(tmp_path)) == tmp_path

    def test_output_dirs_created(self, tmp_path):
        cfg = {'output': {kind: str(tmp_path / "out" / kind)
                          for kind in ('tables', 'figures', 'fits')}}
        dirs = output_dirs(cfg)
        assert set(dirs) == {'tables', 'figures', 'fits'}
        assert all(d.is_dir() for d in dirs.values())
        assert dirs['fits'] == tmp_path / "out" / "fits"
