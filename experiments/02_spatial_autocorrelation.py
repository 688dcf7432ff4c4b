#!/usr/bin/env python3
"""
Experiment 02: Spatial Autocorrelation of SMR

This script:
1. Loads observation records and the adjacency graph
2. Computes global Moran's I per year (years with no rows or a length
   mismatch are reported and skipped, not fatal)
3. Computes Local Moran's I and the hotspot class per area-year

Outputs:
  - results/tables/global_moran.{html,csv}
  - results/tables/lisa_clusters.csv
"""
import sys
import argparse
from pathlib import Path

import pandas as pd

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from src.config import load_config, get_data_path, output_dirs
from src.data.loader import load_observations
from src.spatial.adjacency import read_graph
from src.spatial.autocorrelation import (
    global_moran_by_year,
    moran_table,
    local_moran_by_year
)
from src.visualization.tables import save_table


def main():
    parser = argparse.ArgumentParser(description="Moran's I and LISA on SMR")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    args = parser.parse_args()

    cfg = load_config(str(get_data_path(args.config)))
    lisa_cfg = cfg.get('lisa', {})

    print("=" * 60)
    print("SPATIAL AUTOCORRELATION (SMR)")
    print("=" * 60)

    obs = load_observations(get_data_path(cfg['data']['processed']['observations']))
    id_type = int if pd.api.types.is_integer_dtype(obs['area_id']) else str
    graph = read_graph(str(get_data_path(cfg['spatial']['graph_file'])), id_type=id_type)
    print(f"  → {len(obs)} rows, {graph.n} graph nodes")

    outcomes = global_moran_by_year(obs, graph, value_col='smr')
    table = moran_table(outcomes)
    print("\nGlobal Moran's I:")
    print(table.round(4).to_string(index=False))

    tables_dir = output_dirs(cfg)['tables']
    save_table(table.set_index('year'), tables_dir / "global_moran", title="Global Moran's I by year",
               decimals=4)

    print("\nLocal Moran's I...")
    lisa = local_moran_by_year(
        obs, graph,
        value_col='smr',
        alpha=lisa_cfg.get('alpha', 0.05),
        permutations=lisa_cfg.get('permutations', 999),
        seed=lisa_cfg.get('seed', 42)
    )
    counts = lisa.groupby(['year', 'category'], observed=False).size().unstack(fill_value=0)
    print(counts.to_string())

    lisa_path = tables_dir / "lisa_clusters.csv"
    lisa.to_csv(lisa_path, index=False)
    save_table(counts, tables_dir / "lisa_counts", title="LISA clusters per year", decimals=0)
    print(f"  ✓ {lisa_path.name}")


if __name__ == "__main__":
    main()
