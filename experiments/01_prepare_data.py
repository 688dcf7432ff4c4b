#!/usr/bin/env python3
"""
Experiment 01: Prepare Data and Adjacency Graph

This script:
1. Loads the area-year geospatial file
2. Cleans it into canonical observation records
   (density per 1000, sentinel zeros restored, canonical names)
3. Builds the queen-contiguity graph from the reference year and writes it
   to a GAL file, then re-reads it so every later step uses the same graph
4. Attaches model indices and SMR
5. Writes observation records, reference polygons and descriptive tables

Outputs:
  - data/processed/observations.parquet
  - data/processed/adjacency.gal
  - data/processed/areas.gpkg
  - results/tables/notification_rates.{html,csv}
  - results/tables/descriptive_by_year.{html,csv}
"""
import sys
import argparse
from pathlib import Path

import pandas as pd

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from src.config import load_config, get_data_path, output_dirs
from src.data.loader import (
    load_geodata,
    prepare_observations,
    add_index_columns,
    compute_smr,
    save_observations
)
from src.evaluation.descriptive import notification_rates, summarize_covariates
from src.spatial.adjacency import build_queen_graph, write_graph, read_graph
from src.visualization.tables import save_table


def main():
    parser = argparse.ArgumentParser(description="Prepare TB observations and adjacency graph")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    args = parser.parse_args()

    cfg = load_config(str(get_data_path(args.config)))
    data_cfg = cfg['data']

    print("=" * 60)
    print("TB SPATIO-TEMPORAL ANALYSIS - DATA PREPARATION")
    print("=" * 60)

    raw_path = get_data_path(data_cfg['raw']['geodata'])
    print(f"\nLoading geodata from {raw_path}...")
    gdf = load_geodata(str(raw_path), layer=data_cfg['raw'].get('layer'))
    print(f"  → {len(gdf)} rows, {len(gdf.columns)} columns")

    obs = prepare_observations(
        gdf,
        columns=data_cfg.get('columns'),
        zero_sentinel=data_cfg.get('zero_sentinel'),
        density_divisor=data_cfg.get('density_divisor', 1000),
        recompute_expected=data_cfg.get('recompute_expected', False)
    )
    years = sorted(obs['year'].unique())
    print(f"  → {obs['area_id'].nunique()} areas, years {years[0]}-{years[-1]}")

    # Adjacency graph from the reference year, persisted and re-read
    ref_year = cfg['spatial'].get('reference_year') or years[-1]
    print(f"\nBuilding queen contiguity graph (reference year {ref_year})...")
    graph = build_queen_graph(obs, id_col='area_id', year=ref_year)
    graph_path = write_graph(graph, get_data_path(cfg['spatial']['graph_file']))
    id_type = int if pd.api.types.is_integer_dtype(obs['area_id']) else str
    graph = read_graph(str(graph_path), id_type=id_type)
    print(f"  → {graph.n} nodes, {int(graph.s0 // 2)} edges, islands: {len(graph.islands)}")
    print(f"  → saved to {graph_path}")

    areas = obs[obs['year'] == ref_year][['area_id', 'geometry']]
    areas_path = get_data_path(data_cfg['processed']['areas'])
    areas_path.parent.mkdir(parents=True, exist_ok=True)
    areas.to_file(areas_path, driver="GPKG")

    obs = add_index_columns(obs, graph.id_order)
    obs = compute_smr(obs, zero_as_missing=cfg.get('smr', {}).get('zero_as_missing', False))

    out_path = save_observations(obs, get_data_path(data_cfg['processed']['observations']))
    print(f"\nSaved {len(obs)} observation records to {out_path}")

    # Descriptive tables
    print("\n" + "=" * 60)
    print("DESCRIPTIVE STATISTICS")
    print("=" * 60)
    tables_dir = output_dirs(cfg)['tables']
    rates = notification_rates(obs)
    print(rates.round(2).to_string(index=False))
    save_table(rates, tables_dir / "notification_rates", title="Notification rate per 100,000",
               index=False)
    save_table(summarize_covariates(obs), tables_dir / "descriptive_by_year",
               title="Descriptive statistics by year", index=False)


if __name__ == "__main__":
    main()
