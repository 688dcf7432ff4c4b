"""
Spatial adjacency graph - BLOCK 2

Queen contiguity between area polygons, built once from a reference year
and reused for every year and every model (boundaries are assumed fixed).
The graph is persisted as a GAL file so later steps can reload it.
"""
import warnings
from pathlib import Path
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from libpysal import io as psio
from libpysal.weights import Queen, W
from scipy.sparse.csgraph import connected_components


def _with_sorted_order(w: W) -> W:
    """Rebuild `w` with a sorted id order (binary weights)."""
    ids = sorted(w.neighbors.keys())
    neighbors = {i: list(w.neighbors[i]) for i in ids}
    return W(neighbors, id_order=ids, silence_warnings=True)


def build_queen_graph(
    gdf: pd.DataFrame,
    id_col: str = 'area_id',
    year: Optional[int] = None,
    year_col: str = 'year'
) -> W:
    """
    Build a queen-contiguity graph from area polygons.

    Args:
        gdf: GeoDataFrame with one polygon per area (or per area-year)
        id_col: Area identifier column
        year: Reference year; if given, only that year's polygons are used
        year_col: Year column name

    Returns:
        libpysal W with binary weights, id_order = sorted area ids
    """
    ref = gdf
    if year is not None:
        ref = gdf[gdf[year_col] == year]
        if len(ref) == 0:
            raise ValueError(f"No polygons for reference year {year}")

    if ref[id_col].duplicated().any():
        raise ValueError(
            f"Area ids in '{id_col}' are not unique; pass a reference year"
        )

    ref = ref.set_index(id_col).sort_index()
    w = Queen.from_dataframe(ref, use_index=True, silence_warnings=True)
    w = _with_sorted_order(w)

    if w.islands:
        warnings.warn(f"Adjacency graph has {len(w.islands)} island(s): {w.islands[:10]}")

    return w


def graph_from_neighbors(neighbors: Dict[Hashable, Iterable[Hashable]]) -> W:
    """
    Build a graph from an explicit neighbor mapping.

    Links are symmetrised, so listing each edge once is enough.
    """
    sym: Dict[Hashable, set] = {k: set() for k in neighbors}
    for node, nbrs in neighbors.items():
        for nb in nbrs:
            if nb == node:
                continue
            sym.setdefault(nb, set())
            sym[node].add(nb)
            sym[nb].add(node)
    ids = sorted(sym)
    return W({i: sorted(sym[i]) for i in ids}, id_order=ids, silence_warnings=True)


def write_graph(w: W, path: str) -> Path:
    """Write the graph to a GAL file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    f = psio.open(str(path), 'w')
    try:
        f.write(w)
    finally:
        f.close()
    return path


def read_graph(path: str, id_type: Callable = str) -> W:
    """
    Read a GAL file written by `write_graph`.

    GAL stores ids as text; `id_type` converts them back (e.g. int).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Graph file not found: {path}")

    f = psio.open(str(path), 'r')
    try:
        raw = f.read()
    finally:
        f.close()

    neighbors = {
        id_type(k): [id_type(v) for v in vs]
        for k, vs in raw.neighbors.items()
    }
    return _with_sorted_order(W(neighbors, silence_warnings=True))


def graph_to_edges(w: W) -> Tuple[np.ndarray, np.ndarray]:
    """
    Undirected edge list for the ICAR prior.

    Returns:
        (node1, node2), 1-based positions in w.id_order with node1 < node2
    """
    pos = {area: i for i, area in enumerate(w.id_order)}
    node1: List[int] = []
    node2: List[int] = []
    for area in w.id_order:
        i = pos[area]
        for nb in w.neighbors[area]:
            j = pos[nb]
            if i < j:
                node1.append(i + 1)
                node2.append(j + 1)
    return np.asarray(node1, dtype=int), np.asarray(node2, dtype=int)


def component_labels(w: W) -> np.ndarray:
    """1-based connected-component label per node (in w.id_order)."""
    _, labels = connected_components(w.sparse, directed=False)
    return labels.astype(int) + 1
