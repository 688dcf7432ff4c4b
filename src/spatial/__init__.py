"""Spatial module - adjacency graph and spatial autocorrelation."""

from src.spatial.adjacency import (
    build_queen_graph,
    graph_from_neighbors,
    write_graph,
    read_graph,
    graph_to_edges,
    component_labels
)

from src.spatial.autocorrelation import (
    NO_DATA,
    MISMATCH,
    LISA_CATEGORIES,
    MoranResult,
    MoranDiagnostic,
    global_moran,
    global_moran_by_year,
    moran_table,
    classify_quadrants,
    local_moran,
    local_moran_by_year
)

__all__ = [
    # Adjacency
    'build_queen_graph',
    'graph_from_neighbors',
    'write_graph',
    'read_graph',
    'graph_to_edges',
    'component_labels',
    # Autocorrelation
    'NO_DATA',
    'MISMATCH',
    'LISA_CATEGORIES',
    'MoranResult',
    'MoranDiagnostic',
    'global_moran',
    'global_moran_by_year',
    'moran_table',
    'classify_quadrants',
    'local_moran',
    'local_moran_by_year'
]
