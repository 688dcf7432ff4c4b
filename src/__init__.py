# Tuberculosis Spatio-Temporal Analysis
"""
Spatio-temporal Bayesian analysis of tuberculosis notifications.
Descriptive statistics, spatial autocorrelation and a comparison of ten
Besag-York-Mollie space-time models fitted with Stan.

Project Structure:
    src/
    ├── common/        - Shared utilities (paths)
    ├── data/          - BLOCK 1: Data loading and cleaning
    ├── spatial/       - BLOCK 2: Adjacency graph and Moran's I / LISA
    ├── models/        - BLOCK 3: Model specifications and the Stan engine
    ├── evaluation/    - BLOCK 4: Descriptives, criteria, CV, model comparison
    └── visualization/ - Maps, posterior densities, tables
"""

__version__ = "0.1.0"
__author__ = "TB Spatial Epidemiology Team"
