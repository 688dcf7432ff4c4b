"""Visualization module - maps, posterior densities and tables."""
