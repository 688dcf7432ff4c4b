"""Bayesian BYM space-time models fitted with Stan."""
