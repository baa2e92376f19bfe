"""
Factor Model Monte Carlo Engine
===============================
Risk and performance estimates for assets with unequal return histories:
- Time-series factor model fitting (LS, DLS, Robust; best-subset selection)
- Joint empirical distribution of factor returns and residuals
- Simulated (backfilled) return series per asset
- Bootstrap standard errors that refit the model on every replicate
- Parallel execution across assets and across bootstrap replicates
"""

__version__ = "1.0.0"
