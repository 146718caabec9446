"""Monte Carlo study of right-censoring effects on Cox PH estimates."""

__version__ = "0.1.0"
