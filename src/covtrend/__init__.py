"""covtrend: coverage aggregation, history and trend graphs for CI."""

__version__ = "0.4.0"
