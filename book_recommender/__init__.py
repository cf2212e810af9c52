"""Book recommendations and five-criteria ratings."""

__version__ = "1.0.0"
