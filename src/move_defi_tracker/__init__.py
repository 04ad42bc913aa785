"""Movement Network DeFi position detection and valuation."""

__version__ = "0.1.0"
