"""strataccess - access control and plan entitlements for strategy planning."""

__version__ = "1.0.0"
