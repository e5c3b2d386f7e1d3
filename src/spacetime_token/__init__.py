"""manage named SpacetimeDB token profiles."""
__version__ = "0.1.0"
