"""Dairycart product catalog.

Stores product roots with their options and values, and materializes the
concrete product variants implied by them.
"""

__version__ = "0.1.0"
