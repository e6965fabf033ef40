"""scanlookup: barcode scanning, product lookup providers and the lookup proxy."""

__version__ = "1.0.0"
