"""Risk register toolkit: spreadsheet upload, ad-hoc filter queries, scoring and persistence."""

__version__ = "0.1.0"
