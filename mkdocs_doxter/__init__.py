"""
mkdocs-doxter — C API Documentation for MkDocs.

Scans C headers and sources for top-level declarations and the doc
comments in front of them, and renders them as browsable API reference
pages in MkDocs, with cross-referencing and an A-Z symbol index.
"""

__version__ = "0.3.0"
