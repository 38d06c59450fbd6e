"""
Re-index Audit

Metadata fidelity audit for search-index re-indexing: compares every
document of a freshly re-indexed archive against the previously indexed
copy and reports field differences, text anomalies and documents that
were lost or added.
"""

__version__ = "1.0.0"
