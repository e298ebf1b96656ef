"""
tlmquery: spacecraft telemetry retrieval for orbit and ground-test data.

This package provides:
- Query synthesis for the BigQuery telemetry warehouse (orbit)
- Schema probing and join synthesis over per-test-run SQLite files (ground)
- Parallel fetch with per-source failure isolation
- Row-to-column transposition into one time-aligned response
"""

__version__ = "0.1.0"
