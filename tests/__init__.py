"""
Test Suite for the real-return CAPM workbench

Includes:
- Unit tests for calculations (analysis/tests)
- Adapter tests with mocked HTTP (ingestion/tests)
- Cache tests (storage/tests)
- CLI tests (tests)
"""
