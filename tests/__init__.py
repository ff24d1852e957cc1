"""Test suite for PlayerValue-Pro.

This package contains hermetic tests following the pytest framework.
Tests are structured to mirror the src/ package hierarchy for discoverability.

Testing Philosophy:
    - Use pytest-mock for browser isolation and in-memory collections for MongoDB
    - Focus coverage on concurrency bounds, exclusion handling and upsert idempotence
    - Avoid external dependencies - all I/O should be mocked
"""
