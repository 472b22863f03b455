"""
Test Suite

Contains unit tests for the ingestion service.

Structure:
- tests/unit/: Tests for individual components (retry, schemas, clients, data sources, app)

Uses pytest with pytest-asyncio for testing async functionality. No test
touches the network: HTTP clients and streams are replaced with fakes.
"""
