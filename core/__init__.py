"""
Core Package

Contains the exchange-agnostic core logic including:
- DataSource / Producer: Contracts every exchange adapter and every sink follow
- SourceManager: Builds the configured data sources and runs their lifecycle
- RetryPolicy: Fixed-attempt, fixed-delay retry for every network call
- Schemas: Pydantic models for normalized data structures (tickers, order books, payloads)

This layer keeps each exchange module limited to its own transport.
"""
