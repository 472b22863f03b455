"""
Services Package

In-process plumbing around the data sources:
- event_bus.py: asyncio pub/sub the HTTP layer streams from
- producers.py: Producer implementations the data sources emit to
"""
