"""
Exchange Connectors Package

This package contains individual exchange data sources.
Each exchange (Kucoin, Bitfinex) has its own subfolder with:
- api_client.py: REST API logic
- ws_client.py / messages.py: WebSocket streaming logic (streaming exchanges only)
- __init__.py: The DataSource implementation

The modular design allows adding new exchanges without modifying existing code.
"""
