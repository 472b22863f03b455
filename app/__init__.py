"""
FastAPI Application Package

Hosts the ingestion service: it starts the data sources on startup, stops
them on shutdown, and exposes health and a live WebSocket feed of the
normalized records.
"""
