"""
FastAPI Application - Exchange Ticker Ingestion Service

Runs the configured data sources for the lifetime of the process and exposes
their health plus a live feed of the normalized records.

Supported Exchanges:
    - Kucoin (REST polling)
    - Bitfinex (WebSocket tickers + REST order books)

Usage:
    uvicorn app.main:app --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse

from core.config import settings, validate_configuration
from core.logging import logger
from core.source_manager import SourceManager
from services.event_bus import bus
from services.producers import build_producer


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    # Startup
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        await manager.start_all()
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("=== Shutting Down ===")
    try:
        await manager.stop_all()
        logger.info("=== Shutdown Complete ===")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Exchange Ticker Ingestion",
    description=(
        "Ingests tickers and order books from Kucoin and Bitfinex and hands "
        "normalized batches to a pluggable producer.\n\n"
        "## REST Endpoints\n"
        "- `GET /` - Liveness probe (plain text `OK`)\n"
        "- `GET /health` - State of every data source\n"
        "- `GET /sources` - Configured data sources\n\n"
        "## WebSocket Streams\n"
        "- `ws://{host}/ws/tickers` - Normalized ticker records as they are emitted\n"
        "  - Query: `exchange` keeps one exchange only (e.g., `?exchange=kucoin`)\n"
        "\n"
        "All WebSocket messages are JSON objects using our Pydantic schemas.\n"
        "Clients should handle reconnects on disconnect."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

producer = build_producer(settings.producer_backend, settings.producer_topic)
manager = SourceManager(producer=producer)  # Global source manager


# ============================================
# System Endpoints
# ============================================

@app.get("/", response_class=PlainTextResponse, tags=["System"])
async def root():
    """Liveness probe."""
    return "OK"


@app.get("/health", tags=["System"])
async def health_check():
    """State of every data source. Degraded as soon as one is not running."""
    return {
        "status": "healthy" if manager.is_healthy() else "degraded",
        "sources": manager.status_all()
    }


@app.get("/sources", tags=["System"])
async def list_sources():
    """List configured data sources."""
    return {"sources": manager.list_sources()}


# ============================================
# WebSocket Endpoints
# ============================================

def matches_exchange(event: Dict[str, Any], exchange: Optional[str]) -> bool:
    """Per-connection filter on the payload's exchange (case-insensitive)."""
    if not exchange:
        return True
    return str(event.get("exchange", "")).lower() == exchange.lower()


@app.websocket("/ws/tickers")
async def websocket_tickers(
    websocket: WebSocket,
    exchange: Optional[str] = Query(default=None, description="Only forward records of this exchange")
):
    """
    Live stream of normalized ticker records.

    Example:
        ws://localhost:8000/ws/tickers?exchange=bitfinex
    """
    await websocket.accept()
    logger.info(f"WS connected: tickers (exchange={exchange or 'all'})")
    topic = settings.producer_topic
    queue = await bus.subscribe(topic)
    try:
        while True:
            event = await queue.get()
            if not matches_exchange(event, exchange):
                continue
            await websocket.send_json(event)
    except WebSocketDisconnect:
        logger.info("WS disconnected: tickers")
    except Exception as e:
        logger.error(f"WS error tickers: {e}")
        try:
            await websocket.close(code=1011, reason="Internal error")
        except RuntimeError:
            # Already closed by the client
            pass
    finally:
        await bus.unsubscribe(topic, queue)
        logger.info("WS ended: tickers")


# ============================================
# Error Handlers
# ============================================

@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Handle 404 errors."""
    return JSONResponse(status_code=404, content={"detail": "Not found", "path": str(request.url)})


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal error: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
