import asyncio
import json
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from backend import RedisBackend
from constants import APP_VERSION, WS_INTERNAL_ERROR, WS_POLICY_VIOLATION
from logging_config import get_logger, setup_logging
from realtime.collaborators import ChatStore, TokenVerifier
from realtime.errors import AuthError
from realtime.hub import ChatHub
from realtime.registry import Connection
from realtime.tokens import JWTTokenService
from routers.presence import presence_router
from schemas.presence import HealthResponse

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


async def pump_outbound(websocket: WebSocket, connection: Connection):
    """Drain a connection's outbound queue onto its socket, in order."""
    while True:
        event = await connection.outbox.get()
        try:
            await websocket.send_text(json.dumps(event))
        except Exception as e:
            # Socket is gone; the receive loop notices and tears the connection down
            logger.debug(f"Stopped writing to connection {connection.connection_id}: {e}")
            return


async def storage_status(store) -> str:
    ping = getattr(store, "ping", None)
    if ping is None:
        return "unknown"
    return "connected" if await ping() else "unavailable"


def create_app(store: Optional[ChatStore] = None, tokens: Optional[TokenVerifier] = None) -> FastAPI:
    store = store if store is not None else RedisBackend()
    tokens = tokens if tokens is not None else JWTTokenService()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if await storage_status(store) == "unavailable":
            logger.error("Storage is unavailable at startup; live events will fail until it recovers")
        yield
        close = getattr(store, "close", None)
        if close is not None:
            await close()
        logger.info("Application shutdown complete")

    app = FastAPI(lifespan=lifespan)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins
        allow_credentials=True,
        allow_methods=["*"],  # Allow all HTTP methods
        allow_headers=["*"],  # Allow all headers
    )

    app.state.hub = ChatHub(store, tokens)
    app.include_router(presence_router)

    @app.get("/")
    async def root():
        return {
            "status": "Chat realtime service is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": APP_VERSION,
        }

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        hub: ChatHub = request.app.state.hub
        return HealthResponse(
            status="OK",
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=APP_VERSION,
            connections=len(hub.registry),
            storage=await storage_status(hub.store),
        )

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, token: str = None):
        """Live event endpoint.

        Query parameters:
        - token: bearer token issued at login; checked once when the socket opens
        """
        hub: ChatHub = websocket.app.state.hub
        client_host = websocket.client.host if websocket.client else "unknown"
        logger.info(f"WebSocket connection attempt from {client_host}")

        try:
            connection = await hub.connect(token)
        except AuthError as e:
            logger.info(f"WebSocket connection rejected for {client_host}: {e.reason}")
            await websocket.close(code=WS_POLICY_VIOLATION, reason=e.message)
            return
        except Exception as e:
            logger.error(f"Error during WebSocket connection setup from {client_host}: {e}", exc_info=True)
            await websocket.close(code=WS_INTERNAL_ERROR)
            return

        connection_id = connection.connection_id
        writer_task = None
        try:
            await websocket.accept()
            logger.debug(f"WebSocket connection accepted: {connection_id}")
            writer_task = asyncio.create_task(pump_outbound(websocket, connection))

            message_count = 0
            while True:
                data = await websocket.receive_text()
                message_count += 1
                logger.debug(f"Received frame #{message_count} from connection {connection_id}")
                await hub.dispatch(connection_id, data)
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected normally for connection {connection_id}")
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
        finally:
            await hub.disconnect(connection_id)
            if writer_task is not None:
                writer_task.cancel()
                try:
                    await writer_task
                except asyncio.CancelledError:
                    pass
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
