"""FastAPI application entry point."""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database.DatabaseProvider import DatabaseProvider
from database.PropertyRepository import PropertyRepository
from database.QueryExecutor import QueryExecutor
from relay.ChatRelay import ChatRelay
from relay.ToolExecutor import ToolExecutor
from relay.config import RelaySettings, configure_logging
from relay.rate_limit import RateLimiter
from relay.upstream import build_client

from api.cors import ALLOWED_HEADERS, ALLOWED_METHODS, EXPOSED_HEADERS
from api.rate_limit import RateLimitPolicy
from api.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Set up and tear down application-wide resources."""
    load_dotenv()

    db_provider = DatabaseProvider(os.environ["DB_PATH"])
    executor = ToolExecutor(
        PropertyRepository(QueryExecutor(db_provider.get_connection()))
    )

    settings = RelaySettings.from_env()
    client = build_client(settings)

    app.state.relay = ChatRelay(client, executor, settings)
    app.state.rate_limit_policy = RateLimitPolicy.from_env()

    yield

    await client.close()
    db_provider.close()


def create_app(
    relay: ChatRelay | None = None,
    limiter: RateLimiter | None = None,
    policy: RateLimitPolicy | None = None,
) -> FastAPI:
    """Build the application.

    With no arguments, resources are created from the environment at
    startup. Passing a ``relay`` skips that and serves it directly.
    """
    app = FastAPI(
        title="ApArt Chat Relay",
        version="0.1.0",
        lifespan=None if relay is not None else lifespan,
    )

    # One limiter for the whole process lifetime.
    app.state.limiter = limiter or RateLimiter()
    app.state.rate_limit_policy = policy or RateLimitPolicy()
    if relay is not None:
        app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
    )

    app.include_router(router)
    return app


app = create_app()


def serve() -> None:
    """Start the uvicorn server using environment configuration."""
    load_dotenv()
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "3000"))
    uvicorn.run("api.main:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    serve()
