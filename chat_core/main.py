import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_core import config
from chat_core.database import close_db, get_db, init_db
from chat_core.errors import ChatError, Unavailable
from chat_core.logging_config import setup_logging
from chat_core.routers.conversations import router as conversations_router
from chat_core.routers.messages import router as messages_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown."""
    # Startup
    setup_logging()
    await init_db()
    logger.info("Chat core started (env=%s, version=%s)", config.ENV, app.version)
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title="Chat Core",
    description="Direct and group conversations, messages, reactions and read state",
    version=config.COMMIT_HASH or "dev",
    lifespan=lifespan,
)

# Include routers
app.include_router(
    conversations_router, prefix="/api/conversations", tags=["conversations"]
)
app.include_router(messages_router, prefix="/api/messages", tags=["messages"])


def _error_response(error: ChatError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.kind, "detail": error.detail},
    )


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return _error_response(exc)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return _error_response(Unavailable("Storage engine failure"))


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)) -> Dict[str, Optional[str]]:
    """Health check endpoint with database connectivity."""
    try:
        # Test database connection
        result = await db.execute(text("SELECT 1"))
        db_status = "connected" if result.scalar() == 1 else "error"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database")
        db_status = "disconnected"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
        "environment": config.ENV,
        "version": app.version,
    }


# If run directly, start the server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.APP_ADDR, port=config.APP_PORT)
