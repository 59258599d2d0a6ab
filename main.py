import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from dotenv import load_dotenv
import logging

from chatdb.presentation.api.v1 import chat, schema, health
from chatdb.presentation.api.dependencies import get_orchestrator

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO if not os.getenv("DEBUG", "False").lower() == "true" else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting ChatDB server...")

    try:
        orchestrator = get_orchestrator()
        tables = await orchestrator.list_tables()
        logger.info(f"Database connection established ({orchestrator.dialect}, {len(tables)} tables)")
    except Exception as e:
        logger.error(f"Failed to initialize components: {e}")
        raise

    yield

    # Cleanup
    logger.info("Shutting down ChatDB server...")
    await orchestrator.close()


# Create FastAPI application
app = FastAPI(
    title=os.getenv("APP_NAME", "ChatDB"),
    description="Chat with your database in natural language",
    version=os.getenv("APP_VERSION", "0.1.0"),
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api/health", tags=["Health"])
app.include_router(schema.router, prefix="/api/schema", tags=["Schema"])
app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])


# Root endpoint
@app.get("/")
async def root():
    return {
        "name": "ChatDB",
        "version": os.getenv("APP_VERSION", "0.1.0"),
        "description": "Chat with your database in natural language",
        "docs": "/docs",
        "redoc": "/redoc"
    }


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error occurred"}
    )


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 3001))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("DEBUG", "False").lower() == "true"
    )
