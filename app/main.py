# Plant Doctor - AI plant disease diagnosis and treatment web app
import logging
import os
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware
from starlette.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Import config
from app.config import (
    SECRET_KEY,
    LLM_BASE_URL,
    LLM_MODEL_DIAGNOSIS,
    LLM_MODEL_TREATMENT,
    AUTO_RECOMMEND,
)

from app.dependencies import limiter, llm_client, history_store
from app.routers import diagnosis, health, workflow

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================================#
# Lifespan Events
# ============================================================================#

@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    # Startup
    logger.info("=" * 60)
    logger.info("Starting Plant Doctor")
    logger.info(f"LLM: {'✓' if llm_client else '✗'} ({LLM_BASE_URL or 'api.openai.com'})")
    logger.info(f"Models: diagnosis={LLM_MODEL_DIAGNOSIS}, treatment={LLM_MODEL_TREATMENT}")
    logger.info(f"Auto-recommend: {'✓' if AUTO_RECOMMEND else '✗'}")
    logger.info(f"History: {history_store.backend if history_store else 'disabled'}")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    if llm_client:
        await llm_client.close()


# Initialize FastAPI app
app = FastAPI(
    title="Plant Doctor",
    description="Upload a plant photo, get an AI disease diagnosis and treatment plan",
    version=health.VERSION,
    lifespan=lifespan
)

# Initialize Rate Limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Session cookie identifies the workflow of a browser tab
app.add_middleware(SessionMiddleware, secret_key=SECRET_KEY)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(diagnosis.router)
app.include_router(workflow.router)


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port)
