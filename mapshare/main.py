from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from mapshare.core.config import CORS_ALLOW_ORIGINS
from mapshare.core.logging import setup_logging
from mapshare.core.init_db import init_db
from mapshare.api.router import api_router
from mapshare.realtime.hub import presence_hub

setup_logging()
logger.info("Starting MapShare backend")


app = FastAPI(
    title="MapShare Backend",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# All API routes (auth, locations, live-locations)
app.include_router(api_router)

# Init DB after app is created
init_db()

@app.get("/health")
def health():
    logger.debug("Health check hit")
    return {"status": "ok", "presence_subscribers": presence_hub.subscriber_count}
