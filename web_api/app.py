from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from modules.market_data.service import get_aggregator
from utils.logging_setup import configure_logging
from web_api.routes import build_router

try:
    from dotenv import load_dotenv

    load_dotenv()
except ImportError:
    pass

configure_logging()


@asynccontextmanager
async def lifespan(_: FastAPI):
    aggregator = get_aggregator()
    await aggregator.start()
    try:
        yield
    finally:
        await aggregator.stop()


app = FastAPI(title="Quant Copilot Market Data API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(build_router())
