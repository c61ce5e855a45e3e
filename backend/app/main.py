import logging

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.api import auth, qr, scan, templates, users
from app.config import get_settings
from app.db.postgres import engine, Base, AsyncSessionLocal
from app.services.geolocation import build_geolocation_resolver
from app.services.scan_recorder import ScanRecorder

from app import models  # noqa: F401  (registers tables on Base.metadata)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    http_client = httpx.AsyncClient()
    app.state.http_client = http_client
    app.state.scan_recorder = ScanRecorder(
        AsyncSessionLocal,
        build_geolocation_resolver(settings, http_client),
    )

    yield

    # Shutdown: in-flight scans are dropped
    await app.state.scan_recorder.stop()
    await http_client.aclose()
    await engine.dispose()


app = FastAPI(
    title="QRify API",
    description="QR code generation, link shortening and scan analytics",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(qr.router, prefix="/api/qr", tags=["qr"])
app.include_router(templates.router, prefix="/api/templates", tags=["templates"])
app.include_router(users.router, prefix="/api/users", tags=["users"])

# Public, unauthenticated
app.include_router(scan.router, prefix="/scan", tags=["scan"])


@app.get("/health")
async def health():
    return {"status": "healthy"}
