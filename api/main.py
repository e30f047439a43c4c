"""FastAPI application for service ticket invoicing."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from ticket_tool import __version__
from ticket_tool.config import allowed_origins

app = FastAPI(
    title="Service Ticket Invoicing API",
    description="Reconciles approved service tickets with time entries and groups them into invoices.",
    version=__version__,
)

ALLOWED_ORIGINS = allowed_origins()

# credentials cannot be combined with a wildcard origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=ALLOWED_ORIGINS != ["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {
        "name": app.title,
        "version": app.version,
        "health": "/api/v1/health",
    }
