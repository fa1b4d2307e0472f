"""
Main FastAPI application for the GIF generation API.
Serves generations, provider webhooks, internal operations, health and metrics.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.routes import generations, health, internal, webhooks
from app.utils.metrics import router as metrics_router


configure_logging()

app = FastAPI(
    title="GIF Generation API",
    description="Image + prompt to animated GIF: credits, dispatch and completion reconciliation",
    version="1.0.0",
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(generations.router)
app.include_router(generations.credits_router)
app.include_router(webhooks.router)
app.include_router(internal.router)
app.include_router(metrics_router)
