import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relaybot.config import settings
from relaybot.logging_config import setup_logging
from relaybot.routers import admin, cron, webhook

setup_logging(settings.log_level)

app = FastAPI(
    title="Relaybot API",
    description="WhatsApp assistant: inbound webhook, voice notes and replies",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(admin.router)
app.include_router(cron.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
