import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from telegram import Update
from telegram.ext import Application

from routes.webhook_route import router as webhook_router
from services.collector.archive_pipeline import ArchivePipeline
from services.collector.background_jobs import BackgroundJobs
from services.collector.dispatcher import UpdateDispatcher
from services.collector.session_store import SessionStore
from services.telegram.bot_handlers import register_handlers
from services.telegram.gateway import TelegramGateway
from utils.errors import PlatformError
from utils.settings import BOT_VERSION, BotSettings

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SHUTDOWN_GRACE_SECONDS = 30.0


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the whole process."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    # httpx logs every request URL at INFO, and Bot API URLs embed the token.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_application(settings: BotSettings) -> Application:
    """Build the python-telegram-bot application; webhook mode has no updater."""
    builder = (
        Application.builder()
        .token(settings.bot_token)
        .base_url(f"{settings.api_base}/bot")
        .base_file_url(f"{settings.api_base}/file/bot")
    )
    if settings.mode == "webhook":
        builder = builder.updater(None)
    return builder.build()


async def register_commands(gateway: TelegramGateway) -> None:
    """Publish the command menu; a failure is logged and the bot keeps running."""
    try:
        await gateway.register_commands()
        LOGGER.info("Bot commands registered")
    except PlatformError as exc:
        LOGGER.error("Could not register bot commands: %s", exc)


async def start_bot(application: Application, gateway: TelegramGateway, settings: BotSettings) -> Optional[str]:
    """Initialize the application, register commands and start receiving updates.

    Initialization looks up the bot's identity, which command matching needs
    for `/cmd@<bot>`, so an invalid token or an unreachable API fails startup.
    Returns the bot's username.
    """
    await application.initialize()
    await register_commands(gateway)
    await application.start()
    if application.updater is not None:
        await application.updater.start_polling(
            timeout=settings.poll_timeout,
            allowed_updates=[Update.MESSAGE],
        )
        LOGGER.info("Long polling started")
    username = application.bot.username
    LOGGER.info("Connected to Telegram as @%s (%s mode)", username, settings.mode)
    return username


async def stop_bot(application: Application) -> None:
    if application.running:
        await application.stop()
    await application.shutdown()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - settings from the environment (TG_BOT_TOKEN is required)
      - the python-telegram-bot application and its handlers
      - one shared httpx client for photo downloads
      - the session store, archive pipeline and dispatcher
    and attach them to `app.state`. In polling mode the application's updater
    fetches updates; in webhook mode `POST /telegram/webhook` feeds them in.
    """
    settings = BotSettings.from_env()
    configure_logging(settings.log_level)

    application = build_application(settings)
    gateway = TelegramGateway(application.bot)
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.fetch_timeout))
    store = SessionStore()
    jobs = BackgroundJobs()
    pipeline = ArchivePipeline(
        gateway,
        http_client,
        settings.work_dir,
        max_concurrent_fetches=settings.max_concurrent_fetches,
    )
    dispatcher = UpdateDispatcher(store, gateway, pipeline, jobs)
    register_handlers(application, dispatcher)

    app.state.settings = settings
    app.state.application = application
    app.state.session_store = store
    app.state.jobs = jobs
    app.state.dispatcher = dispatcher

    try:
        app.state.bot_username = await start_bot(application, gateway, settings)
        yield
    finally:
        # Stop taking updates first, let archives in flight finish, then close the bot.
        if application.updater is not None and application.updater.running:
            await application.updater.stop()
        await jobs.drain(timeout=SHUTDOWN_GRACE_SECONDS)
        await stop_bot(application)
        await http_client.aclose()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan, version=BOT_VERSION)

    @app.get("/health")
    async def health(request: Request):
        """
        Report the running mode, bot identity and in-flight archive jobs.
        """
        state = request.app.state
        jobs = getattr(state, "jobs", None)
        store = getattr(state, "session_store", None)
        return {
            "ok": getattr(state, "dispatcher", None) is not None,
            "version": BOT_VERSION,
            "mode": getattr(getattr(state, "settings", None), "mode", None),
            "bot_username": getattr(state, "bot_username", None),
            "sessions": len(store) if store is not None else 0,
            "active_jobs": jobs.active if jobs is not None else 0,
        }

    # Register application routers
    app.include_router(webhook_router)

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn; BOT_HOST and BOT_PORT select the bind address."""
    import uvicorn

    uvicorn.run(app, host=os.getenv("BOT_HOST", "0.0.0.0"), port=int(os.getenv("BOT_PORT", "8000")))


if __name__ == "__main__":
    run()
