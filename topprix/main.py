import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .bot import build_dispatcher, create_bot
from .catalog import MockCatalog
from .config import Settings
from .errors import TopPrixError
from .llm_gateway import LLMGateway
from .models import AgentRequest, PriceLookupRequest, SearchRequest
from .responses import INTERNAL_ERROR, Query, RequestKind, ResponseBuilder, ResponsePayload

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

PROJECT = "TopPrix-DZ"
VERSION = "2.0"

logger = logging.getLogger(__name__)
router = APIRouter()


def configure_logging(level: str) -> None:
    log_level = logging.getLevelName(level.upper())
    logging.basicConfig(level=log_level, format=LOG_FORMAT, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "aiogram"):
        logging.getLogger(name).setLevel(log_level)


def get_builder(request: Request) -> ResponseBuilder:
    return request.app.state.builder


def _respond(payload: ResponsePayload) -> JSONResponse:
    return JSONResponse(status_code=payload.status_code, content=payload.body)


# === Routes ===

@router.get("/")
async def root():
    return {
        "status": "✅ Active",
        "project": PROJECT,
        "message": "API is running successfully! 🚀",
        "endpoints": {
            "agent": "POST /agent - الدردشة مع AI",
            "search": "POST /api/search - البحث عن المنتجات",
            "prices": "POST /search - أسعار منتج عبر AI",
            "health": "GET /health - حالة النظام",
        },
    }


@router.get("/health")
async def health():
    return {
        "status": "✅ Active",
        "project": PROJECT,
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "features": [
            "AI Assistant with Groq",
            "Intent Detection",
            "Product Search",
            "Price Comparison",
        ],
    }


@router.get("/info")
async def info():
    return {
        "name": PROJECT,
        "description": "بوت ذكي لمقارنة الأسعار في الجزائر",
        "version": VERSION,
        "author": "TopPrix Team",
        "endpoints": [
            "GET / - الصفحة الرئيسية",
            "POST /agent - الدردشة الذكية",
            "POST /api/search - البحث عن المنتجات",
            "POST /search - أسعار منتج عبر AI",
            "GET /health - حالة النظام",
            "GET /info - معلومات المشروع",
        ],
    }


@router.post("/agent")
async def agent(request: Optional[AgentRequest] = None, builder: ResponseBuilder = Depends(get_builder)):
    message = request.message if request else None
    payload = await builder.build(Query(text=message or "", kind=RequestKind.AGENT_CHAT))
    return _respond(payload)


@router.post("/api/search")
async def search(request: Optional[SearchRequest] = None, builder: ResponseBuilder = Depends(get_builder)):
    query = request.query if request else None
    user_id = request.userId if request else None
    payload = await builder.build(Query(text=query or "", kind=RequestKind.MOCK_SEARCH, user_id=user_id))
    return _respond(payload)


@router.post("/search")
async def price_lookup(request: Optional[PriceLookupRequest] = None, builder: ResponseBuilder = Depends(get_builder)):
    product = request.product if request else None
    payload = await builder.build(Query(text=product or "", kind=RequestKind.PRICE_LOOKUP))
    return _respond(payload)


# === Exception handlers ===

async def topprix_error_handler(request: Request, exc: TopPrixError) -> JSONResponse:
    logger.info("Rejected %s: %s", request.url.path, exc.kind.value)
    return JSONResponse(status_code=exc.status_code, content=exc.body)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    logger.warning("Validation error on %s: %s", request.url.path, errors)
    return JSONResponse(status_code=400, content={"success": False, "error": "طلب غير صالح", "details": errors})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": INTERNAL_ERROR})


# === Telegram bot lifecycle ===

def _log_polling_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("❌ Telegram bot stopped: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    bot = None
    polling = None

    if settings.bot_enabled:
        try:
            bot = create_bot(settings)
            dp = build_dispatcher(app.state.builder)
        except Exception as e:
            logger.error("❌ Telegram bot failed to start: %s", e)
            if bot is not None:
                await bot.session.close()
            bot = None
        else:
            polling = asyncio.create_task(dp.start_polling(bot, handle_signals=False))
            polling.add_done_callback(_log_polling_exit)
            logger.info("🤖 Telegram bot is running")
    else:
        logger.warning("⚠️  BOT_TOKEN not found - running API only")

    logger.info("🚀 %s v%s ready on port %s", PROJECT, VERSION, settings.port)
    try:
        yield
    finally:
        if polling is not None:
            logger.info("🛑 Stopping Telegram bot...")
            polling.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await polling
        if bot is not None:
            await bot.session.close()


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[LLMGateway] = None,
    catalog: Optional[MockCatalog] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    gateway = gateway or LLMGateway(settings)
    catalog = catalog or MockCatalog()

    app = FastAPI(title=PROJECT, version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.builder = ResponseBuilder(gateway, catalog)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TopPrixError, topprix_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(router)
    return app
