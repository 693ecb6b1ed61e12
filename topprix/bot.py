"""
TopPrix-DZ Telegram bot (aiogram 3)

Flow for a product name:
- send a transient "searching…" placeholder
- reply to the user's message with the mock price listing (or a failure notice)
- always try to delete the placeholder; deletion errors are only logged
"""

import logging

from aiogram import Bot, Dispatcher, F, Router
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandStart
from aiogram.types import Message
from aiogram.utils.text_decorations import html_decoration

hquote = html_decoration.quote

from .config import Settings
from .errors import ErrorKind
from .models import Source
from .responses import Query, RequestKind, ResponseBuilder

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────
# Texts
# ─────────────────────────────────────────────────────────────

START_MESSAGE = """🛍️ <b>مرحباً بك في TopPrix-DZ</b> 🇩🇿

أنا بوت مساعد لأجد لك أفضل الأسعار في الجزائر من:
• 📱 تيك توك
• 👥 فيسبوك
• 📸 انستقرام

<b>كيفية الاستخدام:</b>
فقط اكتب اسم المنتج الذي تبحث عنه!

<b>أمثلة:</b>
قهوة, لابتوب, هاتف, حليب, دراعة..."""

HELP_MESSAGE = "💡 ببساطة اكتب اسم المنتج الذي تريد معرفة سعره!"

SEARCHING_MESSAGE = '🔍 <i>جاري البحث عن "{query}"...</i>'
ERROR_SEARCH = "❌ حدث خطأ في البحث، حاول مرة أخرى"


# ─────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────

async def handle_start(msg: Message):
    await msg.answer(START_MESSAGE)


async def handle_help(msg: Message):
    await msg.answer(HELP_MESSAGE)


async def answer_product_query(msg: Message, builder: ResponseBuilder, text: str) -> None:
    placeholder = None
    try:
        placeholder = await msg.answer(SEARCHING_MESSAGE.format(query=hquote(text)))
        user_id = str(msg.from_user.id) if msg.from_user else None
        payload = await builder.build(
            Query(text=text, kind=RequestKind.CHAT_MESSAGE, source=Source.CHAT, user_id=user_id)
        )
        await msg.reply(payload.body["text"])
    except Exception as e:
        logger.error("%s: %s", ErrorKind.TRANSPORT_SEND_FAILURE.value, e)
        await msg.answer(ERROR_SEARCH)
    finally:
        if placeholder is not None:
            try:
                await placeholder.delete()
            except Exception as e:
                logger.warning("%s: cannot delete placeholder: %s", ErrorKind.TRANSPORT_CLEANUP_FAILURE.value, e)


async def handle_text(msg: Message, builder: ResponseBuilder):
    text = (msg.text or "").strip()
    if not text or text.startswith("/"):
        return
    await answer_product_query(msg, builder, text)


# ─────────────────────────────────────────────────────────────
# Wiring
# ─────────────────────────────────────────────────────────────

def create_bot(settings: Settings) -> Bot:
    if not settings.bot_token:
        raise RuntimeError("BOT_TOKEN is not set")
    return Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )


def build_dispatcher(builder: ResponseBuilder) -> Dispatcher:
    router = Router(name="topprix")
    router.message.register(handle_start, CommandStart())
    router.message.register(handle_help, Command("help"))
    router.message.register(handle_text, F.text)

    dp = Dispatcher()
    dp["builder"] = builder
    dp.include_router(router)
    return dp
