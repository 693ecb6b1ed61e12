"""Request dispatch and response shaping.

Every inbound query, HTTP or Telegram, is resolved to exactly one
``RequestKind`` and handed to the matching handler, which returns a
``ResponsePayload``. Input errors are raised as ``TopPrixError`` before any
external call; gateway failures come back as error payloads, never as partial
success payloads.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from aiogram.utils.text_decorations import html_decoration

hquote = html_decoration.quote

from .catalog import MockCatalog
from .errors import ErrorKind, TopPrixError
from .intent import IntentDetector
from .llm_gateway import LLMGateway
from .models import AgentResponse, Intent, IntentResult, PriceLookupResponse, SearchResponse, Source

logger = logging.getLogger(__name__)

AGENT_TEMPERATURE = 0.7
AGENT_MAX_TOKENS = 1024

GREETING_RESPONSE = (
    "مرحباً! أنا بوت TopPrix-DZ. حالياً ميزة AI غير مفعلة. "
    "يمكنك استخدام /api/search للبحث عن المنتجات."
)
EMPTY_COMPLETION_RESPONSE = "عذراً، لم أستطع معالجة طلبك."
SEARCH_NOTICE = "سيتم تحسين النتائج قريباً مع إضافة المزيد من المصادر"
CONTACT_LINE = "📞 للاستفسار: 0550xxxxxx"

MESSAGE_REQUIRED = "الرسالة مطلوبة"
QUERY_REQUIRED = "⛔ يرجى إدخال كلمة البحث"
PRODUCT_REQUIRED = "المنتج مطلوب"
PROCESSING_FAILED = "فشل في معالجة الطلب"
LOOKUP_FAILED = "فشل في جلب البيانات"
INTERNAL_ERROR = "خطأ في الخادم الداخلي"


class RequestKind(str, Enum):
    GREETING = "greeting"
    AGENT_CHAT = "agent_chat"
    MOCK_SEARCH = "mock_search"
    PRICE_LOOKUP = "price_lookup"
    CHAT_MESSAGE = "chat_message"
    COMMAND = "command"


@dataclass(frozen=True)
class Query:
    text: str
    kind: RequestKind
    source: Source = Source.HTTP
    user_id: Optional[str] = None


@dataclass(frozen=True)
class ResponsePayload:
    body: Dict[str, Any]
    status_code: int = 200
    error_kind: Optional[ErrorKind] = None

    @property
    def success(self) -> bool:
        return self.error_kind is None


def build_system_prompt(context: IntentResult) -> str:
    intent = context.intent.value if isinstance(context.intent, Intent) else context.intent
    return f"""أنت مساعد متخصص في الأسواق والأسعار الجزائرية.

معلومات السياق:
- نية المستخدم: {intent}
- المنتج المطلوب: {context.product or 'غير محدد'}
- نوع الطلب: {'مقارنة أسعار' if context.isPriceComparison else 'بحث عادي'}

قم بمساعدة المستخدم في:
• البحث عن أسعار المنتجات في الجزائر
• مقارنة الأسعار بين المتاجر
• تقديم نصائح شراء ذكية
• الرد على استفسارات السوق الجزائري

كن دقيقاً ومفيداً في إجاباتك."""


def build_price_lookup_prompt(product: str) -> str:
    return (
        f"اعطني أسعار {product} في الأسواق الجزائرية مع أماكن البيع في تيك توك، فيسبوك، وانستقرام. "
        "قدم النتائج بتنسيق منظم للعرض في بوت تيليجرام."
    )


class ResponseBuilder:
    def __init__(
        self,
        gateway: LLMGateway,
        catalog: MockCatalog,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.catalog = catalog
        self.clock = clock
        self.handlers = {
            RequestKind.GREETING: self._greeting,
            RequestKind.AGENT_CHAT: self._agent_chat,
            RequestKind.MOCK_SEARCH: self._mock_search,
            RequestKind.PRICE_LOOKUP: self._price_lookup,
            RequestKind.CHAT_MESSAGE: self._chat_message,
            RequestKind.COMMAND: self._command,
        }

    def resolve(self, query: Query) -> RequestKind:
        if query.source == Source.CHAT and query.text.strip().startswith("/"):
            return RequestKind.COMMAND
        if query.kind == RequestKind.AGENT_CHAT and not self.gateway.configured:
            return RequestKind.GREETING
        return query.kind

    async def build(self, query: Query) -> ResponsePayload:
        kind = self.resolve(query)
        return await self.handlers[kind](query)

    # ---------------------------------------------------------
    # Handlers
    # ---------------------------------------------------------
    async def _greeting(self, query: Query) -> ResponsePayload:
        response = AgentResponse(
            response=GREETING_RESPONSE,
            context=IntentResult(intent=Intent.GREETING, product=None, isPriceComparison=False),
        )
        return ResponsePayload(body=response.model_dump(mode="json"))

    async def _agent_chat(self, query: Query) -> ResponsePayload:
        text = (query.text or "").strip()
        if not text:
            raise TopPrixError(ErrorKind.MISSING_FIELD, {"error": MESSAGE_REQUIRED}, status_code=400)

        context = IntentDetector.build_context(text)
        outcome = await self.gateway.complete(
            text,
            system_prompt=build_system_prompt(context),
            temperature=AGENT_TEMPERATURE,
            max_tokens=AGENT_MAX_TOKENS,
        )

        if outcome.failure == ErrorKind.EMPTY_RESPONSE:
            logger.warning("Empty completion for agent message, sending apology")
            outcome_text = EMPTY_COMPLETION_RESPONSE
        elif not outcome.success:
            return ResponsePayload(
                body={"success": False, "error": PROCESSING_FAILED, "details": outcome.detail},
                status_code=500,
                error_kind=outcome.failure,
            )
        else:
            outcome_text = outcome.text

        response = AgentResponse(response=outcome_text, context=context)
        return ResponsePayload(body=response.model_dump(mode="json"))

    async def _mock_search(self, query: Query) -> ResponsePayload:
        text = (query.text or "").strip()
        if not text:
            raise TopPrixError(ErrorKind.MISSING_FIELD, {"success": False, "error": QUERY_REQUIRED}, status_code=400)

        try:
            intent = IntentDetector.detect(text)
            product = IntentDetector.extract_product(text)
            logger.info('🔍 New search: "%s" | intent: %s | product: %s | user: %s', text, intent.value, product, query.user_id)

            listings = self.catalog.listings_for(product or text)
            response = SearchResponse(
                query=text,
                intent=intent,
                product=product,
                results=listings,
                totalResults=len(listings),
                message=SEARCH_NOTICE,
            )
        except Exception as e:
            logger.exception("Search error: %s", e)
            return ResponsePayload(
                body={"success": False, "error": INTERNAL_ERROR},
                status_code=500,
                error_kind=ErrorKind.INTERNAL_ERROR,
            )
        return ResponsePayload(body=response.model_dump(mode="json"))

    async def _price_lookup(self, query: Query) -> ResponsePayload:
        product = (query.text or "").strip()
        if not product:
            raise TopPrixError(ErrorKind.MISSING_FIELD, {"success": False, "error": PRODUCT_REQUIRED}, status_code=400)

        if not self.gateway.configured:
            return ResponsePayload(
                body={"success": False, "error": LOOKUP_FAILED, "details": ErrorKind.UNCONFIGURED.value},
                status_code=503,
                error_kind=ErrorKind.UNCONFIGURED,
            )

        outcome = await self.gateway.complete(build_price_lookup_prompt(product))
        if not outcome.success:
            logger.error("Price lookup failed for %r: %s", product, outcome.detail)
            return ResponsePayload(
                body={"success": False, "error": LOOKUP_FAILED},
                status_code=500,
                error_kind=outcome.failure,
            )
        response = PriceLookupResponse(product=product, prices=outcome.text)
        return ResponsePayload(body=response.model_dump(mode="json"))

    async def _chat_message(self, query: Query) -> ResponsePayload:
        return ResponsePayload(body={"success": True, "text": self.format_chat_listing(query.text.strip())})

    async def _command(self, query: Query) -> ResponsePayload:
        # /start and /help are answered by the bot itself; anything else is ignored
        return ResponsePayload(body={"success": True, "ignored": True, "command": query.text.strip().split()[0]})

    # ---------------------------------------------------------
    # Formatting
    # ---------------------------------------------------------
    def format_chat_listing(self, text: str) -> str:
        grouped: Dict[str, list] = {}
        for offer in self.catalog.offers():
            grouped.setdefault(offer.platform, []).append(offer)

        # HTML parse mode: user text must go through hquote
        lines = [f'📦 <b>نتائج البحث عن "{hquote(text)}"</b>', ""]
        for platform, offers in grouped.items():
            lines.append(f"🏪 <b>من {hquote(platform)}:</b>")
            for offer in offers:
                lines.append(f"🛒 {hquote(offer.store)} - {offer.price} دج {'⭐' * offer.stars}")
            lines.append("")

        lines.append(f"💎 <b>أفضل عرض:</b> {self.catalog.best_offer()} دج")
        lines.append(CONTACT_LINE)
        lines.append("")
        lines.append(f"🕒 {self.clock().strftime('%Y-%m-%d %H:%M:%S')}")
        return "\n".join(lines)
