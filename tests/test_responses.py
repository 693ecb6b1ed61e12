"""Dispatch and payload shaping in ResponseBuilder."""

import pytest

from conftest import FIXED_NOW, StubGateway
from topprix.errors import ErrorKind, TopPrixError
from topprix.llm_gateway import CompletionOutcome
from topprix.models import Source
from topprix.responses import (
    EMPTY_COMPLETION_RESPONSE,
    GREETING_RESPONSE,
    Query,
    RequestKind,
    ResponseBuilder,
    build_system_prompt,
)
from topprix.intent import IntentDetector


def agent(text):
    return Query(text=text, kind=RequestKind.AGENT_CHAT)


# ---------------------------------------------------------
# Resolution
# ---------------------------------------------------------

def test_resolve_unconfigured_agent_is_greeting(unconfigured_gateway, catalog):
    builder = ResponseBuilder(unconfigured_gateway, catalog)

    assert builder.resolve(agent("سعر هاتف")) == RequestKind.GREETING


@pytest.mark.parametrize("kind", [RequestKind.MOCK_SEARCH, RequestKind.PRICE_LOOKUP])
def test_resolve_unconfigured_keeps_non_agent_kinds(unconfigured_gateway, catalog, kind):
    builder = ResponseBuilder(unconfigured_gateway, catalog)

    assert builder.resolve(Query(text="قهوة", kind=kind)) == kind


def test_resolve_chat_command(builder):
    query = Query(text="/start", kind=RequestKind.CHAT_MESSAGE, source=Source.CHAT)

    assert builder.resolve(query) == RequestKind.COMMAND


def test_every_kind_has_exactly_one_handler(builder):
    assert set(builder.handlers) == set(RequestKind)


# ---------------------------------------------------------
# Greeting / agent
# ---------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "مرحبا", "سعر هاتف", "قارن أسعار لابتوب"])
async def test_unconfigured_gateway_always_greets_without_calls(unconfigured_gateway, catalog, text):
    builder = ResponseBuilder(unconfigured_gateway, catalog)

    payload = await builder.build(agent(text))

    assert payload.status_code == 200
    assert payload.body == {
        "success": True,
        "response": GREETING_RESPONSE,
        "context": {"intent": "greeting", "product": None, "isPriceComparison": False},
    }
    assert unconfigured_gateway.calls == []


@pytest.mark.asyncio
async def test_agent_success(builder, gateway):
    payload = await builder.build(agent("قارن أسعار لابتوب"))

    assert payload.success
    assert payload.body == {
        "success": True,
        "response": "AI answer",
        "context": {"intent": "priceComparison", "product": "لابتوب", "isPriceComparison": True},
    }
    call = gateway.calls[0]
    assert call["user_prompt"] == "قارن أسعار لابتوب"
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 1024
    assert "priceComparison" in call["system_prompt"]
    assert "لابتوب" in call["system_prompt"]
    assert "مقارنة أسعار" in call["system_prompt"]


def test_system_prompt_defaults_for_missing_product():
    prompt = build_system_prompt(IntentDetector.build_context("مرحبا"))

    assert "نية المستخدم: greeting" in prompt
    assert "المنتج المطلوب: غير محدد" in prompt
    assert "نوع الطلب: بحث عادي" in prompt


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   "])
async def test_agent_missing_message(builder, gateway, text):
    with pytest.raises(TopPrixError) as excinfo:
        await builder.build(agent(text))

    assert excinfo.value.kind == ErrorKind.MISSING_FIELD
    assert excinfo.value.status_code == 400
    assert excinfo.value.body == {"error": "الرسالة مطلوبة"}
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_agent_provider_error(catalog):
    gateway = StubGateway(CompletionOutcome.failed(ErrorKind.PROVIDER_ERROR, "503 Service Unavailable"))
    builder = ResponseBuilder(gateway, catalog)

    payload = await builder.build(agent("سعر هاتف"))

    assert payload.status_code == 500
    assert payload.error_kind == ErrorKind.PROVIDER_ERROR
    assert payload.body == {"success": False, "error": "فشل في معالجة الطلب", "details": "503 Service Unavailable"}


@pytest.mark.asyncio
async def test_agent_empty_completion_falls_back_to_apology(catalog):
    gateway = StubGateway(CompletionOutcome.failed(ErrorKind.EMPTY_RESPONSE))
    builder = ResponseBuilder(gateway, catalog)

    payload = await builder.build(agent("سعر هاتف"))

    assert payload.status_code == 200
    assert payload.body["success"] is True
    assert payload.body["response"] == EMPTY_COMPLETION_RESPONSE


# ---------------------------------------------------------
# Mock search
# ---------------------------------------------------------

@pytest.mark.asyncio
async def test_mock_search_shape(builder, gateway):
    payload = await builder.build(Query(text="سعر قهوة", kind=RequestKind.MOCK_SEARCH, user_id="u1"))

    body = payload.body
    assert payload.status_code == 200
    assert body["success"] is True
    assert body["query"] == "سعر قهوة"
    assert body["intent"] == "search"
    assert body["product"] == "قهوة"
    assert body["totalResults"] == 3
    assert len(body["results"]) == 3
    assert all(item["title"].startswith("قهوة - ") for item in body["results"])
    assert body["message"]
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_mock_search_uses_raw_query_without_product(builder):
    payload = await builder.build(Query(text="سعر", kind=RequestKind.MOCK_SEARCH))

    assert payload.body["product"] is None
    assert payload.body["results"][0]["title"].startswith("سعر - ")


@pytest.mark.asyncio
async def test_mock_search_missing_query(builder):
    with pytest.raises(TopPrixError) as excinfo:
        await builder.build(Query(text=" ", kind=RequestKind.MOCK_SEARCH))

    assert excinfo.value.kind == ErrorKind.MISSING_FIELD
    assert excinfo.value.body == {"success": False, "error": "⛔ يرجى إدخال كلمة البحث"}


@pytest.mark.asyncio
async def test_mock_search_internal_error(builder, monkeypatch):
    def boom(label):
        raise RuntimeError("catalog unavailable")

    monkeypatch.setattr(builder.catalog, "listings_for", boom)

    payload = await builder.build(Query(text="قهوة", kind=RequestKind.MOCK_SEARCH))

    assert payload.status_code == 500
    assert payload.error_kind == ErrorKind.INTERNAL_ERROR
    assert payload.body == {"success": False, "error": "خطأ في الخادم الداخلي"}


@pytest.mark.asyncio
async def test_same_query_gives_same_field_set(builder):
    first = await builder.build(Query(text="قهوة", kind=RequestKind.MOCK_SEARCH))
    second = await builder.build(Query(text="قهوة", kind=RequestKind.MOCK_SEARCH))

    assert first.body == second.body
    first_agent = await builder.build(agent("قهوة"))
    second_agent = await builder.build(agent("قهوة"))
    assert set(first_agent.body) == set(second_agent.body)


# ---------------------------------------------------------
# Price lookup
# ---------------------------------------------------------

@pytest.mark.asyncio
async def test_price_lookup_success(builder, gateway):
    payload = await builder.build(Query(text="حليب", kind=RequestKind.PRICE_LOOKUP))

    assert payload.body == {"success": True, "product": "حليب", "prices": "AI answer"}
    assert "حليب" in gateway.calls[0]["user_prompt"]
    assert gateway.calls[0]["system_prompt"] is None


@pytest.mark.asyncio
async def test_price_lookup_unconfigured(unconfigured_gateway, catalog):
    builder = ResponseBuilder(unconfigured_gateway, catalog)

    payload = await builder.build(Query(text="حليب", kind=RequestKind.PRICE_LOOKUP))

    assert payload.status_code == 503
    assert payload.error_kind == ErrorKind.UNCONFIGURED
    assert unconfigured_gateway.calls == []


@pytest.mark.asyncio
async def test_price_lookup_failure(catalog):
    builder = ResponseBuilder(StubGateway(CompletionOutcome.failed(ErrorKind.PROVIDER_ERROR, "boom")), catalog)

    payload = await builder.build(Query(text="حليب", kind=RequestKind.PRICE_LOOKUP))

    assert payload.status_code == 500
    assert payload.body == {"success": False, "error": "فشل في جلب البيانات"}


@pytest.mark.asyncio
async def test_price_lookup_missing_product(builder):
    with pytest.raises(TopPrixError) as excinfo:
        await builder.build(Query(text="", kind=RequestKind.PRICE_LOOKUP))

    assert excinfo.value.kind == ErrorKind.MISSING_FIELD


# ---------------------------------------------------------
# Chat
# ---------------------------------------------------------

@pytest.mark.asyncio
async def test_chat_listing(builder, catalog, gateway):
    payload = await builder.build(Query(text="لابتوب", kind=RequestKind.CHAT_MESSAGE, source=Source.CHAT))

    text = payload.body["text"]
    assert '"لابتوب"' in text
    assert f"<b>أفضل عرض:</b> {catalog.best_offer()} دج" in text
    for offer in catalog.offers():
        assert f"{offer.store} - {offer.price} دج" in text
    assert FIXED_NOW.strftime("%Y-%m-%d %H:%M:%S") in text
    assert gateway.calls == []


def test_chat_listing_escapes_html(builder):
    text = builder.format_chat_listing("hp_probook* <i>&")

    assert '"hp_probook* &lt;i&gt;&amp;"' in text
    assert "<i>" not in text
    assert "\\" not in text


@pytest.mark.asyncio
async def test_chat_command_is_ignored(builder):
    payload = await builder.build(Query(text="/unknown arg", kind=RequestKind.CHAT_MESSAGE, source=Source.CHAT))

    assert payload.body == {"success": True, "ignored": True, "command": "/unknown"}
