from enum import Enum
from pydantic import BaseModel
from typing import List, Optional

class Intent(str, Enum):
    GREETING = "greeting"
    SEARCH = "search"
    PRICE_COMPARISON = "priceComparison"
    UNKNOWN = "unknown"

class Source(str, Enum):
    HTTP = "http"
    CHAT = "chat"

class AgentRequest(BaseModel):
    message: Optional[str] = None

class SearchRequest(BaseModel):
    query: Optional[str] = None
    userId: Optional[str] = None

class PriceLookupRequest(BaseModel):
    product: Optional[str] = None

class IntentResult(BaseModel):
    intent: Intent = Intent.UNKNOWN
    product: Optional[str] = None
    isPriceComparison: bool = False

class MockListing(BaseModel):
    title: str
    price: str
    source: str
    location: str
    rating: str

class MarketplaceOffer(BaseModel):
    platform: str
    store: str
    price: int
    stars: int

class AgentResponse(BaseModel):
    success: bool = True
    response: str
    context: IntentResult

class SearchResponse(BaseModel):
    success: bool = True
    query: str
    intent: Intent
    product: Optional[str] = None
    results: List[MockListing] = []
    totalResults: int = 0
    message: str

class PriceLookupResponse(BaseModel):
    success: bool = True
    product: str
    prices: str
