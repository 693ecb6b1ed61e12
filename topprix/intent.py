import re
from typing import List, Optional
from .models import Intent, IntentResult

_TASHKEEL = re.compile(r"[\u0640\u064B-\u065F\u0670]")
_PUNCTUATION = re.compile(r"[^\w\s]|_")
_ALEF = str.maketrans({"أ": "ا", "إ": "ا", "آ": "ا", "ى": "ي", "ة": "ه"})

MAX_PRODUCT_TOKENS = 6


def _normalize(token: str) -> str:
    return token.lower().translate(_ALEF)


def _tokenize(text: str) -> List[str]:
    text = _TASHKEEL.sub("", text or "")
    return _PUNCTUATION.sub(" ", text).split()


class IntentDetector:

    # ---------------------------------------------------------
    # 1. KEYWORD TABLES
    # ---------------------------------------------------------
    COMPARISON_PHRASES = ["افضل سعر", "best price", "meilleur prix"]
    COMPARISON_WORDS = ["قارن", "مقارنه", "ارخص", "الارخص", "compare", "cheapest", "cheaper", "comparer", "vs"]

    GREETING_PHRASES = ["السلام عليكم", "صباح الخير", "مساء الخير", "good morning"]
    GREETING_WORDS = ["مرحبا", "سلام", "اهلا", "اهلين", "salam", "hello", "hi", "hey", "bonjour", "salut"]

    SEARCH_PHRASES = ["كم ثمن", "كم سعر", "how much"]
    SEARCH_WORDS = [
        "سعر", "اسعار", "بكم", "ثمن", "شحال", "قداه", "اين", "وين", "ابحث", "نحوس", "نشري",
        "prix", "price", "prices", "combien", "where", "find", "search", "buy",
    ]

    FILLER_WORDS = {
        "عن", "في", "من", "علي", "الي", "لي", "ما", "هو", "هي", "كم", "هل", "و", "يا", "بين", "مع",
        "الجزائر", "الجزاير", "dz", "فضلك", "the", "a", "an", "of", "for", "in", "me", "please",
        "le", "la", "les", "de", "du", "des", "un", "une", "svp", "and", "et",
    }

    # ---------------------------------------------------------
    # 2. MATCHING HELPERS
    # ---------------------------------------------------------
    @staticmethod
    def _word_matches(token: str, word: str) -> bool:
        """Arabic keywords also match suffixed forms (قارنلي, أسعاره)."""
        if token == word:
            return True
        return len(word) >= 3 and not word.isascii() and token.startswith(word)

    @staticmethod
    def _matches(tokens: List[str], phrases: List[str], words: List[str]) -> bool:
        joined = " ".join(tokens)
        if any(re.search(rf"(?<!\w){re.escape(p)}(?!\w)", joined) for p in phrases):
            return True
        return any(IntentDetector._word_matches(t, w) for t in tokens for w in words)

    @staticmethod
    def _is_keyword(token: str) -> bool:
        words = IntentDetector.COMPARISON_WORDS + IntentDetector.GREETING_WORDS + IntentDetector.SEARCH_WORDS
        return any(IntentDetector._word_matches(token, w) for w in words)

    # ---------------------------------------------------------
    # 3. PUBLIC API
    # ---------------------------------------------------------
    @staticmethod
    def detect(text: str) -> Intent:
        """Coarse keyword intent. Never raises; unmatched input is UNKNOWN."""
        tokens = [_normalize(t) for t in _tokenize(text)]
        if not tokens:
            return Intent.UNKNOWN

        if IntentDetector._matches(tokens, IntentDetector.COMPARISON_PHRASES, IntentDetector.COMPARISON_WORDS):
            return Intent.PRICE_COMPARISON
        if IntentDetector._matches(tokens, IntentDetector.SEARCH_PHRASES, IntentDetector.SEARCH_WORDS):
            return Intent.SEARCH
        if IntentDetector._matches(tokens, IntentDetector.GREETING_PHRASES, IntentDetector.GREETING_WORDS):
            return Intent.GREETING

        # A bare product name ("لابتوب", "قهوة") is a search
        if len(tokens) <= 3 and IntentDetector.extract_product(text):
            return Intent.SEARCH
        return Intent.UNKNOWN

    @staticmethod
    def extract_product(text: str) -> Optional[str]:
        """Best-guess product name: the text minus keywords, greetings and filler words."""
        tokens = _tokenize(text)
        normalized = " ".join(_normalize(t) for t in tokens)
        phrases = IntentDetector.COMPARISON_PHRASES + IntentDetector.GREETING_PHRASES + IntentDetector.SEARCH_PHRASES

        # Drop tokens covered by a multi-word keyword
        covered = set()
        for phrase in phrases:
            for match in re.finditer(rf"(?<!\w){re.escape(phrase)}(?!\w)", normalized):
                start = normalized[:match.start()].count(" ")
                covered.update(range(start, start + phrase.count(" ") + 1))

        kept = []
        for idx, token in enumerate(tokens):
            norm = _normalize(token)
            if idx in covered or norm in IntentDetector.FILLER_WORDS:
                continue
            if IntentDetector._is_keyword(norm):
                continue
            kept.append(token)

        if not kept or len(kept) > MAX_PRODUCT_TOKENS:
            return None
        return " ".join(kept)

    @staticmethod
    def build_context(text: str) -> IntentResult:
        intent = IntentDetector.detect(text)
        return IntentResult(
            intent=intent,
            product=IntentDetector.extract_product(text),
            isPriceComparison=intent == Intent.PRICE_COMPARISON,
        )
