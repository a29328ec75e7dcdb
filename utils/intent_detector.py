"""
Chat Classifier
Heuristic language detection and legal-relevance classification of an inbound
chat message. Pure functions of the text; no model calls.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from core.config import get_settings
from models.chat_schema import Language, QueryCategory

logger = logging.getLogger("IntentDetector")

# Arabic block, which covers the Urdu script.
URDU_SCRIPT = re.compile(r"[؀-ۿ]")

# Function words that show up in almost any Roman Urdu sentence.
ROMAN_URDU_KEYWORDS = (
    "kya", "hai", "aur", "ko", "ka", "ki", "main", "mein",
    "hoon", "kaise", "kyun", "kab", "kahan",
)

GREETINGS = (
    "hi", "hello", "hey", "salam", "assalam", "assalamualaikum", "aoa",
    "good morning", "good afternoon", "good evening", "thanks", "thank you",
    "shukriya", "السلام علیکم", "سلام", "شکریہ",
)

LEGAL_KEYWORDS = (
    # English
    "law", "legal", "court", "judge", "case", "attorney", "lawyer", "advocate",
    "constitution", "act", "section", "article", "petition", "appeal", "defendant",
    "plaintiff", "prosecution", "defense", "bail", "verdict", "judgment", "statute",
    "regulation", "ordinance", "contract", "agreement", "property", "criminal",
    "civil", "family", "divorce", "custody", "inheritance", "murder", "theft",
    "fraud", "corruption", "rights", "duty", "obligation", "liability", "damages",
    # Roman Urdu
    "qanoon", "adalat", "wakeel", "muqadma", "fauj-dari", "faujdari", "diwani",
    "shadi", "talaq", "tarka", "huqooq", "farz", "zimmedari", "jaidad", "zamanat",
    # Urdu
    "قانون", "عدالت", "وکیل", "مقدمہ", "طلاق", "جائیداد", "حقوق", "ضمانت", "نکاح",
)

# Short enough to occur inside unrelated words ("please", "lieutenant"), so matched whole.
LEGAL_WORDS = re.compile(r"(?<!\w)(?:tenant|landlord|lease|eviction|khula|nikah)s?(?!\w)")

# Words that may accompany a greeting without turning it into a question.
GREETING_FILLERS = frozenset((
    "o", "alaikum", "walaikum", "wa", "there", "everyone", "all", "sir", "madam",
    "dear", "how", "are", "you", "so", "much", "a", "lot",
))

QUESTION_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(what|how|when|where|why|which)\b.*\b(law|legal|rule|right|punishment|penalty)s?\b",
        r"\bcan\s+i\s+(sue|file|claim|appeal|divorce|evict)\b",
        r"\bmy\s+(case|hearing|lawyer|property|landlord|tenant|employer|husband|wife)\b",
        r"\b(is\s+it|is\s+this)\s+(legal|illegal|allowed|lawful)\b",
        r"\bhow\s+(do|can)\s+i\s+(file|register|apply|get)\b",
        r"\b(rights?|punishment)\s+(of|for)\b",
    )
)


@dataclass(frozen=True)
class ChatClassification:
    language: Language
    category: QueryCategory

    @property
    def is_on_topic(self) -> bool:
        return self.category != QueryCategory.off_topic


def _keyword_hits(text: str, keywords: Iterable[str]) -> int:
    """Count distinct keywords that appear as whole words in ``text``."""
    hits = 0
    for keyword in keywords:
        if re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", text):
            hits += 1
    return hits


def detect_language(text: str, min_hits: Optional[int] = None) -> Language:
    """
    Classify a message as Urdu script, Roman Urdu or English.

    Args:
        text: User message
        min_hits: Distinct Roman Urdu keywords required (defaults to ROMAN_URDU_MIN_HITS)

    Returns:
        The detected language; English is the fallback
    """
    if URDU_SCRIPT.search(text or ""):
        return Language.urdu

    threshold = min_hits if min_hits is not None else get_settings().roman_urdu_min_hits
    if _keyword_hits((text or "").lower(), ROMAN_URDU_KEYWORDS) >= threshold:
        return Language.roman_urdu
    return Language.english


def is_greeting(text: str, max_chars: Optional[int] = None) -> bool:
    limit = max_chars if max_chars is not None else get_settings().greeting_max_chars
    cleaned = (text or "").strip().lower()
    if not cleaned or len(cleaned) >= limit:
        return False
    if _keyword_hits(cleaned, GREETINGS) == 0:
        return False

    # Anything left besides greetings and fillers is a real message, e.g. "hey, what's the weather?"
    remainder = cleaned
    for phrase in sorted(GREETINGS, key=len, reverse=True):
        remainder = re.sub(rf"(?<!\w){re.escape(phrase)}(?!\w)", " ", remainder)
    return all(word in GREETING_FILLERS for word in re.findall(r"\w+", remainder))


def is_legal_query(text: str) -> bool:
    lowered = (text or "").lower()
    if any(keyword in lowered for keyword in LEGAL_KEYWORDS) or LEGAL_WORDS.search(lowered):
        return True
    return any(pattern.search(lowered) for pattern in QUESTION_PATTERNS)


def is_on_topic(text: str) -> bool:
    """Greetings and legal questions are on-topic; everything else is declined."""
    return is_greeting(text) or is_legal_query(text)


def classify_message(text: str) -> ChatClassification:
    language = detect_language(text)
    if is_greeting(text):
        category = QueryCategory.greeting
    elif is_legal_query(text):
        category = QueryCategory.legal
    else:
        category = QueryCategory.off_topic

    logger.info(f"Classified message as {category.value} ({language.value})")
    return ChatClassification(language=language, category=category)
