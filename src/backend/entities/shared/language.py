"""Language detection for English and Hinglish (Hindi/English code-mixed) text.

Hinglish is written in Latin script, so detection looks for common Hindi
function words and verbs rather than Devanagari characters.
"""

import re

ENGLISH = "en"
HINGLISH = "hi-en"

_HINGLISH_PATTERNS: list[re.Pattern[str]] = [
    re.compile(
        r"\b(mein|ke|ki|ka|hai|hain|dikhao|batao|kya|kaise|kahan|kab|kitna|kitne)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(aur|ya|se|tak|par|liye|sath|wala|wale|wali|chahiye|karo|karna)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(abhi|phir|jab|tab|yahan|wahan|iska|uska|mere|tere|apna)\b",
        re.IGNORECASE,
    ),
]


def detect_language(text: str) -> str:
    """Return ``"hi-en"`` when ``text`` contains Hinglish marker words, else ``"en"``."""
    for pattern in _HINGLISH_PATTERNS:
        if pattern.search(text):
            return HINGLISH
    return ENGLISH
