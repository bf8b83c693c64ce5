"""Text normalization shared by search, matching and cache keys.

Category names are Turkish (Trendyol, Hepsiburada) or English (Temu), so
folding has to treat dotless ı and dotted İ correctly before diacritics
are stripped: "KILIF", "Kılıf" and "kilif" all fold to "kilif".
"""

import re
import unicodedata

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# ı has no Unicode decomposition, so NFKD alone leaves it untouched
_DOTLESS_I = str.maketrans({"ı": "i"})

MIN_KEYWORD_LENGTH = 3

# Query words that never identify a category. Stored folded.
STOP_WORDS = frozenset(
    {
        # Turkish
        "ve", "icin", "ile", "de", "da", "ise", "gibi", "daha", "cok", "en",
        "bir", "bu", "olan", "uzere", "adet", "takim", "paket", "tane",
        "yeni", "orjinal", "orijinal", "urun", "satis", "ozel", "super",
        # English
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "new", "original", "sale", "product", "item", "pcs",
        "piece",
    }
)


def fold(text: str) -> str:
    """Lowercase and strip diacritics, Turkish-aware.

    Args:
        text: Arbitrary text.

    Returns:
        Folded text with the original spacing and punctuation.
    """
    lowered = text.replace("İ", "i").lower()
    decomposed = unicodedata.normalize("NFKD", lowered)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.translate(_DOTLESS_I)


def normalize_query(text: str) -> str:
    """Fold text and collapse whitespace.

    Used for substring search and exact-name comparison, where
    punctuation is significant ("t-shirt").
    """
    return _WHITESPACE.sub(" ", fold(text)).strip()


def tokenize(text: str, min_length: int = MIN_KEYWORD_LENGTH) -> list[str]:
    """Split text into folded keywords.

    Punctuation becomes a word break, stop words and short tokens are
    dropped, duplicates removed keeping first occurrence.

    Args:
        text: Title, description or category name.
        min_length: Shortest token kept.

    Returns:
        Ordered list of unique keywords.
    """
    words = _PUNCTUATION.sub(" ", fold(text)).split()
    seen: set[str] = set()
    keywords: list[str] = []
    for word in words:
        if len(word) < min_length or word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        keywords.append(word)
    return keywords
