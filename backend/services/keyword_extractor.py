"""Frequency-based keyword extraction."""
from collections import Counter
from typing import List

from config import MAX_KEYWORDS

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
    "has", "he", "in", "is", "it", "its", "of", "on", "that", "the",
    "to", "was", "were", "will", "with", "this", "but", "they",
    "have", "had", "what", "when", "where", "who", "which", "why", "how",
})


def extract_keywords(content: str, max_keywords: int = MAX_KEYWORDS) -> List[str]:
    """
    Pick the most frequent meaningful words of a text.

    Words are split on whitespace and lower-cased; words of three characters
    or fewer and stop words are ignored. Ties keep first-encounter order.

    Args:
        content: Text to scan
        max_keywords: Maximum number of keywords to return

    Returns:
        Up to ``max_keywords`` lower-case keywords, most frequent first
    """
    words = [
        word.lower()
        for word in content.split()
        if len(word) > 3 and word.lower() not in STOP_WORDS
    ]
    # Counter preserves insertion order and most_common() sorts stably.
    return [word for word, _ in Counter(words).most_common(max_keywords)]
