"""
Lexical keyword extraction for memory entries and queries.
"""

import re
from collections import Counter

STOPWORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "i", "me", "my",
    "can", "you", "your", "we", "they", "it", "its", "this", "that",
    "in", "on", "at", "to", "for", "of", "with", "and", "or", "but",
    "not", "no", "do", "does", "did", "has", "have", "had", "be",
    "been", "being", "will", "would", "could", "should", "may",
    "might", "shall", "so", "if", "then", "than", "too", "very",
    "just", "about", "up", "out", "how", "what", "when", "where",
    "who", "which", "there", "here", "all", "each", "every", "both",
    "few", "more", "most", "other", "some", "such", "only", "own",
    "same", "also", "into", "over", "after", "before", "between",
    "from", "them", "their", "these", "those", "user", "assistant",
})

_PUNCTUATION = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation, split on whitespace."""
    return _PUNCTUATION.sub("", (text or "").lower()).split()


def extract_keywords(text: str, limit: int = 10, min_length: int = 4) -> list[str]:
    """Top terms by in-document frequency, ignoring stopwords and short words."""
    words = [
        w for w in tokenize(text)
        if len(w) >= min_length and w not in STOPWORDS
    ]
    # most_common keeps first-seen order among equal counts
    return [word for word, _ in Counter(words).most_common(limit)]


def query_terms(query: str) -> list[str]:
    """Distinct non-stopword terms of a search query, in order."""
    seen: list[str] = []
    for word in tokenize(query):
        if word not in STOPWORDS and word not in seen:
            seen.append(word)
    return seen
