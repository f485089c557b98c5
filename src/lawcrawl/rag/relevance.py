"""Relevance gate for retrieved passages.

A result set is accepted only when its best score clears ``min_score`` AND at
least ``min_term_ratio`` of the question's key terms appear in the text of
the top three passages. Questions with no key terms are rejected.
"""

from __future__ import annotations

import string
from collections.abc import Sequence

from lawcrawl.db.models import Passage

STOPWORDS: frozenset[str] = frozenset(
    ["what", "when", "where", "how", "why", "who", "the", "and", "for", "that", "this"]
)
MIN_TERM_LENGTH = 4
TOP_N = 3

ScoredPassage = tuple[Passage, float]


def extract_key_terms(question: str) -> list[str]:
    """Lower-cased words longer than three characters, minus stopwords.

    Length is measured on the whitespace-split word; surrounding punctuation
    is then stripped so ``law?`` counts as ``law``.
    """
    terms: list[str] = []
    for word in question.lower().split():
        if len(word) < MIN_TERM_LENGTH:
            continue
        word = word.strip(string.punctuation)
        if word and word not in STOPWORDS:
            terms.append(word)
    return terms


def are_results_relevant(
    results: Sequence[ScoredPassage],
    question: str,
    min_score: float = 0.7,
    min_term_ratio: float = 0.5,
) -> bool:
    """Accept or reject a best-first result set for *question*."""
    if not results:
        return False
    if results[0][1] < min_score:
        return False

    terms = extract_key_terms(question)
    if not terms:
        return False

    combined = " ".join(p.text.lower() for p, _ in results[:TOP_N])
    matched = sum(1 for term in terms if term in combined)
    return matched / len(terms) >= min_term_ratio


def high_relevance(
    results: Sequence[ScoredPassage], min_score: float = 0.7
) -> list[ScoredPassage]:
    """Passages whose own score clears *min_score*, order kept."""
    return [(p, score) for p, score in results if score >= min_score]
