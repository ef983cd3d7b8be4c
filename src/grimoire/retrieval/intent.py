"""
Query intent routing.

Callers often send the same text as both query and keywords. For short
names ("Captain Vex") full-text search alone is sharper; for questions
and descriptions the vector channel does better. Distinct query and
keywords are always left alone.
"""

import re
from typing import Literal, Optional, Tuple

from grimoire.core.logging import logger


QueryIntent = Literal["text", "vector"]

# "Captain Vex", "Ironhold"
_NAME_LIKE = re.compile(r"^[A-Z][a-z]*(\s+[A-Z][a-z]*)*$")
_QUESTION = re.compile(r"^(who|what|where|which|how|why)\b", re.IGNORECASE)
_DESCRIPTIVE_WORDS = re.compile(
    r"\b(the|who|that|with|from|in|at|a|an|where|which|what)\b", re.IGNORECASE
)
SHORT_QUERY_WORDS = 3


def detect_query_intent(text: Optional[str]) -> QueryIntent:
    """
    "text" for names and short keyword-ish queries, "vector" for
    questions and descriptive phrases. Empty text routes to "text".
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return "text"

    if _NAME_LIKE.match(trimmed):
        return "text"

    if _QUESTION.match(trimmed):
        return "vector"

    words = trimmed.split()
    if len(words) <= SHORT_QUERY_WORDS and not _DESCRIPTIVE_WORDS.search(trimmed):
        return "text"

    return "vector"


def route_query(
    query: Optional[str], keywords: Optional[str]
) -> Tuple[Optional[str], Optional[str]]:
    """
    Drops one side when query and keywords are the same text.

    Returns:
        (query, keywords) with the unused side set to None
    """
    if not query or not keywords or query.strip() != keywords.strip():
        return query, keywords

    intent = detect_query_intent(query)
    logger.debug("Query intent detected", intent=intent, query_length=len(query))
    if intent == "text":
        return None, keywords
    return query, None
