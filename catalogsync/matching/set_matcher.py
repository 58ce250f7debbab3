"""
Set matching.

Decides which external products belong to a target internal set. Product
search returns loose hits (other years, other subsets, unrelated merchandise),
so each product goes through layered, deterministic checks:

1. Non-card exclusion: video games, toys and the like are always rejected.
2. Keyword path: when the target names a niche subset ("what if",
   "autograph", ...), the candidate must name the same subset and carry the
   year and brand tokens of the target. This path is decisive, so generic
   similarity never pulls a base-set product into a subset.
3. Similarity path: normalized edit-distance similarity of the console name.
4. Word-overlap path: most of the target's significant words appear.
5. Structured-pattern path: same year, manufacturer and product line.

There is no tie-break between sets; duplicate acceptances are absorbed by
the card-level dedup index.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from catalogsync.config import (
    MANUFACTURER_TOKENS,
    NON_CARD_TOKENS,
    PARENT_BRAND_TOKENS,
    PRODUCT_LINE_TOKENS,
    SUBSET_KEYWORDS,
)
from catalogsync.matching.similarity import normalize_label, similarity
from catalogsync.models.catalog import ExternalProduct

DEFAULT_SIMILARITY_THRESHOLD = 0.85
DEFAULT_WORD_OVERLAP_THRESHOLD = 0.6

_YEAR = re.compile(r"\b(\d{4})\b")


class MatchPath(str, Enum):
    """Which check decided a product's fate."""

    EXCLUDED = "excluded"
    KEYWORD = "keyword"
    SIMILARITY = "similarity"
    WORD_OVERLAP = "word_overlap"
    STRUCTURED = "structured"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class MatchDecision:
    """Outcome of matching one product against a target set."""

    accepted: bool
    path: MatchPath
    score: float | None = None


def _contains_phrase(text: str, phrase: str) -> bool:
    """Whole-word phrase containment on normalized text."""
    return f" {phrase} " in f" {text} "


def _find_token(text: str, tokens: Iterable[str]) -> str | None:
    for token in tokens:
        if _contains_phrase(text, token):
            return token
    return None


def _year_of(text: str) -> str | None:
    match = _YEAR.search(text)
    return match.group(1) if match else None


def _anchor_tokens(target: str) -> list[str]:
    """Year, manufacturer, product-line and parent-brand tokens named by the target."""
    year = _year_of(target)
    tokens = [year] if year else []
    for table in (MANUFACTURER_TOKENS, PRODUCT_LINE_TOKENS, PARENT_BRAND_TOKENS):
        tokens.extend(token for token in table if _contains_phrase(target, token))
    return tokens


class SetMatcher:
    """
    Layered heuristics mapping external products onto one internal set.

    Args:
        similarity_threshold: Minimum similarity for the similarity path
        word_overlap_threshold: Minimum share of significant target words
            present in the candidate for the word-overlap path
    """

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        word_overlap_threshold: float = DEFAULT_WORD_OVERLAP_THRESHOLD,
    ) -> None:
        self.similarity_threshold = similarity_threshold
        self.word_overlap_threshold = word_overlap_threshold

    def decide(self, target_name: str, product: ExternalProduct) -> MatchDecision:
        """Run every path in order and report the first one that applies."""
        target = normalize_label(target_name)
        console = normalize_label(product.console_name)
        title = normalize_label(product.product_name)

        if _find_token(console, NON_CARD_TOKENS) or _find_token(title, NON_CARD_TOKENS):
            return MatchDecision(accepted=False, path=MatchPath.EXCLUDED)

        keyword_decision = self._keyword_path(target, console, title)
        if keyword_decision is not None:
            return keyword_decision

        score = similarity(target, console)
        if score >= self.similarity_threshold:
            return MatchDecision(accepted=True, path=MatchPath.SIMILARITY, score=score)

        overlap = self._word_overlap(target, console)
        if overlap is not None and overlap >= self.word_overlap_threshold:
            return MatchDecision(accepted=True, path=MatchPath.WORD_OVERLAP, score=overlap)

        if self._structured_match(target, console):
            return MatchDecision(accepted=True, path=MatchPath.STRUCTURED)

        return MatchDecision(accepted=False, path=MatchPath.NONE, score=score)

    def accepts(self, target_name: str, product: ExternalProduct) -> bool:
        """True if the product belongs to the target set."""
        return self.decide(target_name, product).accepted

    def filter(
        self, target_name: str, products: Iterable[ExternalProduct]
    ) -> list[ExternalProduct]:
        """Products accepted for the target set, in input order."""
        return [product for product in products if self.accepts(target_name, product)]

    def _keyword_path(self, target: str, console: str, title: str) -> MatchDecision | None:
        """
        Decisive subset check. Returns None when the target names no subset.

        The keyword and every anchor token of the target must appear in the
        console name or the product name (either one may carry each token).
        """
        keyword = next((k for k in SUBSET_KEYWORDS if k in target), None)
        if keyword is None:
            return None

        tokens = [keyword, *_anchor_tokens(target)]
        accepted = all(token in console or token in title for token in tokens)
        return MatchDecision(accepted=accepted, path=MatchPath.KEYWORD)

    @staticmethod
    def _word_overlap(target: str, console: str) -> float | None:
        """Share of significant target words found in the console name."""
        significant = [word for word in target.split(" ") if len(word) > 2]
        if not significant:
            return None
        candidate_words = set(console.split(" "))
        found = sum(1 for word in significant if word in candidate_words)
        return found / len(significant)

    @staticmethod
    def _structured_match(target: str, console: str) -> bool:
        """Same year, manufacturer and product line on both sides."""
        year = _year_of(target)
        manufacturer = _find_token(target, MANUFACTURER_TOKENS)
        product_line = _find_token(target, PRODUCT_LINE_TOKENS)
        if not (year and manufacturer and product_line):
            return False

        return (
            year in console
            and _contains_phrase(console, manufacturer)
            and _contains_phrase(console, product_line)
        )
