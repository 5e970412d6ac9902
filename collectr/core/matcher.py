"""Fuzzy matching of catalog names against directory names."""

import logging
import re

from ..config.settings import CatalogItem
from .models import AvailableContent, MatchResult

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "from", "up", "about", "into", "through", "during", "before",
    "after", "above", "below", "between", "among",
})

_NON_WORD = re.compile(r"[^\w\s]")


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1] of two lowercased strings."""
    a, b = a.lower(), b.lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def extract_words(text: str) -> set[str]:
    """Significant lowercase words of a name."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    return {w for w in words if len(w) > 2 and w not in STOP_WORDS}


class ContentMatcher:
    """Resolves catalog names to the closest existing directory name."""

    DEFAULT_THRESHOLD = 0.6
    EXACT_MATCH_THRESHOLD = 0.95

    def find_best_match(
        self,
        target: str,
        candidates: list[str],
        threshold: float = DEFAULT_THRESHOLD,
    ) -> MatchResult | None:
        """Best candidate for target, or None when nothing is close enough."""
        if not candidates:
            return None

        lowered = target.lower()
        for candidate in candidates:
            if candidate.lower() == lowered:
                return MatchResult(matched_name=candidate, score=1.0, is_exact_match=True)

        best_name = None
        best_score = -1.0
        for candidate in candidates:
            score = similarity(target, candidate)
            if score > best_score:
                best_name, best_score = candidate, score

        if best_score >= threshold:
            return MatchResult(
                matched_name=best_name,
                score=best_score,
                is_exact_match=best_score >= self.EXACT_MATCH_THRESHOLD,
            )

        return self._word_overlap_match(target, candidates, threshold)

    def find_multiple_matches(
        self,
        target: str,
        candidates: list[str],
        max_results: int = 5,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[MatchResult]:
        """All candidates scoring at least threshold, best first."""
        results = []
        for candidate in candidates:
            if candidate.lower() == target.lower():
                score = 1.0
            else:
                score = max(similarity(target, candidate), self._word_overlap_score(target, candidate))
            if score >= threshold:
                results.append(MatchResult(
                    matched_name=candidate,
                    score=score,
                    is_exact_match=score >= self.EXACT_MATCH_THRESHOLD,
                ))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:max_results]

    def find_batch_matches(
        self,
        items: list[CatalogItem],
        available: AvailableContent,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[MatchResult | None]:
        """Resolve each item against the directory pool of its content type.

        Results are aligned with items; each match carries the library
        category its directory was found in.
        """
        results: list[MatchResult | None] = []
        for item in items:
            match = self.find_best_match(item.name, available.for_type(item.type), threshold)
            if match is None:
                logger.debug(f"No match for {item.type} '{item.name}'")
            else:
                match.category = available.category_of(item.type, match.matched_name)
                if not match.is_exact_match:
                    logger.debug(f"Fuzzy match '{item.name}' -> '{match.matched_name}' ({match.score:.2f})")
            results.append(match)
        return results

    def _word_overlap_match(
        self, target: str, candidates: list[str], threshold: float
    ) -> MatchResult | None:
        best = None
        for candidate in candidates:
            score = self._word_overlap_score(target, candidate)
            if score >= threshold and (best is None or score > best.score):
                best = MatchResult(
                    matched_name=candidate,
                    score=score,
                    is_exact_match=score >= self.EXACT_MATCH_THRESHOLD,
                )
        return best

    @staticmethod
    def _word_overlap_score(target: str, candidate: str) -> float:
        """Fraction of the target's significant words present in candidate."""
        target_words = extract_words(target)
        candidate_words = extract_words(candidate)
        if not target_words or not candidate_words:
            return 0.0
        return len(target_words & candidate_words) / len(target_words)
