#!/usr/bin/env python3
"""
Header normalization and fuzzy similarity for asset-inventory.

Contains:
- Header/label normalization shared by every auto-mapping tier
- Levenshtein and Jaro-Winkler similarity
- Weighted suggestion ranking for headers the exact tiers could not place
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass
class FuzzyConfig:
    """Configuration for fuzzy suggestion behavior."""

    enabled: bool = True
    threshold: float = 0.75  # Minimum combined score for a suggestion
    max_suggestions: int = 3
    levenshtein_weight: float = 0.5
    jaro_winkler_weight: float = 0.5


def normalize_header(text: str) -> str:
    """
    Normalize a header, label or path for comparison.

    Accents are folded to ASCII, the result is lower-cased and every
    non-alphanumeric character is removed, so ``"Serial  Number"``,
    ``"serial_number"`` and ``"serialNumber"`` all become ``"serialnumber"``.
    """
    if not text:
        return ""

    decomposed = unicodedata.normalize("NFD", str(text))
    ascii_text = decomposed.encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]", "", ascii_text.lower())


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, 1):
        current = [i]
        for j, c2 in enumerate(s2, 1):
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + (c1 != c2))
            )
        previous = current
    return previous[-1]


def levenshtein_similarity(s1: str, s2: str) -> float:
    """Levenshtein similarity scaled to 0.0 - 1.0."""
    if not s1 and not s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return 1.0 - levenshtein_distance(s1, s2) / max(len(s1), len(s2))


def jaro_winkler_similarity(s1: str, s2: str, prefix_scale: float = 0.1) -> float:
    """Jaro-Winkler similarity (0.0 - 1.0), boosting a shared prefix of up to 4."""
    if not s1 and not s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    window = max(max(len(s1), len(s2)) // 2 - 1, 0)
    s1_flags = [False] * len(s1)
    s2_flags = [False] * len(s2)

    matches = 0
    for i, c1 in enumerate(s1):
        for j in range(max(0, i - window), min(i + window + 1, len(s2))):
            if not s2_flags[j] and s2[j] == c1:
                s1_flags[i] = s2_flags[j] = True
                matches += 1
                break
    if matches == 0:
        return 0.0

    s1_matched = [c for c, flag in zip(s1, s1_flags) if flag]
    s2_matched = [c for c, flag in zip(s2, s2_flags) if flag]
    transpositions = sum(a != b for a, b in zip(s1_matched, s2_matched)) / 2

    jaro = (
        matches / len(s1) + matches / len(s2) + (matches - transpositions) / matches
    ) / 3

    prefix = 0
    for a, b in zip(s1[:4], s2[:4]):
        if a != b:
            break
        prefix += 1
    return jaro + prefix * prefix_scale * (1 - jaro)


def combined_similarity(s1: str, s2: str, config: FuzzyConfig) -> float:
    """Weighted blend of both algorithms on normalized input."""
    a, b = normalize_header(s1), normalize_header(s2)
    return (
        levenshtein_similarity(a, b) * config.levenshtein_weight
        + jaro_winkler_similarity(a, b) * config.jaro_winkler_weight
    )


def rank_candidates(
    header: str,
    candidates: Iterable[Tuple[str, Iterable[str]]],
    config: FuzzyConfig,
) -> List[Tuple[str, float]]:
    """
    Rank target candidates for a header.

    Args:
        header: Source header to place
        candidates: (target key, [comparable texts]) pairs; the best text wins
        config: Fuzzy configuration

    Returns:
        Up to ``max_suggestions`` (target key, score) pairs at or above the
        threshold, best first
    """
    if not config.enabled:
        return []

    scored = []
    for key, texts in candidates:
        best = max(
            (combined_similarity(header, text, config) for text in texts), default=0.0
        )
        if best >= config.threshold:
            scored.append((key, round(best, 3)))

    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[: config.max_suggestions]
