"""Fuzzy tool-name resolution for helper calls.

Models often get tool names slightly wrong (``serach_articles``,
``entrez_search_articles``, ``searchArticles``). ``resolve_tool_name`` maps such
a name onto a known tool only when one candidate is clearly the best match;
ambiguous names are returned unchanged so the server reports the miss.
"""

from __future__ import annotations

import re
from difflib import SequenceMatcher
from typing import Iterable, List, Optional, Sequence

ACCEPT_THRESHOLD = 0.6
UNIQUE_MARGIN = 0.05
TOKEN_MATCH_RATIO = 0.7

_GENERIC_STOPWORDS = {"mcp", "server", "tool"}


def normalize_name(name: str) -> str:
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name or "")
    return re.sub(r"[^a-z0-9]+", "_", spaced.lower()).strip("_")


def name_tokens(name: str, stopwords: Iterable[str] = ()) -> List[str]:
    stop = set(stopwords)
    return [t for t in normalize_name(name).split("_") if t and t not in stop]


def _stopwords(server_key: Optional[str]) -> set:
    return set(_GENERIC_STOPWORDS) | set(name_tokens(server_key or ""))


def _token_dice(a: Sequence[str], b: Sequence[str]) -> float:
    if not a or not b:
        return 0.0
    unmatched = list(b)
    matches = 0
    for token in a:
        best_i, best_ratio = -1, 0.0
        for i, other in enumerate(unmatched):
            ratio = 1.0 if token == other else SequenceMatcher(None, token, other).ratio()
            if ratio > best_ratio:
                best_i, best_ratio = i, ratio
        if best_i >= 0 and best_ratio >= TOKEN_MATCH_RATIO:
            matches += 1
            unmatched.pop(best_i)
    return 2 * matches / (len(a) + len(b))


def similarity(requested: str, candidate: str, server_key: Optional[str] = None) -> float:
    """Best of token-overlap and whole-name similarity, in [0, 1]."""
    stop = _stopwords(server_key)
    a, b = name_tokens(requested, stop), name_tokens(candidate, stop)
    whole = SequenceMatcher(None, "_".join(a), "_".join(b)).ratio() if a and b else 0.0
    return max(_token_dice(a, b), whole)


def resolve_tool_name(requested: str, candidates: Iterable[str], server_key: Optional[str] = None) -> str:
    """Map ``requested`` onto one of ``candidates`` or return it unchanged.

    Args:
        requested: Name used by the caller.
        candidates: Tool names the server exposes.
        server_key: Helper key of the server; its name tokens are ignored when
            comparing (``entrez_search`` matches ``search``).

    Returns:
        The resolved candidate, or ``requested`` when no unique match exists.
    """
    names = list(candidates)
    if requested in names:
        return requested

    norm = normalize_name(requested)
    exact = [c for c in names if normalize_name(c) == norm]
    if len(exact) == 1:
        return exact[0]

    scored = sorted(((similarity(requested, c, server_key), c) for c in names), reverse=True)
    if scored and scored[0][0] >= ACCEPT_THRESHOLD:
        best_score, best = scored[0]
        runner_up = scored[1][0] if len(scored) > 1 else 0.0
        if best_score - runner_up >= UNIQUE_MARGIN:
            return best

    stripped = "_".join(name_tokens(requested, _stopwords(server_key)))
    if stripped:
        contained = [c for c in names if stripped in normalize_name(c) or normalize_name(c) in stripped]
        if len(contained) == 1:
            return contained[0]
    return requested
