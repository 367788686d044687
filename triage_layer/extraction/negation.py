from __future__ import annotations

"""
Windowed negation predicate.

Design intent:
- Look only at a short window immediately before a phrase (chars and words).
- Stop the window at the nearest clause boundary so "no X but Y" leaves Y affirmed.
- This is a heuristic, not a dependency parse: long-distance negation
  ("I never thought this headache would ...") and scope beyond the window are
  expected false positives/negatives.
"""

import re
from typing import Callable

_PUNCT_RE = re.compile(r"([.,;:!?])")
_SPACE_RE = re.compile(r"\s+")

NEGATION_CUES: frozenset[str] = frozenset(
    {
        "no",
        "not",
        "without",
        "never",
        "don't",
        "dont",
        "doesn't",
        "doesnt",
        "didn't",
        "didnt",
        "haven't",
        "havent",
        "hasn't",
        "hasnt",
        "isn't",
        "isnt",
        "deny",
        "denies",
        "denied",
        "negative",
    }
)

CLAUSE_BOUNDARIES: frozenset[str] = frozenset(
    {"but", "however", "although", "though", "yet", "except", ".", ",", ";", ":", "!", "?"}
)


def _normalize(text: str) -> str:
    lowered = str(text or "").lower().replace("’", "'")
    spaced = _PUNCT_RE.sub(r" \1 ", lowered)
    return _SPACE_RE.sub(" ", spaced).strip()


def make_negation_predicate(
    text: str,
    *,
    window_chars: int = 40,
    window_words: int = 5,
) -> Callable[[str], bool]:
    padded = f" {_normalize(text)} "

    def is_negated(phrase: str) -> bool:
        target = _normalize(phrase)
        if not target:
            return False
        idx = padded.find(f" {target} ")
        if idx < 0:
            return False
        window = padded[max(0, idx - window_chars) : idx + 1]
        tokens = window.split()
        if idx - window_chars > 0 and tokens:
            # The first token may be a cut-off fragment of a longer word.
            tokens = tokens[1:]
        tokens = tokens[-window_words:] if window_words > 0 else []
        for pos in range(len(tokens) - 1, -1, -1):
            if tokens[pos] in CLAUSE_BOUNDARIES:
                tokens = tokens[pos + 1 :]
                break
        return any(token in NEGATION_CUES for token in tokens)

    return is_negated


# Cues that deny the phrase right after them. "without" is left out because
# "can't climb stairs without shortness of breath" affirms the symptom.
DENIAL_CUES: frozenset[str] = frozenset({"no", "deny", "denies", "denied", "denying"})


def make_denial_predicate(text: str) -> Callable[[str], bool]:
    """Narrower than make_negation_predicate: the cue must directly precede the phrase."""
    padded = f" {_normalize(text)} "

    def is_denied(phrase: str) -> bool:
        target = _normalize(phrase)
        if not target:
            return False
        idx = padded.find(f" {target} ")
        if idx < 0:
            return False
        before = padded[:idx].split()
        if before and before[-1] in DENIAL_CUES:
            return True
        return before[-2:] == ["negative", "for"]

    return is_denied
