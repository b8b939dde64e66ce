"""Splits a speech into tokens and the boundaries where a turn may happen."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple, Union

DEFAULT_CLOSING_PHRASE = "in conclusion"

SENTENCE_END_RE = re.compile(r"[.!?][\"')\]”’»]*$")
PHRASE_END_RE = re.compile(r"[,;:][\"')\]”’»]*$")
SENTENCE_SPLIT_RE = re.compile(r"[^.!?]+[.!?]+(?:[\"')\]”’]+)?")
FINISH_MARKER_RE = re.compile(r"\[FINISH\]\s*$", re.IGNORECASE)

DEFAULT_CLOSERS = (
    "Steel your resolve and act with haste.",
    "Let every hand finish the duty before us.",
    "Rome expects every dagger to do its part.",
)
FALLBACK_CLOSER = "Let us see this business to its end."
DEFAULT_CLOSING_SENTENCE = "In conclusion, my fellow senators, heed me."


@dataclass(frozen=True)
class SentenceSpan:
    """A run of tokens [start, end) ending at a sentence boundary."""

    start: int
    end: int
    text: str


@dataclass(frozen=True)
class Segments:
    """Tokens of a speech plus every boundary list derived from them."""

    tokens: Tuple[str, ...]
    sentence_ends: Tuple[int, ...]
    phrase_ends: Tuple[int, ...]
    word_boundaries: Tuple[int, ...]
    sentences: Tuple[SentenceSpan, ...]
    closing_boundary: float = math.inf

    @property
    def token_count(self) -> int:
        return len(self.tokens)

    @property
    def sentence_count(self) -> int:
        return len(self.sentence_ends)

    @property
    def has_closing(self) -> bool:
        return not math.isinf(self.closing_boundary)


def compile_closing_pattern(closing: Union[str, Pattern[str], None] = None) -> Pattern[str]:
    """Builds the closing-phrase matcher, anchored at a word boundary on both sides."""
    if closing is None:
        closing = DEFAULT_CLOSING_PHRASE
    if isinstance(closing, re.Pattern):
        return closing
    parts = closing.split()
    if not parts:
        # Never matches: no closing section
        return re.compile(r"(?!)")
    words = r"\s+".join(re.escape(part) for part in parts)
    return re.compile(rf"(?:^|\s){words}(?!\w)", re.IGNORECASE)


def split_sentences(text: str) -> List[str]:
    """Splits prose into sentences, keeping an unpunctuated tail as its own sentence."""
    sentences: List[str] = []
    last = 0
    for match in SENTENCE_SPLIT_RE.finditer(text):
        sentences.append(match.group(0).strip())
        last = match.end()
    tail = text[last:].strip()
    if tail:
        sentences.append(tail)
    return [s for s in sentences if s]


def tokenize(text: str) -> List[str]:
    """Splits on runs of whitespace. Empty input yields a single empty token."""
    return (text or "").split() or [""]


def _sentence_spans(tokens: List[str], sentence_ends: List[int]) -> List[SentenceSpan]:
    spans: List[SentenceSpan] = []
    prev = 0
    for end in sentence_ends:
        spans.append(SentenceSpan(prev, end, " ".join(tokens[prev:end])))
        prev = end
    # Trailing fragment without terminal punctuation
    if prev < len(tokens) and any(tokens[prev:]):
        spans.append(SentenceSpan(prev, len(tokens), " ".join(tokens[prev:])))
    return spans


def segment(text: str, closing: Union[str, Pattern[str], None] = None) -> Segments:
    """Tokenizes ``text`` and locates sentence, phrase and word boundaries.

    Boundary values are exclusive token indices: a boundary ``i`` sits between
    ``tokens[i - 1]`` and ``tokens[i]``. ``closing_boundary`` is the start of the
    first sentence matching the closing phrase, or ``math.inf`` when none does.
    """
    tokens = tokenize(text)

    sentence_ends: List[int] = []
    phrase_ends: List[int] = []
    for i, token in enumerate(tokens):
        if SENTENCE_END_RE.search(token):
            sentence_ends.append(i + 1)
            phrase_ends.append(i + 1)
        elif PHRASE_END_RE.search(token):
            phrase_ends.append(i + 1)

    word_boundaries = list(range(1, len(tokens)))
    spans = _sentence_spans(tokens, sentence_ends)

    pattern = compile_closing_pattern(closing)
    closing_boundary: float = math.inf
    for span in spans:
        if pattern.search(span.text):
            closing_boundary = span.start
            break

    return Segments(
        tokens=tuple(tokens),
        sentence_ends=tuple(sentence_ends),
        phrase_ends=tuple(phrase_ends),
        word_boundaries=tuple(word_boundaries),
        sentences=tuple(spans),
        closing_boundary=closing_boundary,
    )


def strip_finish_marker(text: str) -> str:
    """Removes a trailing ``[FINISH]`` marker left by the speech writer."""
    return FINISH_MARKER_RE.sub("", text or "").strip()


def ensure_closing_runway(
    text: str,
    closing: Union[str, Pattern[str], None] = None,
    min_after: int = 3,
    closers: Optional[Tuple[str, ...]] = None,
) -> str:
    """Makes sure a closing sentence exists with ``min_after`` sentences behind it."""
    sentences = split_sentences((text or "").strip())

    pattern = compile_closing_pattern(closing)
    idx = next((i for i, s in enumerate(sentences) if pattern.search(s)), -1)
    if idx == -1:
        sentences.append(DEFAULT_CLOSING_SENTENCE)
        idx = len(sentences) - 1

    closers = closers if closers is not None else DEFAULT_CLOSERS
    remaining = len(sentences) - idx - 1
    needed = max(0, min_after - remaining)
    for i in range(needed):
        sentences.append(closers[i] if i < len(closers) else FALLBACK_CLOSER)

    return re.sub(r"\s+", " ", " ".join(sentences)).strip()


def prepare_speech(
    text: str,
    closing: Union[str, Pattern[str], None] = None,
    ensure_runway: bool = True,
) -> str:
    """Cleans up a generated speech before it is segmented."""
    cleaned = strip_finish_marker(text)
    if ensure_runway:
        cleaned = ensure_closing_runway(cleaned, closing)
    return cleaned


__all__ = [
    "DEFAULT_CLOSING_PHRASE",
    "Segments",
    "SentenceSpan",
    "compile_closing_pattern",
    "ensure_closing_runway",
    "prepare_speech",
    "segment",
    "split_sentences",
    "strip_finish_marker",
    "tokenize",
]
