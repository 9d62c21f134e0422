"""Script segmentation into speech and silence units.

A meditation script is plain text with inline pause markers such as
``{{PAUSE_5s}}``. The lexer turns the whitespace-normalized script into text
and pause tokens; the parser turns tokens into ``ScriptUnit``s, splitting long
text runs so each speech unit fits the synthesis service's input limit.
"""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass

from .errors import SegmentationError
from .models import ScriptUnit

logger = logging.getLogger(__name__)

MARKER_OPEN = "{{PAUSE_"
MARKER_CLOSE = "}}"
DEFAULT_MAX_CHUNK_LENGTH = 4000
SPLIT_CHARACTERS = ".,"

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Token:
    """Lexer output: either a run of text or a pause of ``seconds``.

    ``start`` and ``end`` are offsets into the normalized script.
    """

    text: str = ""
    seconds: int = 0
    start: int = 0
    end: int = 0

    @property
    def is_pause(self) -> bool:
        return self.seconds > 0


def normalize_whitespace(script: str) -> str:
    """Collapse whitespace runs to a single space and trim both ends."""
    return _WHITESPACE.sub(" ", script).strip()


def format_marker(seconds: int) -> str:
    return f"{MARKER_OPEN}{seconds}s{MARKER_CLOSE}"


def _parse_marker_body(body: str) -> int:
    """Parse the ``<integer>s`` part of a pause marker.

    Raises:
        SegmentationError: If the duration is missing, non-numeric or not positive
    """
    digits = body[:-1]
    if not body.endswith("s") or not digits or not (digits.isascii() and digits.isdigit()):
        raise SegmentationError(
            f"Malformed pause marker {MARKER_OPEN}{body}{MARKER_CLOSE}: "
            "expected a whole number of seconds like {{PAUSE_5s}}"
        )
    seconds = int(digits)
    if seconds <= 0:
        raise SegmentationError(
            f"Pause duration must be positive, got {format_marker(seconds)}"
        )
    return seconds


def tokenize(script: str) -> Iterator[Token]:
    """Yield text and pause tokens from an already normalized script.

    Raises:
        SegmentationError: If a marker is malformed or never closed
    """
    position = 0
    while position < len(script):
        start = script.find(MARKER_OPEN, position)
        if start == -1:
            yield Token(text=script[position:], start=position, end=len(script))
            return

        if start > position:
            yield Token(text=script[position:start], start=position, end=start)

        body_start = start + len(MARKER_OPEN)
        end = script.find(MARKER_CLOSE, body_start)
        if end == -1:
            raise SegmentationError(
                f"Unterminated pause marker at character {start}"
            )

        position = end + len(MARKER_CLOSE)
        yield Token(
            seconds=_parse_marker_body(script[body_start:end]),
            start=start,
            end=position,
        )


def _skip_space(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


def split_spans(text: str, max_length: int) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of the pieces ``split_text`` produces.

    Cuts after the last period or comma inside the window; falls back to a
    hard cut at ``max_length`` when the window has neither. Whitespace around
    a cut is dropped.
    """
    spans = []
    start = _skip_space(text, 0)
    text_end = len(text.rstrip())
    while text_end - start > max_length:
        window = text[start : start + max_length]
        cut = max(window.rfind(ch) for ch in SPLIT_CHARACTERS)
        end = start + (cut + 1 if cut > 0 else max_length)
        piece_end = start + len(text[start:end].rstrip())
        if piece_end > start:
            spans.append((start, piece_end))
        start = _skip_space(text, end)
    if start < text_end:
        spans.append((start, text_end))
    return spans


def split_text(text: str, max_length: int) -> list[str]:
    """Split a text run into pieces no longer than ``max_length``."""
    return [text[start:end] for start, end in split_spans(text, max_length)]


class ScriptSegmenter:
    """Turns raw script text into an ordered list of ``ScriptUnit``s.

    Each unit records whether whitespace preceded it, so ``render`` can
    rebuild the normalized script exactly, hard cuts included.

    Example:
        segmenter = ScriptSegmenter(max_chunk_length=4000)
        units = segmenter.segment("Breathe in. {{PAUSE_4s}} Breathe out.")
        # [speech("Breathe in."), silence(4), speech("Breathe out.")]
    """

    def __init__(self, max_chunk_length: int = DEFAULT_MAX_CHUNK_LENGTH) -> None:
        if max_chunk_length <= 0:
            raise ValueError(
                f"max_chunk_length must be positive, got {max_chunk_length}"
            )
        self.max_chunk_length = max_chunk_length

    def segment(self, script: str) -> list[ScriptUnit]:
        """Segment a script, preserving left-to-right order.

        Args:
            script: Raw script text with optional pause markers

        Returns:
            Ordered units; empty if the script has no content

        Raises:
            SegmentationError: If a pause marker is malformed
        """
        units: list[ScriptUnit] = []
        previous_end = 0
        for token in tokenize(normalize_whitespace(script)):
            if token.is_pause:
                units.append(
                    ScriptUnit.silence(token.seconds, token.start > previous_end)
                )
                previous_end = token.end
                continue
            for start, end in split_spans(token.text, self.max_chunk_length):
                units.append(
                    ScriptUnit.speech(
                        token.text[start:end], token.start + start > previous_end
                    )
                )
                previous_end = token.start + end
        logger.debug(
            f"Segmented script into {len(units)} units "
            f"({sum(1 for u in units if u.is_silence)} pauses)"
        )
        return units


def segment(
    script: str, max_chunk_length: int = DEFAULT_MAX_CHUNK_LENGTH
) -> list[ScriptUnit]:
    """Segment ``script`` with a throwaway ``ScriptSegmenter``."""
    return ScriptSegmenter(max_chunk_length).segment(script)


def render(units: list[ScriptUnit]) -> str:
    """Rebuild script text from units, re-encoding pauses as markers.

    Units are separated by one space where the script had whitespace and
    joined directly otherwise.
    """
    parts = []
    for index, unit in enumerate(units):
        if index and unit.space_before:
            parts.append(" ")
        parts.append(format_marker(unit.pause_seconds) if unit.is_silence else unit.text)
    return "".join(parts)
