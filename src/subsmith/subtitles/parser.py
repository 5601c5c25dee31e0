"""Subtitle parsing and rendering.

Parsing never fails, it only degrades:
1. SRT via the ``srt`` library (source sequence numbers are kept)
2. Any other format pysubs2 recognises (VTT, ASS/SSA), numbered by position
3. One line per non-blank text line with zero timestamps

Rendering always produces SRT.
"""

from __future__ import annotations

import re
from datetime import timedelta

import pysubs2
import srt

from subsmith.core.errors import ParseDegraded
from subsmith.core.models import SubtitleLine, TranslatedLine
from subsmith.utils.console import console

_TAG_RE = re.compile(r"<[^>]*>")
_PYSUBS2_FORMATS = {"srt", "vtt", "ass", "ssa"}
_ZERO = timedelta(0)


def strip_tags(text: str) -> str:
    """Remove inline markup such as <i> or <font color=...>."""
    return _TAG_RE.sub("", text).strip()


def _duration(start: timedelta, end: timedelta) -> float:
    seconds = (end - start).total_seconds()
    if seconds != seconds or seconds < 0:  # NaN or negative
        return 0.0
    return seconds


def _make_line(sequence: int, start: timedelta, end: timedelta, text: str) -> SubtitleLine:
    return SubtitleLine(
        sequence=sequence,
        start=start,
        end=end,
        duration=_duration(start, end),
        text=strip_tags(text),
    )


def _parse_srt(content: str) -> list[SubtitleLine]:
    try:
        subs = list(srt.parse(content))
    except (srt.SRTParseError, ValueError) as e:
        raise ParseDegraded(f"not valid SRT: {e}") from e
    if not subs:
        raise ParseDegraded("no SRT blocks found")
    # Blocks without an index number are numbered by position
    return [
        _make_line(sub.index if sub.index is not None else i, sub.start, sub.end, sub.content)
        for i, sub in enumerate(subs, 1)
    ]


def _parse_other(content: str) -> list[SubtitleLine]:
    try:
        subs = pysubs2.SSAFile.from_string(content)
    except Exception as e:  # pysubs2 raises a variety of format errors
        raise ParseDegraded(f"unrecognised subtitle format: {e}") from e
    if subs.format not in _PYSUBS2_FORMATS:
        raise ParseDegraded(f"unsupported subtitle format: {subs.format}")
    events = [event for event in subs.events if not event.is_comment]
    if not events:
        raise ParseDegraded("no subtitle events found")
    return [
        _make_line(
            i,
            timedelta(milliseconds=event.start),
            timedelta(milliseconds=event.end),
            event.plaintext,
        )
        for i, event in enumerate(events, 1)
    ]


def _parse_naive(content: str) -> list[SubtitleLine]:
    texts = [strip_tags(line) for line in content.splitlines()]
    texts = [text for text in texts if text]
    return [_make_line(i, _ZERO, _ZERO, text) for i, text in enumerate(texts, 1)]


def parse(content: str) -> list[SubtitleLine]:
    """Parse subtitle text into an ordered list of lines.

    Never raises. Structural failures fall back to a less faithful parser
    and are reported on the console.
    """
    if not content.strip():
        return []

    try:
        return _parse_srt(content)
    except ParseDegraded as srt_error:
        try:
            lines = _parse_other(content)
        except ParseDegraded as other_error:
            console.print(
                f"[yellow]Subtitle parsing degraded to plain lines:[/yellow] "
                f"{srt_error}; {other_error}"
            )
            return _parse_naive(content)
        console.print(f"[dim]Not SRT ({srt_error}), parsed as generic subtitles.[/dim]")
        return lines


def render(lines: list[TranslatedLine]) -> str:
    """Render translated lines as SRT, keeping sequence numbers and timings."""
    subs = [
        srt.Subtitle(
            index=line.sequence,
            start=line.start,
            end=line.end,
            content=line.translated_text,
        )
        for line in lines
    ]
    return srt.compose(subs, reindex=False)
