"""Joining rules for dictated and typed text buffers.

Speech-to-text delivers finalized segments one at a time; these helpers
decide how each segment lands in the transcript or exam-input buffer.
"""

from enum import Enum


class SpeechTarget(str, Enum):
    """Buffer that receives a dictated segment."""

    TRANSCRIPT = "transcript"
    EXAMS = "exams"


def append_transcript_segment(previous: str, segment: str) -> str:
    if not segment:
        return previous
    return previous + (" " if previous else "") + segment


def append_exam_segment(previous: str, segment: str) -> str:
    """Append one dictated exam line, capitalized, on its own line."""
    cleaned = segment.strip()
    if not cleaned:
        return previous
    formatted = cleaned[0].upper() + cleaned[1:]
    separator = "\n" if previous and not previous.endswith("\n") else ""
    return previous + separator + formatted


def append_segment(target: SpeechTarget, previous: str, segment: str) -> str:
    if target is SpeechTarget.TRANSCRIPT:
        return append_transcript_segment(previous, segment)
    if target is SpeechTarget.EXAMS:
        return append_exam_segment(previous, segment)
    raise ValueError(f"Unknown speech target: {target}")


def add_lab_macro(previous: str, exam_name: str) -> str:
    """Start a new ``Exam: `` line so the value can be dictated next."""
    separator = "\n" if previous and not previous.endswith("\n") else ""
    return previous + separator + exam_name + ": "


def remove_last_line(previous: str) -> str:
    lines = previous.split("\n")
    lines.pop()
    return "\n".join(lines)
