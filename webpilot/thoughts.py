from __future__ import annotations

from dataclasses import dataclass

_DELIMITER = "**"


@dataclass(frozen=True)
class ThoughtSummary:
    subject: str
    description: str


def parse_thought(raw_text: str) -> ThoughtSummary:
    """
    Split a model "thought" into its bold subject line and the remaining text.

    Thoughts are formatted like ``**Checking the form** I need to ...``; text
    without a complete ``**...**`` pair has no subject.
    """
    start = raw_text.find(_DELIMITER)
    if start == -1:
        return ThoughtSummary(subject="", description=raw_text.strip())
    end = raw_text.find(_DELIMITER, start + len(_DELIMITER))
    if end == -1:
        return ThoughtSummary(subject="", description=raw_text.strip())
    subject = raw_text[start + len(_DELIMITER) : end].strip()
    description = (raw_text[:start] + raw_text[end + len(_DELIMITER) :]).strip()
    return ThoughtSummary(subject=subject, description=description)
