"""Text sanitization for caller-supplied filing and executive fields."""

import re

# Line breaks and tabs separate words; keyword phrases must survive them
_WORD_BREAKS = re.compile(r"[\t\n\r\x0b\x0c]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_RUNS_OF_SPACES = re.compile(r" {2,}")


def sanitize_text(text: str | None, max_length: int = 500) -> str | None:
    """
    Sanitize untrusted free text (filing titles and summaries, names).

    Line breaks and tabs become single spaces, other control characters
    are dropped, and the result is truncated to max_length.

    Returns:
        Sanitized text or None if input was None
    """
    if text is None:
        return None

    text = _WORD_BREAKS.sub(" ", text)
    text = _CONTROL_CHARS.sub("", text)
    text = _RUNS_OF_SPACES.sub(" ", text).strip()

    if len(text) > max_length:
        text = text[:max_length].rstrip() + "..."

    return text
