"""Conservative transcript denoiser for text headed to a language model.

Removes obvious noise (timestamps, speaker tags, table blocks, repeated
lines, disclaimer/sponsor lines, stage directions such as ``[Applause]`` and
filler words) without rewriting the content itself.  The goal is fewer
tokens with the meaning intact.
"""

from __future__ import annotations

import re

_TABLE_SEPARATOR_RE = re.compile(r"[|:+\-\s]+")
_ASCII_BORDER_RE = re.compile(r"[+\-]+[+\-\s]+")

_TIMESTAMP_PREFIX_RE = re.compile(r"^\s*\[?\d{1,2}:\d{2}(?::\d{2})?\]?\s*[-–—:]?\s*", re.IGNORECASE)
_SPEAKER_PREFIX_RE = re.compile(
    r"^\s*(Speaker|Host|Narrator|Interviewer|Interviewee|Student|Teacher|Prof(?:essor)?"
    r"|Instructor|Voice|Male|Female)\s*\d*\s*:\s*",
    re.IGNORECASE,
)
_STAGE_DIRECTION_RE = re.compile(r"^\s*\[?(applause|music|laughter|silence|inaudible)\]?\s*$", re.IGNORECASE)

_DISCLAIMER_RES = [
    re.compile(r"^\s*disclaimer[:\s]", re.IGNORECASE),
    re.compile(r"not (financial|medical|legal) advice", re.IGNORECASE),
    re.compile(r"for (educational|informational) purposes only", re.IGNORECASE),
    re.compile(r"^\s*sponsored by", re.IGNORECASE),
    re.compile(
        r"\bsubscribe\b|\blike and subscribe\b|\bfollow (us|me)\b|\bpatreon\b|\bmerch\b|link in (bio|description)",
        re.IGNORECASE,
    ),
    re.compile(r"^\s*copyright", re.IGNORECASE),
    re.compile(r"^\s*terms? and conditions", re.IGNORECASE),
]

_FILLER_RES = [
    re.compile(r"\b(u+h+|um+|er+|ah+)\b", re.IGNORECASE),
    re.compile(r"\b(you know|i mean)\b[, ]*", re.IGNORECASE),
    re.compile(r"\b(kind of|sort of)\b[, ]*", re.IGNORECASE),
]

# Any normalized line is kept at most this many times
_MAX_REPEATS = 2


def _is_tableish(line: str) -> bool:
    trimmed = line.strip()
    if not trimmed:
        return False
    if trimmed.count("|") >= 2:
        return True
    return bool(_TABLE_SEPARATOR_RE.fullmatch(trimmed) or _ASCII_BORDER_RE.fullmatch(trimmed))


def _is_disclaimer(line: str) -> bool:
    return any(rx.search(line) for rx in _DISCLAIMER_RES)


def denoise(text: str) -> str:
    """Return *text* with transcript noise removed."""
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    tableish = [_is_tableish(line) for line in lines]

    seen: dict[str, int] = {}
    cleaned: list[str] = []
    for i, line in enumerate(lines):
        # A lone table-looking line is usually prose; only drop runs
        if tableish[i]:
            prev_is = i > 0 and tableish[i - 1]
            next_is = i + 1 < len(tableish) and tableish[i + 1]
            if prev_is or next_is:
                continue

        line = _TIMESTAMP_PREFIX_RE.sub("", line, count=1)
        line = _SPEAKER_PREFIX_RE.sub("", line, count=1)
        trimmed = line.strip()

        if _STAGE_DIRECTION_RE.match(trimmed) or _is_disclaimer(trimmed):
            continue

        norm = trimmed.lower()
        if cleaned and cleaned[-1].strip().lower() == norm:
            continue
        seen[norm] = seen.get(norm, 0) + 1
        if seen[norm] > _MAX_REPEATS:
            continue

        cleaned.append(line)

    out = "\n".join(cleaned)
    for rx in _FILLER_RES:
        out = rx.sub("", out)

    out = out.replace("\t", " ")
    while "\n\n\n" in out:
        out = out.replace("\n\n\n", "\n\n")
    out = out.replace("  ", " ")
    return out.strip()
