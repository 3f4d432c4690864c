"""Post-processing of model answers into lightly marked-up text."""
from __future__ import annotations

import re

_BULLET_RE = re.compile(r"^(\d+\.|-|\*|•)\s")
_BULLET_PREFIX_RE = re.compile(r"^(\d+\.|-|\*|•)\s+")
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_HEADER_RE = re.compile(r"^(Graph Type|Axes|Curves?(/Lines)?|Key Insight|Curve \d+):", re.IGNORECASE)
_HEADER_LABEL_RE = re.compile(r"^([^:]+:)")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def _bold(line: str) -> str:
    return _BOLD_RE.sub(r"<strong>\1</strong>", line)


def format_response(text: str) -> str:
    """Normalise bullets, bold spans and section headers in ``text``."""

    if not text:
        return text

    output: list[str] = []
    in_list = False
    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if not line:
            output.append("")
            in_list = False
            continue

        if _BULLET_RE.match(line):
            if not in_list and output and output[-1].strip():
                output.append("")
            output.append(_bold(_BULLET_PREFIX_RE.sub("• ", line, count=1)))
            in_list = True
            continue

        line = _bold(line)
        is_header = bool(_HEADER_RE.match(line))
        if is_header:
            line = _HEADER_LABEL_RE.sub(r"<strong>\1</strong>", line, count=1)
            if output and output[-1].strip():
                output.append("")
        output.append(line)
        if is_header:
            output.append("")
        in_list = False

    formatted = _EXCESS_NEWLINES_RE.sub("\n\n", "\n".join(output))
    return formatted.strip()


__all__ = ["format_response"]
