"""Pack ranked fragments into a bounded context string."""
from __future__ import annotations

import logging
from typing import Sequence

from studyowl.ingest.models import Fragment

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 6000
BLOCK_SEPARATOR = "\n\n"


def format_block(fragment: Fragment) -> str:
    return f"[Page {fragment.page_number}] {fragment.content}"


def assemble(fragments: Sequence[Fragment], max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Join fragments in order until the next one would overflow ``max_chars``.

    The first fragment that does not fit ends consumption; later, smaller
    fragments are never used to fill the remainder.
    """

    blocks: list[str] = []
    remaining = max_chars
    for fragment in fragments:
        if not fragment.content:
            continue
        block = format_block(fragment)
        needed = len(block) + len(BLOCK_SEPARATOR)
        if needed > remaining:
            LOGGER.info(
                "Fragment from page %s would exceed the %s character budget; stopping",
                fragment.page_number,
                max_chars,
            )
            break
        blocks.append(block)
        remaining -= needed
    return BLOCK_SEPARATOR.join(blocks)


__all__ = ["DEFAULT_MAX_CHARS", "assemble", "format_block"]
