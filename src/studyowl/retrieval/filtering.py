"""Narrow the fragment pool around a hinted page."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from studyowl.ingest.models import Fragment

LOGGER = logging.getLogger(__name__)

PAGE_WINDOW = 1


def page_window(page_hint: int) -> set[int]:
    return {
        page
        for page in range(page_hint - PAGE_WINDOW, page_hint + PAGE_WINDOW + 1)
        if page >= 1
    }


def filter_candidates(fragments: Sequence[Fragment], page_hint: Optional[int]) -> list[Fragment]:
    """Keep fragments within one page of ``page_hint``.

    Without a hint, or when the window holds nothing, every fragment is returned.
    """

    if page_hint is None:
        return list(fragments)

    window = page_window(page_hint)
    selected = [fragment for fragment in fragments if fragment.page_number in window]
    if not selected:
        LOGGER.info("No fragments near page %s; searching the whole document", page_hint)
        return list(fragments)
    return selected


__all__ = ["PAGE_WINDOW", "filter_candidates", "page_window"]
