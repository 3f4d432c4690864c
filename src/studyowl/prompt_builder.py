"""Utilities for constructing prompts sent to the language model."""
from __future__ import annotations

import re
from pathlib import Path

from studyowl.ingest.models import FigureRecord

_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
_ANSWER_PROMPT_PATH = _PROMPTS_DIR / "answer.txt"
_GRAPH_PROMPT_PATH = _PROMPTS_DIR / "graph_inference.txt"

SURROUNDING_TEXT_LIMIT = 3000

_SUBJECT_HINTS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "economics/business",
        re.compile(
            r"economics|market|supply|demand|price|cost|revenue|profit|monopoly|competition",
            re.IGNORECASE,
        ),
    ),
    (
        "calculus/mathematics",
        re.compile(
            r"derivative|integral|limit|function|calculus|slope|tangent|curve|continuous|discontinuous",
            re.IGNORECASE,
        ),
    ),
    (
        "physics",
        re.compile(
            r"force|velocity|acceleration|mass|energy|physics|motion|gravity|friction", re.IGNORECASE
        ),
    ),
    (
        "biology",
        re.compile(r"biology|cell|organism|species|population|genetics|evolution", re.IGNORECASE),
    ),
    (
        "chemistry",
        re.compile(r"chemistry|molecule|reaction|element|compound|bond|solution", re.IGNORECASE),
    ),
)


def _load_template(path: Path) -> str:
    """Read and trim the contents of a template file."""
    return path.read_text(encoding="utf-8").strip()


_ANSWER_TEMPLATE = _load_template(_ANSWER_PROMPT_PATH)
_GRAPH_TEMPLATE = _load_template(_GRAPH_PROMPT_PATH)


def subject_hint(text: str) -> str:
    """Guess the academic subject of ``text``; the first matching subject wins."""

    for subject, pattern in _SUBJECT_HINTS:
        if pattern.search(text):
            return subject
    return "academic"


def build_answer_prompt(question: str, context: str) -> str:
    """Compose the prompt used to answer a student's question."""

    if question is None:
        raise ValueError("question must not be None")
    return _ANSWER_TEMPLATE.format(context=context, question=question.strip())


def build_graph_inference_prompt(figure: FigureRecord, surrounding_text: str) -> str:
    """Compose the structured prompt asking the model to describe a figure."""

    return _GRAPH_TEMPLATE.format(
        subject=subject_hint(surrounding_text),
        caption=figure.caption,
        visible_text=figure.extracted_text,
        missing=figure.missing_text,
        surrounding_text=surrounding_text[:SURROUNDING_TEXT_LIMIT],
    )


__all__ = [
    "SURROUNDING_TEXT_LIMIT",
    "build_answer_prompt",
    "build_graph_inference_prompt",
    "subject_hint",
]
