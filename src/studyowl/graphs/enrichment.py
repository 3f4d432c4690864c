"""Attach structured interpretations to detected figures.

Each figure is classified against the template catalog. A strong match
(``match_score >= TEMPLATE_MIN_SCORE``) yields a deterministic block built from
the template; anything weaker is sent to the language model. The result of
every attempt is one of three outcome types, so callers never have to catch
exceptions to tell the paths apart:

* :class:`Templated` carries a block rendered from a catalog template;
* :class:`Inferred` carries the model's description with a fallback notice;
* :class:`Failed` records why inference could not complete.

The rendered block is spliced into the page text just before the figure's
``[END FIGURE n]`` marker.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, replace
from typing import Optional, Union

from studyowl.ingest.models import FigureRecord, PageText
from studyowl.llm_provider import LLM, LLMError
from studyowl.prompt_builder import build_graph_inference_prompt
from studyowl.telemetry import (
    emit_enrichment_event,
    emit_inference_request,
    emit_inference_result,
)

from .catalog import GraphCatalog
from .classifier import Classification, classify

LOGGER = logging.getLogger(__name__)

TEMPLATE_MIN_SCORE = 2

STRUCTURE_START = "[GRAPH STRUCTURE]"
STRUCTURE_END = "[END GRAPH STRUCTURE]"
FALLBACK_NOTICE = (
    "[FALLBACK NOTICE]: The above interpretation is based on surrounding context. "
    "If asked about specific visual elements not described above, respond: "
    "\"I can see the general structure but cannot identify that specific element "
    "from the available information.\""
)
FAILED_BLOCK = (
    f"{STRUCTURE_START}\n"
    "**Graph Type:** Cannot be determined\n"
    "**Note:** Automatic graph structure analysis failed. Refer to surrounding context.\n"
    f"{STRUCTURE_END}"
)


@dataclass(frozen=True, slots=True)
class Templated:
    classification: Classification
    block: str


@dataclass(frozen=True, slots=True)
class Inferred:
    block: str


@dataclass(frozen=True, slots=True)
class Failed:
    reason: str


EnrichmentOutcome = Union[Templated, Inferred, Failed]


def render_template_block(classification: Classification, figure: FigureRecord) -> str:
    template = classification.template
    curves = "\n".join(
        f"- **Curve {index}: {curve.name}** ({curve.slope})\n  {curve.meaning}"
        for index, curve in enumerate(template.curves, start=1)
    )
    topics = ", ".join(template.keywords[:3])
    return (
        f"{STRUCTURE_START}\n"
        f"**Graph Type:** {template.display_name} ({template.domain})\n"
        "\n"
        "**Axes:**\n"
        f"- X-axis: {template.x_axis}\n"
        f"- Y-axis: {template.y_axis}\n"
        "\n"
        "**Curves/Lines:**\n"
        f"{curves}\n"
        "\n"
        f"**Key Insight:** {template.insight}\n"
        "\n"
        f"**Visible Elements Detected:** {figure.extracted_text or 'minimal labels'}\n"
        "\n"
        f"**Note:** This interpretation is based on standard {template.domain} graph conventions "
        f"and the surrounding context discussing {topics}.\n"
        f"{STRUCTURE_END}"
    )


def wrap_inferred(text: str) -> str:
    return f"{STRUCTURE_START}\n{text}\n\n{FALLBACK_NOTICE}\n{STRUCTURE_END}"


def render(outcome: EnrichmentOutcome) -> str:
    """Return the marker block for an outcome."""

    if isinstance(outcome, (Templated, Inferred)):
        return outcome.block
    return FAILED_BLOCK


def splice(page_text: str, figure_index: int, block: str) -> str:
    """Insert ``block`` before the first ``[END FIGURE n]`` marker of ``page_text``."""

    marker = f"[END FIGURE {figure_index}]"
    if marker not in page_text:
        LOGGER.warning("Figure marker %s not found; interpretation not spliced", marker)
        return page_text
    return page_text.replace(marker, f"{block}\n{marker}", 1)


class GraphEnricher:
    """Classify figures and produce their interpretation blocks."""

    def __init__(
        self,
        llm: LLM,
        *,
        catalog: Optional[GraphCatalog] = None,
        max_tokens: int = 500,
        temperature: float = 0.1,
    ) -> None:
        self.llm = llm
        self.catalog = catalog
        self.max_tokens = max_tokens
        self.temperature = temperature

    def interpret(
        self,
        figure: FigureRecord,
        surrounding_text: str,
        *,
        document_id: str | None = None,
    ) -> EnrichmentOutcome:
        combined = f"{surrounding_text} {figure.extracted_text}"
        classification = classify(combined, self.catalog)
        if classification is not None and classification.match_score >= TEMPLATE_MIN_SCORE:
            LOGGER.debug(
                "Classified figure %s as %s/%s (score %s)",
                figure.index,
                classification.domain,
                classification.template_name,
                classification.match_score,
            )
            return Templated(
                classification=classification,
                block=render_template_block(classification, figure),
            )

        if not self.llm.ready:
            LOGGER.info("Skipping graph inference for figure %s: %s", figure.index, self.llm.last_error)
            return Failed(reason=self.llm.last_error or "LLM not ready")

        prompt = build_graph_inference_prompt(figure, surrounding_text)
        req_id = uuid.uuid4().hex
        emit_inference_request(
            req_id=req_id,
            document_id=document_id,
            purpose="graph_inference",
            prompt_preview=prompt,
            prompt_len=len(prompt),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        started = time.perf_counter()
        try:
            text = self.llm.generate(prompt, max_tokens=self.max_tokens, temperature=self.temperature)
        except LLMError as error:
            LOGGER.warning("Graph inference failed for figure %s: %s", figure.index, error)
            return Failed(reason=str(error) or error.__class__.__name__)
        except Exception as error:
            LOGGER.exception("Unexpected graph inference error for figure %s", figure.index)
            return Failed(reason=f"{error.__class__.__name__}: {error}")

        emit_inference_result(
            req_id=req_id,
            document_id=document_id,
            purpose="graph_inference",
            duration_ms=(time.perf_counter() - started) * 1000.0,
            model_used=self.llm.model_name,
            answer_preview=text,
            fallback=False,
        )
        if not text or not text.strip():
            LOGGER.warning("Graph inference for figure %s returned no text", figure.index)
            return Failed(reason="No response generated")
        return Inferred(block=wrap_inferred(text))

    def enrich_page(self, page: PageText, *, document_id: str | None = None) -> PageText:
        """Interpret every figure of ``page`` in order and splice the blocks in."""

        if not page.figures:
            return page

        text = page.text
        for figure in page.figures:
            outcome = self.interpret(figure, page.text, document_id=document_id)
            classification = outcome.classification if isinstance(outcome, Templated) else None
            emit_enrichment_event(
                page_number=page.page_number,
                figure_index=figure.index,
                outcome=type(outcome).__name__.lower(),
                template=classification.template_name if classification else None,
                match_score=classification.match_score if classification else None,
                reason=outcome.reason if isinstance(outcome, Failed) else None,
            )
            text = splice(text, figure.index, render(outcome))
        return replace(page, text=text)

    def enrich_pages(self, pages: list[PageText], *, document_id: str | None = None) -> list[PageText]:
        return [self.enrich_page(page, document_id=document_id) for page in pages]


__all__ = [
    "EnrichmentOutcome",
    "FAILED_BLOCK",
    "FALLBACK_NOTICE",
    "Failed",
    "GraphEnricher",
    "Inferred",
    "TEMPLATE_MIN_SCORE",
    "Templated",
    "render",
    "render_template_block",
    "splice",
    "wrap_inferred",
]
