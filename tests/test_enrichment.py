from studyowl.graphs.catalog import GraphCatalog, default_catalog
from studyowl.graphs.classifier import classify
from studyowl.graphs.enrichment import (
    FAILED_BLOCK,
    FALLBACK_NOTICE,
    Failed,
    GraphEnricher,
    Inferred,
    Templated,
    render,
    render_template_block,
    splice,
)
from studyowl.ingest.figures import FigureExtractor
from studyowl.ingest.models import FigureRecord, LayoutLine, MissingElement, PageLayout
from studyowl.llm_provider import LLM, LLMGenerationError, LLMStub

TINY_CATALOG = GraphCatalog.from_data(
    [
        {
            "domain": "economics",
            "templates": [
                {
                    "name": "supply-demand",
                    "keywords": ["supply", "demand"],
                    "axes": {"x": "Quantity (Q)", "y": "Price (P)"},
                    "curves": [
                        {"name": "Demand", "slope": "downward", "meaning": "Buyers"},
                        {"name": "Supply", "slope": "upward", "meaning": "Sellers"},
                    ],
                    "insight": "Equilibrium occurs where supply equals demand",
                }
            ],
        }
    ]
)


class RecordingLLM(LLM):
    provider = "fake"

    def __init__(self, answer: str = "**Graph Type:** Scatter plot") -> None:
        self.answer = answer
        self.prompts: list[str] = []

    @property
    def ready(self) -> bool:
        return True

    @property
    def model_name(self) -> str:
        return "fake-model"

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self.prompts.append(prompt)
        return self.answer


class FailingLLM(RecordingLLM):
    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        raise LLMGenerationError("LLM API error: HTTP 500")


class SocketErrorLLM(RecordingLLM):
    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        raise RuntimeError("socket closed")


def _figure(elements: tuple[str, ...] = ("W",), caption: str = "Implied graph detected") -> FigureRecord:
    return FigureRecord(
        index=1,
        caption=caption,
        visible_elements=elements,
        missing_elements=frozenset(MissingElement),
        implied=True,
    )


def test_strong_match_uses_template_without_calling_llm():
    llm = RecordingLLM()
    enricher = GraphEnricher(llm, catalog=TINY_CATALOG)

    outcome = enricher.interpret(_figure(), "shifts in supply and demand")

    assert isinstance(outcome, Templated)
    assert outcome.classification.match_score == 2
    assert llm.prompts == []
    assert outcome.block.startswith("[GRAPH STRUCTURE]\n**Graph Type:** supply demand (economics)")
    assert "- **Curve 1: Demand** (downward)\n  Buyers" in outcome.block
    assert "- **Curve 2: Supply** (upward)\n  Sellers" in outcome.block
    assert "**Visible Elements Detected:** W" in outcome.block
    assert "surrounding context discussing supply, demand." in outcome.block
    assert outcome.block.endswith("[END GRAPH STRUCTURE]")


def test_weak_match_falls_back_to_inference():
    llm = RecordingLLM("**Graph Type:** Scatter plot")
    enricher = GraphEnricher(llm, catalog=TINY_CATALOG, max_tokens=500, temperature=0.1)

    outcome = enricher.interpret(_figure(caption="Figure 3"), "only supply is mentioned here")

    assert isinstance(outcome, Inferred)
    assert outcome.block == (
        "[GRAPH STRUCTURE]\n**Graph Type:** Scatter plot\n\n" + FALLBACK_NOTICE + "\n[END GRAPH STRUCTURE]"
    )
    (prompt,) = llm.prompts
    assert "Caption: Figure 3" in prompt
    assert "Missing: axis labels, legend, title" in prompt
    assert "economics/business lecture notes" in prompt


def test_inference_failure_is_an_outcome_not_an_exception():
    enricher = GraphEnricher(FailingLLM(), catalog=TINY_CATALOG)

    outcome = enricher.interpret(_figure(), "unrelated prose")

    assert isinstance(outcome, Failed)
    assert "HTTP 500" in outcome.reason
    assert render(outcome) == FAILED_BLOCK


def test_splice_inserts_before_first_end_marker():
    text = "intro\n[FIGURE 1]\nCaption: x\n[END FIGURE 1]\noutro"

    spliced = splice(text, 1, "BLOCK")

    assert spliced == "intro\n[FIGURE 1]\nCaption: x\nBLOCK\n[END FIGURE 1]\noutro"
    assert splice(text, 2, "BLOCK") == text


def test_enrich_page_splices_each_figure():
    llm = RecordingLLM()
    enricher = GraphEnricher(llm, catalog=TINY_CATALOG)
    page = FigureExtractor().extract_page(
        PageLayout(page_number=5, lines=(LayoutLine("Supply and demand"), LayoutLine("P")))
    )

    enriched = enricher.enrich_page(page)

    assert enriched.page_number == 5
    assert enriched.figures == page.figures
    block_start = enriched.text.index("[GRAPH STRUCTURE]")
    assert enriched.text.index("[FIGURE 1]") < block_start < enriched.text.index("[END FIGURE 1]")


def test_page_without_figures_is_unchanged():
    enricher = GraphEnricher(RecordingLLM(), catalog=TINY_CATALOG)
    page = FigureExtractor().extract_page(PageLayout(page_number=1, lines=(LayoutLine("Just prose here"),)))

    assert enricher.enrich_page(page) is page


def test_monopsony_page_yields_template_with_three_curves():
    filler = "wage " * 460
    layout = PageLayout(
        page_number=1,
        lines=(LayoutLine("Labor Market Under Monopsony"), LayoutLine("W"), LayoutLine(filler.strip())),
    )
    page = FigureExtractor().extract_page(layout)
    llm = RecordingLLM()

    enriched = GraphEnricher(llm).enrich_page(page)

    assert page.figures and page.figures[0].implied
    assert llm.prompts == []
    template = default_catalog().get("economics", "labor-market-monopsony")
    assert "**Graph Type:** labor market monopsony (economics)" in enriched.text
    for index, curve in enumerate(template.curves, start=1):
        assert f"**Curve {index}: {curve.name}**" in enriched.text
    assert "**Curve 4:" not in enriched.text


def test_render_template_block_defaults_visible_elements():
    classification = classify("supply demand", TINY_CATALOG)

    block = render_template_block(classification, _figure(elements=()))

    assert "**Visible Elements Detected:** minimal labels" in block


def test_unexpected_llm_error_stays_local_to_the_figure():
    enricher = GraphEnricher(SocketErrorLLM(), catalog=TINY_CATALOG)
    page = FigureExtractor().extract_page(
        PageLayout(page_number=2, lines=(LayoutLine("A scatter of points"), LayoutLine("X")))
    )

    outcome = enricher.interpret(_figure(), "unrelated prose")
    enriched = enricher.enrich_page(page)

    assert isinstance(outcome, Failed)
    assert outcome.reason == "RuntimeError: socket closed"
    assert FAILED_BLOCK in enriched.text
    assert enriched.text.index(FAILED_BLOCK) < enriched.text.index("[END FIGURE 1]")


def test_empty_inference_is_failed():
    enricher = GraphEnricher(RecordingLLM("   \n"), catalog=TINY_CATALOG)

    outcome = enricher.interpret(_figure(), "unrelated prose")

    assert outcome == Failed(reason="No response generated")


def test_stub_llm_is_not_stored_as_interpretation():
    stub = LLMStub(reason="GROQ_API_KEY is not configured.")
    enricher = GraphEnricher(stub, catalog=TINY_CATALOG)

    outcome = enricher.interpret(_figure(), "unrelated prose")

    assert outcome == Failed(reason="GROQ_API_KEY is not configured.")
    assert render(outcome) == FAILED_BLOCK
