"""Tests for blueprint synthesis with a scripted gateway."""

import pytest

from subsmith.core.config import AIConfig
from subsmith.core.errors import InvalidBlueprint, JobCancelled
from subsmith.core.models import (
    GlossaryTerm,
    TranslationBlueprint,
    TranslationType,
    UserGlossaryItem,
)
from subsmith.llm.blueprint import (
    STAGE_ASSEMBLY,
    STAGE_GROUNDING,
    STAGE_KEYWORDS,
    assemble_blueprint,
    build_blueprint,
    enforce_user_glossary,
    extract_keywords,
    ground_keywords,
)

CONFIG = AIConfig(fast_model="fast-m", deep_model="deep-m", api_key="k")


def _blueprint(*terms: tuple[str, str]) -> TranslationBlueprint:
    return TranslationBlueprint(
        glossary=[GlossaryTerm(term=t, proposed_translation=p) for t, p in terms]
    )


class TestEnforceUserGlossary:
    def test_user_translation_overrides_proposal(self):
        blueprint = _blueprint(("Ironhold", "دژ آهنین"))
        result = enforce_user_glossary(
            blueprint, [UserGlossaryItem(term="Ironhold", translation="آیرون‌هولد")]
        )
        [entry] = result.glossary
        assert entry.proposed_translation == "آیرون‌هولد"
        assert "دژ آهنین" in entry.alternatives

    def test_match_is_case_insensitive(self):
        blueprint = _blueprint(("ironhold", "x"))
        result = enforce_user_glossary(blueprint, [UserGlossaryItem(term="IRONHOLD", translation="y")])
        assert [g.proposed_translation for g in result.glossary] == ["y"]

    def test_missing_user_terms_are_appended(self):
        blueprint = _blueprint(("Ironhold", "x"))
        result = enforce_user_glossary(blueprint, [UserGlossaryItem(term="Captain", translation="ناخدا")])
        assert [g.term for g in result.glossary] == ["Ironhold", "Captain"]
        appended = result.glossary[1]
        assert appended.proposed_translation == "ناخدا"
        assert appended.translation_type == TranslationType.ADAPTATION

    def test_no_user_glossary_is_identity(self):
        blueprint = _blueprint(("Ironhold", "x"))
        assert enforce_user_glossary(blueprint, []) is blueprint


class TestBlueprintCalls:
    def test_keywords_use_fast_tier(self, gateway):
        keywords = extract_keywords(gateway, CONFIG, "script")
        assert [k.term for k in keywords] == ["Ironhold"]
        assert gateway.calls == [("structured", "fast-m", False)]

    def test_grounding_skipped_without_keywords(self, gateway):
        assert ground_keywords(gateway, CONFIG, []) == []
        assert gateway.calls == []

    def test_assembly_uses_deep_tier_and_thinking(self, gateway):
        blueprint = assemble_blueprint(gateway, CONFIG, "script", "Casual", [], [], thinking=True)
        assert blueprint.glossary[0].term == "Ironhold"
        assert blueprint.glossary[0].translation_type == TranslationType.DIRECT_TRANSLATION
        assert gateway.calls == [("structured", "deep-m", True)]

    def test_assembly_enforces_user_glossary(self, gateway):
        blueprint = assemble_blueprint(
            gateway,
            CONFIG,
            "script",
            "Casual",
            [],
            [UserGlossaryItem(term="Ironhold", translation="آیرون‌هولد")],
        )
        assert blueprint.glossary[0].proposed_translation == "آیرون‌هولد"

    @pytest.mark.parametrize(
        "reply",
        [
            {"summary": "no glossary here"},
            {"glossary": "not a list"},
            ["a", "list"],
            {"glossary": [{"term": "missing proposed translation"}]},
        ],
    )
    def test_invalid_blueprint(self, make_gateway, reply):
        gateway = make_gateway(blueprint=reply)
        with pytest.raises(InvalidBlueprint):
            assemble_blueprint(gateway, CONFIG, "script", "Neutral", [], [])

    def test_unknown_translation_type_becomes_adaptation(self, make_gateway):
        reply = {"glossary": [{"term": "x", "proposedTranslation": "y", "translationType": "Poetic"}]}
        blueprint = assemble_blueprint(make_gateway(blueprint=reply), CONFIG, "s", "Neutral", [], [])
        assert blueprint.glossary[0].translation_type == TranslationType.ADAPTATION


def test_build_blueprint_reports_stages_in_order(gateway, recorder):
    build_blueprint(recorder.context(), gateway, CONFIG, "script", "Neutral", [])
    assert recorder.stages == [STAGE_KEYWORDS, STAGE_GROUNDING, STAGE_ASSEMBLY]
    assert [c[1] for c in gateway.calls] == ["fast-m", "fast-m", "deep-m"]


def test_build_blueprint_checks_cancellation(gateway, make_recorder):
    recorder = make_recorder(cancel_after=1)
    with pytest.raises(JobCancelled):
        build_blueprint(recorder.context(), gateway, CONFIG, "script", "Neutral", [])
    assert recorder.stages == [STAGE_KEYWORDS]
    assert len(gateway.calls) == 1
