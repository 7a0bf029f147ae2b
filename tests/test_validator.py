"""Tests for section judgments, the heuristic fallback and proposal scoring."""

import json

import pytest

from config import ValidationConfig
from core.domain import DocumentSection, SectionValidation
from core.enums import JudgmentSource, PermissionLevel, ValidationStatus
from core.exceptions import ForbiddenError, UpstreamUnavailableError
from infrastructure.repositories import SQLProposalRepository
from services.validator import (
    AUDITOR_SYSTEM_PROMPT, ProposalValidator, aggregate, parse_judgment
)
from tests.helpers import EDITOR, OWNER, PROPOSAL_ID, FakeCompletionService, build_document, make_text

COMPLETE_JSON = json.dumps({
    "score": 90,
    "status": "COMPLETE",
    "gaps": [],
    "suggestions": ["Attach audited balance sheets"],
})

SECTION = DocumentSection("s-tech", "Technical Approach", "Describe the approach", True, 0)


def _result(score, mandatory=True, status=ValidationStatus.COMPLETE, gaps=None):
    return SectionValidation(
        section_id=f"s-{score}-{mandatory}",
        title=f"Section {score}",
        is_mandatory=mandatory,
        status=status,
        score=score,
        gaps=list(gaps or []),
    )


class TestParseJudgment:

    def test_fenced_json(self):
        outcome = parse_judgment('```json\n{"score": 85, "status": "complete", "gaps": ["Add SLA"]}\n```')

        assert outcome.ok
        assert outcome.judgment.score == 85
        assert outcome.judgment.status == ValidationStatus.COMPLETE
        assert outcome.judgment.gaps == ["Add SLA"]

    def test_values_are_normalized(self):
        outcome = parse_judgment('{"score": 150.4, "status": "MISSING", "gaps": "none", "suggestions": null}')

        assert outcome.judgment.score == 100
        assert outcome.judgment.status == ValidationStatus.NEEDS_IMPROVEMENT
        assert outcome.judgment.gaps == []
        assert outcome.judgment.suggestions == []

    def test_defaults_for_missing_fields(self):
        outcome = parse_judgment("{}")
        assert (outcome.judgment.score, outcome.judgment.status) == (50, ValidationStatus.NEEDS_IMPROVEMENT)

    @pytest.mark.parametrize("raw", ["not json at all", "[1, 2, 3]", '{"score": "high"}', ""])
    def test_unusable_answers_fail(self, raw):
        outcome = parse_judgment(raw)
        assert not outcome.ok
        assert outcome.failure


class TestValidateSection:

    async def test_short_response_is_missing_without_model_call(self):
        model = FakeCompletionService(default=COMPLETE_JSON)
        validator = ProposalValidator(model, ValidationConfig())

        result = await validator.validate_section("RFP", SECTION, make_text(49))

        assert result.status == ValidationStatus.MISSING
        assert result.score == 0
        assert result.source == JudgmentSource.LENGTH_CHECK
        assert result.gaps == ["Technical Approach section is empty or too brief"]
        assert model.call_count == 0

    async def test_brief_response_is_incomplete_without_model_call(self):
        model = FakeCompletionService(default=COMPLETE_JSON)
        validator = ProposalValidator(model, ValidationConfig())

        result = await validator.validate_section("RFP", SECTION, make_text(60))

        assert result.status == ValidationStatus.INCOMPLETE
        assert result.score == 30
        assert result.gaps == ["Technical Approach appears too brief (60 words)"]
        assert model.call_count == 0

    async def test_model_judgment_is_used(self):
        model = FakeCompletionService(default=COMPLETE_JSON)
        validator = ProposalValidator(model, ValidationConfig())

        result = await validator.validate_section("RFP", SECTION, make_text(150))

        assert result.source == JudgmentSource.MODEL
        assert (result.status, result.score) == (ValidationStatus.COMPLETE, 90)
        call = model.calls[0]
        assert call["system_prompt"] == AUDITOR_SYSTEM_PROMPT
        assert (call["temperature"], call["max_tokens"]) == (0.1, 500)
        assert "SECTION: Technical Approach" in call["user_prompt"]
        assert "Describe the approach" in call["user_prompt"]

    async def test_response_in_prompt_is_capped(self):
        model = FakeCompletionService(default=COMPLETE_JSON)
        validator = ProposalValidator(model, ValidationConfig(response_char_limit=100))
        response = make_text(150, "w")

        await validator.validate_section("RFP", SECTION, response)

        prompt = model.calls[0]["user_prompt"]
        assert response[:100] in prompt
        assert response[:101] not in prompt

    async def test_items_are_capped(self):
        answer = json.dumps({
            "score": 40, "status": "INCOMPLETE",
            "gaps": [f"gap {i}" for i in range(8)],
            "suggestions": [f"fix {i}" for i in range(8)],
        })
        validator = ProposalValidator(FakeCompletionService(default=answer), ValidationConfig())

        result = await validator.validate_section("RFP", SECTION, make_text(150))

        assert result.gaps == [f"gap {i}" for i in range(5)]
        assert len(result.suggestions) == 5

    @pytest.mark.parametrize("model", [
        FakeCompletionService(default="I think this section is fine."),
        FakeCompletionService(error=UpstreamUnavailableError("completion endpoint timed out")),
    ])
    async def test_heuristic_fallback(self, model):
        validator = ProposalValidator(model, ValidationConfig())

        brief = await validator.validate_section("RFP", SECTION, make_text(150))
        long = await validator.validate_section("RFP", SECTION, make_text(300))

        assert brief.source == JudgmentSource.HEURISTIC
        assert (brief.status, brief.score) == (ValidationStatus.NEEDS_IMPROVEMENT, 50)
        assert brief.suggestions == ["Consider adding more detail"]
        assert long.source == JudgmentSource.HEURISTIC
        assert (long.status, long.score) == (ValidationStatus.COMPLETE, 100)

    def test_heuristic_is_monotonic(self):
        validator = ProposalValidator(FakeCompletionService(), ValidationConfig())

        scores = [validator._heuristic_judgment(words).score for words in range(100, 400, 7)]

        assert scores == sorted(scores)
        assert max(scores) == 100


class TestAggregate:

    def test_weighted_score(self):
        result = aggregate([_result(80, True), _result(40, False)], ValidationConfig())
        # (1.0 * 80 + 0.5 * 40) / (1.0 * 100 + 0.5 * 100)
        assert result.score == 67
        assert result.is_valid is False

    def test_valid_at_threshold(self):
        result = aggregate([_result(70, True), _result(70, False)], ValidationConfig())
        assert result.score == 70
        assert result.is_valid is True

    def test_missing_mandatory_section_invalidates(self):
        sections = [_result(0, True, ValidationStatus.MISSING), _result(100), _result(100)]

        result = aggregate(sections, ValidationConfig(validity_threshold=10))

        assert result.score == 67
        assert result.is_valid is False

    def test_missing_optional_section_does_not_invalidate(self):
        sections = [_result(0, False, ValidationStatus.MISSING), _result(100), _result(100)]

        result = aggregate(sections, ValidationConfig())

        assert result.score == 80
        assert result.is_valid is True

    def test_no_sections(self):
        result = aggregate([], ValidationConfig())
        assert (result.score, result.is_valid, result.sections) == (0, False, [])

    def test_unaddressed_requirements_worst_first(self):
        sections = [
            _result(80, True, gaps=["minor wording"]),
            _result(30, False, gaps=["optional gap"]),
            _result(30, True, gaps=["mandatory gap"]),
        ]

        result = aggregate(sections, ValidationConfig())

        assert result.unaddressed_requirements == ["mandatory gap", "optional gap", "minor wording"]

    def test_unaddressed_requirements_capped(self):
        sections = [_result(i, gaps=[f"gap {i}a", f"gap {i}b"]) for i in range(10)]

        result = aggregate(sections, ValidationConfig())

        assert len(result.unaddressed_requirements) == 10
        assert result.unaddressed_requirements[0] == "gap 0a"


class TestEngineValidation:

    async def test_full_compliance_is_valid(self, engine, seeded, session, completion_service):
        proposals = SQLProposalRepository(session)
        for section_id in ("s-elig", "s-tech", "s-fin"):
            await proposals.save_section_response(PROPOSAL_ID, section_id, make_text(150))
        completion_service.default = COMPLETE_JSON

        result = await engine.validate_proposal(PROPOSAL_ID, OWNER)

        assert result.is_valid is True
        assert result.score == 90
        assert [s.section_id for s in result.sections] == ["s-elig", "s-tech", "s-fin"]
        assert all(s.source == JudgmentSource.MODEL for s in result.sections)
        assert completion_service.call_count == 3

    async def test_empty_mandatory_section_is_missing(self, engine, seeded, session, completion_service):
        proposals = SQLProposalRepository(session)
        await proposals.save_section_response(PROPOSAL_ID, "s-tech", make_text(150))
        await proposals.save_section_response(PROPOSAL_ID, "s-fin", make_text(150))
        completion_service.default = COMPLETE_JSON

        result = await engine.validate_proposal(PROPOSAL_ID, OWNER)

        eligibility = result.sections[0]
        assert (eligibility.status, eligibility.score) == (ValidationStatus.MISSING, 0)
        assert result.is_valid is False
        assert result.unaddressed_requirements[0] == "Eligibility Criteria section is empty or too brief"

    async def test_only_owners_validate(self, engine, seeded, completion_service):
        with pytest.raises(ForbiddenError) as exc_info:
            await engine.validate_proposal(PROPOSAL_ID, EDITOR)

        assert exc_info.value.required == PermissionLevel.OWNER
        assert exc_info.value.actual == PermissionLevel.READ_ONLY
        assert completion_service.call_count == 0


async def test_validate_covers_every_document_section():
    validator = ProposalValidator(FakeCompletionService(default=COMPLETE_JSON), ValidationConfig())

    result = await validator.validate(build_document(), {})

    assert [s.status for s in result.sections] == [ValidationStatus.MISSING] * 3
    assert result.score == 0
