# services/validator.py
"""Validator/Scorer: per-section compliance judgment and weighted proposal score"""
import json
import logging
from dataclasses import dataclass
from typing import List, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from config import ValidationConfig, settings
from core.domain import (
    DocumentSection, ProposalValidation, SectionValidation, SourceDocument
)
from core.enums import JudgmentSource, ValidationStatus
from core.exceptions import UpstreamUnavailableError
from core.interfaces import ICompletionService
from utils.common import count_words
from utils.text import strip_json_fences

logger = logging.getLogger(settings.LOGGER_NAME)

AUDITOR_SYSTEM_PROMPT = (
    "You are a tender compliance auditor. Analyze proposal sections for completeness "
    "and compliance. Return only valid JSON."
)
VALID_SUMMARY = "Proposal addresses key tender requirements"
INVALID_SUMMARY = "Proposal has gaps that need attention before submission"
NO_SECTIONS_SUMMARY = "Source document has no sections to validate against"

_MODEL_STATUSES = {
    ValidationStatus.COMPLETE.value,
    ValidationStatus.INCOMPLETE.value,
    ValidationStatus.NEEDS_IMPROVEMENT.value,
}

# ============= Model Judgment =============

class SectionJudgment(BaseModel):
    """Structured model answer for one section"""
    score: int = 50
    status: ValidationStatus = ValidationStatus.NEEDS_IMPROVEMENT
    gaps: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, value):
        if value is None:
            return 50
        return max(0, min(100, int(round(float(value)))))

    @field_validator("status", mode="before")
    @classmethod
    def known_status(cls, value):
        if isinstance(value, ValidationStatus):
            value = value.value
        normalized = str(value or "").strip().upper()
        # The model may not declare a section MISSING; that is a length decision
        return normalized if normalized in _MODEL_STATUSES else ValidationStatus.NEEDS_IMPROVEMENT.value

    @field_validator("gaps", "suggestions", mode="before")
    @classmethod
    def string_list(cls, value):
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item]


@dataclass
class JudgmentOutcome:
    """Result of the model step: a judgment, or the reason there is none"""
    judgment: Optional[SectionJudgment] = None
    failure: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.judgment is not None


def parse_judgment(raw: str) -> JudgmentOutcome:
    try:
        data = json.loads(strip_json_fences(raw))
    except json.JSONDecodeError as e:
        return JudgmentOutcome(failure=f"invalid JSON: {e.msg}")
    if not isinstance(data, dict):
        return JudgmentOutcome(failure="JSON answer is not an object")
    try:
        return JudgmentOutcome(judgment=SectionJudgment.model_validate(data))
    except (ValidationError, ValueError, TypeError) as e:
        return JudgmentOutcome(failure=f"unexpected JSON shape: {e}")


def build_validation_prompt(document_title: str, section: DocumentSection,
                            response: str, char_limit: int) -> str:
    return f"""Analyze this proposal section response against the tender requirements.

TENDER: {document_title}

SECTION: {section.title}

TENDER REQUIREMENTS:
{section.content or 'General response required'}

PROPOSAL RESPONSE:
{response[:char_limit]}

Analyze and return a JSON object with:
{{
  "score": 0-100,
  "status": "COMPLETE" | "INCOMPLETE" | "NEEDS_IMPROVEMENT",
  "gaps": ["list of missing or inadequate points"],
  "suggestions": ["specific improvement suggestions"]
}}

Be strict about addressing all requirements. Return ONLY valid JSON."""

# ============= Aggregation =============

def aggregate(sections: List[SectionValidation], config: ValidationConfig) -> ProposalValidation:
    """Weighted proposal score and validity from per-section results."""
    if not sections:
        return ProposalValidation(
            is_valid=False, score=0, sections=[], unaddressed_requirements=[],
            summary=NO_SECTIONS_SUMMARY,
        )

    weighted = 0.0
    max_weighted = 0.0
    for result in sections:
        weight = config.mandatory_weight if result.is_mandatory else config.optional_weight
        weighted += weight * result.score
        max_weighted += weight * 100

    score = round(weighted / max_weighted * 100) if max_weighted else 0
    mandatory_missing = any(
        r.is_mandatory and r.status == ValidationStatus.MISSING for r in sections
    )
    is_valid = score >= config.validity_threshold and not mandatory_missing

    # Worst sections first, mandatory before optional on equal scores
    by_urgency = sorted(sections, key=lambda r: (r.score, not r.is_mandatory))
    unaddressed = [gap for r in by_urgency for gap in r.gaps][:config.max_unaddressed]

    return ProposalValidation(
        is_valid=is_valid,
        score=score,
        sections=sections,
        unaddressed_requirements=unaddressed,
        summary=VALID_SUMMARY if is_valid else INVALID_SUMMARY,
    )

# ============= Validator =============

class ProposalValidator:
    """
    Scores every section of the source document against the proposal's response.

    Length checks decide MISSING and INCOMPLETE outright. Longer responses
    go to the model; when that fails, a word-count heuristic scores the
    section instead. A section's score comes from exactly one path.
    """

    def __init__(self, completion_service: ICompletionService,
                 config: Optional[ValidationConfig] = None):
        self.completion_service = completion_service
        self.config = config or ValidationConfig()

    async def _judge_with_model(self, document_title: str, section: DocumentSection,
                                response: str) -> JudgmentOutcome:
        prompt = build_validation_prompt(
            document_title, section, response, self.config.response_char_limit
        )
        try:
            raw = await self.completion_service.complete(
                AUDITOR_SYSTEM_PROMPT,
                prompt,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except UpstreamUnavailableError as e:
            return JudgmentOutcome(failure=f"model unavailable: {e.message}")
        return parse_judgment(raw)

    def _heuristic_judgment(self, words: int) -> SectionJudgment:
        complete = words >= self.config.complete_at_words
        return SectionJudgment(
            score=min(100, words // 3),
            status=ValidationStatus.COMPLETE if complete else ValidationStatus.NEEDS_IMPROVEMENT,
            gaps=[],
            suggestions=[] if complete else ["Consider adding more detail"],
        )

    async def validate_section(self, document_title: str, section: DocumentSection,
                               response: str) -> SectionValidation:
        response = response or ""
        words = count_words(response)
        base = dict(
            section_id=section.section_id,
            title=section.title,
            is_mandatory=section.is_mandatory,
            word_count=words,
        )

        if words < self.config.missing_below_words:
            return SectionValidation(
                **base,
                status=ValidationStatus.MISSING,
                score=0,
                gaps=[f"{section.title} section is empty or too brief"],
                suggestions=[f"Add comprehensive content to {section.title} section"],
                source=JudgmentSource.LENGTH_CHECK,
            )

        if words < self.config.incomplete_below_words:
            return SectionValidation(
                **base,
                status=ValidationStatus.INCOMPLETE,
                score=self.config.incomplete_score,
                gaps=[f"{section.title} appears too brief ({words} words)"],
                suggestions=["Expand with more detail and specifics"],
                source=JudgmentSource.LENGTH_CHECK,
            )

        outcome = await self._judge_with_model(document_title, section, response)
        if outcome.ok:
            judgment, source = outcome.judgment, JudgmentSource.MODEL
        else:
            logger.warning(
                f"[VALIDATE] Section '{section.title}': falling back to heuristic ({outcome.failure})"
            )
            judgment, source = self._heuristic_judgment(words), JudgmentSource.HEURISTIC

        limit = self.config.max_items_per_section
        return SectionValidation(
            **base,
            status=judgment.status,
            score=judgment.score,
            gaps=judgment.gaps[:limit],
            suggestions=judgment.suggestions[:limit],
            source=source,
        )

    async def validate(self, document: SourceDocument,
                       responses: Dict[str, str]) -> ProposalValidation:
        """responses maps section_id to the proposal's text for that section."""
        results = []
        for section in document.sections:
            results.append(
                await self.validate_section(document.title, section, responses.get(section.section_id, ""))
            )

        validation = aggregate(results, self.config)
        logger.info(
            f"[VALIDATE] Document {document.id}: score {validation.score}, "
            f"valid={validation.is_valid}, {len(results)} sections"
        )
        return validation
