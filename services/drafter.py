# services/drafter.py
"""Grounded Drafter: fact-constrained prompts around retrieved tender context"""
import logging
from typing import List, Optional, Tuple

from config import GenerationConfig, settings
from core.domain import DraftResult, SectionInfo, TenderContext
from core.enums import SectionType
from core.exceptions import InvalidInputError, UnparseableError
from core.interfaces import ICompletionService
from services.retriever import Retriever
from services.section_classifier import build_retrieval_query, classify, get_profile
from utils.common import count_words
from utils.text import estimate_tokens, sanitize_draft, truncate_to_tokens

logger = logging.getLogger(settings.LOGGER_NAME)

DRAFT_DISCLAIMER = (
    "AI-generated content based on tender requirements. Review and customize before submission."
)
DRAFT_SOURCES = ["tender_requirements", "retrieved_context"]
NO_CONTEXT_TEXT = "No additional context available"
NOT_SPECIFIED = "Not specified"

SAFE_CONTEXT_FRACTION = 0.75  # Share of the model context a prompt may use
PROMPT_SAFETY_MARGIN = 100  # Tokens kept free when truncating the user prompt
MIN_USER_PROMPT_TOKENS = 500


def _format_value(value: Optional[float]) -> str:
    if not value:
        return NOT_SPECIFIED
    return f"₹{value:,.0f}"


def build_system_prompt(section_type: SectionType, tender: TenderContext) -> str:
    return f"""You are an expert proposal writer for government and corporate tenders.

TENDER CONTEXT:
- Title: {tender.title}
- Sector: {tender.sector or NOT_SPECIFIED}
- Issuing Authority: {tender.issuing_authority or NOT_SPECIFIED}
- Estimated Value: {_format_value(tender.estimated_value)}

CRITICAL RULES - YOU MUST FOLLOW:
1. Use ONLY information from the provided context and requirements
2. NEVER invent facts, figures, company names, or specific numbers
3. If specific information is not available, use placeholder phrases like "[Company Name]", "[X years]", "[Specify amount]"
4. Reference tender requirements explicitly where applicable
5. Structure content using the provided section structure
6. Use formal, professional language appropriate for tender submissions
7. Be specific and actionable where the tender provides details
8. When tender mentions specific criteria, address each one

SECTION TYPE: {section_type.value}

Write a professional proposal section that:
- Directly addresses the tender requirements
- Uses clear, formal language
- Follows the suggested structure
- Includes placeholders for bidder-specific information
- Maintains compliance focus"""


def build_user_prompt(
    section_title: str,
    requirements: str,
    context: str,
    structure: List[str],
    custom_instructions: Optional[str] = None,
) -> str:
    outline = "\n".join(f"{i + 1}. {item}" for i, item in enumerate(structure))
    prompt = f"""Generate a professional proposal response for the following section:

SECTION: {section_title}

TENDER REQUIREMENTS FOR THIS SECTION:
{requirements or 'General requirements - address comprehensively'}

RELEVANT CONTEXT FROM TENDER DOCUMENT:
{context or NO_CONTEXT_TEXT}

SUGGESTED STRUCTURE:
{outline}
"""

    if custom_instructions:
        prompt += f"""
ADDITIONAL INSTRUCTIONS:
{custom_instructions}
"""

    prompt += """
Generate a complete, professional response that:
1. Addresses each requirement point by point
2. Uses the suggested structure
3. Includes placeholders like [Company Name], [X years experience], [Specify value] for bidder-specific details
4. Maintains formal tender proposal language
5. Is ready for the bidder to customize and submit

Response:"""
    return prompt


class GroundedDrafter:
    """
    Drafts one proposal section.

    classify -> retrieve -> system + user prompt -> model -> sanitize.
    The model only ever sees tender facts from the system prompt, the
    section's requirement text and retrieved chunks of the same document.
    """

    def __init__(
        self,
        retriever: Retriever,
        completion_service: ICompletionService,
        config: Optional[GenerationConfig] = None,
    ):
        self.retriever = retriever
        self.completion_service = completion_service
        self.config = config or GenerationConfig()

    def _guard_prompt_size(self, system_prompt: str, user_prompt: str) -> Tuple[str, str]:
        """Fit both prompts into 75% of the model context, truncating the user prompt if needed."""
        safe_limit = int(self.config.context_tokens * SAFE_CONTEXT_FRACTION)
        total = estimate_tokens(f"{system_prompt}\n\n{user_prompt}")
        if total <= safe_limit:
            return system_prompt, user_prompt

        logger.warning(f"[DRAFT] Prompt of ~{total} tokens exceeds safe limit {safe_limit}")
        prompt_budget = self.config.context_tokens - self.config.max_tokens
        available = prompt_budget - estimate_tokens(system_prompt) - PROMPT_SAFETY_MARGIN
        if available <= MIN_USER_PROMPT_TOKENS:
            raise InvalidInputError(
                f"Prompt exceeds token limit by {total - safe_limit} tokens and cannot be truncated safely"
            )
        return system_prompt, truncate_to_tokens(user_prompt, available)

    async def draft(
        self,
        tender: TenderContext,
        section: SectionInfo,
        custom_instructions: Optional[str] = None,
    ) -> DraftResult:
        section_type = classify(section.title)
        profile = get_profile(section_type)
        structure = list(profile.structure)

        query = build_retrieval_query(
            section_type, section.requirements, self.retriever.config.query_max_chars
        )
        retrieval = await self.retriever.retrieve(query, tender.document_id)

        system_prompt, user_prompt = self._guard_prompt_size(
            build_system_prompt(section_type, tender),
            build_user_prompt(
                section.title,
                section.requirements,
                retrieval.context,
                structure,
                custom_instructions,
            ),
        )

        logger.info(
            f"[DRAFT] Calling model for {section_type.value} section '{section.title}' "
            f"({len(retrieval.chunks)} context chunks)"
        )
        raw = await self.completion_service.complete(
            system_prompt,
            user_prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

        text = sanitize_draft(raw)
        if not text:
            raise UnparseableError(f"Model returned no usable draft for section '{section.title}'")

        return DraftResult(
            text=text,
            word_count=count_words(text),
            section_type=section_type,
            disclaimer=DRAFT_DISCLAIMER,
            suggested_structure=structure,
            sources=list(DRAFT_SOURCES) if retrieval.chunks else ["tender_requirements"],
        )
