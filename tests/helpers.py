"""Fakes, seed data and small builders shared by the test modules."""

import zlib
from typing import List, Optional

import numpy as np

from core.domain import DocumentSection, SourceDocument
from core.exceptions import UpstreamUnavailableError
from core.interfaces import ICompletionService, IEmbeddingService
from utils.common import split_words

EMBEDDING_DIMENSION = 16

OWNER = "owner-1"
EDITOR = "editor-1"
COMMENTER = "commenter-1"
OUTSIDER = "outsider-1"
AUTHORITY = "authority-1"

DOCUMENT_ID = "doc-1"
PROPOSAL_ID = "prop-1"


def make_text(n: int, word: str = "requirement") -> str:
    """n whitespace-separated words."""
    return " ".join(f"{word}{i}" for i in range(n))


# ============= Fakes =============

class FakeEmbeddingService(IEmbeddingService):
    """Deterministic bag-of-words vectors; counts calls and can fail from a given call on."""

    def __init__(self, dimension: int = EMBEDDING_DIMENSION, fail_on_call: Optional[int] = None):
        self.dimension = dimension
        self.fail_on_call = fail_on_call
        self.calls = 0
        self.texts: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        self.texts.append(text)
        if self.fail_on_call is not None and self.calls >= self.fail_on_call:
            raise UpstreamUnavailableError("embedding endpoint down")

        vector = np.zeros(self.dimension, dtype="float32")
        for word in split_words(text.lower()):
            vector[zlib.crc32(word.encode("utf-8")) % self.dimension] += 1.0
        norm = np.linalg.norm(vector)
        if norm == 0:
            vector[0] = 1.0
            norm = 1.0
        return (vector / norm).tolist()


class FakeCompletionService(ICompletionService):
    """Returns queued responses in order, then `default`. Records every call."""

    def __init__(self, responses: Optional[List[str]] = None, default: str = "",
                 error: Optional[Exception] = None):
        self.responses = list(responses or [])
        self.default = default
        self.error = error
        self.calls: List[dict] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete(self, system_prompt: str, user_prompt: str,
                       temperature: float, max_tokens: int) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return self.default


# ============= Seed Data =============

ELIGIBILITY_TEXT = (
    "Bidders must have at least five years of experience in city surveillance projects "
    "and an average annual turnover of Rs. 10 crore over the last three financial years. "
    "ISO 9001 certification and registration with the state IT department are mandatory. "
    "Consortium bids are allowed with a maximum of three members."
)
TECHNICAL_TEXT = (
    "The bidder shall describe the technical approach and methodology for deploying 500 IP cameras, "
    "a central command and control centre, video analytics and 90 days of footage retention. "
    "The execution plan must cover site survey, installation, integration, testing and a "
    "warranty period of 5 years with quality assurance milestones and escalation matrix."
)
FINANCIAL_TEXT = (
    "An earnest money deposit (EMD) of Rs. 25 lakh must be submitted as a bank guarantee. "
    "Payment will be released in milestones: 30 percent on installation, 40 percent on "
    "go-live and the balance over the operations period. Prices must remain valid for 180 days."
)


def build_document() -> SourceDocument:
    return SourceDocument(
        id=DOCUMENT_ID,
        organization_id="authority-org",
        title="Smart City Surveillance System",
        description=(
            "Supply, installation and five-year maintenance of a city-wide surveillance network "
            "for the Metro Municipal Corporation, including command centre, cameras, analytics "
            "and integration with police control rooms across all twelve administrative zones."
        ),
        sector="Public Safety",
        estimated_value=250000000,
        issuing_authority="Metro Municipal Corporation",
        sections=[
            DocumentSection("s-elig", "Eligibility Criteria", ELIGIBILITY_TEXT, True, 0),
            DocumentSection("s-tech", "Technical Approach & Methodology", TECHNICAL_TEXT, True, 1),
            DocumentSection("s-fin", "Financial Terms and EMD", FINANCIAL_TEXT, False, 2),
        ],
    )
