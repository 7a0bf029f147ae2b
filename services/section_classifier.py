# services/section_classifier.py
"""Section type inference and per-type drafting profiles"""
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

from core.enums import SectionType

# Checked in order; the first type with a matching keyword wins
CLASSIFICATION_RULES: List[Tuple[SectionType, Tuple[str, ...]]] = [
    (SectionType.ELIGIBILITY, ("eligib", "qualif", "experience")),
    (SectionType.TECHNICAL, ("technic", "method", "approach", "scope", "specification")),
    (SectionType.FINANCIAL, ("financ", "commerc", "price", "cost", "payment", "emd")),
    (SectionType.EVALUATION, ("evaluat", "score", "criteria", "marking")),
    (SectionType.TERMS, ("term", "condition", "legal", "complian")),
]


@dataclass(frozen=True)
class SectionProfile:
    """Retrieval query template and suggested response outline for a section type"""
    query_template: str
    structure: Tuple[str, ...]


SECTION_PROFILES: Dict[SectionType, SectionProfile] = {
    SectionType.ELIGIBILITY: SectionProfile(
        query_template="eligibility criteria qualification requirements certifications experience financial capacity",
        structure=(
            "Company Overview & Legal Status",
            "Years of Experience & Track Record",
            "Financial Capacity & Turnover",
            "Certifications & Registrations",
            "Key Personnel Qualifications",
            "Past Project Experience",
        ),
    ),
    SectionType.TECHNICAL: SectionProfile(
        query_template="technical specifications methodology approach execution quality standards deliverables",
        structure=(
            "Understanding of Scope",
            "Technical Approach & Methodology",
            "Execution Plan & Phases",
            "Quality Assurance Measures",
            "Resource Deployment",
            "Risk Mitigation Strategy",
        ),
    ),
    SectionType.FINANCIAL: SectionProfile(
        query_template="EMD earnest money payment terms pricing financial conditions tax compliance",
        structure=(
            "EMD & Security Deposit Compliance",
            "Payment Terms Acceptance",
            "Tax & Statutory Compliance",
            "Price Validity Statement",
            "Financial Assumptions",
        ),
    ),
    SectionType.EVALUATION: SectionProfile(
        query_template="evaluation criteria scoring assessment selection parameters weightage",
        structure=(
            "Compliance Statement",
            "Technical Capability Highlights",
            "Experience & Track Record",
            "Value Proposition",
            "Differentiators",
        ),
    ),
    SectionType.TERMS: SectionProfile(
        query_template="terms conditions warranty guarantee compliance legal obligations",
        structure=(
            "Acceptance of Terms & Conditions",
            "Warranty & Guarantee Compliance",
            "Performance Guarantee Commitment",
            "Legal Compliance Statement",
        ),
    ),
    SectionType.GENERAL: SectionProfile(
        query_template="requirements specifications details scope",
        structure=(
            "Introduction",
            "Our Understanding",
            "Proposed Approach",
            "Conclusion",
        ),
    ),
}

# Display titles for the section keys used by uploaded tenders
SECTION_KEY_TITLES: Dict[str, str] = {
    "coverLetter": "Cover Letter",
    "executiveSummary": "Executive Summary",
    "companyProfile": "Company Profile",
    "technicalApproach": "Technical Approach",
    "experienceCredentials": "Experience & Credentials",
    "projectTeam": "Project Team",
    "commercialTerms": "Commercial Terms",
    "compliance": "Compliance Statement",
}


def classify(title_or_key: str) -> SectionType:
    """Infer the section type from a section title or key. Pure and deterministic."""
    lowered = (title_or_key or "").lower()
    for section_type, keywords in CLASSIFICATION_RULES:
        if any(keyword in lowered for keyword in keywords):
            return section_type
    return SectionType.GENERAL


def get_profile(section_type: SectionType) -> SectionProfile:
    return SECTION_PROFILES.get(section_type, SECTION_PROFILES[SectionType.GENERAL])


def build_retrieval_query(section_type: SectionType, requirement_text: str, max_chars: int = 500) -> str:
    """Type query template followed by the section's requirement text, capped at max_chars."""
    query = f"{get_profile(section_type).query_template} {requirement_text or ''}".strip()
    return query[:max_chars]


def section_key_to_title(section_key: str) -> str:
    """'technicalApproach' -> 'Technical Approach'"""
    if section_key in SECTION_KEY_TITLES:
        return SECTION_KEY_TITLES[section_key]
    spaced = re.sub(r"([A-Z])", r" \1", section_key or "").strip()
    return spaced[:1].upper() + spaced[1:]
