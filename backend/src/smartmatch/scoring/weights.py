"""Built-in industry weight tables and industry keyword lists.

Every table covers the six scoring dimensions and sums to 1.0. Unknown
industries use the "default" table.
"""

DEFAULT_INDUSTRY = "default"

INDUSTRY_WEIGHTS: dict[str, dict[str, float]] = {
    "technology": {
        "service_match": 0.40,
        "industry_match": 0.20,
        "timeline_alignment": 0.15,
        "certifications": 0.10,
        "value_range": 0.10,
        "past_win_similarity": 0.05,
    },
    "healthcare": {
        "service_match": 0.30,
        "industry_match": 0.15,
        "timeline_alignment": 0.10,
        "certifications": 0.30,
        "value_range": 0.10,
        "past_win_similarity": 0.05,
    },
    "finance": {
        "service_match": 0.25,
        "industry_match": 0.20,
        "timeline_alignment": 0.10,
        "certifications": 0.35,
        "value_range": 0.05,
        "past_win_similarity": 0.05,
    },
    "manufacturing": {
        "service_match": 0.35,
        "industry_match": 0.25,
        "timeline_alignment": 0.20,
        "certifications": 0.10,
        "value_range": 0.05,
        "past_win_similarity": 0.05,
    },
    "construction": {
        "service_match": 0.30,
        "industry_match": 0.20,
        "timeline_alignment": 0.25,
        "certifications": 0.15,
        "value_range": 0.05,
        "past_win_similarity": 0.05,
    },
    DEFAULT_INDUSTRY: {
        "service_match": 0.35,
        "industry_match": 0.15,
        "timeline_alignment": 0.15,
        "certifications": 0.15,
        "value_range": 0.10,
        "past_win_similarity": 0.10,
    },
}

INDUSTRY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "technology": (
        "software", "cloud", "saas", "api", "platform", "digital",
        "cybersecurity", "data", "infrastructure", "devops",
    ),
    "healthcare": (
        "patient", "clinical", "hospital", "medical", "ehr",
        "health", "hipaa", "care", "telehealth", "pharmacy",
    ),
    "finance": (
        "banking", "financial", "payment", "trading", "audit",
        "compliance", "fintech", "investment", "risk", "ledger",
    ),
    "manufacturing": (
        "production", "supply chain", "factory", "assembly", "quality control",
        "lean", "inventory", "plant", "automation", "logistics",
    ),
    "construction": (
        "building", "site", "contractor", "renovation", "permit",
        "civil", "structural", "architecture", "infrastructure", "safety",
    ),
}

# Certifications each industry's buyers ask for
INDUSTRY_CERTIFICATIONS: dict[str, tuple[str, ...]] = {
    "healthcare": ("hipaa", "hitech", "fda"),
    "finance": ("pci", "sox", "iso 27001", "aicpa"),
    "technology": ("iso 27001", "soc 2", "gdpr"),
    "manufacturing": ("iso 9001", "iso 14001", "six sigma"),
    "construction": ("osha", "leed", "pmp"),
}

# Additive post-scoring adjustments, each result capped at 100
INDUSTRY_BONUSES: dict[str, dict[str, int]] = {
    "healthcare": {"certifications": 10},
    "finance": {"certifications": 15, "service_match": 5},
    "technology": {"service_match": 10, "timeline_alignment": 5},
}


def normalize_industry(industry: str | None) -> str:
    """Lowercase and strip an industry name. Blank becomes "default"."""
    value = (industry or "").strip().lower()
    return value or DEFAULT_INDUSTRY


def default_weights(industry: str) -> dict[str, float]:
    """Copy of the built-in weight table for an industry."""
    table = INDUSTRY_WEIGHTS.get(
        normalize_industry(industry), INDUSTRY_WEIGHTS[DEFAULT_INDUSTRY]
    )
    return dict(table)
