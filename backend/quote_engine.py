# backend/quote_engine.py
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Union

import structlog

from models import ProjectAttributes, QuoteBreakdown, QuoteResult

logger = structlog.get_logger()

# ---- Tunable constants -------------------------------------------------

# Detailing rate before any adjustment ($/drawing)
BASE_RATE_PER_DRAWING = 85

CONTINGENCY_RATE = 0.10

# Project type multiplier; anything unknown prices at 1.0
PROJECT_TYPE_FACTOR: Dict[str, float] = {
    "commercial": 1.15,
    "industrial": 1.30,
    "residential": 0.95,
    "infrastructure": 1.40,
}

# Flat add-on price per optional service ($)
SERVICE_PRICING: Dict[str, int] = {
    "connectionDesign": 1200,
    "clashReview": 700,
    "bimCoordination": 500,
    "shopDrawingQc": 650,
}

# Timeline tiers: (max weeks, factor). Step function, first tier that fits wins.
TIMELINE_TIERS = (
    (4, 1.25),  # fast-track surcharge
    (8, 1.10),
)
STANDARD_TIMELINE_FACTOR = 1.00

# Thresholds on complexity + revision_risk (range 2..10)
HIGH_RISK_SUM = 7
MEDIUM_RISK_SUM = 5

# Keyword scans over the requirements text (plain substring, any case)
COORDINATION_SCOPE_PATTERN = re.compile(r"ifc|coordination|clash|bim", re.IGNORECASE)
ENGINEERING_SCOPE_PATTERN = re.compile(r"connection|design|seismic", re.IGNORECASE)

# Recommendation copy
NOTE_COMPRESSED_TIMELINE = (
    "Compressed timeline detected: include fast-track surcharge and staged deliverables."
)
NOTE_HIGH_COMPLEXITY = (
    "High complexity: allocate senior Tekla modeler hours for early model health checks."
)
NOTE_HIGH_REVISION_RISK = (
    "High revision risk: add revision buffer in proposal terms and assumptions."
)
NOTE_COORDINATION_SCOPE = (
    "Coordination-related scope found: schedule recurring coordination checkpoints."
)
NOTE_ENGINEERING_SCOPE = (
    "Engineering-sensitive scope found: validate design responsibility boundaries clearly."
)
NOTE_STANDARD_SCOPE = (
    "Scope appears standard: proceed with baseline Tekla detailing package and one revision cycle."
)

# ------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with .5 going up.

    Python's round() is banker's rounding (692.5 -> 692); the published
    figures were produced with half-up rounding (692.5 -> 693).
    """
    return int(math.floor(value + 0.5))


def format_usd(value: Union[int, float]) -> str:
    """Single fixed currency rule: US dollars, no cents, e.g. $7,586."""
    amount = round_half_up(value)
    if amount < 0:
        return f"-${-amount:,}"
    return f"${amount:,}"


def timeline_factor(timeline_weeks: int) -> float:
    for max_weeks, factor in TIMELINE_TIERS:
        if timeline_weeks <= max_weeks:
            return factor
    return STANDARD_TIMELINE_FACTOR


def complexity_factor(complexity: int) -> float:
    return 0.85 + 0.12 * complexity


def revision_factor(revision_risk: int) -> float:
    return 0.90 + 0.08 * revision_risk


def type_factor(project_type: str) -> float:
    return PROJECT_TYPE_FACTOR.get(project_type, 1.0)


def options_cost(selected_services: Iterable[str]) -> int:
    """Unknown service keys contribute nothing."""
    return sum(SERVICE_PRICING.get(key, 0) for key in selected_services)


def compute_contingency(estimated_cost: int) -> int:
    return round_half_up(estimated_cost * CONTINGENCY_RATE)


def risk_level(complexity: int, revision_risk: int) -> str:
    score = complexity + revision_risk
    if score >= HIGH_RISK_SUM:
        return "High"
    if score >= MEDIUM_RISK_SUM:
        return "Medium"
    return "Low"


def build_recommendations(attrs: ProjectAttributes) -> List[str]:
    """
    Checklist of scope notes. Every condition that holds adds its note, in
    this order; when none hold a single "standard scope" note is returned.
    """
    text = attrs.requirements_text or ""
    notes: List[str] = []

    if attrs.timeline_weeks <= 4:
        notes.append(NOTE_COMPRESSED_TIMELINE)
    if attrs.complexity >= 4:
        notes.append(NOTE_HIGH_COMPLEXITY)
    if attrs.revision_risk >= 4:
        notes.append(NOTE_HIGH_REVISION_RISK)
    if COORDINATION_SCOPE_PATTERN.search(text):
        notes.append(NOTE_COORDINATION_SCOPE)
    if ENGINEERING_SCOPE_PATTERN.search(text):
        notes.append(NOTE_ENGINEERING_SCOPE)

    if not notes:
        notes.append(NOTE_STANDARD_SCOPE)

    return notes


# ------------------------------------------------------------------------
# Core quote logic
# ------------------------------------------------------------------------


def generate_quote(attrs: Union[ProjectAttributes, Mapping[str, Any]]) -> QuoteResult:
    """
    Price a detailing package.

    - Scope/risk factors scale the per-drawing base cost multiplicatively.
    - Optional services are added afterwards, unscaled.
    - Contingency is 10% of the rounded estimate.
    """
    if not isinstance(attrs, ProjectAttributes):
        attrs = ProjectAttributes.model_validate(dict(attrs))

    tf = timeline_factor(attrs.timeline_weeks)
    cf = complexity_factor(attrs.complexity)
    rf = revision_factor(attrs.revision_risk)
    pf = type_factor(attrs.project_type)

    base_cost = attrs.drawing_count * BASE_RATE_PER_DRAWING
    extras = options_cost(attrs.selected_services)

    subtotal = base_cost * tf * cf * rf * pf
    estimated = round_half_up(subtotal + extras)
    contingency = compute_contingency(estimated)

    result = QuoteResult(
        estimated_cost=estimated,
        contingency=contingency,
        recommended_quote=estimated + contingency,
        risk_level=risk_level(attrs.complexity, attrs.revision_risk),
        recommendations=build_recommendations(attrs),
        breakdown=QuoteBreakdown(
            base_cost=base_cost,
            timeline_factor=tf,
            complexity_factor=round(cf, 4),
            revision_factor=round(rf, 4),
            type_factor=pf,
            options_cost=extras,
            subtotal=round(subtotal, 2),
        ),
    )

    logger.info(
        "quote_generated",
        project_type=attrs.project_type,
        drawing_count=attrs.drawing_count,
        estimated_cost=result.estimated_cost,
        recommended_quote=result.recommended_quote,
        risk_level=result.risk_level,
    )
    return result
