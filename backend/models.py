# backend/models.py
from typing import Any, Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---- Closed enumerations -----------------------------------------------

ProjectType = Literal["commercial", "industrial", "residential", "infrastructure"]
PROJECT_TYPES = get_args(ProjectType)
DEFAULT_PROJECT_TYPE = "commercial"

# Wire identifiers for the optional services (checkbox values in the form)
ServiceId = Literal["connectionDesign", "clashReview", "bimCoordination", "shopDrawingQc"]
SERVICE_IDS = get_args(ServiceId)

RiskLevel = Literal["Low", "Medium", "High"]
RISK_LEVELS = get_args(RiskLevel)

SCORE_MIN = 1
SCORE_MAX = 5

# Six-digit ceiling keeps per-drawing pricing inside float range
MAX_DRAWING_COUNT = 999_999


def _norm(s: Optional[str]) -> Optional[str]:
    if not s:
        return None
    return s.strip().lower() or None


def clamp_score(value: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, int(value)))


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        v = (v or "").strip()
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


# ------------------------------------------------------------------------
# Pricing input
# ------------------------------------------------------------------------


class ProjectAttributes(BaseModel):
    """
    Fully-resolved project description handed to the quote engine.

    Out-of-range numbers are clamped instead of rejected so that pricing
    always has an answer:
    - complexity / revision_risk -> [1, 5]
    - timeline_weeks -> >= 1
    - drawing_count -> [1, MAX_DRAWING_COUNT]
    - unknown service ids -> dropped
    - unknown project_type -> "commercial"
    """

    client_name: str = ""
    project_type: ProjectType = DEFAULT_PROJECT_TYPE
    timeline_weeks: int = 8
    drawing_count: int
    complexity: int = 2
    revision_risk: int = 2
    requirements_text: str = ""
    selected_services: List[ServiceId] = Field(default_factory=list)

    @field_validator("client_name", "requirements_text", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("project_type", mode="before")
    @classmethod
    def _known_project_type(cls, v: Any) -> str:
        value = _norm(v if isinstance(v, str) else None)
        if value in PROJECT_TYPES:
            return value
        return DEFAULT_PROJECT_TYPE

    @field_validator("complexity", "revision_risk")
    @classmethod
    def _clamp_scores(cls, v: int) -> int:
        return clamp_score(v)

    @field_validator("timeline_weeks")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        return max(1, v)

    @field_validator("drawing_count")
    @classmethod
    def _bounded_drawing_count(cls, v: int) -> int:
        return max(1, min(MAX_DRAWING_COUNT, v))

    @field_validator("selected_services", mode="before")
    @classmethod
    def _known_services(cls, v: Any) -> List[str]:
        # unknown ids are dropped; they would price at 0 anyway
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [s for s in _dedupe([str(x) for x in v]) if s in SERVICE_IDS]


# ------------------------------------------------------------------------
# Analyzer output
# ------------------------------------------------------------------------


class AnalysisResult(BaseModel):
    """Best-effort attributes inferred from one requirements document."""

    model_config = ConfigDict(frozen=True)

    client_name: Optional[str] = None
    project_type: ProjectType = DEFAULT_PROJECT_TYPE
    timeline_weeks: int = 8
    drawing_count: int = 15
    complexity: int = 2
    revision_risk: int = 2
    selected_services: List[ServiceId] = Field(default_factory=list)
    requirements_text: str = ""

    # field name -> True when an explicit pattern matched (vs. heuristic/default)
    detected: Dict[str, bool] = Field(default_factory=dict)
    findings: List[str] = Field(default_factory=list)

    def to_attributes(self) -> ProjectAttributes:
        return ProjectAttributes(
            client_name=self.client_name or "",
            project_type=self.project_type,
            timeline_weeks=self.timeline_weeks,
            drawing_count=self.drawing_count,
            complexity=self.complexity,
            revision_risk=self.revision_risk,
            requirements_text=self.requirements_text,
            selected_services=list(self.selected_services),
        )


# ------------------------------------------------------------------------
# Quote output
# ------------------------------------------------------------------------


class QuoteBreakdown(BaseModel):
    base_cost: int
    timeline_factor: float
    complexity_factor: float
    revision_factor: float
    type_factor: float
    options_cost: int
    subtotal: float


class QuoteResult(BaseModel):
    estimated_cost: int
    contingency: int
    recommended_quote: int
    risk_level: RiskLevel
    recommendations: List[str]
    breakdown: QuoteBreakdown
