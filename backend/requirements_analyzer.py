# backend/requirements_analyzer.py
import math
import re
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import structlog

from models import DEFAULT_PROJECT_TYPE, AnalysisResult, clamp_score

logger = structlog.get_logger()

# ---- Tunable constants -------------------------------------------------

DEFAULT_TIMELINE_WEEKS = 8
DEFAULT_SCORE = 2

# Drawing-count estimation from scope keywords
BASE_DRAWING_COUNT = 30
MIN_DRAWING_COUNT = 15
MAX_DRAWING_COUNT = 500
MAX_SENTENCE_BONUS = 25

SCOPE_KEYWORD_WEIGHTS: Dict[str, int] = {
    "stair": 4,
    "seismic": 6,
    "connection": 5,
    "clash": 4,
    "ifc": 3,
    "bim": 3,
    "fabrication": 8,
    "industrial": 10,
    "commercial": 7,
    "platform": 4,
    "truss": 5,
}

# Label synonyms; longer ones are tried first
CLIENT_LABELS = ("client name", "client", "customer")
TIMELINE_LABELS = ("timeline", "delivery time", "duration")
COMPLEXITY_LABELS = ("complexity",)
REVISION_RISK_LABELS = ("revision risk", "risk")

# Checked in this order, first match wins; no match -> commercial
PROJECT_TYPE_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("industrial", re.compile(r"\b(?:industrial|plant|factory|process|manufactur)", re.IGNORECASE)),
    ("residential", re.compile(r"\b(?:residential|apartment|house|housing|condo|villa|dwelling)", re.IGNORECASE)),
    ("infrastructure", re.compile(r"\b(?:infrastructure|bridge|metro|rail(?:way|road)?s?\b|airport)", re.IGNORECASE)),
)

# Independent tests, reported in this order
SERVICE_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("connectionDesign", re.compile(r"\b(?:connection|seismic)\s+design", re.IGNORECASE)),
    ("clashReview", re.compile(r"\b(?:clash|interference)", re.IGNORECASE)),
    ("bimCoordination", re.compile(r"\bbim\b|\bmodel\s+coordination", re.IGNORECASE)),
    ("shopDrawingQc", re.compile(r"\b(?:qa|qc)\b|\bquality\s+(?:control|assurance|check)", re.IGNORECASE)),
)

COMPLEXITY_MAJOR = re.compile(r"seismic|complex|truss|heavy\s+industrial|retrofit", re.IGNORECASE)
COMPLEXITY_MINOR = re.compile(r"ifc|clash|coordination", re.IGNORECASE)
REVISION_RISK_MAJOR = re.compile(r"frequent\s+revisions?|\btbd\b|client\s+changes?", re.IGNORECASE)
REVISION_RISK_MINOR = re.compile(r"fast[\s-]?track|urgent|compressed", re.IGNORECASE)

DRAWING_COUNT_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"\b(\d{1,6})\s*(?:(?:shop|ga|detail(?:ing)?)\s+)*drawings?\b", re.IGNORECASE),
    re.compile(r"\b(\d{1,6})\s*(?:sheets?|plans?)\b", re.IGNORECASE),
)

WEEKS_PATTERN = re.compile(r"(?<![\d.])\b(\d{1,6}(?:\.\d{1,2})?)\s*(?:-\s*)?(?:weeks?|wks?)\b", re.IGNORECASE)
DAYS_PATTERN = re.compile(
    r"(?<![\d.])\b(\d{1,6})\s*(?:-\s*)?(?:(?:calendar|working|business)\s+)?days?\b", re.IGNORECASE
)

HEADER_PATTERN = re.compile(r"^\s*(?:project|proposal)\s*[:=\-]\s*([^\r\n,.;]+)", re.IGNORECASE)

# Value runs to end of line or the first stop punctuation
_LABEL_VALUE = r"([^\r\n,.;]*)"

# Labeled scores: a standalone integer of at most six digits
_SCORE_VALUE = re.compile(r"(?<!\d)\d{1,6}(?!\d)")

# ------------------------------------------------------------------------
# Text helpers
# ------------------------------------------------------------------------


def normalize_text(text: Optional[str]) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    if not text:
        return ""
    return " ".join(text.split())


def count_sentences(text: str) -> int:
    return len([s for s in re.split(r"[.!?]", text or "") if s.strip()])


def _label_alternation(labels: Sequence[str]) -> str:
    ordered = sorted(labels, key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(word) for word in label.split()) for label in ordered)


@lru_cache(maxsize=32)
def _label_patterns(labels: Tuple[str, ...]) -> Tuple[re.Pattern, re.Pattern]:
    alt = _label_alternation(labels)
    # Pass 1: label at the start of a line, separator ':', '=' or '-'
    line_start = re.compile(
        rf"^[ \t]*(?:{alt})[ \t]*[:=\-][ \t]*{_LABEL_VALUE}",
        re.IGNORECASE | re.MULTILINE,
    )
    # Pass 2: label anywhere (line breaks lost in PDF extraction); a bare
    # hyphen is only a separator when spaced, so "client-side" is not a label
    inline = re.compile(
        rf"\b(?:{alt})(?:[ \t]*[:=]|[ \t]+-)[ \t]*{_LABEL_VALUE}",
        re.IGNORECASE,
    )
    return line_start, inline


def iter_labeled_values(text: Optional[str], labels: Sequence[str]) -> Iterator[str]:
    """Every non-empty labeled value, start-of-line matches first."""
    if not text:
        return

    for pattern in _label_patterns(tuple(labels)):
        for match in pattern.finditer(text):
            value = match.group(1).strip()
            if value:
                yield value


def extract_labeled_value(text: Optional[str], labels: Sequence[str]) -> Optional[str]:
    """
    Find `<label><sep><value>` for any of the given label synonyms.
    Returns the trimmed value or None when no label carries a value.
    """
    return next(iter_labeled_values(text, labels), None)


def _labeled_score(text: str, labels: Sequence[str]) -> Optional[int]:
    # "Risk: moderate" must not hide a later "Revision risk: 4"
    for value in iter_labeled_values(text, labels):
        m = _SCORE_VALUE.search(value)
        if m and 1 <= int(m.group(0)) <= 5:
            return int(m.group(0))
    return None


# ------------------------------------------------------------------------
# Field inference
# ------------------------------------------------------------------------


def extract_drawing_count(text: Optional[str]) -> Optional[int]:
    """
    Explicit counts such as "12 shop drawings", "20 GA drawings" or
    "35 sheets". Every mention in the document is collected and the largest
    wins, since later mentions tend to refine early rough counts.
    """
    if not text:
        return None

    counts: List[int] = []
    for pattern in DRAWING_COUNT_PATTERNS:
        counts.extend(int(m.group(1)) for m in pattern.finditer(text))

    if not counts:
        return None
    return max(1, max(counts))


def estimate_drawing_count(text: Optional[str]) -> int:
    normalized = normalize_text(text)
    if not normalized:
        return MIN_DRAWING_COUNT

    lowered = normalized.lower()
    estimate = BASE_DRAWING_COUNT
    for keyword, weight in SCOPE_KEYWORD_WEIGHTS.items():
        if keyword in lowered:
            estimate += weight

    estimate += min(count_sentences(normalized) * 2, MAX_SENTENCE_BONUS)
    return max(MIN_DRAWING_COUNT, min(MAX_DRAWING_COUNT, estimate))


def infer_project_type(text: Optional[str]) -> Tuple[str, bool]:
    normalized = normalize_text(text)
    for project_type, pattern in PROJECT_TYPE_PATTERNS:
        if pattern.search(normalized):
            return project_type, True
    return DEFAULT_PROJECT_TYPE, False


def infer_services(text: Optional[str]) -> List[str]:
    normalized = normalize_text(text)
    return [service for service, pattern in SERVICE_PATTERNS if pattern.search(normalized)]


def _heuristic_score(text: str, major: re.Pattern, minor: re.Pattern) -> int:
    score = DEFAULT_SCORE
    if major.search(text):
        score += 2
    if minor.search(text):
        score += 1
    return clamp_score(score)


def infer_complexity(text: Optional[str]) -> Tuple[int, bool]:
    text = text or ""
    labeled = _labeled_score(text, COMPLEXITY_LABELS)
    if labeled is not None:
        return labeled, True
    return _heuristic_score(normalize_text(text), COMPLEXITY_MAJOR, COMPLEXITY_MINOR), False


def infer_revision_risk(text: Optional[str]) -> Tuple[int, bool]:
    text = text or ""
    labeled = _labeled_score(text, REVISION_RISK_LABELS)
    if labeled is not None:
        return labeled, True
    return _heuristic_score(normalize_text(text), REVISION_RISK_MAJOR, REVISION_RISK_MINOR), False


def infer_timeline_weeks(text: Optional[str]) -> Tuple[int, bool]:
    """
    Weeks from a labeled value (timeline / delivery time / duration) or,
    failing that, anywhere in the text. Fractional weeks round up; days
    are converted with ceil(days/7).
    """
    text = text or ""
    sources: List[str] = []
    labeled = extract_labeled_value(text, TIMELINE_LABELS)
    if labeled:
        sources.append(labeled)
    sources.append(text)

    for source in sources:
        m = WEEKS_PATTERN.search(source)
        if m:
            return max(1, math.ceil(float(m.group(1)))), True
        m = DAYS_PATTERN.search(source)
        if m:
            return max(1, -(-int(m.group(1)) // 7)), True

    return DEFAULT_TIMELINE_WEEKS, False


def infer_client_name(text: Optional[str]) -> Optional[str]:
    labeled = extract_labeled_value(text, CLIENT_LABELS)
    if labeled:
        return labeled

    stripped = (text or "").strip()
    if not stripped:
        return None

    # Only the first line may carry a "Project: ..." / "Proposal: ..." header
    m = HEADER_PATTERN.match(stripped.splitlines()[0])
    if m and m.group(1).strip():
        return m.group(1).strip()
    return None


# ------------------------------------------------------------------------
# Findings
# ------------------------------------------------------------------------


def compose_findings(
    *,
    drawing_count: int,
    timeline_weeks: int,
    complexity: int,
    revision_risk: int,
    project_type: str,
    client_name: Optional[str],
    selected_services: Sequence[str],
    detected: Dict[str, bool],
) -> List[str]:
    findings: List[str] = []

    if detected.get("drawing_count"):
        findings.append(f"Drawing count detected in document: {drawing_count}")
    else:
        findings.append(f"Drawing count estimated from scope keywords: {drawing_count}")

    if detected.get("timeline_weeks"):
        findings.append(f"Timeline detected: {timeline_weeks} week(s)")
    else:
        findings.append(f"Timeline not stated; defaulted to {timeline_weeks} weeks")

    if detected.get("complexity"):
        findings.append(f"Complexity detected: {complexity}/5")
    else:
        findings.append(f"Complexity inferred from scope keywords: {complexity}/5")

    if detected.get("revision_risk"):
        findings.append(f"Revision risk detected: {revision_risk}/5")
    else:
        findings.append(f"Revision risk inferred from scope keywords: {revision_risk}/5")

    if detected.get("project_type"):
        findings.append(f"Project type inferred from keywords: {project_type}")
    else:
        findings.append(f"Project type not detected; defaulted to {project_type}")

    if client_name:
        findings.append(f"Client name detected: {client_name}")
    else:
        findings.append("Client name not detected")

    if selected_services:
        findings.append(f"Optional services suggested: {', '.join(selected_services)}")

    return findings


# ------------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------------


def analyze_requirements(raw_text: Optional[str]) -> AnalysisResult:
    """
    Infer project attributes from a requirements document.

    Never raises for text input: every field has a fallback
    (commercial, 8 weeks, scope-based drawing estimate, complexity 2, risk 2).
    """
    text = raw_text or ""

    explicit_count = extract_drawing_count(text)
    if explicit_count is not None:
        drawing_count = explicit_count
    else:
        drawing_count = estimate_drawing_count(text)

    timeline_weeks, timeline_found = infer_timeline_weeks(text)
    complexity, complexity_found = infer_complexity(text)
    revision_risk, risk_found = infer_revision_risk(text)
    project_type, type_found = infer_project_type(text)
    client_name = infer_client_name(text)
    services = infer_services(text)

    detected = {
        "drawing_count": explicit_count is not None,
        "timeline_weeks": timeline_found,
        "complexity": complexity_found,
        "revision_risk": risk_found,
        "project_type": type_found,
        "client_name": client_name is not None,
    }

    findings = compose_findings(
        drawing_count=drawing_count,
        timeline_weeks=timeline_weeks,
        complexity=complexity,
        revision_risk=revision_risk,
        project_type=project_type,
        client_name=client_name,
        selected_services=services,
        detected=detected,
    )

    logger.debug(
        "requirements_analyzed",
        text_length=len(text),
        drawing_count=drawing_count,
        timeline_weeks=timeline_weeks,
        project_type=project_type,
        detected=[k for k, v in detected.items() if v],
    )

    return AnalysisResult(
        client_name=client_name,
        project_type=project_type,
        timeline_weeks=timeline_weeks,
        drawing_count=drawing_count,
        complexity=complexity,
        revision_risk=revision_risk,
        selected_services=services,
        requirements_text=text.strip(),
        detected=detected,
        findings=findings,
    )
