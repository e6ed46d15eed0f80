import pytest
from pydantic import ValidationError

from requirements_analyzer import (
    analyze_requirements,
    count_sentences,
    estimate_drawing_count,
    extract_drawing_count,
    extract_labeled_value,
    infer_client_name,
    infer_complexity,
    infer_project_type,
    infer_revision_risk,
    infer_services,
    infer_timeline_weeks,
    normalize_text,
)

SAMPLE_BRIEF = """Project: Harbor Logistics Expansion
Client Name: Apex Fabricators
Timeline: 6 weeks
Complexity: 4
Revision Risk: 3
Scope includes 12 shop drawings for the mezzanine.
Later revised to 20 GA drawings with connection design and clash review.
"""


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def test_normalize_text_collapses_whitespace():
    assert normalize_text("  Steel \n\n framing\t package  ") == "Steel framing package"
    assert normalize_text(None) == ""


def test_count_sentences_ignores_empty_segments():
    assert count_sentences("One. Two! Three?") == 3
    assert count_sentences("...") == 0


def test_labeled_value_uses_any_separator():
    assert extract_labeled_value("Customer = Northline Steel", ["client", "customer"]) == "Northline Steel"
    assert extract_labeled_value("client - Ridge Co\nother", ["client"]) == "Ridge Co"


def test_labeled_value_stops_at_punctuation():
    text = "Client: Apex Fabricators, attn. estimating"
    assert extract_labeled_value(text, ["client"]) == "Apex Fabricators"


def test_labeled_value_prefers_longer_synonym():
    text = "Client Name: Apex Fabricators"
    assert extract_labeled_value(text, ["client", "client name"]) == "Apex Fabricators"


def test_labeled_value_survives_flattened_line_breaks():
    text = "Client: Apex Steel, Timeline: 3 weeks, Complexity: 5"
    assert extract_labeled_value(text, ["timeline"]) == "3 weeks"
    assert extract_labeled_value(text, ["complexity"]) == "5"


def test_labeled_value_missing():
    assert extract_labeled_value("No labels in here", ["client"]) is None
    assert extract_labeled_value("", ["client"]) is None


# ---------------------------------------------------------------------------
# Drawing count
# ---------------------------------------------------------------------------

def test_largest_explicit_drawing_count_wins():
    text = "Scope includes 12 shop drawings... later revised to 20 GA drawings"
    assert extract_drawing_count(text) == 20


def test_sheet_and_plan_counts():
    assert extract_drawing_count("Package of 35 sheets and 4 plans") == 35
    assert extract_drawing_count("Issue 8 detailing drawings") == 8


def test_no_explicit_drawing_count():
    assert extract_drawing_count("Steel framing for the lobby.") is None
    assert extract_drawing_count("") is None


def test_scope_estimate_from_keywords_and_sentences():
    text = "Seismic bracing at the roof truss. Verify member sizes. Submit for approval."
    # 30 + seismic 6 + truss 5 + 3 sentences * 2
    assert estimate_drawing_count(text) == 47


def test_scope_estimate_sentence_bonus_is_capped():
    text = "Beam. " * 20
    assert estimate_drawing_count(text) == 30 + 25


def test_scope_estimate_of_empty_text_is_floor():
    assert estimate_drawing_count("") == 15
    assert estimate_drawing_count("   \n ") == 15


def test_explicit_count_beats_estimate():
    result = analyze_requirements("Seismic truss platform. 18 shop drawings expected.")
    assert result.drawing_count == 18
    assert result.detected["drawing_count"] is True


# ---------------------------------------------------------------------------
# Project type and services
# ---------------------------------------------------------------------------

def test_industrial_checked_before_residential():
    text = "An industrial plant next to a residential apartment block."
    assert infer_project_type(text) == ("industrial", True)


@pytest.mark.parametrize("text,expected", [
    ("Luxury apartment tower", "residential"),
    ("Pedestrian bridge over the metro line", "infrastructure"),
    ("New airport terminal canopy", "infrastructure"),
    ("Process building for a chemical facility", "industrial"),
    ("Handrail and guardrail for the lobby stair", "commercial"),
])
def test_project_type_keywords(text, expected):
    assert infer_project_type(text)[0] == expected


def test_project_type_defaults_to_commercial():
    assert infer_project_type("Office fit-out") == ("commercial", False)
    assert infer_project_type("") == ("commercial", False)


def test_services_are_independent():
    text = "Connection design by detailer. Clash review weekly. BIM coordination and QA/QC checks."
    assert infer_services(text) == [
        "connectionDesign",
        "clashReview",
        "bimCoordination",
        "shopDrawingQc",
    ]


def test_services_partial_match():
    assert infer_services("Seismic design per local code; interference checks") == [
        "connectionDesign",
        "clashReview",
    ]
    assert infer_services("Plain framing") == []


# ---------------------------------------------------------------------------
# Complexity / revision risk
# ---------------------------------------------------------------------------

def test_labeled_complexity_wins():
    assert infer_complexity("Complexity: 1\nSeismic truss retrofit") == (1, True)


def test_labeled_complexity_out_of_range_falls_back():
    assert infer_complexity("Complexity: 9\nSeismic bracing") == (4, False)


def test_complexity_heuristic():
    text = "Seismic retrofit of a truss roof. Fast-track delivery required!"
    assert infer_complexity(text) == (4, False)
    assert infer_complexity("Complex seismic truss with IFC coordination") == (5, False)
    assert infer_complexity("Simple canopy") == (2, False)


def test_revision_risk_heuristic():
    text = "Seismic retrofit of a truss roof. Fast-track delivery required!"
    assert infer_revision_risk(text) == (3, False)
    text = "Client changes expected; connection details TBD. Urgent issue."
    assert infer_revision_risk(text) == (5, False)


def test_labeled_revision_risk():
    assert infer_revision_risk("Risk = 1") == (1, True)
    assert infer_revision_risk("Revision risk: 4/5") == (4, True)


def test_later_numeric_label_used_when_first_is_not_a_score():
    assert infer_revision_risk("Risk: moderate\nRevision risk: 4") == (4, True)
    assert infer_complexity("Complexity: high\nComplexity: 3") == (3, True)
    assert infer_complexity("Complexity: 12\nComplexity = 2") == (2, True)


def test_complex_matches_inside_longer_words():
    assert infer_complexity("High complexity steel framing") == (4, False)


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text,expected", [
    ("Delivery time: 10 working days", 2),
    ("Duration - 3 days", 1),
    ("Deliver within 5 weeks of award.", 5),
    ("Timeline: 0 weeks", 1),
    ("Need a 6-week turnaround", 6),
])
def test_timeline_detected(text, expected):
    assert infer_timeline_weeks(text) == (expected, True)


def test_labeled_timeline_preferred_over_earlier_mention():
    text = "Mobilise 2 weeks after award.\nTimeline: 6 weeks"
    assert infer_timeline_weeks(text) == (6, True)


def test_timeline_default():
    assert infer_timeline_weeks("No schedule given") == (8, False)
    assert infer_timeline_weeks("") == (8, False)


def test_fractional_weeks_round_up():
    assert infer_timeline_weeks("Timeline: 2.5 weeks") == (3, True)
    assert infer_timeline_weeks("Fabrication starts 1.5 weeks after approval") == (2, True)


# ---------------------------------------------------------------------------
# Client name
# ---------------------------------------------------------------------------

def test_client_from_label():
    assert infer_client_name("Scope\nCustomer: Westgate Holdings") == "Westgate Holdings"


def test_client_from_first_line_header():
    text = "Proposal: Riverside Towers\nSteel framing for a twelve storey block."
    assert infer_client_name(text) == "Riverside Towers"


def test_header_only_read_from_first_line():
    text = "Steel framing scope\nProject: Riverside Towers"
    assert infer_client_name(text) is None


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------

def test_analyze_sample_brief():
    result = analyze_requirements(SAMPLE_BRIEF)

    assert result.client_name == "Apex Fabricators"
    assert result.project_type == "commercial"
    assert result.timeline_weeks == 6
    assert result.drawing_count == 20
    assert result.complexity == 4
    assert result.revision_risk == 3
    assert result.selected_services == ["connectionDesign", "clashReview"]
    assert result.requirements_text.startswith("Project: Harbor Logistics Expansion")

    assert result.findings == [
        "Drawing count detected in document: 20",
        "Timeline detected: 6 week(s)",
        "Complexity detected: 4/5",
        "Revision risk detected: 3/5",
        "Project type not detected; defaulted to commercial",
        "Client name detected: Apex Fabricators",
        "Optional services suggested: connectionDesign, clashReview",
    ]


def test_analyze_flattened_text():
    text = "Client: Apex Steel, Timeline: 3 weeks, Complexity: 5, 40 shop drawings"
    result = analyze_requirements(text)
    assert result.client_name == "Apex Steel"
    assert result.timeline_weeks == 3
    assert result.complexity == 5
    assert result.drawing_count == 40


@pytest.mark.parametrize("raw", ["", None, "   \n\t "])
def test_analyze_empty_text_uses_defaults(raw):
    result = analyze_requirements(raw)

    assert result.project_type == "commercial"
    assert result.timeline_weeks == 8
    assert result.drawing_count == 15
    assert result.complexity == 2
    assert result.revision_risk == 2
    assert result.selected_services == []
    assert result.client_name is None
    assert not any(result.detected.values())
    assert result.findings == [
        "Drawing count estimated from scope keywords: 15",
        "Timeline not stated; defaulted to 8 weeks",
        "Complexity inferred from scope keywords: 2/5",
        "Revision risk inferred from scope keywords: 2/5",
        "Project type not detected; defaulted to commercial",
        "Client name not detected",
    ]


def test_oversized_numbers_fall_back_instead_of_raising():
    result = analyze_requirements("Timeline: " + "9" * 400 + " days")
    assert result.timeline_weeks == 8
    assert result.detected["timeline_weeks"] is False

    result = analyze_requirements("Scope includes " + "1" * 5000 + " shop drawings.")
    assert result.detected["drawing_count"] is False
    assert result.drawing_count == 32

    result = analyze_requirements("Complexity: " + "4" * 5000)
    assert result.detected["complexity"] is False


def test_six_digit_drawing_count_is_explicit():
    result = analyze_requirements("Archive of 999999 sheets")
    assert result.drawing_count == 999999
    assert result.detected["drawing_count"] is True


def test_analysis_result_is_immutable():
    result = analyze_requirements(SAMPLE_BRIEF)
    with pytest.raises(ValidationError):
        result.drawing_count = 99


def test_analysis_converts_to_quote_input():
    attrs = analyze_requirements("Bridge deck stiffeners. 30 sheets.").to_attributes()
    assert attrs.client_name == ""
    assert attrs.project_type == "infrastructure"
    assert attrs.drawing_count == 30
