# backend/main.py
import logging
import os
from typing import Any, Dict, List, Optional

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from document_text import extract_requirements_text
from errors import ErrorCode, TextUnavailableError
from models import AnalysisResult, ProjectAttributes
from quote_engine import BASE_RATE_PER_DRAWING, format_usd, generate_quote
from requirements_analyzer import analyze_requirements

load_dotenv()

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

# CORS origins - add your production frontend URL here
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000"
).split(",")

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, LOG_LEVEL, logging.INFO)
    ),
)
logger = structlog.get_logger()

app = FastAPI(title="Steel Detailing Quote Assistant API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

QUOTE_ASSUMPTIONS = [
    "Pricing model is heuristic; no historical project data is used.",
    f"Base detailing rate used: {format_usd(BASE_RATE_PER_DRAWING)} per drawing before adjustment factors.",
    "Human review is required before client submission.",
]


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class AnalyzeTextRequest(BaseModel):
    text: str = ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def merge_overrides(analysis: AnalysisResult, overrides: Dict[str, Any]) -> ProjectAttributes:
    """
    Lay manual form values over the inferred attributes.
    Blank / missing manual values keep whatever the analyzer inferred.
    """
    merged: Dict[str, Any] = analysis.to_attributes().model_dump()
    for k, v in overrides.items():
        if v is None or v == "" or v == []:
            continue
        merged[k] = v
    return ProjectAttributes(**merged)


def quote_payload(attrs: ProjectAttributes) -> Dict[str, Any]:
    result = generate_quote(attrs)
    return {
        "attributes": attrs.model_dump(),
        "quote": result.model_dump(),
        "formatted": {
            "estimated_cost": format_usd(result.estimated_cost),
            "contingency": format_usd(result.contingency),
            "recommended_quote": format_usd(result.recommended_quote),
        },
        "assumptions": list(QUOTE_ASSUMPTIONS),
    }


async def read_requirements_upload(file: UploadFile) -> str:
    """
    Await the upload, then hand back its complete text.
    Raises HTTPException for oversize or unreadable documents.
    """
    contents = await file.read()
    if len(contents) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail={
                "code": ErrorCode.UPLOAD_TOO_LARGE,
                "message": f"File exceeds {MAX_UPLOAD_BYTES} bytes",
            },
        )

    try:
        return extract_requirements_text(file.filename or "", contents)
    except TextUnavailableError as e:
        logger.warning("document_text_unavailable", filename=file.filename, code=e.code)
        raise HTTPException(
            status_code=422,
            detail={
                "code": e.code,
                "message": f"Could not analyze document: {e.message}",
            },
        ) from e


# ---------------------------------------------------------------------------
# Basic endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Analysis endpoints
# ---------------------------------------------------------------------------

@app.post("/analyze")
async def analyze(file: UploadFile = File(...)):
    """
    Upload a requirements document (PDF or text) → inferred fields + findings.
    """
    text = await read_requirements_upload(file)
    analysis = analyze_requirements(text)
    return {
        "uploaded_file": file.filename,
        "text_length": len(text),
        "analysis": analysis.model_dump(),
    }


@app.post("/analyze/text")
def analyze_text(req: AnalyzeTextRequest):
    analysis = analyze_requirements(req.text)
    return {
        "text_length": len(req.text or ""),
        "analysis": analysis.model_dump(),
    }


# ---------------------------------------------------------------------------
# Quote endpoints
# ---------------------------------------------------------------------------

@app.post("/quote")
def quote(attrs: ProjectAttributes):
    return quote_payload(attrs)


@app.post("/proposal")
async def proposal(
    file: UploadFile = File(...),

    # manual overrides (blank = keep inferred value)
    client_name: Optional[str] = Form(None),
    project_type: Optional[str] = Form(None),
    timeline_weeks: Optional[int] = Form(None),
    drawing_count: Optional[int] = Form(None),
    complexity: Optional[int] = Form(None),
    revision_risk: Optional[int] = Form(None),
    selected_services: Optional[List[str]] = Form(None),
):
    """
    Upload requirements + optional manual inputs → analysis and quote.
    """
    text = await read_requirements_upload(file)
    analysis = analyze_requirements(text)

    attrs = merge_overrides(
        analysis,
        {
            "client_name": client_name,
            "project_type": project_type,
            "timeline_weeks": timeline_weeks,
            "drawing_count": drawing_count,
            "complexity": complexity,
            "revision_risk": revision_risk,
            "selected_services": selected_services,
        },
    )

    payload = quote_payload(attrs)
    payload.update({
        "uploaded_file": file.filename,
        "analysis": analysis.model_dump(),
    })
    return payload
