import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ibmatch.catalog.courses import CourseCatalog
from ibmatch.catalog.loaders import load_policy, load_programs, load_subjects
from ibmatch.core.engine import EligibilityEngine
from ibmatch.core.errors import ValidationError
from ibmatch.core.filters import CatalogFilter
from ibmatch.core.models import EligibilityVerdict, MatchResult, Program
from ibmatch.core.profile import ProfileBuilder
from ibmatch.core.repositories import JsonProgramRepository
from ibmatch.core.rule_factory import RequirementFactory
from ibmatch.core.scoring import RankingScorer

logger = logging.getLogger(__name__)

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_DATA_DIR = os.path.join(PROJECT_ROOT, "data", "ib")


def data_root() -> str:
    return os.getenv("IBMATCH_DATA_DIR", DEFAULT_DATA_DIR)


class Services:
    """Catalog, repository and engine built from one data root."""

    def __init__(self, root: str):
        self.catalog = CourseCatalog.from_json(load_subjects(root))
        self.repo = JsonProgramRepository(load_programs(root), RequirementFactory(self.catalog))
        self.engine = EligibilityEngine(self.repo, RankingScorer(load_policy(root)))
        self.builder = ProfileBuilder(self.catalog)


@lru_cache(maxsize=1)
def get_services() -> Services:
    root = data_root()
    logger.info("Loading catalog from %s", root)
    return Services(root)


app = FastAPI(title="IB Eligibility Matcher")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
def _invalid_profile(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid candidate profile", "details": exc.errors},
    )


@app.exception_handler(Exception)
def _unexpected(request: Request, exc: Exception):
    logger.exception("Request %s %s failed", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Matching failed", "details": str(exc)},
    )


# --------- Request models ----------
class SubjectInput(BaseModel):
    code: str
    level: str
    grade: int
    predicted: Optional[bool] = None


class ProfileInput(BaseModel):
    total_points: int
    subjects: List[SubjectInput] = Field(default_factory=list)


class SearchRequest(ProfileInput):
    countries: List[str] = Field(default_factory=list)
    fields: List[str] = Field(default_factory=list)
    degree_levels: List[str] = Field(default_factory=list)
    program_ids: List[str] = Field(default_factory=list)
    include_ineligible: bool = False
    limit: Optional[int] = Field(default=None, ge=0)


# --------- Serialization ----------
def _program_summary(p: Program) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "university": p.university,
        "country": p.country,
        "field": p.field,
        "degree_level": p.degree_level,
        "min_ib_points": p.min_ib_points,
    }


def _verdict_out(v: EligibilityVerdict) -> Dict[str, Any]:
    return {
        "eligible": v.eligible,
        "points_margin": v.points_margin,
        "failed_critical_groups": [g.describe() for g in v.failed_critical_groups],
        "satisfied_groups": [g.describe() for g in v.satisfied_advisory_groups],
        "groups": [
            {
                "requirement": o.group.describe(),
                "critical": o.group.critical,
                "satisfied": o.satisfied,
                "matched": o.matched.describe() if o.matched else None,
                "explanation": o.reason,
            }
            for o in v.outcomes
        ],
    }


def _match_out(r: MatchResult) -> Dict[str, Any]:
    return {
        "program": _program_summary(r.program),
        "eligible": r.verdict.eligible,
        # -inf is not valid JSON
        "score": r.score if r.verdict.eligible else None,
        "reasons": list(r.reasons),
        "verdict": _verdict_out(r.verdict),
    }


def _raw_profile(req: ProfileInput) -> Dict[str, Any]:
    return {
        "total_points": req.total_points,
        "subjects": [s.model_dump() for s in req.subjects],
    }


# --------- Endpoints ----------
@app.get("/subjects")
def subjects(svc: Services = Depends(get_services)) -> List[Dict[str, Any]]:
    return [
        {"code": s.code, "name": s.name, "group": s.group, "levels": sorted(s.allowed_levels)}
        for s in svc.catalog.subjects()
    ]


@app.get("/programs")
def programs(
    country: Optional[str] = Query(None),
    field: Optional[str] = Query(None),
    degree_level: Optional[str] = Query(None),
    svc: Services = Depends(get_services),
) -> List[Dict[str, Any]]:
    flt = CatalogFilter.of(
        countries=[country] if country else None,
        fields=[field] if field else None,
        degree_levels=[degree_level] if degree_level else None,
    )
    return [_program_summary(p) for p in flt.apply(svc.repo.list_programs())]


@app.post("/evaluate/{program_id}")
def evaluate(program_id: str, req: ProfileInput, svc: Services = Depends(get_services)) -> Dict[str, Any]:
    profile = svc.builder.build(_raw_profile(req))
    result = svc.engine.evaluate(profile, program_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Unknown program: {program_id}")
    return _match_out(result)


@app.post("/search")
def search(req: SearchRequest, svc: Services = Depends(get_services)) -> Dict[str, Any]:
    profile = svc.builder.build(_raw_profile(req))
    flt = CatalogFilter.of(
        countries=req.countries,
        fields=req.fields,
        degree_levels=req.degree_levels,
        program_ids=req.program_ids,
    )
    results = svc.engine.search(profile, flt, include_ineligible=req.include_ineligible, limit=req.limit)
    return {
        "total": len(results),
        "eligible": sum(1 for r in results if r.verdict.eligible),
        "results": [_match_out(r) for r in results],
    }


def main() -> None:
    logging.basicConfig(
        level=os.getenv("IBMATCH_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("IBMATCH_HOST", "0.0.0.0")
    port = int(os.getenv("IBMATCH_PORT", "8000"))
    uvicorn.run("ibmatch.app:app", host=host, port=port)


if __name__ == "__main__":
    main()
