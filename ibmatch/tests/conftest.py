import os

import pytest

from ibmatch.catalog.courses import CourseCatalog
from ibmatch.catalog.loaders import load_subjects
from ibmatch.core.models import Alternative, CandidateProfile, HL, SubjectResult
from ibmatch.core.rule_factory import RequirementFactory

DATA_ROOT = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "data", "ib")


@pytest.fixture(scope="session")
def data_root() -> str:
    return DATA_ROOT


@pytest.fixture(scope="session")
def catalog() -> CourseCatalog:
    return CourseCatalog.from_json(load_subjects(DATA_ROOT))


@pytest.fixture
def factory(catalog) -> RequirementFactory:
    return RequirementFactory(catalog)


def alt(code: str, grade: int, level: str = HL) -> Alternative:
    return Alternative(course_code=code, required_level=level, min_grade=grade)


def profile(total: int, *subjects) -> CandidateProfile:
    """profile(38, ("CHEM", "HL", 6), ("BIO", "HL", 5))"""
    return CandidateProfile(
        subjects=tuple(SubjectResult(code=c, level=lv, grade=g) for c, lv, g in subjects),
        total_points=total,
    )
