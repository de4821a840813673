import math

from conftest import alt, profile

from ibmatch.core.engine import EligibilityEngine, evaluate
from ibmatch.core.filters import CatalogFilter
from ibmatch.core.models import SL, Program, RequirementGroup

CHEM_HL6 = RequirementGroup((alt("CHEM", 6),), critical=True)
BIO_OR_PHYS_HL5 = RequirementGroup((alt("BIO", 5), alt("PHYS", 5)), critical=True)
MEDICINE = Program(
    id="med",
    name="Medicine",
    min_ib_points=38,
    requirement_groups=(CHEM_HL6, BIO_OR_PHYS_HL5),
)


class ListRepo:
    def __init__(self, programs):
        self.programs = list(programs)

    def list_programs(self):
        return list(self.programs)

    def get(self, program_id):
        for p in self.programs:
            if p.id == program_id:
                return p
        return None


def test_medicine_scenario_a_eligible():
    v = evaluate(profile(38, ("CHEM", "HL", 6), ("BIO", "HL", 5)), MEDICINE)
    assert v.eligible is True
    assert v.points_margin == 0
    assert v.failed_critical_groups == ()
    assert v.satisfied_advisory_groups == (CHEM_HL6, BIO_OR_PHYS_HL5)


def test_medicine_scenario_b_fails_on_points_only():
    v = evaluate(profile(37, ("CHEM", "HL", 6), ("BIO", "HL", 5)), MEDICINE)
    assert v.eligible is False
    assert v.points_margin == -1
    assert v.failed_critical_groups == ()


def test_medicine_scenario_c_no_sciences():
    v = evaluate(profile(42, ("ECON", "HL", 7), ("HIST", "HL", 7)), MEDICINE)
    assert v.eligible is False
    assert v.failed_critical_groups == (CHEM_HL6, BIO_OR_PHYS_HL5)
    assert v.satisfied_advisory_groups == ()


def test_medicine_needs_two_sciences():
    for science in ("BIO", "CHEM", "PHYS"):
        v = evaluate(profile(40, (science, "HL", 7)), MEDICINE)
        assert v.eligible is False
        assert len(v.failed_critical_groups) == 1


def test_critical_gate_monotonic_in_grade():
    before = evaluate(profile(38, ("CHEM", "HL", 6), ("BIO", "HL", 4)), MEDICINE)
    after = evaluate(profile(38, ("CHEM", "HL", 6), ("BIO", "HL", 5)), MEDICINE)
    assert before.failed_critical_groups == (BIO_OR_PHYS_HL5,)
    assert after.eligible is True


def test_points_gate_monotonic():
    subjects = (("CHEM", "HL", 6), ("BIO", "HL", 5))
    seen_eligible = False
    for points in range(0, 46):
        v = evaluate(profile(points, *subjects), MEDICINE)
        if seen_eligible:
            assert v.eligible
        seen_eligible = seen_eligible or v.eligible
    assert seen_eligible


def test_or_group_satisfied_by_second_alternative():
    group = RequirementGroup((alt("CHEM", 5), alt("PHYS", 5)), critical=True)
    prog = Program(id="p", name="P", requirement_groups=(group,))
    v = evaluate(profile(30, ("PHYS", "HL", 6)), prog)
    assert v.eligible
    o = v.outcome_for(group)
    assert o.satisfied
    assert o.matched.course_code == "PHYS"
    assert o.grade_surplus == 1


def test_or_group_reports_best_surplus():
    group = RequirementGroup((alt("CHEM", 5), alt("PHYS", 5)), critical=False)
    prog = Program(id="p", name="P", requirement_groups=(group,))
    v = evaluate(profile(30, ("CHEM", "HL", 5), ("PHYS", "HL", 7)), prog)
    assert v.outcome_for(group).matched.course_code == "PHYS"
    assert v.outcome_for(group).grade_surplus == 2


def test_level_must_match_exactly():
    group = RequirementGroup((alt("CHEM", 5),), critical=True)
    prog = Program(id="p", name="P", requirement_groups=(group,))
    v = evaluate(profile(30, ("CHEM", SL, 7)), prog)
    assert not v.eligible
    assert "taken at SL" in v.outcome_for(group).reason


def test_grade_shortfall_reason():
    group = RequirementGroup((alt("CHEM", 6),), critical=True)
    prog = Program(id="p", name="P", requirement_groups=(group,))
    v = evaluate(profile(30, ("CHEM", "HL", 4)), prog)
    assert "2 points below" in v.outcome_for(group).reason


def test_vacuous_program_is_eligible_for_empty_profile():
    v = evaluate(profile(0), Program(id="open", name="Open"))
    assert v.eligible
    assert v.points_margin == 0


def test_advisory_group_never_disqualifies():
    advisory = RequirementGroup((alt("ECON", 5),), critical=False)
    prog = Program(id="p", name="P", min_ib_points=24, requirement_groups=(advisory,))
    v = evaluate(profile(24), prog)
    assert v.eligible
    assert v.failed_critical_groups == ()
    assert v.satisfied_advisory_groups == ()
    assert not v.outcome_for(advisory).satisfied


def _search_programs():
    return [
        Program(id="p-b", name="B", min_ib_points=30, country="NL"),
        Program(id="p-a", name="A", min_ib_points=30, country="NL"),
        Program(id="p-c", name="C", min_ib_points=40, country="DE"),
        Program(id="p-d", name="D", min_ib_points=25, country="DE"),
        MEDICINE,
    ]


def test_search_orders_by_score_then_id():
    engine = EligibilityEngine(ListRepo(_search_programs()))
    results = engine.search(profile(35))
    assert [r.program.id for r in results] == ["p-d", "p-a", "p-b"]
    assert results[0].score > results[1].score == results[2].score


def test_search_is_deterministic():
    engine = EligibilityEngine(ListRepo(_search_programs()))
    p = profile(35, ("CHEM", "HL", 6))
    assert engine.search(p, include_ineligible=True) == engine.search(p, include_ineligible=True)


def test_search_near_misses_follow_eligible():
    engine = EligibilityEngine(ListRepo(_search_programs()))
    results = engine.search(profile(35), include_ineligible=True)
    ids = [r.program.id for r in results]
    assert ids == ["p-d", "p-a", "p-b", "med", "p-c"]
    near = results[3]
    assert math.isinf(near.score) and near.score < 0
    assert near.reasons[0] == "IB points 35 below required 38 (3 short)"
    assert len(near.reasons) == 3


def test_search_filter_and_limit():
    engine = EligibilityEngine(ListRepo(_search_programs()))
    results = engine.search(profile(35), CatalogFilter.of(countries=["de"]), include_ineligible=True)
    assert [r.program.id for r in results] == ["p-d", "p-c"]
    assert [r.program.id for r in engine.search(profile(35), limit=1)] == ["p-d"]


def test_engine_evaluate_by_id():
    engine = EligibilityEngine(ListRepo(_search_programs()))
    r = engine.evaluate(profile(38, ("CHEM", "HL", 6), ("BIO", "HL", 5)), "med")
    assert r.verdict.eligible
    assert r.reasons == ()
    assert engine.evaluate(profile(38), "missing") is None
