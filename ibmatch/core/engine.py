from typing import List, Optional

from ibmatch.core.filters import NO_FILTER, CatalogFilter
from ibmatch.core.models import (
    CandidateProfile,
    EligibilityVerdict,
    GroupOutcome,
    MatchResult,
    Program,
    RequirementGroup,
)
from ibmatch.core.repositories import ProgramRepository
from ibmatch.core.rules import OrGroupRule, PointsThresholdRule
from ibmatch.core.scoring import RankingScorer


def evaluate(profile: CandidateProfile, program: Program) -> EligibilityVerdict:
    """
    Check one profile against one program. Groups are independent and all must hold
    when critical; advisory groups never disqualify. Pure and total.
    """
    outcomes: List[GroupOutcome] = []
    failed: List[RequirementGroup] = []
    satisfied: List[RequirementGroup] = []

    for g in program.requirement_groups:
        o = OrGroupRule(g).outcome(profile)
        outcomes.append(o)
        if g.critical and not o.satisfied:
            failed.append(g)
        elif o.satisfied:
            satisfied.append(g)

    margin = PointsThresholdRule(program.min_ib_points).margin(profile)
    return EligibilityVerdict(
        eligible=not failed and margin >= 0,
        points_margin=margin,
        failed_critical_groups=tuple(failed),
        satisfied_advisory_groups=tuple(satisfied),
        outcomes=tuple(outcomes),
    )


def _order_key(r: MatchResult):
    if r.verdict.eligible:
        return (0, -r.score, 0, 0, r.program.id)
    # near misses: smallest points shortfall, then fewest failed critical groups
    shortfall = max(0, -r.verdict.points_margin)
    return (1, 0.0, shortfall, len(r.verdict.failed_critical_groups), r.program.id)


class EligibilityEngine:
    def __init__(self, repo: ProgramRepository, scorer: Optional[RankingScorer] = None):
        self.repo = repo
        self.scorer = scorer or RankingScorer()

    def match(self, profile: CandidateProfile, program: Program) -> MatchResult:
        verdict = evaluate(profile, program)
        return MatchResult(
            program=program,
            verdict=verdict,
            score=self.scorer.score(profile, program, verdict),
            reasons=tuple(self.scorer.reasons(program, verdict)),
        )

    def evaluate(self, profile: CandidateProfile, program_id: str) -> Optional[MatchResult]:
        prog = self.repo.get(program_id)
        if prog is None:
            return None
        return self.match(profile, prog)

    def search(
        self,
        profile: CandidateProfile,
        catalog_filter: CatalogFilter = NO_FILTER,
        include_ineligible: bool = False,
        limit: Optional[int] = None,
    ) -> List[MatchResult]:
        """
        Eligible programs by descending score, ties by program id. With
        include_ineligible the failures follow (score -inf) as near misses.
        """
        results: List[MatchResult] = []
        for prog in catalog_filter.apply(self.repo.list_programs()):
            r = self.match(profile, prog)
            if r.verdict.eligible or include_ineligible:
                results.append(r)

        results.sort(key=_order_key)
        if limit is not None:
            results = results[:max(0, limit)]
        return results
