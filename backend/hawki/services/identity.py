"""Identity reconciliation between the internal roster, BambooHR and Azure DevOps."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from sqlalchemy.orm import Session

from hawki.core.config import settings
from hawki.core.exceptions import BadRequestError, HawkiException, MappingConflictError, NotFoundError
from hawki.models.ado import AdoUser
from hawki.models.employee import BambooHREmployee, EmployeeMapping, InatechEmployee
from hawki.models.enums import MatchTarget

logger = logging.getLogger(__name__)

_EMAIL_SPLIT_RE = re.compile(r"[._\-+]+")
_DIGITS_RE = re.compile(r"\d+")

TARGET_COLUMNS = {
    MatchTarget.bamboohr: "bamboohr_id",
    MatchTarget.ado: "ado_user_id",
}


@dataclass
class MatchSuggestion:
    target: str
    candidate_id: str
    candidate_name: str
    email: str | None
    name_score: float
    email_score: float | None
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MappingPair:
    ina_emp_id: int
    bamboohr_id: str | None = None
    ado_user_id: str | None = None


@dataclass
class BulkMappingResult:
    created: list[EmployeeMapping] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


# ----- scoring -----


def normalize_name(value: str | None) -> str:
    return " ".join((value or "").lower().split())


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def name_similarity(first: str | None, second: str | None) -> float:
    """Edit-distance similarity as a percentage: 100 * (maxLen - distance) / maxLen."""
    a = normalize_name(first)
    b = normalize_name(second)
    if a == b:
        return 100.0 if a else 0.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    score = (longest - levenshtein(a, b)) / longest * 100
    return round(max(0.0, score), 2)


def email_local_name(email: str | None) -> str:
    """'john.smith2@corp.com' -> 'john smith'."""
    local = (email or "").split("@", 1)[0]
    local = _DIGITS_RE.sub("", local)
    return " ".join(part for part in _EMAIL_SPLIT_RE.split(local) if part).lower()


def score_candidate(internal_name: str, candidate_name: str, email: str | None) -> tuple[float, float | None, float]:
    name_score = name_similarity(internal_name, candidate_name)
    email_score: float | None = None
    confidence = name_score
    local_name = email_local_name(email)
    if local_name:
        email_score = name_similarity(internal_name, local_name)
        if email_score >= settings.IDENTITY_EMAIL_THRESHOLD:
            confidence = max(name_score, min(100.0, round(email_score * settings.IDENTITY_EMAIL_BOOST, 2)))
    return name_score, email_score, confidence


# ----- lookups -----


def _target(value: MatchTarget | str) -> MatchTarget:
    try:
        return MatchTarget(value)
    except ValueError as exc:
        raise BadRequestError(f"Unknown match target: {value}") from exc


def _candidates(db: Session, target: MatchTarget) -> list[tuple[str, str, str | None]]:
    if target == MatchTarget.bamboohr:
        rows = db.query(BambooHREmployee).filter(BambooHREmployee.status == "active").all()
        return [(row.id, row.full_name, row.email) for row in rows]
    rows = db.query(AdoUser).filter(AdoUser.is_active.is_(True)).all()
    return [(row.descriptor, row.display_name, row.mail_address or row.principal_name) for row in rows]


def _mapped_ids(db: Session, target: MatchTarget) -> set[str]:
    column = getattr(EmployeeMapping, TARGET_COLUMNS[target])
    return {value for (value,) in db.query(column).filter(column.isnot(None)).all()}


def _mapping_for(db: Session, ina_employee_id: int) -> EmployeeMapping | None:
    return db.query(EmployeeMapping).filter(EmployeeMapping.ina_emp_id == ina_employee_id).first()


def _get_employee(db: Session, ina_employee_id: int) -> InatechEmployee:
    employee = db.get(InatechEmployee, ina_employee_id)
    if employee is None:
        raise NotFoundError("Employee not found", details={"ina_emp_id": ina_employee_id})
    return employee


def _rank(
    employee: InatechEmployee,
    target: MatchTarget,
    candidates: Iterable[tuple[str, str, str | None]],
    min_score: float,
) -> list[MatchSuggestion]:
    suggestions: list[MatchSuggestion] = []
    for candidate_id, candidate_name, email in candidates:
        name_score, email_score, confidence = score_candidate(employee.employee_name, candidate_name, email)
        if confidence < min_score:
            continue
        suggestions.append(
            MatchSuggestion(
                target=target.value,
                candidate_id=candidate_id,
                candidate_name=candidate_name,
                email=email,
                name_score=name_score,
                email_score=email_score,
                confidence=confidence,
            )
        )
    suggestions.sort(key=lambda item: item.confidence, reverse=True)
    return suggestions


def suggest_matches(
    db: Session,
    ina_employee_id: int,
    *,
    target: MatchTarget | str = MatchTarget.bamboohr,
    min_score: float | None = None,
) -> list[MatchSuggestion]:
    """Rank unmapped external identities for one internal employee, best first."""
    kind = _target(target)
    employee = _get_employee(db, ina_employee_id)
    mapping = _mapping_for(db, employee.id)
    if mapping is not None and getattr(mapping, TARGET_COLUMNS[kind]):
        return []
    taken = _mapped_ids(db, kind)
    candidates = [row for row in _candidates(db, kind) if row[0] not in taken]
    threshold = settings.IDENTITY_SUGGESTION_MIN_SCORE if min_score is None else min_score
    return _rank(employee, kind, candidates, threshold)


def auto_suggest(db: Session, *, target: MatchTarget | str = MatchTarget.bamboohr) -> list[dict[str, Any]]:
    """Best suggestion per unmapped employee at the name threshold, each candidate used at most once."""
    kind = _target(target)
    column = TARGET_COLUMNS[kind]
    mapped_employees = {
        row.ina_emp_id for row in db.query(EmployeeMapping).all() if getattr(row, column)
    }
    taken = _mapped_ids(db, kind)
    candidates = [row for row in _candidates(db, kind) if row[0] not in taken]
    employees = (
        db.query(InatechEmployee)
        .filter(InatechEmployee.status == "active")
        .order_by(InatechEmployee.id.asc())
        .all()
    )

    proposals: list[tuple[InatechEmployee, MatchSuggestion]] = []
    for employee in employees:
        if employee.id in mapped_employees:
            continue
        for suggestion in _rank(employee, kind, candidates, settings.IDENTITY_NAME_THRESHOLD):
            proposals.append((employee, suggestion))

    proposals.sort(key=lambda item: item[1].confidence, reverse=True)
    assigned_employees: set[int] = set()
    assigned_candidates: set[str] = set()
    results: list[dict[str, Any]] = []
    for employee, suggestion in proposals:
        if employee.id in assigned_employees or suggestion.candidate_id in assigned_candidates:
            continue
        assigned_employees.add(employee.id)
        assigned_candidates.add(suggestion.candidate_id)
        results.append({"ina_emp_id": employee.id, "employee_name": employee.employee_name, **suggestion.to_dict()})
    return results


# ----- mappings -----


def _check_side(
    db: Session,
    mapping: EmployeeMapping | None,
    ina_employee_id: int,
    column: str,
    value: str | None,
    label: str,
) -> None:
    if value is None:
        return
    current = getattr(mapping, column) if mapping is not None else None
    if current is not None and current != value:
        raise MappingConflictError(
            f"Employee {ina_employee_id} is already mapped to {label} {current}",
            details={"ina_emp_id": ina_employee_id, column: current},
        )
    owner = db.query(EmployeeMapping).filter(getattr(EmployeeMapping, column) == value).first()
    if owner is not None and owner.ina_emp_id != ina_employee_id:
        raise MappingConflictError(
            f"{label} {value} is already mapped to employee {owner.ina_emp_id}",
            details={"ina_emp_id": owner.ina_emp_id, column: value},
        )


def create_mapping(
    db: Session,
    ina_employee_id: int,
    *,
    bamboohr_id: str | None = None,
    ado_user_id: str | None = None,
) -> EmployeeMapping:
    """Link an internal employee to a BambooHR and/or Azure DevOps identity, one-to-one on every side."""
    if bamboohr_id is None and ado_user_id is None:
        raise BadRequestError("bamboohr_id or ado_user_id is required")
    _get_employee(db, ina_employee_id)
    if bamboohr_id is not None and db.get(BambooHREmployee, bamboohr_id) is None:
        raise NotFoundError("BambooHR employee not found", details={"bamboohr_id": bamboohr_id})
    if ado_user_id is not None and db.get(AdoUser, ado_user_id) is None:
        raise NotFoundError("Azure DevOps user not found", details={"ado_user_id": ado_user_id})

    mapping = _mapping_for(db, ina_employee_id)
    _check_side(db, mapping, ina_employee_id, "bamboohr_id", bamboohr_id, "BambooHR employee")
    _check_side(db, mapping, ina_employee_id, "ado_user_id", ado_user_id, "Azure DevOps user")

    if mapping is None:
        mapping = EmployeeMapping(ina_emp_id=ina_employee_id)
        db.add(mapping)
    if bamboohr_id is not None:
        mapping.bamboohr_id = bamboohr_id
    if ado_user_id is not None:
        mapping.ado_user_id = ado_user_id
    db.commit()
    db.refresh(mapping)
    logger.info(
        "Mapped employee %s bamboohr_id=%s ado_user_id=%s",
        ina_employee_id, mapping.bamboohr_id, mapping.ado_user_id,
    )
    return mapping


def remove_mapping(db: Session, ina_employee_id: int, *, target: MatchTarget | str | None = None) -> None:
    mapping = _mapping_for(db, ina_employee_id)
    if mapping is None:
        raise NotFoundError("No mapping found for this employee", details={"ina_emp_id": ina_employee_id})
    if target is None:
        db.delete(mapping)
    else:
        setattr(mapping, TARGET_COLUMNS[_target(target)], None)
        if mapping.bamboohr_id is None and mapping.ado_user_id is None:
            db.delete(mapping)
    db.commit()
    logger.info("Removed mapping for employee %s target=%s", ina_employee_id, target or "all")


def bulk_create_mappings(db: Session, pairs: Iterable[MappingPair]) -> BulkMappingResult:
    """Create each pair independently; conflicting pairs are reported, not raised."""
    result = BulkMappingResult()
    for index, pair in enumerate(pairs):
        try:
            mapping = create_mapping(
                db,
                pair.ina_emp_id,
                bamboohr_id=pair.bamboohr_id,
                ado_user_id=pair.ado_user_id,
            )
        except HawkiException as exc:
            db.rollback()
            result.errors.append({"index": index, "ina_emp_id": pair.ina_emp_id, "error": exc.message})
            continue
        result.created.append(mapping)
    if result.errors:
        logger.warning("Bulk mapping rejected %s of %s pairs", len(result.errors), len(result.errors) + len(result.created))
    return result

