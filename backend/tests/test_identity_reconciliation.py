from __future__ import annotations

import pytest

from hawki.core.exceptions import BadRequestError, MappingConflictError, NotFoundError
from hawki.models.ado import AdoUser
from hawki.models.employee import BambooHREmployee, EmployeeMapping, InatechEmployee
from hawki.services import identity


def _seed(db) -> None:  # noqa: ANN001
    db.add_all(
        [
            InatechEmployee(id=5, ina_emp_id="INA005", employee_name="Jane Doe"),
            InatechEmployee(id=6, ina_emp_id="INA006", employee_name="John Smith"),
            InatechEmployee(id=7, ina_emp_id="INA007", employee_name="Mary Jones"),
            BambooHREmployee(id="9", first_name="Jane", last_name="Doe", email="jane.doe@corp.com"),
            BambooHREmployee(id="10", first_name="Jon", last_name="Smith"),
            BambooHREmployee(id="11", first_name="Mary", last_name="Jones", email="mary.jones@corp.com"),
            AdoUser(descriptor="aad.jane", display_name="Jane Doe", mail_address="jane.doe@corp.com"),
        ]
    )
    db.commit()


def test_name_similarity() -> None:
    assert identity.name_similarity("John Smith", "Jon Smith") == 90.0
    assert identity.name_similarity("Jane Doe", "  jane   DOE ") == 100.0
    assert identity.name_similarity("", "") == 0.0
    assert identity.name_similarity("abc", "") == 0.0


def test_email_local_part_becomes_a_name() -> None:
    assert identity.email_local_name("john.smith2@corp.com") == "john smith"
    assert identity.email_local_name("mary_jones+hr@corp.com") == "mary jones hr"
    assert identity.email_local_name(None) == ""


def test_strong_email_match_boosts_confidence() -> None:
    name_score, email_score, confidence = identity.score_candidate("Jane Doe", "J. Doe", "jane.doe@corp.com")
    assert email_score == 100.0
    assert name_score < confidence
    assert confidence == 100.0

    name_score, email_score, confidence = identity.score_candidate("Jane Doe", "Jane Doe", "zz@corp.com")
    assert email_score < 70
    assert confidence == name_score == 100.0


def test_suggestions_rank_unmapped_candidates(db_session) -> None:
    _seed(db_session)
    db_session.add(EmployeeMapping(ina_emp_id=5, bamboohr_id="9"))
    db_session.commit()

    suggestions = identity.suggest_matches(db_session, 6, target="bamboohr", min_score=60)

    assert [item.candidate_id for item in suggestions] == ["10"]
    assert suggestions[0].name_score == 90.0
    assert identity.suggest_matches(db_session, 5, target="bamboohr") == []


def test_suggestions_for_unknown_target_or_employee(db_session) -> None:
    _seed(db_session)
    with pytest.raises(BadRequestError):
        identity.suggest_matches(db_session, 6, target="jira")
    with pytest.raises(NotFoundError):
        identity.suggest_matches(db_session, 404)


def test_auto_suggest_assigns_each_candidate_once(db_session) -> None:
    _seed(db_session)
    db_session.add(EmployeeMapping(ina_emp_id=5, bamboohr_id="9"))
    db_session.commit()

    proposals = identity.auto_suggest(db_session, target="bamboohr")

    assert [(row["ina_emp_id"], row["candidate_id"]) for row in proposals] == [(7, "11"), (6, "10")]


def test_bulk_mapping_rejects_only_conflicting_pairs(db_session) -> None:
    _seed(db_session)
    identity.create_mapping(db_session, 5, bamboohr_id="9")

    result = identity.bulk_create_mappings(
        db_session,
        [
            identity.MappingPair(ina_emp_id=5, bamboohr_id="10"),
            identity.MappingPair(ina_emp_id=6, bamboohr_id="10"),
            identity.MappingPair(ina_emp_id=7, bamboohr_id="11"),
        ],
    )

    assert [mapping.ina_emp_id for mapping in result.created] == [6, 7]
    assert len(result.errors) == 1
    assert result.errors[0]["index"] == 0
    assert result.errors[0]["ina_emp_id"] == 5
    assert "already mapped" in result.errors[0]["error"]
    mapped = {row.ina_emp_id: row.bamboohr_id for row in db_session.query(EmployeeMapping).all()}
    assert mapped == {5: "9", 6: "10", 7: "11"}


def test_one_external_identity_cannot_serve_two_employees(db_session) -> None:
    _seed(db_session)
    identity.create_mapping(db_session, 5, bamboohr_id="9", ado_user_id="aad.jane")

    with pytest.raises(MappingConflictError):
        identity.create_mapping(db_session, 6, bamboohr_id="9")
    with pytest.raises(MappingConflictError):
        identity.create_mapping(db_session, 6, ado_user_id="aad.jane")

    # Re-applying the same pair is a no-op.
    mapping = identity.create_mapping(db_session, 5, bamboohr_id="9")
    assert mapping.ado_user_id == "aad.jane"


def test_create_mapping_validates_targets(db_session) -> None:
    _seed(db_session)
    with pytest.raises(BadRequestError):
        identity.create_mapping(db_session, 5)
    with pytest.raises(NotFoundError):
        identity.create_mapping(db_session, 5, bamboohr_id="999")
    with pytest.raises(NotFoundError):
        identity.create_mapping(db_session, 5, ado_user_id="aad.nobody")


def test_remove_one_side_then_the_rest(db_session) -> None:
    _seed(db_session)
    identity.create_mapping(db_session, 5, bamboohr_id="9", ado_user_id="aad.jane")

    identity.remove_mapping(db_session, 5, target="bamboohr")
    mapping = db_session.query(EmployeeMapping).filter(EmployeeMapping.ina_emp_id == 5).one()
    assert mapping.bamboohr_id is None
    assert mapping.ado_user_id == "aad.jane"

    identity.remove_mapping(db_session, 5, target="ado")
    assert db_session.query(EmployeeMapping).count() == 0
    with pytest.raises(NotFoundError):
        identity.remove_mapping(db_session, 5)
