import pytest

from apps.auth.permissions import (
    UserRole, get_permissions, normalize_department, department_aliases,
    same_department, approver_positions_for
)


@pytest.mark.parametrize("position", ["Computer Programmer", "Mis Officer", "  Mis Officer  "])
def test_troubleshooter_positions(position):
    perms = get_permissions(position)
    assert perms.role == UserRole.TROUBLESHOOTER
    assert perms.is_troubleshooter
    assert not perms.is_approver
    assert not perms.is_requester
    assert perms.approvable_dept is None


@pytest.mark.parametrize("position, dept", [
    ("Program Manager", "Program"),
    ("Follow Up Head", "Follow Up"),
    ("Laboratory Manager", "Laboratory"),
])
def test_approver_positions(position, dept):
    perms = get_permissions(position)
    assert perms.role == UserRole.APPROVER
    assert perms.is_approver
    assert perms.approvable_dept == dept
    assert not perms.is_troubleshooter


@pytest.mark.parametrize("position", [None, "", "Janitor", "mis officer", "Program manager"])
def test_unknown_positions_are_requesters(position):
    perms = get_permissions(position)
    assert perms.role == UserRole.REQUESTER
    assert perms.is_requester
    assert not perms.is_troubleshooter
    assert not perms.is_approver
    assert perms.approvable_dept is None


def test_exactly_one_role_flag_is_set():
    for position in ("Mis Officer", "Program Manager", "Encoder"):
        perms = get_permissions(position)
        assert [perms.is_troubleshooter, perms.is_approver, perms.is_requester].count(True) == 1


def test_normalize_department_folds_aliases():
    assert normalize_department("PDO") == "program"
    assert normalize_department(" Program ") == "program"
    assert normalize_department("Lab") == "laboratory"
    assert normalize_department("Follow-Up") == "followup"
    assert normalize_department("Follow Up") == "followup"
    assert normalize_department("Finance") == "finance"
    assert normalize_department(None) is None


def test_department_aliases_and_matching():
    assert set(department_aliases("Program")) == {"program", "pdo"}
    assert department_aliases("Finance") == ["finance"]
    assert department_aliases(None) == []
    assert same_department("Program", "pdo")
    assert not same_department("Program", "Laboratory")
    assert not same_department(None, None)


def test_approver_positions_for_department():
    assert approver_positions_for("PDO") == ["Program Manager"]
    assert approver_positions_for("follow-up") == ["Follow Up Head"]
    assert approver_positions_for("IT") == []
