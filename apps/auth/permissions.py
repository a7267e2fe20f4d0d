"""
Position-based permissions for the IT job order workflow.

A user's ``position`` (job title) decides what they can do with job orders:

* troubleshooters (IT staff) see every order and run the fulfilment steps,
* department approvers see their department's orders and approve/reject them,
* everyone else is a requester who only sees the orders they filed.

The lookup is exact on the trimmed title. Anything unrecognised is a requester.
"""
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel


class UserRole(str, Enum):
    TROUBLESHOOTER = "troubleshooter"
    APPROVER = "approver"
    REQUESTER = "requester"


# IT troubleshooters
COMPUTER_PROGRAMMER = "Computer Programmer"
MIS_OFFICER = "Mis Officer"

# Department approvers
PROGRAM_MANAGER = "Program Manager"
FOLLOWUP_HEAD = "Follow Up Head"
LAB_MANAGER = "Laboratory Manager"

TROUBLESHOOTER_POSITIONS = frozenset({COMPUTER_PROGRAMMER, MIS_OFFICER})

APPROVER_DEPT_MAP = {
    PROGRAM_MANAGER: "Program",
    FOLLOWUP_HEAD: "Follow Up",
    LAB_MANAGER: "Laboratory",
}

# normalized department -> every spelling found in user and order records
DEPARTMENT_ALIASES = {
    "program": ("program", "pdo"),
    "laboratory": ("laboratory", "lab"),
    "followup": ("followup", "follow up", "follow-up"),
    "administrator": ("administrator",),
    "admin": ("admin",),
}


class PositionPermissions(BaseModel):
    role: UserRole
    is_troubleshooter: bool
    is_approver: bool
    is_requester: bool
    approvable_dept: Optional[str] = None

    model_config = {"frozen": True}


def get_permissions(position: Optional[str] = None) -> PositionPermissions:
    pos = (position or "").strip()

    is_troubleshooter = pos in TROUBLESHOOTER_POSITIONS
    approvable_dept = None if is_troubleshooter else APPROVER_DEPT_MAP.get(pos)
    is_approver = approvable_dept is not None

    if is_troubleshooter:
        role = UserRole.TROUBLESHOOTER
    elif is_approver:
        role = UserRole.APPROVER
    else:
        role = UserRole.REQUESTER

    return PositionPermissions(
        role=role,
        is_troubleshooter=is_troubleshooter,
        is_approver=is_approver,
        is_requester=role == UserRole.REQUESTER,
        approvable_dept=approvable_dept,
    )


def normalize_department(dept: Optional[str]) -> Optional[str]:
    """Fold the department spellings used across the dashboard into one key."""
    if not dept:
        return None
    d = dept.strip().lower()
    for key, aliases in DEPARTMENT_ALIASES.items():
        if d in aliases:
            return key
    return d


def department_aliases(dept: Optional[str]) -> List[str]:
    """Lower-cased spellings that normalize to the same department as ``dept``."""
    key = normalize_department(dept)
    if key is None:
        return []
    return list(DEPARTMENT_ALIASES.get(key, (key,)))


def same_department(a: Optional[str], b: Optional[str]) -> bool:
    key = normalize_department(a)
    return key is not None and key == normalize_department(b)


def approver_positions_for(dept: Optional[str]) -> List[str]:
    """Positions allowed to approve orders filed under ``dept``."""
    return [pos for pos, approvable in APPROVER_DEPT_MAP.items() if same_department(approvable, dept)]
