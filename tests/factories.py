"""Row builders shared by the test modules."""
from sqlalchemy.orm import Session
from datetime import date, time
from types import SimpleNamespace
from typing import Optional, Sequence
import uuid

from app.models.user import User, UserManager, UserDepartment, UserDivision
from app.models.shift_type import ShiftType, ShiftPeriod, PeriodStatus
from app.models.assignment import ShiftAssignment, AssignmentStatus, AssignmentSource
from app.models.absence import UserAbsence


STAFF_TYPE = "staff-nurse"
DEPARTMENT = "dept-2"
DIVISION = "div-1"


def make_user(
    db: Session,
    name: Optional[str] = None,
    staff_type_id: Optional[str] = STAFF_TYPE,
    line_id: Optional[str] = None,
    departments: Sequence[str] = (DEPARTMENT,),
    divisions: Sequence[str] = (DIVISION,)
) -> User:
    user_id = str(uuid.uuid4())
    user = User(id=user_id, name=name or f"User {user_id[:8]}", staff_type_id=staff_type_id, line_id=line_id)
    db.add(user)
    for department_id in departments:
        db.add(UserDepartment(user_id=user_id, department_id=department_id))
    for division_id in divisions:
        db.add(UserDivision(user_id=user_id, division_id=division_id))
    db.commit()
    return user


def make_manager_link(db: Session, user: User, manager: User, is_primary: bool = True) -> UserManager:
    link = UserManager(user_id=user.id, manager_user_id=manager.id, is_primary=is_primary)
    db.add(link)
    db.commit()
    return link


def make_shift_type(db: Session, name: str = "Day", start: time = time(8, 0), end: time = time(16, 0)) -> ShiftType:
    shift_type = ShiftType(name=name, start_time=start, end_time=end)
    db.add(shift_type)
    db.commit()
    return shift_type


def make_period(
    db: Session,
    start: date = date(2026, 1, 1),
    end: date = date(2026, 2, 28),
    status: PeriodStatus = PeriodStatus.GENERATED
) -> ShiftPeriod:
    period = ShiftPeriod(start_date=start, end_date=end, status=status)
    db.add(period)
    db.commit()
    return period


def make_assignment(
    db: Session,
    period: ShiftPeriod,
    user: User,
    shift_type: ShiftType,
    shift_date: date,
    department_id: str = DEPARTMENT,
    division_id: Optional[str] = DIVISION,
    staff_type_id: str = STAFF_TYPE,
    status: AssignmentStatus = AssignmentStatus.APPROVED,
    is_absence: bool = False,
    absence_type: Optional[str] = None
) -> ShiftAssignment:
    assignment = ShiftAssignment(
        shift_period_id=period.id,
        shift_date=shift_date,
        user_id=user.id,
        shift_type_id=shift_type.id,
        department_id=department_id,
        division_id=division_id,
        staff_type_id=staff_type_id,
        source_type=AssignmentSource.TEMPLATE,
        status=status,
        is_absence=is_absence,
        absence_type=absence_type,
    )
    db.add(assignment)
    db.commit()
    return assignment


def make_absence(
    db: Session,
    user: User,
    start: date,
    end: date,
    absence_type: str = "VACATION"
) -> UserAbsence:
    absence = UserAbsence(user_id=user.id, absence_type=absence_type, start_date=start, end_date=end)
    db.add(absence)
    db.commit()
    return absence


def build_team(db: Session) -> SimpleNamespace:
    """
    Two teams with separate managers.

    alice and carol report to manager_a, bob reports to manager_b. dave has
    no manager at all. Shift types: day 08-16, late 12-20, evening 16-23.
    """
    manager_a = make_user(db, "Manager A", staff_type_id="manager")
    manager_b = make_user(db, "Manager B", staff_type_id="manager")
    alice = make_user(db, "Alice", line_id="U-alice")
    bob = make_user(db, "Bob", line_id="U-bob")
    carol = make_user(db, "Carol")
    dave = make_user(db, "Dave")

    make_manager_link(db, alice, manager_a)
    make_manager_link(db, carol, manager_a)
    make_manager_link(db, bob, manager_b)

    return SimpleNamespace(
        manager_a=manager_a,
        manager_b=manager_b,
        alice=alice,
        bob=bob,
        carol=carol,
        dave=dave,
        day=make_shift_type(db, "Day", time(8, 0), time(16, 0)),
        late=make_shift_type(db, "Late", time(12, 0), time(20, 0)),
        evening=make_shift_type(db, "Evening", time(16, 0), time(23, 0)),
        period=make_period(db),
    )
