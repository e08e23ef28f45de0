"""Unit tests for error handling.

Covers the transaction primitive (rollback and store error translation) and
the API error format shared by every domain error.
"""
import pytest
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError
from unittest.mock import patch

from app.models.assignment import ShiftAssignment, AssignmentSource
from app.models.request import ShiftRequest
from app.services.transaction import execute_transition, lock_row, get_row
from app.services.request_service import RequestService
from app.exceptions import (
    ShiftChangeError,
    MissingFieldError,
    ResourceNotFoundError,
    NotCurrentApproverError,
    OverlapError,
    StoreError,
    InvalidStatusTransitionError,
    format_error_for_api,
)
from tests.factories import build_team, make_assignment


class TestExecuteTransition:
    """Test all-or-nothing transitions."""

    def test_commits_result(self, test_db: Session):
        assert execute_transition(test_db, "noop", lambda: "done") == "done"

    def test_domain_error_rolls_back(self, test_db: Session):
        team = build_team(test_db)

        def transition():
            team.alice.name = "Renamed"
            test_db.flush()
            raise MissingFieldError("anything")

        with pytest.raises(MissingFieldError):
            execute_transition(test_db, "rename", transition)

        test_db.refresh(team.alice)
        assert team.alice.name == "Alice"

    def test_integrity_error_becomes_store_error(self, test_db: Session):
        team = build_team(test_db)
        existing = make_assignment(test_db, team.period, team.alice, team.day, date(2026, 1, 10))

        def transition():
            test_db.add(ShiftAssignment(
                shift_period_id=existing.shift_period_id,
                shift_date=existing.shift_date,
                user_id=existing.user_id,
                shift_type_id=existing.shift_type_id,
                department_id=existing.department_id,
                division_id=existing.division_id,
                staff_type_id=existing.staff_type_id,
                source_type=AssignmentSource.MANUAL,
            ))
            test_db.flush()

        with pytest.raises(StoreError) as exc_info:
            execute_transition(test_db, "duplicate_slot", transition)

        assert exc_info.value.status_code == 500
        assert exc_info.value.details["operation"] == "duplicate_slot"
        assert exc_info.value.details["constraint"] is not None
        assert test_db.query(ShiftAssignment).count() == 1

    def test_operational_error_becomes_store_error(self, test_db: Session):
        build_team(test_db)

        with patch.object(test_db, 'commit', side_effect=OperationalError("COMMIT", {}, Exception("gone away"))):
            with pytest.raises(StoreError):
                execute_transition(test_db, "commit_fails", lambda: None)

    def test_failed_commit_leaves_no_request(self, test_db: Session):
        team = build_team(test_db)

        with patch.object(test_db, 'commit', side_effect=OperationalError("COMMIT", {}, Exception("gone away"))):
            with pytest.raises(StoreError):
                RequestService(test_db).create_request("NEW_SHIFT", team.alice.id, {
                    "requested_shift_date": "2026-01-15",
                    "requested_shift_type_id": team.day.id,
                    "requested_department_id": "dept-2",
                })

        assert test_db.query(ShiftRequest).count() == 0

    def test_lock_and_get_missing_rows(self, test_db: Session):
        with pytest.raises(ResourceNotFoundError):
            lock_row(test_db, ShiftRequest, "missing", "shift_request")
        with pytest.raises(ResourceNotFoundError):
            get_row(test_db, ShiftRequest, None, "shift_request")


class TestErrorFormatting:
    """Test the error payload returned by the API."""

    def test_format_error_for_api(self):
        error = MissingFieldError("target_user_id", "SWITCH")

        body = format_error_for_api(error)

        assert body == {
            "success": False,
            "error": {
                "category": "validation",
                "code": "MISSING_FIELD",
                "message": "SWITCH requires target_user_id.",
                "details": {"field_name": "target_user_id", "context": "SWITCH"}
            }
        }

    @pytest.mark.parametrize("error, status_code, category", [
        (MissingFieldError("x"), 400, "validation"),
        (NotCurrentApproverError("r", "u", "m"), 403, "authorization"),
        (ResourceNotFoundError("shift_request", "r"), 404, "not_found"),
        (OverlapError("u", date(2026, 1, 10), "t"), 409, "business_rule"),
        (StoreError("op"), 500, "store"),
    ])
    def test_categories(self, error, status_code, category):
        assert isinstance(error, ShiftChangeError)
        assert error.status_code == status_code
        assert error.to_dict()["error"]["category"] == category

    def test_resource_not_found_message(self):
        error = ResourceNotFoundError("shift_request", "abc")

        assert error.message == "Shift request not found. (ID: abc)"

    def test_invalid_transition_message(self):
        error = InvalidStatusTransitionError("OFFER", "APPROVED", "retract")

        assert error.message == "Cannot retract a OFFER request in status APPROVED."
