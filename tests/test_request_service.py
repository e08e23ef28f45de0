"""Tests for the request lifecycle engine."""
import pytest
from datetime import date
from sqlalchemy.orm import Session

from app.models.absence import UserAbsence
from app.models.assignment import AssignmentStatus
from app.models.history import AssignmentHistory
from app.models.notification import Notification
from app.models.offer import OfferStatus, OfferVisibility
from app.models.request import ShiftRequest, RequestType, RequestStatus
from app.services.history_service import HistoryRecorder
from app.services.offer_service import OfferService
from app.services.request_service import RequestService, same_calendar_month, is_same_slot
from app.exceptions import (
    MissingFieldError,
    ValidationError,
    UnsupportedRequestTypeError,
    NotCurrentApproverError,
    NotRequestOwnerError,
    NotAssignmentOwnerError,
    NoPrimaryManagerError,
    OverlapError,
    AbsenceConflictError,
    InvalidAssignmentStateError,
    InvalidStatusTransitionError,
    PendingRequestExistsError,
    OfferNotActiveError,
    OfferNotEligibleError,
    SameSlotSwitchError,
    SwitchMismatchError,
    SlotConflictError,
)
from tests.factories import build_team, make_assignment, make_absence, make_user


JAN_10 = date(2026, 1, 10)
JAN_12 = date(2026, 1, 12)
JAN_15 = date(2026, 1, 15)


def _new_shift(service, user, shift_type, shift_date=JAN_15, **extra):
    payload = {
        "requested_shift_date": shift_date.isoformat(),
        "requested_shift_type_id": shift_type.id,
        "requested_department_id": "dept-2",
    }
    payload.update(extra)
    return service.create_request("NEW_SHIFT", user.id, payload)


def _switch(service, requester, source, target, target_user):
    return service.create_request("SWITCH", requester.id, {
        "source_shift_assignment_id": source.id,
        "target_shift_assignment_id": target.id,
        "target_user_id": target_user.id,
    })


class TestHelpers:
    """Test module-level helpers."""

    def test_same_calendar_month(self):
        assert same_calendar_month(date(2026, 1, 1), date(2026, 1, 31))
        assert not same_calendar_month(date(2026, 1, 31), date(2026, 2, 1))
        assert not same_calendar_month(date(2026, 1, 10), date(2027, 1, 10))

    def test_is_same_slot_ignores_owner(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_10)
        c = make_assignment(test_db, team.period, team.bob, team.late, JAN_12)

        assert is_same_slot(a, b)
        assert not is_same_slot(a, c)


class TestCreateRequest:
    """Test request creation dispatch and input validation."""

    def test_unsupported_type(self, test_db: Session):
        team = build_team(test_db)

        with pytest.raises(UnsupportedRequestTypeError):
            RequestService(test_db).create_request("VACATION", team.alice.id, {})

    def test_missing_requester(self, test_db: Session):
        with pytest.raises(MissingFieldError):
            RequestService(test_db).create_request("NEW_SHIFT", "", {})

    def test_type_is_case_insensitive(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)

        request = RequestService(test_db).create_request(
            "off_request", team.alice.id, {"shift_assignment_id": shift.id, "absence_type": "SICK"}
        )

        assert request.request_type == RequestType.OFF_REQUEST
        assert request.requested_absence_type == "SICK"

    def test_invalid_date(self, test_db: Session):
        team = build_team(test_db)

        with pytest.raises(ValidationError) as exc_info:
            RequestService(test_db).create_request("NEW_SHIFT", team.alice.id, {
                "requested_shift_date": "not-a-date",
                "requested_shift_type_id": team.day.id,
                "requested_department_id": "dept-2",
            })

        assert exc_info.value.error_code == "INVALID_DATE"


class TestNewShift:
    """Test NEW_SHIFT requests."""

    def test_create_routes_to_primary_manager(self, test_db: Session):
        team = build_team(test_db)

        request = _new_shift(RequestService(test_db), team.alice, team.day)

        assert request.request_status == RequestStatus.PENDING
        assert request.inbox_user_id == team.manager_a.id
        assert request.manager_user_id is None
        assert request.requested_shift_date == JAN_15

    def test_explicit_manager(self, test_db: Session):
        team = build_team(test_db)

        request = _new_shift(RequestService(test_db), team.alice, team.day, manager_user_id=team.manager_b.id)

        assert request.inbox_user_id == team.manager_b.id

    def test_missing_field(self, test_db: Session):
        team = build_team(test_db)

        with pytest.raises(MissingFieldError) as exc_info:
            RequestService(test_db).create_request("NEW_SHIFT", team.alice.id, {
                "requested_shift_date": "2026-01-15",
                "requested_shift_type_id": team.day.id,
            })

        assert exc_info.value.details["field_name"] == "requested_department_id"

    def test_no_primary_manager(self, test_db: Session):
        team = build_team(test_db)

        with pytest.raises(NoPrimaryManagerError):
            _new_shift(RequestService(test_db), team.dave, team.day)

        assert test_db.query(ShiftRequest).count() == 0

    def test_overlap_at_creation(self, test_db: Session):
        team = build_team(test_db)
        make_assignment(test_db, team.period, team.alice, team.day, JAN_15)

        with pytest.raises(OverlapError):
            _new_shift(RequestService(test_db), team.alice, team.late)

    def test_approve_clears_absence(self, test_db: Session):
        team = build_team(test_db)
        make_absence(test_db, team.alice, date(2026, 1, 14), date(2026, 1, 16))
        service = RequestService(test_db)
        request = _new_shift(service, team.alice, team.day)

        approved = service.approve(request.id, team.manager_a.id, "see you then")

        assert approved.request_status == RequestStatus.APPROVED
        assert approved.inbox_user_id is None
        assert approved.decision_by_user_id == team.manager_a.id
        assert approved.decision_comment == "see you then"
        assert approved.decided_at is not None

        ranges = sorted(
            (a.start_date, a.end_date)
            for a in test_db.query(UserAbsence).filter(UserAbsence.user_id == team.alice.id)
        )
        assert ranges == [(date(2026, 1, 14), date(2026, 1, 14)), (date(2026, 1, 16), date(2026, 1, 16))]

    def test_attach_assignment_is_idempotent(self, test_db: Session):
        team = build_team(test_db)
        service = RequestService(test_db)
        request = _new_shift(service, team.alice, team.day)
        service.approve(request.id, team.manager_a.id)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_15)

        service.attach_assignment(request.id, shift.id, team.alice.id)
        linked = service.attach_assignment(request.id, shift.id, team.manager_a.id)

        assert linked.shift_assignment_id == shift.id
        history = test_db.query(AssignmentHistory).filter(AssignmentHistory.shift_request_id == request.id).all()
        assert len(history) == 1
        assert history[0].change_reason == RequestType.NEW_SHIFT
        assert history[0].from_user_id is None

    def test_attach_assignment_rules(self, test_db: Session):
        team = build_team(test_db)
        service = RequestService(test_db)
        request = _new_shift(service, team.alice, team.day)
        other_day = make_assignment(test_db, team.period, team.alice, team.day, JAN_12)

        with pytest.raises(InvalidStatusTransitionError):
            service.attach_assignment(request.id, other_day.id, team.alice.id)

        service.approve(request.id, team.manager_a.id)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_15)

        with pytest.raises(NotRequestOwnerError):
            service.attach_assignment(request.id, shift.id, team.bob.id)
        with pytest.raises(InvalidAssignmentStateError):
            service.attach_assignment(request.id, other_day.id, team.alice.id)


class TestOffRequest:
    """Test OFF_REQUEST requests."""

    def test_full_flow(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        service = RequestService(test_db)

        request = service.create_request(
            "OFF_REQUEST", team.alice.id, {"shift_assignment_id": shift.id, "requested_absence_type": "SICK"}
        )
        assert request.inbox_user_id == team.manager_a.id
        assert request.requested_shift_date == JAN_10

        approved = service.approve(request.id, team.manager_a.id, "get well")

        assert approved.request_status == RequestStatus.APPROVED
        assert approved.inbox_user_id is None

        absences = test_db.query(UserAbsence).all()
        assert len(absences) == 1
        assert absences[0].start_date == JAN_10 and absences[0].end_date == JAN_10
        assert absences[0].absence_type == "SICK"

        test_db.refresh(shift)
        assert shift.is_absence is True
        assert shift.absence_type == "SICK"

        history = test_db.query(AssignmentHistory).all()
        assert len(history) == 1
        assert history[0].change_reason == RequestType.OFF_REQUEST
        assert history[0].comment == "SICK: get well"

    def test_second_approval_duplicates_nothing(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        service = RequestService(test_db)
        request = service.create_request(
            "OFF_REQUEST", team.alice.id, {"shift_assignment_id": shift.id, "requested_absence_type": "SICK"}
        )
        service.approve(request.id, team.manager_a.id)

        with pytest.raises(InvalidStatusTransitionError):
            service.approve(request.id, team.manager_a.id)

        assert test_db.query(UserAbsence).count() == 1
        assert test_db.query(AssignmentHistory).count() == 1

    def test_not_owner(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.bob, team.day, JAN_10)

        with pytest.raises(NotAssignmentOwnerError):
            RequestService(test_db).create_request(
                "OFF_REQUEST", team.alice.id, {"shift_assignment_id": shift.id, "requested_absence_type": "SICK"}
            )

    def test_already_absent(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        make_absence(test_db, team.alice, JAN_10, JAN_10)

        with pytest.raises(AbsenceConflictError):
            RequestService(test_db).create_request(
                "OFF_REQUEST", team.alice.id, {"shift_assignment_id": shift.id, "requested_absence_type": "SICK"}
            )

    def test_offered_shift_rejected(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        OfferService(test_db).create_offer(shift.id, team.alice.id)

        with pytest.raises(InvalidAssignmentStateError):
            RequestService(test_db).create_request(
                "OFF_REQUEST", team.alice.id, {"shift_assignment_id": shift.id, "requested_absence_type": "SICK"}
            )

    def test_second_pending_request_rejected(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        service = RequestService(test_db)
        payload = {"shift_assignment_id": shift.id, "requested_absence_type": "SICK"}
        service.create_request("OFF_REQUEST", team.alice.id, payload)

        with pytest.raises(PendingRequestExistsError):
            service.create_request("OFF_REQUEST", team.alice.id, payload)

        assert test_db.query(ShiftRequest).count() == 1


class TestSwitch:
    """Test SWITCH requests."""

    def test_full_chain_with_different_managers(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_12)
        service = RequestService(test_db)

        request = _switch(service, team.alice, a, b, team.bob)
        assert request.request_status == RequestStatus.PENDING_TARGET_USER
        assert request.inbox_user_id == team.bob.id
        assert request.shift_assignment_id == a.id

        request = service.approve(request.id, team.bob.id)
        assert request.request_status == RequestStatus.PENDING_TARGET_MANAGER
        assert request.inbox_user_id == team.manager_b.id

        request = service.approve(request.id, team.manager_b.id)
        assert request.request_status == RequestStatus.PENDING_SOURCE_MANAGER
        assert request.inbox_user_id == team.manager_a.id

        request = service.approve(request.id, team.manager_a.id)
        assert request.request_status == RequestStatus.APPROVED
        assert request.inbox_user_id is None

        test_db.refresh(a)
        test_db.refresh(b)
        assert a.user_id == team.bob.id
        assert b.user_id == team.alice.id

        history = test_db.query(AssignmentHistory).filter(AssignmentHistory.shift_request_id == request.id).all()
        assert len(history) == 2
        assert {h.change_reason for h in history} == {RequestType.SWITCH}

    def test_common_manager_shortcut(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        c = make_assignment(test_db, team.period, team.carol, team.day, JAN_12)
        service = RequestService(test_db)

        request = _switch(service, team.alice, a, c, team.carol)
        request = service.approve(request.id, team.carol.id)
        assert request.inbox_user_id == team.manager_a.id

        request = service.approve(request.id, team.manager_a.id)

        assert request.request_status == RequestStatus.APPROVED
        test_db.refresh(a)
        assert a.user_id == team.carol.id

    def test_same_slot_rejected(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_10)

        with pytest.raises(SameSlotSwitchError):
            _switch(RequestService(test_db), team.alice, a, b, team.bob)

    def test_same_assignment_rejected(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)

        with pytest.raises(SameSlotSwitchError):
            _switch(RequestService(test_db), team.alice, a, a, team.bob)

    def test_switch_with_self_rejected(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_12)

        with pytest.raises(ValidationError):
            _switch(RequestService(test_db), team.alice, a, b, team.alice)

    def test_different_month_rejected(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, date(2026, 2, 10))

        with pytest.raises(SwitchMismatchError):
            _switch(RequestService(test_db), team.alice, a, b, team.bob)

    def test_different_shift_type_rejected(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.late, JAN_12)

        with pytest.raises(SwitchMismatchError) as exc_info:
            _switch(RequestService(test_db), team.alice, a, b, team.bob)

        assert exc_info.value.details["field"] == "shift_type_id"

    def test_target_not_owned_by_target_user(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_12)

        with pytest.raises(NotAssignmentOwnerError):
            _switch(RequestService(test_db), team.alice, a, b, team.carol)

    def test_adjacent_shift_is_not_an_overlap(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        make_assignment(test_db, team.period, team.alice, team.evening, JAN_12, department_id="dept-9")
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_12)

        # day 08-16 and evening 16-23 only touch, so no overlap
        request = _switch(RequestService(test_db), team.alice, a, b, team.bob)
        assert request.request_status == RequestStatus.PENDING_TARGET_USER

    def test_overlap_rejected(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        make_assignment(test_db, team.period, team.alice, team.late, JAN_12)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_12)

        with pytest.raises(OverlapError):
            _switch(RequestService(test_db), team.alice, a, b, team.bob)

    def _approve_to_source_manager(self, service, team, request):
        request = service.approve(request.id, team.bob.id)
        request = service.approve(request.id, team.manager_b.id)
        assert request.request_status == RequestStatus.PENDING_SOURCE_MANAGER
        return request

    def test_finalize_clears_absences_of_both_parties(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_12)
        make_absence(test_db, team.bob, date(2026, 1, 9), date(2026, 1, 11))
        make_absence(test_db, team.alice, JAN_12, JAN_12)
        service = RequestService(test_db)

        request = self._approve_to_source_manager(service, team, _switch(service, team.alice, a, b, team.bob))
        request = service.approve(request.id, team.manager_a.id)

        assert request.request_status == RequestStatus.APPROVED
        bob_ranges = sorted(
            (row.start_date, row.end_date)
            for row in test_db.query(UserAbsence).filter(UserAbsence.user_id == team.bob.id)
        )
        assert bob_ranges == [(date(2026, 1, 9), date(2026, 1, 9)), (date(2026, 1, 11), date(2026, 1, 11))]
        assert test_db.query(UserAbsence).filter(UserAbsence.user_id == team.alice.id).count() == 0

    def test_slot_conflict_at_finalize_rolls_back(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_12)
        make_absence(test_db, team.bob, date(2026, 1, 9), date(2026, 1, 11))
        service = RequestService(test_db)
        request = self._approve_to_source_manager(service, team, _switch(service, team.alice, a, b, team.bob))
        request_id = request.id

        # bob's destination slot gets taken by an absence row before the last hop
        make_assignment(
            test_db, team.period, team.bob, team.day, JAN_10, is_absence=True, absence_type="VACATION"
        )

        with pytest.raises(SlotConflictError):
            service.approve(request_id, team.manager_a.id)

        request = test_db.query(ShiftRequest).filter(ShiftRequest.id == request_id).one()
        assert request.request_status == RequestStatus.PENDING_SOURCE_MANAGER
        assert request.inbox_user_id == team.manager_a.id
        test_db.refresh(a)
        test_db.refresh(b)
        assert a.user_id == team.alice.id
        assert b.user_id == team.bob.id
        bob_ranges = [
            (row.start_date, row.end_date)
            for row in test_db.query(UserAbsence).filter(UserAbsence.user_id == team.bob.id)
        ]
        assert bob_ranges == [(date(2026, 1, 9), date(2026, 1, 11))]
        assert test_db.query(AssignmentHistory).count() == 0

    def test_overlap_rechecked_at_final_approval(self, test_db: Session):
        team = build_team(test_db)
        a = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        b = make_assignment(test_db, team.period, team.bob, team.day, JAN_12)
        service = RequestService(test_db)
        request = self._approve_to_source_manager(service, team, _switch(service, team.alice, a, b, team.bob))
        request_id = request.id

        make_assignment(test_db, team.period, team.alice, team.late, JAN_12, department_id="dept-9")

        with pytest.raises(OverlapError):
            service.approve(request_id, team.manager_a.id)

        request = test_db.query(ShiftRequest).filter(ShiftRequest.id == request_id).one()
        assert request.request_status == RequestStatus.PENDING_SOURCE_MANAGER
        test_db.refresh(a)
        assert a.user_id == team.alice.id


class TestOffer:
    """Test OFFER requests."""

    def test_two_hop_routing(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        offer = OfferService(test_db).create_offer(shift.id, team.alice.id)
        service = RequestService(test_db)

        request = service.create_request("OFFER", team.bob.id, {"shift_offer_id": offer.id})
        assert request.request_status == RequestStatus.PENDING_OFFER_OWNER_MANAGER
        assert request.inbox_user_id == team.manager_a.id

        request = service.approve(request.id, team.manager_a.id)
        assert request.request_status == RequestStatus.PENDING_REQUESTOR_MANAGER
        assert request.inbox_user_id == team.manager_b.id

        request = service.approve(request.id, team.manager_b.id)
        assert request.request_status == RequestStatus.APPROVED

        test_db.refresh(shift)
        test_db.refresh(offer)
        assert shift.user_id == team.bob.id
        assert shift.status == AssignmentStatus.APPROVED
        assert offer.status == OfferStatus.TAKEN
        assert offer.taken_by_user_id == team.bob.id

        history = test_db.query(AssignmentHistory).all()
        assert len(history) == 1
        assert history[0].change_reason == RequestType.OFFER
        assert history[0].shift_offer_id == offer.id
        assert history[0].from_user_id == team.alice.id

    def test_shared_manager_finalizes_on_first_approval(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        OfferService(test_db).create_offer(shift.id, team.alice.id)
        service = RequestService(test_db)

        request = service.create_request("OFFER", team.carol.id, {"shift_assignment_id": shift.id})
        request = service.approve(request.id, team.manager_a.id)

        assert request.request_status == RequestStatus.APPROVED
        test_db.refresh(shift)
        assert shift.user_id == team.carol.id

    def test_taker_absence_cleared_on_finalize(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        OfferService(test_db).create_offer(shift.id, team.alice.id)
        make_absence(test_db, team.carol, JAN_10, JAN_12)
        service = RequestService(test_db)

        request = service.create_request("OFFER", team.carol.id, {"shift_assignment_id": shift.id})
        service.approve(request.id, team.manager_a.id)

        ranges = [
            (row.start_date, row.end_date)
            for row in test_db.query(UserAbsence).filter(UserAbsence.user_id == team.carol.id)
        ]
        assert ranges == [(date(2026, 1, 11), JAN_12)]

    def test_referenced_cancelled_slot_blocks_take(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        stale = make_assignment(
            test_db, team.period, team.carol, team.day, JAN_10, status=AssignmentStatus.CANCELLED
        )
        HistoryRecorder(test_db).record(stale, team.alice.id, team.carol.id, RequestType.OFFER, None)
        test_db.commit()
        OfferService(test_db).create_offer(shift.id, team.alice.id)
        service = RequestService(test_db)
        request = service.create_request("OFFER", team.carol.id, {"shift_assignment_id": shift.id})
        request_id = request.id

        with pytest.raises(SlotConflictError) as exc_info:
            service.approve(request_id, team.manager_a.id)

        assert exc_info.value.status_code == 409
        request = test_db.query(ShiftRequest).filter(ShiftRequest.id == request_id).one()
        assert request.request_status == RequestStatus.PENDING_OFFER_OWNER_MANAGER
        test_db.refresh(shift)
        assert shift.user_id == team.alice.id

    def test_cancelled_offer(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        offers = OfferService(test_db)
        offer = offers.create_offer(shift.id, team.alice.id)
        offers.cancel_offer(offer.id, team.alice.id)

        with pytest.raises(OfferNotActiveError):
            RequestService(test_db).create_request("OFFER", team.bob.id, {"shift_offer_id": offer.id})

    def test_offer_withdrawn_before_approval(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        offer = OfferService(test_db).create_offer(shift.id, team.alice.id)
        service = RequestService(test_db)
        request = service.create_request("OFFER", team.bob.id, {"shift_offer_id": offer.id})

        offer.status = OfferStatus.CANCELLED
        test_db.commit()

        with pytest.raises(OfferNotActiveError):
            service.approve(request.id, team.manager_a.id)

        test_db.refresh(shift)
        test_db.refresh(request)
        assert shift.user_id == team.alice.id
        assert request.request_status == RequestStatus.PENDING_OFFER_OWNER_MANAGER
        assert test_db.query(AssignmentHistory).count() == 0

    def test_ineligible_staff_type(self, test_db: Session):
        team = build_team(test_db)
        doctor = make_user(test_db, "Doctor", staff_type_id="doctor")
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        offer = OfferService(test_db).create_offer(shift.id, team.alice.id)

        with pytest.raises(OfferNotEligibleError):
            RequestService(test_db).create_request("OFFER", doctor.id, {"shift_offer_id": offer.id})

    def test_target_user_offer_hidden_from_others(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        offer = OfferService(test_db).create_offer(
            shift.id, team.alice.id, visibility=OfferVisibility.TARGET_USER, target_user_id=team.carol.id
        )

        with pytest.raises(OfferNotEligibleError):
            RequestService(test_db).create_request("OFFER", team.bob.id, {"shift_offer_id": offer.id})

    def test_second_taker_blocked(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        offer = OfferService(test_db).create_offer(shift.id, team.alice.id)
        service = RequestService(test_db)
        service.create_request("OFFER", team.bob.id, {"shift_offer_id": offer.id})

        with pytest.raises(PendingRequestExistsError):
            service.create_request("OFFER", team.carol.id, {"shift_offer_id": offer.id})


class TestDecisions:
    """Test approver checks, rejection and retraction."""

    def _off_request(self, test_db, team):
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        request = RequestService(test_db).create_request(
            "OFF_REQUEST", team.alice.id, {"shift_assignment_id": shift.id, "requested_absence_type": "SICK"}
        )
        return shift, request

    def test_only_inbox_user_may_approve(self, test_db: Session):
        team = build_team(test_db)
        shift, request = self._off_request(test_db, team)

        with pytest.raises(NotCurrentApproverError):
            RequestService(test_db).approve(request.id, team.manager_b.id)

        test_db.refresh(request)
        test_db.refresh(shift)
        assert request.request_status == RequestStatus.PENDING
        assert request.inbox_user_id == team.manager_a.id
        assert shift.is_absence is False
        assert test_db.query(UserAbsence).count() == 0

    def test_reject_leaves_assignment_untouched(self, test_db: Session):
        team = build_team(test_db)
        shift, request = self._off_request(test_db, team)

        rejected = RequestService(test_db).reject(request.id, team.manager_a.id, "short staffed")

        assert rejected.request_status == RequestStatus.REJECTED
        assert rejected.inbox_user_id is None
        assert rejected.decision_comment == "short staffed"
        test_db.refresh(shift)
        assert shift.is_absence is False
        assert test_db.query(UserAbsence).count() == 0
        assert test_db.query(AssignmentHistory).count() == 0

    def test_decided_request_cannot_be_approved_again(self, test_db: Session):
        team = build_team(test_db)
        _, request = self._off_request(test_db, team)
        service = RequestService(test_db)
        service.reject(request.id, team.manager_a.id)

        with pytest.raises(InvalidStatusTransitionError):
            service.approve(request.id, team.manager_a.id)

    def test_retract(self, test_db: Session):
        team = build_team(test_db)
        _, request = self._off_request(test_db, team)
        service = RequestService(test_db)
        request_id = request.id

        with pytest.raises(NotRequestOwnerError):
            service.retract(request_id, team.bob.id)

        assert service.retract(request_id, team.alice.id) is True
        assert service.retract(request_id, team.alice.id) is False
        assert test_db.query(ShiftRequest).count() == 0

    def test_retract_decided_request(self, test_db: Session):
        team = build_team(test_db)
        _, request = self._off_request(test_db, team)
        service = RequestService(test_db)
        service.approve(request.id, team.manager_a.id)

        with pytest.raises(InvalidStatusTransitionError):
            service.retract(request.id, team.alice.id)

    def test_notifications_written(self, test_db: Session):
        team = build_team(test_db)
        _, request = self._off_request(test_db, team)
        RequestService(test_db).approve(request.id, team.manager_a.id)

        notifications = test_db.query(Notification).filter(Notification.shift_request_id == request.id).all()
        by_recipient = {n.recipient_user_id: n for n in notifications}

        assert len(notifications) == 2
        assert by_recipient[team.manager_a.id].notification_type == "SHIFT_REQUEST_PENDING"
        assert by_recipient[team.alice.id].notification_type == "SHIFT_REQUEST_APPROVED"
        assert by_recipient[team.alice.id].payload["requestId"] == request.id


class TestInbox:
    """Test inbox listing and legacy rows."""

    def _legacy_request(self, test_db, team):
        request = ShiftRequest(
            request_type=RequestType.NEW_SHIFT,
            request_status=RequestStatus.PENDING,
            requested_by_user_id=team.alice.id,
            manager_user_id=team.manager_a.id,
            requested_shift_date=JAN_15,
            requested_shift_type_id=team.day.id,
            requested_department_id="dept-2",
        )
        test_db.add(request)
        test_db.commit()
        return request

    def test_list_inbox_is_strict(self, test_db: Session):
        team = build_team(test_db)
        service = RequestService(test_db)
        _new_shift(service, team.alice, team.day)
        _new_shift(service, team.bob, team.day)

        assert len(service.list_inbox(team.manager_a.id)) == 1
        assert len(service.list_inbox(team.manager_b.id)) == 1
        assert service.list_inbox(team.alice.id) == []

    def test_list_inbox_filters(self, test_db: Session):
        team = build_team(test_db)
        shift = make_assignment(test_db, team.period, team.alice, team.day, JAN_10)
        service = RequestService(test_db)
        _new_shift(service, team.alice, team.day)
        service.create_request(
            "OFF_REQUEST", team.alice.id, {"shift_assignment_id": shift.id, "requested_absence_type": "SICK"}
        )

        off_requests = service.list_inbox(team.manager_a.id, request_type=RequestType.OFF_REQUEST)

        assert len(off_requests) == 1
        assert off_requests[0].request_type == RequestType.OFF_REQUEST

    def test_legacy_rows_visible_and_actionable(self, test_db: Session):
        team = build_team(test_db)
        legacy = self._legacy_request(test_db, team)
        service = RequestService(test_db)

        assert [r.id for r in service.list_inbox(team.manager_a.id)] == [legacy.id]

        approved = service.approve(legacy.id, team.manager_a.id)
        assert approved.request_status == RequestStatus.APPROVED
        assert service.list_inbox(team.manager_a.id) == []

    def test_normalize_legacy_inboxes(self, test_db: Session):
        team = build_team(test_db)
        legacy = self._legacy_request(test_db, team)
        service = RequestService(test_db)

        assert service.normalize_legacy_inboxes() == 1
        test_db.refresh(legacy)
        assert legacy.inbox_user_id == team.manager_a.id
        assert service.normalize_legacy_inboxes() == 0

    def test_list_requests(self, test_db: Session):
        team = build_team(test_db)
        service = RequestService(test_db)
        first = _new_shift(service, team.alice, team.day)
        _new_shift(service, team.bob, team.day)
        service.reject(first.id, team.manager_a.id)

        assert len(service.list_requests(requested_by_user_id=team.alice.id)) == 1
        assert len(service.list_requests(request_status=RequestStatus.PENDING)) == 1
        assert len(service.list_requests()) == 2


def test_normalize_inboxes_script(test_db: Session):
    from unittest.mock import patch
    from scripts.normalize_inboxes import normalize_inboxes

    team = build_team(test_db)
    legacy_id = TestInbox()._legacy_request(test_db, team).id

    with patch('scripts.normalize_inboxes.SessionLocal', return_value=test_db):
        assert normalize_inboxes() == 1

    assert test_db.query(ShiftRequest).filter(ShiftRequest.id == legacy_id).one().inbox_user_id == team.manager_a.id
