"""Lookups of in-flight requests shared by the offer registry and the engine."""
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import Iterable, Optional

from app.models.request import ShiftRequest, RequestStatus
from app.exceptions import PendingRequestExistsError


PENDING_STATUSES = tuple(s for s in RequestStatus if s.is_pending)


def find_pending_request(
    db: Session,
    assignment_ids: Iterable[str] = (),
    offer_id: Optional[str] = None,
    exclude_request_id: Optional[str] = None
) -> Optional[ShiftRequest]:
    """Return a pending request referencing any of the assignments or the offer."""
    assignment_ids = [a for a in assignment_ids if a]
    conditions = []
    if assignment_ids:
        conditions.extend([
            ShiftRequest.shift_assignment_id.in_(assignment_ids),
            ShiftRequest.source_shift_assignment_id.in_(assignment_ids),
            ShiftRequest.target_shift_assignment_id.in_(assignment_ids),
        ])
    if offer_id:
        conditions.append(ShiftRequest.shift_offer_id == offer_id)
    if not conditions:
        return None

    query = db.query(ShiftRequest).filter(
        ShiftRequest.request_status.in_(PENDING_STATUSES),
        or_(*conditions),
    )
    if exclude_request_id:
        query = query.filter(ShiftRequest.id != exclude_request_id)
    return query.first()


def ensure_no_pending_request(
    db: Session,
    assignment_ids: Iterable[str] = (),
    offer_id: Optional[str] = None,
    exclude_request_id: Optional[str] = None
) -> None:
    """
    Raise if another pending request already claims one of the rows.

    Raises:
        PendingRequestExistsError: If such a request exists
    """
    assignment_ids = list(assignment_ids)
    existing = find_pending_request(db, assignment_ids, offer_id, exclude_request_id)
    if existing is None:
        return
    if offer_id and existing.shift_offer_id == offer_id:
        reference = f"offer {offer_id}"
    else:
        claimed = sorted(existing.referenced_assignment_ids() & set(assignment_ids))
        reference = f"assignment {', '.join(claimed)}"
    raise PendingRequestExistsError(existing.id, reference)
