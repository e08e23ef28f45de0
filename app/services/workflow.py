"""Approval chains for each request type.

Every request type walks a fixed chain of PENDING_* statuses. This module
is the single place that knows which statuses belong to which type, so
handlers ask it instead of comparing status strings.
"""
from typing import Dict, Tuple

from app.models.request import RequestType, RequestStatus
from app.exceptions import InvalidStatusTransitionError


# Pending statuses in chain order. OFFER may skip its second step when the
# offering user's manager also manages the requester.
APPROVAL_CHAINS: Dict[RequestType, Tuple[RequestStatus, ...]] = {
    RequestType.NEW_SHIFT: (RequestStatus.PENDING,),
    RequestType.OFF_REQUEST: (RequestStatus.PENDING,),
    RequestType.SWITCH: (
        RequestStatus.PENDING_TARGET_USER,
        RequestStatus.PENDING_TARGET_MANAGER,
        RequestStatus.PENDING_SOURCE_MANAGER,
    ),
    RequestType.OFFER: (
        RequestStatus.PENDING_OFFER_OWNER_MANAGER,
        RequestStatus.PENDING_REQUESTOR_MANAGER,
    ),
}


def initial_status(request_type: RequestType) -> RequestStatus:
    return APPROVAL_CHAINS[RequestType(request_type)][0]


def is_valid_status(request_type: RequestType, status: RequestStatus) -> bool:
    status = RequestStatus(status)
    return status.is_terminal or status in APPROVAL_CHAINS[RequestType(request_type)]


def next_status(request_type: RequestType, status: RequestStatus) -> RequestStatus:
    """
    Status that follows ``status`` in the chain, or APPROVED after the last step.

    Raises:
        InvalidStatusTransitionError: If ``status`` is not a pending step of the chain
    """
    request_type = RequestType(request_type)
    status = RequestStatus(status)
    chain = APPROVAL_CHAINS[request_type]
    if status not in chain:
        raise InvalidStatusTransitionError(request_type, status, "approve")
    index = chain.index(status)
    if index + 1 < len(chain):
        return chain[index + 1]
    return RequestStatus.APPROVED


def ensure_actionable(request_type: RequestType, status: RequestStatus, action: str) -> None:
    """
    Check that a request in ``status`` can still be approved or rejected.

    Raises:
        InvalidStatusTransitionError: If the status is terminal or foreign to the type
    """
    status = RequestStatus(status)
    if status not in APPROVAL_CHAINS[RequestType(request_type)]:
        raise InvalidStatusTransitionError(request_type, status, action)
