"""Tests for request status transitions."""

import pytest
from conftest import at, make_request

from designdesk.domain import RequestStatus
from designdesk.domain.lifecycle import apply_status, can_transition
from designdesk.exceptions import InvalidTransitionError


@pytest.mark.parametrize(
    "current,target",
    [
        (RequestStatus.PENDING, RequestStatus.IN_PROCESS),
        (RequestStatus.PENDING, RequestStatus.REJECTED),
        (RequestStatus.IN_PROCESS, RequestStatus.REVIEW),
        (RequestStatus.IN_PROCESS, RequestStatus.REJECTED),
        (RequestStatus.REVIEW, RequestStatus.COMPLETED),
        (RequestStatus.REVIEW, RequestStatus.IN_PROCESS),
        (RequestStatus.REVIEW, RequestStatus.REJECTED),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (RequestStatus.PENDING, RequestStatus.COMPLETED),
        (RequestStatus.PENDING, RequestStatus.REVIEW),
        (RequestStatus.IN_PROCESS, RequestStatus.COMPLETED),
        (RequestStatus.IN_PROCESS, RequestStatus.PENDING),
        (RequestStatus.COMPLETED, RequestStatus.IN_PROCESS),
        (RequestStatus.REJECTED, RequestStatus.PENDING),
    ],
)
def test_forbidden_transitions(current, target):
    assert not can_transition(current, target)


def test_completion_is_stamped():
    request = make_request("r", status=RequestStatus.REVIEW, assigned_to="e1", assigned_at=at(0))
    apply_status(request, RequestStatus.COMPLETED, now=at(90))

    assert request.status == RequestStatus.COMPLETED
    assert request.completed_at == at(90)
    assert request.updated_at == at(90)
    assert not request.is_active


def test_invalid_transition_raises():
    request = make_request("r", status=RequestStatus.COMPLETED)
    with pytest.raises(InvalidTransitionError) as exc_info:
        apply_status(request, RequestStatus.REVIEW)

    assert exc_info.value.current == "completed"
    assert exc_info.value.target == "review"
    assert request.status == RequestStatus.COMPLETED


def test_cannot_start_work_without_assignee():
    request = make_request("r")
    with pytest.raises(InvalidTransitionError):
        apply_status(request, RequestStatus.IN_PROCESS)


def test_pending_can_be_rejected():
    request = make_request("r")
    apply_status(request, RequestStatus.REJECTED)
    assert request.status == RequestStatus.REJECTED
    assert request.completed_at is None
