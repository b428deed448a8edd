"""
Tests for the invitation and join-request workflows.
"""

import asyncio

import pytest

from core.exceptions import (
    AuthorizationError,
    ConcurrencyError,
    ConflictError,
    NotFoundError,
    Reason,
    StateError,
    ValidationError,
)
from db.cosmos_session import NOTIFICATIONS_CONTAINER
from fakes import ADMIN_ID, BOB_ID, CAROL_ID, OUTSIDER_ID
from models.cosmos_documents import MemberRole, NotificationType, RequestStatus, RoomVisibility


def _of_type(cosmos, notification_type: NotificationType) -> list[dict]:
    return [n for n in cosmos.items(NOTIFICATIONS_CONTAINER) if n["type"] == notification_type.value]


@pytest.fixture
async def room(make_room):
    return await make_room({BOB_ID: MemberRole.VOTER})


@pytest.mark.unit
class TestProposeInvitation:
    """Admin invites a user by username."""

    async def test_creates_pending_invitation(self, workflow, room) -> None:
        notification = await workflow.propose_invitation(room.id, ADMIN_ID, "  Carol ", "candidate")

        assert notification.user_id == CAROL_ID
        assert notification.type == NotificationType.ROOM_INVITATION.value
        assert notification.is_pending
        assert notification.data.invited_role == MemberRole.CANDIDATE.value
        assert notification.data.performer_id == ADMIN_ID
        assert notification.message == 'Alice has invited you to join room "Book Club" as a candidate.'

    async def test_invalid_role_checked_first(self, workflow) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await workflow.propose_invitation("missing-room", ADMIN_ID, "carol", "admin")
        assert exc_info.value.reason == Reason.INVALID_ROLE

    async def test_missing_room(self, workflow, cosmos) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await workflow.propose_invitation("missing-room", ADMIN_ID, "carol", "voter")
        assert exc_info.value.reason == Reason.ROOM_NOT_FOUND

    async def test_only_admin_can_invite(self, workflow, room) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            await workflow.propose_invitation(room.id, BOB_ID, "carol", "voter")
        assert exc_info.value.reason == Reason.NOT_ADMIN

    async def test_unknown_user(self, workflow, room) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await workflow.propose_invitation(room.id, ADMIN_ID, "nobody", "voter")
        assert exc_info.value.reason == Reason.UNKNOWN_USER

    async def test_cannot_invite_self(self, workflow, room) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await workflow.propose_invitation(room.id, ADMIN_ID, "alice", "voter")
        assert exc_info.value.reason == Reason.CANNOT_INVITE_SELF

    async def test_existing_member(self, workflow, room) -> None:
        with pytest.raises(ConflictError) as exc_info:
            await workflow.propose_invitation(room.id, ADMIN_ID, "bob", "voter")
        assert exc_info.value.reason == Reason.ALREADY_MEMBER

    async def test_duplicate_pending_invitation(self, workflow, room) -> None:
        await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "voter")
        with pytest.raises(ConflictError) as exc_info:
            await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "candidate")
        assert exc_info.value.reason == Reason.DUPLICATE_PENDING


@pytest.mark.unit
class TestResolveInvitation:
    """Invitee accepts or declines."""

    async def test_candidate_invitation_accepted(self, workflow, room, room_repo, cosmos) -> None:
        invitation = await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "candidate")

        updated = await workflow.resolve_invitation(invitation.id, CAROL_ID, "accept")

        assert updated.role_of(CAROL_ID) == MemberRole.CANDIDATE.value
        stored_room = await room_repo.get_by_id(room.id)
        assert [m.user_id for m in stored_room.members].count(CAROL_ID) == 1

        resolved = [n for n in cosmos.items(NOTIFICATIONS_CONTAINER) if n["id"] == invitation.id][0]
        assert resolved["is_read"] is True
        assert resolved["message"] == "You accepted the invitation to join Book Club."

        outcome = _of_type(cosmos, NotificationType.INVITATION_ACCEPTED)
        assert len(outcome) == 1
        assert outcome[0]["user_id"] == ADMIN_ID
        assert outcome[0]["message"] == 'carol accepted your invitation to join room "Book Club".'

    async def test_decline_leaves_membership_unchanged(self, workflow, room, room_repo, cosmos) -> None:
        invitation = await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "voter")

        await workflow.resolve_invitation(invitation.id, CAROL_ID, "decline")

        assert not (await room_repo.get_by_id(room.id)).has_member(CAROL_ID)
        assert len(_of_type(cosmos, NotificationType.INVITATION_DECLINED)) == 1

    async def test_invalid_action(self, workflow, room) -> None:
        invitation = await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "voter")
        with pytest.raises(ValidationError) as exc_info:
            await workflow.resolve_invitation(invitation.id, CAROL_ID, "approve")
        assert exc_info.value.reason == Reason.INVALID_ACTION

    async def test_missing_notification(self, workflow, cosmos) -> None:
        with pytest.raises(NotFoundError):
            await workflow.resolve_invitation("missing", CAROL_ID, "accept")

    async def test_only_recipient_can_resolve(self, workflow, room) -> None:
        invitation = await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "voter")
        with pytest.raises(AuthorizationError) as exc_info:
            await workflow.resolve_invitation(invitation.id, OUTSIDER_ID, "accept")
        assert exc_info.value.reason == Reason.NOT_RECIPIENT

    async def test_wrong_notification_type(self, workflow, room) -> None:
        request = await workflow.request_to_join(room.id, CAROL_ID)
        with pytest.raises(StateError):
            await workflow.resolve_invitation(request.id, ADMIN_ID, "accept")

    async def test_resolution_is_terminal(self, workflow, room) -> None:
        invitation = await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "voter")
        await workflow.resolve_invitation(invitation.id, CAROL_ID, "decline")

        with pytest.raises(StateError) as exc_info:
            await workflow.resolve_invitation(invitation.id, CAROL_ID, "accept")
        assert exc_info.value.reason == Reason.INVALID_STATE

    async def test_concurrent_accepts_apply_once(self, workflow, room, room_repo, cosmos) -> None:
        invitation = await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "voter")

        results = await asyncio.gather(
            workflow.resolve_invitation(invitation.id, CAROL_ID, "accept"),
            workflow.resolve_invitation(invitation.id, CAROL_ID, "accept"),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], StateError)
        stored_room = await room_repo.get_by_id(room.id)
        assert [m.user_id for m in stored_room.members].count(CAROL_ID) == 1
        assert len(_of_type(cosmos, NotificationType.INVITATION_ACCEPTED)) == 1

    async def test_accept_after_joining_another_way_is_idempotent(self, workflow, room, room_repo) -> None:
        invitation = await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "candidate")
        await room_repo.add_member_if_absent(room.id, CAROL_ID, MemberRole.VOTER)

        updated = await workflow.resolve_invitation(invitation.id, CAROL_ID, "accept")

        assert updated.role_of(CAROL_ID) == MemberRole.VOTER.value
        assert [m.user_id for m in updated.members].count(CAROL_ID) == 1

    async def test_failed_membership_change_reopens_invitation(
        self, workflow, room, room_repo, cosmos, monkeypatch
    ) -> None:
        invitation = await workflow.propose_invitation(room.id, ADMIN_ID, "carol", "candidate")
        add_member = room_repo.add_member_if_absent
        calls = []

        async def fail_once(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise ConcurrencyError("The resource is being modified by another request. Please retry.")
            return await add_member(*args, **kwargs)

        monkeypatch.setattr(room_repo, "add_member_if_absent", fail_once)

        with pytest.raises(ConcurrencyError):
            await workflow.resolve_invitation(invitation.id, CAROL_ID, "accept")

        stored = [n for n in cosmos.items(NOTIFICATIONS_CONTAINER) if n["id"] == invitation.id][0]
        assert stored["is_read"] is False
        assert stored["message"] == invitation.message
        assert not (await room_repo.get_by_id(room.id)).has_member(CAROL_ID)
        assert _of_type(cosmos, NotificationType.INVITATION_ACCEPTED) == []

        updated = await workflow.resolve_invitation(invitation.id, CAROL_ID, "accept")

        assert updated.role_of(CAROL_ID) == MemberRole.CANDIDATE.value
        assert len(_of_type(cosmos, NotificationType.INVITATION_ACCEPTED)) == 1


@pytest.mark.unit
class TestJoinRequest:
    """User asks to join, admin decides."""

    async def test_public_room_join_approved(self, workflow, room, room_repo, cosmos) -> None:
        request = await workflow.request_to_join(room.id, CAROL_ID)
        assert request.user_id == ADMIN_ID
        assert request.data.request_status == RequestStatus.PENDING.value
        assert request.data.target_user_id == CAROL_ID

        updated = await workflow.resolve_join_request(request.id, ADMIN_ID, "approve")

        assert updated.role_of(CAROL_ID) == MemberRole.VOTER.value
        resolved = [n for n in cosmos.items(NOTIFICATIONS_CONTAINER) if n["id"] == request.id][0]
        assert resolved["is_read"] is True
        assert resolved["data"]["request_status"] == RequestStatus.APPROVED.value
        assert resolved["message"] == "You approved carol's request to join Book Club."

        outcome = _of_type(cosmos, NotificationType.JOIN_REQUEST_APPROVED)
        assert [n["user_id"] for n in outcome] == [CAROL_ID]
        assert outcome[0]["message"] == 'Your request to join room "Book Club" has been approved.'

    async def test_declined_request_records_status(self, workflow, room, room_repo, cosmos) -> None:
        request = await workflow.request_to_join(room.id, CAROL_ID)

        await workflow.resolve_join_request(request.id, ADMIN_ID, "decline")

        assert not (await room_repo.get_by_id(room.id)).has_member(CAROL_ID)
        resolved = [n for n in cosmos.items(NOTIFICATIONS_CONTAINER) if n["id"] == request.id][0]
        assert resolved["data"]["request_status"] == RequestStatus.DECLINED.value
        assert len(_of_type(cosmos, NotificationType.JOIN_REQUEST_DECLINED)) == 1

    async def test_approval_on_deleted_room_reopens_request(
        self, workflow, room, room_repo, cosmos, monkeypatch
    ) -> None:
        request = await workflow.request_to_join(room.id, CAROL_ID)

        async def room_gone(*args, **kwargs):
            return None, False

        monkeypatch.setattr(room_repo, "add_member_if_absent", room_gone)

        with pytest.raises(NotFoundError) as exc_info:
            await workflow.resolve_join_request(request.id, ADMIN_ID, "approve")
        assert exc_info.value.reason == Reason.ROOM_NOT_FOUND

        stored = [n for n in cosmos.items(NOTIFICATIONS_CONTAINER) if n["id"] == request.id][0]
        assert stored["is_read"] is False
        assert stored["data"]["request_status"] == RequestStatus.PENDING.value
        assert stored["message"] == request.message
        assert _of_type(cosmos, NotificationType.JOIN_REQUEST_APPROVED) == []

    async def test_private_room_rejects_requests(self, workflow, make_room) -> None:
        private = await make_room(visibility=RoomVisibility.PRIVATE)
        with pytest.raises(AuthorizationError) as exc_info:
            await workflow.request_to_join(private.id, CAROL_ID)
        assert exc_info.value.reason == Reason.NOT_PUBLIC

    async def test_member_cannot_request(self, workflow, room) -> None:
        with pytest.raises(ConflictError) as exc_info:
            await workflow.request_to_join(room.id, BOB_ID)
        assert exc_info.value.reason == Reason.ALREADY_MEMBER

    async def test_duplicate_pending_request(self, workflow, room) -> None:
        await workflow.request_to_join(room.id, CAROL_ID)
        with pytest.raises(ConflictError) as exc_info:
            await workflow.request_to_join(room.id, CAROL_ID)
        assert exc_info.value.reason == Reason.DUPLICATE_PENDING

    async def test_only_admin_can_resolve(self, workflow, room) -> None:
        request = await workflow.request_to_join(room.id, CAROL_ID)
        with pytest.raises(AuthorizationError) as exc_info:
            await workflow.resolve_join_request(request.id, BOB_ID, "approve")
        assert exc_info.value.reason == Reason.NOT_ADMIN

    async def test_resolution_is_terminal(self, workflow, room) -> None:
        request = await workflow.request_to_join(room.id, CAROL_ID)
        await workflow.resolve_join_request(request.id, ADMIN_ID, "decline")
        with pytest.raises(StateError):
            await workflow.resolve_join_request(request.id, ADMIN_ID, "approve")

    async def test_new_request_allowed_after_decline(self, workflow, room) -> None:
        first = await workflow.request_to_join(room.id, CAROL_ID)
        await workflow.resolve_join_request(first.id, ADMIN_ID, "decline")

        second = await workflow.request_to_join(room.id, CAROL_ID)
        assert second.id != first.id


@pytest.mark.unit
class TestCancelJoinRequest:
    """Requester withdraws a pending request."""

    async def test_cancel_deletes_pending_request(self, workflow, room, cosmos) -> None:
        await workflow.request_to_join(room.id, CAROL_ID)

        await workflow.cancel_join_request(room.id, CAROL_ID)

        assert _of_type(cosmos, NotificationType.JOIN_REQUEST_RECEIVED) == []

    async def test_cancel_without_request(self, workflow, room) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await workflow.cancel_join_request(room.id, CAROL_ID)
        assert exc_info.value.reason == Reason.JOIN_REQUEST_NOT_FOUND

    async def test_cancel_after_resolution_fails(self, workflow, room) -> None:
        request = await workflow.request_to_join(room.id, CAROL_ID)
        await workflow.resolve_join_request(request.id, ADMIN_ID, "approve")

        with pytest.raises(NotFoundError):
            await workflow.cancel_join_request(room.id, CAROL_ID)

    async def test_cancel_racing_approval_has_one_winner(self, workflow, room, room_repo) -> None:
        request = await workflow.request_to_join(room.id, CAROL_ID)

        approve, cancel = await asyncio.gather(
            workflow.resolve_join_request(request.id, ADMIN_ID, "approve"),
            workflow.cancel_join_request(room.id, CAROL_ID),
            return_exceptions=True,
        )

        approved = not isinstance(approve, Exception)
        cancelled = not isinstance(cancel, Exception)
        assert approved != cancelled
        is_member = (await room_repo.get_by_id(room.id)).has_member(CAROL_ID)
        assert is_member == approved


@pytest.mark.unit
class TestLeaveRoom:
    """Members may leave; the admin may not."""

    async def test_member_leaves(self, workflow, room) -> None:
        updated = await workflow.leave_room(room.id, BOB_ID)
        assert not updated.has_member(BOB_ID)

    async def test_admin_cannot_leave(self, workflow, room) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            await workflow.leave_room(room.id, ADMIN_ID)
        assert exc_info.value.reason == Reason.ADMIN_CANNOT_LEAVE

    async def test_non_member_cannot_leave(self, workflow, room) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await workflow.leave_room(room.id, OUTSIDER_ID)
        assert exc_info.value.reason == Reason.NOT_A_MEMBER
