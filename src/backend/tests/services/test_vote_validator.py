"""
Tests for vote validation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import AuthorizationError, ConflictError, Reason, ValidationError
from models.cosmos_documents import (
    BallotChoiceDocument,
    BallotDocument,
    MemberRole,
    RoomDocument,
    RoomMember,
)
from services.vote_validator import check_window, normalize_selection, validate_vote

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def room() -> RoomDocument:
    return RoomDocument(
        id="room-1",
        name="Room",
        admin_id="admin",
        members=[RoomMember(user_id="bob", role=MemberRole.VOTER)],
    )


@pytest.fixture
def ballot() -> BallotDocument:
    return BallotDocument(
        id="ballot-1",
        room_id="room-1",
        title="Pick",
        choices=[
            BallotChoiceDocument(id="c1", text="A"),
            BallotChoiceDocument(id="c2", text="B"),
            BallotChoiceDocument(id="c3", text="C"),
        ],
        start_time=NOW - timedelta(hours=1),
        end_time=NOW + timedelta(hours=1),
        max_choices_per_voter=2,
    )


def _reason(exc_info: pytest.ExceptionInfo) -> str:
    return exc_info.value.reason


@pytest.mark.unit
class TestNormalizeSelection:
    """Shape checks on the requested choice ids."""

    def test_single_id_becomes_list(self) -> None:
        assert normalize_selection("c1") == ["c1"]

    def test_duplicates_collapse_in_order(self) -> None:
        assert normalize_selection(["c2", "c1", "c2"]) == ["c2", "c1"]

    @pytest.mark.parametrize("selection", [None, [], ""])
    def test_empty_selection_is_invalid(self, selection) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_selection(selection)
        assert _reason(exc_info) == Reason.INVALID_SELECTION

    def test_blank_entry_is_invalid(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_selection(["c1", "  "])
        assert _reason(exc_info) == Reason.INVALID_SELECTION

    def test_null_entry_is_invalid(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_selection(["c1", None])
        assert _reason(exc_info) == Reason.INVALID_SELECTION

    def test_any_iterable_is_unpacked(self) -> None:
        assert normalize_selection(("c1", "c2")) == ["c1", "c2"]
        assert normalize_selection(cid for cid in ["c3", "c1"]) == ["c3", "c1"]
        assert normalize_selection({"c1"}) == ["c1"]


@pytest.mark.unit
class TestVotingWindow:
    """Window bounds are inclusive."""

    def test_exact_start_and_end_are_open(self, ballot: BallotDocument) -> None:
        check_window(ballot, ballot.start_time)
        check_window(ballot, ballot.end_time)

    def test_before_start_is_rejected(self, ballot: BallotDocument) -> None:
        with pytest.raises(ValidationError) as exc_info:
            check_window(ballot, ballot.start_time - timedelta(seconds=1))
        assert _reason(exc_info) == Reason.VOTING_NOT_STARTED

    def test_after_end_is_rejected(self, ballot: BallotDocument) -> None:
        with pytest.raises(ValidationError) as exc_info:
            check_window(ballot, ballot.end_time + timedelta(seconds=1))
        assert _reason(exc_info) == Reason.VOTING_CLOSED

    def test_unbounded_window_is_always_open(self) -> None:
        ballot = BallotDocument(room_id="r", title="t")
        check_window(ballot, NOW)


@pytest.mark.unit
class TestValidateVote:
    """Order and outcome of the full validation."""

    def test_valid_vote_returns_selection(self, ballot: BallotDocument, room: RoomDocument) -> None:
        assert validate_vote(ballot, room, "bob", ["c1", "c3"], now=NOW) == ["c1", "c3"]

    def test_linkage_checked_first(self, ballot: BallotDocument, room: RoomDocument) -> None:
        ballot.room_id = "other-room"
        with pytest.raises(ValidationError) as exc_info:
            validate_vote(ballot, room, "stranger", [], now=NOW - timedelta(days=1))
        assert _reason(exc_info) == Reason.LINKAGE_MISMATCH

    def test_non_member_rejected_before_window(self, ballot: BallotDocument, room: RoomDocument) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            validate_vote(ballot, room, "stranger", ["c1"], now=NOW - timedelta(days=1))
        assert _reason(exc_info) == Reason.NOT_A_MEMBER

    def test_window_checked_before_selection(self, ballot: BallotDocument, room: RoomDocument) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_vote(ballot, room, "bob", [], now=NOW + timedelta(days=1))
        assert _reason(exc_info) == Reason.VOTING_CLOSED

    def test_too_many_choices(self, ballot: BallotDocument, room: RoomDocument) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_vote(ballot, room, "bob", ["c1", "c2", "c3"], now=NOW)
        assert _reason(exc_info) == Reason.TOO_MANY_CHOICES

    def test_duplicates_do_not_count_against_bound(self, ballot: BallotDocument, room: RoomDocument) -> None:
        assert validate_vote(ballot, room, "bob", ["c1", "c1", "c2"], now=NOW) == ["c1", "c2"]

    def test_unknown_choice(self, ballot: BallotDocument, room: RoomDocument) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_vote(ballot, room, "bob", ["c9"], now=NOW)
        assert _reason(exc_info) == Reason.UNKNOWN_CHOICE

    def test_already_voted_is_checked_last(self, ballot: BallotDocument, room: RoomDocument) -> None:
        ballot.record_vote("bob", ["c1"])
        with pytest.raises(ValidationError):
            validate_vote(ballot, room, "bob", ["c9"], now=NOW)
        with pytest.raises(ConflictError) as exc_info:
            validate_vote(ballot, room, "bob", ["c2"], now=NOW)
        assert _reason(exc_info) == Reason.ALREADY_VOTED

    def test_admin_may_vote(self, ballot: BallotDocument, room: RoomDocument) -> None:
        assert validate_vote(ballot, room, "admin", "c2", now=NOW) == ["c2"]
