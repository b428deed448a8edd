"""
Vote validation.

Pure functions deciding whether a requested selection may be recorded on a
ballot. Checks run in a fixed order and the first failure wins:

1. the ballot belongs to the room
2. the voter is a room member
3. the voting window is open
4. the selection is well-formed and within ``max_choices_per_voter``
5. every selected choice exists on the ballot
6. the voter has not voted yet

Steps 5 and 6 are repeated by ``BallotDocument.record_vote`` against the copy
that is actually written, which is what makes the vote exactly-once under
concurrency; running them here as well keeps rejections cheap and ordered.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

from core.exceptions import (
    AuthorizationError,
    ConflictError,
    Reason,
    ValidationError,
)
from models.cosmos_documents import BallotDocument, RoomDocument

ChoiceSelection = Union[str, Iterable[Optional[str]]]


def normalize_selection(choice_id_or_ids: Any) -> list[str]:
    """
    Turn a single id or any iterable of ids into a de-duplicated list of ids.

    Raises:
        ValidationError: The selection is empty or contains a blank entry.
    """
    if choice_id_or_ids is None:
        raw: list[Any] = []
    elif isinstance(choice_id_or_ids, str) or not isinstance(choice_id_or_ids, Iterable):
        raw = [choice_id_or_ids]
    else:
        raw = list(choice_id_or_ids)

    if not raw:
        raise ValidationError("No choice selected", Reason.INVALID_SELECTION)

    selection: list[str] = []
    for entry in raw:
        choice_id = "" if entry is None else str(entry).strip()
        if not choice_id:
            raise ValidationError("Invalid choice ID provided", Reason.INVALID_SELECTION)
        if choice_id not in selection:
            selection.append(choice_id)
    return selection


def check_window(ballot: BallotDocument, now: datetime) -> None:
    """Reject votes outside ``[start_time, end_time]``."""
    if ballot.start_time is not None and now < ballot.start_time:
        raise ValidationError("Voting has not started yet", Reason.VOTING_NOT_STARTED)
    if ballot.end_time is not None and now > ballot.end_time:
        raise ValidationError("Voting has ended", Reason.VOTING_CLOSED)


def validate_vote(
    ballot: BallotDocument,
    room: RoomDocument,
    voter_id: str,
    choice_id_or_ids: ChoiceSelection,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    Decide whether ``voter_id`` may cast ``choice_id_or_ids`` on ``ballot``.

    Returns:
        The normalized selection to record.

    Raises:
        ValidationError, AuthorizationError, ConflictError: with the reason
            of the first failed check.
    """
    now = now or datetime.now(timezone.utc)

    if ballot.room_id != room.id:
        raise ValidationError("Ballot does not belong to this room", Reason.LINKAGE_MISMATCH)

    if not room.has_member(voter_id):
        raise AuthorizationError("You must be a member of the room to vote", Reason.NOT_A_MEMBER)

    check_window(ballot, now)

    selection = normalize_selection(choice_id_or_ids)
    if len(selection) > ballot.max_choices_per_voter:
        raise ValidationError(
            f"You can select up to {ballot.max_choices_per_voter} choices",
            Reason.TOO_MANY_CHOICES,
        )

    known = set(ballot.choice_ids)
    if any(choice_id not in known for choice_id in selection):
        raise ValidationError("Invalid choice ID provided", Reason.UNKNOWN_CHOICE)

    if ballot.has_voted(voter_id):
        raise ConflictError("You have already voted on this ballot.", Reason.ALREADY_VOTED)

    return selection
