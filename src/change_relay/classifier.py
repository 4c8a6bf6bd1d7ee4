"""Change classification for record writes.

Every write delivered by the trigger source is a ``(before, after)`` pair.
This module labels the pair as a creation, update or deletion and decides
what the relay should do about the watched input field:

    CREATE  input present            -> PROCESS
    CREATE  input absent             -> SKIP
    UPDATE  input unchanged          -> SKIP
    UPDATE  input changed, present   -> PROCESS
    UPDATE  input changed, absent    -> CLEAR_OUTPUT
    UPDATE  input absent both sides  -> SKIP
    DELETE                           -> SKIP

A field counts as present when it exists and is not None.
"""

from dataclasses import dataclass
from enum import Enum

from change_relay.models import Change


class ChangeType(str, Enum):
    """Kind of write observed on a record."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Action(str, Enum):
    """What the relay does in response to a change."""

    SKIP = "SKIP"
    PROCESS = "PROCESS"
    CLEAR_OUTPUT = "CLEAR_OUTPUT"


@dataclass(frozen=True)
class Decision:
    """Outcome of classifying a change.

    Attributes:
        change_type: CREATE, UPDATE or DELETE.
        action: What to do with the record.
        event: Log event name describing why.
    """

    change_type: ChangeType
    action: Action
    event: str


def classify(change: Change) -> ChangeType:
    """Label a change as a creation, deletion or update.

    Args:
        change: The ``(before, after)`` pair.

    Returns:
        DELETE if ``after`` does not exist, CREATE if only ``after`` exists,
        UPDATE otherwise.
    """
    if not change.after.exists:
        return ChangeType.DELETE
    if not change.before.exists:
        return ChangeType.CREATE
    return ChangeType.UPDATE


def decide(change: Change, input_field: str) -> Decision:
    """Classify a change and decide the action for the watched input field.

    Args:
        change: The ``(before, after)`` pair.
        input_field: Name of the watched input field.

    Returns:
        The decision, carrying the log event that explains it.
    """
    change_type = classify(change)

    if change_type is ChangeType.DELETE:
        return Decision(change_type, Action.SKIP, "document.deleted")

    input_after = change.after.get(input_field)

    if change_type is ChangeType.CREATE:
        if input_after is not None:
            return Decision(change_type, Action.PROCESS, "document.created_with_input")
        return Decision(change_type, Action.SKIP, "document.created_no_input")

    input_before = change.before.get(input_field)

    if input_after == input_before:
        if input_after is None:
            return Decision(change_type, Action.SKIP, "document.updated_no_input")
        return Decision(change_type, Action.SKIP, "document.updated_unchanged_input")
    if input_after is not None:
        return Decision(change_type, Action.PROCESS, "document.updated_changed_input")
    return Decision(change_type, Action.CLEAR_OUTPUT, "document.updated_deleted_input")
