"""Display name resolution for message senders."""

from memoria.compaction.types import (
    GENERIC_SENDER_LABELS,
    SenderKind,
    SessionSnapshot,
)


def generic_label(sender_kind: SenderKind | str) -> str:
    """Fallback label for a sender kind."""
    return GENERIC_SENDER_LABELS.get(sender_kind, "Character")


def build_name_maps(snapshot: SessionSnapshot) -> tuple[dict[str, str], dict[str, str]]:
    """
    Build lookup tables from a session snapshot.

    Human senders are keyed by user id, characters and assistants by
    participant id. A representing character wins over an acting one.

    Args:
        snapshot: Session participants.

    Returns:
        Tuple of (user names, participant names).
    """
    user_names: dict[str, str] = {}
    participant_names: dict[str, str] = {}

    for p in snapshot.participants:
        if p.user_id:
            user_names[p.user_id] = _first_non_empty(
                p.display_name, p.username
            ) or generic_label("user")

        entity_name = _first_non_empty(
            p.representing_character, p.acting_character, p.assistant
        )
        if entity_name:
            participant_names[p.participant_id] = entity_name

    return user_names, participant_names


def _first_non_empty(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


class NameResolver:
    """
    Resolves sender ids to display names for one snapshot.

    Lookup tables are built once; resolution never fails and never
    returns an empty string.
    """

    def __init__(self, snapshot: SessionSnapshot):
        self.snapshot = snapshot
        self._user_names, self._participant_names = build_name_maps(snapshot)

    def resolve(self, sender_id: str, sender_kind: SenderKind | str) -> str:
        if sender_kind == "user":
            name = self._user_names.get(sender_id)
        else:
            name = self._participant_names.get(sender_id)
        return name or generic_label(sender_kind)


def resolve_display_name(
    sender_id: str,
    sender_kind: SenderKind | str,
    snapshot: SessionSnapshot,
) -> str:
    """
    Resolve a single sender's display name.

    Args:
        sender_id: User id for human senders, participant id otherwise.
        sender_kind: Kind of sender.
        snapshot: Session participants.

    Returns:
        Display name, or a generic label for the sender kind.
    """
    return NameResolver(snapshot).resolve(sender_id, sender_kind)
