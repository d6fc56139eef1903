"""
Recipient selection for container encryption.

A RecipientSet is either SelfOnly (encrypt to the sender's own key) or
Explicit (a fixed, non-empty set of recipients). Recipients are reduced
to (id, public encryption key) references as soon as they are chosen, so
no private key material crosses into the encryption step.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidRecipients


@dataclass(frozen=True)
class Recipient:
    id: str
    public_encryption_key: str


class RecipientSet(ABC):
    """Base of the two recipient selections."""

    @abstractmethod
    def key_map(self, sender: Recipient) -> Dict[str, str]:
        """Recipient id -> PEM public encryption key."""
        pass

    @staticmethod
    def self_only() -> "SelfOnly":
        return SelfOnly()

    @staticmethod
    def explicit(members: Iterable) -> "Explicit":
        """
        Build an explicit set from entities or Recipient references.

        Raises:
            InvalidRecipients: Not an iterable of entities, empty, or the
                same id given with two different keys
        """
        if isinstance(members, (str, bytes, Mapping)) or not isinstance(members, Iterable):
            raise InvalidRecipients(
                f"Recipients must be entities, got {type(members).__name__}",
                step="encrypt",
            )

        by_id: Dict[str, Recipient] = {}
        for member in members:
            recipient = _as_recipient(member)
            existing = by_id.get(recipient.id)
            if existing is not None and existing != recipient:
                raise InvalidRecipients(
                    f"Recipient {recipient.id} given with conflicting keys", step="encrypt"
                )
            by_id[recipient.id] = recipient

        if not by_id:
            raise InvalidRecipients("Recipient set is empty", step="encrypt")
        return Explicit(tuple(by_id[k] for k in sorted(by_id)))


@dataclass(frozen=True)
class SelfOnly(RecipientSet):
    def key_map(self, sender: Recipient) -> Dict[str, str]:
        return {sender.id: sender.public_encryption_key}


@dataclass(frozen=True)
class Explicit(RecipientSet):
    members: Tuple[Recipient, ...]

    def key_map(self, sender: Recipient) -> Dict[str, str]:
        return {r.id: r.public_encryption_key for r in self.members}


def _as_recipient(member: Any) -> Recipient:
    if isinstance(member, Recipient):
        recipient = member
    elif callable(getattr(member, "as_recipient", None)):
        recipient = member.as_recipient()
    else:
        raise InvalidRecipients(
            f"Recipient must be an entity, got {type(member).__name__}", step="encrypt"
        )
    if not recipient.id or not recipient.public_encryption_key:
        raise InvalidRecipients(
            "Recipient has no id or no public encryption key", step="encrypt"
        )
    return recipient


def resolve_recipients(recipients: Optional[Any]) -> RecipientSet:
    """
    Normalize the recipients argument of Entity.encrypt.

    None selects the sender itself; a RecipientSet is used as given; any
    other iterable is treated as a collection of entities.
    """
    if recipients is None:
        return SelfOnly()
    if isinstance(recipients, RecipientSet):
        if isinstance(recipients, Explicit) and not recipients.members:
            raise InvalidRecipients("Recipient set is empty", step="encrypt")
        return recipients
    return RecipientSet.explicit(recipients)
