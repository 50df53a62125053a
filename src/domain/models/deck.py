"""
Active deck domain model.

A fixed number of ordered slots, each empty (``None``) or holding a unique
skill card id the player owns. Toggling is the only mutation: a card already
in the deck is removed (its slot becomes a hole), otherwise it fills the
lowest-index empty slot. Slot order, holes included, round-trips through
persistence unchanged.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from src.domain.models.cards import CardCollection, CardKind
from src.modules.shared.exceptions import (
    DeckFullError,
    InvariantViolationError,
    ValidationError,
)


class ActiveDeck:
    """
    Ordered, fixed-capacity, duplicate-free selection of skill cards.

    Parameters
    ----------
    capacity : int
        Number of slots (``deck.capacity``)
    slots : Sequence[Optional[str]], optional
        Stored slot contents; shorter sequences are padded with holes

    Raises
    ------
    InvariantViolationError
        If the stored slots hold duplicates or more cards than fit
    """

    def __init__(self, capacity: int, slots: Optional[Sequence[Optional[str]]] = None) -> None:
        if capacity <= 0:
            raise ValidationError("capacity", f"deck capacity must be positive, got {capacity}")
        self._capacity = capacity

        stored = list(slots or [])
        if len(stored) > capacity:
            overflow = [card for card in stored[capacity:] if card is not None]
            if overflow:
                raise InvariantViolationError(
                    "deck holds at most capacity cards",
                    {"capacity": capacity, "slots": stored},
                )
            stored = stored[:capacity]

        cards = [card for card in stored if card is not None]
        if len(cards) != len(set(cards)):
            raise InvariantViolationError("deck ids unique", {"slots": stored})

        self._slots: List[Optional[str]] = stored + [None] * (capacity - len(stored))

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def slots(self) -> Tuple[Optional[str], ...]:
        return tuple(self._slots)

    @property
    def cards(self) -> List[str]:
        return [card for card in self._slots if card is not None]

    @property
    def is_full(self) -> bool:
        return None not in self._slots

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._slots

    def __len__(self) -> int:
        return len(self.cards)

    def toggle(self, card_id: str, collection: CardCollection) -> Tuple[bool, int]:
        """
        Remove the card if present, else place it in the first empty slot.

        Returns
        -------
        Tuple[bool, int]
            ``(added, slot_index)``

        Raises
        ------
        DeckFullError
            Card not in deck and every slot is filled
        NotFoundError
            Card not owned
        ValidationError
            Card is a character, not a skill
        """
        if card_id in self._slots:
            index = self._slots.index(card_id)
            self._slots[index] = None
            return False, index

        if self.is_full:
            raise DeckFullError(self._capacity)

        record = collection.require(card_id)
        if record.kind is not CardKind.SKILL:
            raise ValidationError("card_id", f"{card_id} is not a skill card")

        index = self._slots.index(None)
        self._slots[index] = card_id
        return True, index

    def to_list(self) -> List[Optional[str]]:
        return list(self._slots)

    def __repr__(self) -> str:
        return f"ActiveDeck(capacity={self._capacity}, slots={self._slots!r})"
