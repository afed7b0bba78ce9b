"""Conversation store: the append-only transcript."""

from __future__ import annotations

from typing import Iterator

from kellz_math.models import Action, Sender, Turn


class Transcript:
    """Ordered turns. Insertion order is display order; nothing is removed.

    Ids are sequential per transcript, so replaying the same actions gives
    the same transcript.
    """

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    def _append(self, sender: Sender, text: str, **fields) -> Turn:
        turn = Turn(id=str(len(self._turns) + 1), sender=sender, text=text, **fields)
        self._turns.append(turn)
        return turn

    def add_user(
        self,
        text: str,
        image: str | None = None,
        is_correct_answer: bool | None = None,
    ) -> Turn:
        return self._append(
            Sender.user, text, image=image, is_correct_answer=is_correct_answer
        )

    def add_assistant(
        self,
        text: str,
        actions: list[Action] | None = None,
        requesting_work: bool = False,
    ) -> Turn:
        return self._append(
            Sender.assistant,
            text,
            actions=list(actions or []),
            requesting_work=requesting_work,
        )

    def user_turn_count(self) -> int:
        return sum(1 for t in self._turns if t.sender == Sender.user)

    def since(self, count: int) -> list[Turn]:
        """Turns appended after the first `count`."""
        return self._turns[count:]
