"""
Round-robin scheduling for squads within a session.

Uses the circle method: one participant stays fixed while the others rotate,
so every pair meets exactly once and nobody plays twice in the same round.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

BYE = "BYE"


@dataclass(frozen=True)
class Pairing:
    """A single match between two squads."""
    squad_a_id: str
    squad_b_id: str

    def as_set(self) -> frozenset:
        return frozenset((self.squad_a_id, self.squad_b_id))


Round = List[Pairing]
Schedule = List[Round]


@dataclass(frozen=True)
class ScheduledSlot:
    """A pairing placed at a session-wide game number within a session round."""
    game_number: int
    round_no: int
    pairing: Pairing


def generate_schedule(participants: Sequence[str]) -> Schedule:
    """
    Build a round-robin schedule with the circle method.

    An odd field gets a synthetic bye; pairings against it are dropped, so in
    those rounds one participant sits out. Duplicate ids are not rejected.

    Args:
        participants: Participant ids in seeding order

    Returns:
        ``n - 1`` rounds for a working field of size ``n``, or an empty list
        for fewer than two participants
    """
    if len(participants) < 2:
        return []

    slots = list(participants)
    if len(slots) % 2 == 1:
        slots.append(BYE)

    n = len(slots)
    rounds: Schedule = []
    for _ in range(n - 1):
        round_pairs: Round = []
        for i in range(n // 2):
            home = slots[i]
            away = slots[n - 1 - i]
            if home != BYE and away != BYE:
                round_pairs.append(Pairing(squad_a_id=home, squad_b_id=away))
        rounds.append(round_pairs)

        # Slot 0 stays put; the last slot moves to position 1.
        slots.insert(1, slots.pop())

    return rounds


def number_games(
    rounds_of_squads: Sequence[Sequence[str]],
    start: int = 1,
) -> List[ScheduledSlot]:
    """
    Lay out a session's games across its rounds.

    Each entry of ``rounds_of_squads`` lists the squads playing in that
    session round (round numbers are 1-based). The squads of a round play a
    full round-robin and games are numbered consecutively across the session.
    Rounds with fewer than two squads produce no games.
    """
    slots: List[ScheduledSlot] = []
    game_number = start
    for index, squad_ids in enumerate(rounds_of_squads):
        for round_pairs in generate_schedule(squad_ids):
            for pairing in round_pairs:
                slots.append(ScheduledSlot(
                    game_number=game_number,
                    round_no=index + 1,
                    pairing=pairing,
                ))
                game_number += 1
    return slots


def num_pairings(participant_count: int) -> int:
    """Number of games in a full round-robin over ``participant_count`` entrants."""
    return participant_count * (participant_count - 1) // 2


__all__ = [
    "BYE",
    "Pairing",
    "Round",
    "Schedule",
    "ScheduledSlot",
    "generate_schedule",
    "number_games",
    "num_pairings",
]
