from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

MAX_POINTS = 1000
MIN_POINTS = 500


def calculate_score(time_taken: float, time_budget: float) -> int:
    """Points for a correct answer given after ``time_taken`` seconds.

    An instant answer earns MAX_POINTS; the award falls linearly to
    MIN_POINTS at the end of the budget. Answers at or past the budget
    still earn MIN_POINTS, the session decides what counts as late.
    """
    if time_budget <= 0:
        raise ValueError('time_budget must be positive')
    elapsed = min(max(time_taken, 0.0), float(time_budget))
    points = MAX_POINTS - (MAX_POINTS - MIN_POINTS) * (elapsed / time_budget)
    return max(MIN_POINTS, min(MAX_POINTS, int(round(points))))


def points_for(correct: bool, time_taken: Optional[float], time_budget: float) -> int:
    if not correct or time_taken is None:
        return 0
    return calculate_score(time_taken, time_budget)


@dataclass(frozen=True)
class Outcome:
    correct: bool
    points: int


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    username: str
    score: int
    last_correct: Optional[bool] = None
    last_points: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'rank': self.rank,
            'username': self.username,
            'score': self.score,
            'last_correct': self.last_correct,
            'last_points': self.last_points,
        }


def build_leaderboard(players: Iterable, results: Dict[str, Outcome]) -> List[LeaderboardEntry]:
    """Order players by score, highest first; join order breaks ties.

    ``players`` are objects with ``sid``, ``username``, ``score`` and
    ``join_seq``. ``results`` holds the latest closed question's outcome
    keyed by sid.
    """
    ordered = sorted(players, key=lambda p: (-p.score, p.join_seq))
    board = []
    for rank, p in enumerate(ordered, start=1):
        outcome = results.get(p.sid)
        board.append(LeaderboardEntry(
            rank=rank,
            username=p.username,
            score=p.score,
            last_correct=outcome.correct if outcome else None,
            last_points=outcome.points if outcome else None,
        ))
    return board
