"""
Scoring & handicap engine.

Pure functions only: stroke allocation per hole, Stableford points, net double
bogey adjusted score, handicap differential and the rolling handicap index.
Nothing here touches the database or logs; callers decide what to do with the
errors raised below.
"""
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, Mapping, Optional, Sequence

HOLES_PER_ROUND = 18
STANDARD_SLOPE = 113
INDEX_WINDOW = 20          # only the newest 20 differentials count
MIN_ROUNDS_FOR_INDEX = 5
MAX_DIFFERENTIALS_USED = 8
MAX_STABLEFORD_POINTS = 5


# --------------------------------------------------------------------------------
# ------------------------------------ Errors ------------------------------------
# --------------------------------------------------------------------------------

class ScoringError(ValueError):
    """Base class for everything the engine refuses to compute."""


class IncompleteRoundError(ScoringError):
    def __init__(self, missing_holes: Sequence[int]):
        self.missing_holes = sorted(missing_holes)
        super().__init__(
            "round is incomplete, missing strokes for holes: "
            + ", ".join(str(n) for n in self.missing_holes)
        )


class InvalidRatingError(ScoringError):
    def __init__(self, slope_rating):
        self.slope_rating = slope_rating
        super().__init__(f"slope rating must be positive, got {slope_rating}")


class UnscoredHoleError(ScoringError):
    """A hole with 0 strokes has not been played and cannot be scored."""


# --------------------------------------------------------------------------------
# ------------------------------------ Results -----------------------------------
# --------------------------------------------------------------------------------

@dataclass(frozen=True)
class HoleResult:
    strokes: int
    par: int
    additional_strokes: int
    points: int
    adjusted_strokes: int


@dataclass(frozen=True)
class HoleScoreLine:
    number: int
    par: int
    stroke_index: int
    strokes: int
    additional_strokes: int
    gross_points: int
    net_points: int
    adjusted_strokes: int


@dataclass(frozen=True)
class RoundResult:
    total_strokes: int
    gross_score: int
    net_score: int
    adjusted_score: int
    handicap_differential: Optional[Decimal]
    holes: tuple


# --------------------------------------------------------------------------------
# ------------------------------------ Helpers -----------------------------------
# --------------------------------------------------------------------------------

def to_decimal(value) -> Decimal:
    # str() first so 20.7 stays 20.7 instead of its binary expansion
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    if not d.is_finite():
        raise ScoringError(f"not a finite number: {value}")
    return d


def round_half_away(value, places: int = 0) -> Decimal:
    """Round half away from zero (2.5 -> 3, -2.5 -> -3)."""
    exp = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exp, rounding=ROUND_HALF_UP)


# --------------------------------------------------------------------------------
# ------------------------------ Stroke allocation -------------------------------
# --------------------------------------------------------------------------------

def allocate_strokes(handicap_value, difficulty_ranks: Iterable[int]) -> dict[int, int]:
    """
    Spread a handicap over the holes by difficulty rank (1 = hardest).

    Returns {rank: strokes}. Every hole gets |H| // 18 strokes and the
    |H| % 18 hardest holes one more. A negative handicap gives negative
    strokes on the same holes; real handicapping does not work that way,
    it is kept on purpose (see DESIGN.md).
    """
    h = int(round_half_away(handicap_value))
    sign = -1 if h < 0 else 1
    base, extra = divmod(abs(h), HOLES_PER_ROUND)

    received = {rank: base for rank in difficulty_ranks}
    for rank in range(1, extra + 1):
        if rank in received:
            received[rank] += 1

    return {rank: sign * n for rank, n in received.items()}


def strokes_received_per_hole(handicap_value, holes) -> dict[int, int]:
    """
    holes: objects with number and stroke_index
    returns {hole_number: strokes received}
    """
    by_rank = allocate_strokes(handicap_value, [h.stroke_index for h in holes])
    return {h.number: by_rank[h.stroke_index] for h in holes}


# --------------------------------------------------------------------------------
# ---------------------------------- Hole scoring --------------------------------
# --------------------------------------------------------------------------------

def stableford_points(strokes: int, par: int) -> int:
    # 2 for par, one more per stroke under (max 5), one less per stroke over (min 0)
    # an ace takes the maximum unless received strokes pushed the par below 3
    if strokes == 1 and par >= 3:
        return MAX_STABLEFORD_POINTS
    return max(0, min(MAX_STABLEFORD_POINTS, 2 - (strokes - par)))


def score_hole(strokes: int, par: int, additional_strokes: int = 0) -> HoleResult:
    if strokes < 1:
        raise UnscoredHoleError(f"hole has {strokes} strokes recorded")

    effective_par = par + additional_strokes
    net_double_bogey = effective_par + 2

    return HoleResult(
        strokes=strokes,
        par=par,
        additional_strokes=additional_strokes,
        points=stableford_points(strokes, effective_par),
        adjusted_strokes=min(strokes, net_double_bogey),
    )


# --------------------------------------------------------------------------------
# --------------------------------- Round scoring --------------------------------
# --------------------------------------------------------------------------------

def missing_holes(holes, strokes_by_hole: Mapping[int, int]) -> list[int]:
    numbers = {h.number for h in holes}
    missing = [n for n in range(1, HOLES_PER_ROUND + 1) if n not in numbers]
    missing += [h.number for h in holes if (strokes_by_hole.get(h.number) or 0) < 1]
    return sorted(missing)


def score_round(
    holes,
    strokes_by_hole: Mapping[int, int],
    handicap_index=None,
    course_rating=None,
    slope_rating: Optional[int] = None,
) -> RoundResult:
    """
    Score a full 18-hole card.

    Gross points are always against the real par. Net points and the
    adjusted score use the strokes received from `handicap_index`; without
    an index nobody receives strokes and net equals gross. The differential
    is filled in only when both ratings are given.
    """
    holes = sorted(holes, key=lambda h: h.number)

    missing = missing_holes(holes, strokes_by_hole)
    if missing:
        raise IncompleteRoundError(missing)

    if handicap_index is None:
        received = {h.number: 0 for h in holes}
    else:
        received = strokes_received_per_hole(handicap_index, holes)

    total_strokes = gross_score = net_score = adjusted_score = 0
    lines = []

    for h in holes:
        strokes = int(strokes_by_hole[h.number])
        gross = score_hole(strokes, h.par)
        net = score_hole(strokes, h.par, received[h.number])

        total_strokes += strokes
        gross_score += gross.points
        net_score += net.points
        adjusted_score += net.adjusted_strokes

        lines.append(HoleScoreLine(
            number=h.number,
            par=h.par,
            stroke_index=h.stroke_index,
            strokes=strokes,
            additional_strokes=received[h.number],
            gross_points=gross.points,
            net_points=net.points,
            adjusted_strokes=net.adjusted_strokes,
        ))

    differential = None
    if course_rating is not None and slope_rating is not None:
        differential = handicap_differential(adjusted_score, course_rating, slope_rating)

    return RoundResult(
        total_strokes=total_strokes,
        gross_score=gross_score,
        net_score=net_score,
        adjusted_score=adjusted_score,
        handicap_differential=differential,
        holes=tuple(lines),
    )


# --------------------------------------------------------------------------------
# ---------------------------------- Differential --------------------------------
# --------------------------------------------------------------------------------

def handicap_differential(adjusted_score: int, course_rating, slope_rating: int) -> Decimal:
    """(113 / slope) * (adjusted score - course rating), unrounded."""
    if slope_rating is None or slope_rating <= 0:
        raise InvalidRatingError(slope_rating)

    diff = Decimal(adjusted_score) - to_decimal(course_rating)
    return diff * STANDARD_SLOPE / Decimal(slope_rating)


# --------------------------------------------------------------------------------
# --------------------------------- Handicap index -------------------------------
# --------------------------------------------------------------------------------

def default_selection_count(n: int) -> int:
    # half of the rounds, at least 1, never more than 8 (so 8 from 16 rounds on)
    return max(1, min(MAX_DIFFERENTIALS_USED, n // 2))


def best_eight_selection_count(n: int) -> int:
    # 8 as soon as 8 rounds exist, half of them before that
    if n >= MAX_DIFFERENTIALS_USED:
        return MAX_DIFFERENTIALS_USED
    return max(1, n // 2)


SELECTION_POLICIES = {
    "half": default_selection_count,
    "best8": best_eight_selection_count,
}


def handicap_index(
    differentials: Iterable,
    selection: Callable[[int], int] = default_selection_count,
) -> Optional[Decimal]:
    """
    Handicap index from a player's differentials, newest first.

    Only the newest 20 are considered. Returns None while fewer than 5
    exist: "no index yet" is not the same as a scratch player.
    """
    recent = [to_decimal(d) for d in list(differentials)[:INDEX_WINDOW]]
    n = len(recent)
    if n < MIN_ROUNDS_FOR_INDEX:
        return None

    count = selection(n)
    if not 1 <= count <= n:
        raise ValueError(f"selection policy picked {count} of {n} differentials")

    best = sorted(recent)[:count]
    return round_half_away(sum(best) / count, 1)


# --------------------------------------------------------------------------------
# ---------------------------------- Summaries -----------------------------------
# --------------------------------------------------------------------------------

def par_breakdown(holes) -> dict[int, int]:
    counts = Counter(h.par for h in holes)
    return {par: counts.get(par, 0) for par in (3, 4, 5)}


def score_to_par_counts(lines: Iterable[HoleScoreLine]) -> dict[str, int]:
    """Gross result per hole against par. A hole in one counts only as hio."""
    counts = dict.fromkeys(
        ("hio", "albatross", "eagles", "birdies", "pars", "bogeys", "double_bogeys", "worse"), 0
    )
    for line in lines:
        if line.strokes == 1:
            counts["hio"] += 1
            continue
        d = line.strokes - line.par
        if d <= -3: counts["albatross"] += 1
        elif d == -2: counts["eagles"] += 1
        elif d == -1: counts["birdies"] += 1
        elif d == 0: counts["pars"] += 1
        elif d == 1: counts["bogeys"] += 1
        elif d == 2: counts["double_bogeys"] += 1
        else: counts["worse"] += 1
    return counts
