from datetime import date, datetime
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, FiniteFloat, field_validator, model_validator

from .golf_calc import HOLES_PER_ROUND, InvalidRatingError

MIN_SLOPE = 55
MAX_SLOPE = 155


# --------------------------------------------------------------------------------
# ----------------------------------- Players ------------------------------------
# --------------------------------------------------------------------------------

class PlayerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class PlayerUpdate(PlayerCreate):
    pass


class PlayerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    current_handicap: Optional[float] = None
    created_at: datetime
    updated_at: datetime


# --------------------------------------------------------------------------------
# ----------------------------------- Courses ------------------------------------
# --------------------------------------------------------------------------------

class HoleCreate(BaseModel):
    number: int = Field(ge=1, le=HOLES_PER_ROUND)
    par: int = Field(ge=3, le=5)
    stroke_index: int = Field(ge=1, le=HOLES_PER_ROUND)


class HoleOut(HoleCreate):
    model_config = ConfigDict(from_attributes=True)


class HoleLayout(BaseModel):
    """18 holes, numbers 1..18 and stroke indexes a permutation of 1..18."""

    holes: list[HoleCreate]

    @field_validator("holes")
    @classmethod
    def check_layout(cls, holes: list[HoleCreate]):
        expected = set(range(1, HOLES_PER_ROUND + 1))
        if len(holes) != HOLES_PER_ROUND:
            raise ValueError(f"a course has {HOLES_PER_ROUND} holes, got {len(holes)}")
        if {h.number for h in holes} != expected:
            raise ValueError("hole numbers must be 1..18, each once")
        if {h.stroke_index for h in holes} != expected:
            raise ValueError("stroke indexes must be 1..18, each once")
        return sorted(holes, key=lambda h: h.number)


def check_slope(slope_rating: int) -> int:
    if slope_rating <= 0:
        raise InvalidRatingError(slope_rating)
    if not MIN_SLOPE <= slope_rating <= MAX_SLOPE:
        raise ValueError(f"slope rating must be between {MIN_SLOPE} and {MAX_SLOPE}")
    return slope_rating


class CourseCreate(HoleLayout):
    name: str = Field(min_length=1)
    city: Optional[str] = None
    course_rating: FiniteFloat = Field(72.0, gt=0)
    slope_rating: Annotated[int, AfterValidator(check_slope)] = 113


class CourseUpdate(CourseCreate):
    pass


class ParBreakdown(BaseModel):
    par3: int
    par4: int
    par5: int


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    city: Optional[str] = None
    course_rating: float
    slope_rating: int
    par_total: int
    holes: list[HoleOut]


class CourseDetailOut(CourseOut):
    par_breakdown: ParBreakdown


# --------------------------------------------------------------------------------
# ------------------------------------ Rounds ------------------------------------
# --------------------------------------------------------------------------------

class RoundCreate(BaseModel):
    player_id: int
    course_id: int
    date_played: date
    # hole number -> strokes, 0 or missing = not played
    strokes: dict[int, int]
    # index to play off; the player's current index is used when omitted
    handicap_index: Optional[float] = Field(None, ge=-10, le=54)

    @field_validator("strokes")
    @classmethod
    def check_strokes(cls, strokes: dict[int, int]):
        for number, value in strokes.items():
            if not 1 <= number <= HOLES_PER_ROUND:
                raise ValueError(f"unknown hole number {number}")
            if value < 0:
                raise ValueError(f"hole {number}: strokes cannot be negative")
        return strokes


class RoundHoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hole_number: int
    strokes: int
    additional_strokes: int
    gross_points: int
    net_points: int
    adjusted_strokes: int


class RoundOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    player_id: int
    course_id: int
    date_played: date
    handicap_at_time: Optional[float] = None
    total_strokes: int
    gross_score: int
    net_score: int
    adjusted_score: int
    handicap_differential: float
    round_holes: list[RoundHoleOut]


class PlayerStatsOut(BaseModel):
    player_id: int
    total_rounds: int
    average_strokes: Optional[float] = None
    average_gross_score: Optional[float] = None
    best_gross_score: Optional[int] = None
    handicap_index: Optional[float] = None


class HandicapOut(BaseModel):
    player_id: int
    handicap_index: Optional[float] = None
    official: bool
    rounds_considered: int
    differentials: list[float]


# --------------------------------------------------------------------------------
# -------------------------------- Engine requests -------------------------------
# --------------------------------------------------------------------------------

class AllocateRequest(HoleLayout):
    handicap_index: float = Field(ge=-54, le=54)


class HoleAllocationOut(BaseModel):
    number: int
    stroke_index: int
    additional_strokes: int


class ScoreRequest(HoleLayout):
    strokes: dict[int, int]
    handicap_index: Optional[float] = Field(None, ge=-54, le=54)
    course_rating: Optional[FiniteFloat] = None
    slope_rating: Optional[int] = None

    @model_validator(mode="after")
    def ratings_together(self):
        if (self.course_rating is None) != (self.slope_rating is None):
            raise ValueError("course_rating and slope_rating go together")
        return self


class HoleScoreLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    number: int
    par: int
    stroke_index: int
    strokes: int
    additional_strokes: int
    gross_points: int
    net_points: int
    adjusted_strokes: int


class ScoreOut(BaseModel):
    total_strokes: int
    gross_score: int
    net_score: int
    adjusted_score: int
    handicap_differential: Optional[float] = None
    holes: list[HoleScoreLineOut]
    score_to_par: dict[str, int]


class DifferentialRequest(BaseModel):
    adjusted_score: int = Field(ge=18)
    course_rating: FiniteFloat
    slope_rating: int


class DifferentialOut(BaseModel):
    handicap_differential: float


class IndexRequest(BaseModel):
    # newest first
    differentials: list[FiniteFloat]
    policy: Literal["half", "best8"] = "half"


class IndexOut(BaseModel):
    handicap_index: Optional[float] = None
    official: bool
    rounds_considered: int
