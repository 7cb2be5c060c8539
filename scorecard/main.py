# Run with: uvicorn scorecard.main:app --reload  (DATABASE_URL must be set)
import logging
import os

from fastapi import FastAPI, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from . import crud, golf_calc, schemas
from .db import Base, engine, get_db

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Golf Scorecard")

ADMIN_KEY = os.getenv("ADMIN_KEY", "")  # empty = dev mode, nothing is protected


def require_admin(x_admin_key: str | None = Header(None)):
    if not ADMIN_KEY:
        return
    if x_admin_key == ADMIN_KEY:
        return
    raise HTTPException(status_code=401, detail="Admin auth required")


# ================================================================================
# ================================ ERROR HANDLERS ================================
# ================================================================================

@app.exception_handler(golf_calc.IncompleteRoundError)
async def incomplete_round_handler(request: Request, exc: golf_calc.IncompleteRoundError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "missing_holes": exc.missing_holes},
    )


@app.exception_handler(golf_calc.ScoringError)
async def scoring_error_handler(request: Request, exc: golf_calc.ScoringError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(crud.NotFoundError)
async def not_found_handler(request: Request, exc: crud.NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(crud.CourseInUseError)
async def course_in_use_handler(request: Request, exc: crud.CourseInUseError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ---------------------------------------------------------------------------------

@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/docs")


#--------------------------------------------------------------------------------
#---------------------------------- PLAYERS -------------------------------------
#--------------------------------------------------------------------------------

def player_or_404(db: Session, player_id: int):
    player = crud.get_player(db, player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


@app.get("/players", response_model=list[schemas.PlayerOut])
def players_list(db: Session = Depends(get_db)):
    return crud.get_players(db)


@app.post("/players", response_model=schemas.PlayerOut, status_code=201)
def player_new(data: schemas.PlayerCreate, db: Session = Depends(get_db)):
    return crud.create_player(db, data)


@app.get("/players/{player_id}", response_model=schemas.PlayerOut)
def player_detail(player_id: int, db: Session = Depends(get_db)):
    return player_or_404(db, player_id)


@app.put("/players/{player_id}", response_model=schemas.PlayerOut)
def player_edit(player_id: int, data: schemas.PlayerUpdate, db: Session = Depends(get_db)):
    player = crud.update_player(db, player_id, data)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


@app.delete("/players/{player_id}", status_code=204)
def player_delete(player_id: int, db: Session = Depends(get_db)):
    if not crud.delete_player(db, player_id):
        raise HTTPException(status_code=404, detail="Player not found")


@app.get("/players/{player_id}/rounds", response_model=list[schemas.RoundOut])
def player_rounds(player_id: int, limit: int = 20, db: Session = Depends(get_db)):
    player_or_404(db, player_id)
    return crud.get_player_rounds(db, player_id, limit=max(1, min(limit, 100)))


@app.get("/players/{player_id}/handicap", response_model=schemas.HandicapOut)
def player_handicap(player_id: int, db: Session = Depends(get_db)):
    player_or_404(db, player_id)
    differentials = crud.get_recent_differentials(db, player_id)
    index = golf_calc.handicap_index(differentials)
    return schemas.HandicapOut(
        player_id=player_id,
        handicap_index=float(index) if index is not None else None,
        official=index is not None,
        rounds_considered=len(differentials),
        differentials=differentials,
    )


@app.get("/players/{player_id}/stats", response_model=schemas.PlayerStatsOut)
def player_stats(player_id: int, db: Session = Depends(get_db)):
    player_or_404(db, player_id)
    return crud.player_stats(db, player_id)


#--------------------------------------------------------------------------------
#---------------------------------- COURSES -------------------------------------
#--------------------------------------------------------------------------------

def course_detail_out(course) -> schemas.CourseDetailOut:
    breakdown = golf_calc.par_breakdown(course.holes)
    return schemas.CourseDetailOut(
        **schemas.CourseOut.model_validate(course).model_dump(),
        par_breakdown=schemas.ParBreakdown(par3=breakdown[3], par4=breakdown[4], par5=breakdown[5]),
    )


@app.get("/courses", response_model=list[schemas.CourseOut])
def courses_list(db: Session = Depends(get_db)):
    return crud.get_courses(db)


@app.post("/courses", response_model=schemas.CourseDetailOut, status_code=201,
          dependencies=[Depends(require_admin)])
def course_new(data: schemas.CourseCreate, db: Session = Depends(get_db)):
    return course_detail_out(crud.create_course(db, data))


@app.get("/courses/{course_id}", response_model=schemas.CourseDetailOut)
def course_detail(course_id: int, db: Session = Depends(get_db)):
    course = crud.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course_detail_out(course)


@app.put("/courses/{course_id}", response_model=schemas.CourseDetailOut,
         dependencies=[Depends(require_admin)])
def course_edit(course_id: int, data: schemas.CourseUpdate, db: Session = Depends(get_db)):
    course = crud.update_course(db, course_id, data)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course_detail_out(course)


@app.delete("/courses/{course_id}", status_code=204, dependencies=[Depends(require_admin)])
def course_delete(course_id: int, db: Session = Depends(get_db)):
    if not crud.delete_course(db, course_id):
        raise HTTPException(status_code=404, detail="Course not found")


#--------------------------------------------------------------------------------
#----------------------------------- ROUNDS -------------------------------------
#--------------------------------------------------------------------------------

@app.post("/rounds", response_model=schemas.RoundOut, status_code=201)
def round_new(data: schemas.RoundCreate, db: Session = Depends(get_db)):
    return crud.save_round(db, data)


@app.get("/rounds/{round_id}", response_model=schemas.RoundOut)
def round_detail(round_id: int, db: Session = Depends(get_db)):
    r = crud.get_round(db, round_id)
    if not r:
        raise HTTPException(status_code=404, detail="Round not found")
    return r


@app.delete("/rounds/{round_id}", status_code=204)
def round_delete(round_id: int, player_id: int, db: Session = Depends(get_db)):
    # a round owned by someone else looks exactly like a missing one
    if not crud.delete_round(db, round_id, player_id):
        raise HTTPException(status_code=404, detail="Round not found")


#--------------------------------------------------------------------------------
#---------------------------------- HANDICAP ------------------------------------
#--------------------------------------------------------------------------------

@app.post("/handicap/allocate", response_model=list[schemas.HoleAllocationOut])
def allocate_strokes(data: schemas.AllocateRequest):
    received = golf_calc.strokes_received_per_hole(data.handicap_index, data.holes)
    return [
        schemas.HoleAllocationOut(
            number=h.number,
            stroke_index=h.stroke_index,
            additional_strokes=received[h.number],
        )
        for h in data.holes
    ]


@app.post("/handicap/score", response_model=schemas.ScoreOut)
def score_round(data: schemas.ScoreRequest):
    result = golf_calc.score_round(
        data.holes,
        data.strokes,
        handicap_index=data.handicap_index,
        course_rating=data.course_rating,
        slope_rating=data.slope_rating,
    )
    differential = result.handicap_differential
    return schemas.ScoreOut(
        total_strokes=result.total_strokes,
        gross_score=result.gross_score,
        net_score=result.net_score,
        adjusted_score=result.adjusted_score,
        handicap_differential=float(differential) if differential is not None else None,
        holes=[schemas.HoleScoreLineOut.model_validate(line) for line in result.holes],
        score_to_par=golf_calc.score_to_par_counts(result.holes),
    )


@app.post("/handicap/differential", response_model=schemas.DifferentialOut)
def compute_differential(data: schemas.DifferentialRequest):
    differential = golf_calc.handicap_differential(
        data.adjusted_score, data.course_rating, data.slope_rating
    )
    return schemas.DifferentialOut(handicap_differential=float(differential))


@app.post("/handicap/index", response_model=schemas.IndexOut)
def current_handicap_index(data: schemas.IndexRequest):
    selection = golf_calc.SELECTION_POLICIES[data.policy]
    index = golf_calc.handicap_index(data.differentials, selection)
    return schemas.IndexOut(
        handicap_index=float(index) if index is not None else None,
        official=index is not None,
        rounds_considered=min(len(data.differentials), golf_calc.INDEX_WINDOW),
    )


# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok"}
