import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import golf_calc, models, schemas

logger = logging.getLogger(__name__)

RECENT_ROUNDS_FOR_AVERAGE = 10


class NotFoundError(LookupError):
    pass


class CourseInUseError(Exception):
    """The course already has rounds, its holes can no longer change."""


#---------------------------------------------------------------------------------
# ---------------------------------- Players -------------------------------------
# --------------------------------------------------------------------------------

def get_players(db: Session):
    return db.query(models.Player).order_by(models.Player.name).all()

def get_player(db: Session, player_id: int):
    return db.query(models.Player).filter(models.Player.id == player_id).first()

def lock_player(db: Session, player_id: int):
    # SELECT ... FOR UPDATE: one round save at a time per player
    return (
        db.query(models.Player)
        .filter(models.Player.id == player_id)
        .with_for_update()
        .first()
    )

def create_player(db: Session, data: schemas.PlayerCreate):
    p = models.Player(**data.model_dump())
    db.add(p)
    db.commit()
    db.refresh(p)
    return p

def update_player(db: Session, player_id: int, data: schemas.PlayerUpdate):
    p = get_player(db, player_id)
    if not p:
        return None
    for k, v in data.model_dump().items():
        setattr(p, k, v)
    db.commit()
    db.refresh(p)
    return p

def delete_player(db: Session, player_id: int):
    p = get_player(db, player_id)
    if not p:
        return False
    db.delete(p)
    db.commit()
    logger.info("Deleted player %s", player_id)
    return True


#---------------------------------------------------------------------------------
# ------------------------------------ Course ------------------------------------
# --------------------------------------------------------------------------------

def get_courses(db: Session):
    return db.query(models.Course).order_by(models.Course.name).all()

def get_course(db: Session, course_id: int):
    return db.query(models.Course).filter(models.Course.id == course_id).first()

def create_course(db: Session, data: schemas.CourseCreate):
    c = models.Course(**data.model_dump(exclude={"holes"}))
    c.holes = [models.Hole(**h.model_dump()) for h in data.holes]
    db.add(c)
    db.commit()
    db.refresh(c)
    logger.info("Created course %s (%s) with %d holes", c.id, c.name, len(c.holes))
    return c

def course_has_rounds(db: Session, course_id: int) -> bool:
    return db.query(models.Round.id).filter(models.Round.course_id == course_id).first() is not None

def update_course(db: Session, course_id: int, data: schemas.CourseUpdate):
    c = get_course(db, course_id)
    if not c:
        return None

    new_layout = [(h.number, h.par, h.stroke_index) for h in data.holes]
    old_layout = [(h.number, h.par, h.stroke_index) for h in c.holes]
    if new_layout != old_layout:
        if course_has_rounds(db, course_id):
            raise CourseInUseError(f"course {course_id} has rounds, holes are fixed")
        # both layouts hold holes 1..18, so update the rows in place
        by_number = {h.number: h for h in c.holes}
        for h in data.holes:
            by_number[h.number].par = h.par
            by_number[h.number].stroke_index = h.stroke_index

    for k, v in data.model_dump(exclude={"holes"}).items():
        setattr(c, k, v)
    db.commit()
    db.refresh(c)
    return c

def delete_course(db: Session, course_id: int):
    c = get_course(db, course_id)
    if not c:
        return False
    if course_has_rounds(db, course_id):
        raise CourseInUseError(f"course {course_id} has rounds and cannot be deleted")
    db.delete(c)
    db.commit()
    return True


#---------------------------------------------------------------------------------
# ------------------------------------ Rounds ------------------------------------
# --------------------------------------------------------------------------------

def newest_first(query):
    return query.order_by(models.Round.date_played.desc(), models.Round.id.desc())

def get_round(db: Session, round_id: int):
    return db.query(models.Round).filter(models.Round.id == round_id).first()

def get_player_rounds(db: Session, player_id: int, limit: int = golf_calc.INDEX_WINDOW):
    q = db.query(models.Round).filter(models.Round.player_id == player_id)
    return newest_first(q).limit(limit).all()

def get_recent_differentials(db: Session, player_id: int, limit: int = golf_calc.INDEX_WINDOW):
    q = db.query(models.Round.handicap_differential).filter(models.Round.player_id == player_id)
    return [row[0] for row in newest_first(q).limit(limit).all()]

def current_handicap(db: Session, player_id: int, selection=golf_calc.default_selection_count):
    return golf_calc.handicap_index(get_recent_differentials(db, player_id), selection)

def refresh_player_handicap(db: Session, player: models.Player):
    index = current_handicap(db, player.id)
    player.current_handicap = float(index) if index is not None else None
    player.updated_at = datetime.utcnow()
    return index


def save_round(db: Session, data: schemas.RoundCreate):
    """
    Score and store one round, then refresh the player's cached index.

    The player row stays locked until the commit, so two saves for the same
    player never both allocate strokes from the same stale index.
    """
    player = lock_player(db, data.player_id)
    if not player:
        db.rollback()
        raise NotFoundError(f"player {data.player_id} not found")

    course = get_course(db, data.course_id)
    if not course:
        db.rollback()
        raise NotFoundError(f"course {data.course_id} not found")

    index = data.handicap_index
    try:
        if index is None:
            index = current_handicap(db, player.id)
        result = golf_calc.score_round(
            course.holes,
            data.strokes,
            handicap_index=index,
            course_rating=course.course_rating,
            slope_rating=course.slope_rating,
        )
    except golf_calc.ScoringError:
        db.rollback()
        raise

    r = models.Round(
        player_id=player.id,
        course_id=course.id,
        date_played=data.date_played,
        handicap_at_time=float(index) if index is not None else None,
        total_strokes=result.total_strokes,
        gross_score=result.gross_score,
        net_score=result.net_score,
        adjusted_score=result.adjusted_score,
        handicap_differential=float(result.handicap_differential),
    )
    r.round_holes = [
        models.RoundHole(
            hole_number=line.number,
            strokes=line.strokes,
            additional_strokes=line.additional_strokes,
            gross_points=line.gross_points,
            net_points=line.net_points,
            adjusted_strokes=line.adjusted_strokes,
        )
        for line in result.holes
    ]
    db.add(r)
    db.flush()

    new_index = refresh_player_handicap(db, player)
    db.commit()
    db.refresh(r)

    logger.info(
        "Saved round %s for player %s on course %s (differential %.1f, index %s)",
        r.id, player.id, course.id, r.handicap_differential, new_index,
    )
    return r


def delete_round(db: Session, round_id: int, player_id: int):
    player = lock_player(db, player_id)
    if not player:
        db.rollback()
        logger.warning("Player not found: %s", player_id)
        return False

    r = get_round(db, round_id)
    if not r:
        logger.warning("Round not found: %s", round_id)
        db.rollback()
        return False

    if r.player_id != player_id:
        logger.warning("Player %s attempted to delete round %s owned by player %s",
                       player_id, round_id, r.player_id)
        db.rollback()
        return False

    db.delete(r)
    db.flush()
    refresh_player_handicap(db, player)
    db.commit()

    logger.info("Deleted round %s for player %s", round_id, player_id)
    return True


def player_stats(db: Session, player_id: int):
    total_rounds = (
        db.query(func.count(models.Round.id))
        .filter(models.Round.player_id == player_id)
        .scalar()
    )

    recent = get_player_rounds(db, player_id, limit=RECENT_ROUNDS_FOR_AVERAGE)
    average = (sum(r.total_strokes for r in recent) / len(recent)) if recent else None
    average_gross = (sum(r.gross_score for r in recent) / len(recent)) if recent else None

    best_gross = (
        db.query(func.max(models.Round.gross_score))
        .filter(models.Round.player_id == player_id)
        .scalar()
    )

    index = current_handicap(db, player_id)

    return schemas.PlayerStatsOut(
        player_id=player_id,
        total_rounds=total_rounds,
        average_strokes=average,
        average_gross_score=average_gross,
        best_gross_score=best_gross,
        handicap_index=float(index) if index is not None else None,
    )
