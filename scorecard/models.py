from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .db import Base


class Player(Base):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)

    # cached copy of the index, recomputed from the rounds on every save/delete
    current_handicap = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rounds = relationship(
        "Round",
        back_populates="player",
        cascade="all, delete-orphan"
    )


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    city = Column(String, nullable=True)

    course_rating = Column(Float, nullable=False, default=72.0)
    slope_rating = Column(Integer, nullable=False, default=113)

    holes = relationship(
        "Hole",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Hole.number"
    )

    rounds = relationship("Round", back_populates="course")

    @property
    def par_total(self):
        return sum(h.par for h in self.holes)


class Hole(Base):
    __tablename__ = "holes"
    __table_args__ = (UniqueConstraint("course_id", "number"),)

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)

    number = Column(Integer, nullable=False)          # 1..18
    par = Column(Integer, nullable=False)             # 3/4/5
    stroke_index = Column(Integer, nullable=False)    # difficulty rank 1..18, 1 = hardest

    course = relationship("Course", back_populates="holes")


class Round(Base):
    __tablename__ = "rounds"

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    date_played = Column(Date, nullable=False)

    handicap_at_time = Column(Float, nullable=True)

    total_strokes = Column(Integer, nullable=False)
    gross_score = Column(Integer, nullable=False)     # Stableford points against par
    net_score = Column(Integer, nullable=False)       # Stableford points with strokes received
    adjusted_score = Column(Integer, nullable=False)  # strokes capped at net double bogey
    handicap_differential = Column(Float, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    player = relationship("Player", back_populates="rounds")
    course = relationship("Course", back_populates="rounds")

    round_holes = relationship(
        "RoundHole",
        back_populates="round",
        cascade="all, delete-orphan",
        order_by="RoundHole.hole_number"
    )


class RoundHole(Base):
    __tablename__ = "round_holes"

    id = Column(Integer, primary_key=True, index=True)
    round_id = Column(Integer, ForeignKey("rounds.id"), nullable=False)
    hole_number = Column(Integer, nullable=False)  # 1..18

    strokes = Column(Integer, nullable=False)
    additional_strokes = Column(Integer, nullable=False, default=0)
    gross_points = Column(Integer, nullable=False)
    net_points = Column(Integer, nullable=False)
    adjusted_strokes = Column(Integer, nullable=False)

    round = relationship("Round", back_populates="round_holes")
