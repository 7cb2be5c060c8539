import os

# in-memory database for the whole test session, set before scorecard.db is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_KEY"] = ""

from collections import namedtuple

import pytest
from fastapi.testclient import TestClient

from scorecard.db import Base, engine
from scorecard.main import app

Hole = namedtuple("Hole", "number par stroke_index")

PARS = [4, 4, 3, 5, 4, 4, 3, 4, 5, 4, 4, 3, 5, 4, 4, 3, 4, 5]
STROKE_INDEXES = [7, 3, 15, 1, 11, 5, 17, 9, 13, 8, 4, 16, 2, 12, 6, 18, 10, 14]


@pytest.fixture
def holes():
    return [Hole(n, par, si) for n, (par, si) in enumerate(zip(PARS, STROKE_INDEXES), start=1)]


@pytest.fixture
def course_payload():
    return {
        "name": "Real Club de Golf",
        "city": "Sevilla",
        "course_rating": 72.0,
        "slope_rating": 113,
        "holes": [
            {"number": n, "par": par, "stroke_index": si}
            for n, (par, si) in enumerate(zip(PARS, STROKE_INDEXES), start=1)
        ],
    }


@pytest.fixture
def client():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestClient(app) as c:
        yield c
