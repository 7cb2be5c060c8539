import json
from datetime import date, timedelta

import pytest

from scorecard import main
from conftest import PARS


def _create_course(client, payload):
    resp = client.post("/courses", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _create_player(client, name="Seve"):
    resp = client.post("/players", json={"name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


def _card(over_par=1):
    return {str(n): par + over_par for n, par in enumerate(PARS, start=1)}


def _save_round(client, player_id, course_id, day, strokes=None, **extra):
    payload = {
        "player_id": player_id,
        "course_id": course_id,
        "date_played": day.isoformat(),
        "strokes": strokes if strokes is not None else _card(),
        **extra,
    }
    return client.post("/rounds", json=payload)


@pytest.fixture
def player_and_course(client, course_payload):
    return _create_player(client), _create_course(client, course_payload)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# --------------------------------------------------------------------------------
# courses

def test_create_course(client, course_payload):
    course = _create_course(client, course_payload)
    assert course["par_total"] == 72
    assert course["par_breakdown"] == {"par3": 4, "par4": 10, "par5": 4}
    assert [h["number"] for h in course["holes"]] == list(range(1, 19))

    listed = client.get("/courses").json()
    assert [c["id"] for c in listed] == [course["id"]]


def test_course_needs_eighteen_holes(client, course_payload):
    course_payload["holes"] = course_payload["holes"][:17]
    assert client.post("/courses", json=course_payload).status_code == 422


def test_stroke_indexes_must_be_a_permutation(client, course_payload):
    course_payload["holes"][0]["stroke_index"] = course_payload["holes"][1]["stroke_index"]
    assert client.post("/courses", json=course_payload).status_code == 422


@pytest.mark.parametrize("slope", [0, -1, 40, 200])
def test_course_slope_is_validated(client, course_payload, slope):
    course_payload["slope_rating"] = slope
    assert client.post("/courses", json=course_payload).status_code == 422


def test_course_mutations_need_admin_key(client, course_payload, monkeypatch):
    monkeypatch.setattr(main, "ADMIN_KEY", "secret")
    assert client.post("/courses", json=course_payload).status_code == 401

    resp = client.post("/courses", json=course_payload, headers={"X-Admin-Key": "secret"})
    assert resp.status_code == 201
    # reads stay public
    assert client.get(f"/courses/{resp.json()['id']}").status_code == 200


def test_course_holes_are_fixed_once_played(client, player_and_course, course_payload):
    player, course = player_and_course
    assert _save_round(client, player["id"], course["id"], date(2026, 5, 1)).status_code == 201

    renamed = dict(course_payload, name="Renamed")
    resp = client.put(f"/courses/{course['id']}", json=renamed)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"

    swapped = dict(course_payload)
    swapped["holes"] = [dict(h) for h in course_payload["holes"]]
    swapped["holes"][0]["stroke_index"], swapped["holes"][1]["stroke_index"] = (
        swapped["holes"][1]["stroke_index"], swapped["holes"][0]["stroke_index"]
    )
    assert client.put(f"/courses/{course['id']}", json=swapped).status_code == 409
    assert client.delete(f"/courses/{course['id']}").status_code == 409


# --------------------------------------------------------------------------------
# rounds and handicap history

def test_save_round_without_index(client, player_and_course):
    player, course = player_and_course
    resp = _save_round(client, player["id"], course["id"], date(2026, 5, 1))
    assert resp.status_code == 201, resp.text

    r = resp.json()
    assert r["total_strokes"] == 90
    assert r["gross_score"] == r["net_score"] == 18
    assert r["adjusted_score"] == 90
    assert r["handicap_differential"] == pytest.approx(18.0)
    assert r["handicap_at_time"] is None
    assert len(r["round_holes"]) == 18


def test_incomplete_round_is_rejected_and_not_stored(client, player_and_course):
    player, course = player_and_course
    strokes = _card()
    strokes["5"] = 0
    del strokes["9"]

    resp = _save_round(client, player["id"], course["id"], date(2026, 5, 1), strokes=strokes)
    assert resp.status_code == 422
    assert resp.json()["missing_holes"] == [5, 9]
    assert client.get(f"/players/{player['id']}/rounds").json() == []


def test_round_for_unknown_player_or_course(client, player_and_course):
    player, course = player_and_course
    assert _save_round(client, 999, course["id"], date(2026, 5, 1)).status_code == 404
    assert _save_round(client, player["id"], 999, date(2026, 5, 1)).status_code == 404


def test_index_appears_after_five_rounds(client, player_and_course):
    player, course = player_and_course
    start = date(2026, 4, 1)

    for i in range(4):
        assert _save_round(client, player["id"], course["id"], start + timedelta(days=i)).status_code == 201

    handicap = client.get(f"/players/{player['id']}/handicap").json()
    assert handicap["official"] is False
    assert handicap["handicap_index"] is None
    assert handicap["rounds_considered"] == 4
    assert client.get(f"/players/{player['id']}").json()["current_handicap"] is None

    _save_round(client, player["id"], course["id"], start + timedelta(days=4))

    handicap = client.get(f"/players/{player['id']}/handicap").json()
    assert handicap["official"] is True
    assert handicap["handicap_index"] == pytest.approx(18.0)
    assert client.get(f"/players/{player['id']}").json()["current_handicap"] == pytest.approx(18.0)

    # the next round plays off the published index
    r = _save_round(client, player["id"], course["id"], start + timedelta(days=5)).json()
    assert r["handicap_at_time"] == pytest.approx(18.0)
    assert r["gross_score"] == 18
    assert r["net_score"] == 36
    assert all(h["additional_strokes"] == 1 for h in r["round_holes"])


def test_explicit_index_overrides_history(client, player_and_course):
    player, course = player_and_course
    r = _save_round(client, player["id"], course["id"], date(2026, 5, 1), handicap_index=36).json()
    assert r["handicap_at_time"] == pytest.approx(36.0)
    assert r["net_score"] == 54


def test_rounds_are_listed_newest_first(client, player_and_course):
    player, course = player_and_course
    for day in (date(2026, 5, 3), date(2026, 5, 1), date(2026, 5, 2)):
        _save_round(client, player["id"], course["id"], day)

    rounds = client.get(f"/players/{player['id']}/rounds").json()
    assert [r["date_played"] for r in rounds] == ["2026-05-03", "2026-05-02", "2026-05-01"]

    limited = client.get(f"/players/{player['id']}/rounds", params={"limit": 2}).json()
    assert len(limited) == 2


def test_delete_round_recomputes_index(client, player_and_course):
    player, course = player_and_course
    ids = [
        _save_round(client, player["id"], course["id"], date(2026, 5, day)).json()["id"]
        for day in range(1, 6)
    ]
    assert client.get(f"/players/{player['id']}").json()["current_handicap"] == pytest.approx(18.0)

    other = _create_player(client, "Txema")
    assert client.delete(f"/rounds/{ids[0]}", params={"player_id": other["id"]}).status_code == 404
    assert client.get(f"/rounds/{ids[0]}").status_code == 200

    assert client.delete(f"/rounds/{ids[0]}", params={"player_id": player["id"]}).status_code == 204
    assert client.get(f"/rounds/{ids[0]}").status_code == 404
    assert client.get(f"/players/{player['id']}").json()["current_handicap"] is None


def test_player_stats(client, player_and_course):
    player, course = player_and_course
    _save_round(client, player["id"], course["id"], date(2026, 5, 1))
    _save_round(client, player["id"], course["id"], date(2026, 5, 2), strokes=_card(over_par=0))

    stats = client.get(f"/players/{player['id']}/stats").json()
    assert stats["total_rounds"] == 2
    assert stats["average_strokes"] == pytest.approx(81.0)
    assert stats["average_gross_score"] == pytest.approx(27.0)
    assert stats["best_gross_score"] == 36
    assert stats["handicap_index"] is None


def test_unknown_player(client):
    assert client.get("/players/42").status_code == 404
    assert client.get("/players/42/handicap").status_code == 404


# --------------------------------------------------------------------------------
# stateless engine endpoints

def test_allocate_endpoint(client, course_payload):
    resp = client.post("/handicap/allocate", json={
        "handicap_index": 20.7,
        "holes": course_payload["holes"],
    })
    assert resp.status_code == 200
    by_index = {h["stroke_index"]: h["additional_strokes"] for h in resp.json()}
    assert [by_index[si] for si in (1, 2, 3)] == [2, 2, 2]
    assert all(by_index[si] == 1 for si in range(4, 19))


def test_score_endpoint(client, course_payload):
    resp = client.post("/handicap/score", json={
        "holes": course_payload["holes"],
        "strokes": _card(over_par=0),
        "course_rating": 72.0,
        "slope_rating": 113,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["gross_score"] == body["net_score"] == 36
    assert body["total_strokes"] == body["adjusted_score"] == 72
    assert body["handicap_differential"] == pytest.approx(0.0)
    assert body["score_to_par"]["pars"] == 18


def test_score_endpoint_incomplete(client, course_payload):
    strokes = _card()
    del strokes["18"]
    resp = client.post("/handicap/score", json={"holes": course_payload["holes"], "strokes": strokes})
    assert resp.status_code == 422
    assert resp.json()["missing_holes"] == [18]


def test_differential_endpoint(client):
    resp = client.post("/handicap/differential", json={
        "adjusted_score": 85, "course_rating": 72.5, "slope_rating": 130,
    })
    assert resp.json()["handicap_differential"] == pytest.approx(10.865385, abs=1e-6)

    resp = client.post("/handicap/differential", json={
        "adjusted_score": 85, "course_rating": 72.5, "slope_rating": 0,
    })
    assert resp.status_code == 422


def test_index_endpoint(client):
    few = client.post("/handicap/index", json={"differentials": [10.0, 11.0, 12.0, 13.0]}).json()
    assert few == {"handicap_index": None, "official": False, "rounds_considered": 4}

    history = [float(v) for v in range(1, 9)]
    half = client.post("/handicap/index", json={"differentials": history}).json()
    best8 = client.post("/handicap/index", json={"differentials": history, "policy": "best8"}).json()
    assert half["handicap_index"] == pytest.approx(2.5)
    assert best8["handicap_index"] == pytest.approx(4.5)


def _post_raw(client, url, body):
    # NaN and Infinity are not valid JSON, so send the text as is
    return client.post(url, content=body, headers={"Content-Type": "application/json"})


@pytest.mark.parametrize("bad", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_numbers_are_rejected(client, course_payload, bad):
    resp = _post_raw(client, "/handicap/index", f'{{"differentials": [{bad}, 10, 11, 12, 13]}}')
    assert resp.status_code == 422

    resp = _post_raw(
        client, "/handicap/differential",
        f'{{"adjusted_score": 85, "course_rating": {bad}, "slope_rating": 113}}',
    )
    assert resp.status_code == 422

    body = json.dumps({
        "holes": course_payload["holes"], "strokes": _card(), "course_rating": 0, "slope_rating": 113,
    })
    resp = _post_raw(client, "/handicap/score", body.replace('"course_rating": 0', f'"course_rating": {bad}'))
    assert resp.status_code == 422

    body = json.dumps(dict(course_payload, course_rating=0))
    resp = _post_raw(client, "/courses", body.replace('"course_rating": 0', f'"course_rating": {bad}'))
    assert resp.status_code == 422
    assert client.get("/courses").json() == []


def test_delete_round_for_unknown_player(client, player_and_course):
    player, course = player_and_course
    round_id = _save_round(client, player["id"], course["id"], date(2026, 5, 1)).json()["id"]
    assert client.delete(f"/rounds/{round_id}", params={"player_id": 999}).status_code == 404
    assert client.get(f"/rounds/{round_id}").status_code == 200
