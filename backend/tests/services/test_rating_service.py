"""
Tests for fairway/services/rating_service.py
Covers: score validation, duplicate guard, booking ownership/state checks,
        avgScore, recompute scheduling, pending ratings
"""
import pytest
from datetime import date

from fairway.models.ontology import Collection
from fairway.models.events import EventType
from fairway.services.errors import (
    ValidationError, NotFoundError, ForbiddenError, DuplicateError, InvalidStateError
)
from fairway.services.rating_service import RatingService, validate_scores

SCORES = {"attitude": 5, "skill": 4, "knowledge": 5, "pace": 4, "overall": 5}


def _service(store, scheduled=None):
    publisher = scheduled.append if scheduled is not None else (lambda e: None)
    return RatingService(store, publisher)


def _submit(service, booking, **overrides):
    kwargs = dict(
        player_id="player1", caddie_id=booking["caddieId"], booking_id=booking["_id"],
        scores=SCORES, tags=["专业"], comment=" 看线很准 ", club_id="club1",
    )
    kwargs.update(overrides)
    return service.submit_rating(**kwargs)


class TestValidateScores:

    def test_accepts_integral_values(self):
        assert validate_scores({"attitude": "5", "skill": 4.0, "knowledge": 3, "pace": 2, "overall": 1}) == {
            "attitude": 5, "skill": 4, "knowledge": 3, "pace": 2, "overall": 1
        }

    @pytest.mark.parametrize("bad", [0, 6, 4.5, None, "abc", True, "sNaN", "NaN", "Infinity", float("inf")])
    def test_rejects_out_of_range(self, bad):
        with pytest.raises(ValidationError, match="pace"):
            validate_scores({**SCORES, "pace": bad})

    def test_rejects_non_mapping(self):
        with pytest.raises(ValidationError):
            validate_scores([5, 5, 5, 5, 5])

    def test_missing_dimension(self):
        scores = dict(SCORES)
        scores.pop("overall")
        with pytest.raises(ValidationError, match="overall"):
            validate_scores(scores)


class TestSubmitRating:

    def test_stores_rating_with_average(self, store, completed_booking):
        scheduled = []
        rating = _submit(_service(store, scheduled), completed_booking)

        assert rating["avgScore"] == 4.6
        assert rating["scores"] == SCORES
        assert rating["comment"] == "看线很准"
        assert rating["anonymous"] is False
        assert store.count(Collection.CADDIE_RATINGS) == 1

        # 聚合重算已调度而非同步执行
        assert len(scheduled) == 1
        assert scheduled[0].event_type == EventType.RATING_SUBMITTED
        assert scheduled[0].data["caddie_id"] == completed_booking["caddieId"]
        caddie = store.get(Collection.CADDIES, completed_booking["caddieId"])
        assert caddie["ratingCount"] == 0

    def test_second_submission_is_duplicate(self, store, completed_booking):
        service = _service(store)
        _submit(service, completed_booking)
        with pytest.raises(DuplicateError):
            _submit(service, completed_booking, scores={**SCORES, "overall": 1})
        assert store.count(Collection.CADDIE_RATINGS) == 1

    def test_store_unique_key_catches_race_past_guard(self, store, completed_booking, monkeypatch):
        """读取检查没发现重复（并发窗口），存储层唯一键仍然拒绝"""
        service = _service(store)
        _submit(service, completed_booking)
        monkeypatch.setattr(service.guard, "find_existing", lambda values: None)

        with pytest.raises(DuplicateError):
            _submit(service, completed_booking)
        assert store.count(Collection.CADDIE_RATINGS) == 1

    def test_tags_truncated_and_anonymous_flag(self, store, completed_booking):
        rating = _submit(_service(store), completed_booking, tags=[f"t{i}" for i in range(15)], anonymous=True)
        assert len(rating["tags"]) == 10
        assert rating["anonymous"] is True

    def test_comment_too_long(self, store, completed_booking):
        with pytest.raises(ValidationError):
            _submit(_service(store), completed_booking, comment="好" * 501)
        assert store.count(Collection.CADDIE_RATINGS) == 0

    def test_score_out_of_range_writes_nothing(self, store, completed_booking):
        scheduled = []
        with pytest.raises(ValidationError):
            _submit(_service(store, scheduled), completed_booking, scores={**SCORES, "skill": 9})
        assert store.count(Collection.CADDIE_RATINGS) == 0
        assert scheduled == []

    def test_missing_ids(self, store, completed_booking):
        with pytest.raises(ValidationError):
            _submit(_service(store), completed_booking, booking_id=None)
        with pytest.raises(ValidationError):
            _submit(_service(store), completed_booking, caddie_id="")

    def test_booking_not_found(self, store, completed_booking):
        with pytest.raises(NotFoundError):
            _submit(_service(store), completed_booking, booking_id="missing")

    def test_booking_of_other_player_forbidden(self, store, completed_booking):
        with pytest.raises(ForbiddenError):
            _submit(_service(store), completed_booking, player_id="player2")
        assert store.count(Collection.CADDIE_RATINGS) == 0

    def test_booking_not_completed(self, store, sample_caddie):
        booking = store.insert(Collection.BOOKINGS, {
            "playerId": "player1", "status": "confirmed", "caddieId": sample_caddie["_id"], "date": "2026-10-20"
        })
        with pytest.raises(InvalidStateError):
            _submit(_service(store), booking)

    def test_booking_without_caddie(self, store):
        booking = store.insert(Collection.BOOKINGS, {"playerId": "player1", "status": "completed", "date": "2026-10-15"})
        with pytest.raises(ValidationError):
            _submit(_service(store), booking, caddie_id="c1")

    def test_caddie_mismatch(self, store, completed_booking):
        with pytest.raises(ValidationError):
            _submit(_service(store), completed_booking, caddie_id="someone-else")

    def test_scheduling_failure_does_not_fail_submission(self, store, completed_booking):
        def broken_scheduler(event):
            raise RuntimeError("cannot schedule new futures after shutdown")

        rating = RatingService(store, broken_scheduler).submit_rating(
            player_id="player1", caddie_id=completed_booking["caddieId"],
            booking_id=completed_booking["_id"], scores=SCORES
        )
        assert rating["_id"]
        assert store.count(Collection.CADDIE_RATINGS) == 1


class TestPendingRatings:

    def test_lists_unrated_recent_bookings_with_caddie(self, store, sample_caddie, completed_booking):
        service = _service(store)
        caddie_id = sample_caddie["_id"]
        rated = store.insert(Collection.BOOKINGS, {
            "playerId": "player1", "status": "completed", "caddieId": caddie_id, "date": "2026-10-12"
        })
        store.insert(Collection.BOOKINGS, {"playerId": "player1", "status": "completed", "date": "2026-10-11"})
        store.insert(Collection.BOOKINGS, {
            "playerId": "player1", "status": "completed", "caddieId": caddie_id, "date": "2026-08-01"
        })
        store.insert(Collection.BOOKINGS, {
            "playerId": "player2", "status": "completed", "caddieId": caddie_id, "date": "2026-10-16"
        })
        _submit(service, rated)

        pending = service.get_pending_ratings("player1", today=date(2026, 10, 19))
        assert pending == [{
            "bookingId": completed_booking["_id"],
            "caddieId": caddie_id,
            "caddieName": "球童小张",
            "date": "2026-10-15",
            "courseName": "东场",
        }]

    def test_empty_when_no_bookings(self, store):
        assert _service(store).get_pending_ratings("player1", today=date(2026, 10, 19)) == []
