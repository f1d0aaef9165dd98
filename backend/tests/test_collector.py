from npat.game.collector import AnswerCollector, timeout_due
from npat.game.models import Category, Player, parse_answers


def test_timeout_due_only_for_large_rooms_at_second_submission():
    assert not timeout_due(2, 2)
    assert not timeout_due(1, 1)
    assert not timeout_due(3, 1)
    assert timeout_due(3, 2)
    assert timeout_due(5, 2)
    assert not timeout_due(5, 3)


def test_is_complete_requires_every_roster_member():
    collector = AnswerCollector()
    collector.record("a", parse_answers({"name": "Al"}))
    assert not collector.is_complete(["a", "b"])
    collector.record("b", parse_answers({}))
    assert collector.is_complete(["a", "b"])
    assert not collector.is_complete([])


def test_record_overwrites_previous_answers():
    collector = AnswerCollector()
    collector.record("a", parse_answers({"name": "Al"}))
    collector.record("a", parse_answers({"name": "Amy"}))
    assert collector.submitted_count == 1
    assert collector.get("a")[Category.NAME] == "Amy"


def test_backfill_fills_only_missing_players():
    collector = AnswerCollector()
    collector.record("a", parse_answers({"name": "Al"}))
    assert collector.backfill(["a", "b", "c"]) == ["b", "c"]
    assert collector.get("a")[Category.NAME] == "Al"
    assert set(collector.get("c").values()) == {""}


def test_statuses():
    collector = AnswerCollector()
    collector.record("a", parse_answers({"thing": "Axe", "bogus": "x"}))
    statuses = collector.statuses([Player("a", "Al"), Player("b", "Bo")])
    assert statuses[0]["done"] is True
    assert statuses[0]["answers"]["thing"] == "Axe"
    assert "bogus" not in statuses[0]["answers"]
    assert statuses[1] == {"id": "b", "name": "Bo", "done": False, "answers": None}
