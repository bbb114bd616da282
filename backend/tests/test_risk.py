from datetime import timedelta

from conftest import make_task, utc

from eventsync.risk import detect_risks, find_deadline_escalations
from eventsync.schemas import RiskSeverity, RiskType, TaskPriority, TaskStatus

NOW = utc(2024, 2, 20)
SEVERITY_ORDER = [RiskSeverity.LOW, RiskSeverity.MEDIUM, RiskSeverity.HIGH, RiskSeverity.CRITICAL]


def overdue(task_id, priority=TaskPriority.MEDIUM, **kw):
    return make_task(task_id, priority=priority, due_date=NOW - timedelta(days=2), **kw)


def test_no_risks():
    tasks = [
        make_task("future", due_date=NOW + timedelta(days=1)),
        overdue("done", status=TaskStatus.COMPLETED),
        make_task("blocked-low", status=TaskStatus.BLOCKED, priority=TaskPriority.LOW),
    ]
    assert detect_risks(tasks, now=NOW) == []


def test_overdue_medium_severity():
    [risk] = detect_risks([overdue("a"), overdue("b")], now=NOW)
    assert risk.type == RiskType.OVERDUE_TASKS
    assert risk.severity == RiskSeverity.MEDIUM
    assert risk.description == "2 tasks are overdue (0 critical)"
    assert len(risk.mitigation) == 4


def test_overdue_high_priority_raises_severity():
    [risk] = detect_risks([overdue("a"), overdue("b", TaskPriority.URGENT)], now=NOW)
    assert risk.severity == RiskSeverity.HIGH
    assert "(1 critical)" in risk.description


def test_adding_high_priority_overdue_never_lowers_severity():
    for base in ([overdue("a")], [overdue("a", TaskPriority.HIGH)]):
        before = detect_risks(base, now=NOW)[0].severity
        after = detect_risks(base + [overdue("x", TaskPriority.HIGH)], now=NOW)[0].severity
        assert SEVERITY_ORDER.index(after) >= SEVERITY_ORDER.index(before)
        assert after == RiskSeverity.HIGH


def test_blocked_critical_after_overdue():
    tasks = [
        make_task("b1", status=TaskStatus.BLOCKED, priority=TaskPriority.HIGH),
        overdue("o1"),
    ]
    risks = detect_risks(tasks, now=NOW)
    assert [r.type for r in risks] == [RiskType.OVERDUE_TASKS, RiskType.BLOCKED_CRITICAL]
    assert risks[1].severity == RiskSeverity.CRITICAL
    assert risks[1].description == "1 critical tasks are blocked"
    assert len(risks[1].mitigation) == 4


def test_unimplemented_risk_types_never_emitted():
    tasks = [overdue("o", TaskPriority.URGENT, dependencies=["x"], status=TaskStatus.BLOCKED)]
    types = {r.type for r in detect_risks(tasks, now=NOW)}
    assert RiskType.RESOURCE_SHORTAGE not in types
    assert RiskType.DEPENDENCY_DELAY not in types


def test_deadline_escalations():
    tasks = [
        make_task("soon", priority=TaskPriority.HIGH, due_date=NOW + timedelta(hours=12)),
        make_task("past", priority=TaskPriority.URGENT, due_date=NOW - timedelta(hours=1)),
        make_task("later", priority=TaskPriority.HIGH, due_date=NOW + timedelta(hours=48)),
        make_task("low", priority=TaskPriority.LOW, due_date=NOW + timedelta(hours=1)),
        make_task("done", priority=TaskPriority.HIGH, due_date=NOW, status=TaskStatus.COMPLETED),
    ]
    assert [e.task_id for e in find_deadline_escalations(tasks, NOW, 24)] == ["soon", "past"]
    assert [e.task_id for e in find_deadline_escalations(tasks, NOW, 72)] == ["soon", "past", "later"]
