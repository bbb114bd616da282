import pytest
from conftest import utc

from eventsync.utils import to_datetime

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}

EVENT = {
    "name": "DevConf",
    "start_date": "2024-03-01T00:00:00",
    "end_date": "2024-03-02T00:00:00",
    "registration_deadline": "2024-02-25T00:00:00",
    "created_at": "2024-01-01T00:00:00",
    "organization_id": "org-1",
    "capacity": 150,
}


@pytest.fixture
def wid(client):
    r = client.post("/events", json=EVENT)
    assert r.status_code == 200, r.text
    eid = r.json()["id"]
    r = client.post("/workspaces", json={"event_id": eid, "name": "Ops", "owner_user_id": "alice"})
    assert r.status_code == 200, r.text
    return r.json()["id"]


def add_task(client, wid, **body):
    r = client.post(f"/workspaces/{wid}/tasks", json=body, headers=ALICE)
    assert r.status_code == 200, r.text
    return r.json()


def test_event_milestones(client):
    eid = client.post("/events", json=EVENT).json()["id"]
    r = client.get(f"/events/{eid}/milestones")
    assert r.status_code == 200
    assert [m["id"] for m in r.json()][:2] == ["registration-open", "registration-close"]
    assert len(r.json()) == 8


def test_missing_resources(client):
    assert client.get("/events/999").status_code == 404
    assert client.patch("/tasks/999", json={"status": "COMPLETED"}, headers=ALICE).status_code == 404
    r = client.post("/workspaces", json={"event_id": 999, "name": "x"})
    assert r.status_code == 404


def test_user_header_required(client, wid):
    r = client.get(f"/workspaces/{wid}/progress")
    assert r.status_code == 401


def test_sync_aligns_late_task(client, wid):
    task = add_task(client, wid, title="Book venue", category="LOGISTICS", due_date="2024-02-18T00:00:00")

    r = client.post(f"/workspaces/{wid}/sync", json={"auto_create_milestone_tasks": False}, headers=ALICE)
    assert r.status_code == 200, r.text
    body = r.json()
    assert [a["task_id"] for a in body["aligned"]] == [task["id"]]
    assert body["created_task_ids"] == []

    [stored] = client.get(f"/workspaces/{wid}/tasks", headers=ALICE).json()
    assert to_datetime(stored["due_date"]) == utc(2024, 2, 15)
    assert stored["metadata"]["aligned_milestone"] == "venue-booking"
    assert to_datetime(stored["metadata"]["original_due_date"]) == utc(2024, 2, 18)

    # second run finds nothing to move
    again = client.post(f"/workspaces/{wid}/sync", json={"auto_create_milestone_tasks": False}, headers=ALICE)
    assert again.json()["aligned"] == []


def test_sync_creates_milestone_tasks_once(client, wid):
    r = client.post(f"/workspaces/{wid}/sync", json={"auto_create_milestone_tasks": True}, headers=ALICE)
    assert len(r.json()["created_task_ids"]) == 8

    r = client.post(f"/workspaces/{wid}/sync", json={"auto_create_milestone_tasks": True}, headers=ALICE)
    assert r.json()["created_task_ids"] == []
    tasks = client.get(f"/workspaces/{wid}/tasks", headers=ALICE).json()
    assert len(tasks) == 8
    assert all(t["metadata"]["auto_generated"] for t in tasks)


def test_permissions(client, wid):
    assert client.get(f"/workspaces/{wid}/progress", headers=BOB).status_code == 403

    r = client.post(f"/workspaces/{wid}/members", json={"user_id": "bob"}, headers=ALICE)
    assert r.status_code == 200, r.text
    assert r.json()["role"] == "GENERAL_VOLUNTEER"
    dup = client.post(f"/workspaces/{wid}/members", json={"user_id": "bob"}, headers=ALICE)
    assert dup.status_code == 409

    assert client.get(f"/workspaces/{wid}/progress", headers=BOB).status_code == 200
    r = client.post(f"/workspaces/{wid}/sync", json={}, headers=BOB)
    assert r.status_code == 403
    assert "MANAGE_WORKSPACE" in r.json()["detail"]
    assert client.post(f"/workspaces/{wid}/members", json={"user_id": "carol"}, headers=BOB).status_code == 403


def test_progress_after_status_change(client, wid):
    a = add_task(client, wid, title="Badges", category="SETUP", priority="HIGH")
    add_task(client, wid, title="Signage", category="SETUP")

    r = client.patch(f"/tasks/{a['id']}", json={"status": "COMPLETED"}, headers=ALICE)
    assert r.status_code == 200
    assert r.json()["status"] == "COMPLETED"
    assert client.patch(f"/tasks/{a['id']}", json={"status": "DONE"}, headers=ALICE).status_code == 400

    report = client.get(f"/workspaces/{wid}/progress", headers=ALICE).json()
    assert report["overall_progress"] == 50
    by_id = {m["milestone_id"]: m for m in report["milestone_progress"]}
    assert by_id["venue-booking"]["progress"] == 50


def test_event_move_realigns(client, wid):
    task = add_task(client, wid, title="Book venue", category="LOGISTICS", due_date="2024-02-18T00:00:00")
    client.post(f"/workspaces/{wid}/sync", json={"auto_create_milestone_tasks": False}, headers=ALICE)

    eid = 1
    r = client.patch(f"/events/{eid}", json={"start_date": "2024-04-01T00:00:00"})
    assert r.status_code == 200, r.text
    assert r.json()["realigned"] == {str(wid): [task["id"]]}

    [stored] = client.get(f"/workspaces/{wid}/tasks", headers=ALICE).json()
    assert to_datetime(stored["due_date"]) == utc(2024, 3, 17)

    assert client.patch(f"/events/{eid}", json={"start_date": "soon"}).status_code == 400
    assert client.patch(f"/events/{eid}", json={"name": "Renamed"}).json()["realigned"] == {}


def test_escalation(client, wid):
    add_task(client, wid, title="Overdue", priority="HIGH", due_date="2020-01-01T00:00:00")
    add_task(client, wid, title="Relaxed", priority="LOW", due_date="2020-01-01T00:00:00")

    r = client.post(f"/workspaces/{wid}/escalate", headers=ALICE)
    assert r.status_code == 200
    assert len(r.json()["escalated"]) == 1
    priorities = sorted(t["priority"] for t in client.get(f"/workspaces/{wid}/tasks", headers=ALICE).json())
    assert priorities == ["LOW", "URGENT"]


def test_patch_task_due_date(client, wid):
    task = add_task(client, wid, title="Book venue", category="LOGISTICS")

    assert client.patch(f"/tasks/{task['id']}", json={"due_date": "soon"}, headers=ALICE).status_code == 400
    r = client.patch(f"/tasks/{task['id']}", json={"due_date": "2024-02-10T00:00:00Z"}, headers=ALICE)
    assert r.status_code == 200, r.text
    assert to_datetime(r.json()["due_date"]) == utc(2024, 2, 10)
    r = client.patch(f"/tasks/{task['id']}", json={"due_date": None}, headers=ALICE)
    assert r.json()["due_date"] is None


TEMPLATE = {
    "name": "Conference basics",
    "category": "CONFERENCE",
    "event_size_range": {"min": 100, "max": 200},
    "tasks": [{"title": "Print badges", "category": "SETUP", "days_before_event": 3}],
    "metadata": {"organization_id": "org-1"},
    "effectiveness": {"completion_rate": 85},
}


def test_templates(client, wid):
    bad = {"name": "Bad", "event_size_range": {"min": 10, "max": 1}}
    assert client.post("/templates", json=bad, headers=ALICE).status_code == 400

    r = client.post("/templates", json=TEMPLATE, headers=ALICE)
    assert r.status_code == 200, r.text
    tid = r.json()["id"]
    assert r.json()["metadata"]["created_by"] == "alice"

    recs = client.get("/events/1/template-recommendations").json()
    assert [rec["template"]["id"] for rec in recs] == [tid]
    assert recs[0]["match_score"] == 100

    r = client.post(f"/workspaces/{wid}/apply-template", json={"template_id": tid}, headers=ALICE)
    assert r.status_code == 200, r.text
    assert len(r.json()["created_task_ids"]) == 1
    [task] = client.get(f"/workspaces/{wid}/tasks", headers=ALICE).json()
    assert to_datetime(task["due_date"]) == utc(2024, 2, 27)
    assert task["metadata"]["template_id"] == tid

    recs = client.get("/events/1/template-recommendations").json()
    assert recs[0]["template"]["metadata"]["usage_count"] == 1

    assert client.post(f"/workspaces/{wid}/apply-template", json={"template_id": "999"},
                       headers=ALICE).status_code == 404


def test_apply_template_customization(client, wid):
    tid = client.post("/templates", json=TEMPLATE, headers=ALICE).json()["id"]
    old = add_task(client, wid, title="Old checklist")
    keep = add_task(client, wid, title="Catering")

    body = {
        "template_id": tid,
        "customization": {
            "add_tasks": [{"title": "Order swag"}],
            "remove_tasks": [old["id"]],
            "modify_tasks": [{"task_id": keep["id"], "title": "Catering for 150", "priority": "HIGH"}],
        },
    }
    r = client.post(f"/workspaces/{wid}/apply-template", json=body, headers=ALICE)
    assert r.status_code == 200, r.text

    tasks = {t["title"]: t for t in client.get(f"/workspaces/{wid}/tasks", headers=ALICE).json()}
    assert sorted(tasks) == ["Catering for 150", "Order swag", "Print badges"]
    assert tasks["Catering for 150"]["priority"] == "HIGH"
    assert tasks["Order swag"]["metadata"]["customization"] is True

    actions = [log["action"] for log in client.get(f"/workspaces/{wid}/audit", headers=ALICE).json()]
    assert "delete" in actions


def test_template_from_workspace(client, wid):
    add_task(client, wid, title="Book venue", category="LOGISTICS", due_date="2024-02-16T00:00:00")
    add_task(client, wid, title="Uncategorized")

    draft = {"name": "DevConf playbook", "category": "CONFERENCE", "tags": ["tech"]}
    assert client.post(f"/workspaces/{wid}/templates", json=draft, headers=BOB).status_code == 403

    r = client.post(f"/workspaces/{wid}/templates", json=draft, headers=ALICE)
    assert r.status_code == 200, r.text
    tpl = r.json()
    assert [(t["title"], t["days_before_event"]) for t in tpl["tasks"]] == [("Book venue", 14)]
    # one active member: 20 participants, halved and doubled
    assert tpl["event_size_range"] == {"min": 10, "max": 40}
    assert tpl["metadata"]["created_by"] == "alice"
    assert tpl["metadata"]["organization_id"] == "org-1"
    assert tpl["metadata"]["tags"] == ["tech"]


def test_template_effectiveness(client, wid):
    tid = client.post("/templates", json=TEMPLATE, headers=ALICE).json()["id"]
    assert client.post(f"/templates/{tid}/effectiveness").status_code == 404
    assert client.post("/templates/999/effectiveness").status_code == 404

    client.post(f"/workspaces/{wid}/apply-template", json={"template_id": tid}, headers=ALICE)
    report = client.post(f"/templates/{tid}/effectiveness").json()
    assert report["total_usages"] == 1
    assert report["successful_completions"] == 0
    assert report["completion_rate"] == 0
    assert [s["type"] for s in report["improvement_suggestions"]][:2] == ["ADJUST_TIMELINE", "REMOVE_TASK"]

    [task] = client.get(f"/workspaces/{wid}/tasks", headers=ALICE).json()
    client.patch(f"/tasks/{task['id']}", json={"status": "COMPLETED"}, headers=ALICE)
    report = client.post(f"/templates/{tid}/effectiveness").json()
    assert report["successful_completions"] == 1
    assert report["completion_rate"] == 100
    assert report["improvement_suggestions"] == []

    recs = client.get("/events/1/template-recommendations").json()
    assert recs[0]["template"]["effectiveness"]["successful_events"] == 1


def test_audit_log(client, wid):
    task = add_task(client, wid, title="Book venue", category="LOGISTICS", due_date="2024-02-18T00:00:00")
    client.post(f"/workspaces/{wid}/sync", json={"auto_create_milestone_tasks": False}, headers=ALICE)

    logs = client.get(f"/workspaces/{wid}/audit", headers=ALICE).json()
    actions = sorted(log["action"] for log in logs)
    assert actions == ["create", "update_dates"]
    assert all(log["entity_id"] == int(task["id"]) for log in logs)
    assert all(log["actor_user_id"] == "alice" for log in logs)
