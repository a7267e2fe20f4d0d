from datetime import datetime, timedelta

from apps.job_orders.models import JobOrder, JobOrderStatus, JobOrderPriority
from core.exceptions import UpstreamFailure
from core.storage import get_file_storage


class FailingStorage:
    def save(self, filename, fileobj):
        raise UpstreamFailure(f"Could not store file '{filename}'")


BASE = "/api/v1/job_orders"

ORDER = {
    "title": "Cannot connect to VPN",
    "description": "VPN client times out since this morning",
    "department": "Program",
    "priority": "high",
    "category": "Network",
}


def create(client, headers, **overrides):
    response = client.post(f"{BASE}/", json={**ORDER, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_requires_authentication(client):
    assert client.get(f"{BASE}/").status_code == 401
    assert client.post(f"{BASE}/", json=ORDER).status_code == 401


def test_create_and_fetch(client, auth_headers):
    order = create(client, auth_headers("requester"))
    assert order["status"] == "pending_approval"
    assert order["requester_name"] == "Jane Dela Cruz"
    assert order["available_actions"] == ["cancel"]

    detail = client.get(f"{BASE}/{order['id']}", headers=auth_headers("requester")).json()
    assert detail["work_order_no"] == order["work_order_no"]
    assert [h["action"] for h in detail["history"]] == ["created"]

    by_number = client.get(f"{BASE}/number/{order['work_order_no']}", headers=auth_headers("tech"))
    assert by_number.json()["id"] == order["id"]

    ticket = client.get(f"{BASE}/{order['id']}/ticket", headers=auth_headers("requester")).json()
    assert ticket["id"] == order["work_order_no"]
    assert ticket["priority"] == "high"
    assert ticket["attachments"] == []


def test_create_with_blank_title_is_rejected(client, auth_headers):
    response = client.post(f"{BASE}/", json={**ORDER, "title": "  "}, headers=auth_headers("requester"))
    assert response.status_code == 400


def test_unknown_and_hidden_orders(client, auth_headers):
    assert client.get(f"{BASE}/9999", headers=auth_headers("tech")).status_code == 404
    order = create(client, auth_headers("requester"))
    assert client.get(f"{BASE}/{order['id']}", headers=auth_headers("other_requester")).status_code == 403


def test_workflow_endpoints(client, auth_headers, users):
    order = create(client, auth_headers("requester"))
    url = f"{BASE}/{order['id']}"

    approved = client.post(f"{url}/approve", headers=auth_headers("approver"))
    assert approved.status_code == 200
    assert approved.json()["status"] == "queued"
    assert approved.json()["approved_by_name"] == "Paula Santos"

    assert client.post(f"{url}/approve", headers=auth_headers("approver")).status_code == 409

    unknown_tech = client.post(f"{url}/assign", json={"tech_id": 9999}, headers=auth_headers("tech"))
    assert unknown_tech.status_code == 400

    assigned = client.post(f"{url}/assign", json={"tech_id": users["tech2"].id}, headers=auth_headers("tech"))
    assert assigned.json()["tech_name"] == "Carla Lim"

    assert client.post(f"{url}/start", headers=auth_headers("requester")).status_code == 403
    assert client.post(f"{url}/start", headers=auth_headers("tech2")).json()["status"] == "in_progress"

    assert client.post(f"{url}/hold", headers=auth_headers("tech2")).json()["status"] == "on_hold"
    assert client.post(f"{url}/resume", headers=auth_headers("tech2")).json()["status"] == "in_progress"

    missing_action = client.post(f"{url}/resolve", json={"action_taken": ""}, headers=auth_headers("tech2"))
    assert missing_action.status_code == 400
    resolved = client.post(
        f"{url}/resolve", json={"action_taken": "Reinstalled VPN client"}, headers=auth_headers("tech2")
    )
    assert resolved.json()["status"] == "resolved"

    closed = client.post(f"{url}/close", headers=auth_headers("requester"))
    assert closed.json()["status"] == "closed"
    assert client.post(f"{url}/close", headers=auth_headers("requester")).status_code == 409


def test_reject_and_cancel(client, auth_headers):
    order = create(client, auth_headers("requester"))
    url = f"{BASE}/{order['id']}"
    assert client.post(f"{url}/reject", json={"reason": "   "}, headers=auth_headers("approver")).status_code == 400
    rejected = client.post(f"{url}/reject", json={"reason": "printer broken"}, headers=auth_headers("approver"))
    assert rejected.json()["rejection_reason"] == "printer broken"

    other = create(client, auth_headers("requester"))
    cancelled = client.delete(f"{BASE}/{other['id']}", headers=auth_headers("requester"))
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"


def test_update_and_comment(client, auth_headers):
    order = create(client, auth_headers("requester"))
    url = f"{BASE}/{order['id']}"

    updated = client.put(url, json={"priority": "critical"}, headers=auth_headers("tech"))
    assert updated.json()["priority"] == "critical"
    assert client.put(url, json={"priority": "low"}, headers=auth_headers("approver")).status_code == 403

    comment = client.post(f"{url}/comments", json={"comment": "On my way"}, headers=auth_headers("tech"))
    assert comment.status_code == 201
    assert comment.json()["author_name"] == "Ian Torres"


def test_list_paginates(client, auth_headers, db, users):
    start = datetime(2025, 3, 1)
    for i in range(30):
        db.add(JobOrder(
            work_order_no=f"JOR-2025-03-{i + 1:03d}",
            title=f"Ticket {i + 1}",
            description="Request",
            department="Program",
            priority=JobOrderPriority.MEDIUM,
            status=JobOrderStatus.ASSIGNED if i < 25 else JobOrderStatus.QUEUED,
            requester_id=users["requester"].id,
            tech_id=users["tech"].id if i < 25 else None,
            created_at=start + timedelta(hours=i),
        ))
    db.commit()

    response = client.get(
        f"{BASE}/", params={"status": "assigned", "page": 1, "limit": 20}, headers=auth_headers("tech")
    )
    assert response.status_code == 200
    body = response.json()
    assert len(body["items"]) == 20
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 25, "pages": 2}
    assert body["items"][0]["id"] == "JOR-2025-03-025"
    assert body["items"][0]["assignee"]["name"] == "Ian Torres"

    assert client.get(f"{BASE}/", params={"limit": 500}, headers=auth_headers("tech")).status_code == 422
    assert client.get(f"{BASE}/", params={"status": "lost"}, headers=auth_headers("tech")).status_code == 422


def test_tracking_endpoints(client, auth_headers):
    order = create(client, auth_headers("requester"))

    active = client.get(f"{BASE}/my-active", headers=auth_headers("requester")).json()
    assert [t["raw_id"] for t in active] == [order["id"]]

    pending = client.get(f"{BASE}/pending-approvals", headers=auth_headers("approver")).json()
    assert [t["raw_id"] for t in pending] == [order["id"]]

    assert client.get(f"{BASE}/queue", headers=auth_headers("requester")).status_code == 403
    client.post(f"{BASE}/{order['id']}/approve", headers=auth_headers("approver"))
    queue = client.get(f"{BASE}/queue", headers=auth_headers("tech")).json()
    assert [t["raw_id"] for t in queue] == [order["id"]]

    stats = client.get(f"{BASE}/stats/summary", headers=auth_headers("requester")).json()
    assert stats["total"] == 1
    assert stats["queued"] == 1


def test_submit_with_attachments(client, auth_headers, storage):
    response = client.post(
        f"{BASE}/submit",
        data={k: v for k, v in ORDER.items()},
        files=[
            ("files", ("screenshot.png", b"\x89PNG....", "image/png")),
            ("files", ("log.txt", b"timeout after 30s", "text/plain")),
        ],
        headers=auth_headers("requester"),
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["failed_attachments"] == []
    assert [a["file_name"] for a in body["attachments"]] == ["screenshot.png", "log.txt"]
    assert storage.files["log.txt"] == b"timeout after 30s"

    detail = client.get(f"{BASE}/{body['job_order']['id']}", headers=auth_headers("requester")).json()
    assert len(detail["attachments"]) == 2


def test_failed_upload_keeps_the_order(client, auth_headers):
    from main import app
    app.dependency_overrides[get_file_storage] = lambda: FailingStorage()

    response = client.post(
        f"{BASE}/submit",
        data={k: v for k, v in ORDER.items()},
        files=[("files", ("big.iso", b"0000", "application/octet-stream"))],
        headers=auth_headers("requester"),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["failed_attachments"] == ["big.iso"]
    assert body["attachments"] == []
    assert "could not be uploaded" in body["message"]

    order_id = body["job_order"]["id"]
    assert client.get(f"{BASE}/{order_id}", headers=auth_headers("requester")).status_code == 200

    upload = client.post(
        f"{BASE}/{order_id}/attachments",
        files={"file": ("again.iso", b"0000", "application/octet-stream")},
        headers=auth_headers("requester"),
    )
    assert upload.status_code == 502


def test_upload_single_attachment(client, auth_headers):
    order = create(client, auth_headers("requester"))
    response = client.post(
        f"{BASE}/{order['id']}/attachments",
        files={"file": ("photo.jpg", b"jpegdata", "image/jpeg")},
        headers=auth_headers("requester"),
    )
    assert response.status_code == 201
    assert response.json()["file_size"] == 8
    assert response.json()["uploaded_by_name"] == "Jane Dela Cruz"


def test_update_rejects_null_required_fields(client, auth_headers):
    order = create(client, auth_headers("requester"))
    url = f"{BASE}/{order['id']}"

    for body in ({"title": None}, {"description": None}, {"priority": None}, {"title": "  "}):
        response = client.put(url, json=body, headers=auth_headers("requester"))
        assert response.status_code == 400, body

    detail = client.get(url, headers=auth_headers("requester")).json()
    assert detail["title"] == ORDER["title"]
    assert detail["priority"] == "high"


def test_pull_next_from_queue(client, auth_headers, users):
    empty = client.post(f"{BASE}/queue/next", headers=auth_headers("tech"))
    assert empty.status_code == 200
    assert empty.json() == {"job_order": None, "message": "No work orders in queue"}

    order = create(client, auth_headers("requester"))
    client.post(f"{BASE}/{order['id']}/approve", headers=auth_headers("approver"))

    assert client.post(f"{BASE}/queue/next", headers=auth_headers("requester")).status_code == 403

    pulled = client.post(f"{BASE}/queue/next", headers=auth_headers("tech2"))
    assert pulled.status_code == 200
    body = pulled.json()
    assert body["job_order"]["id"] == order["id"]
    assert body["job_order"]["status"] == "assigned"
    assert body["job_order"]["tech_id"] == users["tech2"].id
    assert order["work_order_no"] in body["message"]
