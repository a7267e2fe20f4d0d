from datetime import datetime, timedelta

import pytest

from apps.job_orders.models import JobOrder, JobOrderStatus, JobOrderPriority
from apps.job_orders.schemas import JobOrderFilters


@pytest.fixture
def seeded(db, users):
    """25 assigned orders and 5 queued ones, oldest first."""
    start = datetime(2025, 3, 1, 8, 0)
    for i in range(30):
        db.add(JobOrder(
            work_order_no=f"JOR-2025-03-{i + 1:03d}",
            title=f"Ticket {i + 1}",
            description="Keyboard keys stuck" if i % 10 == 0 else "General request",
            department="PDO" if i % 2 else "Program",
            priority=JobOrderPriority.CRITICAL if i == 3 else JobOrderPriority.LOW,
            status=JobOrderStatus.ASSIGNED if i < 25 else JobOrderStatus.QUEUED,
            requester_id=users["requester"].id if i < 28 else users["other_requester"].id,
            tech_id=users["tech"].id if i < 25 else None,
            created_at=start + timedelta(hours=i),
        ))
    db.commit()


def test_status_filter_paginates(service, sessions, seeded):
    filters = JobOrderFilters(status=JobOrderStatus.ASSIGNED, page=1, limit=20)
    records, total = service.list_job_orders(filters, sessions["tech"])
    assert total == 25
    assert len(records) == 20
    assert all(r["status"] == "assigned" for r in records)

    records, total = service.list_job_orders(filters.model_copy(update={"page": 2}), sessions["tech"])
    assert total == 25
    assert len(records) == 5


def test_default_sort_is_newest_first(service, sessions, seeded):
    records, _ = service.list_job_orders(JobOrderFilters(limit=3), sessions["tech"])
    assert [r["work_order_no"] for r in records] == ["JOR-2025-03-030", "JOR-2025-03-029", "JOR-2025-03-028"]


def test_sort_by_priority_puts_critical_first(service, sessions, seeded):
    records, _ = service.list_job_orders(JobOrderFilters(sort_by="priority", limit=1), sessions["tech"])
    assert records[0]["priority"] == "critical"


def test_unknown_sort_column_falls_back():
    assert JobOrderFilters(sort_by="password", sort_order="sideways").sort_by == "created_at"
    assert JobOrderFilters(sort_order="ASC").sort_order == "asc"


def test_requester_only_sees_own_orders(service, sessions, seeded):
    _, total = service.list_job_orders(JobOrderFilters(), sessions["requester"])
    assert total == 28
    _, total = service.list_job_orders(JobOrderFilters(), sessions["other_requester"])
    assert total == 2


def test_approver_sees_department_across_aliases(service, sessions, seeded):
    _, total = service.list_job_orders(JobOrderFilters(), sessions["approver"])
    assert total == 30
    _, total = service.list_job_orders(JobOrderFilters(), sessions["lab_approver"])
    assert total == 0


def test_department_filter_matches_aliases(service, sessions, seeded):
    _, total = service.list_job_orders(JobOrderFilters(department="program"), sessions["tech"])
    assert total == 30


def test_search_matches_title_description_and_number(service, sessions, seeded):
    _, total = service.list_job_orders(JobOrderFilters(search="keyboard"), sessions["tech"])
    assert total == 3
    records, total = service.list_job_orders(JobOrderFilters(search="03-017"), sessions["tech"])
    assert total == 1
    assert records[0]["title"] == "Ticket 17"


def test_search_treats_wildcards_literally(service, sessions, users, db, seeded):
    _, total = service.list_job_orders(JobOrderFilters(search="_"), sessions["tech"])
    assert total == 0
    _, total = service.list_job_orders(JobOrderFilters(search="%"), sessions["tech"])
    assert total == 0

    db.add(JobOrder(
        work_order_no="JOR-2025-04-001",
        title="Error 0x80_04 on login",
        description="100% CPU after update",
        department="Program",
        status=JobOrderStatus.QUEUED,
        requester_id=users["requester"].id,
    ))
    db.commit()

    records, total = service.list_job_orders(JobOrderFilters(search="_"), sessions["tech"])
    assert total == 1
    assert records[0]["work_order_no"] == "JOR-2025-04-001"
    _, total = service.list_job_orders(JobOrderFilters(search="100%"), sessions["tech"])
    assert total == 1


def test_tech_and_requester_filters(service, sessions, users, seeded):
    _, total = service.list_job_orders(JobOrderFilters(tech_id=users["tech"].id), sessions["tech"])
    assert total == 25
    _, total = service.list_job_orders(
        JobOrderFilters(requester_id=users["other_requester"].id), sessions["tech"]
    )
    assert total == 2


def test_empty_result(service, sessions, seeded):
    records, total = service.list_job_orders(JobOrderFilters(status=JobOrderStatus.CLOSED), sessions["tech"])
    assert records == []
    assert total == 0
