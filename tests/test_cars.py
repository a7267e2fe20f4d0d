import io
from datetime import datetime

import pytest

from apps.cars.models import Car, Facility
from apps.cars.schemas import CarCreate, CarUpdate
from core.exceptions import NotFound, ValidationError

BASE = "/api/v1/cars"


@pytest.fixture
def facilities(db):
    db.add_all([
        Facility(code="F001", name="San Lazaro Hospital", city="Manila", province="Metro Manila"),
        Facility(code="F002", name="Cebu Doctors", city="Cebu City", province="Cebu"),
    ])
    db.commit()


def new_car(car_service, **overrides):
    data = {
        "case_no": "NCR-2025-0001",
        "date_endorsed": datetime(2025, 3, 10, 9, 0),
        "facility_code": "F001",
        "endorsed_by": "PDO",
        "sub_code1": "Unsat",
    }
    data.update(overrides)
    return car_service.create_car(CarCreate(**data))


def test_create_fills_facility_details(car_service, facilities):
    car = new_car(car_service, facility_code="f001")
    assert car.facility_code == "F001"
    assert car.facility_name == "San Lazaro Hospital"
    assert car.province == "Metro Manila"
    assert car.status == "open"
    assert car.closed_on is None


def test_create_keeps_given_facility_details(car_service, facilities):
    car = new_car(car_service, facility_name="Annex Clinic")
    assert car.facility_name == "Annex Clinic"
    assert car.city == "Manila"


@pytest.mark.parametrize("field", ["case_no", "facility_code"])
def test_create_requires_fields(car_service, field):
    with pytest.raises(ValidationError):
        new_car(car_service, **{field: "  "})


def test_duplicate_case_number(car_service):
    new_car(car_service)
    with pytest.raises(ValidationError):
        new_car(car_service)


def test_status_changes_stamp_and_clear_closed_on(car_service):
    car = new_car(car_service)

    car = car_service.update_status(car.id, "Closed")
    assert car.status == "closed"
    assert car.closed_on is not None

    car = car_service.update_status(car.id, "pending")
    assert car.status == "pending"
    assert car.closed_on is None

    car = car_service.update_status(car.id, "open")
    assert car.status == "open"

    with pytest.raises(ValidationError):
        car_service.update_status(car.id, "archived")
    with pytest.raises(ValidationError):
        car_service.update_status(car.id, "")
    with pytest.raises(NotFound):
        car_service.update_status(9999, "open")


def test_update_car(car_service):
    car = new_car(car_service)
    car = car_service.update_car(car.id, CarUpdate(remarks="Recollection requested", number_sample=3))
    assert car.remarks == "Recollection requested"
    assert car.number_sample == 3
    with pytest.raises(ValidationError):
        car_service.update_car(car.id, CarUpdate())


def test_list_filters(car_service):
    new_car(car_service, case_no="NCR-2025-0001", date_endorsed=datetime(2025, 1, 5))
    new_car(car_service, case_no="NCR-2025-0002", date_endorsed=datetime(2025, 2, 5))
    closed = new_car(car_service, case_no="NCR-2025-0003", date_endorsed=datetime(2025, 2, 28, 17, 0))
    car_service.update_status(closed.id, "closed")

    cars, total = car_service.get_cars()
    assert total == 3
    assert [c.case_no for c in cars] == ["NCR-2025-0003", "NCR-2025-0002", "NCR-2025-0001"]

    cars, total = car_service.get_cars(status="OPEN")
    assert total == 2

    cars, total = car_service.get_cars(
        date_start=datetime(2025, 2, 1).date(), date_end=datetime(2025, 2, 28).date()
    )
    assert {c.case_no for c in cars} == {"NCR-2025-0002", "NCR-2025-0003"}

    cars, total = car_service.get_cars(search="0002")
    assert total == 1


def test_grouped_reports(car_service, facilities):
    new_car(car_service, case_no="NCR-2025-0001")
    new_car(car_service, case_no="NCR-2025-0002")
    new_car(car_service, case_no="CEB-2025-0001", facility_code="F002", sub_code1="Delayed")
    new_car(car_service, case_no="X-2025-0001", facility_code="F999")

    assert car_service.grouped_by_province() == [
        {"key": "Metro Manila", "count": 2},
        {"key": "Cebu", "count": 1},
    ]
    assert car_service.grouped_by_province(status="closed") == []
    assert car_service.grouped_by_sub_code()[0] == {"key": "Unsat", "count": 3}


def test_next_case_number(car_service):
    assert car_service.next_case_number("ncr", 2025) == "NCR-2025-0001"
    new_car(car_service, case_no="NCR-2025-0009")
    new_car(car_service, case_no="NCR-2024-0042")
    assert car_service.next_case_number("NCR", 2025) == "NCR-2025-0010"
    assert car_service.next_case_number("NCR", 2024) == "NCR-2024-0043"
    with pytest.raises(ValidationError):
        car_service.next_case_number(" ")


def test_facility_lookup(car_service, facilities):
    assert car_service.get_facility("f002").name == "Cebu Doctors"
    with pytest.raises(NotFound):
        car_service.get_facility("F404")


def test_attach_file(car_service, storage):
    car = new_car(car_service)
    car = car_service.attach_file(car.id, "car-form.pdf", io.BytesIO(b"%PDF"))
    assert car.attachment_path == "/uploads/car-form.pdf"
    assert storage.files["car-form.pdf"] == b"%PDF"


def test_cars_api(client, auth_headers, facilities, db):
    headers = auth_headers("requester")
    payload = {"case_no": "NCR-2025-0001", "date_endorsed": "2025-03-10T09:00:00", "facility_code": "F001"}

    created = client.post(f"{BASE}/", json=payload, headers=headers)
    assert created.status_code == 201
    car_id = created.json()["id"]
    assert created.json()["facility_name"] == "San Lazaro Hospital"

    missing = client.post(f"{BASE}/", json={"case_no": "X"}, headers=headers)
    assert missing.status_code == 422

    listing = client.get(f"{BASE}/", params={"status": "open"}, headers=headers).json()
    assert listing["total"] == 1
    assert listing["total_pages"] == 1

    closed = client.patch(f"{BASE}/{car_id}/status", json={"status": "closed"}, headers=headers)
    assert closed.json()["status"] == "closed"
    assert closed.json()["closed_on"] is not None
    bad = client.patch(f"{BASE}/{car_id}/status", json={"status": "archived"}, headers=headers)
    assert bad.status_code == 400

    next_no = client.get(f"{BASE}/next-case-number", params={"province_code": "ncr", "year": 2025}, headers=headers)
    assert next_no.json() == {"case_no": "NCR-2025-0002", "province_code": "NCR", "year": 2025}

    grouped = client.get(f"{BASE}/grouped/province", headers=headers).json()
    assert grouped == [{"key": "Metro Manila", "count": 1}]

    assert client.get(f"{BASE}/facilities/F002", headers=headers).json()["city"] == "Cebu City"
    assert client.get(f"{BASE}/facilities/NOPE", headers=headers).status_code == 404

    assert client.delete(f"{BASE}/{car_id}", headers=headers).status_code == 403
    assert client.delete(f"{BASE}/{car_id}", headers=auth_headers("admin")).status_code == 200
    assert client.get(f"{BASE}/{car_id}", headers=headers).status_code == 404
    assert db.query(Car).count() == 0


def test_search_and_case_number_treat_wildcards_literally(car_service):
    new_car(car_service, case_no="NCR-2025-0001", labno="LAB_77")
    new_car(car_service, case_no="NCRX-2025-0050")

    cars, total = car_service.get_cars(search="_")
    assert [c.labno for c in cars] == ["LAB_77"]
    _, total = car_service.get_cars(search="%")
    assert total == 0

    # NCR_-2025- would match NCRX-2025-0050 if "_" were a wildcard
    assert car_service.next_case_number("NCR_", 2025) == "NCR_-2025-0001"


def test_facility_directory(client, auth_headers, car_service):
    facility = {"code": "f003", "name": "Davao Medical Center", "city": "Davao City", "province": "Davao del Sur"}

    assert client.post(f"{BASE}/facilities", json=facility, headers=auth_headers("requester")).status_code == 403

    created = client.post(f"{BASE}/facilities", json=facility, headers=auth_headers("admin"))
    assert created.status_code == 201
    assert created.json()["code"] == "F003"

    duplicate = client.post(f"{BASE}/facilities", json=facility, headers=auth_headers("admin"))
    assert duplicate.status_code == 400

    listing = client.get(f"{BASE}/facilities", headers=auth_headers("requester")).json()
    assert [f["code"] for f in listing] == ["F003"]

    car = new_car(car_service, facility_code="F003")
    assert car.facility_name == "Davao Medical Center"
    assert car.province == "Davao del Sur"
