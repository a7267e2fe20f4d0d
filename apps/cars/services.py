from sqlalchemy.orm import Session
from sqlalchemy import or_, func
from typing import List, Optional, Tuple, Dict, BinaryIO
from fastapi import Depends
from datetime import datetime, date, time, timedelta
import logging

from apps.cars.models import Car, CarStatus, Facility
from apps.cars.schemas import CarCreate, CarUpdate, FacilityCreate
from core.database import get_db
from core.exceptions import NotFound, ValidationError
from core.storage import FileStorage, get_file_storage

logger = logging.getLogger(__name__)

VALID_STATUSES = [s.value for s in CarStatus]


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _date_range(query, column, date_start: Optional[date], date_end: Optional[date]):
    """Inclusive day range on a datetime column."""
    if date_start:
        query = query.filter(column >= datetime.combine(date_start, time.min))
    if date_end:
        query = query.filter(column < datetime.combine(date_end + timedelta(days=1), time.min))
    return query


class CarService:
    def __init__(self, db: Session, storage: Optional[FileStorage] = None):
        self.db = db
        self.storage = storage or get_file_storage()

    def get_car(self, car_id: int) -> Optional[Car]:
        """Get CAR by ID"""
        return self.db.query(Car).filter(Car.id == car_id).first()

    def get_car_by_case_no(self, case_no: str) -> Optional[Car]:
        return self.db.query(Car).filter(Car.case_no == case_no.strip()).first()

    def _get_or_404(self, car_id: int) -> Car:
        car = self.get_car(car_id)
        if not car:
            raise NotFound("CAR record not found")
        return car

    def get_cars(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[str] = None,
        date_start: Optional[date] = None,
        date_end: Optional[date] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Car], int]:
        """Get CARs with filtering and pagination, newest endorsement first"""
        query = self.db.query(Car)

        if status:
            query = query.filter(func.lower(Car.status) == status.strip().lower())

        query = _date_range(query, Car.date_endorsed, date_start, date_end)

        if search:
            term = search.strip()
            query = query.filter(
                or_(
                    Car.case_no.icontains(term, autoescape=True),
                    Car.facility_code.icontains(term, autoescape=True),
                    Car.facility_name.icontains(term, autoescape=True),
                    Car.labno.icontains(term, autoescape=True),
                )
            )

        total = query.count()
        cars = query.order_by(Car.date_endorsed.desc(), Car.id.desc()).offset(skip).limit(limit).all()
        return cars, total

    def create_car(self, car: CarCreate) -> Car:
        """
        Register a new CAR.

        Facility name, city and province are filled from the facility
        directory when the caller leaves them out.
        """
        missing = [
            field for field in ("case_no", "date_endorsed", "facility_code")
            if _is_blank(getattr(car, field))
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        if self.get_car_by_case_no(car.case_no):
            raise ValidationError(f"CAR with case number '{car.case_no}' already exists")

        values = car.model_dump()
        values["case_no"] = values["case_no"].strip()
        values["facility_code"] = values["facility_code"].strip().upper()
        values["status"] = car.status.value
        if values["status"] == CarStatus.CLOSED.value:
            values["closed_on"] = datetime.utcnow()

        facility = self.db.query(Facility).filter(Facility.code == values["facility_code"]).first()
        if facility:
            for field, source in (("facility_name", facility.name), ("city", facility.city), ("province", facility.province)):
                if _is_blank(values.get(field)):
                    values[field] = source

        db_car = Car(**values)
        self.db.add(db_car)
        self.db.commit()
        self.db.refresh(db_car)

        logger.info(f"Created CAR: {db_car.case_no} (ID: {db_car.id})")
        return db_car

    def update_car(self, car_id: int, car_update: CarUpdate) -> Car:
        """Update CAR details. Status has its own operation."""
        db_car = self._get_or_404(car_id)

        update_data = car_update.model_dump(exclude_unset=True)
        if not update_data:
            raise ValidationError("No valid fields to update")
        if "facility_code" in update_data and _is_blank(update_data["facility_code"]):
            raise ValidationError("facility_code cannot be blank")
        if "date_endorsed" in update_data and update_data["date_endorsed"] is None:
            raise ValidationError("date_endorsed cannot be empty")

        for field, value in update_data.items():
            setattr(db_car, field, value)

        self.db.commit()
        self.db.refresh(db_car)
        logger.info(f"Updated CAR: {db_car.case_no} (ID: {db_car.id})")
        return db_car

    def update_status(self, car_id: int, status: str) -> Car:
        """Set any status; closing stamps closed_on and reopening clears it."""
        if _is_blank(status):
            raise ValidationError("Status is required")
        new_status = status.strip().lower()
        if new_status not in VALID_STATUSES:
            raise ValidationError(f"Status must be: {', '.join(VALID_STATUSES)}")

        db_car = self._get_or_404(car_id)
        previous = db_car.status
        db_car.status = new_status
        db_car.closed_on = datetime.utcnow() if new_status == CarStatus.CLOSED.value else None

        self.db.commit()
        self.db.refresh(db_car)
        logger.info(f"CAR {db_car.case_no}: status {previous} -> {new_status}")
        return db_car

    def attach_file(self, car_id: int, filename: str, fileobj: BinaryIO) -> Car:
        db_car = self._get_or_404(car_id)
        if not filename:
            raise ValidationError("No file uploaded")
        stored = self.storage.save(filename, fileobj)
        db_car.attachment_path = f"/uploads/{stored.path}"
        self.db.commit()
        self.db.refresh(db_car)
        logger.info(f"Attached {filename} to CAR {db_car.case_no}")
        return db_car

    def delete_car(self, car_id: int) -> bool:
        db_car = self._get_or_404(car_id)
        self.db.delete(db_car)
        self.db.commit()
        logger.info(f"Deleted CAR: {db_car.case_no} (ID: {car_id})")
        return True

    # ============ Reports ============

    def grouped_by_province(
        self,
        status: Optional[str] = None,
        date_start: Optional[date] = None,
        date_end: Optional[date] = None,
    ) -> List[Dict]:
        query = self.db.query(Car.province, func.count(Car.id).label("count")).filter(
            Car.province.isnot(None), Car.province != ""
        )
        if status:
            query = query.filter(func.lower(Car.status) == status.strip().lower())
        query = _date_range(query, Car.date_endorsed, date_start, date_end)

        rows = query.group_by(Car.province).order_by(func.count(Car.id).desc(), Car.province.asc()).all()
        return [{"key": province, "count": count} for province, count in rows]

    def grouped_by_sub_code(self, date_start: Optional[date] = None, date_end: Optional[date] = None) -> List[Dict]:
        query = self.db.query(Car.sub_code1, func.count(Car.id).label("count"))
        query = _date_range(query, Car.date_endorsed, date_start, date_end)
        rows = query.group_by(Car.sub_code1).order_by(func.count(Car.id).desc()).all()
        return [{"key": sub_code, "count": count} for sub_code, count in rows]

    # ============ Collaborators ============

    def next_case_number(self, province_code: str, year: Optional[int] = None) -> str:
        """Next ``<PROVINCE>-<YEAR>-<NNNN>`` case number; numbering restarts each year."""
        if _is_blank(province_code):
            raise ValidationError("province_code is required")
        province_code = province_code.strip().upper()
        year = year or datetime.utcnow().year
        prefix = f"{province_code}-{year}"

        rows = self.db.query(Car.case_no).filter(Car.case_no.startswith(f"{prefix}-", autoescape=True)).all()
        last_number = 0
        for (case_no,) in rows:
            suffix = case_no.rsplit("-", 1)[-1]
            if suffix.isdigit():
                last_number = max(last_number, int(suffix))
        return f"{prefix}-{last_number + 1:04d}"

    def get_facilities(self) -> List[Facility]:
        return self.db.query(Facility).order_by(Facility.code).all()

    def create_facility(self, data: FacilityCreate) -> Facility:
        if _is_blank(data.code) or _is_blank(data.name):
            raise ValidationError("Facility code and name are required")
        if self.db.get(Facility, data.code):
            raise ValidationError(f"Facility '{data.code}' already exists")

        facility = Facility(**data.model_dump())
        facility.name = facility.name.strip()
        self.db.add(facility)
        self.db.commit()
        self.db.refresh(facility)
        logger.info(f"Added facility {facility.code}: {facility.name}")
        return facility

    def get_facility(self, code: str) -> Facility:
        if _is_blank(code):
            raise ValidationError("Facility code is required")
        facility = self.db.query(Facility).filter(Facility.code == code.strip().upper()).first()
        if not facility:
            raise NotFound(f"Facility '{code.strip()}' not found")
        return facility


# Dependency injection
def get_car_service(
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_file_storage),
) -> CarService:
    return CarService(db, storage)
