from core.database import Base
from sqlalchemy import Column, Integer, String, DateTime, Date
from datetime import datetime
import enum


class CarStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    PENDING = "pending"


class Car(Base):
    """Corrective Action Report raised against a facility."""
    __tablename__ = "cars"

    id = Column(Integer, primary_key=True, index=True)
    case_no = Column(String(25), unique=True, index=True, nullable=False)
    date_endorsed = Column(DateTime, index=True, nullable=False)
    endorsed_by = Column(String(25), nullable=True)

    facility_code = Column(String(10), index=True, nullable=False)
    facility_name = Column(String(100), nullable=True)
    city = Column(String(50), nullable=True)
    province = Column(String(50), index=True, nullable=True)

    labno = Column(String(100), nullable=True)
    repeat_field = Column(String(50), nullable=True)
    # Free-standing: any status can be set from any other
    status = Column(String(20), index=True, nullable=False, default=CarStatus.OPEN.value)
    number_sample = Column(Integer, nullable=True)
    case_code = Column(String(10), nullable=True)
    sub_code1 = Column(String(25), index=True, nullable=True)
    sub_code2 = Column(String(25), nullable=True)
    sub_code3 = Column(String(25), nullable=True)
    sub_code4 = Column(String(25), nullable=True)
    remarks = Column(String(255), nullable=True)
    frc = Column(String(10), nullable=True)
    wrc = Column(String(10), nullable=True)
    prepared_by = Column(String(50), nullable=True)

    followup_on = Column(Date, nullable=True)
    reviewed_on = Column(Date, nullable=True)
    closed_on = Column(DateTime, nullable=True)
    attachment_path = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Facility(Base):
    __tablename__ = "facilities"

    code = Column(String(10), primary_key=True)
    name = Column(String(100), nullable=False)
    city = Column(String(50), nullable=True)
    province = Column(String(50), nullable=True)
