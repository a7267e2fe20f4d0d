from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime, date

from apps.cars.models import CarStatus


class CarBase(BaseModel):
    case_no: str = Field(..., max_length=25, description="Case number, e.g. NCR-2025-0001")
    date_endorsed: datetime
    endorsed_by: Optional[str] = Field(None, max_length=25)
    facility_code: str = Field(..., max_length=10)
    facility_name: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=50)
    province: Optional[str] = Field(None, max_length=50)
    labno: Optional[str] = Field(None, max_length=100)
    repeat_field: Optional[str] = Field(None, max_length=50)
    status: CarStatus = CarStatus.OPEN
    number_sample: Optional[int] = Field(None, ge=0)
    case_code: Optional[str] = Field(None, max_length=10)
    sub_code1: Optional[str] = Field(None, max_length=25)
    sub_code2: Optional[str] = Field(None, max_length=25)
    sub_code3: Optional[str] = Field(None, max_length=25)
    sub_code4: Optional[str] = Field(None, max_length=25)
    remarks: Optional[str] = Field(None, max_length=255)
    frc: Optional[str] = Field(None, max_length=10)
    wrc: Optional[str] = Field(None, max_length=10)
    prepared_by: Optional[str] = Field(None, max_length=50)
    followup_on: Optional[date] = None
    reviewed_on: Optional[date] = None


class CarCreate(CarBase):
    pass


class CarUpdate(BaseModel):
    date_endorsed: Optional[datetime] = None
    endorsed_by: Optional[str] = Field(None, max_length=25)
    facility_code: Optional[str] = Field(None, max_length=10)
    facility_name: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=50)
    province: Optional[str] = Field(None, max_length=50)
    labno: Optional[str] = Field(None, max_length=100)
    repeat_field: Optional[str] = Field(None, max_length=50)
    number_sample: Optional[int] = Field(None, ge=0)
    case_code: Optional[str] = Field(None, max_length=10)
    sub_code1: Optional[str] = Field(None, max_length=25)
    sub_code2: Optional[str] = Field(None, max_length=25)
    sub_code3: Optional[str] = Field(None, max_length=25)
    sub_code4: Optional[str] = Field(None, max_length=25)
    remarks: Optional[str] = Field(None, max_length=255)
    frc: Optional[str] = Field(None, max_length=10)
    wrc: Optional[str] = Field(None, max_length=10)
    prepared_by: Optional[str] = Field(None, max_length=50)
    followup_on: Optional[date] = None
    reviewed_on: Optional[date] = None

    @validator('facility_code')
    def facility_code_uppercase(cls, v):
        if v is not None:
            return v.strip().upper()
        return v


class CarStatusUpdate(BaseModel):
    # Plain string so an unknown status reaches the service and gets a 400
    status: str


class CarResponse(CarBase):
    id: int
    status: str
    closed_on: Optional[datetime]
    attachment_path: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CarListResponse(BaseModel):
    items: List[CarResponse]
    total: int
    page: int
    size: int
    total_pages: int


class GroupCount(BaseModel):
    key: Optional[str]
    count: int


class NextCaseNumberResponse(BaseModel):
    case_no: str
    province_code: str
    year: int


class FacilityCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=10)
    name: str = Field(..., min_length=1, max_length=100)
    city: Optional[str] = Field(None, max_length=50)
    province: Optional[str] = Field(None, max_length=50)

    @validator('code')
    def code_uppercase(cls, v):
        return v.strip().upper()


class FacilityResponse(BaseModel):
    code: str
    name: str
    city: Optional[str]
    province: Optional[str]

    class Config:
        from_attributes = True
