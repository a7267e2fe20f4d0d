from fastapi import APIRouter, Depends, HTTPException, status, Query, File, UploadFile
from typing import List, Optional
from datetime import date
import math

from apps.cars.schemas import (
    CarCreate,
    CarUpdate,
    CarStatusUpdate,
    CarResponse,
    CarListResponse,
    GroupCount,
    NextCaseNumberResponse,
    FacilityCreate,
    FacilityResponse
)
from apps.cars.services import CarService, get_car_service
from apps.auth.services import get_current_user, get_current_admin
from apps.auth.models import UserModel

router = APIRouter()

# ============ STATIC ROUTES FIRST (before /{car_id}) ============

@router.get(
    "/grouped/province",
    response_model=List[GroupCount],
    summary="CAR count per province",
    description="Number of CARs per province, optionally filtered by status and endorsement date"
)
def get_grouped_by_province(
    status_filter: Optional[str] = Query(None, alias="status"),
    date_start: Optional[date] = Query(None),
    date_end: Optional[date] = Query(None),
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    return service.grouped_by_province(status=status_filter, date_start=date_start, date_end=date_end)

@router.get(
    "/grouped/sub-code",
    response_model=List[GroupCount],
    summary="CAR count per primary sub code"
)
def get_grouped_by_sub_code(
    date_start: Optional[date] = Query(None),
    date_end: Optional[date] = Query(None),
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    return service.grouped_by_sub_code(date_start=date_start, date_end=date_end)

@router.get(
    "/next-case-number",
    response_model=NextCaseNumberResponse,
    summary="Next case number",
    description="Suggest the next case number for a province and year"
)
def get_next_case_number(
    province_code: str = Query(..., min_length=1),
    year: Optional[int] = Query(None, ge=2000, le=9999),
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    case_no = service.next_case_number(province_code, year)
    _, case_year, _ = case_no.rsplit("-", 2)
    return NextCaseNumberResponse(case_no=case_no, province_code=province_code.strip().upper(), year=int(case_year))

@router.get("/facilities", response_model=List[FacilityResponse], summary="List facilities")
def get_facilities(
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    return service.get_facilities()

@router.post(
    "/facilities",
    response_model=FacilityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a facility",
    description="Register a facility in the directory used to fill CAR details (Admin only)"
)
def create_facility(
    facility: FacilityCreate,
    service: CarService = Depends(get_car_service),
    admin: UserModel = Depends(get_current_admin)
):
    return service.create_facility(facility)

@router.get(
    "/facilities/{code}",
    response_model=FacilityResponse,
    summary="Look up a facility",
    description="Facility name, city and province for a facility code"
)
def get_facility(
    code: str,
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    return service.get_facility(code)

# ============ CRUD ROUTES ============

@router.post(
    "/",
    response_model=CarResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a CAR"
)
def create_car(
    car: CarCreate,
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    return service.create_car(car)

@router.get(
    "/",
    response_model=CarListResponse,
    summary="Get all CARs",
    description="Retrieve CARs with status, endorsement date and text filters"
)
def get_cars(
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Number of items to return"),
    status_filter: Optional[str] = Query(None, alias="status", description="open, closed or pending"),
    date_start: Optional[date] = Query(None, description="Endorsed on or after"),
    date_end: Optional[date] = Query(None, description="Endorsed on or before"),
    search: Optional[str] = Query(None, description="Search case number, facility or lab number"),
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        cars, total = service.get_cars(
            skip=skip,
            limit=limit,
            status=status_filter,
            date_start=date_start,
            date_end=date_end,
            search=search
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

    return CarListResponse(
        items=cars,
        total=total,
        page=(skip // limit) + 1,
        size=limit,
        total_pages=math.ceil(total / limit)
    )

# ============ DYNAMIC ROUTES (must come after static routes) ============

@router.get("/{car_id}", response_model=CarResponse, summary="Get CAR by ID")
def get_car(
    car_id: int,
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    car = service.get_car(car_id)
    if not car:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="CAR record not found"
        )
    return car

@router.put("/{car_id}", response_model=CarResponse, summary="Update CAR")
def update_car(
    car_id: int,
    car_update: CarUpdate,
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    return service.update_car(car_id, car_update)

@router.patch(
    "/{car_id}/status",
    response_model=CarResponse,
    summary="Change CAR status",
    description="Set open, closed or pending. Closing stamps closed_on; any other status clears it."
)
def update_car_status(
    car_id: int,
    status_update: CarStatusUpdate,
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    return service.update_status(car_id, status_update.status)

@router.post("/{car_id}/attachment", response_model=CarResponse, summary="Upload CAR document")
def upload_car_attachment(
    car_id: int,
    file: UploadFile = File(...),
    service: CarService = Depends(get_car_service),
    current_user: UserModel = Depends(get_current_user)
):
    return service.attach_file(car_id, file.filename, file.file)

@router.delete(
    "/{car_id}",
    status_code=status.HTTP_200_OK,
    summary="Delete CAR",
    description="Delete a CAR record (Admin only)"
)
def delete_car(
    car_id: int,
    service: CarService = Depends(get_car_service),
    admin: UserModel = Depends(get_current_admin)
):
    service.delete_car(car_id)
    return {"message": "CAR record deleted successfully"}
