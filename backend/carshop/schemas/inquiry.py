from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from carshop.models.inquiry import InquiryStatus
from carshop.schemas.common import Pagination


class InquiryCreate(BaseModel):
    car_id: int = Field(..., ge=1)
    message: str = Field(..., min_length=10, max_length=1000)


class InquiryStatusUpdate(BaseModel):
    status: InquiryStatus


class CarSummary(BaseModel):
    make: str
    model: str
    year: int
    price: float
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    username: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class InquiryResponse(BaseModel):
    id: int
    user_id: int
    car_id: int
    message: str
    status: InquiryStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    car: Optional[CarSummary] = None
    user: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class InquiryEnvelope(BaseModel):
    message: str
    inquiry: InquiryResponse


class InquiryListResponse(BaseModel):
    inquiries: List[InquiryResponse]
    pagination: Pagination


class InquiryOverview(BaseModel):
    total_inquiries: int
    pending_inquiries: int
    responded_inquiries: int
    closed_inquiries: int
    recent_inquiries: int


class InquiredCar(BaseModel):
    make: str
    model: str
    year: int
    inquiry_count: int


class InquiryStatsResponse(BaseModel):
    overview: InquiryOverview
    most_inquired_cars: List[InquiredCar]
