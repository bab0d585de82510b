from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from carshop.models.car import FuelType, Transmission
from carshop.schemas.common import Pagination


class CarBase(BaseModel):
    make: str = Field(..., min_length=1, max_length=50)
    model: str = Field(..., min_length=1, max_length=50)
    year: int = Field(..., ge=1900)
    price: float = Field(..., ge=0)
    mileage: int = Field(0, ge=0)
    color: Optional[str] = Field(None, max_length=30)
    fuel_type: FuelType = FuelType.gasoline
    transmission: Transmission = Transmission.manual
    description: Optional[str] = Field(None, max_length=1000)
    image_url: Optional[HttpUrl] = None
    is_available: bool = True

    @field_validator('year')
    @classmethod
    def year_not_too_far_ahead(cls, v):
        if v > date.today().year + 1:
            raise ValueError('Enter valid year')
        return v

    def to_columns(self) -> Dict[str, Any]:
        """Field values ready to be set on the Car model."""
        data = self.model_dump()
        data["image_url"] = str(self.image_url) if self.image_url else None
        return data


class CarCreate(CarBase):
    pass


class CarUpdate(CarBase):
    pass


class CarResponse(BaseModel):
    id: int
    make: str
    model: str
    year: int
    price: float
    mileage: int
    color: Optional[str] = None
    fuel_type: FuelType
    transmission: Transmission
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CarEnvelope(BaseModel):
    message: str
    car: CarResponse


class CarListResponse(BaseModel):
    cars: List[CarResponse]
    pagination: Pagination


class CarOverview(BaseModel):
    total_cars: int
    available_cars: int
    average_price: Optional[float] = None
    lowest_price: Optional[float] = None
    highest_price: Optional[float] = None


class MakeCount(BaseModel):
    make: str
    count: int


class CarStatsResponse(BaseModel):
    overview: CarOverview
    popular_makes: List[MakeCount]
