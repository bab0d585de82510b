"""Car listing CRUD endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case
from typing import Optional
import logging

from carshop.core.database import get_db
from carshop.core.errors import NotFoundError
from carshop.api import deps
from carshop.models.car import Car, FuelType, Transmission
from carshop.schemas.car import (
    CarCreate, CarUpdate, CarResponse, CarEnvelope, CarListResponse,
    CarOverview, CarStatsResponse, MakeCount,
)
from carshop.schemas.common import Pagination
from carshop.schemas.token import MessageResponse
from carshop.schemas.user import Identity

router = APIRouter()
logger = logging.getLogger(__name__)


async def _get_car_or_404(db: AsyncSession, car_id: int) -> Car:
    result = await db.execute(select(Car).where(Car.id == car_id))
    car = result.scalar_one_or_none()
    if not car:
        raise NotFoundError("Car not found")
    return car


@router.get("", response_model=CarListResponse)
async def list_cars(
    db: AsyncSession = Depends(get_db),
    identity: Optional[Identity] = Depends(deps.get_optional_identity),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    make: Optional[str] = Query(None, description="Substring of the make"),
    model: Optional[str] = Query(None, description="Substring of the model"),
    min_price: Optional[float] = Query(None, ge=0, alias="minPrice"),
    max_price: Optional[float] = Query(None, ge=0, alias="maxPrice"),
    fuel_type: Optional[FuelType] = Query(None, alias="fuelType"),
    transmission: Optional[Transmission] = None,
    available: bool = Query(True, description="Only cars open for inquiries"),
) -> CarListResponse:
    """
    List cars with filters and pagination.

    Anonymous callers and customers only ever see available cars; an admin
    may pass ``available=false`` to include the rest of the stock.
    """
    conditions = []
    if available or identity is None or not identity.is_admin:
        conditions.append(Car.is_available.is_(True))
    if make:
        conditions.append(Car.make.ilike(f"%{make}%"))
    if model:
        conditions.append(Car.model.ilike(f"%{model}%"))
    if min_price is not None:
        conditions.append(Car.price >= min_price)
    if max_price is not None:
        conditions.append(Car.price <= max_price)
    if fuel_type:
        conditions.append(Car.fuel_type == fuel_type)
    if transmission:
        conditions.append(Car.transmission == transmission)

    total_result = await db.execute(select(func.count()).select_from(Car).where(*conditions))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(Car)
        .where(*conditions)
        .order_by(Car.created_at.desc(), Car.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    cars = result.scalars().all()

    return CarListResponse(
        cars=[CarResponse.model_validate(car) for car in cars],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/admin/stats", response_model=CarStatsResponse)
async def car_stats(
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(deps.require_admin),
) -> CarStatsResponse:
    """Stock overview and the most listed makes (admin only)."""
    overview = (await db.execute(
        select(
            func.count(Car.id),
            func.sum(case((Car.is_available.is_(True), 1), else_=0)),
            func.avg(Car.price),
            func.min(Car.price),
            func.max(Car.price),
        )
    )).one()

    makes = await db.execute(
        select(Car.make, func.count(Car.id).label("count"))
        .group_by(Car.make)
        .order_by(func.count(Car.id).desc())
    )

    return CarStatsResponse(
        overview=CarOverview(
            total_cars=overview[0] or 0,
            available_cars=overview[1] or 0,
            average_price=overview[2],
            lowest_price=overview[3],
            highest_price=overview[4],
        ),
        popular_makes=[MakeCount(make=row.make, count=row.count) for row in makes],
    )


@router.get("/{car_id}", response_model=CarResponse)
async def get_car(
    car_id: int,
    db: AsyncSession = Depends(get_db),
) -> CarResponse:
    return await _get_car_or_404(db, car_id)


@router.post("", response_model=CarEnvelope, status_code=201)
async def create_car(
    car_data: CarCreate,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(deps.require_admin),
) -> CarEnvelope:
    """
    Add a car to the listing.

    Args:
        car_data: Car attributes.
        db: Database session.
        admin: Identity of the admin creating the car.

    Returns:
        CarEnvelope: Confirmation message and the stored car.
    """
    car = Car(**car_data.to_columns())
    db.add(car)
    await db.commit()
    await db.refresh(car)

    logger.info("Car %s created by %s", car.id, admin.username)
    return CarEnvelope(message="Car added successfully", car=CarResponse.model_validate(car))


@router.put("/{car_id}", response_model=CarEnvelope)
async def update_car(
    car_id: int,
    car_data: CarUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(deps.require_admin),
) -> CarEnvelope:
    car = await _get_car_or_404(db, car_id)

    for field, value in car_data.to_columns().items():
        setattr(car, field, value)
    car.updated_at = func.now()

    await db.commit()
    await db.refresh(car)

    logger.info("Car %s updated by %s", car_id, admin.username)
    return CarEnvelope(message="Car updated successfully", car=CarResponse.model_validate(car))


@router.delete("/{car_id}", response_model=MessageResponse)
async def delete_car(
    car_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(deps.require_admin),
) -> MessageResponse:
    car = await _get_car_or_404(db, car_id)

    await db.delete(car)
    await db.commit()

    logger.info("Car %s deleted by %s", car_id, admin.username)
    return MessageResponse(message="Car deleted successfully")
