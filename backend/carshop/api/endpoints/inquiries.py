"""Customer inquiries about listed cars."""
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy import select, func
from typing import Optional
import logging

from carshop.core.database import get_db
from carshop.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from carshop.api import deps
from carshop.models.car import Car
from carshop.models.inquiry import Inquiry, InquiryStatus
from carshop.schemas.common import Pagination
from carshop.schemas.inquiry import (
    InquiryCreate, InquiryStatusUpdate, InquiryResponse, InquiryEnvelope,
    InquiryListResponse, InquiryOverview, InquiryStatsResponse, InquiredCar,
)
from carshop.schemas.token import MessageResponse
from carshop.schemas.user import Identity

router = APIRouter()
logger = logging.getLogger(__name__)


def _with_details():
    return (selectinload(Inquiry.car), selectinload(Inquiry.user))


async def _load_inquiry(db: AsyncSession, inquiry_id: int) -> Optional[Inquiry]:
    result = await db.execute(
        select(Inquiry)
        .where(Inquiry.id == inquiry_id)
        .options(*_with_details())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _paginate(db: AsyncSession, conditions, page: int, limit: int) -> InquiryListResponse:
    total_result = await db.execute(
        select(func.count()).select_from(Inquiry).where(*conditions)
    )
    total = total_result.scalar() or 0

    result = await db.execute(
        select(Inquiry)
        .where(*conditions)
        .options(*_with_details())
        .order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    inquiries = result.scalars().all()

    return InquiryListResponse(
        inquiries=[InquiryResponse.model_validate(inquiry) for inquiry in inquiries],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("", response_model=InquiryListResponse)
async def list_my_inquiries(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(deps.get_current_identity),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[InquiryStatus] = None,
) -> InquiryListResponse:
    """Inquiries sent by the caller, newest first."""
    conditions = [Inquiry.user_id == identity.id]
    if status:
        conditions.append(Inquiry.status == status)
    return await _paginate(db, conditions, page, limit)


@router.get("/admin/all", response_model=InquiryListResponse)
async def list_all_inquiries(
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(deps.require_admin),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[InquiryStatus] = None,
    user_id: Optional[int] = Query(None, ge=1),
) -> InquiryListResponse:
    conditions = []
    if status:
        conditions.append(Inquiry.status == status)
    if user_id:
        conditions.append(Inquiry.user_id == user_id)
    return await _paginate(db, conditions, page, limit)


@router.get("/admin/stats", response_model=InquiryStatsResponse)
async def inquiry_stats(
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(deps.require_admin),
) -> InquiryStatsResponse:
    """Counts per status, last week's volume and the five most inquired cars."""
    per_status = await db.execute(
        select(Inquiry.status, func.count(Inquiry.id)).group_by(Inquiry.status)
    )
    counts = {row[0]: row[1] for row in per_status}

    since = datetime.now(timezone.utc) - timedelta(days=7)
    recent = (await db.execute(
        select(func.count(Inquiry.id)).where(Inquiry.created_at >= since)
    )).scalar() or 0

    top_cars = await db.execute(
        select(Car.make, Car.model, Car.year, func.count(Inquiry.id).label("inquiry_count"))
        .join(Inquiry, Inquiry.car_id == Car.id)
        .group_by(Car.id, Car.make, Car.model, Car.year)
        .order_by(func.count(Inquiry.id).desc())
        .limit(5)
    )

    return InquiryStatsResponse(
        overview=InquiryOverview(
            total_inquiries=sum(counts.values()),
            pending_inquiries=counts.get(InquiryStatus.pending, 0),
            responded_inquiries=counts.get(InquiryStatus.responded, 0),
            closed_inquiries=counts.get(InquiryStatus.closed, 0),
            recent_inquiries=recent,
        ),
        most_inquired_cars=[
            InquiredCar(make=row.make, model=row.model, year=row.year, inquiry_count=row.inquiry_count)
            for row in top_cars
        ],
    )


@router.get("/{inquiry_id}", response_model=InquiryResponse)
async def get_inquiry(
    inquiry_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(deps.get_current_identity),
) -> InquiryResponse:
    """
    Get one inquiry.

    Customers only see their own inquiries; anyone else's looks missing.
    """
    inquiry = await _load_inquiry(db, inquiry_id)
    if not inquiry or (not identity.is_admin and inquiry.user_id != identity.id):
        raise NotFoundError("Inquiry not found")
    return InquiryResponse.model_validate(inquiry)


@router.post("", response_model=InquiryEnvelope, status_code=201)
async def create_inquiry(
    inquiry_data: InquiryCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(deps.get_current_identity),
) -> InquiryEnvelope:
    """
    Ask about a car.

    Raises:
        NotFoundError: 404 if the car does not exist.
        ValidationError: 400 if the car is no longer available.
        ConflictError: 409 if the caller already has a pending inquiry for it.
    """
    result = await db.execute(select(Car).where(Car.id == inquiry_data.car_id))
    car = result.scalar_one_or_none()
    if not car:
        raise NotFoundError("Car not found")
    if not car.is_available:
        raise ValidationError("Car is not available for inquiries")

    existing = await db.execute(
        select(Inquiry.id).where(
            Inquiry.user_id == identity.id,
            Inquiry.car_id == car.id,
            Inquiry.status == InquiryStatus.pending,
        )
    )
    if existing.first() is not None:
        raise ConflictError("You already have a pending inquiry for this car")

    inquiry = Inquiry(user_id=identity.id, car_id=car.id, message=inquiry_data.message)
    db.add(inquiry)
    await db.commit()

    logger.info("Inquiry %s created by %s for car %s", inquiry.id, identity.username, car.id)
    inquiry = await _load_inquiry(db, inquiry.id)
    return InquiryEnvelope(
        message="Inquiry created successfully",
        inquiry=InquiryResponse.model_validate(inquiry),
    )


@router.put("/{inquiry_id}/status", response_model=InquiryEnvelope)
async def update_inquiry_status(
    inquiry_id: int,
    status_data: InquiryStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(deps.require_admin),
) -> InquiryEnvelope:
    inquiry = await _load_inquiry(db, inquiry_id)
    if not inquiry:
        raise NotFoundError("Inquiry not found")

    inquiry.status = status_data.status
    inquiry.updated_at = func.now()
    await db.commit()

    logger.info("Inquiry %s set to %s by %s", inquiry_id, status_data.status.value, admin.username)
    inquiry = await _load_inquiry(db, inquiry_id)
    return InquiryEnvelope(
        message="Inquiry status updated successfully",
        inquiry=InquiryResponse.model_validate(inquiry),
    )


@router.delete("/{inquiry_id}", response_model=MessageResponse)
async def delete_inquiry(
    inquiry_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(deps.get_current_identity),
) -> MessageResponse:
    result = await db.execute(select(Inquiry).where(Inquiry.id == inquiry_id))
    inquiry = result.scalar_one_or_none()
    if not inquiry:
        raise NotFoundError("Inquiry not found")

    if not identity.is_admin and inquiry.user_id != identity.id:
        raise ForbiddenError("You can only delete your own inquiries")

    await db.delete(inquiry)
    await db.commit()

    logger.info("Inquiry %s deleted by %s", inquiry_id, identity.username)
    return MessageResponse(message="Inquiry deleted successfully")
