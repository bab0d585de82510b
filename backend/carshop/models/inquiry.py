import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from carshop.core.database import Base


class InquiryStatus(str, enum.Enum):
    pending = "pending"
    responded = "responded"
    closed = "closed"


class Inquiry(Base):
    __tablename__ = 'inquiries'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    car_id = Column(Integer, ForeignKey('cars.id', ondelete='CASCADE'), nullable=False, index=True)
    message = Column(Text, nullable=False)
    status = Column(Enum(InquiryStatus, name='inquiry_status'), nullable=False, default=InquiryStatus.pending)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship('User', back_populates='inquiries')
    car = relationship('Car', back_populates='inquiries')

    def __repr__(self):
        return f"<Inquiry user={self.user_id} car={self.car_id} status={self.status}>"
