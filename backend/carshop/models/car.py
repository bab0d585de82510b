import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from carshop.core.database import Base


class FuelType(str, enum.Enum):
    gasoline = "gasoline"
    diesel = "diesel"
    electric = "electric"
    hybrid = "hybrid"


class Transmission(str, enum.Enum):
    manual = "manual"
    automatic = "automatic"


class Car(Base):
    __tablename__ = 'cars'

    id = Column(Integer, primary_key=True, autoincrement=True)
    make = Column(String(50), nullable=False, index=True)
    model = Column(String(50), nullable=False)
    year = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    mileage = Column(Integer, nullable=False, default=0)
    color = Column(String(30))
    fuel_type = Column(Enum(FuelType, name='fuel_type'), nullable=False, default=FuelType.gasoline)
    transmission = Column(Enum(Transmission, name='transmission'), nullable=False, default=Transmission.manual)
    description = Column(Text)
    image_url = Column(String(500))
    is_available = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    inquiries = relationship('Inquiry', back_populates='car', cascade='all, delete-orphan', passive_deletes=True)

    def __repr__(self):
        return f"<Car {self.year} {self.make} {self.model}>"
