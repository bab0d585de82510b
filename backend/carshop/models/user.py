import enum

from sqlalchemy import Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from carshop.core.database import Base


class Role(str, enum.Enum):
    admin = "admin"
    customer = "customer"


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(Role, name='user_role'), nullable=False, default=Role.customer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    inquiries = relationship('Inquiry', back_populates='user', cascade='all, delete-orphan', passive_deletes=True)

    def __repr__(self):
        return f"<User {self.username}>"
