"""User model and the user-scoped reference mappings used for routing."""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database import Base, generate_id


class User(Base):
    """User model representing staff members and managers."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    line_id = Column(String(255), unique=True, nullable=True, index=True)
    staff_type_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    departments = relationship("UserDepartment", back_populates="user", cascade="all, delete-orphan")
    divisions = relationship("UserDivision", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name})>"

    def validate(self) -> None:
        """Validate user data."""
        if not self.id:
            raise ValueError("User ID is required")
        if not self.name:
            raise ValueError("Name is required")


class UserManager(Base):
    """Mapping of a user to one of their managers."""

    __tablename__ = "user_managers"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    manager_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'manager_user_id', name='uq_user_manager'),
    )

    def __repr__(self) -> str:
        return (
            f"<UserManager(user_id={self.user_id}, manager_user_id={self.manager_user_id}, "
            f"is_primary={self.is_primary})>"
        )


class UserDepartment(Base):
    """Department a user is allowed to work in."""

    __tablename__ = "user_departments"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    department_id = Column(String(36), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'department_id', name='uq_user_department'),
    )

    user = relationship("User", back_populates="departments")


class UserDivision(Base):
    """Division a user is allowed to work in."""

    __tablename__ = "user_divisions"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    division_id = Column(String(36), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'division_id', name='uq_user_division'),
    )

    user = relationship("User", back_populates="divisions")
