"""
Service catalog models: Service, SubService and SubSubService.

The catalog is a three-level hierarchy. Each level has its own integer id space;
the permission engine addresses nodes as "s:<id>", "ss:<id>" and "sss:<id>".
"""
from sqlalchemy import String, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin


class Service(Base, TimestampMixin):
    """
    Top-level service shown on the home screen.

    Attributes:
        id: Integer primary key
        label_ar: Arabic label
        label_en: English label
        icon: Optional icon name used by clients
    """
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    label_en: Mapped[str] = mapped_column(String(255), nullable=False)
    icon: Mapped[str | None] = mapped_column(String(100))

    # Relationships
    sub_services = relationship("SubService", back_populates="service", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Service(id={self.id}, label_en='{self.label_en}')>"


class SubService(Base, TimestampMixin):
    """
    Page inside a service.

    Attributes:
        id: Integer primary key
        service_id: Parent service
        label_ar: Arabic label
        label_en: English label
    """
    __tablename__ = "sub_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    label_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    label_en: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    service = relationship("Service", back_populates="sub_services")
    sub_sub_services = relationship("SubSubService", back_populates="sub_service", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<SubService(id={self.id}, service_id={self.service_id})>"


class SubSubService(Base, TimestampMixin):
    """
    Action inside a page.

    Attributes:
        id: Integer primary key
        sub_service_id: Parent sub-service
        label_ar: Arabic label
        label_en: English label
    """
    __tablename__ = "sub_sub_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sub_service_id: Mapped[int] = mapped_column(ForeignKey("sub_services.id", ondelete="CASCADE"), nullable=False, index=True)
    label_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    label_en: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    sub_service = relationship("SubService", back_populates="sub_sub_services")

    def __repr__(self):
        return f"<SubSubService(id={self.id}, sub_service_id={self.sub_service_id})>"
