"""SQLAlchemy models for monitored apps, their rules and usage sessions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, SmallInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appguard.db.base import Base


class AppInfo(Base):
    __tablename__ = "app_info"
    __table_args__ = (UniqueConstraint("package_name", name="uq_app_info_package_name"),)

    app_name: Mapped[str] = mapped_column(String(128), nullable=False)
    package_name: Mapped[str] = mapped_column(String(255), nullable=False)
    enabled: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_time: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    rules: Mapped[list["AppRule"]] = relationship(
        back_populates="app",
        cascade="all, delete-orphan",
        order_by="AppRule.id",
    )


class AppRule(Base):
    __tablename__ = "app_rule"

    app_info_id: Mapped[int] = mapped_column(
        ForeignKey("app_info.id", ondelete="CASCADE"), index=True, nullable=False
    )
    # 1-7, Monday first
    day: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    # HH:MM
    time_range_start: Mapped[str] = mapped_column(String(5), nullable=False)
    time_range_end: Mapped[str] = mapped_column(String(5), nullable=False)
    total_time: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_time: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    app: Mapped[AppInfo] = relationship(back_populates="rules")


class UsageSession(Base):
    """One foreground stretch of an app; each row counts as one launch."""

    __tablename__ = "usage_session"

    package_name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime)


__all__ = ["AppInfo", "AppRule", "UsageSession"]
