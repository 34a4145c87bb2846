from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitebind.db import Base


def utc_now() -> datetime:
    return datetime.now(UTC)


class Site(Base):
    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    apis: Mapped[list[ApiDefinition]] = relationship(
        back_populates="site",
        cascade="all, delete-orphan",
        order_by="ApiDefinition.id",
    )
    mappings: Mapped[list[MappingRecord]] = relationship(
        back_populates="site",
        cascade="all, delete-orphan",
        order_by="MappingRecord.id",
    )
    actions: Mapped[list[ActionRecord]] = relationship(
        back_populates="site",
        cascade="all, delete-orphan",
        order_by="ActionRecord.seq",
    )
    page_mappings: Mapped[list[PageMapping]] = relationship(
        back_populates="site",
        cascade="all, delete-orphan",
        order_by="PageMapping.seq",
    )


class ApiDefinition(Base):
    __tablename__ = "api_definitions"
    __table_args__ = (UniqueConstraint("site_id", "name", name="uq_api_definitions_site_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    url: Mapped[str] = mapped_column(String(2000))
    method: Mapped[str] = mapped_column(String(10), default="GET")
    headers: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    params: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    body_template: Mapped[Any] = mapped_column(JSON, nullable=True)
    mapping_config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    site: Mapped[Site] = relationship(back_populates="apis")


class MappingRecord(Base):
    __tablename__ = "mapping_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id", ondelete="CASCADE"), index=True)
    placeholder: Mapped[str] = mapped_column(String(255))
    api_name: Mapped[str] = mapped_column(String(120))
    json_path: Mapped[str] = mapped_column(String(1000))
    pages: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    site: Mapped[Site] = relationship(back_populates="mappings")


class ActionRecord(Base):
    __tablename__ = "action_records"

    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id", ondelete="CASCADE"), index=True)
    selector: Mapped[str] = mapped_column(Text)
    api_name: Mapped[str] = mapped_column(String(120))
    method: Mapped[str] = mapped_column(String(10), default="POST")
    fields: Mapped[list[str]] = mapped_column(JSON, default=list)
    page: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    site: Mapped[Site] = relationship(back_populates="actions")


class PageMapping(Base):
    __tablename__ = "page_mappings"
    __table_args__ = (UniqueConstraint("site_id", "page", "api_name", name="uq_page_mappings_site_page_api"),)

    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id", ondelete="CASCADE"), index=True)
    page: Mapped[str] = mapped_column(String(1000))
    api_name: Mapped[str] = mapped_column(String(120))
    method: Mapped[str] = mapped_column(String(10), default="POST")
    field_mappings: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    submit_selector: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    site: Mapped[Site] = relationship(back_populates="page_mappings")
