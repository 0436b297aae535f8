from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import JSON
from sqlalchemy import BigInteger
from sqlalchemy import Boolean
from sqlalchemy import DateTime
from sqlalchemy import Float
from sqlalchemy import ForeignKey
from sqlalchemy import Index
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column


# SQLite only autoincrements INTEGER PRIMARY KEY columns.
IdType = BigInteger().with_variant(Integer, "sqlite")
JsonType = JSON().with_variant(JSONB, "postgresql")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Staging tables: one per upstream source, truncated on every run
# ---------------------------------------------------------------------------


class PlutoRaw(Base):
    __tablename__ = "pluto_raw"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    bbl: Mapped[str | None] = mapped_column(String(10), nullable=True)
    borough: Mapped[str | None] = mapped_column(String(32), nullable=True)
    block: Mapped[str | None] = mapped_column(String(16), nullable=True)
    lot: Mapped[str | None] = mapped_column(String(16), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    bldg_class: Mapped[str | None] = mapped_column(String(8), nullable=True)
    land_use: Mapped[str | None] = mapped_column(String(8), nullable=True)
    owner_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    num_floors: Mapped[float | None] = mapped_column(Float, nullable=True)
    units_res: Mapped[int | None] = mapped_column(Integer, nullable=True)
    units_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lot_area: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bldg_area: Mapped[int | None] = mapped_column(Integer, nullable=True)
    res_area: Mapped[int | None] = mapped_column(Integer, nullable=True)
    office_area: Mapped[int | None] = mapped_column(Integer, nullable=True)
    retail_area: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_altered1: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_altered2: Mapped[int | None] = mapped_column(Integer, nullable=True)
    condo_no: Mapped[str | None] = mapped_column(String(16), nullable=True)
    x_coord: Mapped[float | None] = mapped_column(Float, nullable=True)
    y_coord: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    community_district: Mapped[str | None] = mapped_column(String(8), nullable=True)
    zone_dist1: Mapped[str | None] = mapped_column(String(16), nullable=True)
    zone_dist2: Mapped[str | None] = mapped_column(String(16), nullable=True)
    overlay1: Mapped[str | None] = mapped_column(String(16), nullable=True)
    overlay2: Mapped[str | None] = mapped_column(String(16), nullable=True)
    spdist1: Mapped[str | None] = mapped_column(String(16), nullable=True)
    spdist2: Mapped[str | None] = mapped_column(String(16), nullable=True)
    assess_land: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    assess_tot: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    exempt_land: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    exempt_tot: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    loaded_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (Index("idx_pluto_raw_bbl", "bbl"),)


class ValuationRaw(Base):
    __tablename__ = "valuations_raw"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    bbl: Mapped[str | None] = mapped_column(String(10), nullable=True)
    borough: Mapped[str | None] = mapped_column(String(32), nullable=True)
    block: Mapped[str | None] = mapped_column(String(16), nullable=True)
    lot: Mapped[str | None] = mapped_column(String(16), nullable=True)
    tax_class: Mapped[str | None] = mapped_column(String(8), nullable=True)
    building_class: Mapped[str | None] = mapped_column(String(8), nullable=True)
    owner_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    apt_no: Mapped[str | None] = mapped_column(String(16), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    assess_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    land_value: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    total_value: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    transitional_land: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    transitional_total: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    new_land_value: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    new_total_value: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    exemption_code_one: Mapped[str | None] = mapped_column(String(16), nullable=True)
    exemption_code_two: Mapped[str | None] = mapped_column(String(16), nullable=True)
    exemption_code_three: Mapped[str | None] = mapped_column(String(16), nullable=True)
    exemption_code_four: Mapped[str | None] = mapped_column(String(16), nullable=True)
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    loaded_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (Index("idx_valuations_raw_bbl", "bbl"),)


class AcrisRaw(Base):
    __tablename__ = "acris_raw"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    document_id: Mapped[str] = mapped_column(String(32), nullable=False)
    record_type: Mapped[str] = mapped_column(String(16), nullable=False, default="MASTER")
    bbl: Mapped[str | None] = mapped_column(String(10), nullable=True)
    borough: Mapped[str | None] = mapped_column(String(32), nullable=True)
    block: Mapped[str | None] = mapped_column(String(16), nullable=True)
    lot: Mapped[str | None] = mapped_column(String(16), nullable=True)
    doc_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    doc_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recorded_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    doc_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    percent_transferred: Mapped[float | None] = mapped_column(Float, nullable=True)
    good_through_date: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    street_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    street_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(16), nullable=True)
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    loaded_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_acris_raw_bbl", "bbl"),
        Index("idx_acris_raw_document", "document_id"),
    )


class HpdRaw(Base):
    __tablename__ = "hpd_raw"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    bbl: Mapped[str | None] = mapped_column(String(10), nullable=True)
    building_id: Mapped[str | None] = mapped_column(String(16), nullable=True)
    registration_id: Mapped[str | None] = mapped_column(String(16), nullable=True)
    boro_id: Mapped[str | None] = mapped_column(String(4), nullable=True)
    borough: Mapped[str | None] = mapped_column(String(32), nullable=True)
    block: Mapped[str | None] = mapped_column(String(16), nullable=True)
    lot: Mapped[str | None] = mapped_column(String(16), nullable=True)
    house_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    street_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    registration_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    building_owner_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    building_owner_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    building_owner_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    agent_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    agent_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    agent_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    num_floors: Mapped[int | None] = mapped_column(Integer, nullable=True)
    num_apartments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    num_legal_units: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_violations: Mapped[int | None] = mapped_column(Integer, nullable=True)
    open_violations: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_complaints: Mapped[int | None] = mapped_column(Integer, nullable=True)
    open_complaints: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_inspection_date: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    loaded_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_hpd_raw_bbl", "bbl"),
        Index("idx_hpd_raw_building", "building_id"),
    )


# ---------------------------------------------------------------------------
# Canonical entities read by the API layer
# ---------------------------------------------------------------------------


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    bbl: Mapped[str | None] = mapped_column(String(10), nullable=True, unique=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(10), nullable=False)
    county: Mapped[str | None] = mapped_column(String(64), nullable=True)
    neighborhood: Mapped[str | None] = mapped_column(String(64), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    property_type: Mapped[str] = mapped_column(String(32), nullable=False)
    beds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    baths: Mapped[float | None] = mapped_column(Float, nullable=True)
    sqft: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lot_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estimated_value: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    price_per_sqft: Mapped[float | None] = mapped_column(Float, nullable=True)
    opportunity_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    confidence_level: Mapped[str | None] = mapped_column(String(8), nullable=True)
    data_sources: Mapped[list[str] | None] = mapped_column(JsonType, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_properties_zip", "zip_code"),
        Index("idx_properties_city", "city"),
        Index("idx_properties_state", "state"),
    )


class PropertyValuation(Base):
    __tablename__ = "property_valuations"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    property_id: Mapped[str] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    bbl: Mapped[str] = mapped_column(String(10), nullable=False)
    assess_year: Mapped[int] = mapped_column(Integer, nullable=False)
    tax_class: Mapped[str | None] = mapped_column(String(8), nullable=True)
    land_value: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    total_value: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        UniqueConstraint("property_id", "bbl", name="uq_property_valuations_property_bbl"),
    )


class PropertyTransaction(Base):
    __tablename__ = "property_transactions"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    property_id: Mapped[str] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    bbl: Mapped[str] = mapped_column(String(10), nullable=False)
    document_id: Mapped[str] = mapped_column(String(32), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    transaction_date: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    amount: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "property_id", "document_id", name="uq_property_transactions_property_document"
        ),
    )


class PropertyCompliance(Base):
    __tablename__ = "property_compliance"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    property_id: Mapped[str] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    bbl: Mapped[str] = mapped_column(String(10), nullable=False)
    registration_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    total_violations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    open_violations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_complaints: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    open_complaints: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    compliance_score: Mapped[int] = mapped_column(Integer, nullable=False)
    risk_level: Mapped[str] = mapped_column(String(8), nullable=False)

    __table_args__ = (
        UniqueConstraint("property_id", "bbl", name="uq_property_compliance_property_bbl"),
    )


class Comparable(Base):
    __tablename__ = "comps"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    subject_property_id: Mapped[str] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    comp_property_id: Mapped[str] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    similarity_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    sqft_adjustment: Mapped[float | None] = mapped_column(Float, nullable=True)
    age_adjustment: Mapped[float | None] = mapped_column(Float, nullable=True)
    beds_adjustment: Mapped[float | None] = mapped_column(Float, nullable=True)
    adjusted_price: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    computed_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (Index("idx_comps_subject", "subject_property_id"),)


class DataSource(Base):
    __tablename__ = "data_sources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_cadence: Mapped[str | None] = mapped_column(String(16), nullable=True)
    last_refresh: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    record_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    licensing_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


STAGING_MODELS = (PlutoRaw, ValuationRaw, AcrisRaw, HpdRaw)
# Children before parents so a plain DELETE never trips a foreign key.
DERIVED_MODELS = (PropertyValuation, PropertyTransaction, PropertyCompliance, Comparable, Property)
