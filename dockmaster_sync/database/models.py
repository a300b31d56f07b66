"""
SQLAlchemy ORM Models
Defines the local tables mirrored from Dockmaster.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# REFERENCE DATA MODELS
# ============================================

class Boat(Base):
    """Local boat record, linked to Dockmaster through its external id."""
    __tablename__ = 'boats'

    id = Column(String(64), primary_key=True)
    dockmaster_id = Column(String(64), unique=True)
    name = Column(String(255))
    work_order_number = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    work_orders = relationship("WorkOrder", back_populates="boat")


class DockmasterCredential(Base):
    """Stored Dockmaster API account (single row)."""
    __tablename__ = 'dockmaster_config'

    id = Column(Integer, primary_key=True)
    username = Column(String(255))
    password = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# ============================================
# WORK ORDER MODELS
# ============================================

class WorkOrder(Base):
    """Dockmaster work order."""
    __tablename__ = 'work_orders'

    id = Column(String(64), primary_key=True)
    customer_id = Column(String(64))
    customer_name = Column(String(255), default='')
    clerk_id = Column(String(64))
    boat_id = Column(String(64), ForeignKey('boats.id', ondelete='SET NULL'))
    dockmaster_boat_id = Column(String(64))
    rigging_id = Column(String(64))
    rigging_type = Column(String(64))
    is_internal = Column(Boolean, nullable=False, default=False)
    type = Column(String(50))
    tax_schema = Column(String(50))
    location_code = Column(String(50))
    is_estimate = Column(Boolean, default=False)
    creation_date = Column(String(50))
    category = Column(String(100))
    status = Column(String(20))
    title = Column(Text)

    # Boat details
    boat_name = Column(String(255), default='')
    boat_year = Column(String(20), default='')
    boat_make = Column(String(255), default='')
    boat_model = Column(String(255), default='')
    boat_serial_number = Column(String(255), default='')
    boat_registration = Column(String(255), default='')
    boat_length = Column(String(50), default='')

    # Billed totals
    total_charges = Column(Float, default=0)
    total_parts = Column(Float, default=0)
    total_labor = Column(Float, default=0)
    total_freight = Column(Float, default=0)
    total_equipment = Column(Float, default=0)
    total_sublet = Column(Float, default=0)
    total_mileage = Column(Float, default=0)
    total_misc_supply = Column(Float, default=0)
    total_bill_codes = Column(Float, default=0)

    # Cost totals
    total_parts_cost = Column(Float, default=0)
    total_labor_cost = Column(Float, default=0)
    total_sublet_cost = Column(Float, default=0)
    total_freight_cost = Column(Float, default=0)

    # Forecasted totals
    total_forecasted_parts = Column(Float, default=0)
    total_forecasted_labor = Column(Float, default=0)
    total_forecasted_hours = Column(Float, default=0)

    # Scheduling
    est_comp_date = Column(String(50))
    est_start_date = Column(String(50))
    promised_date = Column(String(50))
    last_mod_date = Column(String(50))
    last_mod_time = Column(String(50))

    comments = Column(Text, default='')
    last_synced = Column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_work_orders_boat', 'boat_id'),
        Index('idx_work_orders_last_synced', 'last_synced'),
    )

    # Relationships
    boat = relationship("Boat", back_populates="work_orders")
    operations = relationship(
        "WorkOrderOperation",
        back_populates="work_order",
        cascade="all, delete-orphan",
        passive_deletes=True
    )


class WorkOrderOperation(Base):
    """Operation (opcode line item) within a work order."""
    __tablename__ = 'work_order_operations'

    id = Column(String(64), primary_key=True)
    work_order_id = Column(
        String(64),
        ForeignKey('work_orders.id', ondelete='CASCADE'),
        primary_key=True
    )
    opcode = Column(String(64))
    opcode_desc = Column(Text)
    status = Column(String(20))
    type = Column(String(50))
    category = Column(String(100))
    flag_labor_finished = Column(Boolean, default=False)

    # Billed totals
    total_charges = Column(Float, default=0)
    total_parts = Column(Float, default=0)
    total_labor = Column(Float, default=0)
    total_labor_hours = Column(Float, default=0)
    total_freight = Column(Float, default=0)
    total_equipment = Column(Float, default=0)
    total_sublet = Column(Float, default=0)
    total_mileage = Column(Float, default=0)
    total_misc_supply = Column(Float, default=0)
    total_bill_codes = Column(Float, default=0)
    labor_billed = Column(Float, default=0)
    total_to_complete = Column(Float, default=0)

    # Descriptions
    long_desc = Column(Text, default='')
    tech_desc = Column(Text, default='')
    manager_comments = Column(Text, default='')

    # Estimated totals
    estimated_charges = Column(Float, default=0)
    estimated_parts = Column(Float, default=0)
    estimated_labor = Column(Float, default=0)
    estimated_labor_hours = Column(Float, default=0)
    estimated_freight = Column(Float, default=0)
    estimated_equipment = Column(Float, default=0)
    estimated_sublet = Column(Float, default=0)
    estimated_mileage = Column(Float, default=0)
    estimated_misc_supply = Column(Float, default=0)
    estimated_bill_codes = Column(Float, default=0)

    # Flat rate billing
    is_opcode_approved = Column(Boolean, default=False)
    flat_rate_amount = Column(Float, default=0)
    flat_rate_per_foot_rate = Column(Float, default=0)
    flat_rate_per_foot_method = Column(String(50), default='')

    # Forecasted totals
    forecasted_parts_charges = Column(Float, default=0)
    forecasted_labor_charges = Column(Float, default=0)
    forecasted_labor_hours = Column(Float, default=0)

    # Scheduling
    est_start_date = Column(String(50))
    est_complete_date = Column(String(50))
    req_comp_date = Column(String(50))
    standard_hours = Column(Float, default=0)

    # Derived from time entries
    last_worked_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index('idx_operations_wo_opcode', 'work_order_id', 'opcode'),
    )

    # Relationships
    work_order = relationship("WorkOrder", back_populates="operations")


# ============================================
# SYNC TRACKING
# ============================================

class SyncStatus(Base):
    """Per-job sync watermark and outcome."""
    __tablename__ = 'sync_status'

    id = Column(String(100), primary_key=True)  # job name, e.g. 'internal_workorders'
    last_sync = Column(DateTime(timezone=True))  # last attempt
    last_success = Column(DateTime(timezone=True))  # watermark
    status = Column(String(20))  # 'success', 'error'
    records_synced = Column(Integer, default=0)
    error_message = Column(Text)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)
