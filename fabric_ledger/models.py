from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements an INTEGER PRIMARY KEY, so the test engine gets a plain Integer.
PrimaryKey = BigInteger().with_variant(Integer(), 'sqlite')


class Base(DeclarativeBase):
    pass


class QuantityUnit(str, Enum):
    KG = 'KG'
    METER = 'METER'


class FabricType(str, Enum):
    KNITTED = 'KNITTED'
    WOVEN = 'WOVEN'


class EntryStatus(str, Enum):
    PENDING_QUALITY = 'PENDING_QUALITY'
    QUALITY_CHECKED = 'QUALITY_CHECKED'
    ON_HOLD = 'ON_HOLD'
    APPROVED = 'APPROVED'
    # Legacy alias of APPROVED kept so older rows still load; never written by the workflow.
    READY_TO_ISSUE = 'READY_TO_ISSUE'


CANONICAL_SUCCESS_STATUS = EntryStatus.APPROVED
CANONICAL_STATUSES = (
    EntryStatus.PENDING_QUALITY,
    EntryStatus.QUALITY_CHECKED,
    EntryStatus.ON_HOLD,
    EntryStatus.APPROVED,
)


def canonical_status(status: EntryStatus) -> EntryStatus:
    if status == EntryStatus.READY_TO_ISSUE:
        return CANONICAL_SUCCESS_STATUS
    return status


class ColorFastness(str, Enum):
    OKAY = 'OKAY'
    NOT_OKAY = 'NOT_OKAY'


class RollDecision(str, Enum):
    APPROVED = 'APPROVED'
    ON_HOLD = 'ON_HOLD'


class HoldReason(str, Enum):
    QUANTITY_INSUFFICIENT = 'QUANTITY_INSUFFICIENT'
    MATERIAL_DEFECTIVE = 'MATERIAL_DEFECTIVE'


class FabricEntry(Base):
    __tablename__ = 'fabric_entries'
    __table_args__ = (
        CheckConstraint('quantity_value > 0', name='fabric_entries_quantity_positive_ck'),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    seller_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity_value: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    quantity_unit: Mapped[QuantityUnit] = mapped_column(SQLEnum(QuantityUnit, name='quantity_unit'), nullable=False)
    color: Mapped[str] = mapped_column(Text, nullable=False)
    fabric_type: Mapped[FabricType] = mapped_column(SQLEnum(FabricType, name='fabric_type'), nullable=False)
    po_number: Mapped[str] = mapped_column(Text, nullable=False)
    fabric_composition: Mapped[str] = mapped_column(Text, nullable=False)
    inwarded_by: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(Text, nullable=False)
    date_inwarded: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    uat_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    uat_unit: Mapped[QuantityUnit | None] = mapped_column(SQLEnum(QuantityUnit, name='quantity_unit'))
    document_reference: Mapped[str | None] = mapped_column(Text)
    rib_total_weight: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    rib_total_rolls: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[EntryStatus] = mapped_column(
        SQLEnum(EntryStatus, name='fabric_entry_status'),
        nullable=False,
        default=EntryStatus.PENDING_QUALITY,
        server_default='PENDING_QUALITY',
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class FabricRoll(Base):
    __tablename__ = 'fabric_rolls'
    __table_args__ = (
        UniqueConstraint('fabric_entry_id', 'batch_number', name='fabric_rolls_entry_batch_uniq'),
        CheckConstraint('roll_value > 0', name='fabric_rolls_value_positive_ck'),
        CheckConstraint('batch_number >= 1', name='fabric_rolls_batch_positive_ck'),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    fabric_entry_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('fabric_entries.id', ondelete='CASCADE'), nullable=False, index=True
    )
    batch_number: Mapped[int] = mapped_column(Integer, nullable=False)
    roll_value: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    roll_unit: Mapped[QuantityUnit] = mapped_column(SQLEnum(QuantityUnit, name='quantity_unit'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class QualityRecord(Base):
    __tablename__ = 'quality_records'
    __table_args__ = (
        UniqueConstraint('fabric_entry_id', name='quality_records_entry_uniq'),
        CheckConstraint('shrinkage_percent >= 0 AND shrinkage_percent <= 100', name='quality_records_shrinkage_ck'),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    fabric_entry_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('fabric_entries.id', ondelete='CASCADE'), nullable=False)
    gsm_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    width_dia_inches: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    shrinkage_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    color_fastness: Mapped[ColorFastness] = mapped_column(SQLEnum(ColorFastness, name='color_fastness'), nullable=False)
    checked_by: Mapped[str] = mapped_column(Text, nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RollApproval(Base):
    __tablename__ = 'roll_approvals'
    __table_args__ = (
        UniqueConstraint('fabric_roll_id', name='roll_approvals_roll_uniq'),
        CheckConstraint(
            "(decision = 'ON_HOLD') = (hold_reason IS NOT NULL)",
            name='roll_approvals_hold_reason_ck',
        ),
        CheckConstraint(
            'not_approved_quantity IS NULL OR not_approved_quantity >= 0',
            name='roll_approvals_not_approved_non_negative_ck',
        ),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    fabric_roll_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('fabric_rolls.id', ondelete='CASCADE'), nullable=False)
    fabric_entry_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('fabric_entries.id', ondelete='CASCADE'), nullable=False, index=True
    )
    decision: Mapped[RollDecision] = mapped_column(SQLEnum(RollDecision, name='roll_decision'), nullable=False)
    hold_reason: Mapped[HoldReason | None] = mapped_column(SQLEnum(HoldReason, name='hold_reason'))
    not_approved_quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    decided_by: Mapped[str] = mapped_column(Text, nullable=False)
    evidence_reference: Mapped[str | None] = mapped_column(Text)
    remarks: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_logs'

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    actor_identity: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    fabric_entry_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('fabric_entries.id', ondelete='SET NULL'))
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict, server_default='{}')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
