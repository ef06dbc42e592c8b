from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from fabric_ledger.models import ColorFastness, FabricType, HoldReason, QuantityUnit, RollDecision


class RollIn(BaseModel):
    roll_value: Decimal
    roll_unit: QuantityUnit


class FabricEntryIn(BaseModel):
    seller_name: str
    quantity_value: Decimal
    quantity_unit: QuantityUnit
    color: str
    fabric_type: FabricType
    po_number: str
    fabric_composition: str
    inwarded_by: str
    uat_value: Decimal | None = None
    uat_unit: QuantityUnit | None = None
    document_reference: str | None = None
    rib_total_weight: Decimal | None = None
    rib_total_rolls: int | None = None
    rolls: list[RollIn] = Field(default_factory=list)


class DocumentIn(BaseModel):
    document_reference: str


class QualityIn(BaseModel):
    gsm_value: Decimal
    width_dia_inches: Decimal
    shrinkage_percent: Decimal
    color_fastness: ColorFastness
    remarks: str | None = None


class RollDecisionIn(BaseModel):
    decision: RollDecision
    hold_reason: HoldReason | None = None
    evidence_reference: str | None = None
    not_approved_quantity: Decimal | None = None
    remarks: str | None = None


class EvidenceIn(BaseModel):
    evidence_reference: str
