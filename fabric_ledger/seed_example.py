from decimal import Decimal

from sqlalchemy import select

from fabric_ledger.auth import Principal
from fabric_ledger.db import SessionLocal, engine
from fabric_ledger.models import Base, ColorFastness, FabricEntry, FabricType, QuantityUnit
from fabric_ledger.permissions import Role
from fabric_ledger.services.inward_service import NewFabricEntry, NewFabricRoll, create_fabric_entry
from fabric_ledger.services.quality_service import QualityInput, record_quality

DEMO_PO_NUMBERS = ('PO-DEMO-001', 'PO-DEMO-002')


def seed() -> None:
    Base.metadata.create_all(engine)
    clerk = Principal(identity='clerk@example.com', role=Role.INWARD_CLERK)
    checker = Principal(identity='checker@example.com', role=Role.QUALITY_CHECKER)

    with SessionLocal() as db:
        for po_number in DEMO_PO_NUMBERS:
            existing = db.execute(select(FabricEntry.id).where(FabricEntry.po_number == po_number)).scalar_one_or_none()
            if existing:
                continue
            entry = create_fabric_entry(
                db,
                principal=clerk,
                entry=NewFabricEntry(
                    seller_name='Demo Mills',
                    quantity_value=Decimal('100'),
                    quantity_unit=QuantityUnit.KG,
                    color='Navy',
                    fabric_type=FabricType.KNITTED,
                    po_number=po_number,
                    fabric_composition='100% Cotton',
                    inwarded_by=clerk.identity,
                ),
                rolls=[
                    NewFabricRoll(roll_value=Decimal('60'), roll_unit=QuantityUnit.KG),
                    NewFabricRoll(roll_value=Decimal('40'), roll_unit=QuantityUnit.KG),
                ],
            )
            # Leave the first demo entry waiting for quality, push the second into the approval queue.
            if po_number == DEMO_PO_NUMBERS[1]:
                record_quality(
                    db,
                    entry_id=entry.id,
                    quality=QualityInput(
                        gsm_value=Decimal('180'),
                        width_dia_inches=Decimal('72'),
                        shrinkage_percent=Decimal('3.5'),
                        color_fastness=ColorFastness.OKAY,
                    ),
                    principal=checker,
                )

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
