from __future__ import annotations

from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fabric_ledger.auth import Principal
from fabric_ledger.models import Base, EntryStatus, FabricEntry, FabricType, QuantityUnit
from fabric_ledger.permissions import Role
from fabric_ledger.services.record_store import RecordKind, create_record, get_entry

CLERK = Principal(identity='clerk@example.com', role=Role.INWARD_CLERK)
CHECKER = Principal(identity='checker@example.com', role=Role.QUALITY_CHECKER)
APPROVER = Principal(identity='approver@example.com', role=Role.APPROVER)
ADMIN = Principal(identity='admin@example.com', role=Role.ADMIN)


def make_sessionmaker() -> sessionmaker:
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def make_file_sessionmaker(path: str) -> sessionmaker:
    """Sessions on separate connections to one database file, for interleaving writers."""
    engine = create_engine(f'sqlite:///{path}')
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def make_entry(
    db: Session,
    *,
    roll_values: tuple[str, ...] = ('50', '50'),
    status: EntryStatus = EntryStatus.QUALITY_CHECKED,
    quantity_unit: QuantityUnit = QuantityUnit.KG,
    po_number: str = 'PO-1',
    created_by: str = CLERK.identity,
) -> tuple[FabricEntry, list[int]]:
    total = sum((Decimal(value) for value in roll_values), Decimal('0'))
    entry_id = create_record(
        db,
        RecordKind.ENTRY,
        {
            'seller_name': 'Acme Mills',
            'quantity_value': total,
            'quantity_unit': quantity_unit,
            'color': 'Black',
            'fabric_type': FabricType.WOVEN,
            'po_number': po_number,
            'fabric_composition': '100% Cotton',
            'inwarded_by': CLERK.identity,
            'created_by': created_by,
            'status': status,
        },
    )
    roll_ids = [
        create_record(
            db,
            RecordKind.ROLL,
            {
                'fabric_entry_id': entry_id,
                'batch_number': batch_number,
                'roll_value': Decimal(value),
                'roll_unit': quantity_unit,
            },
        )
        for batch_number, value in enumerate(roll_values, start=1)
    ]
    return get_entry(db, entry_id), roll_ids


def reload_entry(db: Session, entry_id: int) -> FabricEntry:
    db.expire_all()
    return get_entry(db, entry_id)
