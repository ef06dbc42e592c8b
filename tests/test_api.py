from __future__ import annotations

import unittest

from fastapi.testclient import TestClient
from sqlalchemy import select, text

from fabric_ledger.db import get_db
from fabric_ledger.main import app
from fabric_ledger.models import AuditLog

from support import make_sessionmaker


def _headers(identity: str, role: str) -> dict[str, str]:
    return {'X-Fabric-Identity': identity, 'X-Fabric-Role': role}


CLERK = _headers('clerk@example.com', 'INWARD_CLERK')
CHECKER = _headers('checker@example.com', 'QUALITY_CHECKER')
APPROVER = _headers('approver@example.com', 'APPROVER')
ADMIN = _headers('admin@example.com', 'ADMIN')

ENTRY_BODY = {
    'seller_name': 'Acme Mills',
    'quantity_value': '100',
    'quantity_unit': 'KG',
    'color': 'Navy',
    'fabric_type': 'KNITTED',
    'po_number': 'PO-API-1',
    'fabric_composition': '100% Cotton',
    'inwarded_by': 'clerk@example.com',
    'rolls': [
        {'roll_value': '60', 'roll_unit': 'KG'},
        {'roll_value': '40', 'roll_unit': 'KG'},
    ],
}

QUALITY_BODY = {
    'gsm_value': '180',
    'width_dia_inches': '72',
    'shrinkage_percent': '3',
    'color_fastness': 'OKAY',
}


class WorkflowApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.Session = make_sessionmaker()

        def _get_test_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_test_db
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _create_checked_entry(self) -> dict:
        created = self.client.post('/entries', json=ENTRY_BODY, headers=CLERK)
        self.assertEqual(created.status_code, 201, created.text)
        entry = created.json()
        quality = self.client.post(f"/entries/{entry['id']}/quality", json=QUALITY_BODY, headers=CHECKER)
        self.assertEqual(quality.status_code, 201, quality.text)
        return entry

    def test_full_workflow_ends_on_hold(self) -> None:
        entry = self._create_checked_entry()
        roll_1, roll_2 = (roll['id'] for roll in entry['rolls'])

        first = self.client.post(f'/rolls/{roll_1}/decision', json={'decision': 'APPROVED'}, headers=APPROVER)
        self.assertEqual(first.status_code, 201, first.text)
        self.assertFalse(first.json()['aggregation']['complete'])

        second = self.client.post(
            f'/rolls/{roll_2}/decision',
            json={'decision': 'ON_HOLD', 'hold_reason': 'MATERIAL_DEFECTIVE', 'evidence_reference': 'doc1'},
            headers=APPROVER,
        )
        self.assertEqual(second.status_code, 201, second.text)
        aggregation = second.json()['aggregation']
        self.assertTrue(aggregation['complete'])
        self.assertEqual(aggregation['final_status'], 'ON_HOLD')
        self.assertTrue(aggregation['transitioned'])

        with self.Session() as db:
            actions = db.execute(select(AuditLog.action).order_by(AuditLog.id.asc())).scalars().all()
            stored_rows = db.execute(text('SELECT COUNT(*) FROM audit_logs')).scalar_one()
        self.assertEqual(
            actions,
            ['FABRIC_ENTRY_CREATED', 'QUALITY_RECORDED', 'ROLL_DECIDED', 'ROLL_DECIDED', 'ENTRY_STATUS_FINALISED'],
        )
        self.assertEqual(stored_rows, len(actions))

    def test_rejections_carry_kind_and_field(self) -> None:
        entry = self._create_checked_entry()
        roll_1 = entry['rolls'][0]['id']

        missing_evidence = self.client.post(
            f'/rolls/{roll_1}/decision',
            json={'decision': 'ON_HOLD', 'hold_reason': 'QUANTITY_INSUFFICIENT'},
            headers=APPROVER,
        )
        self.assertEqual(missing_evidence.status_code, 422)
        self.assertEqual(missing_evidence.json()['kind'], 'VALIDATION_ERROR')
        self.assertEqual(missing_evidence.json()['field'], 'evidence_reference')

        forbidden = self.client.post(f'/rolls/{roll_1}/decision', json={'decision': 'APPROVED'}, headers=CHECKER)
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.json()['kind'], 'FORBIDDEN')

        self.client.post(f'/rolls/{roll_1}/decision', json={'decision': 'APPROVED'}, headers=APPROVER)
        again = self.client.post(f'/rolls/{roll_1}/decision', json={'decision': 'APPROVED'}, headers=APPROVER)
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()['kind'], 'ALREADY_DECIDED')

        quality_again = self.client.post(f"/entries/{entry['id']}/quality", json=QUALITY_BODY, headers=CHECKER)
        self.assertEqual(quality_again.status_code, 409)
        self.assertEqual(quality_again.json()['kind'], 'ALREADY_CHECKED')

    def test_identity_is_required_and_unknown_roles_fail_closed(self) -> None:
        anonymous = self.client.get('/me/capabilities')
        self.assertEqual(anonymous.status_code, 401)
        self.assertEqual(anonymous.json()['kind'], 'UNAUTHENTICATED')
        self.assertEqual(anonymous.json()['field'], 'identity')

        unknown = self.client.get('/me/capabilities', headers=_headers('guest@example.com', 'GUEST'))
        self.assertEqual(unknown.status_code, 200)
        self.assertEqual(unknown.json()['capabilities'], [])

        denied = self.client.post('/entries', json=ENTRY_BODY, headers=_headers('guest@example.com', 'GUEST'))
        self.assertEqual(denied.status_code, 403)

    def test_reports_are_admin_only(self) -> None:
        self._create_checked_entry()
        denied = self.client.get('/reports/summary', headers=APPROVER)
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(denied.json()['kind'], 'FORBIDDEN')
        self.assertEqual(denied.json()['field'], 'role')

        summary = self.client.get('/reports/summary', headers=ADMIN)
        self.assertEqual(summary.status_code, 200)
        self.assertEqual(summary.json()['status_counts']['QUALITY_CHECKED'], 1)

        queue = self.client.get('/entries/ready-for-approval', headers=APPROVER)
        self.assertEqual([row['po_number'] for row in queue.json()], ['PO-API-1'])

    def test_bad_report_date_names_the_field(self) -> None:
        response = self.client.get('/reports/entries', params={'from_date': '19-10-2026'}, headers=ADMIN)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()['kind'], 'VALIDATION_ERROR')
        self.assertEqual(response.json()['field'], 'from_date')

    def test_only_the_creating_clerk_attaches_documents(self) -> None:
        entry = self.client.post('/entries', json=ENTRY_BODY, headers=CLERK).json()
        other_clerk = _headers('other.clerk@example.com', 'INWARD_CLERK')

        url = f"/entries/{entry['id']}/document"
        denied = self.client.post(url, json={'document_reference': 'x.pdf'}, headers=other_clerk)
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(denied.json()['field'], 'entry_id')

        allowed = self.client.post(url, json={'document_reference': 'x.pdf'}, headers=CLERK)
        self.assertEqual(allowed.status_code, 200, allowed.text)
        self.assertEqual(allowed.json()['document_reference'], 'x.pdf')


if __name__ == '__main__':
    unittest.main()
