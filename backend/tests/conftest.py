"""
Pytest fixtures for scratcher ledger tests.

Provides the test app and database, store/catalog/slot setup, receipt rows,
and gateway actor headers for API tests.
"""

import io

import pytest

from scratchers import create_app
from scratchers.config import TestConfig
from scratchers.extensions import db
from scratchers.models import ScratcherFile, ShiftReport, Store
from scratchers.services import pack_service, product_service, slot_service, snapshot_service


EMPLOYEE_ID = 101
MANAGER_ID = 201
OWNER_ID = 301


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app(TestConfig)
    app.config.update({
        'RECEIPT_STORAGE_DIR': str(tmp_path_factory.mktemp('receipts')),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    """Primary store."""
    store = Store(name="Main St", code="S001", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    """Second store, used for cross-store checks."""
    store = Store(name="Harbor Rd", code="S002", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def products(db_session):
    """Standard price catalog keyed by price in cents."""
    product_service.normalize_catalog()
    db_session.commit()
    return {p.price_cents: p for p in product_service.list_products()}


@pytest.fixture(scope='function')
def slots(db_session, store):
    """All slots 1..SCRATCHER_MAX_SLOTS for the primary store."""
    created = slot_service.initialize_slots(store.id)
    db_session.commit()
    return created


@pytest.fixture(scope='function')
def other_slots(db_session, other_store):
    created = slot_service.initialize_slots(other_store.id)
    db_session.commit()
    return created


@pytest.fixture(scope='function')
def receipt(db_session, store):
    """Receipt metadata row for the primary store (no bytes on disk)."""
    row = ScratcherFile(
        store_id=store.id,
        label="Scratcher Pack Receipt",
        original_filename="receipt.jpg",
        content_type="image/jpeg",
        size_bytes=4,
        sha256="0" * 64,
        storage_path="00/receipt.jpg",
        uploaded_by_user_id=MANAGER_ID,
    )
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def activate(db_session, store, products, receipt):
    """Activate a pack through the service and commit."""
    def _activate(slot, price_cents=500, start_ticket="000", pack_code=None):
        pack, _ = pack_service.activate_pack(
            store_id=store.id,
            slot_id=slot.id,
            product_id=products[price_cents].id,
            pack_code=pack_code or f"PK-{slot.slot_number}-{start_ticket}",
            start_ticket=start_ticket,
            receipt_file_id=receipt.id,
            actor_user_id=MANAGER_ID,
            actor_name="Dana",
        )
        db_session.commit()
        return pack
    return _activate


@pytest.fixture(scope='function')
def shift(db_session, store):
    """Employee shift report for 2026-10-19."""
    report = ShiftReport(
        store_id=store.id,
        employee_user_id=EMPLOYEE_ID,
        shift_date="2026-10-19",
        is_baseline=False,
    )
    db_session.add(report)
    db_session.commit()
    return report


@pytest.fixture(scope='function')
def take_snapshot(db_session, store):
    """Record a snapshot from {slot: ticket_value} and commit."""
    def _take(report, snapshot_type, readings):
        snapshot = snapshot_service.create_snapshot(
            shift_report_id=report.id,
            store_id=store.id,
            employee_user_id=report.employee_user_id,
            snapshot_type=snapshot_type,
            items=[{"slot_id": slot.id, "ticket_value": value} for slot, value in readings.items()],
        )
        db_session.commit()
        return snapshot
    return _take


def actor_headers(user_id: int, role: str, store_ids, name: str | None = None) -> dict:
    """Helper to create gateway actor headers."""
    headers = {
        'X-Actor-User-Id': str(user_id),
        'X-Actor-Role': role,
        'X-Actor-Store-Ids': store_ids if isinstance(store_ids, str) else ",".join(str(s) for s in store_ids),
    }
    if name:
        headers['X-Actor-Name'] = name
    return headers


@pytest.fixture(scope='function')
def employee_headers(store):
    return actor_headers(EMPLOYEE_ID, "employee", [store.id], name="Sam")


@pytest.fixture(scope='function')
def manager_headers(store):
    return actor_headers(MANAGER_ID, "manager", [store.id], name="Dana")


@pytest.fixture(scope='function')
def owner_headers():
    return actor_headers(OWNER_ID, "owner", "*")


@pytest.fixture(scope='function')
def receipt_upload():
    """Fresh multipart file tuple for each request."""
    def _upload(content=b"\xff\xd8\xff\xe0receipt", filename="receipt.jpg"):
        return (io.BytesIO(content), filename)
    return _upload
