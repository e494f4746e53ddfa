# Overview: Pytest coverage for the slot registry.

import pytest

from scratchers.errors import ConflictError, NotFoundError, ValidationError
from scratchers.models import ScratcherSlot
from scratchers.services import slot_service, snapshot_service

from conftest import MANAGER_ID


class TestCreateSlot:
    def test_defaults_to_next_number(self, db_session, store):
        first = slot_service.create_slot(store.id)
        second = slot_service.create_slot(store.id, label="  Counter left ")
        db_session.commit()

        assert first.slot_number == 1
        assert second.slot_number == 2
        assert second.label == "Counter left"

    def test_explicit_number(self, db_session, store):
        slot = slot_service.create_slot(store.id, slot_number="7")
        db_session.commit()
        assert slot.slot_number == 7

    @pytest.mark.parametrize("number", [0, 33, -1])
    def test_number_out_of_range(self, db_session, store, number):
        with pytest.raises(ValidationError):
            slot_service.create_slot(store.id, slot_number=number)

    def test_duplicate_number_conflicts(self, db_session, store):
        slot_service.create_slot(store.id, slot_number=3)
        db_session.commit()

        with pytest.raises(ConflictError) as exc:
            slot_service.create_slot(store.id, slot_number=3)
        assert exc.value.code == "SLOT_EXISTS"

    def test_same_number_in_other_store(self, db_session, store, other_store):
        slot_service.create_slot(store.id, slot_number=1)
        slot = slot_service.create_slot(other_store.id, slot_number=1)
        db_session.commit()
        assert slot.store_id == other_store.id

    def test_unknown_store(self, db_session):
        with pytest.raises(NotFoundError):
            slot_service.create_slot(99999)


class TestInitializeSlots:
    def test_creates_full_range(self, db_session, store):
        slots = slot_service.initialize_slots(store.id)
        db_session.commit()
        assert [s.slot_number for s in slots] == list(range(1, 33))

    def test_idempotent_and_keeps_existing(self, db_session, store):
        existing = slot_service.create_slot(store.id, slot_number=5, label="Front")
        db_session.commit()

        slot_service.initialize_slots(store.id)
        db_session.commit()
        slots = slot_service.initialize_slots(store.id)
        db_session.commit()

        assert len(slots) == 32
        assert db_session.query(ScratcherSlot).filter_by(store_id=store.id).count() == 32
        kept = next(s for s in slots if s.slot_number == 5)
        assert kept.id == existing.id
        assert kept.label == "Front"


class TestUpdateSlot:
    def test_partial_patch(self, db_session, slots):
        slot = slots[0]
        updated = slot_service.update_slot(slot.id, {"label": "By register"})
        db_session.commit()

        assert updated.label == "By register"
        assert updated.is_active is True

    def test_set_and_clear_default_product(self, db_session, slots, products):
        slot = slots[0]
        slot_service.update_slot(slot.id, {"default_product_id": products[500].id})
        db_session.commit()
        assert slot.default_product_id == products[500].id

        slot_service.update_slot(slot.id, {"default_product_id": None})
        db_session.commit()
        assert slot.default_product_id is None

    def test_unknown_default_product(self, db_session, slots):
        with pytest.raises(NotFoundError):
            slot_service.update_slot(slots[0].id, {"default_product_id": 99999})

    def test_active_pack_not_writable(self, db_session, slots):
        with pytest.raises(ValidationError):
            slot_service.update_slot(slots[0].id, {"active_pack_id": 1})

    def test_boolean_must_be_real_boolean(self, db_session, slots):
        with pytest.raises(ValidationError):
            slot_service.update_slot(slots[0].id, {"is_active": "false"})

    def test_label_length_and_rejected_fields(self, db_session, slots):
        with pytest.raises(ValidationError):
            slot_service.update_slot(slots[0].id, {"label": "x" * 121})

        with pytest.raises(ValidationError) as exc:
            slot_service.update_slot(slots[0].id, {"slot_number": 9, "active_pack_id": 1})
        assert exc.value.details == {"fields": ["active_pack_id", "slot_number"]}

    def test_wrong_store(self, db_session, slots, other_store):
        with pytest.raises(NotFoundError):
            slot_service.update_slot(slots[0].id, {"label": "x"}, store_id=other_store.id)


class TestSlotBundle:
    def test_bundle_without_baseline(self, db_session, store, slots, products):
        bundle = slot_service.list_slot_bundle(store.id)

        assert len(bundle["slots"]) == 32
        assert bundle["packs"] == []
        assert len(bundle["products"]) == len(products)
        assert bundle["baseline"] is None

    def test_bundle_includes_latest_baseline(self, db_session, store, slots, activate):
        pack = activate(slots[0])
        snapshot_service.create_baseline_snapshot(
            store_id=store.id,
            actor_user_id=MANAGER_ID,
            items=[{"slot_id": slots[0].id, "ticket_value": "010"}],
        )
        db_session.commit()

        bundle = slot_service.list_slot_bundle(store.id)

        assert [p["id"] for p in bundle["packs"]] == [pack.id]
        assert bundle["baseline"]["items"][0]["pack_id"] == pack.id
        assert bundle["baseline"]["items"][0]["ticket_value"] == "010"
