# Overview: Pytest coverage for gateway actor parsing and store scoping.

import pytest

from scratchers.errors import PermissionDeniedError, ValidationError
from scratchers.services.access_service import (
    Actor,
    default_store_id,
    has_store_access,
    parse_actor,
    require_store_access,
)


class TestParseActor:
    def test_employee_with_stores(self):
        actor = parse_actor(" 12 ", "Employee", "3, 4,", "  Sam ")
        assert actor.user_id == 12
        assert actor.role == "employee"
        assert actor.store_ids == frozenset({3, 4})
        assert actor.all_stores is False
        assert actor.name == "Sam"
        assert actor.is_privileged is False

    def test_owner_all_stores(self):
        actor = parse_actor("1", "owner", "*")
        assert actor.all_stores is True
        assert actor.is_privileged is True
        assert actor.display_name == "Manager"

    @pytest.mark.parametrize(
        "user_id,role,stores",
        [
            (None, "manager", "1"),
            ("x1", "manager", "1"),
            ("1", None, "1"),
            ("1", "admin", "1"),
            ("1", "manager", "1;2"),
            ("1", "employee", "*"),
        ],
    )
    def test_rejects_malformed(self, user_id, role, stores):
        with pytest.raises(ValidationError):
            parse_actor(user_id, role, stores)


class TestStoreScope:
    def test_scoped_actor(self):
        actor = Actor(user_id=1, role="employee", store_ids=frozenset({3}))
        assert has_store_access(actor, 3) is True
        assert has_store_access(actor, 4) is False
        assert has_store_access(None, 3) is False
        assert default_store_id(actor) == 3
        assert actor.display_name == "Employee"

    def test_require_store_access(self):
        actor = Actor(user_id=1, role="manager", store_ids=frozenset({3, 4}))
        require_store_access(actor, 4)
        with pytest.raises(PermissionDeniedError) as exc:
            require_store_access(actor, 5)
        assert exc.value.details == {"store_id": 5}
        assert default_store_id(actor) is None

    def test_all_stores_has_no_default(self):
        actor = Actor(user_id=1, role="owner", all_stores=True)
        assert has_store_access(actor, 999) is True
        assert default_store_id(actor) is None
