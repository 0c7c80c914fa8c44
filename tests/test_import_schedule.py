import importlib.util
from pathlib import Path

import pytest

from yachtdesk.extensions import bcrypt
from yachtdesk.models import User
from yachtdesk.services.auth_service import MIN_PASSWORD_LENGTH

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "import_schedule.py"


@pytest.fixture(scope="module")
def import_schedule():
    spec = importlib.util.spec_from_file_location("import_schedule", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestImportOwners:
    def test_phone_digits_used_when_long_enough(self, import_schedule):
        assert import_schedule.initial_password("(435) 555-0199") == ("4355550199", False)

    def test_short_phone_gets_generated_password(self, import_schedule):
        password, generated = import_schedule.initial_password("555-12")
        assert generated
        assert len(password) >= MIN_PASSWORD_LENGTH
        assert password != "55512"

    def test_missing_phone_does_not_fall_back_to_email(self, import_schedule, fleet):
        rows = [{"name": "Pat Lee", "email": "Pat@Example.com", "phone": ""}]
        assert import_schedule.import_owners(fleet.utopia, rows) == 1

        owner = User.query.filter_by(email="pat@example.com").one()
        assert owner.must_change_password
        assert owner.yacht_id == fleet.utopia.id
        assert not bcrypt.check_password_hash(owner.password_hash, "pat@example.com")

    def test_existing_owner_skipped(self, import_schedule, fleet):
        rows = [{"name": "Olive Owner", "email": fleet.owner.email, "phone": "4355550100"}]
        assert import_schedule.import_owners(fleet.utopia, rows) == 0
