import pytest

from yachtdesk.models import StaffMessage, Yacht
from yachtdesk.services import ChangeFeed, change_feed


@pytest.fixture
def received():
    calls = []
    unsubscribe = change_feed.subscribe("staff_messages", calls.append)
    yield calls
    unsubscribe()


class TestChangeFeed:
    """Table notifications published after commit."""

    def test_commit_publishes_table(self, db, fleet, received):
        db.session.add(StaffMessage(yacht_id=fleet.utopia.id, message="Lift scheduled"))
        db.session.commit()
        assert received == ["staff_messages"]

    def test_update_publishes_table(self, db, fleet, received):
        row = StaffMessage(message="Draft")
        db.session.add(row)
        db.session.commit()
        row.message = "Final"
        db.session.commit()
        assert received == ["staff_messages", "staff_messages"]

    def test_rollback_publishes_nothing(self, db, fleet, received):
        db.session.add(StaffMessage(message="Discarded"))
        db.session.flush()
        db.session.rollback()
        db.session.add(Yacht(name="Wanderer"))
        db.session.commit()
        assert received == []

    def test_other_tables_ignored(self, db, received):
        db.session.add(Yacht(name="Wanderer"))
        db.session.commit()
        assert received == []

    def test_unsubscribe(self, db):
        calls = []
        unsubscribe = change_feed.subscribe("staff_messages", calls.append)
        assert change_feed.subscriber_count("staff_messages") >= 1
        unsubscribe()
        db.session.add(StaffMessage(message="Nobody listening"))
        db.session.commit()
        assert calls == []

    def test_failing_handler_does_not_stop_others(self, app, caplog):
        feed = ChangeFeed()
        calls = []

        def broken(_table):
            raise RuntimeError("boom")

        feed.subscribe("yacht_invoices", broken)
        feed.subscribe("yacht_invoices", calls.append)
        feed.publish("yacht_invoices")
        assert calls == ["yacht_invoices"]
        assert "Change handler for yacht_invoices failed" in caplog.text
