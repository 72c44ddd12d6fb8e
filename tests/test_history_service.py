from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import Mock

from sqlalchemy.exc import OperationalError

from relaybot.models import ChatHistory
from relaybot.services.history_service import (
    AI,
    HUMAN,
    Customer,
    HistoryStore,
    append_history,
    list_history,
    recent_context,
)


class TestCustomer:
    def test_as_dict_with_name(self):
        assert Customer(number="27821234567", name="Alice").as_dict() == {"number": "27821234567", "name": "Alice"}

    def test_as_dict_without_name(self):
        assert Customer(number="27821234567").as_dict() == {"number": "27821234567"}


class TestAppendHistory:
    def test_inbound_entry(self):
        db = Mock()

        def _refresh(entry):
            entry.id = 7
            entry.date_time = datetime(2025, 1, 1, tzinfo=timezone.utc)

        db.refresh.side_effect = _refresh

        result = append_history(db, "APP-27821234567", HUMAN, "Hi", Customer(number="27821234567", name="Alice"))

        assert result.ok is True
        assert result.value.id == 7
        entry = db.add.call_args[0][0]
        assert entry.session_id == "APP-27821234567"
        assert entry.message == {"type": "human", "content": "Hi"}
        assert entry.customer == {"number": "27821234567", "name": "Alice"}
        db.commit.assert_called_once()

    def test_outbound_entry_with_media_and_metadata(self):
        db = Mock()
        metadata = {"delivery": {"ok": True, "channel": "audio"}}

        append_history(db, "APP-1", AI, "Hello", Customer(number="1"), media_id="media-9", metadata=metadata)

        entry = db.add.call_args[0][0]
        assert entry.message == {
            "type": "ai",
            "content": "Hello",
            "response_metadata": metadata,
            "media_id": "media-9",
        }

    def test_db_error_rolls_back(self):
        db = Mock()
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))

        result = append_history(db, "APP-1", HUMAN, "Hi", Customer(number="1"))

        assert result.ok is False
        assert result.error_code == "db_error"
        db.rollback.assert_called_once()

    def test_store_delegates(self):
        db = Mock()
        HistoryStore(db).append("APP-1", HUMAN, "Hi", Customer(number="1"))
        db.add.assert_called_once()


class TestListHistory:
    def test_orders_by_timestamp_then_id(self):
        db = Mock()
        rows = [SimpleNamespace(id=1), SimpleNamespace(id=2)]
        ordered = db.query.return_value.filter.return_value.order_by.return_value
        ordered.all.return_value = rows

        assert list_history(db, "APP-1") == rows

        db.query.assert_called_once_with(ChatHistory)
        order_args = db.query.return_value.filter.return_value.order_by.call_args[0]
        assert [str(arg) for arg in order_args] == [
            str(ChatHistory.date_time.asc()),
            str(ChatHistory.id.asc()),
        ]
        ordered.limit.assert_not_called()

    def test_applies_limit(self):
        db = Mock()
        ordered = db.query.return_value.filter.return_value.order_by.return_value
        ordered.limit.return_value.all.return_value = []

        list_history(db, "APP-1", limit=5)

        ordered.limit.assert_called_once_with(5)


class TestRecentContext:
    def test_maps_roles_in_chronological_order(self):
        db = Mock()
        newest_first = [
            SimpleNamespace(message={"type": "ai", "content": "Hello Alice"}),
            SimpleNamespace(message={"type": "human", "content": "Hi"}),
        ]
        db.query.return_value.filter.return_value.order_by.return_value.limit.return_value.all.return_value = (
            newest_first
        )

        assert recent_context(db, "APP-1") == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello Alice"},
        ]

    def test_skips_empty_content(self):
        db = Mock()
        db.query.return_value.filter.return_value.order_by.return_value.limit.return_value.all.return_value = [
            SimpleNamespace(message={"type": "human", "content": ""}),
            SimpleNamespace(message=None),
        ]

        assert recent_context(db, "APP-1") == []
