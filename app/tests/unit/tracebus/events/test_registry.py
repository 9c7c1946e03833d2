"""Unit tests for the priority-ordered listener registry."""

import pytest

from tracebus.events.errors import InvalidInputError
from tracebus.events.models import Event, type_name
from tracebus.events.registry import ListenerRecord, ListenerRegistry

pytestmark = pytest.mark.unit


class BaseEvent(Event):
    pass


class ChildEvent(BaseEvent):
    pass


def make_listener(label):
    def listener(event):
        return label

    return listener


class TestListenerRecord:
    def test_target_computed_from_listener(self):
        listener = make_listener("a")
        record = ListenerRecord("foo", listener, 5)
        assert record.target.describe() == "closure"
        assert record.priority == 5

    def test_records_compare_by_identity(self):
        listener = make_listener("a")
        assert ListenerRecord("foo", listener) != ListenerRecord("foo", listener)

    def test_invalid_listener_rejected(self):
        with pytest.raises(InvalidInputError):
            ListenerRecord("foo", 42)


class TestOrdering:
    """Test priority ordering and tie breaking."""

    def test_descending_priority(self):
        registry = ListenerRegistry()
        listeners = {priority: make_listener(priority) for priority in (5, 20, 10)}
        for priority, listener in listeners.items():
            registry.add("foo", listener, priority)

        assert [r.priority for r in registry.records("foo")] == [20, 10, 5]

    def test_registration_order_on_ties(self):
        registry = ListenerRegistry()
        first, second, third = make_listener(1), make_listener(2), make_listener(3)
        registry.add("foo", first, 0)
        registry.add("foo", second, 10)
        registry.add("foo", third, 0)

        assert [r.listener for r in registry.records("foo")] == [second, first, third]

    def test_negative_priorities(self):
        registry = ListenerRegistry()
        low, high = make_listener("low"), make_listener("high")
        registry.add("foo", low, -10)
        registry.add("foo", high, 0)

        assert [r.listener for r in registry.records("foo")] == [high, low]


class TestAddRemove:
    """Test registration and removal."""

    def test_duplicates_allowed_and_removed_one_at_a_time(self):
        registry = ListenerRegistry()
        listener = make_listener("a")
        registry.add("foo", listener, 0)
        registry.add("foo", listener, 0)

        assert len(registry.records("foo")) == 2
        registry.remove("foo", listener)
        assert len(registry.records("foo")) == 1
        registry.remove("foo", listener)
        assert registry.records("foo") == []
        assert "foo" not in registry.event_names()

    def test_remove_returns_removed_record(self):
        registry = ListenerRegistry()
        listener = make_listener("a")
        added = registry.add("foo", listener, 3)

        assert registry.remove("foo", listener) is added

    def test_remove_absent_is_noop(self):
        registry = ListenerRegistry()
        registry.add("foo", make_listener("a"), 0)

        assert registry.remove("foo", make_listener("b")) is None
        assert registry.remove("bar", make_listener("b")) is None
        assert len(registry.records("foo")) == 1

    def test_has(self):
        registry = ListenerRegistry()
        assert not registry.has()
        assert not registry.has("foo")

        registry.add("foo", make_listener("a"), 0)
        assert registry.has()
        assert registry.has("foo")
        assert not registry.has("bar")

    def test_priority_of(self):
        registry = ListenerRegistry()
        listener = make_listener("a")
        registry.add("foo", listener, 7)

        assert registry.priority_of("foo", listener) == 7
        assert registry.priority_of("foo", make_listener("b")) is None
        assert registry.priority_of("bar", listener) is None

    def test_clear(self):
        registry = ListenerRegistry()
        registry.add("foo", make_listener("a"), 0)
        registry.add("foo", make_listener("b"), 0)
        registry.add("bar", make_listener("c"), 0)

        assert registry.clear("foo") == 2
        assert registry.event_names() == ["bar"]
        assert registry.clear("missing") == 0
        assert registry.clear() == 1
        assert registry.event_names() == []

    def test_replace_in_place(self):
        registry = ListenerRegistry()
        a, b, c = make_listener("a"), make_listener("b"), make_listener("c")
        old = registry.add("foo", a, 0)
        registry.add("foo", b, 0)

        new = ListenerRecord("foo", c, 0)
        assert registry.replace(old, new)
        assert registry.records("foo")[0] is new
        assert [record.listener for record in registry.records("foo")] == [c, b]

    def test_replace_matches_by_identity(self):
        registry = ListenerRegistry()
        listener = make_listener("a")
        registry.add("foo", listener, 0)

        stranger = ListenerRecord("foo", listener, 0)
        assert not registry.replace(stranger, ListenerRecord("foo", make_listener("b"), 0))
        assert registry.records("foo")[0].listener is listener

    def test_all_records_sorted(self):
        registry = ListenerRegistry()
        low, high = make_listener("low"), make_listener("high")
        registry.add("foo", low, 0)
        registry.add("foo", high, 10)

        assert [r.listener for r in registry.all_records()["foo"]] == [high, low]


class TestSupertypes:
    """Test listeners registered against base event types."""

    def test_unknown_type_name_has_no_supertype_listeners(self):
        registry = ListenerRegistry()
        registry.add(type_name(BaseEvent), make_listener("base"), 0)

        assert registry.records(type_name(ChildEvent)) == []

    def test_known_type_collects_base_listeners(self):
        registry = ListenerRegistry()
        base = make_listener("base")
        registry.add(type_name(BaseEvent), base, 0)
        registry.remember_type(ChildEvent)

        records = registry.records(type_name(ChildEvent))
        assert [r.listener for r in records] == [base]
        assert records[0].event_name == type_name(BaseEvent)

    def test_supertype_listeners_interleave_by_priority(self):
        registry = ListenerRegistry()
        registry.remember_type(ChildEvent)
        direct_low = make_listener("direct_low")
        direct_tie = make_listener("direct_tie")
        base_high = make_listener("base_high")
        base_tie = make_listener("base_tie")
        event_tie = make_listener("event_tie")

        registry.add(type_name(ChildEvent), direct_low, -5)
        registry.add(type_name(Event), event_tie, 0)
        registry.add(type_name(BaseEvent), base_tie, 0)
        registry.add(type_name(BaseEvent), base_high, 10)
        registry.add(type_name(ChildEvent), direct_tie, 0)

        assert [r.listener for r in registry.records(type_name(ChildEvent))] == [
            base_high,
            direct_tie,
            base_tie,
            event_tie,
            direct_low,
        ]

    def test_base_name_does_not_collect_subtype_listeners(self):
        registry = ListenerRegistry()
        registry.remember_type(ChildEvent)
        registry.remember_type(BaseEvent)
        registry.add(type_name(ChildEvent), make_listener("child"), 0)

        assert registry.records(type_name(BaseEvent)) == []

    def test_remember_type_returns_name(self):
        assert ListenerRegistry().remember_type(ChildEvent) == type_name(ChildEvent)
