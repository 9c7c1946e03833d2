"""Priority-ordered listener registry.

Listeners are stored per event name in registration order and sorted on
read: descending priority, registration order among equal priorities.

Event names that belong to a known event type also collect the listeners
registered under the names of its base classes (MRO order, ``object``
excluded). Those interleave with the direct listeners strictly by priority;
on equal priority direct listeners come first, then each base class in MRO
order.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tracebus.events.models import type_name
from tracebus.events.targets import ListenerTarget, same_listener, to_target


@dataclass(frozen=True, eq=False)
class ListenerRecord:
    """A listener bound to an event name with a priority.

    Records compare by identity: registering the same listener twice yields
    two records that are removed and invoked independently.
    """

    event_name: str
    listener: Any
    priority: int = 0
    target: ListenerTarget = field(default=None, repr=False)  # type: ignore[assignment]

    def __post_init__(self):
        if self.target is None:
            object.__setattr__(self, "target", to_target(self.listener))


class ListenerRegistry:
    """Mapping of event name to ordered listener records."""

    def __init__(self) -> None:
        self._records: Dict[str, List[ListenerRecord]] = {}
        self._types: Dict[str, type] = {}

    def remember_type(self, cls: type) -> str:
        """Record that ``cls`` is an event type and return its name."""
        name = type_name(cls)
        self._types[name] = cls
        return name

    def add(self, event_name: str, listener: Any, priority: int) -> ListenerRecord:
        record = ListenerRecord(event_name, listener, priority)
        self._records.setdefault(event_name, []).append(record)
        return record

    def remove(self, event_name: str, listener: Any) -> Optional[ListenerRecord]:
        """Remove the first record of ``listener`` under ``event_name``."""
        records = self._records.get(event_name)
        if not records:
            return None

        for index, record in enumerate(records):
            if same_listener(record.listener, listener):
                del records[index]
                if not records:
                    del self._records[event_name]
                return record
        return None

    def replace(self, old: ListenerRecord, new: ListenerRecord) -> bool:
        """Put ``new`` at the position of the record ``old`` (matched by
        identity). Returns False when ``old`` is no longer registered."""
        records = self._records.get(old.event_name, [])
        for index, record in enumerate(records):
            if record is old:
                records[index] = new
                return True
        return False

    def _supertype_names(self, event_name: str) -> List[str]:
        cls = self._types.get(event_name)
        if cls is None:
            return []
        return [type_name(base) for base in cls.__mro__[1:] if base is not object]

    def records(self, event_name: str) -> List[ListenerRecord]:
        """Sorted records for ``event_name`` including supertype listeners."""
        collected = list(self._records.get(event_name, ()))
        for name in self._supertype_names(event_name):
            collected.extend(self._records.get(name, ()))
        # sorted() is stable, ties keep collection order
        return sorted(collected, key=lambda record: -record.priority)

    def all_records(self) -> Dict[str, List[ListenerRecord]]:
        """Every registered event name with its direct records, sorted."""
        return {
            name: sorted(records, key=lambda record: -record.priority)
            for name, records in self._records.items()
            if records
        }

    def has(self, event_name: Optional[str] = None) -> bool:
        if event_name is None:
            return any(self._records.values())
        return bool(self.records(event_name))

    def priority_of(self, event_name: str, listener: Any) -> Optional[int]:
        for record in self.records(event_name):
            if same_listener(record.listener, listener):
                return record.priority
        return None

    def event_names(self) -> List[str]:
        return list(self._records)

    def clear(self, event_name: Optional[str] = None) -> int:
        """Drop the records registered directly under ``event_name``, or every
        record when None. Returns how many were dropped."""
        if event_name is None:
            count = sum(len(records) for records in self._records.values())
            self._records.clear()
            return count
        return len(self._records.pop(event_name, ()))
