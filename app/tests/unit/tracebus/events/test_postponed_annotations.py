"""Unit tests for listeners defined under postponed annotation evaluation."""

from __future__ import annotations

import pytest

from tracebus.events.errors import ResolutionError
from tracebus.events.models import Event, GenericEvent
from tracebus.events.resolver import Resolver, signature_of

pytestmark = pytest.mark.unit


class Mailer:
    pass


class Notifier:
    def __init__(self, mailer: Mailer):
        self.mailer = mailer


class Welcome:
    def send(self, subject: GenericEvent, mailer: Mailer):
        return subject, mailer


def typed_listener(subject: GenericEvent):
    return subject


def forward_listener(e: UndefinedEvent):  # noqa: F821
    return e


def mismatched_listener(subject: GenericEvent):
    return subject


@pytest.fixture
def context():
    return {"event": GenericEvent(), "event_name": "foo", "dispatcher": object()}


class TestSignature:
    def test_annotations_evaluated(self):
        signature = signature_of(typed_listener)
        assert signature.parameters["subject"].annotation is GenericEvent

    def test_unresolvable_annotation_left_as_string(self):
        signature = signature_of(forward_listener)
        assert signature.parameters["e"].annotation == "UndefinedEvent"


class TestInvoke:
    def test_binds_by_evaluated_annotation(self, context):
        assert Resolver().invoke(typed_listener, context) is context["event"]

    def test_unresolvable_annotation_binds_positionally(self, context):
        assert Resolver().invoke(forward_listener, context) is context["event"]

    def test_type_mismatch_still_raises(self):
        context = {"event": Event(), "event_name": "foo"}
        with pytest.raises(ResolutionError):
            Resolver().invoke(mismatched_listener, context)

    def test_instantiate_with_postponed_constructor_annotations(self):
        mailer = Mailer()
        notifier = Resolver({Mailer: mailer}).instantiate(Notifier)
        assert notifier.mailer is mailer


class TestDispatch:
    def test_function_listener(self, dispatcher):
        dispatcher.add_listener("foo", typed_listener)
        event = GenericEvent()

        assert dispatcher.dispatch_until(event, "foo") is event

    def test_class_listener_with_service(self, dispatcher, resolver):
        mailer = Mailer()
        resolver.register(Mailer, mailer)
        dispatcher.add_listener("foo", (Welcome, "send"))
        event = GenericEvent()

        assert dispatcher.dispatch_until(event, "foo") == (event, mailer)

    def test_traced_dispatch(self, traceable):
        traceable.add_listener("foo", forward_listener)
        event = Event()

        assert traceable.dispatch_until(event, "foo") is event
        assert len(traceable.get_called_listeners()) == 1
