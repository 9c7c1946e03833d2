"""Unit tests for listener argument resolution."""

from abc import ABC, abstractmethod

import pytest
from unittest.mock import MagicMock

from tracebus.events.errors import NotInstantiableError, ResolutionError
from tracebus.events.models import GenericEvent
from tracebus.events.resolver import Resolver, accepts_fixed_call, call_listener

pytestmark = pytest.mark.unit


class Mailer:
    pass


class Notifier:
    def __init__(self, mailer: Mailer):
        self.mailer = mailer


class Broken:
    def __init__(self, missing):
        self.missing = missing


class Base(ABC):
    @abstractmethod
    def handle(self):
        pass


@pytest.fixture
def context():
    return {"event": GenericEvent(), "event_name": "foo", "dispatcher": object()}


class TestInvoke:
    """Test Resolver.invoke parameter binding."""

    def test_binds_by_name(self, context):
        def listener(event_name, event):
            return event_name, event

        assert Resolver().invoke(listener, context) == ("foo", context["event"])

    def test_binds_unannotated_positionals_in_order(self, context):
        def listener(e, name):
            return e, name

        assert Resolver().invoke(listener, context) == (context["event"], "foo")

    def test_binds_registered_service_by_name(self, context):
        mailer = Mailer()

        def listener(event, mailer):
            return mailer

        assert Resolver({"mailer": mailer}).invoke(listener, context) is mailer

    def test_binds_by_annotation(self, context):
        mailer = Mailer()

        def listener(subject: GenericEvent, service: Mailer):
            return subject, service

        assert Resolver({Mailer: mailer}).invoke(listener, context) == (context["event"], mailer)

    def test_binds_service_instance_by_annotation(self, context):
        mailer = Mailer()

        def listener(service: Mailer):
            return service

        assert Resolver({"mailer": mailer}).invoke(listener, context) is mailer

    def test_uses_default_values(self, context):
        def listener(event, retries=3):
            return retries

        assert Resolver().invoke(listener, context) == 3

    def test_binds_keyword_only(self, context):
        def listener(*, event_name):
            return event_name

        assert Resolver().invoke(listener, context) == "foo"

    def test_unresolvable_parameter_raises(self, context):
        def listener(event, mailer: Mailer):
            return mailer

        with pytest.raises(ResolutionError):
            Resolver().invoke(listener, context)

    def test_resolution_error_is_type_error(self):
        def listener(missing: Mailer):
            pass

        with pytest.raises(TypeError):
            Resolver().invoke(listener, {})

    def test_extra_context_keys(self, context):
        def listener(event, user_id):
            return user_id

        assert Resolver().invoke(listener, {**context, "user_id": 42}) == 42

    def test_listener_errors_propagate(self, context):
        def listener(event):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            Resolver().invoke(listener, context)


class TestServices:
    def test_register_and_get(self):
        resolver = Resolver()
        mailer = Mailer()
        resolver.register("mailer", mailer)

        assert resolver.has("mailer")
        assert resolver.get("mailer") is mailer
        assert not resolver.has("other")


class TestInstantiate:
    """Test Resolver.instantiate."""

    def test_plain_class(self):
        assert isinstance(Resolver().instantiate(Mailer), Mailer)

    def test_constructor_dependencies(self):
        mailer = Mailer()
        notifier = Resolver({Mailer: mailer}).instantiate(Notifier)
        assert notifier.mailer is mailer

    def test_registered_instance_wins(self):
        mailer = Mailer()
        assert Resolver({Mailer: mailer}).instantiate(Mailer) is mailer

    def test_abstract_class(self):
        with pytest.raises(NotInstantiableError):
            Resolver().instantiate(Base)

    def test_unresolvable_constructor(self):
        with pytest.raises(NotInstantiableError):
            Resolver().instantiate(Broken)

    def test_missing_typed_dependency(self):
        with pytest.raises(NotInstantiableError):
            Resolver().instantiate(Notifier)


class TestAcceptsFixedCall:
    """Test structural detection of the (event, event_name, dispatcher) call."""

    def test_three_positionals(self):
        assert accepts_fixed_call(lambda event, name, dispatcher: None)

    def test_fewer_positionals(self):
        assert not accepts_fixed_call(lambda event: None)

    def test_more_required_positionals(self):
        assert not accepts_fixed_call(lambda a, b, c, d: None)

    def test_optional_fourth_positional(self):
        assert not accepts_fixed_call(lambda a, b, c, d=None: None)

    def test_var_positional(self):
        assert accepts_fixed_call(lambda *args: None)
        assert accepts_fixed_call(lambda event, *args: None)

    def test_required_keyword_only(self):
        assert not accepts_fixed_call(lambda a, b, c, *, d: None)

    def test_mock_accepts_fixed_call(self):
        assert accepts_fixed_call(MagicMock())


class TestCallListener:
    """Test the fast path and resolver fallback."""

    def test_fast_path(self):
        dispatcher = object()
        listener = MagicMock(return_value="ok")

        assert call_listener(listener, Resolver(), "event", "foo", dispatcher) == "ok"
        listener.assert_called_once_with("event", "foo", dispatcher)

    def test_resolver_fallback(self):
        def listener(event):
            return event

        assert call_listener(listener, Resolver(), "event", "foo", None) == "event"

    def test_payload_goes_through_resolver(self):
        def listener(event, name, dispatcher, user_id=None):
            return user_id

        assert call_listener(listener, Resolver(), "event", "foo", None, {"user_id": 7}) == 7

    def test_resolution_error_propagates(self):
        def listener(event, mailer: Mailer):
            pass

        with pytest.raises(ResolutionError):
            call_listener(listener, Resolver(), "event", "foo", None)
