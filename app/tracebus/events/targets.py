"""Listener targets.

A listener can be registered in several shapes. Each shape is normalized
once, at registration, into one of four target variants that know how to
describe themselves and how to turn into a callable:

- ``FunctionTarget``: functions, lambdas, builtins, partials
- ``BoundMethodTarget``: ``(instance_or_class, "method")`` pairs, bound
  methods and classes (``(cls, "__call__")``)
- ``StaticRefTarget``: strings such as ``"myapp.listeners.Mailer::send"``,
  ``"myapp.listeners.Mailer@send"`` or ``"myapp.listeners.notify"``
- ``InvokableTarget``: objects implementing ``__call__``

Resolution is lazy: string references are imported and classes
instantiated on first invocation, then cached on the target.
"""

import builtins
import importlib
import inspect
from types import MethodType
from typing import TYPE_CHECKING, Any, Callable, Optional

from tracebus.events.errors import InvalidInputError
from tracebus.events.models import type_name

if TYPE_CHECKING:
    from tracebus.events.resolver import Resolver

CLOSURE = "closure"


def _describe_function(func: Any) -> str:
    qualname = getattr(func, "__qualname__", None)
    name = getattr(func, "__name__", None)
    if qualname is None or name is None or name == "<lambda>" or "<locals>" in qualname:
        return CLOSURE

    module = getattr(func, "__module__", None)
    if module in (None, "builtins"):
        return qualname

    if "." in qualname:
        owner, _, method = qualname.rpartition(".")
        return f"{module}.{owner}::{method}"

    return f"{module}.{qualname}"


def import_string(path: str) -> Any:
    """Import an object from a dotted path like ``"package.module.Class"``.

    Names without a dot are looked up in builtins.

    Raises:
        InvalidInputError: When no module/attribute matches the path.
    """
    if "." not in path:
        try:
            return getattr(builtins, path)
        except AttributeError:
            raise InvalidInputError(f'Listener reference "{path}" cannot be resolved') from None

    parts = path.split(".")
    for index in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:index])
        try:
            obj = importlib.import_module(module_name)
        except ModuleNotFoundError as exc:
            # Only swallow misses of the candidate module itself
            if exc.name and not module_name.startswith(exc.name):
                raise
            continue

        try:
            for attribute in parts[index:]:
                obj = getattr(obj, attribute)
        except AttributeError:
            raise InvalidInputError(f'Listener reference "{path}" cannot be resolved') from None
        return obj

    raise InvalidInputError(f'Listener reference "{path}" cannot be resolved')


class ListenerTarget:
    """Base for the target variants."""

    _resolved: Optional[Callable[..., Any]] = None

    def describe(self) -> str:
        raise NotImplementedError

    def _resolve(self, resolver: "Resolver") -> Callable[..., Any]:
        raise NotImplementedError

    def resolve(self, resolver: "Resolver") -> Callable[..., Any]:
        """Return the callable to invoke, resolving it on first use."""
        if self._resolved is None:
            self._resolved = self._resolve(resolver)
        return self._resolved


class FunctionTarget(ListenerTarget):
    def __init__(self, func: Callable[..., Any]):
        self.func = func

    def describe(self) -> str:
        return _describe_function(self.func)

    def _resolve(self, resolver: "Resolver") -> Callable[..., Any]:
        return self.func


class BoundMethodTarget(ListenerTarget):
    """A method looked up on an instance or a class.

    When ``owner`` is a class and the method is a plain instance method, the
    class is instantiated through the resolver.
    """

    def __init__(self, owner: Any, method: str):
        self.owner = owner
        self.method = method

    def describe(self) -> str:
        owner = self.owner if isinstance(self.owner, type) else type(self.owner)
        return f"{type_name(owner)}::{self.method}"

    def _resolve(self, resolver: "Resolver") -> Callable[..., Any]:
        owner = self.owner
        if isinstance(owner, type):
            attribute = inspect.getattr_static(owner, self.method, None)
            if attribute is None:
                raise InvalidInputError(f"Listener method {self.describe()} does not exist")
            if not isinstance(attribute, (staticmethod, classmethod)):
                owner = resolver.instantiate(owner)

        method = getattr(owner, self.method, None)
        if method is None or not callable(method):
            raise InvalidInputError(f"Listener method {self.describe()} is not callable")
        return method


class StaticRefTarget(ListenerTarget):
    """A string reference imported on first invocation."""

    def __init__(self, reference: str, method: Optional[str] = None, raw: Optional[str] = None):
        self.reference = reference
        self.method = method
        self.raw = raw or reference

    @classmethod
    def parse(cls, raw: str) -> "StaticRefTarget":
        for separator in ("::", "@"):
            if separator in raw:
                reference, _, method = raw.partition(separator)
                if not reference or not method:
                    raise InvalidInputError(f'Malformed listener reference "{raw}"')
                return cls(reference, method, raw)
        return cls(raw, None, raw)

    def describe(self) -> str:
        return self.raw

    def _resolve(self, resolver: "Resolver") -> Callable[..., Any]:
        obj = import_string(self.reference)
        if self.method is not None:
            return BoundMethodTarget(obj, self.method).resolve(resolver)
        if isinstance(obj, type):
            obj = resolver.instantiate(obj)
        if not callable(obj):
            raise InvalidInputError(f'Listener reference "{self.raw}" is not callable')
        return obj


class InvokableTarget(ListenerTarget):
    def __init__(self, instance: Any):
        self.instance = instance

    def describe(self) -> str:
        return f"{type_name(type(self.instance))}::__call__"

    def _resolve(self, resolver: "Resolver") -> Callable[..., Any]:
        return self.instance


def to_target(listener: Any) -> ListenerTarget:
    """Normalize a listener into its target variant.

    Raises:
        InvalidInputError: If the listener has none of the supported shapes.
    """
    if isinstance(listener, str):
        if not listener:
            raise InvalidInputError("Listener reference must be a non-empty string")
        return StaticRefTarget.parse(listener)

    if isinstance(listener, (tuple, list)):
        if len(listener) != 2 or not isinstance(listener[1], str) or not listener[1]:
            raise InvalidInputError(
                f"Listener pairs must be (instance_or_class, method_name), got {listener!r}"
            )
        owner, method = listener
        if isinstance(owner, str):
            return StaticRefTarget(owner, method, f"{owner}::{method}")
        if not hasattr(owner, method):
            owner_type = owner if isinstance(owner, type) else type(owner)
            raise InvalidInputError(f"{type_name(owner_type)} has no method {method!r}")
        return BoundMethodTarget(owner, method)

    if isinstance(listener, MethodType):
        return BoundMethodTarget(listener.__self__, listener.__func__.__name__)

    if isinstance(listener, type):
        return BoundMethodTarget(listener, "__call__")

    if inspect.isfunction(listener) or inspect.isbuiltin(listener) or inspect.ismethoddescriptor(listener):
        return FunctionTarget(listener)

    if callable(listener):
        if hasattr(listener, "__qualname__"):
            return FunctionTarget(listener)
        return InvokableTarget(listener)

    raise InvalidInputError(f"Listener of type {type(listener).__name__} is not callable")


def same_listener(a: Any, b: Any) -> bool:
    """Reference equality between registered listeners.

    Bound methods and ``(owner, method)`` pairs are rebuilt on every access,
    so they compare by value.
    """
    if a is b:
        return True
    if isinstance(a, (MethodType, tuple, list)) and type(a) is type(b):
        return a == b
    return False
