"""Argument resolution for listeners.

Listeners declare whatever parameters they need; the resolver binds each one
from, in order:

1. a contextual argument with the same name (``event``, ``event_name``,
   ``dispatcher`` and any dispatch payload keys),
2. a registered service with the same name,
3. a contextual argument or service that is an instance of the parameter's
   annotated type (or a service registered under that type),
4. the parameter's default value,
5. for positional parameters without a usable annotation, the next
   contextual argument not bound yet (so ``def on_event(e): ...`` receives
   the event).

String annotations (including those postponed by ``from __future__ import
annotations``) are evaluated first; one naming something its module does not
define is treated as no annotation.

Anything left over raises ``ResolutionError``.
"""

import inspect
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from tracebus.events.errors import NotInstantiableError, ResolutionError

_MISSING = object()


def signature_of(func: Callable[..., Any]) -> inspect.Signature:
    """``inspect.signature`` with string annotations evaluated where possible.

    Raises:
        TypeError, ValueError: When ``func`` has no introspectable signature.
    """
    try:
        return inspect.signature(func, eval_str=True)
    except (NameError, AttributeError, SyntaxError, TypeError):
        # Unresolvable forward references stay as strings
        return inspect.signature(func)


def _unannotated(param: inspect.Parameter) -> bool:
    return param.annotation is param.empty or isinstance(param.annotation, str)


def _is_instance(value: Any, annotation: type) -> bool:
    try:
        return isinstance(value, annotation)
    except TypeError:
        # Protocols that are not runtime checkable
        return False


class Resolver:
    """Binds contextual arguments and services to a callable's parameters.

    Args:
        services: Optional mapping of service name or type to instance. This
            is the only container the resolver knows; it is supplied
            explicitly, never looked up globally.
    """

    def __init__(self, services: Optional[Mapping[Any, Any]] = None):
        self._services: Dict[Any, Any] = dict(services or {})

    def register(self, key: Any, service: Any) -> None:
        """Register a service under a name or a type."""
        self._services[key] = service

    def has(self, key: Any) -> bool:
        return key in self._services

    def get(self, key: Any) -> Any:
        return self._services[key]

    def invoke(self, func: Callable[..., Any], context: Optional[Mapping[str, Any]] = None) -> Any:
        """Call ``func`` with parameters bound from ``context`` and services.

        Raises:
            ResolutionError: If a required parameter cannot be satisfied.
        """
        context = dict(context or {})
        try:
            signature = signature_of(func)
        except (TypeError, ValueError):
            # Builtins without introspectable signatures get the context positionally
            return func(*context.values())

        args, kwargs = self._bind(func, signature, context)
        return func(*args, **kwargs)

    def instantiate(self, cls: type) -> Any:
        """Build an instance of ``cls``, resolving constructor parameters
        from registered services.

        Raises:
            NotInstantiableError: For abstract classes or constructor
                parameters that cannot be resolved.
        """
        if cls in self._services:
            return self._services[cls]
        if inspect.isabstract(cls):
            raise NotInstantiableError(f"Targeted [{cls.__qualname__}] is not instantiable")

        try:
            signature = signature_of(cls)
        except (TypeError, ValueError):
            return cls()

        try:
            args, kwargs = self._bind(cls, signature, {})
        except ResolutionError as exc:
            raise NotInstantiableError(
                f"Targeted [{cls.__qualname__}] is not instantiable: {exc}"
            ) from exc
        return cls(*args, **kwargs)

    def _lookup_by_type(self, annotation: Any, context: Dict[str, Any], used: set) -> Tuple[Optional[str], Any]:
        if not isinstance(annotation, type) or annotation is Any:
            return None, _MISSING
        for key, value in context.items():
            if key not in used and _is_instance(value, annotation):
                return key, value
        if annotation in self._services:
            return None, self._services[annotation]
        for value in self._services.values():
            if _is_instance(value, annotation):
                return None, value
        return None, _MISSING

    def _bind(
        self, func: Any, signature: inspect.Signature, context: Dict[str, Any]
    ) -> Tuple[List[Any], Dict[str, Any]]:
        args: List[Any] = []
        kwargs: Dict[str, Any] = {}
        used: set = set()
        positional_open = True

        for name, param in signature.parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue

            value = _MISSING
            if name in context:
                value = context[name]
                used.add(name)
            elif name in self._services:
                value = self._services[name]
            elif param.annotation is not param.empty:
                key, value = self._lookup_by_type(param.annotation, context, used)
                if key is not None:
                    used.add(key)

            if value is _MISSING and param.default is not param.empty:
                if param.kind is param.POSITIONAL_ONLY:
                    args.append(param.default)
                else:
                    # Later positional parameters must now go by keyword
                    positional_open = False
                continue

            if value is _MISSING and _unannotated(param) and param.kind in (
                param.POSITIONAL_ONLY,
                param.POSITIONAL_OR_KEYWORD,
            ):
                for key in context:
                    if key not in used:
                        value = context[key]
                        used.add(key)
                        break

            if value is _MISSING:
                raise ResolutionError(
                    f'Unable to resolve parameter "{name}" of {getattr(func, "__qualname__", func)!r}'
                )

            if param.kind is param.POSITIONAL_ONLY or (
                param.kind is param.POSITIONAL_OR_KEYWORD and positional_open
            ):
                args.append(value)
            else:
                kwargs[name] = value

        return args, kwargs


def accepts_fixed_call(func: Callable[..., Any], arity: int = 3) -> bool:
    """Check, without calling it, whether ``func`` takes exactly the fixed
    ``(event, event_name, dispatcher)`` positional call.

    True when the callable has ``arity`` required positional parameters and
    nothing else required, or takes ``*args`` with at most ``arity`` named
    positional parameters before it.
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False

    positional = 0
    required_positional = 0
    var_positional = False
    for param in signature.parameters.values():
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional += 1
            if param.default is param.empty:
                required_positional += 1
        elif param.kind is param.VAR_POSITIONAL:
            var_positional = True
        elif param.kind is param.KEYWORD_ONLY and param.default is param.empty:
            return False

    if var_positional:
        return required_positional <= arity
    return positional == arity and required_positional == arity


def call_listener(
    func: Callable[..., Any],
    resolver: Resolver,
    event: Any,
    event_name: str,
    dispatcher: Any,
    payload: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Invoke a listener with the ``(event, event_name, dispatcher)`` call
    when its signature takes exactly that, through the resolver otherwise.

    The signature is inspected up front; the resolver is the single fallback
    and its errors propagate.
    """
    if not payload and accepts_fixed_call(func):
        return func(event, event_name, dispatcher)

    context: Dict[str, Any] = {
        "event": event,
        "event_name": event_name,
        "dispatcher": dispatcher,
    }
    context.update(payload or {})
    return resolver.invoke(func, context)
