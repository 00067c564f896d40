"""Weakly-owned handler records.

A record splits a subscribed callable into an *owner* (the object a bound
method or callable instance belongs to) and the *function* to run against it.
Only a weak reference to the owner is kept, so subscribing never extends the
owner's lifetime. Callables with no owner (plain functions, lambdas,
``functools.partial`` objects, builtins) are kept as-is and never die.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
import functools
import inspect
import types
import typing
from typing import Any
import weakref

from .cancellation import CancellationToken
from .exceptions import InvalidHandlerError

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)

# Spellings of a token parameter when annotations are left as strings.
_TOKEN_ANNOTATIONS = frozenset(
    {
        "CancellationToken",
        "CancellationToken|None",
        "None|CancellationToken",
        "Optional[CancellationToken]",
        "typing.Optional[CancellationToken]",
    }
)


def split_handler(handler: Callable[..., Any]) -> tuple[Any | None, Callable[..., Any]]:
    """Return ``(owner, function)`` for a callable.

    ``owner`` is ``None`` for callables that are not bound to an instance.
    """
    if inspect.ismethod(handler):
        return handler.__self__, handler.__func__
    if (
        inspect.isfunction(handler)
        or inspect.isbuiltin(handler)
        or inspect.isclass(handler)
        or isinstance(handler, functools.partial)
    ):
        return None, handler
    return handler, type(handler).__call__


def accepts_cancellation(handler: Callable[..., Any]) -> bool:
    """Return True when the last positional parameter takes a cancellation token."""
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        return False
    positional = [p for p in signature.parameters.values() if p.kind in _POSITIONAL_KINDS]
    if not positional:
        return False
    last = positional[-1]
    if last.name == "cancellation_token":
        return True
    try:
        hints = typing.get_type_hints(handler)
    except Exception:  # noqa: BLE001 - unresolvable names fall back to the raw string.
        hints = {}
    return _is_token_annotation(hints.get(last.name, last.annotation))


def _is_token_annotation(annotation: Any) -> bool:
    if annotation is CancellationToken:
        return True
    if isinstance(annotation, str):
        return annotation.replace(" ", "") in _TOKEN_ANNOTATIONS
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        return CancellationToken in typing.get_args(annotation)
    return False


def _same_builtin_method(candidate: Any, stored: Any) -> bool:
    # Each ``obj.append`` access builds a new object; builtin methods compare
    # equal when ``__self__`` is the same object and the names match.
    return inspect.isbuiltin(candidate) and inspect.isbuiltin(stored) and candidate == stored


class HandlerRecord:
    """One subscription: weak owner, function identity and call shape."""

    __slots__ = ("_owner_ref", "_function", "_has_cancellation_parameter")

    def __init__(self, handler: Callable[..., Any]) -> None:
        owner, function = split_handler(handler)
        owner_ref: weakref.ref[Any] | None = None
        if owner is not None:
            try:
                owner_ref = weakref.ref(owner)
            except TypeError as exc:
                raise InvalidHandlerError(
                    f"Handler owner of type {type(owner).__name__!r} "
                    "does not support weak references."
                ) from exc
        self._owner_ref = owner_ref
        self._function = function
        self._has_cancellation_parameter = accepts_cancellation(handler)

    @property
    def has_cancellation_parameter(self) -> bool:
        return self._has_cancellation_parameter

    @property
    def is_static(self) -> bool:
        """True when the record has no owner and therefore never dies."""
        return self._owner_ref is None

    @property
    def is_alive(self) -> bool:
        return self._owner_ref is None or self._owner_ref() is not None

    def matches(self, handler: Callable[..., Any]) -> bool:
        """Compare by owner identity and function identity, never by value."""
        owner, function = split_handler(handler)
        if function is not self._function and not _same_builtin_method(
            function, self._function
        ):
            return False
        if self._owner_ref is None:
            return owner is None
        return owner is not None and self._owner_ref() is owner

    async def invoke(
        self,
        args: Sequence[Any] = (),
        cancellation_token: CancellationToken | None = None,
    ) -> None:
        """Run the handler once, awaiting it if it returns an awaitable.

        A handler whose owner has been collected is skipped silently.
        Exceptions raised by the handler propagate unchanged.
        """
        call_args = list(args)
        if self._has_cancellation_parameter:
            call_args.append(
                cancellation_token if cancellation_token is not None else CancellationToken()
            )

        if self._owner_ref is None:
            result = self._function(*call_args)
        else:
            # Pin the owner for the whole call, including any awaited work.
            owner = self._owner_ref()
            if owner is None:
                return
            result = self._function(owner, *call_args)

        if inspect.isawaitable(result):
            await result

    def __repr__(self) -> str:
        name = getattr(self._function, "__qualname__", repr(self._function))
        if self._owner_ref is None:
            state = "static"
        else:
            state = "alive" if self.is_alive else "dead"
        return f"<HandlerRecord {name} {state}>"
