"""Domain event type registry.

Maps a domain event's wire name to everything the subscription side
needs to handle it:

*  ``DomainEventDescriptor``: the Python class, its schema and a
   deserializer.
*  ``HandlerInvoker``: an ``async (event, token)`` closure around the
   one handler bound to that type, if any.  A handler class may be bound
   to several types.

The registry is filled once at startup (explicitly, or by scanning
modules for ``DomainEventHandler`` subclasses), then frozen.  After
``freeze()`` it is read-only, so concurrent dispatches need no locking.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from types import MappingProxyType, ModuleType, UnionType
from typing import Any, Generic, Union, get_args, get_origin

from event_propagation.core.cancellation import CancellationToken
from event_propagation.core.enums import EventSchema
from event_propagation.core.errors import (
    DomainEventDefinitionError,
    DuplicateRegistrationError,
    RegistryFrozenError,
)
from event_propagation.core.events import (
    DomainEvent,
    E,
    deserialize_domain_event,
    get_domain_event_name,
    get_domain_event_schema,
    is_domain_event_type,
)

logger = logging.getLogger(__name__)

HandlerInvoker = Callable[[DomainEvent, CancellationToken], Awaitable[None]]


class DomainEventHandler(ABC, Generic[E]):
    """Business logic subscribed to one or more domain event types.

    Subclass with a concrete event type so the registry can discover it::

        class SendWelcomeEmail(DomainEventHandler[UserRegistered]):
            async def handle_domain_event(self, domain_event, cancellation_token):
                ...

    One class can handle several types, either with a union
    (``DomainEventHandler[UserRegistered | UserDeleted]``) or by deriving
    from several typed handlers.  The same instance is bound to each type.
    """

    @abstractmethod
    async def handle_domain_event(
        self,
        domain_event: E,
        cancellation_token: CancellationToken,
    ) -> None: ...


@dataclass(frozen=True)
class DomainEventDescriptor:
    name: str
    event_type: type[DomainEvent]
    schema: EventSchema

    @classmethod
    def for_type(cls, event_type: type[DomainEvent]) -> DomainEventDescriptor:
        return cls(
            name=get_domain_event_name(event_type),
            event_type=event_type,
            schema=get_domain_event_schema(event_type),
        )

    def deserialize(self, data: bytes) -> DomainEvent:
        return deserialize_domain_event(self.event_type, data)


def _union_members(arg: Any) -> tuple[Any, ...]:
    if isinstance(arg, UnionType) or get_origin(arg) is Union:
        return get_args(arg)
    return (arg,)


def handled_event_types(handler_cls: type) -> list[type[DomainEvent]]:
    """Return every ``T`` of the ``DomainEventHandler[T]`` bases of *handler_cls*.

    Bases are collected across the MRO, so subclasses inherit the types of
    their parents.  Union parameters contribute each member.
    """
    found: list[type[DomainEvent]] = []
    for klass in inspect.getmro(handler_cls):
        for base in vars(klass).get("__orig_bases__", ()):
            if get_origin(base) is not DomainEventHandler:
                continue
            for arg in get_args(base):
                for member in _union_members(arg):
                    if is_domain_event_type(member) and member not in found:
                        found.append(member)
    return found


def _make_invoker(handler: DomainEventHandler[Any]) -> HandlerInvoker:
    async def invoke(event: DomainEvent, cancellation_token: CancellationToken) -> None:
        await handler.handle_domain_event(event, cancellation_token)

    invoke.__qualname__ = f"{type(handler).__qualname__}.handle_domain_event"
    return invoke


class DomainEventTypeRegistry:
    """Write-once, read-many mapping from event name to descriptor/handler."""

    def __init__(self) -> None:
        self._descriptors: dict[str, DomainEventDescriptor] = {}
        self._handlers: dict[str, HandlerInvoker] = {}
        self._frozen = False

    # -- Write phase -------------------------------------------------------

    def register(
        self,
        name: str,
        descriptor: DomainEventDescriptor,
        handler: HandlerInvoker | None = None,
    ) -> None:
        """Register *descriptor* (and optionally its handler) under *name*.

        Raises
        ------
        DuplicateRegistrationError
            If *name* is already registered.
        """
        self._check_writable()
        if name in self._descriptors:
            raise DuplicateRegistrationError(
                f"Domain event {name!r} is already registered to "
                f"{self._descriptors[name].event_type.__qualname__}"
            )
        self._descriptors[name] = descriptor
        if handler is not None:
            self._handlers[name] = handler

    def register_domain_event(self, event_type: type[DomainEvent]) -> DomainEventDescriptor:
        """Make *event_type* known without binding a handler."""
        descriptor = DomainEventDescriptor.for_type(event_type)
        self.register(descriptor.name, descriptor)
        return descriptor

    def register_handler(
        self,
        handler: DomainEventHandler[Any],
        event_type: type[DomainEvent] | None = None,
    ) -> list[DomainEventDescriptor]:
        """Bind *handler* to its event types, registering each type if needed.

        The types are inferred from ``DomainEventHandler[T]`` when
        *event_type* is omitted.
        """
        self._check_writable()
        event_types = [event_type] if event_type else handled_event_types(type(handler))
        if not event_types:
            raise DomainEventDefinitionError(
                f"Cannot infer the domain event handled by {type(handler).__qualname__}"
            )
        return [self._bind_handler(handler, t) for t in event_types]

    def _bind_handler(
        self,
        handler: DomainEventHandler[Any],
        event_type: type[DomainEvent],
    ) -> DomainEventDescriptor:
        name = get_domain_event_name(event_type)
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            descriptor = DomainEventDescriptor.for_type(event_type)
            self.register(name, descriptor, _make_invoker(handler))
            return descriptor

        if descriptor.event_type is not event_type:
            raise DuplicateRegistrationError(
                f"Domain event {name!r} is already registered to "
                f"{descriptor.event_type.__qualname__}"
            )
        if name in self._handlers:
            raise DuplicateRegistrationError(
                f"A handler is already registered for domain event {name!r}"
            )
        self._handlers[name] = _make_invoker(handler)
        return descriptor

    def freeze(self) -> None:
        """End the registration phase."""
        if not self._frozen:
            self._descriptors = MappingProxyType(dict(self._descriptors))  # type: ignore[assignment]
            self._handlers = MappingProxyType(dict(self._handlers))  # type: ignore[assignment]
            self._frozen = True
            logger.info(
                "Domain event registry frozen: %d event types, %d handlers",
                len(self._descriptors),
                len(self._handlers),
            )

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def _check_writable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("Domain event registry is frozen")

    # -- Read phase --------------------------------------------------------

    def resolve(self, name: str) -> DomainEventDescriptor | None:
        return self._descriptors.get(name)

    def resolve_handler(self, name: str) -> HandlerInvoker | None:
        return self._handlers.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[DomainEventDescriptor]:
        return iter(list(self._descriptors.values()))

    def handled_names(self) -> list[str]:
        return sorted(self._handlers)


# ---------------------------------------------------------------------------
# Module scanning (startup only)
# ---------------------------------------------------------------------------

def _iter_modules(module: ModuleType | str) -> Iterator[ModuleType]:
    """Yield *module* and, for packages, every submodule."""
    if isinstance(module, str):
        module = importlib.import_module(module)
    yield module
    if hasattr(module, "__path__"):
        for info in pkgutil.walk_packages(module.__path__, prefix=f"{module.__name__}."):
            yield importlib.import_module(info.name)


def _defined_in(obj: type, module: ModuleType) -> bool:
    return getattr(obj, "__module__", None) == module.__name__


def add_domain_events_from_module(
    registry: DomainEventTypeRegistry,
    module: ModuleType | str,
) -> list[DomainEventDescriptor]:
    """Register every ``@domain_event`` class defined in *module*.

    Types already registered (e.g. by a handler) are skipped.
    """
    added: list[DomainEventDescriptor] = []
    for mod in _iter_modules(module):
        for _, obj in inspect.getmembers(mod, is_domain_event_type):
            if not _defined_in(obj, mod):
                continue
            existing = registry.resolve(get_domain_event_name(obj))
            if existing is not None and existing.event_type is obj:
                continue
            added.append(registry.register_domain_event(obj))
    return added


def add_domain_event_handlers_from_module(
    registry: DomainEventTypeRegistry,
    module: ModuleType | str,
    factory: Callable[[type[DomainEventHandler[Any]]], DomainEventHandler[Any]] | None = None,
) -> list[DomainEventDescriptor]:
    """Instantiate and register every concrete handler defined in *module*.

    Handlers are built with *factory* (default: no-argument constructor).
    """
    build = factory or (lambda cls: cls())
    added: list[DomainEventDescriptor] = []
    for mod in _iter_modules(module):
        for _, obj in inspect.getmembers(mod, inspect.isclass):
            if not _defined_in(obj, mod):
                continue
            if not issubclass(obj, DomainEventHandler) or inspect.isabstract(obj):
                continue
            if not handled_event_types(obj):
                continue
            descriptors = registry.register_handler(build(obj))
            logger.debug(
                "Registered handler %s for %s",
                obj.__qualname__, ", ".join(d.name for d in descriptors),
            )
            added.extend(descriptors)
    return added
