"""GATT profile model: services, characteristics and descriptors."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Union

from blehost.uuid import UUID

__all__ = ["Property", "Profile", "Service", "Characteristic", "Descriptor"]

Handler = Callable[..., Any]


class Property(enum.IntFlag):
    """Characteristic property flags."""

    BROADCAST = 0x01
    READ = 0x02
    WRITE_NR = 0x04
    WRITE = 0x08
    NOTIFY = 0x10
    INDICATE = 0x20
    SIGNED_WRITE = 0x40
    EXTENDED = 0x80


@dataclass(eq=False)
class Descriptor:
    """A BLE descriptor."""

    uuid: UUID
    property: Property = Property(0)
    handle: int = 0
    value: Optional[bytes] = None
    read_handler: Optional[Handler] = None
    write_handler: Optional[Handler] = None

    def set_value(self, b: bytes) -> None:
        """Serve reads with a static copy of ``b``."""
        if self.read_handler is not None:
            raise RuntimeError("descriptor has been configured with a read handler")
        self.property |= Property.READ
        self.value = bytes(b)

    def handle_read(self, h: Handler) -> None:
        """Route read requests to ``h``."""
        if self.value is not None:
            raise RuntimeError("descriptor has been configured with a static value")
        self.property |= Property.READ
        self.read_handler = h

    def handle_write(self, h: Handler) -> None:
        """Route write and write-without-response requests to ``h``."""
        self.property |= Property.WRITE | Property.WRITE_NR
        self.write_handler = h


@dataclass(eq=False)
class Characteristic:
    """A BLE characteristic."""

    uuid: UUID
    property: Property = Property(0)
    secure: Property = Property(0)
    descriptors: List[Descriptor] = field(default_factory=list)
    cccd: Optional[Descriptor] = None
    value: Optional[bytes] = None
    read_handler: Optional[Handler] = None
    write_handler: Optional[Handler] = None
    notify_handler: Optional[Handler] = None
    indicate_handler: Optional[Handler] = None
    handle: int = 0
    value_handle: int = 0
    end_handle: int = 0

    def add_descriptor(self, d: Descriptor) -> Descriptor:
        """Add ``d``; raise ValueError if a descriptor with its UUID exists."""
        if any(x.uuid == d.uuid for x in self.descriptors):
            raise ValueError(
                f"characteristic already contains a descriptor with UUID {UUID(d.uuid)}"
            )
        self.descriptors.append(d)
        return d

    def new_descriptor(self, u: UUID) -> Descriptor:
        """Create a descriptor with UUID ``u`` and add it."""
        return self.add_descriptor(Descriptor(u))

    def set_value(self, b: bytes) -> None:
        """Serve reads with a static copy of ``b``."""
        if self.read_handler is not None:
            raise RuntimeError("characteristic has been configured with a read handler")
        self.property |= Property.READ
        self.value = bytes(b)

    def handle_read(self, h: Handler) -> None:
        """Route read requests to ``h``."""
        if self.value is not None:
            raise RuntimeError("characteristic has been configured with a static value")
        self.property |= Property.READ
        self.read_handler = h

    def handle_write(self, h: Handler) -> None:
        """Route write and write-without-response requests to ``h``."""
        self.property |= Property.WRITE | Property.WRITE_NR
        self.write_handler = h

    def handle_notify(self, h: Handler) -> None:
        """Route notification subscriptions to ``h``."""
        self.property |= Property.NOTIFY
        self.notify_handler = h

    def handle_indicate(self, h: Handler) -> None:
        """Route indication subscriptions to ``h``."""
        self.property |= Property.INDICATE
        self.indicate_handler = h


@dataclass(eq=False)
class Service:
    """A BLE service."""

    uuid: UUID
    characteristics: List[Characteristic] = field(default_factory=list)
    handle: int = 0
    end_handle: int = 0

    def add_characteristic(self, c: Characteristic) -> Characteristic:
        """Add ``c``; raise ValueError if a characteristic with its UUID exists."""
        if any(x.uuid == c.uuid for x in self.characteristics):
            raise ValueError(
                f"service already contains a characteristic with UUID {UUID(c.uuid)}"
            )
        self.characteristics.append(c)
        return c

    def new_characteristic(self, u: UUID) -> Characteristic:
        """Create a characteristic with UUID ``u`` and add it."""
        return self.add_characteristic(Characteristic(u))


@dataclass(eq=False)
class Profile:
    """One or more services that together fulfil a use case."""

    services: List[Service] = field(default_factory=list)

    def find(
        self, target: Any
    ) -> Union[Service, Characteristic, Descriptor, None]:
        """Find an item of the same kind and UUID as ``target``."""
        if isinstance(target, Service):
            return self.find_service(target)
        if isinstance(target, Characteristic):
            return self.find_characteristic(target)
        if isinstance(target, Descriptor):
            return self.find_descriptor(target)
        return None

    def find_service(self, service: Service) -> Optional[Service]:
        """Return the first service with the UUID of ``service``."""
        return next((s for s in self.services if s.uuid == service.uuid), None)

    def find_characteristic(self, char: Characteristic) -> Optional[Characteristic]:
        """Return the first characteristic with the UUID of ``char``."""
        return next(
            (
                c
                for s in self.services
                for c in s.characteristics
                if c.uuid == char.uuid
            ),
            None,
        )

    def find_descriptor(self, desc: Descriptor) -> Optional[Descriptor]:
        """Return the first descriptor with the UUID of ``desc``."""
        return next(
            (
                d
                for s in self.services
                for c in s.characteristics
                for d in c.descriptors
                if d.uuid == desc.uuid
            ),
            None,
        )