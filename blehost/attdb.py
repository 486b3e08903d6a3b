"""The attribute table a GATT server exposes over ATT.

Read and write handlers are called as ``handler(request, response)``.
The request carries ``conn`` and ``data``; the response has a writable
``status`` (an ATTErrorCode) and a ``write(bytes)`` method. The handlers
of a Client Characteristic Configuration descriptor expect ``conn`` to
provide ``cccs``, ``notifiers`` and ``indicators`` dicts keyed by
characteristic handle, and ``new_notifier(value_handle, indicate)``
returning an object with ``close()``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from blehost.attproto import ATTErrorCode
from blehost.profile import Characteristic, Descriptor, Service
from blehost.uuid import UUID, uuid16

__all__ = [
    "PRIMARY_SERVICE_UUID",
    "CHARACTERISTIC_UUID",
    "CLIENT_CHARACTERISTIC_CONFIG_UUID",
    "CCC_NOTIFY",
    "CCC_INDICATE",
    "Attribute",
    "Database",
    "new_cccd",
]

logger = logging.getLogger(__name__)

PRIMARY_SERVICE_UUID = uuid16(0x2800)
CHARACTERISTIC_UUID = uuid16(0x2803)
CLIENT_CHARACTERISTIC_CONFIG_UUID = uuid16(0x2902)

CCC_NOTIFY = 0x0001
CCC_INDICATE = 0x0002

Handler = Callable[[Any, Any], Any]


@dataclass(eq=False)
class Attribute:
    """One entry of the attribute table."""

    handle: int
    type: UUID
    value: Optional[bytes] = None
    end_handle: int = 0
    read_handler: Optional[Handler] = None
    write_handler: Optional[Handler] = None


class Database:
    """A contiguous range of attributes generated from services."""

    def __init__(self, services: Iterable[Service], base: int = 1) -> None:
        self.base = base
        attrs: List[Attribute] = []
        last_decl: Optional[Attribute] = None
        h = base
        for s in services:
            h, service_attrs = _service_attributes(s, h)
            last_decl = service_attrs[0]
            attrs.extend(service_attrs)
        if last_decl is not None:
            last_decl.end_handle = 0xFFFF
        self._attrs = attrs
        _dump(attrs)

    def __len__(self) -> int:
        return len(self._attrs)

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self._attrs)

    def at(self, h: int) -> Optional[Attribute]:
        """Return the attribute with handle ``h``, or None if out of range."""
        i = h - self.base
        if 0 <= i < len(self._attrs):
            return self._attrs[i]
        return None

    def subrange(self, start: int, end: int) -> List[Attribute]:
        """Return the attributes with handles in [start, end], clamped to the table."""
        lo = max(start - self.base, 0)
        hi = max(min(end + 1 - self.base, len(self._attrs)), 0)
        return self._attrs[lo:hi]


def _service_attributes(s: Service, h: int) -> Tuple[int, List[Attribute]]:
    decl = Attribute(h, PRIMARY_SERVICE_UUID, bytes(s.uuid))
    h += 1
    attrs = [decl]
    for c in s.characteristics:
        h, char_attrs = _characteristic_attributes(c, h)
        attrs.extend(char_attrs)
    decl.end_handle = h - 1
    return h, attrs


def _characteristic_attributes(c: Characteristic, h: int) -> Tuple[int, List[Attribute]]:
    vh = h + 1
    decl = Attribute(
        h,
        CHARACTERISTIC_UUID,
        bytes((int(c.property) & 0xFF,)) + (vh & 0xFFFF).to_bytes(2, "little") + bytes(c.uuid),
    )
    value = Attribute(
        vh,
        c.uuid,
        c.value,
        read_handler=c.read_handler,
        write_handler=c.write_handler,
    )
    c.handle = h
    c.value_handle = vh
    if c.notify_handler is not None or c.indicate_handler is not None:
        if c.cccd is None or all(d is not c.cccd for d in c.descriptors):
            c.cccd = new_cccd(c)
            c.descriptors.append(c.cccd)

    h += 2
    attrs = [decl, value]
    for d in c.descriptors:
        attrs.append(_descriptor_attribute(d, h))
        h += 1
    decl.end_handle = h - 1
    return h, attrs


def _descriptor_attribute(d: Descriptor, h: int) -> Attribute:
    return Attribute(
        h,
        d.uuid,
        d.value,
        read_handler=d.read_handler,
        write_handler=d.write_handler,
    )


def _dump(attrs: List[Attribute]) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("Generating attribute table:")
    logger.debug("handle   endh   type")
    for a in attrs:
        if a.value is not None:
            logger.debug("0x%04X 0x%04X 0x%s [%s]", a.handle, a.end_handle, a.type, a.value.hex(" "))
        else:
            logger.debug("0x%04X 0x%04X 0x%s", a.handle, a.end_handle, a.type)


def _start(handler: Handler, req: Any, notifier: Any) -> None:
    threading.Thread(target=handler, args=(req, notifier), daemon=True).start()


def new_cccd(c: Characteristic) -> Descriptor:
    """Create the Client Characteristic Configuration descriptor of ``c``."""
    d = Descriptor(CLIENT_CHARACTERISTIC_CONFIG_UUID)

    def read(req: Any, rsp: Any) -> None:
        ccc = req.conn.cccs.get(c.handle, 0)
        rsp.write(ccc.to_bytes(2, "little"))

    def write(req: Any, rsp: Any) -> None:
        cn = req.conn
        data = bytes(req.data)
        if len(data) < 2:
            rsp.status = ATTErrorCode.INVALID_ATTRIBUTE_VALUE_LENGTH
            return
        old = cn.cccs.get(c.handle, 0)
        ccc = int.from_bytes(data[:2], "little")

        old_notify = bool(old & CCC_NOTIFY)
        old_indicate = bool(old & CCC_INDICATE)
        new_notify = bool(ccc & CCC_NOTIFY)
        new_indicate = bool(ccc & CCC_INDICATE)

        if new_notify and not old_notify:
            if not c.property & c.property.NOTIFY:
                rsp.status = ATTErrorCode.UNLIKELY
                return
            n = cn.new_notifier(c.value_handle, False)
            cn.notifiers[c.handle] = n
            _start(c.notify_handler, req, n)
        if not new_notify and old_notify:
            n = cn.notifiers.pop(c.handle, None)
            if n is not None:
                n.close()

        if new_indicate and not old_indicate:
            if not c.property & c.property.INDICATE:
                rsp.status = ATTErrorCode.UNLIKELY
                return
            n = cn.new_notifier(c.value_handle, True)
            cn.indicators[c.handle] = n
            _start(c.indicate_handler, req, n)
        if not new_indicate and old_indicate:
            n = cn.indicators.pop(c.handle, None)
            if n is not None:
                n.close()

        cn.cccs[c.handle] = ccc

    d.handle_read(read)
    d.handle_write(write)
    return d