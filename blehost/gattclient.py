"""A GATT client: discovers a server's profile and reads, writes and subscribes to it.

The connection object (``conn``) is the same one the ATT client uses
(see ``blehost.attclient``), and may also provide ``remote_addr`` and
``close()``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Sequence

from blehost.attclient import Client as ATTClient
from blehost.attdb import (
    CCC_INDICATE,
    CCC_NOTIFY,
    CHARACTERISTIC_UUID,
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
    PRIMARY_SERVICE_UUID,
)
from blehost.attproto import ATTError, ATTErrorCode, Opcode
from blehost.profile import Characteristic, Descriptor, Profile, Property, Service
from blehost.uuid import UUID, contains

__all__ = ["Client"]

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[bytes], Any]


@dataclass
class _Subscription:
    cccd_handle: int
    ccc: int = 0
    notify_handler: Optional[NotificationHandler] = None
    indicate_handler: Optional[NotificationHandler] = None


def _u16(b: bytes, offset: int) -> int:
    return int.from_bytes(b[offset : offset + 2], "little")


def _entries(data: bytes, length: int) -> Iterator[bytes]:
    for i in range(0, len(data), length):
        yield data[i : i + length]


def _not_found(exc: ATTError) -> bool:
    return exc.code == ATTErrorCode.ATTRIBUTE_NOT_FOUND


class Client:
    """A GATT client over one connection; starts receiving as soon as it is created."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._profile: Optional[Profile] = None
        self._subs: dict = {}
        self._ac = ATTClient(conn, self)
        self._receiver = threading.Thread(target=self._ac.loop, daemon=True)
        self._receiver.start()

    @property
    def conn(self) -> Any:
        """The connection this client talks over."""
        return self._conn

    @property
    def addr(self) -> Any:
        """The address of the remote device."""
        with self._lock:
            return getattr(self._conn, "remote_addr", None)

    @property
    def profile(self) -> Optional[Profile]:
        """The profile discovered so far, if any."""
        with self._lock:
            return self._profile

    def discover_profile(self, force: bool = False) -> Profile:
        """Discover all services, characteristics and descriptors of the server."""
        if self._profile is not None and not force:
            return self._profile
        services = self.discover_services(None)
        for s in services:
            for c in self.discover_characteristics(None, s):
                self.discover_descriptors(None, c)
        self._profile = Profile(services)
        return self._profile

    def discover_services(self, filter: Optional[Sequence[UUID]] = None) -> List[Service]:
        """Find the primary services, keeping those in ``filter`` when one is given."""
        with self._lock:
            if self._profile is None:
                self._profile = Profile([])
            found = self._profile.services
            start = 0x0001
            while True:
                try:
                    length, data = self._ac.read_by_group_type(start, 0xFFFF, PRIMARY_SERVICE_UUID)
                except ATTError as exc:
                    if _not_found(exc):
                        return found
                    raise
                for entry in _entries(data, length):
                    h = _u16(entry, 0)
                    endh = _u16(entry, 2)
                    u = UUID(bytes(entry[4:length]))
                    if contains(filter, u):
                        s = Service(u)
                        s.handle = h
                        s.end_handle = endh
                        found.append(s)
                    if endh == 0xFFFF:
                        return found
                    start = endh + 1

    def discover_included_services(self, ss: Optional[Sequence[UUID]], s: Service) -> List[Service]:
        """Find the included services of ``s``; none are discovered."""
        with self._lock:
            return []

    def discover_characteristics(
        self, filter: Optional[Sequence[UUID]], s: Service
    ) -> List[Characteristic]:
        """Find the characteristics of ``s``, keeping those in ``filter`` when one is given."""
        with self._lock:
            start = s.handle
            last: Optional[Characteristic] = None
            while start <= s.end_handle:
                try:
                    length, data = self._ac.read_by_type(start, s.end_handle, CHARACTERISTIC_UUID)
                except ATTError as exc:
                    if _not_found(exc):
                        break
                    raise
                for entry in _entries(data, length):
                    h = _u16(entry, 0)
                    vh = _u16(entry, 3)
                    u = UUID(bytes(entry[5:length]))
                    c = Characteristic(u)
                    c.property = Property(entry[2])
                    c.handle = h
                    c.value_handle = vh
                    c.end_handle = s.end_handle
                    if contains(filter, u):
                        s.characteristics.append(c)
                    if last is not None:
                        last.end_handle = c.handle - 1
                    last = c
                    start = vh + 1
            return s.characteristics

    def discover_descriptors(
        self, filter: Optional[Sequence[UUID]], c: Characteristic
    ) -> List[Descriptor]:
        """Find the descriptors of ``c``, keeping those in ``filter`` when one is given."""
        with self._lock:
            start = c.value_handle + 1
            while start <= c.end_handle:
                try:
                    fmt, data = self._ac.find_information(start, c.end_handle)
                except ATTError as exc:
                    if _not_found(exc):
                        break
                    raise
                length = 2 + 16 if fmt == 0x02 else 2 + 2
                for entry in _entries(data, length):
                    h = _u16(entry, 0)
                    u = UUID(bytes(entry[2:length]))
                    d = Descriptor(u)
                    d.handle = h
                    if contains(filter, u):
                        c.descriptors.append(d)
                    if u == CLIENT_CHARACTERISTIC_CONFIG_UUID:
                        c.cccd = d
                    start = h + 1
            return c.descriptors

    def read_characteristic(self, c: Characteristic) -> bytes:
        """Read the value of ``c`` and remember it as ``c.value``."""
        with self._lock:
            val = self._ac.read(c.value_handle)
            c.value = val
            return val

    def read_long_characteristic(self, c: Characteristic) -> bytes:
        """Read a value longer than the MTU, piece by piece."""
        with self._lock:
            read = self._ac.read(c.value_handle)
            buffer = bytearray(read)
            while len(read) >= self._conn.tx_mtu - 1:
                read = self._ac.read_blob(c.value_handle, len(buffer))
                buffer += read
            c.value = bytes(buffer)
            return c.value

    def write_characteristic(self, c: Characteristic, v: bytes, no_rsp: bool = False) -> None:
        """Write ``v`` to ``c``, without waiting for a response if ``no_rsp``."""
        with self._lock:
            if no_rsp:
                self._ac.write_command(c.value_handle, v)
            else:
                self._ac.write(c.value_handle, v)

    def read_descriptor(self, d: Descriptor) -> bytes:
        """Read the value of ``d`` and remember it as ``d.value``."""
        with self._lock:
            val = self._ac.read(d.handle)
            d.value = val
            return val

    def write_descriptor(self, d: Descriptor, v: bytes) -> None:
        """Write ``v`` to descriptor ``d``."""
        with self._lock:
            self._ac.write(d.handle, v)

    def read_rssi(self) -> int:
        """Return the RSSI of the remote device; this transport doesn't report it, so 0."""
        with self._lock:
            return 0

    def exchange_mtu(self, mtu: int) -> int:
        """Exchange MTUs with the server and return the server's receive MTU."""
        with self._lock:
            return self._ac.exchange_mtu(mtu)

    def subscribe(self, c: Characteristic, ind: bool, h: NotificationHandler) -> None:
        """Route indications (``ind``) or notifications of ``c`` to ``h``."""
        with self._lock:
            if c.cccd is None:
                raise LookupError("CCCD not found")
            flag = CCC_INDICATE if ind else CCC_NOTIFY
            self._set_handler(c.cccd.handle, c.value_handle, flag, h)

    def unsubscribe(self, c: Characteristic, ind: bool) -> None:
        """Stop indications (``ind``) or notifications of ``c``."""
        with self._lock:
            if c.cccd is None:
                raise LookupError("CCCD not found")
            flag = CCC_INDICATE if ind else CCC_NOTIFY
            self._set_handler(c.cccd.handle, c.value_handle, flag, None)

    def _set_handler(
        self, cccdh: int, vh: int, flag: int, h: Optional[NotificationHandler]
    ) -> None:
        sub = self._subs.get(vh)
        if sub is None:
            sub = _Subscription(cccdh)
            self._subs[vh] = sub
        enabled = bool(sub.ccc & flag)
        if (h is None) != enabled:
            return
        if h is None:
            sub.ccc &= ~flag & 0xFFFF
        else:
            sub.ccc |= flag
        if flag == CCC_NOTIFY:
            sub.notify_handler = h
        else:
            sub.indicate_handler = h
        self._ac.write(sub.cccd_handle, sub.ccc.to_bytes(2, "little"))

    def clear_subscriptions(self) -> None:
        """Turn off every notification and indication subscription."""
        with self._lock:
            zero = bytes(2)
            for vh, sub in list(self._subs.items()):
                self._ac.write(sub.cccd_handle, zero)
                del self._subs[vh]

    def cancel_connection(self) -> None:
        """Close the connection."""
        with self._lock:
            self._conn.close()

    def handle_notification(self, req: bytes) -> None:
        """Pass a notification or indication PDU to its subscriber."""
        with self._lock:
            req = bytes(req)
            vh = _u16(req, 1)
            sub = self._subs.get(vh)
            if sub is None:
                logger.warning("got an unregistered notification for handle 0x%04X", vh)
                return
            fn = sub.notify_handler
            if req[0] == Opcode.HANDLE_VALUE_INDICATION:
                fn = sub.indicate_handler
            if fn is not None:
                fn(req[3:])