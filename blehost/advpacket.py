"""Crafting and parsing advertising packets and scan responses (EIR format)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from blehost.uuid import UUID, reverse, uuid16

__all__ = [
    "MAX_EIR_PACKET_LENGTH",
    "FLAG_LIMITED_DISCOVERABLE",
    "FLAG_GENERAL_DISCOVERABLE",
    "FLAG_LE_ONLY",
    "FLAG_BOTH_CONTROLLER",
    "FLAG_BOTH_HOST",
    "NotFitError",
    "ServiceData",
    "Packet",
    "Field",
    "new_packet",
    "new_raw_packet",
    "raw",
    "ibeacon_data",
    "ibeacon",
    "flags",
    "short_name",
    "complete_name",
    "manufacturer_data",
    "all_uuid",
    "some_uuid",
    "service_data16",
]

MAX_EIR_PACKET_LENGTH = 31
"""Maximum length of an advertising packet or a scan response."""

FLAG_LIMITED_DISCOVERABLE = 0x01
FLAG_GENERAL_DISCOVERABLE = 0x02
FLAG_LE_ONLY = 0x04
FLAG_BOTH_CONTROLLER = 0x08
FLAG_BOTH_HOST = 0x10

# Advertising data types.
_FLAGS = 0x01
_SOME_UUID16 = 0x02
_ALL_UUID16 = 0x03
_SOME_UUID32 = 0x04
_ALL_UUID32 = 0x05
_SOME_UUID128 = 0x06
_ALL_UUID128 = 0x07
_SHORT_NAME = 0x08
_COMPLETE_NAME = 0x09
_TX_POWER = 0x0A
_SERVICE_SOL16 = 0x14
_SERVICE_SOL128 = 0x15
_SERVICE_DATA16 = 0x16
_SERVICE_SOL32 = 0x1F
_SERVICE_DATA32 = 0x20
_SERVICE_DATA128 = 0x21
_MANUFACTURER_DATA = 0xFF

_APPLE_COMPANY_ID = 0x004C


class NotFitError(Exception):
    """The field does not fit into the packet."""

    def __init__(self, message: str = "data not fit") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class ServiceData:
    """Data advertised for a service UUID."""

    uuid: UUID
    data: bytes


class Packet:
    """An advertising packet or scan response."""

    def __init__(self, data: bytes = b"") -> None:
        self._b = bytearray(data)

    def __bytes__(self) -> bytes:
        return bytes(self._b)

    def __len__(self) -> int:
        return len(self._b)

    def __repr__(self) -> str:
        return f"Packet({bytes(self._b).hex()})"

    def append(self, field: "Field") -> None:
        """Append ``field``; raise NotFitError and leave the packet intact if it doesn't fit."""
        field(self)

    def _append(self, typ: int, data: bytes) -> None:
        if len(self._b) + 2 + len(data) > MAX_EIR_PACKET_LENGTH:
            raise NotFitError()
        self._b += bytes((len(data) + 1, typ)) + bytes(data)

    def _append_raw(self, data: bytes) -> None:
        if len(self._b) + len(data) > MAX_EIR_PACKET_LENGTH:
            raise NotFitError()
        self._b += bytes(data)

    def _fields(self, typ: int) -> Iterator[bytes]:
        """Yield the data of every well-formed field of type ``typ``."""
        b = bytes(self._b)
        pos = 0
        while len(b) - pos >= 2:
            length, t = b[pos], b[pos + 1]
            if length < 1 or len(b) - pos < 1 + length:
                return
            if t == typ:
                yield b[pos + 2 : pos + 1 + length]
            pos += 1 + length

    def field(self, typ: int) -> Optional[bytes]:
        """Return the data of the first field of type ``typ``, or None."""
        return next(self._fields(typ), None)

    def flags(self) -> Optional[int]:
        """Return the flags byte, or None if absent."""
        b = self.field(_FLAGS)
        return b[0] if b else None

    def local_name(self) -> str:
        """Return the short name if present, else the complete name, else ""."""
        b = self.field(_SHORT_NAME)
        if b is None:
            b = self.field(_COMPLETE_NAME) or b""
        return b.decode("utf-8", errors="replace")

    def tx_power(self) -> Optional[int]:
        """Return the signed Tx power level, or None if absent."""
        b = self.field(_TX_POWER)
        if not b:
            return None
        return int.from_bytes(b[:1], "little", signed=True)

    def uuids(self) -> List[UUID]:
        """Return all advertised service UUIDs."""
        result: List[UUID] = []
        for typ, width in (
            (_SOME_UUID16, 2),
            (_ALL_UUID16, 2),
            (_SOME_UUID32, 4),
            (_ALL_UUID32, 4),
            (_SOME_UUID128, 16),
            (_ALL_UUID128, 16),
        ):
            for data in self._fields(typ):
                result.extend(_uuid_list(data, width))
        return result

    def service_sol(self) -> List[UUID]:
        """Return the solicited service UUIDs."""
        result: List[UUID] = []
        for typ, width in (
            (_SERVICE_SOL16, 2),
            (_SERVICE_SOL32, 4),
            (_SERVICE_SOL128, 16),
        ):
            data = self.field(typ)
            if data is not None:
                result.extend(_uuid_list(data, width))
        return result

    def service_data(self) -> List[ServiceData]:
        """Return the service data entries."""
        result: List[ServiceData] = []
        for typ, width in (
            (_SERVICE_DATA16, 2),
            (_SERVICE_DATA32, 4),
            (_SERVICE_DATA128, 16),
        ):
            data = self.field(typ)
            if data is not None and len(data) >= width:
                result.append(ServiceData(UUID(data[:width]), bytes(data[width:])))
        return result

    def manufacturer_data(self) -> Optional[bytes]:
        """Return the manufacturer specific data, or None."""
        return self.field(_MANUFACTURER_DATA)


Field = Callable[[Packet], None]


def _uuid_list(data: bytes, width: int) -> List[UUID]:
    return [UUID(data[i : i + width]) for i in range(0, len(data) - width + 1, width)]


def new_packet(*fields: Field) -> Packet:
    """Build a packet from ``fields``; raise NotFitError if they don't fit."""
    p = Packet()
    for f in fields:
        p.append(f)
    return p


def new_raw_packet(*chunks: bytes) -> Packet:
    """Build a packet by concatenating raw byte strings, without a length limit."""
    return Packet(b"".join(bytes(c) for c in chunks))


def raw(b: bytes) -> Field:
    """A field that appends raw bytes."""
    return lambda p: p._append_raw(b)


def ibeacon_data(md: bytes) -> Field:
    """An iBeacon field with the given manufacturer data."""
    return manufacturer_data(_APPLE_COMPANY_ID, md)


def ibeacon(u: UUID, major: int, minor: int, pwr: int) -> Field:
    """An iBeacon field with proximity UUID ``u``, major, minor and measured power."""

    def apply(p: Packet) -> None:
        if len(u) != 16:
            raise ValueError("invalid argument")
        md = (
            bytes((0x02, 0x15))
            + reverse(u)
            + (major & 0xFFFF).to_bytes(2, "big")
            + (minor & 0xFFFF).to_bytes(2, "big")
            + bytes((pwr & 0xFF,))
        )
        manufacturer_data(_APPLE_COMPANY_ID, md)(p)

    return apply


def flags(f: int) -> Field:
    """A flags field."""
    return lambda p: p._append(_FLAGS, bytes((f & 0xFF,)))


def short_name(n: str) -> Field:
    """A shortened local name field."""
    return lambda p: p._append(_SHORT_NAME, n.encode("utf-8"))


def complete_name(n: str) -> Field:
    """A complete local name field."""
    return lambda p: p._append(_COMPLETE_NAME, n.encode("utf-8"))


def manufacturer_data(company_id: int, b: bytes) -> Field:
    """A manufacturer specific data field."""
    return lambda p: p._append(
        _MANUFACTURER_DATA, (company_id & 0xFFFF).to_bytes(2, "little") + bytes(b)
    )


def _uuid_field(u: bytes, t16: int, t32: int, t128: int) -> Field:
    if len(u) == 2:
        typ = t16
    elif len(u) == 4:
        typ = t32
    else:
        typ = t128
    return lambda p: p._append(typ, bytes(u))


def all_uuid(u: UUID) -> Field:
    """An entry of the complete list of service UUIDs."""
    return _uuid_field(u, _ALL_UUID16, _ALL_UUID32, _ALL_UUID128)


def some_uuid(u: UUID) -> Field:
    """An entry of the incomplete list of service UUIDs."""
    return _uuid_field(u, _SOME_UUID16, _SOME_UUID32, _SOME_UUID128)


def service_data16(service_id: int, b: bytes) -> Field:
    """The 16-bit service UUID followed by its service data."""

    def apply(p: Packet) -> None:
        u = uuid16(service_id)
        p._append(_ALL_UUID16, bytes(u))
        p._append(_SERVICE_DATA16, bytes(u) + bytes(b))

    return apply