"""Advertisements received while scanning."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from blehost.advpacket import Packet, ServiceData, new_raw_packet
from blehost.events import LEAdvertisingReport
from blehost.uuid import UUID

__all__ = [
    "EVT_TYPE_ADV_IND",
    "EVT_TYPE_ADV_DIRECT_IND",
    "EVT_TYPE_ADV_SCAN_IND",
    "EVT_TYPE_ADV_NONCONN_IND",
    "EVT_TYPE_SCAN_RSP",
    "Address",
    "Advertisement",
]

EVT_TYPE_ADV_IND = 0x00  # Connectable undirected advertising.
EVT_TYPE_ADV_DIRECT_IND = 0x01  # Connectable directed advertising.
EVT_TYPE_ADV_SCAN_IND = 0x02  # Scannable undirected advertising.
EVT_TYPE_ADV_NONCONN_IND = 0x03  # Non connectable undirected advertising.
EVT_TYPE_SCAN_RSP = 0x04  # Scan response.


@dataclass(frozen=True)
class Address:
    """A device address, octets in display order; ``random`` marks a random address."""

    octets: bytes
    random: bool = False

    def __str__(self) -> str:
        return ":".join(f"{b:02x}" for b in self.octets)


class Advertisement:
    """One report of an LE Advertising Report event, with its scan response if any."""

    def __init__(self, report: bytes, index: int) -> None:
        self.report = LEAdvertisingReport(report)
        self.index = index
        self._sr: Optional[Advertisement] = None
        self._packet: Optional[Packet] = None

    def set_scan_response(self, sr: "Advertisement") -> None:
        """Associate a scan response with this advertisement."""
        self._sr = sr
        self._packet = None

    def _packets(self) -> Packet:
        if self._packet is None:
            self._packet = new_raw_packet(self.data(), self.scan_response() or b"")
        return self._packet

    def local_name(self) -> str:
        return self._packets().local_name()

    def manufacturer_data(self) -> Optional[bytes]:
        return self._packets().manufacturer_data()

    def service_data(self) -> List[ServiceData]:
        return self._packets().service_data()

    def services(self) -> List[UUID]:
        return self._packets().uuids()

    def overflow_service(self) -> List[UUID]:
        return self._packets().uuids()

    def tx_power_level(self) -> int:
        """Return the advertised Tx power level, 0 if absent."""
        pwr = self._packets().tx_power()
        return 0 if pwr is None else pwr

    def solicited_service(self) -> List[UUID]:
        return self._packets().service_sol()

    def connectable(self) -> bool:
        return self.event_type() in (EVT_TYPE_ADV_IND, EVT_TYPE_ADV_DIRECT_IND)

    def rssi(self) -> int:
        return self.report.rssi(self.index)

    def addr(self) -> Address:
        octets = self.report.address(self.index)[::-1]
        return Address(octets, random=self.address_type() == 1)

    def event_type(self) -> int:
        return self.report.event_type(self.index)

    def address_type(self) -> int:
        return self.report.address_type(self.index)

    def data(self) -> bytes:
        return self.report.data(self.index)

    def scan_response(self) -> Optional[bytes]:
        """Return the scan response data, or None if none was received."""
        if self._sr is None:
            return None
        return self._sr.data()