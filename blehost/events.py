"""Views over HCI event parameter bytes."""

from __future__ import annotations

__all__ = ["CommandComplete", "NumberOfCompletedPackets", "LEAdvertisingReport"]


class CommandComplete(bytes):
    """Command Complete event parameters."""

    @property
    def num_hci_command_packets(self) -> int:
        return self[0]

    @property
    def command_opcode(self) -> int:
        return int.from_bytes(self[1:3], "little")

    @property
    def return_parameters(self) -> bytes:
        return bytes(self[3:])


class NumberOfCompletedPackets(bytes):
    """Number Of Completed Packets event parameters.

    Entries are laid out as handle/count pairs, as controllers send them.
    """

    @property
    def number_of_handles(self) -> int:
        return self[0]

    def connection_handle(self, i: int) -> int:
        """Return the connection handle of entry ``i``."""
        start = 1 + i * 4
        return int.from_bytes(self[start : start + 2], "little")

    def completed_packets(self, i: int) -> int:
        """Return the number of completed packets of entry ``i``."""
        start = 1 + i * 4 + 2
        return int.from_bytes(self[start : start + 2], "little")


class LEAdvertisingReport(bytes):
    """LE Advertising Report subevent parameters."""

    @property
    def subevent_code(self) -> int:
        return self[0]

    @property
    def num_reports(self) -> int:
        return self[1]

    def event_type(self, i: int) -> int:
        return self[2 + i]

    def address_type(self, i: int) -> int:
        return self[2 + self.num_reports + i]

    def address(self, i: int) -> bytes:
        """Return the 6-byte address of report ``i``, little-endian as received."""
        start = 2 + self.num_reports * 2 + 6 * i
        return bytes(self[start : start + 6])

    def length_data(self, i: int) -> int:
        return self[2 + self.num_reports * 8 + i]

    def _data_start(self) -> int:
        return 2 + self.num_reports * 9

    def data(self, i: int) -> bytes:
        """Return the advertising data of report ``i``."""
        offset = self._data_start() + sum(self.length_data(j) for j in range(i))
        return bytes(self[offset : offset + self.length_data(i)])

    def rssi(self, i: int) -> int:
        """Return the signed RSSI of report ``i``."""
        total = sum(self.length_data(j) for j in range(self.num_reports))
        pos = self._data_start() + total + i
        return int.from_bytes(self[pos : pos + 1], "little", signed=True)