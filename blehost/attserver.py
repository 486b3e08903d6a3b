"""An Attribute Protocol server serving one connection from an attribute table.

The connection object (``l2c``) must provide ``rx_mtu`` and a settable
``tx_mtu``, ``read()`` returning one ATT PDU as bytes (empty when the
link is closed), ``write(bytes)`` returning the number of bytes sent,
and ``close()``.
"""

from __future__ import annotations

import functools
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from blehost.attdb import CCC_INDICATE, CCC_NOTIFY, Attribute, Database
from blehost.attproto import (
    DEFAULT_MTU,
    MAX_MTU,
    ATTErrorCode,
    Opcode,
    SeqProtoTimeoutError,
    error_response,
)
from blehost.uuid import uuid16

__all__ = ["Request", "ResponseWriter", "Notifier", "Server"]

logger = logging.getLogger(__name__)


def _u16(b: bytes, offset: int) -> int:
    return int.from_bytes(b[offset : offset + 2], "little")


def _le16(v: int) -> bytes:
    return (v & 0xFFFF).to_bytes(2, "little")


@dataclass
class Request:
    """A read or write request passed to an attribute handler."""

    conn: Any
    data: bytes = b""
    offset: int = 0


class ResponseWriter:
    """Collects the value a read handler returns, and the status of the request.

    ``capacity`` bounds the number of bytes that may be written; None
    means unbounded.
    """

    def __init__(self, capacity: Optional[int] = None) -> None:
        self.capacity = capacity
        self.status: int = ATTErrorCode.SUCCESS
        self._buf = bytearray()

    def write(self, b: bytes) -> int:
        """Append ``b``; raise ValueError if it exceeds the remaining capacity."""
        if self.capacity is not None:
            avail = self.capacity - len(self._buf)
            if len(b) > avail:
                raise ValueError(f"requested write {len(b)} bytes, {avail} available")
        self._buf += bytes(b)
        return len(b)

    @property
    def value(self) -> bytes:
        return bytes(self._buf)


class Notifier:
    """Sends notifications or indications for one subscription until closed."""

    def __init__(self, send: Callable[[bytes], int]) -> None:
        self._send = send
        self._lock = threading.Lock()
        self.closed = threading.Event()

    def write(self, b: bytes) -> int:
        """Send ``b`` to the peer; raise BrokenPipeError once closed."""
        with self._lock:
            if self.closed.is_set():
                raise BrokenPipeError("notifier closed")
            return self._send(bytes(b))

    def close(self) -> None:
        """End the subscription."""
        self.closed.set()


class _Connection:
    """Per-connection state handed to attribute handlers as ``request.conn``."""

    def __init__(self, l2c: Any, server: "Server") -> None:
        self.l2c = l2c
        self.server = server
        self.cccs: Dict[int, int] = {}
        self.notifiers: Dict[int, Notifier] = {}
        self.indicators: Dict[int, Notifier] = {}

    def new_notifier(self, value_handle: int, indicate: bool) -> Notifier:
        send = self.server.indicate if indicate else self.server.notify
        return Notifier(functools.partial(send, value_handle))

    def __getattr__(self, name: str) -> Any:
        return getattr(self.l2c, name)


class _Pending:
    def __init__(self) -> None:
        self.event = threading.Event()
        self.confirmed = False


class Server:
    """An ATT server for one connection."""

    confirm_timeout = 30.0
    """Seconds to wait for the confirmation of an indication."""

    def __init__(self, db: Database, l2c: Any) -> None:
        mtu = l2c.rx_mtu
        if mtu < DEFAULT_MTU or mtu > MAX_MTU:
            raise ValueError("invalid MTU")
        self.db = db
        self._l2c = l2c
        self.conn = _Connection(l2c, self)
        self.rx_mtu = mtu
        # Only the default ATT_MTU is used until the peer exchanges MTUs.
        self.tx_mtu = DEFAULT_MTU

        self._notify_lock = threading.Lock()
        self._indicate_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._pending: Optional[_Pending] = None
        self._closed = threading.Event()

        self._prepare_attr: Optional[Attribute] = None
        self._prepare_data = bytearray()

    # Outgoing notifications and indications.

    def notify(self, h: int, data: bytes) -> int:
        """Send a notification of attribute ``h``, truncated to fit the MTU."""
        with self._notify_lock:
            data = bytes(data)[: self.tx_mtu - 3]
            pdu = bytes((Opcode.HANDLE_VALUE_NOTIFICATION,)) + _le16(h) + data
            return self._l2c.write(pdu)

    def indicate(self, h: int, data: bytes) -> int:
        """Send an indication of attribute ``h`` and wait for its confirmation.

        Raises SeqProtoTimeoutError if no confirmation arrives in time and
        BrokenPipeError if the connection closes first.
        """
        with self._indicate_lock:
            if self._closed.is_set():
                raise BrokenPipeError("connection closed")
            data = bytes(data)[: self.tx_mtu - 3]
            pdu = bytes((Opcode.HANDLE_VALUE_INDICATION,)) + _le16(h) + data
            pending = _Pending()
            with self._state_lock:
                self._pending = pending
            try:
                n = self._l2c.write(pdu)
                if not pending.event.wait(self.confirm_timeout):
                    raise SeqProtoTimeoutError()
            finally:
                with self._state_lock:
                    if self._pending is pending:
                        self._pending = None
            if not pending.confirmed:
                raise BrokenPipeError("connection closed")
            return n

    def _confirm(self) -> None:
        with self._state_lock:
            pending, self._pending = self._pending, None
        if pending is None:
            logger.error("received a spurious confirmation")
            return
        pending.confirmed = True
        pending.event.set()

    # Incoming requests.

    def _read_requests(self, requests: "queue.Queue[Optional[bytes]]") -> None:
        try:
            while True:
                try:
                    b = self._l2c.read()
                except Exception as exc:  # any read failure ends the connection
                    logger.debug("read failed: %s", exc)
                    break
                if not b:
                    break
                if b[0] == Opcode.HANDLE_VALUE_CONFIRMATION:
                    self._confirm()
                    continue
                requests.put(bytes(b))
        finally:
            requests.put(None)
            self._closed.set()
            with self._state_lock:
                pending, self._pending = self._pending, None
            if pending is not None:
                pending.event.set()
            try:
                self._l2c.close()
            except OSError as exc:
                logger.debug("close failed: %s", exc)

    def loop(self) -> None:
        """Serve requests until the connection closes, then end all subscriptions."""
        requests: "queue.Queue[Optional[bytes]]" = queue.Queue(maxsize=1)
        reader = threading.Thread(target=self._read_requests, args=(requests,), daemon=True)
        reader.start()
        while True:
            req = requests.get()
            if req is None:
                break
            rsp = self.handle_request(req)
            if rsp:
                try:
                    self._l2c.write(rsp)
                except OSError as exc:
                    logger.error("can't send response: %s", exc)
        reader.join()
        for h, ccc in list(self.conn.cccs.items()):
            if ccc:
                logger.info("cleanup ccc 0x%02X", ccc)
            if ccc & CCC_INDICATE:
                n = self.conn.indicators.pop(h, None)
                if n is not None:
                    n.close()
            if ccc & CCC_NOTIFY:
                n = self.conn.notifiers.pop(h, None)
                if n is not None:
                    n.close()

    def handle_request(self, b: bytes) -> Optional[bytes]:
        """Return the response PDU to request ``b``, or None if none is due."""
        b = bytes(b)
        if not b:
            return None
        logger.debug("req %s", b.hex(" "))
        handlers = {
            Opcode.EXCHANGE_MTU_REQUEST: self._exchange_mtu,
            Opcode.FIND_INFORMATION_REQUEST: self._find_information,
            Opcode.FIND_BY_TYPE_VALUE_REQUEST: self._find_by_type_value,
            Opcode.READ_BY_TYPE_REQUEST: self._read_by_type,
            Opcode.READ_REQUEST: self._read,
            Opcode.READ_BLOB_REQUEST: self._read_blob,
            Opcode.READ_BY_GROUP_TYPE_REQUEST: self._read_by_group_type,
            Opcode.WRITE_REQUEST: self._write,
            Opcode.WRITE_COMMAND: self._write_command,
            Opcode.PREPARE_WRITE_REQUEST: self._prepare_write,
            Opcode.EXECUTE_WRITE_REQUEST: self._execute_write,
        }
        handler = handlers.get(b[0])  # type: ignore[call-overload]
        if handler is None:
            rsp: Optional[bytes] = error_response(b[0], 0x0000, ATTErrorCode.REQUEST_NOT_SUPPORTED)
        else:
            rsp = handler(b)
        logger.debug("rsp %s", rsp.hex(" ") if rsp else "")
        return rsp

    def _exchange_mtu(self, r: bytes) -> bytes:
        if len(r) != 3 or _u16(r, 1) < DEFAULT_MTU:
            return error_response(r[0], 0x0000, ATTErrorCode.INVALID_PDU)
        tx_mtu = _u16(r, 1)
        self._l2c.tx_mtu = tx_mtu
        rsp = bytes((Opcode.EXCHANGE_MTU_RESPONSE,)) + _le16(self.rx_mtu)
        # The new MTU applies after this response.
        with self._notify_lock, self._state_lock:
            self.tx_mtu = tx_mtu
        return rsp

    def _check_range(self, r: bytes, min_len: int, exact: Optional[tuple] = None) -> Optional[bytes]:
        if (exact is not None and len(r) not in exact) or len(r) < min_len:
            return error_response(r[0], 0x0000, ATTErrorCode.INVALID_PDU)
        start, end = _u16(r, 1), _u16(r, 3)
        if start == 0 or start > end:
            return error_response(r[0], start, ATTErrorCode.INVALID_HANDLE)
        return None

    def _find_information(self, r: bytes) -> bytes:
        err = self._check_range(r, 5, (5,))
        if err is not None:
            return err
        start, end = _u16(r, 1), _u16(r, 3)
        cap = self.tx_mtu - 2
        fmt = 0
        data = bytearray()
        for a in self.db.subrange(start, end):
            if fmt == 0:
                fmt = 0x02 if len(a.type) == 16 else 0x01
            if fmt == 0x01 and len(a.type) != 2:
                break
            if fmt == 0x02 and len(a.type) != 16:
                break
            if len(data) + 2 + len(a.type) > cap:
                break
            data += _le16(a.handle) + bytes(a.type)
        if fmt == 0:
            return error_response(r[0], start, ATTErrorCode.ATTRIBUTE_NOT_FOUND)
        return bytes((Opcode.FIND_INFORMATION_RESPONSE, fmt)) + bytes(data)

    def _find_by_type_value(self, r: bytes) -> bytes:
        err = self._check_range(r, 7)
        if err is not None:
            return err
        start, end = _u16(r, 1), _u16(r, 3)
        attr_type = uuid16(_u16(r, 5))
        wanted = r[7:]
        cap = self.tx_mtu - 1
        data = bytearray()
        for a in self.db.subrange(start, end):
            if a.type != attr_type:
                continue
            v, starth, endh = a.value, a.handle, a.end_handle
            if v is None:
                limit = self.tx_mtu - 7
                rw = ResponseWriter(limit + 1)
                e = self._handle_att(a, r, rw)
                if e != ATTErrorCode.SUCCESS or len(rw.value) > limit:
                    return error_response(r[0], start, ATTErrorCode.INVALID_HANDLE)
                v = rw.value
                endh = a.handle
            if bytes(v) != wanted:
                continue
            if len(data) + 4 > cap:
                break
            data += _le16(starth) + _le16(endh)
        if not data:
            return error_response(r[0], start, ATTErrorCode.ATTRIBUTE_NOT_FOUND)
        return bytes((Opcode.FIND_BY_TYPE_VALUE_RESPONSE,)) + bytes(data)

    def _read_by_type(self, r: bytes) -> bytes:
        err = self._check_range(r, 7, (7, 21))
        if err is not None:
            return err
        start, end = _u16(r, 1), _u16(r, 3)
        attr_type = r[5:]
        cap = self.tx_mtu - 2
        dlen = 0
        data = bytearray()
        for a in self.db.subrange(start, end):
            if bytes(a.type) != attr_type:
                continue
            v = a.value
            if v is None:
                rw = ResponseWriter(self.tx_mtu - 2)
                e = self._handle_att(a, r, rw)
                if e != ATTErrorCode.SUCCESS:
                    if dlen == 0:
                        return error_response(r[0], start, e)
                    break
                v = rw.value
            if dlen == 0:
                dlen = min(2 + len(v), 255, cap)
            elif 2 + len(v) != dlen:
                break
            if len(data) + dlen > cap:
                break
            data += _le16(a.handle) + bytes(v[: dlen - 2])
        if dlen == 0:
            return error_response(r[0], start, ATTErrorCode.ATTRIBUTE_NOT_FOUND)
        return bytes((Opcode.READ_BY_TYPE_RESPONSE, dlen)) + bytes(data)

    def _read_value(self, r: bytes, handle: int, offset: int, response: Opcode) -> bytes:
        a = self.db.at(handle)
        if a is None:
            return error_response(r[0], handle, ATTErrorCode.INVALID_HANDLE)
        cap = self.tx_mtu - 1
        if a.value is not None:
            return bytes((response,)) + bytes(a.value[offset : offset + cap])
        rw = ResponseWriter(cap)
        e = self._handle_att(a, r, rw)
        if e != ATTErrorCode.SUCCESS:
            return error_response(r[0], handle, e)
        return bytes((response,)) + rw.value

    def _read(self, r: bytes) -> bytes:
        if len(r) != 3:
            return error_response(r[0], 0x0000, ATTErrorCode.INVALID_PDU)
        return self._read_value(r, _u16(r, 1), 0, Opcode.READ_RESPONSE)

    def _read_blob(self, r: bytes) -> bytes:
        if len(r) != 5:
            return error_response(r[0], 0x0000, ATTErrorCode.INVALID_PDU)
        return self._read_value(r, _u16(r, 1), _u16(r, 3), Opcode.READ_BLOB_RESPONSE)

    def _read_by_group_type(self, r: bytes) -> bytes:
        err = self._check_range(r, 7, (7, 21))
        if err is not None:
            return err
        start, end = _u16(r, 1), _u16(r, 3)
        group_type = r[5:]
        cap = self.tx_mtu - 2
        dlen = 0
        data = bytearray()
        for a in self.db.subrange(start, end):
            if bytes(a.type) != group_type:
                continue
            v = a.value
            if v is None:
                rw = ResponseWriter(max(cap - len(data) - 4, 0))
                e = self._handle_att(a, r, rw)
                if e != ATTErrorCode.SUCCESS:
                    return error_response(r[0], start, e)
                v = rw.value
            if dlen == 0:
                dlen = min(4 + len(v), 255, cap)
            elif 4 + len(v) != dlen:
                break
            if len(data) + dlen > cap:
                break
            data += _le16(a.handle) + _le16(a.end_handle) + bytes(v[: dlen - 4])
        if dlen == 0:
            return error_response(r[0], start, ATTErrorCode.ATTRIBUTE_NOT_FOUND)
        return bytes((Opcode.READ_BY_GROUP_TYPE_RESPONSE, dlen)) + bytes(data)

    def _write(self, r: bytes) -> bytes:
        if len(r) < 3:
            return error_response(r[0], 0x0000, ATTErrorCode.INVALID_PDU)
        handle = _u16(r, 1)
        a = self.db.at(handle)
        if a is None:
            return error_response(r[0], handle, ATTErrorCode.INVALID_HANDLE)
        e = self._handle_att(a, r, ResponseWriter(0))
        if e != ATTErrorCode.SUCCESS:
            return error_response(r[0], handle, e)
        return bytes((Opcode.WRITE_RESPONSE,))

    def _prepare_write(self, r: bytes) -> bytes:
        if len(r) < 5:
            return error_response(r[0], 0x0000, ATTErrorCode.INVALID_PDU)
        handle = _u16(r, 1)
        a = self.db.at(handle)
        if a is None:
            return error_response(r[0], handle, ATTErrorCode.INVALID_HANDLE)
        e = self._handle_att(a, r, ResponseWriter(0))
        if e != ATTErrorCode.SUCCESS:
            return error_response(r[0], handle, e)
        return bytes((Opcode.PREPARE_WRITE_RESPONSE,)) + r[1:]

    def _execute_write(self, r: bytes) -> bytes:
        if len(r) < 2:
            return error_response(r[0], 0x0000, ATTErrorCode.INVALID_PDU)
        if r[1] == 0:
            self._prepare_attr = None
        elif r[1] == 1 and self._prepare_attr is not None:
            e = self._handle_att(self._prepare_attr, r, ResponseWriter(0))
            if e != ATTErrorCode.SUCCESS:
                return error_response(r[0], 0, e)
        return bytes((Opcode.EXECUTE_WRITE_RESPONSE,))

    def _write_command(self, r: bytes) -> None:
        if len(r) <= 3:
            return None
        a = self.db.at(_u16(r, 1))
        if a is not None:
            self._handle_att(a, r, ResponseWriter(0))
        return None

    def _handle_att(self, a: Attribute, req: bytes, rsp: ResponseWriter) -> int:
        rsp.status = ATTErrorCode.SUCCESS
        op = req[0]
        if op in (Opcode.READ_BY_TYPE_REQUEST, Opcode.READ_REQUEST):
            if a.read_handler is None:
                return ATTErrorCode.READ_NOT_PERMITTED
            a.read_handler(Request(self.conn), rsp)
        elif op == Opcode.READ_BLOB_REQUEST:
            if a.read_handler is None:
                return ATTErrorCode.READ_NOT_PERMITTED
            a.read_handler(Request(self.conn, b"", _u16(req, 3)), rsp)
        elif op == Opcode.PREPARE_WRITE_REQUEST:
            if a.write_handler is None:
                return ATTErrorCode.WRITE_NOT_PERMITTED
            if self._prepare_attr is None:
                self._prepare_attr = a
                self._prepare_data.clear()
            self._prepare_data += req[5:]
        elif op == Opcode.EXECUTE_WRITE_REQUEST:
            if a.write_handler is None:
                return ATTErrorCode.WRITE_NOT_PERMITTED
            a.write_handler(Request(self.conn, bytes(self._prepare_data)), rsp)
            self._prepare_attr = None
        elif op in (Opcode.WRITE_REQUEST, Opcode.WRITE_COMMAND):
            if a.write_handler is None:
                return ATTErrorCode.WRITE_NOT_PERMITTED
            a.write_handler(Request(self.conn, bytes(req[3:])), rsp)
        else:
            return ATTErrorCode.REQUEST_NOT_SUPPORTED
        return rsp.status