"""An Attribute Protocol client for one connection.

The connection object (``l2c``) must provide settable ``rx_mtu`` and
``tx_mtu``, ``read()`` returning one ATT PDU as bytes (empty when the
link is closed), and ``write(bytes)``.

Notifications and indications are passed whole to the handler given to
the client: either an object with ``handle_notification(pdu)`` or a
plain callable taking the PDU.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, List, Optional, Sequence, Tuple

from blehost.attproto import (
    DEFAULT_MTU,
    MAX_MTU,
    ATTError,
    ATTErrorCode,
    InvalidArgumentError,
    InvalidResponseError,
    Opcode,
    SeqProtoTimeoutError,
    error_response,
    response_opcode,
)

__all__ = ["Client"]

logger = logging.getLogger(__name__)

_CLOSED = object()
_NOTIFICATION_BACKLOG = 16


def _le16(v: int) -> bytes:
    return (v & 0xFFFF).to_bytes(2, "little")


def _u16(b: bytes, offset: int) -> int:
    return int.from_bytes(b[offset : offset + 2], "little")


def _check(rsp: bytes, expected: Opcode, min_len: int = 1) -> None:
    """Raise ATTError for an error response, InvalidResponseError for a malformed one."""
    if rsp[0] == Opcode.ERROR_RESPONSE:
        if len(rsp) == 5:
            raise ATTError(rsp[4])
        raise InvalidResponseError()
    if rsp[0] != expected or len(rsp) < min_len:
        raise InvalidResponseError()


class Client:
    """An ATT client; requests are sent one at a time, as the protocol requires."""

    request_timeout = 30.0
    """Seconds to wait for the response to a request."""

    def __init__(self, l2c: Any, handler: Any = None) -> None:
        self._l2c = l2c
        if handler is None:
            self._handler: Optional[Callable[[bytes], Any]] = None
        else:
            self._handler = getattr(handler, "handle_notification", handler)
        self._tx_lock = threading.Lock()
        self._responses: "queue.Queue[Any]" = queue.Queue()
        self._error: Optional[BaseException] = None

    # Transport.

    def _send_cmd(self, b: bytes) -> None:
        self._l2c.write(b)

    def _send_req(self, b: bytes) -> bytes:
        logger.debug("client req %s", b.hex(" "))
        try:
            self._l2c.write(b)
        except OSError as exc:
            raise ConnectionError(f"send ATT request failed: {exc}") from exc
        expected = response_opcode(b[0])
        while True:
            try:
                rsp = self._responses.get(timeout=self.request_timeout)
            except queue.Empty:
                raise SeqProtoTimeoutError("ATT request timeout") from None
            if rsp is _CLOSED:
                # Leave the marker for any later request.
                self._responses.put(_CLOSED)
                raise ConnectionError(f"ATT request failed: {self._error}") from self._error
            if rsp[0] == Opcode.ERROR_RESPONSE or rsp[0] == expected:
                return rsp
            # The peer sent us a request while we wait for our response:
            # refuse it and keep waiting.
            err = error_response(rsp[0], 0x0000, ATTErrorCode.REQUEST_NOT_SUPPORTED)
            try:
                self._l2c.write(err)
            except OSError as exc:
                raise ConnectionError(f"unexpected ATT response received: {exc}") from exc

    def _request(self, b: bytes) -> bytes:
        with self._tx_lock:
            return self._send_req(b)

    # Requests.

    def exchange_mtu(self, client_rx_mtu: int) -> int:
        """Tell the server our receive MTU and return the server's."""
        if client_rx_mtu < DEFAULT_MTU or client_rx_mtu > MAX_MTU:
            raise InvalidArgumentError()
        with self._tx_lock:
            self._l2c.rx_mtu = client_rx_mtu
            rsp = self._send_req(bytes((Opcode.EXCHANGE_MTU_REQUEST,)) + _le16(client_rx_mtu))
            _check(rsp, Opcode.EXCHANGE_MTU_RESPONSE)
            if len(rsp) != 3:
                raise InvalidResponseError()
            tx_mtu = _u16(rsp, 1)
            if tx_mtu != self._l2c.tx_mtu:
                self._l2c.tx_mtu = tx_mtu
            return tx_mtu

    def find_information(self, starth: int, endh: int) -> Tuple[int, bytes]:
        """Return the format and information data of handles in [starth, endh]."""
        if starth == 0 or starth > endh:
            raise InvalidArgumentError()
        rsp = self._request(bytes((Opcode.FIND_INFORMATION_REQUEST,)) + _le16(starth) + _le16(endh))
        _check(rsp, Opcode.FIND_INFORMATION_RESPONSE, 6)
        fmt = rsp[1]
        if fmt == 0x01 and (len(rsp) - 2) % 4 != 0:
            raise InvalidResponseError()
        if fmt == 0x02 and (len(rsp) - 2) % 18 != 0:
            raise InvalidResponseError()
        return fmt, bytes(rsp[2:])

    def _read_by(self, op: Opcode, rsp_op: Opcode, starth: int, endh: int, uuid: bytes) -> Tuple[int, bytes]:
        uuid = bytes(uuid)
        if starth > endh or len(uuid) not in (2, 16):
            raise InvalidArgumentError()
        rsp = self._request(bytes((op,)) + _le16(starth) + _le16(endh) + uuid)
        _check(rsp, rsp_op, 4)
        length = rsp[1]
        data = bytes(rsp[2:])
        if length == 0 or len(data) % length != 0:
            raise InvalidResponseError()
        return length, data

    def read_by_type(self, starth: int, endh: int, uuid: bytes) -> Tuple[int, bytes]:
        """Return the entry length and attribute data list of attributes of type ``uuid``."""
        return self._read_by(
            Opcode.READ_BY_TYPE_REQUEST, Opcode.READ_BY_TYPE_RESPONSE, starth, endh, uuid
        )

    def read(self, handle: int) -> bytes:
        """Return the value of attribute ``handle``."""
        rsp = self._request(bytes((Opcode.READ_REQUEST,)) + _le16(handle))
        _check(rsp, Opcode.READ_RESPONSE)
        return bytes(rsp[1:])

    def read_blob(self, handle: int, offset: int) -> bytes:
        """Return part of the value of attribute ``handle`` from ``offset``."""
        rsp = self._request(bytes((Opcode.READ_BLOB_REQUEST,)) + _le16(handle) + _le16(offset))
        _check(rsp, Opcode.READ_BLOB_RESPONSE)
        return bytes(rsp[1:])

    def read_multiple(self, handles: Sequence[int]) -> bytes:
        """Return the concatenated values of two or more attributes."""
        handles = list(handles)
        if len(handles) < 2 or len(handles) * 2 > self._l2c.tx_mtu - 1:
            raise InvalidArgumentError()
        rsp = self._request(
            bytes((Opcode.READ_MULTIPLE_REQUEST,)) + b"".join(_le16(h) for h in handles)
        )
        _check(rsp, Opcode.READ_MULTIPLE_RESPONSE)
        return bytes(rsp[1:])

    def read_by_group_type(self, starth: int, endh: int, uuid: bytes) -> Tuple[int, bytes]:
        """Return the entry length and attribute data list of groups of type ``uuid``."""
        return self._read_by(
            Opcode.READ_BY_GROUP_TYPE_REQUEST,
            Opcode.READ_BY_GROUP_TYPE_RESPONSE,
            starth,
            endh,
            uuid,
        )

    def write(self, handle: int, value: bytes) -> None:
        """Write ``value`` to attribute ``handle`` and wait for the acknowledgement."""
        value = bytes(value)
        if len(value) > self._l2c.tx_mtu - 3:
            raise InvalidArgumentError()
        rsp = self._request(bytes((Opcode.WRITE_REQUEST,)) + _le16(handle) + value)
        _check(rsp, Opcode.WRITE_RESPONSE)

    def write_command(self, handle: int, value: bytes) -> None:
        """Write ``value`` to attribute ``handle`` without a response."""
        value = bytes(value)
        if len(value) > self._l2c.tx_mtu - 3:
            raise InvalidArgumentError()
        with self._tx_lock:
            self._send_cmd(bytes((Opcode.WRITE_COMMAND,)) + _le16(handle) + value)

    def signed_write(self, handle: int, value: bytes, signature: bytes) -> None:
        """Write ``value`` with a 12-byte authentication signature, without a response."""
        value = bytes(value)
        signature = bytes(signature)
        if len(value) > self._l2c.tx_mtu - 15 or len(signature) != 12:
            raise InvalidArgumentError()
        with self._tx_lock:
            self._send_cmd(
                bytes((Opcode.SIGNED_WRITE_COMMAND,)) + _le16(handle) + value + signature
            )

    def prepare_write(self, handle: int, offset: int, value: bytes) -> Tuple[int, int, bytes]:
        """Queue part of a write; return the handle, offset and value the server echoed."""
        value = bytes(value)
        if len(value) > self._l2c.tx_mtu - 5:
            raise InvalidArgumentError()
        rsp = self._request(
            bytes((Opcode.PREPARE_WRITE_REQUEST,)) + _le16(handle) + _le16(offset) + value
        )
        _check(rsp, Opcode.PREPARE_WRITE_RESPONSE, 5)
        return _u16(rsp, 1), _u16(rsp, 3), bytes(rsp[5:])

    def execute_write(self, flags: int) -> None:
        """Write (flags 1) or cancel (flags 0) all prepared values."""
        rsp = self._request(bytes((Opcode.EXECUTE_WRITE_REQUEST, flags & 0xFF)))
        _check(rsp, Opcode.EXECUTE_WRITE_RESPONSE)

    # Receiving.

    def _deliver(self, work: "queue.Queue[Optional[bytes]]") -> None:
        while True:
            b = work.get()
            if b is None:
                return
            if self._handler is not None:
                try:
                    self._handler(b)
                except Exception:  # a faulty handler must not stop delivery
                    logger.exception("notification handler failed")

    def _fail(self, exc: BaseException) -> None:
        self._error = exc
        self._responses.put(_CLOSED)

    def loop(self) -> None:
        """Receive PDUs until the connection closes, dispatching responses and notifications."""
        work: "queue.Queue[Optional[bytes]]" = queue.Queue(maxsize=_NOTIFICATION_BACKLOG)
        worker = threading.Thread(target=self._deliver, args=(work,), daemon=True)
        worker.start()
        confirmation = bytes((Opcode.HANDLE_VALUE_CONFIRMATION,))
        try:
            while True:
                try:
                    b = self._l2c.read()
                except Exception as exc:  # any read failure ends the connection
                    self._fail(exc)
                    return
                if not b:
                    self._fail(EOFError("connection closed"))
                    return
                b = bytes(b)
                logger.debug("client rsp %s", b.hex(" "))
                if b[0] not in (Opcode.HANDLE_VALUE_NOTIFICATION, Opcode.HANDLE_VALUE_INDICATION):
                    self._responses.put(b)
                    continue
                try:
                    work.put_nowait(b)
                except queue.Full:
                    logger.error("can't enqueue incoming notification")
                # Always acknowledge an indication, even an invalid one.
                if b[0] == Opcode.HANDLE_VALUE_INDICATION:
                    try:
                        self._l2c.write(confirmation)
                    except OSError as exc:
                        logger.error("can't send confirmation: %s", exc)
        finally:
            work.put(None)

    @property
    def errors(self) -> List[BaseException]:
        """The error that ended the receive loop, if any, as a list."""
        return [] if self._error is None else [self._error]