"""Attribute Protocol opcodes, error codes and exceptions."""

from __future__ import annotations

import enum
from typing import Optional

__all__ = [
    "DEFAULT_MTU",
    "MAX_MTU",
    "Opcode",
    "ATTErrorCode",
    "ATTError",
    "InvalidArgumentError",
    "InvalidResponseError",
    "SeqProtoTimeoutError",
    "response_opcode",
    "error_response",
]

DEFAULT_MTU = 23
"""Default ATT_MTU before an MTU exchange."""

MAX_MTU = 512 + 3
"""Largest ATT_MTU: 512 bytes of attribute value plus the 3-byte ATT header."""


class Opcode(enum.IntEnum):
    """ATT PDU opcodes."""

    ERROR_RESPONSE = 0x01
    EXCHANGE_MTU_REQUEST = 0x02
    EXCHANGE_MTU_RESPONSE = 0x03
    FIND_INFORMATION_REQUEST = 0x04
    FIND_INFORMATION_RESPONSE = 0x05
    FIND_BY_TYPE_VALUE_REQUEST = 0x06
    FIND_BY_TYPE_VALUE_RESPONSE = 0x07
    READ_BY_TYPE_REQUEST = 0x08
    READ_BY_TYPE_RESPONSE = 0x09
    READ_REQUEST = 0x0A
    READ_RESPONSE = 0x0B
    READ_BLOB_REQUEST = 0x0C
    READ_BLOB_RESPONSE = 0x0D
    READ_MULTIPLE_REQUEST = 0x0E
    READ_MULTIPLE_RESPONSE = 0x0F
    READ_BY_GROUP_TYPE_REQUEST = 0x10
    READ_BY_GROUP_TYPE_RESPONSE = 0x11
    WRITE_REQUEST = 0x12
    WRITE_RESPONSE = 0x13
    PREPARE_WRITE_REQUEST = 0x16
    PREPARE_WRITE_RESPONSE = 0x17
    EXECUTE_WRITE_REQUEST = 0x18
    EXECUTE_WRITE_RESPONSE = 0x19
    HANDLE_VALUE_NOTIFICATION = 0x1B
    HANDLE_VALUE_INDICATION = 0x1D
    HANDLE_VALUE_CONFIRMATION = 0x1E
    WRITE_COMMAND = 0x52
    SIGNED_WRITE_COMMAND = 0xD2


class ATTErrorCode(enum.IntEnum):
    """ATT error codes carried by an Error Response."""

    SUCCESS = 0x00
    INVALID_HANDLE = 0x01
    READ_NOT_PERMITTED = 0x02
    WRITE_NOT_PERMITTED = 0x03
    INVALID_PDU = 0x04
    INSUFFICIENT_AUTHENTICATION = 0x05
    REQUEST_NOT_SUPPORTED = 0x06
    INVALID_OFFSET = 0x07
    INSUFFICIENT_AUTHORIZATION = 0x08
    PREPARE_QUEUE_FULL = 0x09
    ATTRIBUTE_NOT_FOUND = 0x0A
    ATTRIBUTE_NOT_LONG = 0x0B
    INSUFFICIENT_ENCRYPTION_KEY_SIZE = 0x0C
    INVALID_ATTRIBUTE_VALUE_LENGTH = 0x0D
    UNLIKELY = 0x0E
    INSUFFICIENT_ENCRYPTION = 0x0F
    UNSUPPORTED_GROUP_TYPE = 0x10
    INSUFFICIENT_RESOURCES = 0x11


_ERROR_TEXT = {
    ATTErrorCode.SUCCESS: "success",
    ATTErrorCode.INVALID_HANDLE: "invalid handle",
    ATTErrorCode.READ_NOT_PERMITTED: "read not permitted",
    ATTErrorCode.WRITE_NOT_PERMITTED: "write not permitted",
    ATTErrorCode.INVALID_PDU: "invalid PDU",
    ATTErrorCode.INSUFFICIENT_AUTHENTICATION: "insufficient authentication",
    ATTErrorCode.REQUEST_NOT_SUPPORTED: "request not supported",
    ATTErrorCode.INVALID_OFFSET: "invalid offset",
    ATTErrorCode.INSUFFICIENT_AUTHORIZATION: "insufficient authorization",
    ATTErrorCode.PREPARE_QUEUE_FULL: "prepare queue full",
    ATTErrorCode.ATTRIBUTE_NOT_FOUND: "attribute not found",
    ATTErrorCode.ATTRIBUTE_NOT_LONG: "attribute not long",
    ATTErrorCode.INSUFFICIENT_ENCRYPTION_KEY_SIZE: "insufficient encryption key size",
    ATTErrorCode.INVALID_ATTRIBUTE_VALUE_LENGTH: "invalid attribute value length",
    ATTErrorCode.UNLIKELY: "unlikely error",
    ATTErrorCode.INSUFFICIENT_ENCRYPTION: "insufficient encryption",
    ATTErrorCode.UNSUPPORTED_GROUP_TYPE: "unsupported group type",
    ATTErrorCode.INSUFFICIENT_RESOURCES: "insufficient resources",
}


class ATTError(Exception):
    """An ATT request failed with an error code."""

    def __init__(self, code: int) -> None:
        try:
            code = ATTErrorCode(code)
        except ValueError:
            pass
        self.code = code
        text = _ERROR_TEXT.get(code)  # type: ignore[call-overload]
        super().__init__(text if text is not None else f"ATT error 0x{int(code):02X}")


class InvalidArgumentError(ValueError):
    """One or more of the arguments are invalid."""

    def __init__(self, message: str = "invalid argument") -> None:
        super().__init__(message)


class InvalidResponseError(Exception):
    """One or more of the response fields are invalid."""

    def __init__(self, message: str = "invalid response") -> None:
        super().__init__(message)


class SeqProtoTimeoutError(TimeoutError):
    """A request was not acknowledged within 30 seconds."""

    def __init__(self, message: str = "req timeout") -> None:
        super().__init__(message)


_RESPONSE_OF_REQUEST = {
    Opcode.EXCHANGE_MTU_REQUEST: Opcode.EXCHANGE_MTU_RESPONSE,
    Opcode.FIND_INFORMATION_REQUEST: Opcode.FIND_INFORMATION_RESPONSE,
    Opcode.FIND_BY_TYPE_VALUE_REQUEST: Opcode.FIND_BY_TYPE_VALUE_RESPONSE,
    Opcode.READ_BY_TYPE_REQUEST: Opcode.READ_BY_TYPE_RESPONSE,
    Opcode.READ_REQUEST: Opcode.READ_RESPONSE,
    Opcode.READ_BLOB_REQUEST: Opcode.READ_BLOB_RESPONSE,
    Opcode.READ_MULTIPLE_REQUEST: Opcode.READ_MULTIPLE_RESPONSE,
    Opcode.READ_BY_GROUP_TYPE_REQUEST: Opcode.READ_BY_GROUP_TYPE_RESPONSE,
    Opcode.WRITE_REQUEST: Opcode.WRITE_RESPONSE,
    Opcode.PREPARE_WRITE_REQUEST: Opcode.PREPARE_WRITE_RESPONSE,
    Opcode.EXECUTE_WRITE_REQUEST: Opcode.EXECUTE_WRITE_RESPONSE,
    Opcode.HANDLE_VALUE_INDICATION: Opcode.HANDLE_VALUE_CONFIRMATION,
}


def response_opcode(request_opcode: int) -> Optional[Opcode]:
    """Return the opcode answering ``request_opcode``, or None if it expects no answer."""
    return _RESPONSE_OF_REQUEST.get(request_opcode)  # type: ignore[call-overload]


def error_response(op: int, handle: int, code: int) -> bytes:
    """Build an Error Response PDU for request ``op`` on attribute ``handle``."""
    return (
        bytes((Opcode.ERROR_RESPONSE, op & 0xFF))
        + (handle & 0xFFFF).to_bytes(2, "little")
        + bytes((code & 0xFF,))
    )