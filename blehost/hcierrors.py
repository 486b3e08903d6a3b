"""HCI command error codes and the exceptions that carry them."""

from __future__ import annotations

import enum
from typing import Union

__all__ = ["HCIError", "CommandError", "CommandErrorCode", "describe"]


class HCIError(Exception):
    """Base class for errors reported by the host controller interface."""


class CommandErrorCode(enum.IntEnum):
    """HCI command error codes, each with its descriptive text."""

    def __new__(cls, value: int, text: str) -> "CommandErrorCode":
        member = int.__new__(cls, value)
        member._value_ = value
        member.text = text
        return member

    UNKNOWN_COMMAND = (0x01, "Unknown HCI Command")
    CONN_ID = (0x02, "Unknown Connection Identifier")
    HARDWARE = (0x03, "Hardware Failure")
    PAGE_TIMEOUT = (0x04, "Page Timeout")
    AUTH = (0x05, "Authentication Failure")
    PIN_MISSING = (0x06, "PIN or Key Missing")
    MEMORY_CAPACITY = (0x07, "Memory Capacity Exceeded")
    CONN_TIMEOUT = (0x08, "Connection Timeout")
    CONN_LIMIT = (0x09, "Connection Limit Exceeded")
    SCO_CONN_LIMIT = (0x0A, "Synchronous Connection Limit To A Device Exceeded")
    ACL_CONN_EXISTS = (0x0B, "ACL Connection Already Exists")
    DISALLOWED = (0x0C, "Command Disallowed")
    LIMITED_RESOURCE = (0x0D, "Connection Rejected due to Limited Resources")
    SECURITY = (0x0E, "Connection Rejected Due To Security Reasons")
    BDADDR = (0x0F, "Connection Rejected due to Unacceptable BD_ADDR")
    CONN_ACCEPT_TIMEOUT = (0x10, "Connection Accept Timeout Exceeded")
    UNSUPPORTED_PARAMS = (0x11, "Unsupported Feature or Parameter Value")
    INVALID_PARAMS = (0x12, "Invalid HCI Command Parameters")
    REMOTE_USER = (0x13, "Remote User Terminated Connection")
    REMOTE_LOW_RESOURCES = (
        0x14,
        "Remote Device Terminated Connection due to Low Resources",
    )
    REMOTE_POWER_OFF = (0x15, "Remote Device Terminated Connection due to Power Off")
    LOCAL_HOST = (0x16, "Connection Terminated By Local Host")
    REPEATED_ATTEMPTS = (0x17, "Repeated Attempts")
    PAIRING_NOT_ALLOWED = (0x18, "Pairing Not Allowed")
    UNKNOWN_LMP = (0x19, "Unknown LMP PDU")
    UNSUPPORTED_LMP = (0x1A, "Unsupported Remote Feature / Unsupported LMP Feature")
    SCO_OFFSET = (0x1B, "SCO Offset Rejected")
    SCO_INTERVAL = (0x1C, "SCO Interval Rejected")
    SCO_AIR_MODE = (0x1D, "SCO Air Mode Rejected")
    INVALID_LL_PARAMS = (0x1E, "Invalid LMP Parameters / Invalid LL Parameters")
    UNSPECIFIED = (0x1F, "Unspecified Error")
    UNSUPPORTED_LL_PARAMS = (
        0x20,
        "Unsupported LMP Parameter Value / Unsupported LL Parameter Value",
    )
    ROLE_CHANGE_NOT_ALLOWED = (0x21, "Role Change Not Allowed")
    LL_RESPONSE_TIMEOUT = (0x22, "LMP Response Timeout / LL Response Timeout")
    LMP_TRANS_COLL = (0x23, "LMP Error Transaction Collision")
    LMP_PDU = (0x24, "LMP PDU Not Allowed")
    ENC_NOT_ACCEPTED = (0x25, "Encryption Mode Not Acceptable")
    LINK_KEY = (0x26, "Link Key cannot be Changed")
    QOS_NOT_SUPPORTED = (0x27, "Requested QoS Not Supported")
    INSTANT_PASSED = (0x28, "Instant Passed")
    UNIT_KEY_NOT_SUPPORTED = (0x29, "Pairing With Unit Key Not Supported")
    DIFFERENT_TRANS_COLL = (0x2A, "Different Transaction Collision")
    QOS_PARAMETER = (0x2C, "QoS Unacceptable Parameter")
    QOS_REJECT = (0x2D, "QoS Rejected")
    CHANNEL_CLASS = (0x2E, "Channel Classification Not Supported")
    INSUFFICIENT_SECURITY = (0x2F, "Insufficient Security")
    OUT_OF_RANGE = (0x30, "Parameter Out Of Mandatory Range")
    ROLE_SWITCH_PENDING = (0x32, "Role Switch Pending")
    RESERVED_SLOT = (0x34, "Reserved Slot Violation")
    ROLE_SWITCH = (0x35, "Role Switch Failed")
    EIR_TOO_LARGE = (0x36, "Extended Inquiry Response Too Large")
    SECURE_SIMPLE_PAIRING = (0x37, "Secure Simple Pairing Not Supported By Host")
    HOST_BUSY = (0x38, "Host Busy - Pairing")
    NO_CHANNEL = (0x39, "Connection Rejected due to No Suitable Channel Found")
    CONTROLLER_BUSY = (0x3A, "Controller Busy")
    CONN_PARAMS = (0x3B, "Unacceptable Connection Parameters")
    DIR_ADV_TIMEOUT = (0x3C, "Directed Advertising Timeout")
    MIC = (0x3D, "Connection Terminated due to MIC Failure")
    ESTABLISHED = (0x3E, "Connection Failed to be Established")
    MAC_CONN = (0x3F, "MAC Connection Failed")
    COARSE_CLOCK = (
        0x40,
        "Coarse Clock Adjustment Rejected but Will Try to Adjust Using Clock Dragging",
    )


# Status codes that are not errors, and codes the specification reserves.
_NON_ERROR_TEXT = {0x00: "Success", **dict.fromkeys((0x2B, 0x31, 0x33), "Reserved")}


def describe(code: int) -> str:
    """Return the text of an HCI error code.

    Codes that are not understood read as "Unspecified Error", as the
    specification requires of a host.
    """
    try:
        return CommandErrorCode(code).text
    except ValueError:
        return _NON_ERROR_TEXT.get(code, CommandErrorCode.UNSPECIFIED.text)


class CommandError(HCIError):
    """An HCI command failed with a status code."""

    def __init__(self, code: Union[int, CommandErrorCode]) -> None:
        try:
            code = CommandErrorCode(code)
        except ValueError:
            pass
        self.code = code
        super().__init__(describe(code))