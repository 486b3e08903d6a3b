import queue
import threading

import pytest

from blehost import attserver
from blehost.attdb import CLIENT_CHARACTERISTIC_CONFIG_UUID
from blehost.attproto import DEFAULT_MTU, ATTError, ATTErrorCode, InvalidArgumentError, Opcode
from blehost.gattclient import Client
from blehost.gattserver import DEVICE_NAME_UUID, GAP_UUID, GATT_UUID, SERVICE_CHANGED_UUID, Server
from blehost.profile import Characteristic, Service
from blehost.uuid import uuid16

CUSTOM_SVC = uuid16(0xFFF0)
LONG_CHAR = uuid16(0xFFF1)
WRITE_CHAR = uuid16(0xFFF2)
NOTIFY_CHAR = uuid16(0xFFF3)
LONG_VALUE = bytes(range(50))


class _ServerEnd:
    def __init__(self, link):
        self.link = link
        self.rx_mtu = DEFAULT_MTU
        self.tx_mtu = DEFAULT_MTU

    def write(self, b):
        self.link.inbox.put(bytes(b))
        return len(b)


class Loopback:
    """Client-side connection wired straight to an ATT server."""

    def __init__(self, db):
        self.rx_mtu = DEFAULT_MTU
        self.tx_mtu = DEFAULT_MTU
        self.inbox = queue.Queue()
        self.sent = []
        self.server = attserver.Server(db, _ServerEnd(self))

    def write(self, b):
        b = bytes(b)
        self.sent.append(b)
        if b[0] == Opcode.HANDLE_VALUE_CONFIRMATION:
            return len(b)
        rsp = self.server.handle_request(b)
        if rsp:
            self.inbox.put(rsp)
        return len(b)

    def read(self):
        return self.inbox.get()

    def close(self):
        self.inbox.put(b"")


class Env:
    pass


@pytest.fixture
def env():
    e = Env()
    e.written = []
    e.server_closed = threading.Event()

    def on_write(req, rsp):
        e.written.append(bytes(req.data))

    def on_notify(req, notifier):
        notifier.write(b"ping")
        if notifier.closed.wait(5):
            e.server_closed.set()

    srv = Server("tester")
    svc = Service(CUSTOM_SVC)
    svc.new_characteristic(LONG_CHAR).set_value(LONG_VALUE)
    svc.new_characteristic(WRITE_CHAR).handle_write(on_write)
    svc.new_characteristic(NOTIFY_CHAR).handle_notify(on_notify)
    srv.add_service(svc)
    e.link = Loopback(srv.db)
    e.client = Client(e.link)
    yield e
    e.client.cancel_connection()


def _char(profile, u):
    return next(c for s in profile.services for c in s.characteristics if c.uuid == u)


def test_discover_profile_services(env):
    profile = env.client.discover_profile(False)
    assert [s.uuid for s in profile.services] == [GAP_UUID, GATT_UUID, CUSTOM_SVC]
    assert profile.services[-1].end_handle == 0xFFFF


def test_discover_profile_is_cached(env):
    first = env.client.discover_profile(False)
    assert env.client.discover_profile(False) is first
    assert env.client.profile is first


def test_characteristic_handles_are_nested(env):
    profile = env.client.discover_profile(False)
    for s in profile.services:
        chars = s.characteristics
        for c in chars:
            assert s.handle < c.handle < c.value_handle <= c.end_handle <= s.end_handle
        for prev, nxt in zip(chars, chars[1:]):
            assert prev.end_handle == nxt.handle - 1
        assert chars[-1].end_handle == s.end_handle


def test_gap_has_five_characteristics(env):
    profile = env.client.discover_profile(False)
    assert len(profile.services[0].characteristics) == 5


def test_cccd_discovered(env):
    profile = env.client.discover_profile(False)
    c = _char(profile, SERVICE_CHANGED_UUID)
    assert c.cccd is not None
    assert c.cccd.uuid == CLIENT_CHARACTERISTIC_CONFIG_UUID
    assert c.cccd.handle == c.value_handle + 1


def test_discover_services_with_filter(env):
    services = env.client.discover_services([CUSTOM_SVC])
    assert [s.uuid for s in services] == [CUSTOM_SVC]


def test_discover_included_services_is_empty(env):
    services = env.client.discover_services(None)
    assert env.client.discover_included_services(None, services[0]) == []


def test_read_device_name(env):
    c = _char(env.client.discover_profile(False), DEVICE_NAME_UUID)
    assert env.client.read_characteristic(c) == b"tester"
    assert c.value == b"tester"


def test_read_long_characteristic(env):
    c = _char(env.client.discover_profile(False), LONG_CHAR)
    assert env.client.read_long_characteristic(c) == LONG_VALUE
    assert c.value == LONG_VALUE


def test_read_short_read_is_truncated_to_mtu(env):
    c = _char(env.client.discover_profile(False), LONG_CHAR)
    assert env.client.read_characteristic(c) == LONG_VALUE[: DEFAULT_MTU - 1]


def test_read_not_permitted(env):
    c = _char(env.client.discover_profile(False), WRITE_CHAR)
    with pytest.raises(ATTError) as info:
        env.client.read_characteristic(c)
    assert info.value.code == ATTErrorCode.READ_NOT_PERMITTED


@pytest.mark.parametrize("no_rsp", [False, True])
def test_write_characteristic(env, no_rsp):
    c = _char(env.client.discover_profile(False), WRITE_CHAR)
    env.client.write_characteristic(c, b"abc", no_rsp)
    assert env.written == [b"abc"]


def test_read_and_write_descriptor(env):
    c = _char(env.client.discover_profile(False), SERVICE_CHANGED_UUID)
    assert env.client.read_descriptor(c.cccd) == b"\x00\x00"
    assert c.cccd.value == b"\x00\x00"


def test_subscribe_receives_notifications(env):
    c = _char(env.client.discover_profile(False), NOTIFY_CHAR)
    got = []
    arrived = threading.Event()

    def handler(data):
        got.append(data)
        arrived.set()

    env.client.subscribe(c, False, handler)
    assert env.client.read_descriptor(c.cccd) == b"\x01\x00"
    assert arrived.wait(5)
    assert got == [b"ping"]


def test_subscribe_twice_writes_once(env):
    c = _char(env.client.discover_profile(False), NOTIFY_CHAR)
    env.client.subscribe(c, False, lambda data: None)
    count = len(env.link.sent)
    env.client.subscribe(c, False, lambda data: None)
    assert len(env.link.sent) == count


def test_unsubscribe_closes_server_notifier(env):
    c = _char(env.client.discover_profile(False), NOTIFY_CHAR)
    env.client.subscribe(c, False, lambda data: None)
    env.client.unsubscribe(c, False)
    assert env.server_closed.wait(5)


def test_clear_subscriptions(env):
    c = _char(env.client.discover_profile(False), NOTIFY_CHAR)
    env.client.subscribe(c, False, lambda data: None)
    env.client.clear_subscriptions()
    assert env.server_closed.wait(5)
    assert env.client.read_descriptor(c.cccd) == b"\x00\x00"


def test_subscribe_without_cccd():
    link = Loopback(Server("tester").db)
    client = Client(link)
    try:
        with pytest.raises(LookupError):
            client.subscribe(Characteristic(uuid16(0xFFF9)), False, lambda data: None)
    finally:
        client.cancel_connection()


def test_handle_notification_routes_by_kind(env):
    c = _char(env.client.discover_profile(False), NOTIFY_CHAR)
    got = []
    env.client.subscribe(c, False, got.append)
    vh = c.value_handle.to_bytes(2, "little")
    env.client.handle_notification(bytes((Opcode.HANDLE_VALUE_NOTIFICATION,)) + vh + b"xy")
    env.client.handle_notification(bytes((Opcode.HANDLE_VALUE_INDICATION,)) + vh + b"zz")
    assert b"xy" in got
    assert b"zz" not in got


def test_exchange_mtu(env):
    assert env.client.exchange_mtu(100) == DEFAULT_MTU
    assert env.link.rx_mtu == 100


def test_exchange_mtu_invalid(env):
    with pytest.raises(InvalidArgumentError):
        env.client.exchange_mtu(10)