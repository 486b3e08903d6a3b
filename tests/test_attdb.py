import threading

from blehost.attdb import (
    CHARACTERISTIC_UUID,
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
    PRIMARY_SERVICE_UUID,
    Database,
    new_cccd,
)
from blehost.attproto import ATTErrorCode
from blehost.profile import Characteristic, Property, Service
from blehost.uuid import uuid16


def _service(u=0x180F):
    s = Service(uuid16(u))
    c = s.new_characteristic(uuid16(0x2A19))
    c.set_value(b"\x64")
    c.new_descriptor(uuid16(0x2901)).set_value(b"level")
    return s


class FakeNotifier:
    def __init__(self):
        self.closed = threading.Event()

    def close(self):
        self.closed.set()


class FakeConn:
    def __init__(self):
        self.cccs = {}
        self.notifiers = {}
        self.indicators = {}
        self.created = []

    def new_notifier(self, value_handle, indicate):
        n = FakeNotifier()
        self.created.append((value_handle, indicate, n))
        return n


class FakeRequest:
    def __init__(self, conn, data=b""):
        self.conn = conn
        self.data = data


class FakeResponse:
    def __init__(self):
        self.status = ATTErrorCode.SUCCESS
        self.buf = bytearray()

    def write(self, b):
        self.buf += b
        return len(b)


def test_handles_are_contiguous_from_base():
    db = Database([_service(), _service(0x180A)], 7)
    assert [a.handle for a in db] == list(range(7, 7 + len(db)))


def test_single_service_declaration_spans_to_end():
    s = _service()
    db = Database([s], 1)
    decl = db.at(1)
    assert decl.type == PRIMARY_SERVICE_UUID
    assert decl.value == s.uuid
    assert decl.end_handle == 0xFFFF


def test_service_end_handles_chain():
    db = Database([_service(), _service(0x180A)], 1)
    decls = [a for a in db if a.type == PRIMARY_SERVICE_UUID]
    assert len(decls) == 2
    assert decls[0].end_handle == decls[1].handle - 1
    assert decls[1].end_handle == 0xFFFF


def test_characteristic_declaration_layout():
    s = _service()
    db = Database([s], 1)
    c = s.characteristics[0]
    decl = db.at(c.handle)
    assert decl.type == CHARACTERISTIC_UUID
    assert decl.value[0] == c.property
    assert int.from_bytes(decl.value[1:3], "little") == c.value_handle
    assert decl.value[3:] == c.uuid
    assert c.value_handle == c.handle + 1
    value = db.at(c.value_handle)
    assert value.type == c.uuid
    assert value.value == b"\x64"
    desc = db.at(c.value_handle + 1)
    assert desc.value == b"level"
    assert decl.end_handle == desc.handle


def test_at_out_of_range():
    db = Database([_service()], 5)
    assert db.at(4) is None
    assert db.at(5 + len(db)) is None
    assert db.at(5) is list(db)[0]


def test_subrange_clamps():
    db = Database([_service()], 1)
    attrs = list(db)
    assert db.subrange(0, 0xFFFF) == attrs
    assert db.subrange(2, 3) == [db.at(2), db.at(3)]
    assert db.subrange(len(db) + 1, 0xFFFF) == []
    assert db.subrange(3, 2) == []


def test_subrange_below_base_is_empty():
    db = Database([_service()], 5)
    assert db.subrange(1, 4) == []
    assert db.subrange(1, 5) == [db.at(5)]


def test_empty_database():
    db = Database([], 1)
    assert len(db) == 0
    assert db.at(1) is None


def test_notify_adds_single_cccd_across_rebuilds():
    s = Service(uuid16(0x180D))
    c = s.new_characteristic(uuid16(0x2A37))
    c.handle_notify(lambda req, n: None)
    Database([s])
    db = Database([s])
    cccds = [d for d in c.descriptors if d.uuid == CLIENT_CHARACTERISTIC_CONFIG_UUID]
    assert cccds == [c.cccd]
    assert db.at(c.value_handle + 1).type == CLIENT_CHARACTERISTIC_CONFIG_UUID


def test_new_cccd_is_readable_and_writable():
    d = new_cccd(Characteristic(uuid16(0x2A37)))
    assert d.uuid == CLIENT_CHARACTERISTIC_CONFIG_UUID
    assert d.property & Property.READ
    assert d.property & Property.WRITE


def _notify_char(handler):
    s = Service(uuid16(0x180D))
    c = s.new_characteristic(uuid16(0x2A37))
    c.handle_notify(handler)
    Database([s])
    return c


def test_cccd_enable_and_disable_notifications():
    started = threading.Event()
    c = _notify_char(lambda req, n: started.set())
    conn = FakeConn()

    rsp = FakeResponse()
    c.cccd.write_handler(FakeRequest(conn, b"\x01\x00"), rsp)
    assert rsp.status == ATTErrorCode.SUCCESS
    assert started.wait(2)
    assert conn.cccs[c.handle] == 1
    assert [(h, ind) for h, ind, _ in conn.created] == [(c.value_handle, False)]

    read_rsp = FakeResponse()
    c.cccd.read_handler(FakeRequest(conn), read_rsp)
    assert bytes(read_rsp.buf) == b"\x01\x00"

    c.cccd.write_handler(FakeRequest(conn, b"\x00\x00"), FakeResponse())
    notifier = conn.created[0][2]
    assert notifier.closed.is_set()
    assert conn.cccs[c.handle] == 0
    assert c.handle not in conn.notifiers


def test_cccd_indicate_not_supported():
    c = _notify_char(lambda req, n: None)
    conn = FakeConn()
    rsp = FakeResponse()
    c.cccd.write_handler(FakeRequest(conn, b"\x02\x00"), rsp)
    assert rsp.status == ATTErrorCode.UNLIKELY
    assert c.handle not in conn.cccs
    assert conn.created == []


def test_cccd_short_write_rejected():
    c = _notify_char(lambda req, n: None)
    conn = FakeConn()
    rsp = FakeResponse()
    c.cccd.write_handler(FakeRequest(conn, b"\x01"), rsp)
    assert rsp.status == ATTErrorCode.INVALID_ATTRIBUTE_VALUE_LENGTH
    assert conn.cccs == {}


def test_cccd_read_default_zero():
    c = _notify_char(lambda req, n: None)
    rsp = FakeResponse()
    c.cccd.read_handler(FakeRequest(FakeConn()), rsp)
    assert bytes(rsp.buf) == b"\x00\x00"