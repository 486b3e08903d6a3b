import pytest

from blehost.profile import Characteristic, Descriptor, Profile, Property, Service
from blehost.uuid import uuid16


def _handler(*args):
    return args


@pytest.fixture
def profile():
    svc = Service(uuid16(0x180F))
    char = svc.new_characteristic(uuid16(0x2A19))
    char.new_descriptor(uuid16(0x2901))
    other = Service(uuid16(0x1800))
    other.new_characteristic(uuid16(0x2A00))
    return Profile([other, svc])


def test_property_bits_set_by_handlers_match_spec():
    readable = Characteristic(uuid16(0x2A19))
    readable.set_value(b"\x01")
    assert int(readable.property) == 0x02
    notifying = Characteristic(uuid16(0x2A37))
    notifying.handle_notify(_handler)
    assert int(notifying.property) == 0x10
    indicating = Characteristic(uuid16(0x2A05))
    indicating.handle_indicate(_handler)
    assert int(indicating.property) == 0x20


def test_find_service(profile):
    found = profile.find(Service(uuid16(0x180F)))
    assert found is profile.services[1]


def test_find_characteristic(profile):
    found = profile.find(Characteristic(uuid16(0x2A19)))
    assert found is profile.services[1].characteristics[0]


def test_find_descriptor(profile):
    found = profile.find(Descriptor(uuid16(0x2901)))
    assert found is profile.services[1].characteristics[0].descriptors[0]


def test_find_missing_and_unknown_type(profile):
    assert profile.find(Service(uuid16(0x1812))) is None
    assert profile.find_characteristic(Characteristic(uuid16(0x2A37))) is None
    assert profile.find("not a target") is None


def test_duplicate_characteristic_rejected():
    svc = Service(uuid16(0x180F))
    svc.new_characteristic(uuid16(0x2A19))
    with pytest.raises(ValueError, match="2a19"):
        svc.new_characteristic(uuid16(0x2A19))
    assert len(svc.characteristics) == 1


def test_duplicate_descriptor_rejected():
    char = Characteristic(uuid16(0x2A19))
    char.new_descriptor(uuid16(0x2901))
    with pytest.raises(ValueError):
        char.add_descriptor(Descriptor(uuid16(0x2901)))
    assert len(char.descriptors) == 1


def test_characteristic_set_value_copies_and_sets_read():
    char = Characteristic(uuid16(0x2A19))
    data = bytearray(b"\x64")
    char.set_value(data)
    data[0] = 0
    assert char.value == b"\x64"
    assert char.property == Property.READ


def test_characteristic_value_and_read_handler_conflict():
    char = Characteristic(uuid16(0x2A19))
    char.set_value(b"")
    with pytest.raises(RuntimeError):
        char.handle_read(_handler)
    other = Characteristic(uuid16(0x2A19))
    other.handle_read(_handler)
    with pytest.raises(RuntimeError):
        other.set_value(b"\x01")


def test_characteristic_handlers_set_properties():
    char = Characteristic(uuid16(0x2A37))
    char.handle_write(_handler)
    char.handle_notify(_handler)
    char.handle_indicate(_handler)
    assert char.property == (
        Property.WRITE | Property.WRITE_NR | Property.NOTIFY | Property.INDICATE
    )
    assert char.write_handler is _handler
    assert char.notify_handler is _handler
    assert char.indicate_handler is _handler


def test_descriptor_value_and_handlers():
    desc = Descriptor(uuid16(0x2901))
    desc.set_value(b"level")
    assert desc.value == b"level"
    assert Property.READ in desc.property
    with pytest.raises(RuntimeError):
        desc.handle_read(_handler)
    desc.handle_write(_handler)
    assert desc.property == Property.READ | Property.WRITE | Property.WRITE_NR


def test_descriptor_read_handler_blocks_value():
    desc = Descriptor(uuid16(0x2901))
    desc.handle_read(_handler)
    assert desc.read_handler is _handler
    with pytest.raises(RuntimeError):
        desc.set_value(b"x")