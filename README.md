# blehost

Building blocks for the host side of a Bluetooth Low Energy stack, in plain Python with no
third-party dependencies.

## Modules

- `blehost.uuid`: BLE UUIDs (`UUID`, `uuid16`, `parse`, `contains`, `reverse`) and `name()` for
  well-known services, characteristics and descriptors.
- `blehost.profile`: the GATT profile model: `Service`, `Characteristic`, `Descriptor`, `Profile`
  and the `Property` flags.
- `blehost.advpacket`: building advertising and scan-response packets from fields (`flags`,
  `complete_name`, `short_name`, `manufacturer_data`, `all_uuid`, `some_uuid`, `service_data16`,
  `ibeacon`, `ibeacon_data`, `raw`) and parsing them with `Packet`. A field that does not fit in
  31 bytes raises `NotFitError`.
- `blehost.events`: views over HCI event parameters: `CommandComplete`,
  `NumberOfCompletedPackets`, `LEAdvertisingReport`.
- `blehost.advertisement`: `Advertisement`, one report of an advertising event with its scan
  response merged in, and `Address`.
- `blehost.bufpool`: `Pool` and `PoolClient`, a flow-controlled pool of transmit buffers shared
  between connections.
- `blehost.hcierrors`: `CommandErrorCode`, `CommandError` and `describe()` for HCI status codes.
- `blehost.attproto`: ATT opcodes, error codes, `ATTError` and the other protocol exceptions,
  and `error_response()`.
- `blehost.attdb`: `Database`, the attribute table built from services, with Client
  Characteristic Configuration descriptors added for characteristics that notify or indicate.
- `blehost.attserver`: `Server`, an ATT server for one connection, with `Request`,
  `ResponseWriter` and `Notifier` for attribute handlers.
- `blehost.attclient`: `Client`, an ATT client for one connection.
- `blehost.gattserver`: `Server`, holding the default GAP and GATT services plus your own,
  and the attribute table built from them.
- `blehost.gattclient`: `Client`, which discovers a server's profile and reads, writes and
  subscribes to characteristics. It starts receiving on a background thread when created.

## Install

```
pip install .
```

## Examples

Parse a UUID and look up its name:

```python
from blehost.uuid import parse, name

u = parse("180d")
print(name(u))  # Heart Rate
```

Build an advertising packet and read it back:

```python
from blehost.advpacket import new_packet, flags, complete_name

p = new_packet(flags(0x06), complete_name("sensor"))
print(p.local_name())  # sensor
```

Describe a GATT service and offer it:

```python
from blehost.gattserver import Server
from blehost.profile import Service
from blehost.uuid import uuid16

svc = Service(uuid16(0x180F))
level = svc.new_characteristic(uuid16(0x2A19))
level.set_value(b"\x64")

gatt = Server("sensor")
gatt.add_service(svc)
```

Answer an ATT request from the attribute table. Handle 3 is the value of the Device Name
characteristic:

```python
from types import SimpleNamespace

from blehost.attserver import Server as ATTServer

conn = SimpleNamespace(rx_mtu=23, tx_mtu=23)
att = ATTServer(gatt.db, conn)
print(att.handle_request(b"\x0a\x03\x00"))  # b'\x0bsensor'
```

## Connections

The ATT server and client, and the GATT client on top of them, work over a connection object
you supply. It must have `rx_mtu` and `tx_mtu` attributes, `read()` returning one ATT PDU as
bytes (empty once the link is closed), `write(bytes)`, and `close()`. `ATTServer.loop()` and
`attclient.Client.loop()` read from it until it closes.

## What it does not do

The package does not open a Bluetooth adapter or talk to a controller. It has no HCI
transport, no L2CAP layer, and no commands to advertise, scan or connect; it offers no
command-line program. Packets, events and PDUs are built and parsed here, and moving them to
and from a radio is left to you.

## Tests

```
pip install .[test]
pytest
```