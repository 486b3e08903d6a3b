"""A GATT server: the services it offers and their attribute table."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, List, Optional

from blehost.attdb import Database
from blehost.profile import Service
from blehost.uuid import uuid16

__all__ = [
    "GAP_UUID",
    "GATT_UUID",
    "DEVICE_NAME_UUID",
    "APPEARANCE_UUID",
    "PERIPHERAL_PRIVACY_UUID",
    "RECONNECTION_ADDR_UUID",
    "PREFERRED_PARAMS_UUID",
    "SERVICE_CHANGED_UUID",
    "DEFAULT_NAME",
    "Server",
    "default_services",
]

logger = logging.getLogger(__name__)

GAP_UUID = uuid16(0x1800)
GATT_UUID = uuid16(0x1801)
DEVICE_NAME_UUID = uuid16(0x2A00)
APPEARANCE_UUID = uuid16(0x2A01)
PERIPHERAL_PRIVACY_UUID = uuid16(0x2A02)
RECONNECTION_ADDR_UUID = uuid16(0x2A03)
PREFERRED_PARAMS_UUID = uuid16(0x2A04)
SERVICE_CHANGED_UUID = uuid16(0x2A05)

DEFAULT_NAME = "Gopher"

_APPEARANCE_GENERIC_COMPUTER = bytes((0x00, 0x80))

NotifyHandler = Callable[[Any, Any], Any]


def _default_indication_handler(req: Any, notifier: Any) -> None:
    logger.info("service changed indications are not sent")
    notifier.closed.wait()
    logger.info("service changed indication unsubscribed")


def default_services(name: str, handler: Optional[NotifyHandler] = None) -> List[Service]:
    """Return the mandatory GAP and GATT services for a device called ``name``.

    ``handler`` serves Service Changed indications; a handler that only
    waits for unsubscription is used when it is None.
    """
    gap = Service(GAP_UUID)
    gap.new_characteristic(DEVICE_NAME_UUID).set_value(name.encode("utf-8"))
    gap.new_characteristic(APPEARANCE_UUID).set_value(_APPEARANCE_GENERIC_COMPUTER)
    gap.new_characteristic(PERIPHERAL_PRIVACY_UUID).set_value(bytes(1))
    gap.new_characteristic(RECONNECTION_ADDR_UUID).set_value(bytes(6))
    gap.new_characteristic(PREFERRED_PARAMS_UUID).set_value(
        bytes((0x06, 0x00, 0x06, 0x00, 0x00, 0x00, 0xD0, 0x07))
    )

    gatt = Service(GATT_UUID)
    gatt.new_characteristic(SERVICE_CHANGED_UUID).handle_indicate(
        handler if handler is not None else _default_indication_handler
    )
    return [gap, gatt]


class Server:
    """Holds the services of a GATT server and the attribute table built from them.

    ``lock`` guards ``services`` and ``db``; hold it while reading ``db``
    from another thread.
    """

    def __init__(
        self, name: str = DEFAULT_NAME, notify_handler: Optional[NotifyHandler] = None
    ) -> None:
        self.name = name
        self.lock = threading.Lock()
        self._handler = notify_handler
        self.services: List[Service] = default_services(name, notify_handler)
        self.db = Database(self.services, 1)

    def _rebuild(self) -> None:
        self.db = Database(self.services, 1)

    def add_service(self, svc: Service) -> None:
        """Add ``svc`` after the services already offered."""
        with self.lock:
            self.services.append(svc)
            self._rebuild()

    def remove_all_services(self) -> None:
        """Keep only the default GAP and GATT services."""
        with self.lock:
            self.services = default_services(self.name, self._handler)
            self._rebuild()

    def set_services(self, svcs: Iterable[Service]) -> None:
        """Replace every added service by ``svcs``."""
        with self.lock:
            self.services = default_services(self.name, self._handler) + list(svcs)
            self._rebuild()