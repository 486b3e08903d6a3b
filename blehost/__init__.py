"""Bluetooth Low Energy host building blocks: UUIDs, GATT profiles, advertising packets, HCI events and ATT/GATT."""

__version__ = "0.1.0"