"""Bluetooth Low Energy UUIDs, stored little-endian as on the wire."""

from __future__ import annotations

import re
from typing import Iterable, NamedTuple, Optional

__all__ = ["UUID", "uuid16", "parse", "contains", "reverse", "name"]

_HEX = re.compile(r"[0-9a-fA-F]*")


class UUID(bytes):
    """A BLE UUID: 2 or 16 bytes in little-endian order.

    Equality and hashing are those of the underlying bytes. ``str()``
    gives the conventional big-endian lowercase hex form.
    """

    def __str__(self) -> str:
        return reverse(self).hex()

    def __repr__(self) -> str:
        return f"UUID('{self}')"


def uuid16(i: int) -> UUID:
    """Return the 16-bit UUID for ``i`` (such as 0x1800)."""
    return UUID((i & 0xFFFF).to_bytes(2, "little"))


def _check_length(n: int) -> None:
    if n not in (2, 16):
        raise ValueError(f"UUIDs must have length 2 or 16, got {n}")


def parse(s: str) -> UUID:
    """Parse a string such as "1800" or "34DA3AD1-7110-41A1-B1EF-4430F509CDE7".

    Raises ValueError if the text is not hex or has the wrong length.
    """
    s = s.replace("-", "")
    if not _HEX.fullmatch(s):
        raise ValueError(f"invalid hex in UUID string {s!r}")
    if len(s) % 2:
        raise ValueError(f"odd length hex in UUID string {s!r}")
    b = bytes.fromhex(s)
    _check_length(len(b))
    return UUID(reverse(b))


def contains(s: Optional[Iterable[bytes]], u: bytes) -> bool:
    """Report whether ``u`` is in ``s``; a missing list (None) matches everything."""
    if s is None:
        return True
    return any(a == u for a in s)


def reverse(u: bytes) -> bytes:
    """Return a reversed copy of ``u``."""
    return bytes(u[::-1])


def name(u: bytes) -> str:
    """Return the name of a known service, characteristic or descriptor, or ""."""
    known = _KNOWN_UUIDS.get(str(UUID(u)))
    return known.name if known else ""


class _Known(NamedTuple):
    name: str
    type: str


_KNOWN_UUIDS = {
    # Services
    "1800": _Known("Generic Access", "org.bluetooth.service.generic_access"),
    "1801": _Known("Generic Attribute", "org.bluetooth.service.generic_attribute"),
    "1802": _Known("Immediate Alert", "org.bluetooth.service.immediate_alert"),
    "1803": _Known("Link Loss", "org.bluetooth.service.link_loss"),
    "1804": _Known("Tx Power", "org.bluetooth.service.tx_power"),
    "1805": _Known("Current Time Service", "org.bluetooth.service.current_time"),
    "1806": _Known("Reference Time Update Service", "org.bluetooth.service.reference_time_update"),
    "1807": _Known("Next DST Change Service", "org.bluetooth.service.next_dst_change"),
    "1808": _Known("Glucose", "org.bluetooth.service.glucose"),
    "1809": _Known("Health Thermometer", "org.bluetooth.service.health_thermometer"),
    "180a": _Known("Device Information", "org.bluetooth.service.device_information"),
    "180d": _Known("Heart Rate", "org.bluetooth.service.heart_rate"),
    "180e": _Known("Phone Alert Status Service", "org.bluetooth.service.phone_alert_service"),
    "180f": _Known("Battery Service", "org.bluetooth.service.battery_service"),
    "1810": _Known("Blood Pressure", "org.bluetooth.service.blood_pressuer"),
    "1811": _Known("Alert Notification Service", "org.bluetooth.service.alert_notification"),
    "1812": _Known("Human Interface Device", "org.bluetooth.service.human_interface_device"),
    "1813": _Known("Scan Parameters", "org.bluetooth.service.scan_parameters"),
    "1814": _Known("Running Speed and Cadence", "org.bluetooth.service.running_speed_and_cadence"),
    "1815": _Known("Cycling Speed and Cadence", "org.bluetooth.service.cycling_speed_and_cadence"),
    # Attribute types
    "2800": _Known("Primary Service", "org.bluetooth.attribute.gatt.primary_service_declaration"),
    "2801": _Known("Secondary Service", "org.bluetooth.attribute.gatt.secondary_service_declaration"),
    "2802": _Known("Include", "org.bluetooth.attribute.gatt.include_declaration"),
    "2803": _Known("Characteristic", "org.bluetooth.attribute.gatt.characteristic_declaration"),
    # Descriptors
    "2900": _Known("Characteristic Extended Properties", "org.bluetooth.descriptor.gatt.characteristic_extended_properties"),
    "2901": _Known("Characteristic User Description", "org.bluetooth.descriptor.gatt.characteristic_user_description"),
    "2902": _Known("Client Characteristic Configuration", "org.bluetooth.descriptor.gatt.client_characteristic_configuration"),
    "2903": _Known("Server Characteristic Configuration", "org.bluetooth.descriptor.gatt.server_characteristic_configuration"),
    "2904": _Known("Characteristic Presentation Format", "org.bluetooth.descriptor.gatt.characteristic_presentation_format"),
    "2905": _Known("Characteristic Aggregate Format", "org.bluetooth.descriptor.gatt.characteristic_aggregate_format"),
    "2906": _Known("Valid Range", "org.bluetooth.descriptor.valid_range"),
    "2907": _Known("External Report Reference", "org.bluetooth.descriptor.external_report_reference"),
    "2908": _Known("Report Reference", "org.bluetooth.descriptor.report_reference"),
    # Characteristics
    "2a00": _Known("Device Name", "org.bluetooth.characteristic.ble.device_name"),
    "2a01": _Known("Appearance", "org.bluetooth.characteristic.ble.appearance"),
    "2a02": _Known("Peripheral Privacy Flag", "org.bluetooth.characteristic.ble.peripheral_privacy_flag"),
    "2a03": _Known("Reconnection Address", "org.bluetooth.characteristic.ble.reconnection_address"),
    "2a04": _Known("Peripheral Preferred Connection Parameters", "org.bluetooth.characteristic.ble.peripheral_preferred_connection_parameters"),
    "2a05": _Known("Service Changed", "org.bluetooth.characteristic.gatt.service_changed"),
    "2a06": _Known("Alert Level", "org.bluetooth.characteristic.alert_level"),
    "2a07": _Known("Tx Power Level", "org.bluetooth.characteristic.tx_power_level"),
    "2a08": _Known("Date Time", "org.bluetooth.characteristic.date_time"),
    "2a09": _Known("Day of Week", "org.bluetooth.characteristic.day_of_week"),
    "2a0a": _Known("Day Date Time", "org.bluetooth.characteristic.day_date_time"),
    "2a0c": _Known("Exact Time 256", "org.bluetooth.characteristic.exact_time_256"),
    "2a0d": _Known("DST Offset", "org.bluetooth.characteristic.dst_offset"),
    "2a0e": _Known("Time Zone", "org.bluetooth.characteristic.time_zone"),
    "2a0f": _Known("Local Time Information", "org.bluetooth.characteristic.local_time_information"),
    "2a11": _Known("Time with DST", "org.bluetooth.characteristic.time_with_dst"),
    "2a12": _Known("Time Accuracy", "org.bluetooth.characteristic.time_accuracy"),
    "2a13": _Known("Time Source", "org.bluetooth.characteristic.time_source"),
    "2a14": _Known("Reference Time Information", "org.bluetooth.characteristic.reference_time_information"),
    "2a16": _Known("Time Update Control Point", "org.bluetooth.characteristic.time_update_control_point"),
    "2a17": _Known("Time Update State", "org.bluetooth.characteristic.time_update_state"),
    "2a18": _Known("Glucose Measurement", "org.bluetooth.characteristic.glucose_measurement"),
    "2a19": _Known("Battery Level", "org.bluetooth.characteristic.battery_level"),
    "2a1c": _Known("Temperature Measurement", "org.bluetooth.characteristic.temperature_measurement"),
    "2a1d": _Known("Temperature Type", "org.bluetooth.characteristic.temperature_type"),
    "2a1e": _Known("Intermediate Temperature", "org.bluetooth.characteristic.intermediate_temperature"),
    "2a21": _Known("Measurement Interval", "org.bluetooth.characteristic.measurement_interval"),
    "2a22": _Known("Boot Keyboard Input Report", "org.bluetooth.characteristic.boot_keyboard_input_report"),
    "2a23": _Known("System ID", "org.bluetooth.characteristic.system_id"),
    "2a24": _Known("Model Number String", "org.bluetooth.characteristic.model_number_string"),
    "2a25": _Known("Serial Number String", "org.bluetooth.characteristic.serial_number_string"),
    "2a26": _Known("Firmware Revision String", "org.bluetooth.characteristic.firmware_revision_string"),
    "2a27": _Known("Hardware Revision String", "org.bluetooth.characteristic.hardware_revision_string"),
    "2a28": _Known("Software Revision String", "org.bluetooth.characteristic.software_revision_string"),
    "2a29": _Known("Manufacturer Name String", "org.bluetooth.characteristic.manufacturer_name_string"),
    "2a2a": _Known("IEEE 11073-20601 Regulatory Certification Data List", "org.bluetooth.characteristic.ieee_11073-20601_regulatory_certification_data_list"),
    "2a2b": _Known("Current Time", "org.bluetooth.characteristic.current_time"),
    "2a31": _Known("Scan Refresh", "org.bluetooth.characteristic.scan_refresh"),
    "2a32": _Known("Boot Keyboard Output Report", "org.bluetooth.characteristic.boot_keyboard_output_report"),
    "2a33": _Known("Boot Mouse Input Report", "org.bluetooth.characteristic.boot_mouse_input_report"),
    "2a34": _Known("Glucose Measurement Context", "org.bluetooth.characteristic.glucose_measurement_context"),
    "2a35": _Known("Blood Pressure Measurement", "org.bluetooth.characteristic.blood_pressure_measurement"),
    "2a36": _Known("Intermediate Cuff Pressure", "org.bluetooth.characteristic.intermediate_blood_pressure"),
    "2a37": _Known("Heart Rate Measurement", "org.bluetooth.characteristic.heart_rate_measurement"),
    "2a38": _Known("Body Sensor Location", "org.bluetooth.characteristic.body_sensor_location"),
    "2a39": _Known("Heart Rate Control Point", "org.bluetooth.characteristic.heart_rate_control_point"),
    "2a3f": _Known("Alert Status", "org.bluetooth.characteristic.alert_status"),
    "2a40": _Known("Ringer Control Point", "org.bluetooth.characteristic.ringer_control_point"),
    "2a41": _Known("Ringer Setting", "org.bluetooth.characteristic.ringer_setting"),
    "2a42": _Known("Alert Category ID Bit Mask", "org.bluetooth.characteristic.alert_category_id_bit_mask"),
    "2a43": _Known("Alert Category ID", "org.bluetooth.characteristic.alert_category_id"),
    "2a44": _Known("Alert Notification Control Point", "org.bluetooth.characteristic.alert_notification_control_point"),
    "2a45": _Known("Unread Alert Status", "org.bluetooth.characteristic.unread_alert_status"),
    "2a46": _Known("New Alert", "org.bluetooth.characteristic.new_alert"),
    "2a47": _Known("Supported New Alert Category", "org.bluetooth.characteristic.supported_new_alert_category"),
    "2a48": _Known("Supported Unread Alert Category", "org.bluetooth.characteristic.supported_unread_alert_category"),
    "2a49": _Known("Blood Pressure Feature", "org.bluetooth.characteristic.blood_pressure_feature"),
    "2a4a": _Known("HID Information", "org.bluetooth.characteristic.hid_information"),
    "2a4b": _Known("Report Map", "org.bluetooth.characteristic.report_map"),
    "2a4c": _Known("HID Control Point", "org.bluetooth.characteristic.hid_control_point"),
    "2a4d": _Known("Report", "org.bluetooth.characteristic.report"),
    "2a4e": _Known("Protocol Mode", "org.bluetooth.characteristic.protocol_mode"),
    "2a4f": _Known("Scan Interval Window", "org.bluetooth.characteristic.scan_interval_window"),
    "2a50": _Known("PnP ID", "org.bluetooth.characteristic.pnp_id"),
    "2a51": _Known("Glucose Feature", "org.bluetooth.characteristic.glucose_feature"),
    "2a52": _Known("Record Access Control Point", "org.bluetooth.characteristic.record_access_control_point"),
    "2a53": _Known("RSC Measurement", "org.bluetooth.characteristic.rsc_measurement"),
    "2a54": _Known("RSC Feature", "org.bluetooth.characteristic.rsc_feature"),
    "2a55": _Known("SC Control Point", "org.bluetooth.characteristic.sc_control_point"),
    "2a5b": _Known("CSC Measurement", "org.bluetooth.characteristic.csc_measurement"),
    "2a5c": _Known("CSC Feature", "org.bluetooth.characteristic.csc_feature"),
    "2a5d": _Known("Sensor Location", "org.bluetooth.characteristic.sensor_location"),
}