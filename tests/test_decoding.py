"""Tests de normalización de MACs y decodificación de tramas crudas.

Ejecutar:
    pytest tests/test_decoding.py -v
"""

import pytest

from beacon_bridge.decoding import decode_raw_reading, parse_battery, parse_temperature
from beacon_bridge.domain import Reading, canonicalize_device_id


# =============================================================================
# CANONICALIZACIÓN DE IDENTIFICADORES
# =============================================================================

class TestCanonicalizeDeviceId:
    """Misma MAC en distintos formatos → misma clave."""

    @pytest.mark.parametrize(
        "raw",
        [
            "AA:BB:CC:DD:EE:FF",
            "aa:bb:cc:dd:ee:ff",
            "AA-BB-CC-DD-EE-FF",
            "aabb.ccdd.eeff",
            "AABBCCDDEEFF",
            " aa bb cc dd ee ff ",
        ],
    )
    def test_equivalent_forms_share_key(self, raw):
        assert canonicalize_device_id(raw) == "aabbccddeeff"

    def test_idempotent(self):
        once = canonicalize_device_id("11:22:33:44:55:66")
        assert canonicalize_device_id(once) == once

    def test_total_on_garbage(self):
        """Nunca lanza: None / vacío / números."""
        assert canonicalize_device_id(None) == ""
        assert canonicalize_device_id("") == ""
        assert canonicalize_device_id(":::") == ""
        assert canonicalize_device_id(112233) == "112233"


# =============================================================================
# DECODER
# =============================================================================

class TestTemperature:
    """Temperatura desde adv_raw[10:14]."""

    def test_reference_example(self):
        """0x1A → 26, 0x05 → 5 → 26.05"""
        assert parse_temperature("00000000001A05") == 26.05

    def test_offsets_are_fixed(self):
        # Con 12 ceros delante, [10:12]="00" y [12:14]="1A" → 0.26
        assert parse_temperature("0000000000001A05") == 0.26

    def test_sixteen_char_advertisement(self):
        assert parse_temperature("00000000001A0500") == 26.05

    def test_lowercase_hex(self):
        assert parse_temperature("00000000001a05") == 26.05

    def test_fraction_is_padded_to_two_digits(self):
        # 0x15 → 21, 0x28 → 40 → 21.40
        assert parse_temperature("00000000001528") == 21.4

    def test_fraction_over_99_is_not_truncated(self):
        # 0x64 → 100 → "26.100"
        assert parse_temperature("00000000001A64") == 26.1

    def test_too_short(self):
        assert parse_temperature("00000000001A0") is None
        assert parse_temperature("") is None

    def test_non_hex_characters(self):
        assert parse_temperature("0000000000ZZ05") is None
        assert parse_temperature("00000000001AG5") is None

    def test_int_parser_leniency_rejected(self):
        """Signos, guiones bajos y espacios no son hex válido."""
        assert parse_temperature("0000000000+105") is None
        assert parse_temperature("00000000001_05") is None
        assert parse_temperature("0000000000 105") is None

    def test_non_string_input(self):
        assert parse_temperature(None) is None
        assert parse_temperature(12345678901234567) is None


class TestBattery:
    """Batería desde srp_raw[14:18] en mV."""

    def test_millivolts(self):
        # 0x0BB8 = 3000 mV
        assert parse_battery("000000000000000BB8") == 3000

    def test_too_short(self):
        assert parse_battery("000000000000000BB") is None

    def test_non_hex(self):
        assert parse_battery("00000000000000XXXX") is None

    def test_non_string_input(self):
        assert parse_battery(None) is None


class TestDecodeRawReading:
    """Extracciones independientes y best-effort."""

    def test_both_fields(self):
        decoded = decode_raw_reading("00000000001A05", "000000000000000BB8")
        assert decoded.temperature == 26.05
        assert decoded.battery == 3000

    def test_temperature_without_battery(self):
        decoded = decode_raw_reading("00000000001A05", None)
        assert decoded.temperature == 26.05
        assert decoded.battery is None

    def test_battery_without_temperature(self):
        decoded = decode_raw_reading("garbage", "000000000000000BB8")
        assert decoded.temperature is None
        assert decoded.battery == 3000

    def test_nothing(self):
        decoded = decode_raw_reading(None, None)
        assert decoded.temperature is None
        assert decoded.battery is None


# =============================================================================
# READING → PAYLOAD DE INGESTA
# =============================================================================

class TestReadingPayload:
    """Formato JSON esperado por la edge function."""

    def test_defaults_battery_and_omits_missing(self):
        reading = Reading(device_id="AA:BB", gateway_id="GW1", temperature=20.5)
        assert reading.to_ingest_payload() == {
            "mac_address": "AA:BB",
            "temperature": 20.5,
            "battery": 0,
            "gateway_mac": "GW1",
        }

    def test_passthrough_fields(self):
        reading = Reading(
            device_id="AA:BB",
            gateway_id="GW1",
            temperature=20.5,
            battery=2900,
            timestamp="2026-01-31T08:00:00Z",
            extra={"pdv_id": "PDV-17"},
        )
        payload = reading.to_ingest_payload()
        assert payload["battery"] == 2900
        assert payload["ts"] == "2026-01-31T08:00:00Z"
        assert payload["pdv_id"] == "PDV-17"
