from .raw_decoder import DecodedReading, decode_raw_reading, parse_battery, parse_temperature

__all__ = ["DecodedReading", "decode_raw_reading", "parse_battery", "parse_temperature"]
