"""Tests del throttle por beacon.

Ejecutar:
    pytest tests/test_throttle.py -v
"""

import pytest

from beacon_bridge.throttle import ThrottleEngine


class TestColdStart:
    """Sin registro previo siempre se envía."""

    def test_first_reading_is_sent(self, throttle):
        assert throttle.should_send("AA:BB:CC:DD:EE:FF", 20.0) is True

    def test_should_send_does_not_create_record(self, throttle):
        throttle.should_send("AA:BB:CC:DD:EE:FF", 20.0)
        assert throttle.get_record("AA:BB:CC:DD:EE:FF") is None
        assert len(throttle) == 0


class TestIntervalAndDelta:
    """interval=60s, delta=0.3"""

    def test_same_value_immediately_is_throttled(self, throttle):
        throttle.mark_sent("d1", 20.0)
        assert throttle.should_send("d1", 20.0) is False

    def test_significant_change_overrides_interval(self, throttle):
        throttle.mark_sent("d1", 20.0)
        assert throttle.should_send("d1", 20.5) is True
        assert throttle.should_send("d1", 19.5) is True

    def test_small_change_is_throttled(self, throttle):
        throttle.mark_sent("d1", 20.0)
        assert throttle.should_send("d1", 20.2) is False

    def test_interval_elapsed_sends_without_change(self, throttle, clock):
        throttle.mark_sent("d1", 20.0)
        clock.advance(59)
        assert throttle.should_send("d1", 20.0) is False
        clock.advance(1)
        assert throttle.should_send("d1", 20.0) is True

    def test_mark_sent_moves_reference_point(self, throttle, clock):
        throttle.mark_sent("d1", 20.0)
        throttle.mark_sent("d1", 20.5)
        # La referencia ahora es 20.5: 20.6 no es significativo
        assert throttle.should_send("d1", 20.6) is False
        record = throttle.get_record("d1")
        assert record.last_temperature == 20.5
        assert record.last_sent_at == clock.now

    def test_keys_are_canonicalized(self, throttle):
        throttle.mark_sent("AA:BB:CC:DD:EE:FF", 20.0)
        assert throttle.should_send("aabbccddeeff", 20.0) is False
        assert throttle.should_send("aa-bb-cc-dd-ee-ff", 20.0) is False

    def test_devices_are_independent(self, throttle):
        throttle.mark_sent("d1", 20.0)
        assert throttle.should_send("d2", 20.0) is True

    def test_missing_previous_temperature_counts_as_no_change(self, throttle, clock):
        throttle.mark_sent("d1", None)
        assert throttle.should_send("d1", 25.0) is False
        clock.advance(60)
        assert throttle.should_send("d1", 25.0) is True


class TestEdgeConfiguration:
    """Umbrales en cero y valores negativos."""

    def test_zero_delta_makes_every_reading_significant(self, clock):
        engine = ThrottleEngine(interval_seconds=60, delta_threshold=0, clock=clock)
        engine.mark_sent("d1", 20.0)
        assert engine.should_send("d1", 20.0) is True

    def test_zero_interval_sends_every_reading(self, clock):
        engine = ThrottleEngine(interval_seconds=0, delta_threshold=10, clock=clock)
        engine.mark_sent("d1", 20.0)
        assert engine.should_send("d1", 20.0) is True

    @pytest.mark.parametrize("interval, delta", [(-5, -1), (-0.1, -0.3)])
    def test_negative_values_are_clamped(self, clock, interval, delta):
        engine = ThrottleEngine(interval_seconds=interval, delta_threshold=delta, clock=clock)
        assert engine.interval_seconds == 0
        assert engine.delta_threshold == 0

    def test_stats(self, throttle):
        throttle.mark_sent("d1", 20.0)
        assert throttle.stats == {
            "tracked_devices": 1,
            "interval_seconds": 60.0,
            "delta_threshold": 0.3,
        }
