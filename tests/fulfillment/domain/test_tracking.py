"""Tests for tracking number generation."""

import re

from fulfillment.shipment.tracking import TRACKING_SUFFIX_LENGTH, generate_tracking_number, is_simulated


class TestGenerateTrackingNumber:
    def test_format(self):
        assert re.fullmatch(r"SIM-[A-Z0-9]{10}", generate_tracking_number())

    def test_custom_prefix(self):
        number = generate_tracking_number("TST")
        assert number.startswith("TST-")
        assert len(number) == len("TST-") + TRACKING_SUFFIX_LENGTH

    def test_collisions_are_unlikely(self):
        numbers = {generate_tracking_number() for _ in range(500)}
        assert len(numbers) == 500


class TestIsSimulated:
    def test_recognises_generated_numbers(self):
        assert is_simulated(generate_tracking_number())

    def test_rejects_carrier_numbers(self):
        assert not is_simulated("1Z999AA10123456784")
        assert not is_simulated("SIM-short")
        assert not is_simulated("SIM-abcdefghij")
        assert not is_simulated("TST-ABCDEFGHIJ")
