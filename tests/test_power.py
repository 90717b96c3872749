"""Tests for checked exponentiation — proves exact results and hard overflow."""

import pytest

from circles.errors import ArithmeticOverflowError
from circles.issuance.power import checked_mul, power
from circles.models.hub import MAX_UINT256


class TestPowerValues:
    def test_small_power(self) -> None:
        assert power(2, 4) == 16

    def test_very_high_number(self) -> None:
        assert power(15833, 12) == 248175291811094805747824732449565240388888669248161

    def test_base_one(self) -> None:
        assert power(1, 12) == 1

    def test_base_one_huge_exponent(self) -> None:
        assert power(1, 2**255) == 1

    def test_base_zero(self) -> None:
        assert power(0, 12) == 0

    def test_exponent_one(self) -> None:
        assert power(12, 1) == 12

    def test_base_zero_exponent_one(self) -> None:
        assert power(0, 1) == 0

    def test_exponent_zero(self) -> None:
        assert power(12, 0) == 1

    def test_zero_to_the_zero_is_one(self) -> None:
        assert power(0, 0) == 1

    def test_matches_builtin_within_bound(self) -> None:
        for base in (2, 3, 7, 10, 107, 15833):
            for exponent in range(0, 18):
                assert power(base, exponent) == base ** exponent

    def test_largest_power_of_two(self) -> None:
        assert power(2, 255) == 2**255

    def test_max_value_to_the_first(self) -> None:
        assert power(MAX_UINT256, 1) == MAX_UINT256


class TestPowerOverflow:
    def test_overflow_raises(self) -> None:
        with pytest.raises(OverflowError):
            power(12, 583333333)

    def test_overflow_is_domain_error(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            power(12, 583333333)

    def test_just_past_bound(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            power(2, 256)

    def test_square_of_max_overflows(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            power(MAX_UINT256, 2)

    def test_custom_bound(self) -> None:
        assert power(2, 7, bound=255) == 128
        with pytest.raises(ArithmeticOverflowError):
            power(2, 8, bound=255)

    def test_base_above_bound(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            power(MAX_UINT256 + 1, 0)


class TestPowerOperands:
    def test_negative_base_rejected(self) -> None:
        with pytest.raises(ValueError):
            power(-2, 3)

    def test_negative_exponent_rejected(self) -> None:
        with pytest.raises(ValueError):
            power(2, -1)

    def test_non_int_rejected(self) -> None:
        with pytest.raises(TypeError):
            power(2.0, 3)  # type: ignore[arg-type]

    def test_bool_rejected(self) -> None:
        with pytest.raises(TypeError):
            power(True, 3)  # type: ignore[arg-type]


class TestCheckedMul:
    def test_within_bound(self) -> None:
        assert checked_mul(2**128, 2**127) == 2**255

    def test_past_bound(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            checked_mul(2**128, 2**128)
