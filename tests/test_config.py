"""Tests for the orbitjax.config module."""

import jax
import jax.numpy as jnp
import pytest

from orbitjax.config import get_dtype, get_epoch_eq_tolerance, set_dtype, set_epoch_eq_tolerance
from orbitjax.constants import GM_EARTH, R_EARTH
from orbitjax.epoch import Epoch
from orbitjax.forces import accel_point_mass
from orbitjax.integrators import rk4_step


@pytest.fixture(autouse=True)
def restore_dtype():
    """Restore float64 after each test."""
    yield
    set_dtype(jnp.float64)
    set_epoch_eq_tolerance(None)


class TestGetSetDtype:
    def test_default_dtype(self):
        assert get_dtype() == jnp.float64

    def test_set_float32(self):
        set_dtype(jnp.float32)
        assert get_dtype() == jnp.float32

    def test_roundtrip(self):
        for dtype in (jnp.float16, jnp.bfloat16, jnp.float32, jnp.float64):
            set_dtype(dtype)
            assert get_dtype() == dtype

    def test_invalid_dtype_raises(self):
        with pytest.raises(ValueError, match="Unsupported dtype"):
            set_dtype(jnp.int32)

    def test_invalid_dtype_string_raises(self):
        with pytest.raises(ValueError, match="Unsupported dtype"):
            set_dtype("float64")

    def test_float64_enables_x64(self):
        set_dtype(jnp.float32)
        set_dtype(jnp.float64)
        assert jax.config.jax_enable_x64 is True


class TestEpochEqTolerance:
    @pytest.mark.parametrize("dtype, expected", [
        (jnp.float64, 1e-9),
        (jnp.float32, 1e-3),
        (jnp.float16, 0.1),
        (jnp.bfloat16, 0.1),
    ])
    def test_tolerance_follows_dtype(self, dtype, expected):
        set_dtype(dtype)
        assert get_epoch_eq_tolerance() == expected

    def test_override(self):
        set_epoch_eq_tolerance(1e-6)
        assert get_epoch_eq_tolerance() == 1e-6
        set_dtype(jnp.float32)
        assert get_epoch_eq_tolerance() == 1e-6

    def test_restore_default(self):
        set_epoch_eq_tolerance(1e-6)
        set_epoch_eq_tolerance(None)
        assert get_epoch_eq_tolerance() == 1e-9

    @pytest.mark.parametrize("seconds", [0.0, -1e-3])
    def test_non_positive_raises(self, seconds):
        with pytest.raises(ValueError):
            set_epoch_eq_tolerance(seconds)


class TestDtypeOutputs:
    """Outputs follow the configured dtype."""

    def test_epoch_internal_dtypes(self):
        epc = Epoch(2024, 1, 1, 12, 0, 0.0)
        assert epc._seconds.dtype == jnp.float64
        assert epc._kahan_c.dtype == jnp.float64
        assert epc._jd.dtype == jnp.int32

    def test_point_mass_float32(self):
        set_dtype(jnp.float32)
        acc = accel_point_mass([R_EARTH + 500e3, 0.0, 0.0], GM_EARTH)
        assert acc.dtype == jnp.float32

    def test_rk4_step_float32(self):
        set_dtype(jnp.float32)
        result = rk4_step(lambda t, x: -x, 0.0, jnp.ones(2), 0.1)
        assert result.state.dtype == jnp.float32


class TestFloat64Precision:
    def test_small_shifts(self):
        """10000 shifts of 1 ms accumulate well under a microsecond of error."""
        epc = Epoch(2024, 1, 1)
        for _ in range(10000):
            epc = epc + 0.001
        assert abs(float(epc.duration_from(Epoch(2024, 1, 1))) - 10.0) < 1e-6
