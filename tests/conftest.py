import jax.numpy as jnp
import pytest

from orbitjax.config import set_dtype, set_epoch_eq_tolerance


@pytest.fixture(autouse=True)
def _ensure_float64():
    """Set float64 precision and the default date tolerance before every test.

    Event location and propagation round trips need double precision; tests
    that change the dtype or the tolerance must not leak into the others.
    """
    set_dtype(jnp.float64)
    set_epoch_eq_tolerance(None)
