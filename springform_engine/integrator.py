# springform_engine/integrator.py

import numba

# ==============================================================================
# INTEGRATION STRATEGIES
# ==============================================================================
# Each strategy advances one node's (position, velocity) in place by `dt`
# under a constant acceleration. The physics kernels are compiled once per
# strategy (see engine.get_kernels), so the choice is fixed at composition time.


@numba.njit(nogil=True)
def euler_method(position, velocity, acceleration, dt):
    """First-order explicit update: velocity first, then position."""
    for k in range(3):
        velocity[k] += acceleration[k] * dt
        position[k] += velocity[k] * dt


@numba.njit(nogil=True)
def midpoint_method(position, velocity, acceleration, dt):
    """Moves the position with the half-step velocity."""
    for k in range(3):
        half_step = velocity[k] + 0.5 * acceleration[k] * dt
        position[k] += half_step * dt
        velocity[k] += acceleration[k] * dt


INTEGRATORS = {
    "euler": euler_method,
    "midpoint": midpoint_method,
}


def get_integrator(name):
    """Resolve an integrator strategy by its configured name."""
    try:
        return INTEGRATORS[name]
    except KeyError:
        choices = ", ".join(sorted(INTEGRATORS))
        raise ValueError(f"Unknown integrator '{name}' (choose from: {choices})") from None
