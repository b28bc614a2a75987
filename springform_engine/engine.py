# springform_engine/engine.py

import numba

from . import config as cfg # Use relative import within the package
from .integrator import get_integrator
from .vector import add, subtract, scale, dot, length, is_zero, iszero

# ==============================================================================
# PART 1: THE CORE PHYSICS - ONE KERNEL SET PER INTEGRATOR
# ==============================================================================
# A body is passed as its raw field arrays:
#   position, velocity, acceleration  (MAX_NODES, 3) float64
#   friction                          (MAX_NODES,)   float64
#   first, second                     (MAX_MUSCLES,) int32 node indices
#   extended, contracted, strength    (MAX_MUSCLES,) float64
#   is_contracted                     (MAX_MUSCLES,) bool
# Only the leading n_nodes / n_muscles entries are read. The caller owns the
# (2, 3) scratch buffer, so the kernels never allocate.


def build_kernels(integrate):
    """Compiles the (update, animate) kernel pair around one integration strategy."""

    @numba.njit(nogil=True)
    def step(position, velocity, acceleration, friction, n_nodes,
             first, second, extended, contracted, strength, is_contracted, n_muscles,
             dt, delta, force):
        """One physics step of length dt. Returns the energy spent by contracted muscles."""
        energy = 0.0
        for i in range(n_nodes):
            acceleration[i, 0] = 0.0
            acceleration[i, 1] = cfg.GRAVITY
            acceleration[i, 2] = 0.0

        # Muscles: damped springs pulling toward their target length
        for m in range(n_muscles):
            if iszero(strength[m]):
                continue
            a, b = first[m], second[m]
            subtract(position[b], position[a], delta)
            current = length(delta)
            if iszero(current):
                continue
            scale(delta, 1.0 / current, delta)

            target = contracted[m] if is_contracted[m] else extended[m]
            magnitude = -(strength[m] / target) * (target - current)
            magnitude -= cfg.DAMPING * (dot(velocity[a], delta) - dot(velocity[b], delta))
            scale(delta, magnitude, force)
            add(acceleration[a], force, acceleration[a])
            subtract(acceleration[b], force, acceleration[b])
            if is_contracted[m]:
                energy += abs(magnitude) * dt

        # Ground friction on grounded, sliding nodes
        for i in range(n_nodes):
            if not iszero(position[i, 1]) or iszero(friction[i]) or is_zero(velocity[i]):
                continue
            scale(velocity[i], -cfg.FRICTION * friction[i], force)
            force[1] = 0.0
            add(acceleration[i], force, acceleration[i])

        for i in range(n_nodes):
            integrate(position[i], velocity[i], acceleration[i], dt)
            if position[i, 1] < cfg.EPSILON:
                position[i, 1] = 0.0
                velocity[i, 1] *= -cfg.RESTITUTION
        return energy

    @numba.njit(nogil=True)
    def advance(position, velocity, acceleration, friction, n_nodes,
                first, second, extended, contracted, strength, is_contracted, n_muscles,
                dt, delta, force):
        """Whole TIME_STEPs first, then the remainder."""
        energy = 0.0
        full_steps = int(dt / cfg.TIME_STEP)
        for _ in range(full_steps):
            energy += step(position, velocity, acceleration, friction, n_nodes,
                           first, second, extended, contracted, strength, is_contracted, n_muscles,
                           cfg.TIME_STEP, delta, force)
        remainder = dt - full_steps * cfg.TIME_STEP
        if remainder > cfg.MIN_PARTIAL_STEP:
            energy += step(position, velocity, acceleration, friction, n_nodes,
                           first, second, extended, contracted, strength, is_contracted, n_muscles,
                           remainder, delta, force)
        return energy

    @numba.njit(nogil=True)
    def update(position, velocity, acceleration, friction, n_nodes,
               first, second, extended, contracted, strength, is_contracted, n_muscles, dt, scratch):
        return advance(position, velocity, acceleration, friction, n_nodes,
                       first, second, extended, contracted, strength, is_contracted, n_muscles,
                       dt, scratch[0], scratch[1])

    @numba.njit(nogil=True)
    def animate(position, velocity, acceleration, friction, n_nodes,
                first, second, extended, contracted, strength, is_contracted, n_muscles,
                behavior, action, elapsed, energy, dt, scratch):
        """
        Plays the behavior program for dt seconds. Physics is stepped up to each
        action boundary, then the slot's muscle is toggled and the cursor moves on.
        Past the energy ceiling every muscle is relaxed and nothing toggles again.
        scratch holds two 3-vectors of working space. Returns the new
        (action, elapsed, energy).
        """
        delta, force = scratch[0], scratch[1]
        tolerance = cfg.EPSILON * cfg.ACTION_TIME
        remaining = dt
        while remaining > tolerance:
            if energy > cfg.MAX_ENERGY:
                for m in range(is_contracted.shape[0]):
                    is_contracted[m] = False

            until_boundary = cfg.ACTION_TIME - elapsed
            if remaining < until_boundary - tolerance:
                energy += advance(position, velocity, acceleration, friction, n_nodes,
                                  first, second, extended, contracted, strength, is_contracted, n_muscles,
                                  remaining, delta, force)
                elapsed += remaining
                break

            energy += advance(position, velocity, acceleration, friction, n_nodes,
                              first, second, extended, contracted, strength, is_contracted, n_muscles,
                              until_boundary, delta, force)
            remaining -= until_boundary
            elapsed = 0.0
            if energy <= cfg.MAX_ENERGY:
                muscle = behavior[action]
                if muscle != cfg.MUSCLE_NONE:
                    is_contracted[muscle] = not is_contracted[muscle]
            action = (action + 1) % behavior.shape[0]
        return action, elapsed, energy

    return update, animate


# ==============================================================================
# PART 2: KERNEL CACHE
# ==============================================================================
_KERNELS = {}


def get_kernels(name=None):
    """(update, animate) for the named integrator, compiled on first use."""
    name = name or cfg.INTEGRATOR
    if name not in _KERNELS:
        _KERNELS[name] = build_kernels(get_integrator(name))
    return _KERNELS[name]
