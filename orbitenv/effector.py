"""Gravity bodies and the effector that sums their accelerations on a spacecraft."""

from __future__ import annotations

import dataclasses
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from os import PathLike
from time import perf_counter_ns
from typing import Any, Callable, Iterator, List, Optional, Tuple, Union

import numpy as np

from orbitenv.harmonics import (
    ArrayLike3,
    PointMassGravityModel,
    SphericalHarmonicsGravityModel,
    rotate_about_z,
)

GravityModel = Union[PointMassGravityModel, SphericalHarmonicsGravityModel]
OrientationModel = Callable[[Any], Any]
"""Maps an epoch to the 3x3 inertial-to-body-fixed rotation matrix."""
PlanetStateSource = Callable[[], "PlanetState"]


def _vector(value: ArrayLike3) -> np.ndarray:
    array = np.array(value, dtype=float)
    if array.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {array.shape}")
    return array


def _matrix(value: Any) -> np.ndarray:
    array = np.array(value, dtype=float)
    if array.shape != (3, 3):
        raise ValueError(f"expected a 3x3 matrix, got shape {array.shape}")
    return array


def _seconds_between(current_sim_nanos: int, baseline_sim_nanos: int) -> float:
    return (int(current_sim_nanos) - int(baseline_sim_nanos)) * 1.0e-9


def _epoch_before(epoch: Any, step_nanos: int) -> Any:
    """Return ``epoch`` moved back by ``step_nanos`` nanoseconds."""
    if isinstance(epoch, datetime):
        return epoch - timedelta(microseconds=step_nanos / 1000.0)
    return epoch - step_nanos * 1.0e-9


@dataclass
class PlanetState:
    """Inertial state of a planet, optionally with its body-fixed orientation."""

    position_inertial: np.ndarray
    velocity_inertial: np.ndarray
    has_orientation: bool = False
    inertial_to_fixed: np.ndarray = field(default_factory=lambda: np.eye(3))
    inertial_to_fixed_dot: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))

    def __post_init__(self) -> None:
        self.position_inertial = _vector(self.position_inertial)
        self.velocity_inertial = _vector(self.velocity_inertial)
        self.inertial_to_fixed = _matrix(self.inertial_to_fixed)
        self.inertial_to_fixed_dot = _matrix(self.inertial_to_fixed_dot)


@dataclass
class GravityTimingStats:
    """Accumulated wall-clock time, in nanoseconds, spent in the effector."""

    update_cache_calls: int = 0
    update_cache_total_nanos: int = 0
    update_cache_state_read_nanos: int = 0
    update_cache_orientation_current_nanos: int = 0
    update_cache_orientation_previous_nanos: int = 0
    compute_gravity_field_calls: int = 0
    compute_gravity_field_total_nanos: int = 0
    compute_gravity_position_step_nanos: int = 0
    compute_gravity_accel_eval_nanos: int = 0


@dataclass(eq=False)
class GravBody:
    """A gravitating body with its field model and initial inertial state."""

    planet_name: str
    gravity_model: GravityModel
    is_central_body: bool = False
    initial_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    initial_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: Optional[OrientationModel] = None
    planet_state_source: Optional[PlanetStateSource] = None

    def __post_init__(self) -> None:
        self.initial_position = _vector(self.initial_position)
        self.initial_velocity = _vector(self.initial_velocity)

    @classmethod
    def point_mass(
        cls,
        planet_name: str,
        mu: float,
        is_central_body: bool,
        initial_position: ArrayLike3,
        initial_velocity: ArrayLike3,
    ) -> "GravBody":
        """A body whose gravity is that of a point mass."""
        return cls(
            planet_name,
            PointMassGravityModel(mu),
            is_central_body,
            initial_position,
            initial_velocity,
        )

    @classmethod
    def spherical_harmonics_from_file(
        cls,
        planet_name: str,
        file_path: Union[str, PathLike],
        max_deg: int,
        is_central_body: bool,
        initial_position: ArrayLike3,
        initial_velocity: ArrayLike3,
    ) -> "GravBody":
        """A body whose gravity comes from a spherical-harmonics coefficient file."""
        return cls(
            planet_name,
            SphericalHarmonicsGravityModel.from_file(file_path, max_deg),
            is_central_body,
            initial_position,
            initial_velocity,
        )

    def with_orientation(self, orientation: OrientationModel) -> "GravBody":
        """Return this body with an orientation model; point masses are returned as is."""
        if isinstance(self.gravity_model, SphericalHarmonicsGravityModel):
            return dataclasses.replace(self, orientation=orientation)
        return self

    def read_planet_state(self) -> Optional[PlanetState]:
        """The connected planet state, or None when no source is connected."""
        if self.planet_state_source is None:
            return None
        return self.planet_state_source()

    def current_state(self, current_sim_nanos: int) -> Tuple[np.ndarray, np.ndarray]:
        """Inertial position and velocity from the connected source or the initial state."""
        message = self.read_planet_state()
        if message is not None:
            return message.position_inertial.copy(), message.velocity_inertial.copy()
        position = self.initial_position + self.initial_velocity * (current_sim_nanos * 1.0e-9)
        return position, self.initial_velocity.copy()

    def compute_gravity_inertial(
        self, position_inertial: ArrayLike3, current_epoch: Any, current_sim_nanos: int
    ) -> np.ndarray:
        """Inertial acceleration at ``position_inertial`` relative to this body."""
        model = self.gravity_model
        if isinstance(model, PointMassGravityModel):
            return model.compute_field(position_inertial)
        position_inertial = _vector(position_inertial)
        if self.orientation is not None:
            inertial_to_fixed = _matrix(self.orientation(current_epoch))
            acceleration_fixed = model.compute_field(
                inertial_to_fixed @ position_inertial, model.max_deg, True
            )
            return inertial_to_fixed.T @ acceleration_fixed
        return _rotating_field(model, position_inertial, current_sim_nanos)


def _rotating_field(
    model: SphericalHarmonicsGravityModel, position_inertial: np.ndarray, current_sim_nanos: int
) -> np.ndarray:
    theta = model.body_rotation_rate * current_sim_nanos * 1.0e-9
    position_fixed = rotate_about_z(position_inertial, -theta)
    return rotate_about_z(model.compute_field(position_fixed, model.max_deg, True), theta)


@dataclass
class _CachedOrientation:
    inertial_to_fixed: np.ndarray
    inertial_to_fixed_dot: np.ndarray


@dataclass
class _CachedBodyState:
    position_inertial: np.ndarray
    velocity_inertial: np.ndarray
    cached_at_sim_nanos: int
    orientation: Optional[_CachedOrientation]


class GravityEffector:
    """Sums the gravity of all bodies on a spacecraft given relative to the central body."""

    def __init__(self, timing_enabled: bool = False) -> None:
        self.grav_bodies: List[GravBody] = []
        self.timing_enabled = timing_enabled
        self.timing_stats = GravityTimingStats()
        self._cached_states: List[_CachedBodyState] = []
        self._central_body_index: Optional[int] = None

    @contextmanager
    def _phase(self, stat_name: str) -> Iterator[None]:
        if not self.timing_enabled:
            yield
            return
        started = perf_counter_ns()
        try:
            yield
        finally:
            elapsed = perf_counter_ns() - started
            setattr(self.timing_stats, stat_name, getattr(self.timing_stats, stat_name) + elapsed)

    def add_grav_body(self, grav_body: GravBody) -> None:
        """Append a body to the effector."""
        self.grav_bodies.append(grav_body)

    def central_body(self) -> Optional[GravBody]:
        """The first body flagged as central, or None."""
        return next((body for body in self.grav_bodies if body.is_central_body), None)

    def connect_planet_state(
        self, planet_name: str, source: Optional[PlanetStateSource]
    ) -> None:
        """Attach a planet-state source to the named body; None disconnects it."""
        for body in self.grav_bodies:
            if body.planet_name == planet_name:
                body.planet_state_source = source
                return
        raise KeyError(planet_name)

    def update_cache(
        self,
        current_sim_nanos: int,
        current_epoch: Any,
        orientation_derivative_step_nanos: int,
    ) -> None:
        """Snapshot every body's state and orientation at the current time."""
        with self._phase("update_cache_total_nanos"):
            self._cached_states = []
            self._central_body_index = None
            for index, body in enumerate(self.grav_bodies):
                if body.is_central_body:
                    self._central_body_index = index
                with self._phase("update_cache_state_read_nanos"):
                    message = body.read_planet_state()
                    if message is not None:
                        position = message.position_inertial.copy()
                        velocity = message.velocity_inertial.copy()
                    else:
                        position, velocity = body.current_state(current_sim_nanos)
                orientation = self._orientation_state(
                    body, message, current_epoch, orientation_derivative_step_nanos
                )
                self._cached_states.append(
                    _CachedBodyState(position, velocity, current_sim_nanos, orientation)
                )
        if self.timing_enabled:
            self.timing_stats.update_cache_calls += 1

    def _orientation_state(
        self,
        body: GravBody,
        message: Optional[PlanetState],
        current_epoch: Any,
        step_nanos: int,
    ) -> Optional[_CachedOrientation]:
        if not isinstance(body.gravity_model, SphericalHarmonicsGravityModel):
            return None
        if message is not None and message.has_orientation:
            return _CachedOrientation(
                message.inertial_to_fixed.copy(), message.inertial_to_fixed_dot.copy()
            )
        if body.orientation is None:
            return None
        with self._phase("update_cache_orientation_current_nanos"):
            inertial_to_fixed = _matrix(body.orientation(current_epoch))
        if step_nanos == 0:
            return _CachedOrientation(inertial_to_fixed, np.zeros((3, 3)))
        with self._phase("update_cache_orientation_previous_nanos"):
            previous = _matrix(body.orientation(_epoch_before(current_epoch, step_nanos)))
        rate = (inertial_to_fixed - previous) / (step_nanos * 1.0e-9)
        return _CachedOrientation(inertial_to_fixed, rate)

    def _resolved_central_index(self) -> Optional[int]:
        if self._central_body_index is not None:
            return self._central_body_index
        return next(
            (index for index, body in enumerate(self.grav_bodies) if body.is_central_body),
            None,
        )

    def compute_gravity_field(
        self, relative_position: ArrayLike3, current_epoch: Any, current_sim_nanos: int
    ) -> np.ndarray:
        """Total acceleration on a spacecraft at a position relative to the central body."""
        with self._phase("compute_gravity_field_total_nanos"):
            relative_position = _vector(relative_position)
            central_index = self._resolved_central_index()

            with self._phase("compute_gravity_position_step_nanos"):
                if central_index is None:
                    central_position = np.zeros(3)
                else:
                    central_position = self._stepped_position(central_index, current_sim_nanos)
                inertial_position = relative_position + central_position

            total = np.zeros(3)
            with self._phase("compute_gravity_accel_eval_nanos"):
                for index, body in enumerate(self.grav_bodies):
                    body_position = self._stepped_position(index, current_sim_nanos)
                    total += self._cached_gravity(
                        index, body, inertial_position - body_position,
                        current_epoch, current_sim_nanos,
                    )
                    if central_index is not None and not body.is_central_body:
                        total += self._cached_gravity(
                            index, body, body_position - central_position,
                            current_epoch, current_sim_nanos,
                        )
        if self.timing_enabled:
            self.timing_stats.compute_gravity_field_calls += 1
        return total

    def inertial_position_and_velocity(
        self,
        relative_position: ArrayLike3,
        relative_velocity: ArrayLike3,
        current_sim_nanos: int,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Convert a state relative to the central body into an inertial state."""
        relative_position = _vector(relative_position)
        relative_velocity = _vector(relative_velocity)
        central_index = self._resolved_central_index()
        if central_index is None:
            return relative_position, relative_velocity
        return (
            relative_position + self._stepped_position(central_index, current_sim_nanos),
            relative_velocity + self._stepped_velocity(central_index, current_sim_nanos),
        )

    def _cached_state(self, index: int) -> Optional[_CachedBodyState]:
        return self._cached_states[index] if index < len(self._cached_states) else None

    def _stepped_position(self, index: int, current_sim_nanos: int) -> np.ndarray:
        cached = self._cached_state(index)
        if cached is None:
            return self.grav_bodies[index].current_state(current_sim_nanos)[0]
        dt = _seconds_between(current_sim_nanos, cached.cached_at_sim_nanos)
        return cached.position_inertial + cached.velocity_inertial * dt

    def _stepped_velocity(self, index: int, current_sim_nanos: int) -> np.ndarray:
        cached = self._cached_state(index)
        if cached is None:
            return self.grav_bodies[index].current_state(current_sim_nanos)[1]
        return cached.velocity_inertial.copy()

    def _cached_gravity(
        self,
        index: int,
        body: GravBody,
        position_inertial: np.ndarray,
        current_epoch: Any,
        current_sim_nanos: int,
    ) -> np.ndarray:
        cached = self._cached_state(index)
        if cached is None:
            return body.compute_gravity_inertial(
                position_inertial, current_epoch, current_sim_nanos
            )
        model = body.gravity_model
        if isinstance(model, PointMassGravityModel):
            return model.compute_field(position_inertial)
        if cached.orientation is None:
            return _rotating_field(model, position_inertial, current_sim_nanos)
        dt = _seconds_between(current_sim_nanos, cached.cached_at_sim_nanos)
        inertial_to_fixed = (
            cached.orientation.inertial_to_fixed + cached.orientation.inertial_to_fixed_dot * dt
        )
        acceleration_fixed = model.compute_field(
            inertial_to_fixed @ position_inertial, model.max_deg, True
        )
        return inertial_to_fixed.T @ acceleration_fixed