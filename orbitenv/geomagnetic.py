"""Geomagnetic field in inertial coordinates from a body-fixed NED field model."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

import numpy as np

from orbitenv.effector import OrientationModel, PlanetState
from orbitenv.harmonics import ArrayLike3

WGS84_A = 6_378_137.0
WGS84_F = 1.0 / 298.257_223_563
WGS84_B = WGS84_A * (1.0 - WGS84_F)
WGS84_E2 = WGS84_F * (2.0 - WGS84_F)
WGS84_EP2 = (WGS84_A * WGS84_A - WGS84_B * WGS84_B) / (WGS84_B * WGS84_B)

NedFieldModel = Callable[[float, float, int, Any], ArrayLike3]
"""Maps latitude (deg), longitude (deg), altitude (whole metres) and date
to the local north/east/down field in nanotesla."""


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


def ecef_to_geodetic(position: ArrayLike3) -> Tuple[float, float, float]:
    """WGS-84 latitude (rad), longitude (rad) and altitude (m) of an Earth-fixed point."""
    x, y, z = _vector(position)
    longitude = math.atan2(y, x)
    p = math.hypot(x, y)

    if p < 1.0e-9:
        latitude = math.pi / 2 if z >= 0.0 else -math.pi / 2
        return latitude, 0.0, abs(z) - WGS84_B

    theta = math.atan2(z * WGS84_A, p * WGS84_B)
    latitude = math.atan2(
        z + WGS84_EP2 * WGS84_B * math.sin(theta) ** 3,
        p - WGS84_E2 * WGS84_A * math.cos(theta) ** 3,
    )
    sin_lat = math.sin(latitude)
    radius_curvature = WGS84_A / math.sqrt(1.0 - WGS84_E2 * sin_lat * sin_lat)
    altitude = p / math.cos(latitude) - radius_curvature
    return latitude, longitude, altitude


def ned_to_ecef(latitude_rad: float, longitude_rad: float, field_ned: ArrayLike3) -> np.ndarray:
    """Express a north/east/down vector in Earth-fixed axes."""
    north_value, east_value, down_value = _vector(field_ned)
    sin_lat, cos_lat = math.sin(latitude_rad), math.cos(latitude_rad)
    sin_lon, cos_lon = math.sin(longitude_rad), math.cos(longitude_rad)

    north = np.array([-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat])
    east = np.array([-sin_lon, cos_lon, 0.0])
    down = np.array([-cos_lat * cos_lon, -cos_lat * sin_lon, -sin_lat])
    return north * north_value + east * east_value + down * down_value


def _model_date(epoch: Any) -> Any:
    if isinstance(epoch, datetime):
        return epoch.date()
    return epoch


@dataclass
class MagneticFieldModel:
    """Evaluates a geomagnetic model along a spacecraft trajectory.

    ``ned_field`` gives the local field in nanotesla; ``orientation`` maps an
    epoch to the inertial-to-body-fixed rotation and is used whenever the
    planet state does not carry its own orientation.
    """

    ned_field: NedFieldModel
    orientation: OrientationModel

    def field_inertial(
        self,
        spacecraft_position: ArrayLike3,
        current_epoch: Any,
        planet_state: Optional[PlanetState] = None,
    ) -> np.ndarray:
        """Magnetic field in tesla, in inertial axes, at the spacecraft position."""
        position = _vector(spacecraft_position)
        if planet_state is not None:
            position = position - planet_state.position_inertial
            if planet_state.has_orientation:
                inertial_to_fixed = _matrix(planet_state.inertial_to_fixed)
            else:
                inertial_to_fixed = _matrix(self.orientation(current_epoch))
        else:
            inertial_to_fixed = _matrix(self.orientation(current_epoch))

        latitude, longitude, altitude = ecef_to_geodetic(inertial_to_fixed @ position)
        field_ned = _vector(
            self.ned_field(
                math.degrees(latitude),
                math.degrees(longitude),
                int(round(max(altitude, 0.0))),
                _model_date(current_epoch),
            )
        ) * 1.0e-9
        field_fixed = ned_to_ecef(latitude, longitude, field_ned)
        return inertial_to_fixed.T @ field_fixed