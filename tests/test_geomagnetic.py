import math
from datetime import date, datetime

import numpy as np
import pytest

from orbitenv.effector import PlanetState
from orbitenv.geomagnetic import (
    WGS84_A,
    WGS84_B,
    WGS84_E2,
    MagneticFieldModel,
    ecef_to_geodetic,
    ned_to_ecef,
)


def _geodetic_to_ecef(lat, lon, alt):
    n = WGS84_A / math.sqrt(1.0 - WGS84_E2 * math.sin(lat) ** 2)
    return np.array(
        [
            (n + alt) * math.cos(lat) * math.cos(lon),
            (n + alt) * math.cos(lat) * math.sin(lon),
            (n * (1.0 - WGS84_E2) + alt) * math.sin(lat),
        ]
    )


def _rot_z(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, s, 0.0], [-s, c, 0.0], [0.0, 0.0, 1.0]])


class _Recorder:
    def __init__(self, ned=(1000.0, 0.0, 0.0)):
        self.ned = ned
        self.calls = []

    def __call__(self, lat_deg, lon_deg, alt, when):
        self.calls.append((lat_deg, lon_deg, alt, when))
        return self.ned


def _fail_orientation(epoch):
    raise AssertionError("orientation should not be consulted")


def test_equator_point_on_surface():
    lat, lon, alt = ecef_to_geodetic([WGS84_A, 0.0, 0.0])
    assert lat == pytest.approx(0.0, abs=1e-12)
    assert lon == pytest.approx(0.0, abs=1e-12)
    assert alt == pytest.approx(0.0, abs=1e-6)


def test_pole_cases():
    lat, lon, alt = ecef_to_geodetic([0.0, 0.0, WGS84_B + 1000.0])
    assert lat == pytest.approx(math.pi / 2)
    assert lon == 0.0
    assert alt == pytest.approx(1000.0)
    lat, _, alt = ecef_to_geodetic([0.0, 0.0, -(WGS84_B + 250.0)])
    assert lat == pytest.approx(-math.pi / 2)
    assert alt == pytest.approx(250.0)


def test_longitude_on_y_axis():
    _, lon, _ = ecef_to_geodetic([0.0, WGS84_A + 10.0, 0.0])
    assert lon == pytest.approx(math.pi / 2)


@pytest.mark.parametrize(
    "lat_deg, lon_deg, alt",
    [(45.0, 30.0, 500e3), (-60.0, -120.0, 10.0), (10.0, 179.0, 35786e3), (-5.0, 90.0, 0.0)],
)
def test_geodetic_round_trip(lat_deg, lon_deg, alt):
    lat, lon = math.radians(lat_deg), math.radians(lon_deg)
    got_lat, got_lon, got_alt = ecef_to_geodetic(_geodetic_to_ecef(lat, lon, alt))
    assert got_lat == pytest.approx(lat, abs=1e-9)
    assert got_lon == pytest.approx(lon, abs=1e-9)
    assert got_alt == pytest.approx(alt, abs=1e-3)


def test_ned_axes_at_origin_longitude():
    assert np.allclose(ned_to_ecef(0.0, 0.0, [1.0, 0.0, 0.0]), [0.0, 0.0, 1.0])
    assert np.allclose(ned_to_ecef(0.0, 0.0, [0.0, 1.0, 0.0]), [0.0, 1.0, 0.0])
    assert np.allclose(ned_to_ecef(0.0, 0.0, [0.0, 0.0, 1.0]), [-1.0, 0.0, 0.0])


def test_ned_to_ecef_preserves_norm_and_down_points_inward():
    lat, lon = math.radians(35.0), math.radians(-70.0)
    vector = np.array([3.0, -4.0, 12.0])
    assert np.linalg.norm(ned_to_ecef(lat, lon, vector)) == pytest.approx(13.0)
    down = ned_to_ecef(lat, lon, [0.0, 0.0, 1.0])
    assert float(np.dot(down, _geodetic_to_ecef(lat, lon, 0.0))) < 0.0


def test_ned_to_ecef_rejects_bad_shape():
    with pytest.raises(ValueError):
        ned_to_ecef(0.0, 0.0, [1.0, 2.0])


def test_field_identity_orientation_and_nanotesla_scaling():
    recorder = _Recorder()
    model = MagneticFieldModel(recorder, lambda epoch: np.eye(3))
    result = model.field_inertial([WGS84_A + 500e3, 0.0, 0.0], 0.0)
    assert np.allclose(result, [0.0, 0.0, 1000.0e-9])
    lat, lon, alt, when = recorder.calls[0]
    assert lat == pytest.approx(0.0, abs=1e-9)
    assert lon == pytest.approx(0.0, abs=1e-9)
    assert alt == 500000
    assert when == 0.0


def test_field_rotated_back_to_inertial():
    rotation = _rot_z(math.pi / 2)
    recorder = _Recorder((0.0, 2000.0, 0.0))
    model = MagneticFieldModel(recorder, lambda epoch: rotation)
    inertial_position = rotation.T @ np.array([WGS84_A + 1000.0, 0.0, 0.0])
    result = model.field_inertial(inertial_position, 0.0)
    assert np.allclose(result, rotation.T @ np.array([0.0, 2000.0e-9, 0.0]))
    assert recorder.calls[0][2] == 1000


def test_altitude_clamped_at_zero_and_date_passed():
    recorder = _Recorder()
    model = MagneticFieldModel(recorder, lambda epoch: np.eye(3))
    model.field_inertial([WGS84_A - 5000.0, 0.0, 0.0], datetime(2024, 3, 1, 12, 30))
    _, _, alt, when = recorder.calls[0]
    assert alt == 0
    assert when == date(2024, 3, 1)


def test_planet_state_orientation_takes_precedence():
    rotation = _rot_z(0.3)
    recorder = _Recorder()
    model = MagneticFieldModel(recorder, _fail_orientation)
    planet = PlanetState(
        [1.0e7, 0.0, 0.0], [0.0, 0.0, 0.0], has_orientation=True, inertial_to_fixed=rotation
    )
    relative = rotation.T @ np.array([WGS84_A + 2000.0, 0.0, 0.0])
    result = model.field_inertial(relative + planet.position_inertial, 0.0, planet)
    assert recorder.calls[0][2] == 2000
    assert np.allclose(result, rotation.T @ np.array([0.0, 0.0, 1000.0e-9]))


def test_planet_state_without_orientation_uses_model():
    recorder = _Recorder()
    model = MagneticFieldModel(recorder, lambda epoch: np.eye(3))
    planet = PlanetState([0.0, 5.0e6, 0.0], [0.0, 0.0, 0.0])
    result = model.field_inertial([WGS84_A + 3000.0, 5.0e6, 0.0], 0.0, planet)
    assert recorder.calls[0][2] == 3000
    assert np.allclose(result, [0.0, 0.0, 1000.0e-9])