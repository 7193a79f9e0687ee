# orbitenv

Environment models for spacecraft simulation. The package covers gravity
from one or more bodies and the frame handling around a geomagnetic field
model. All arrays are NumPy 3-vectors or 3x3 matrices.

Units:

- Positions are in metres and velocities in metres per second.
- Simulation times are integer nanoseconds.
- Magnetic fields come back in tesla.

## Modules

### `orbitenv.harmonics`

- `PointMassGravityModel(mu)`: `compute_field(position)` returns
  `-mu * r / |r|^3`. It returns zero at the origin.
- `SphericalHarmonicsGravityModel(rad_equator, mu, body_rotation_rate, max_deg, c_bar, s_bar)`
  holds a normalized spherical-harmonics field. It is evaluated with the
  Pines formulation through
  `compute_field(position, degree, include_zero_degree)`. The `degree`
  argument may not exceed `max_deg`; a larger value raises `ValueError`.
- `SphericalHarmonicsGravityModel.from_file(path, max_deg)` reads a
  coefficient file.
  - The first line is a header:
    `radius, mu, rotation_rate, max_degree, max_order, normalized, ref_long, ref_lat`.
  - Each following line is `degree, order, C, S`.
  - Blank lines, short lines and terms above `max_deg` are skipped.
  - `GravityFileError` (a `ValueError`) is raised in these cases:
    - the header is missing or malformed;
    - the file's degree or order is below `max_deg`;
    - the coefficients are not normalized;
    - the reference longitude or latitude is not zero.
- `rotate_about_z(vector, angle_rad)` rotates a vector about the z axis.

### `orbitenv.effector`

- `PlanetState` is the inertial position and velocity of a planet. It can
  optionally carry an inertial-to-fixed rotation (`has_orientation`,
  `inertial_to_fixed`, `inertial_to_fixed_dot`).
- `GravBody` is a body with a gravity model and an initial inertial state.
  - Build one with `GravBody.point_mass(...)` or
    `GravBody.spherical_harmonics_from_file(...)`.
  - `with_orientation(orientation)` attaches a callable that maps an epoch
    to the 3x3 inertial-to-fixed matrix. It only applies to
    spherical-harmonics bodies.
  - Without an orientation, a spherical-harmonics body is rotated about z
    at its `body_rotation_rate`.
  - `current_state(current_sim_nanos)` returns the state. It comes from the
    connected source if there is one. Otherwise it is propagated linearly
    from the initial state.
- `GravityEffector` sums the accelerations of all bodies.
  - `add_grav_body` and `central_body()` manage the bodies.
  - `connect_planet_state(name, source)` attaches a zero-argument callable
    that returns a `PlanetState`. Passing `None` disconnects it. An unknown
    name raises `KeyError`.
  - `update_cache(current_sim_nanos, current_epoch, orientation_derivative_step_nanos)`
    snapshots each body's state and orientation. A non-zero step estimates
    the orientation rate by finite difference.
  - Between updates, body positions and orientations are Euler-stepped.
  - `compute_gravity_field(relative_position, current_epoch, current_sim_nanos)`
    takes a position relative to the central body. It adds the third-body
    terms for the non-central bodies.
  - `inertial_position_and_velocity(...)` converts a relative state into an
    inertial one.
  - `GravityEffector(timing_enabled=True)` accumulates wall-clock times in
    `timing_stats` (`GravityTimingStats`).

Epochs may be `datetime` objects or plain numbers in seconds. They are
passed unchanged to orientation callables.

### `orbitenv.geomagnetic`

- `ecef_to_geodetic(position)` returns the WGS-84 latitude and longitude in
  radians and the altitude in metres.
- `ned_to_ecef(latitude_rad, longitude_rad, field_ned)` expresses a
  north/east/down vector in fixed axes.
- `MagneticFieldModel(ned_field, orientation)` returns the field in
  inertial axes, in tesla, through
  `field_inertial(spacecraft_position, current_epoch, planet_state=None)`.
  - `ned_field(lat_deg, lon_deg, altitude_m, date)` must return the local
    NED field in nanotesla.
  - The altitude is passed as whole metres, clamped at zero.
  - The date is `epoch.date()` for a `datetime` epoch and the epoch itself
    otherwise.

## What the package does not do

- It ships no geomagnetic reference model. The NED field must be supplied
  as a callable.
- It does not load ephemeris or orientation kernels. Planet orientations
  are supplied as callables or through `PlanetState`.
- It has no command-line program.

## Install

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
import numpy as np
from orbitenv.harmonics import PointMassGravityModel
from orbitenv.effector import GravBody, GravityEffector

earth = PointMassGravityModel(mu=3.986004418e14)
print(earth.compute_field(np.array([7.0e6, 0.0, 0.0])))

effector = GravityEffector()
effector.add_grav_body(
    GravBody.point_mass("earth", 3.986004418e14, True, np.zeros(3), np.zeros(3))
)
effector.update_cache(0, None, 0)
accel = effector.compute_gravity_field(np.array([7.0e6, 0.0, 0.0]), None, 0)
```