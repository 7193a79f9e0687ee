"""Point-mass and spherical-harmonics gravity field models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Sequence, Union

import numpy as np

ArrayLike3 = Union[Sequence[float], np.ndarray]


class GravityFileError(ValueError):
    """Raised when a spherical-harmonics coefficient file cannot be used."""


def _as_vector(vector: ArrayLike3) -> np.ndarray:
    array = np.asarray(vector, dtype=float)
    if array.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {array.shape}")
    return array


def rotate_about_z(vector: ArrayLike3, angle_rad: float) -> np.ndarray:
    """Rotate a 3-vector about the z axis by ``angle_rad``."""
    x, y, z = _as_vector(vector)
    cos_theta = math.cos(angle_rad)
    sin_theta = math.sin(angle_rad)
    return np.array(
        [cos_theta * x - sin_theta * y, sin_theta * x + cos_theta * y, z]
    )


@dataclass(frozen=True)
class PointMassGravityModel:
    """Gravity of a point mass with gravitational parameter ``mu`` (m^3/s^2)."""

    mu: float

    def compute_field(self, position: ArrayLike3) -> np.ndarray:
        """Acceleration in m/s^2 at ``position`` (metres) relative to the body."""
        position = _as_vector(position)
        radius = float(np.linalg.norm(position))
        if radius == 0.0:
            return np.zeros(3)
        return -self.mu * position / radius**3


def _k(degree: int) -> float:
    return 1.0 if degree == 0 else 2.0


def _square_from_rows(rows: Sequence[Sequence[float]], max_deg: int) -> np.ndarray:
    """Copy a lower-triangular coefficient table into a square array."""
    square = np.zeros((max_deg + 1, max_deg + 1))
    for degree, row in zip(range(max_deg + 1), rows):
        values = np.asarray(row, dtype=float).ravel()[: degree + 1]
        square[degree, : values.size] = values
    return square


@dataclass(eq=False)
class SphericalHarmonicsGravityModel:
    """Normalized spherical-harmonics gravity field evaluated with Pines' method.

    ``c_bar`` and ``s_bar`` are indexed ``[degree, order]``; entries with
    order above degree are ignored.
    """

    rad_equator: float
    mu: float
    body_rotation_rate: float
    max_deg: int
    c_bar: np.ndarray
    s_bar: np.ndarray
    _a_bar_seed: np.ndarray = field(init=False, repr=False)
    _n1: np.ndarray = field(init=False, repr=False)
    _n2: np.ndarray = field(init=False, repr=False)
    _n_quot1: np.ndarray = field(init=False, repr=False)
    _n_quot2: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_deg < 0:
            raise ValueError("max_deg must be non-negative")
        self.c_bar = _square_from_rows(self.c_bar, self.max_deg)
        self.s_bar = _square_from_rows(self.s_bar, self.max_deg)
        self._initialize_pines_parameters()

    @classmethod
    def from_file(
        cls, path: Union[str, PathLike], max_deg: int
    ) -> "SphericalHarmonicsGravityModel":
        """Load a normalized coefficient file truncated to ``max_deg``.

        The first line holds the reference radius, mu, rotation rate, file
        degree, file order, normalization flag and reference longitude and
        latitude; each following line holds ``degree, order, C, S``.
        """
        with Path(path).open(encoding="utf-8") as handle:
            lines = iter(handle)
            header = next(lines, None)
            if header is None:
                raise GravityFileError("gravity file must contain a header line")
            header_fields = [part.strip() for part in header.split(",")]
            if len(header_fields) < 8:
                raise GravityFileError(
                    "gravity file header must have at least 8 comma-separated fields"
                )

            rad_equator = _parse(float, header_fields[0], "reference radius")
            mu = _parse(float, header_fields[1], "mu")
            rotation_rate = _parse(float, header_fields[2], "rotation rate")
            max_degree_file = _parse_count(header_fields[3], "max degree")
            max_order_file = _parse_count(header_fields[4], "max order")
            normalized = _parse_count(header_fields[5], "normalization flag") == 1
            ref_long = _parse(float, header_fields[6], "reference longitude")
            ref_lat = _parse(float, header_fields[7], "reference latitude")

            if max_degree_file < max_deg or max_order_file < max_deg:
                raise GravityFileError(
                    f"requested degree {max_deg}, but file only supports "
                    f"degree/order {min(max_degree_file, max_order_file)}"
                )
            if not normalized:
                raise GravityFileError(
                    "only normalized spherical harmonics coefficients are supported"
                )
            if ref_long != 0.0 or ref_lat != 0.0:
                raise GravityFileError(
                    "reference longitude/latitude must both be zero"
                )

            c_bar = np.zeros((max_deg + 1, max_deg + 1))
            s_bar = np.zeros((max_deg + 1, max_deg + 1))
            for line in lines:
                if not line.strip():
                    continue
                fields = [part.strip() for part in line.split(",")]
                if len(fields) < 4:
                    continue
                degree = _parse_count(fields[0], "coefficient degree")
                order = _parse_count(fields[1], "coefficient order")
                if degree > max_deg or order > max_deg or order > degree:
                    continue
                c_bar[degree, order] = _parse(float, fields[2], "normalized C coefficient")
                s_bar[degree, order] = _parse(float, fields[3], "normalized S coefficient")

        return cls(rad_equator, mu, rotation_rate, max_deg, c_bar, s_bar)

    def _initialize_pines_parameters(self) -> None:
        size = self.max_deg + 2
        a_bar_seed = np.zeros((size, size))
        n1 = np.zeros((size, size))
        n2 = np.zeros((size, size))
        for i in range(size):
            if i == 0:
                a_bar_seed[0, 0] = 1.0
            else:
                a_bar_seed[i, i] = (
                    math.sqrt((2 * i + 1) * _k(i) / (2 * i) / _k(i - 1))
                    * a_bar_seed[i - 1, i - 1]
                )
            for m in range(i - 1):
                n1[i, m] = math.sqrt(
                    ((2 * i + 1) * (2 * i - 1)) / ((i - m) * (i + m))
                )
                n2[i, m] = math.sqrt(
                    ((i + m - 1) * (2 * i + 1) * (i - m - 1))
                    / ((i + m) * (i - m) * (2 * i - 3))
                )

        n_quot1 = np.zeros((size - 1, size - 1))
        n_quot2 = np.zeros((size - 1, size - 1))
        for l in range(self.max_deg + 1):
            for m in range(l + 1):
                if m < l:
                    n_quot1[l, m] = math.sqrt(
                        (l - m) * _k(m) * (l + m + 1) / _k(m + 1)
                    )
                n_quot2[l, m] = math.sqrt(
                    (l + m + 2) * (l + m + 1) * (2 * l + 1) * _k(m)
                    / ((2 * l + 3) * _k(m + 1))
                )

        self._a_bar_seed = a_bar_seed
        self._n1 = n1
        self._n2 = n2
        self._n_quot1 = n_quot1
        self._n_quot2 = n_quot2

    def compute_field(
        self, position: ArrayLike3, degree: int, include_zero_degree: bool
    ) -> np.ndarray:
        """Acceleration in m/s^2 at a body-fixed ``position`` in metres."""
        if degree > self.max_deg:
            raise ValueError(
                f"requested spherical harmonics degree {degree}, "
                f"but maximum available is {self.max_deg}"
            )
        if degree < 0:
            raise ValueError("degree must be non-negative")

        position = _as_vector(position)
        radius = float(np.linalg.norm(position))
        if radius == 0.0:
            return np.zeros(3)

        s, t, u = position / radius
        a_bar = self._a_bar_seed.copy()
        r_e = np.zeros(degree + 2)
        i_m = np.zeros(degree + 2)
        rho_l = np.zeros(degree + 2)

        for l in range(1, degree + 2):
            a_bar[l, l - 1] = math.sqrt(2 * l * _k(l - 1) / _k(l)) * a_bar[l, l] * u

        r_e[0] = 1.0
        for m in range(degree + 2):
            for l in range(m + 2, degree + 2):
                a_bar[l, m] = (
                    u * self._n1[l, m] * a_bar[l - 1, m]
                    - self._n2[l, m] * a_bar[l - 2, m]
                )
            if m > 0:
                r_e[m] = s * r_e[m - 1] - t * i_m[m - 1]
                i_m[m] = s * i_m[m - 1] + t * r_e[m - 1]

        rho = self.rad_equator / radius
        rho_l[0] = self.mu / radius
        rho_l[1] = rho_l[0] * rho

        a1 = a2 = a3 = 0.0
        a4 = -rho_l[1] / self.rad_equator if include_zero_degree else 0.0

        for l in range(1, degree + 1):
            rho_l[l + 1] = rho * rho_l[l]
            orders = np.arange(l + 1)
            c_row = self.c_bar[l, : l + 1]
            s_row = self.s_bar[l, : l + 1]
            r_prev = np.concatenate(([0.0], r_e[:l]))
            i_prev = np.concatenate(([0.0], i_m[:l]))

            d = c_row * r_e[: l + 1] + s_row * i_m[: l + 1]
            e = c_row * r_prev + s_row * i_prev
            f = s_row * r_prev - c_row * i_prev
            a_row = a_bar[l, : l + 1]

            sum_a1 = float(np.sum(orders * a_row * e))
            sum_a2 = float(np.sum(orders * a_row * f))
            sum_a3 = float(np.sum(self._n_quot1[l, :l] * a_bar[l, 1 : l + 1] * d[:l]))
            sum_a4 = float(np.sum(self._n_quot2[l, : l + 1] * a_bar[l + 1, 1 : l + 2] * d))

            scale = rho_l[l + 1] / self.rad_equator
            a1 += scale * sum_a1
            a2 += scale * sum_a2
            a3 += scale * sum_a3
            a4 -= scale * sum_a4

        return np.array([a1 + s * a4, a2 + t * a4, a3 + u * a4])


def _parse(kind, text: str, what: str):
    try:
        return kind(text)
    except ValueError as error:
        raise GravityFileError(f"failed to parse gravity {what}: {text!r}") from error


def _parse_count(text: str, what: str) -> int:
    value = _parse(int, text, what)
    if value < 0:
        raise GravityFileError(f"failed to parse gravity {what}: {text!r}")
    return value