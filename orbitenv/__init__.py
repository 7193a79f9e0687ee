"""Gravity models, a multi-body gravity effector and geomagnetic frame handling."""

__version__ = "0.1.0"
__all__ = ["harmonics", "effector", "geomagnetic"]