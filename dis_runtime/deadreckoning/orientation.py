"""
Orientation building blocks for dead reckoning.

Covers the two orientation overrides a sender can pack into the
dead reckoning "other parameters" blob, the closed-form delta rotation
for a constant body angular velocity, Euler extraction from a rotation
matrix, and the integral matrices used by body-frame position
extrapolation.

Every coefficient of the form f(m*t)/m^k switches to its Taylor series
when m*t is small. Zero angular velocity therefore produces an exact
identity rotation and straight-line translation instead of 0/0.
"""

import math

import numpy as np

from dis_runtime.core.entity import OTHER_PARAMETERS_LENGTH, Orientation
from dis_runtime.geodesy.frames import euler_to_matrix, quaternion_to_euler, skew

EULER_OVERRIDE = 1
QUATERNION_OVERRIDE = 2

# Below this value of |omega| * t the series forms are used
SMALL_ANGLE = 1e-2

# Stand-in for cos(theta) at exactly +/- 90 degrees pitch
GIMBAL_LOCK_COS = 1e-5


def _clamp(value: float) -> float:
    return max(-1.0, min(1.0, value))


def _payload_floats(other_parameters: bytes) -> np.ndarray:
    """Bytes [3, 15) as three big-endian float32 values."""
    return np.frombuffer(bytes(other_parameters[3:15]), dtype=">f4").astype(np.float64)


def decode_euler_override(other_parameters: bytes) -> Orientation | None:
    """Euler angles (radians) carried in the other parameters, if present."""
    if len(other_parameters) < OTHER_PARAMETERS_LENGTH or other_parameters[0] != EULER_OVERRIDE:
        return None
    psi, theta, phi = _payload_floats(other_parameters)
    return Orientation(float(psi), float(theta), float(phi))


def decode_quaternion_override(other_parameters: bytes) -> tuple[float, float, float, float] | None:
    """
    Quaternion (x, y, z, w) carried in the other parameters, if present.

    The transmitted u16 scalar part is only an approximation, so w is
    recomputed from the vector part and clamped to stay real.
    """
    if len(other_parameters) < OTHER_PARAMETERS_LENGTH or other_parameters[0] != QUATERNION_OVERRIDE:
        return None
    x, y, z = (float(v) for v in _payload_floats(other_parameters))
    w = math.sqrt(max(0.0, 1.0 - x * x - y * y - z * z))
    return x, y, z, w


def quaternion_override_orientation(other_parameters: bytes) -> Orientation | None:
    quaternion = decode_quaternion_override(other_parameters)
    if quaternion is None:
        return None
    return Orientation(*quaternion_to_euler(*quaternion))


def _rotation_coefficients(m: float, t: float) -> tuple[float, float, float]:
    """Coefficients of (Omega, I, skew(omega)) in the delta rotation matrix."""
    x = m * t
    if x < SMALL_ANGLE:
        x2 = x * x
        return t * t * (0.5 - x2 / 24.0), math.cos(x), t * (1.0 - x2 / 6.0)
    return (1.0 - math.cos(x)) / (m * m), math.cos(x), math.sin(x) / m


def dead_reckoning_matrix(angular_velocity, t: float) -> np.ndarray:
    """Delta rotation for constant body angular velocity over t seconds."""
    omega = np.asarray(angular_velocity, dtype=np.float64)
    m = float(np.linalg.norm(omega))
    c_outer, c_identity, c_skew = _rotation_coefficients(m, t)
    return c_outer * np.outer(omega, omega) + c_identity * np.identity(3) - c_skew * skew(omega)


def matrix_to_euler(matrix: np.ndarray) -> Orientation:
    """Extract (psi, theta, phi) radians from a DIS orientation matrix."""
    theta = math.asin(_clamp(-matrix[0][2]))
    cos_theta = math.cos(theta)
    if abs(theta) == math.pi / 2:
        cos_theta = GIMBAL_LOCK_COS

    psi = math.acos(_clamp(matrix[0][0] / cos_theta)) * math.copysign(1.0, matrix[0][1])
    phi = math.acos(_clamp(matrix[2][2] / cos_theta)) * math.copysign(1.0, matrix[1][2])
    return Orientation(psi=psi, theta=theta, phi=phi)


def extrapolate_orientation(orientation: Orientation, angular_velocity, t: float) -> Orientation:
    """Rotate an orientation by a constant body angular velocity for t seconds."""
    omega = np.asarray(angular_velocity, dtype=np.float64)
    if not omega.any():
        return Orientation(orientation.psi, orientation.theta, orientation.phi)
    initial = euler_to_matrix(orientation.psi, orientation.theta, orientation.phi)
    return matrix_to_euler(dead_reckoning_matrix(omega, t) @ initial)


def body_integral_matrices(angular_velocity, t: float) -> tuple[np.ndarray, np.ndarray]:
    """
    First and second time integrals of the body rotation, R1 and R2.

    Body displacement over t is R1 @ v + R2 @ a. With zero angular
    velocity these reduce to t*I and t**2/2*I.
    """
    omega = np.asarray(angular_velocity, dtype=np.float64)
    m = float(np.linalg.norm(omega))
    x = m * t
    outer = np.outer(omega, omega)
    identity = np.identity(3)
    cross = skew(omega)

    if x < SMALL_ANGLE:
        x2 = x * x
        r1 = (
            t ** 3 * (1.0 / 6.0 - x2 / 120.0) * outer
            + t * (1.0 - x2 / 6.0) * identity
            + t * t * (0.5 - x2 / 24.0) * cross
        )
        r2 = (
            t ** 4 * (1.0 / 8.0 - x2 / 144.0) * outer
            + t * t * (0.5 - x2 / 8.0) * identity
            + t ** 3 * (1.0 / 3.0 - x2 / 30.0) * cross
        )
        return r1, r2

    s, c = math.sin(x), math.cos(x)
    r1 = (
        (x - s) / m ** 3 * outer
        + s / m * identity
        + (1.0 - c) / m ** 2 * cross
    )
    r2 = (
        (0.5 * x * x - c - x * s + 1.0) / m ** 4 * outer
        + (c + x * s - 1.0) / m ** 2 * identity
        + (s - x * c) / m ** 3 * cross
    )
    return r1, r2
