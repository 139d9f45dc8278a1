"""
Dead reckoning algorithm dispatch.

Each algorithm id maps to a position model (world or body frame, with or
without acceleration, with or without rotation coupling) and an
orientation model (Euler override, quaternion override or extrapolated).
The extrapolation always starts from the last authoritative record and
the total time since it arrived; results are never fed back in.
"""

import logging
from dataclasses import dataclass

import numpy as np

from dis_runtime.core.entity import DeadReckoningAlgorithm, EntityStateRecord, Orientation, Vector3
from dis_runtime.deadreckoning.orientation import (
    body_integral_matrices,
    decode_euler_override,
    extrapolate_orientation,
    quaternion_override_orientation,
)
from dis_runtime.geodesy.frames import euler_to_matrix

logger = logging.getLogger(__name__)

_ZERO = np.zeros(3)


@dataclass
class DeadReckoningResult:
    """Outcome of one extrapolation. `state` is None when unsupported."""
    supported: bool
    algorithm: int
    state: EntityStateRecord | None = None


@dataclass(frozen=True)
class AlgorithmModel:
    """How one algorithm moves and turns an entity."""
    body_frame: bool = False
    translates: bool = True
    accelerates: bool = False
    # Body rotation feeds into the translation integral
    rotation_in_translation: bool = False
    # Orientation is extrapolated (or quaternion-overridden) rather than fixed
    rotates: bool = False


ALGORITHMS: dict[int, AlgorithmModel] = {
    DeadReckoningAlgorithm.STATIC: AlgorithmModel(translates=False),
    DeadReckoningAlgorithm.FPW: AlgorithmModel(),
    DeadReckoningAlgorithm.RPW: AlgorithmModel(rotates=True),
    DeadReckoningAlgorithm.RVW: AlgorithmModel(accelerates=True, rotates=True),
    DeadReckoningAlgorithm.FVW: AlgorithmModel(accelerates=True),
    DeadReckoningAlgorithm.FPB: AlgorithmModel(body_frame=True, accelerates=True),
    DeadReckoningAlgorithm.RPB: AlgorithmModel(body_frame=True, accelerates=True, rotates=True),
    DeadReckoningAlgorithm.RVB: AlgorithmModel(
        body_frame=True, accelerates=True, rotation_in_translation=True, rotates=True,
    ),
    DeadReckoningAlgorithm.FVB: AlgorithmModel(
        body_frame=True, accelerates=True, rotation_in_translation=True,
    ),
}


def _vec(v: Vector3) -> np.ndarray:
    return np.array(v.as_tuple(), dtype=np.float64)


def world_position(location, velocity, acceleration, t: float) -> np.ndarray:
    """p0 + v*t + a*t^2/2, all in world (ECEF) coordinates."""
    p0 = np.asarray(location, dtype=np.float64)
    v = np.asarray(velocity, dtype=np.float64)
    a = np.asarray(acceleration, dtype=np.float64)
    return p0 + v * t + 0.5 * a * t * t


def body_position(location, orientation: Orientation, velocity, acceleration, angular_velocity, t: float) -> np.ndarray:
    """
    Position from body-frame velocity and acceleration.

    The acceleration is corrected for the centripetal term, integrated
    through R1/R2 in the initial body frame, then rotated back to world
    coordinates with the transpose of the initial orientation matrix.
    """
    p0 = np.asarray(location, dtype=np.float64)
    v = np.asarray(velocity, dtype=np.float64)
    omega = np.asarray(angular_velocity, dtype=np.float64)
    a = np.asarray(acceleration, dtype=np.float64) - np.cross(omega, v)

    r1, r2 = body_integral_matrices(omega, t)
    initial = euler_to_matrix(orientation.psi, orientation.theta, orientation.phi)
    return p0 + initial.T @ (r1 @ v + r2 @ a)


def _orientation(record: EntityStateRecord, model: AlgorithmModel, t: float) -> Orientation:
    dr = record.dead_reckoning
    if model.rotates:
        override = quaternion_override_orientation(dr.other_parameters)
        if override is not None:
            return override
        return extrapolate_orientation(record.orientation, dr.angular_velocity.as_tuple(), t)

    override = decode_euler_override(dr.other_parameters)
    if override is not None:
        return override
    return Orientation(record.orientation.psi, record.orientation.theta, record.orientation.phi)


def _position(record: EntityStateRecord, model: AlgorithmModel, t: float) -> np.ndarray:
    dr = record.dead_reckoning
    location = _vec(record.location)
    if not model.translates:
        return location

    velocity = _vec(record.linear_velocity)
    acceleration = _vec(dr.linear_acceleration) if model.accelerates else _ZERO
    if not model.body_frame:
        return world_position(location, velocity, acceleration, t)

    omega = _vec(dr.angular_velocity) if model.rotation_in_translation else _ZERO
    return body_position(location, record.orientation, velocity, acceleration, omega, t)


def _finite(*vectors) -> bool:
    return bool(np.isfinite([v.as_tuple() for v in vectors]).all())


def dead_reckon(record: EntityStateRecord, elapsed_s: float) -> DeadReckoningResult:
    """
    Extrapolate an entity's pose `elapsed_s` seconds past its last update.

    Only location and orientation change; every other field is copied.
    Algorithms outside 1..9 return an unsupported result and no state, as
    do non-finite inputs (inf or NaN from the wire) and non-finite results.
    """
    algorithm = int(record.dead_reckoning.algorithm)
    model = ALGORITHMS.get(algorithm)
    if model is None:
        logger.debug(f"Entity {record.entity_id}: dead reckoning algorithm {algorithm} unsupported")
        return DeadReckoningResult(supported=False, algorithm=algorithm)

    dr = record.dead_reckoning
    if not _finite(record.location, record.orientation, record.linear_velocity,
                   dr.linear_acceleration, dr.angular_velocity):
        logger.debug(f"Entity {record.entity_id}: non-finite dead reckoning inputs")
        return DeadReckoningResult(supported=False, algorithm=algorithm)

    x, y, z = _position(record, model, elapsed_s)
    orientation = _orientation(record, model, elapsed_s)
    if not np.isfinite([x, y, z, *orientation.as_tuple()]).all():
        logger.debug(f"Entity {record.entity_id}: dead reckoning produced a non-finite pose")
        return DeadReckoningResult(supported=False, algorithm=algorithm)
    state = record.with_pose(Vector3(float(x), float(y), float(z)), orientation)
    return DeadReckoningResult(supported=True, algorithm=algorithm, state=state)
