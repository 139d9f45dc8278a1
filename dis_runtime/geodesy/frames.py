"""
Reference frame conversions.

DIS orientation (psi, theta, phi) is measured against the fixed ECEF axes,
while hosts think in a local tangent frame: heading from north, pitch
above the horizon, roll about the nose. Everything here is built on one
primitive, a right-handed Rodrigues rotation about an arbitrary axis.

Angles at the public boundary are degrees unless the function name says
radians. Vectors are numpy float64 arrays of shape (3,).
"""

import math
from dataclasses import dataclass

import numpy as np

from dis_runtime.core.entity import EntityStateRecord
from dis_runtime.geodesy.ellipsoid import ecef_to_llh

X_AXIS = np.array([1.0, 0.0, 0.0])
Y_AXIS = np.array([0.0, 1.0, 0.0])
Z_AXIS = np.array([0.0, 0.0, 1.0])


@dataclass
class NorthEastDown:
    """Local tangent basis expressed in ECEF axes."""
    north: np.ndarray
    east: np.ndarray
    down: np.ndarray


@dataclass
class EastNorthUp:
    """Local tangent basis in east, north, up order, expressed in ECEF axes."""
    east: np.ndarray
    north: np.ndarray
    up: np.ndarray


@dataclass
class HeadingPitchRoll:
    heading: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0


@dataclass
class PsiThetaPhi:
    psi: float = 0.0
    theta: float = 0.0
    phi: float = 0.0


@dataclass
class GeodeticPose:
    """Entity pose as a host sees it. Angles in degrees."""
    latitude: float
    longitude: float
    height: float
    heading: float
    pitch: float
    roll: float

    def to_dict(self) -> dict[str, float]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "height": self.height,
            "heading": self.heading,
            "pitch": self.pitch,
            "roll": self.roll,
        }


def skew(v) -> np.ndarray:
    """Cross-product matrix: skew(v) @ u == np.cross(v, u)."""
    x, y, z = v
    return np.array([
        [0.0, -z, y],
        [z, 0.0, -x],
        [-y, x, 0.0],
    ])


def rotation_matrix(axis, angle: float) -> np.ndarray:
    """Right-handed rotation of `angle` radians about `axis`."""
    n = np.asarray(axis, dtype=np.float64)
    norm = np.linalg.norm(n)
    if norm == 0.0:
        return np.identity(3)
    n = n / norm
    c = math.cos(angle)
    s = math.sin(angle)
    return c * np.identity(3) + s * skew(n) + (1.0 - c) * np.outer(n, n)


def rotate_around_axis(vector, axis, angle: float) -> np.ndarray:
    """Rotate `vector` about `axis` by `angle` radians."""
    return rotation_matrix(axis, angle) @ np.asarray(vector, dtype=np.float64)


def rotate_around_axis_degrees(vector, axis, angle: float) -> np.ndarray:
    return rotate_around_axis(vector, axis, math.radians(angle))


def north_east_down_at(latitude: float, longitude: float) -> NorthEastDown:
    """Local NED unit vectors at a geodetic latitude/longitude (degrees)."""
    north = Z_AXIS.copy()
    east = Y_AXIS.copy()
    down = -X_AXIS

    east = rotate_around_axis_degrees(east, north, longitude)
    down = rotate_around_axis_degrees(down, north, longitude)

    north = rotate_around_axis_degrees(north, -east, latitude)
    down = rotate_around_axis_degrees(down, -east, latitude)
    return NorthEastDown(north=north, east=east, down=down)


def lat_lon_from_north_east_down(ned: NorthEastDown) -> tuple[float, float]:
    """Recover (latitude, longitude) in degrees from a local NED basis."""
    latitude = math.degrees(math.asin(max(-1.0, min(1.0, -ned.down[2]))))
    # East has no latitude component, so longitude stays defined at the poles
    longitude = math.degrees(math.atan2(-ned.east[0], ned.east[1]))
    return latitude, longitude


def east_north_up_from_north_east_down(ned: NorthEastDown) -> EastNorthUp:
    return EastNorthUp(east=ned.east.copy(), north=ned.north.copy(), up=-ned.down)


def north_east_down_from_east_north_up(enu: EastNorthUp) -> NorthEastDown:
    return NorthEastDown(north=enu.north.copy(), east=enu.east.copy(), down=-enu.up)


def convert_ned_and_enu(basis) -> np.ndarray:
    """
    Swap a 3x3 basis between NED and ENU column order.

    Columns are the basis vectors. The first two columns trade places and
    the third is negated; applying it twice gives back the input.
    """
    m = np.asarray(basis, dtype=np.float64)
    return np.column_stack((m[:, 1], m[:, 0], -m[:, 2]))


def apply_heading_pitch(heading: float, pitch: float, ned: NorthEastDown) -> NorthEastDown:
    """Yaw about down, then pitch about the yawed east axis. Degrees."""
    x = rotate_around_axis_degrees(ned.north, ned.down, heading)
    y = rotate_around_axis_degrees(ned.east, ned.down, heading)
    x = rotate_around_axis_degrees(x, y, pitch)
    z = rotate_around_axis_degrees(ned.down, y, pitch)
    return NorthEastDown(north=x, east=y, down=z)


def apply_heading_pitch_roll(hpr: HeadingPitchRoll, ned: NorthEastDown) -> NorthEastDown:
    """Body axes (forward, right, down) after heading, pitch then roll."""
    axes = apply_heading_pitch(hpr.heading, hpr.pitch, ned)
    y = rotate_around_axis_degrees(axes.east, axes.north, hpr.roll)
    z = rotate_around_axis_degrees(axes.down, axes.north, hpr.roll)
    return NorthEastDown(north=axes.north, east=y, down=z)


def _fixed_frame() -> NorthEastDown:
    return NorthEastDown(north=X_AXIS.copy(), east=Y_AXIS.copy(), down=Z_AXIS.copy())


def psi_theta_phi_from_heading_pitch_roll(
    hpr: HeadingPitchRoll, latitude: float, longitude: float,
) -> PsiThetaPhi:
    """Local heading/pitch/roll (degrees) to DIS Euler angles (degrees)."""
    ned = north_east_down_at(latitude, longitude)
    body = apply_heading_pitch_roll(hpr, ned)
    x, y = body.north, body.east

    psi = math.degrees(math.atan2(x @ Y_AXIS, x @ X_AXIS))
    theta = math.degrees(math.atan2(-(x @ Z_AXIS), math.hypot(x @ X_AXIS, x @ Y_AXIS)))

    reference = apply_heading_pitch(psi, theta, _fixed_frame())
    phi = math.degrees(math.atan2(y @ reference.down, y @ reference.east))
    return PsiThetaPhi(psi, theta, phi)


def heading_pitch_roll_from_psi_theta_phi(
    ptp: PsiThetaPhi, latitude: float, longitude: float,
) -> HeadingPitchRoll:
    """DIS Euler angles (degrees) to local heading/pitch/roll (degrees)."""
    ned = north_east_down_at(latitude, longitude)
    body = apply_heading_pitch_roll(HeadingPitchRoll(ptp.psi, ptp.theta, ptp.phi), _fixed_frame())
    x, y = body.north, body.east

    heading = math.degrees(math.atan2(x @ ned.east, x @ ned.north))
    pitch = math.degrees(math.atan2(-(x @ ned.down), math.hypot(x @ ned.east, x @ ned.north)))

    reference = apply_heading_pitch(heading, pitch, ned)
    roll = math.degrees(math.atan2(y @ reference.down, y @ reference.east))
    return HeadingPitchRoll(heading, pitch, roll)


def psi_theta_phi_radians_from_heading_pitch_roll(
    hpr: HeadingPitchRoll, latitude: float, longitude: float,
) -> PsiThetaPhi:
    """Radian variant: heading/pitch/roll in radians to psi/theta/phi in radians."""
    degrees = psi_theta_phi_from_heading_pitch_roll(
        HeadingPitchRoll(*(math.degrees(a) for a in (hpr.heading, hpr.pitch, hpr.roll))),
        latitude, longitude,
    )
    return PsiThetaPhi(*(math.radians(a) for a in (degrees.psi, degrees.theta, degrees.phi)))


def heading_pitch_roll_radians_from_psi_theta_phi(
    ptp: PsiThetaPhi, latitude: float, longitude: float,
) -> HeadingPitchRoll:
    """Radian variant: psi/theta/phi in radians to heading/pitch/roll in radians."""
    degrees = heading_pitch_roll_from_psi_theta_phi(
        PsiThetaPhi(*(math.degrees(a) for a in (ptp.psi, ptp.theta, ptp.phi))),
        latitude, longitude,
    )
    return HeadingPitchRoll(*(math.radians(a) for a in (degrees.heading, degrees.pitch, degrees.roll)))


def euler_to_matrix(psi: float, theta: float, phi: float) -> np.ndarray:
    """
    DIS orientation matrix from Euler angles in radians.

    R = Roll(phi) @ Pitch(theta) @ Heading(psi). Rows are the body axes
    in world coordinates, so R @ v_world gives v_body.
    """
    cps, sps = math.cos(psi), math.sin(psi)
    ct, st = math.cos(theta), math.sin(theta)
    cph, sph = math.cos(phi), math.sin(phi)
    heading = np.array([[cps, sps, 0.0], [-sps, cps, 0.0], [0.0, 0.0, 1.0]])
    pitch = np.array([[ct, 0.0, -st], [0.0, 1.0, 0.0], [st, 0.0, ct]])
    roll = np.array([[1.0, 0.0, 0.0], [0.0, cph, sph], [0.0, -sph, cph]])
    return roll @ pitch @ heading


def quaternion_to_euler(x: float, y: float, z: float, w: float) -> tuple[float, float, float]:
    """Unit quaternion to (psi, theta, phi) radians."""
    psi = math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))
    theta = math.asin(max(-1.0, min(1.0, 2.0 * (w * y - z * x))))
    phi = math.atan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))
    return psi, theta, phi


def geodetic_pose(record: EntityStateRecord) -> GeodeticPose:
    """Latitude/longitude/height and local heading/pitch/roll of an entity."""
    loc = record.location
    llh = ecef_to_llh(loc.x, loc.y, loc.z)
    o = record.orientation
    hpr = heading_pitch_roll_radians_from_psi_theta_phi(
        PsiThetaPhi(o.psi, o.theta, o.phi), llh.latitude, llh.longitude,
    )
    return GeodeticPose(
        latitude=llh.latitude,
        longitude=llh.longitude,
        height=llh.height,
        heading=math.degrees(hpr.heading),
        pitch=math.degrees(hpr.pitch),
        roll=math.degrees(hpr.roll),
    )
