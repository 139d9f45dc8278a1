"""
WGS84 ellipsoid conversions between geocentric and geodetic coordinates.

DIS carries every entity location as Earth-Centred Earth-Fixed (ECEF)
metres. Hosts usually want latitude/longitude/height, so these two
functions sit between the wire and anything that draws a map.

ECEF to geodetic uses Bowring's single-step closed form. It is
non-iterative and stays well under a millimetre for terrestrial heights,
including at the poles where the naive formula divides by zero.
"""

import math
from dataclasses import dataclass

WGS84_SEMI_MAJOR_AXIS = 6378137.0
WGS84_SEMI_MINOR_AXIS = 6356752.3142

_A = WGS84_SEMI_MAJOR_AXIS
_B = WGS84_SEMI_MINOR_AXIS
# First and second eccentricity squared
E2 = (_A * _A - _B * _B) / (_A * _A)
EP2 = (_A * _A - _B * _B) / (_B * _B)


@dataclass
class EcefLocation:
    """Geocentric position in metres."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class LatLonHeight:
    """Geodetic position: degrees, degrees, metres above the ellipsoid."""
    latitude: float = 0.0
    longitude: float = 0.0
    height: float = 0.0


def ecef_to_llh(x: float, y: float, z: float) -> LatLonHeight:
    """Convert ECEF metres to WGS84 latitude/longitude (degrees) and height."""
    p = math.hypot(x, y)
    if p == 0.0:
        # On the polar axis longitude is undefined; report 0
        latitude = math.copysign(math.pi / 2, z)
        return LatLonHeight(math.degrees(latitude), 0.0, abs(z) - _B)

    theta = math.atan2(z * _A, p * _B)
    sin_t = math.sin(theta)
    cos_t = math.cos(theta)
    latitude = math.atan2(z + EP2 * _B * sin_t ** 3, p - E2 * _A * cos_t ** 3)
    longitude = math.atan2(y, x)

    sin_lat = math.sin(latitude)
    height = p * math.cos(latitude) + z * sin_lat - _A * math.sqrt(1.0 - E2 * sin_lat * sin_lat)
    return LatLonHeight(math.degrees(latitude), math.degrees(longitude), height)


def llh_to_ecef(latitude: float, longitude: float, height: float) -> EcefLocation:
    """Convert WGS84 latitude/longitude (degrees) and height (m) to ECEF metres."""
    lat = math.radians(latitude)
    lon = math.radians(longitude)
    cos_lat = math.cos(lat)
    sin_lat = math.sin(lat)

    # Prime vertical radius of curvature
    n = _A / math.sqrt(cos_lat * cos_lat + (_B * _B) / (_A * _A) * sin_lat * sin_lat)
    n_polar = _B / math.sqrt(cos_lat * cos_lat * (_A * _A) / (_B * _B) + sin_lat * sin_lat)

    return EcefLocation(
        x=(n + height) * cos_lat * math.cos(lon),
        y=(n + height) * cos_lat * math.sin(lon),
        z=(n_polar + height) * sin_lat,
    )
