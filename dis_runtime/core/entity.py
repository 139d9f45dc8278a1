"""
Entity data model for the DIS runtime.

Every remote entity seen on the network is described by one canonical
EntityStateRecord. The smaller records here mirror the fixed-width DIS
structures (IDs, types, dead reckoning parameters) so the codec can map
them one-to-one onto the wire.
"""

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any

# Appearance bit that marks an entity as deactivated
DEACTIVATED_APPEARANCE_BIT = 23

OTHER_PARAMETERS_LENGTH = 15
MARKING_LENGTH = 11


class ForceID(IntEnum):
    """Force affiliation (SISO-REF-010)."""
    OTHER = 0
    FRIENDLY = 1
    OPPOSING = 2
    NEUTRAL = 3


class DeadReckoningAlgorithm(IntEnum):
    """Dead reckoning algorithm identifiers.

    Naming: F/R = fixed or rotating orientation, P/V = first or second
    order position, W/B = world or body coordinates.
    """
    OTHER = 0
    STATIC = 1
    FPW = 2
    RPW = 3
    RVW = 4
    FVW = 5
    FPB = 6
    RPB = 7
    RVB = 8
    FVB = 9


@dataclass
class Vector3:
    """Cartesian triple. Locations are ECEF metres, velocities m/s."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Vector3":
        return cls(x=d.get("x", 0.0), y=d.get("y", 0.0), z=d.get("z", 0.0))


@dataclass
class Orientation:
    """DIS Euler angles in radians: psi (yaw), theta (pitch), phi (roll)."""
    psi: float = 0.0
    theta: float = 0.0
    phi: float = 0.0

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.psi, self.theta, self.phi)

    def to_dict(self) -> dict[str, float]:
        return {"psi": self.psi, "theta": self.theta, "phi": self.phi}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Orientation":
        return cls(psi=d.get("psi", 0.0), theta=d.get("theta", 0.0), phi=d.get("phi", 0.0))


@dataclass(frozen=True)
class EntityID:
    """Unique entity identifier within an exercise."""
    site: int = 0
    application: int = 0
    entity: int = 0

    def __str__(self) -> str:
        return f"{self.site}:{self.application}:{self.entity}"

    def to_dict(self) -> dict[str, int]:
        return {"site": self.site, "application": self.application, "entity": self.entity}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "EntityID":
        return cls(site=d["site"], application=d["application"], entity=d["entity"])


@dataclass
class EntityType:
    """Entity classification. domain=1 is land, kind=2 is munition."""
    kind: int = 0
    domain: int = 0
    country: int = 0
    category: int = 0
    subcategory: int = 0
    specific: int = 0
    extra: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "kind": self.kind,
            "domain": self.domain,
            "country": self.country,
            "category": self.category,
            "subcategory": self.subcategory,
            "specific": self.specific,
            "extra": self.extra,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "EntityType":
        return cls(**{k: d.get(k, 0) for k in (
            "kind", "domain", "country", "category", "subcategory", "specific", "extra",
        )})


@dataclass
class EventID:
    """Associates a Fire PDU with its Detonation PDU."""
    site: int = 0
    application: int = 0
    event_number: int = 0


@dataclass
class BurstDescriptor:
    """Munition description carried by Fire and Detonation PDUs."""
    munition: EntityType = field(default_factory=EntityType)
    warhead: int = 0
    fuse: int = 0
    quantity: int = 0
    rate: int = 0


@dataclass
class ArticulationParameter:
    """One 16-byte articulation (variable) parameter record."""
    parameter_type_designator: int = 0
    change_indicator: int = 0
    part_attached_to: int = 0
    parameter_type: int = 0
    parameter_value: float = 0.0


@dataclass
class ClockTime:
    """DIS clock time: hours since 1970 plus time past the hour."""
    hour: int = 0
    time_past_hour: int = 0


@dataclass
class DeadReckoningParameters:
    """Dead reckoning algorithm and its inputs.

    other_parameters[0] selects an orientation override: 1 for Euler
    angles, 2 for a quaternion. Bytes 1..14 hold the payload.
    """
    algorithm: int = DeadReckoningAlgorithm.OTHER
    other_parameters: bytes = bytes(OTHER_PARAMETERS_LENGTH)
    linear_acceleration: Vector3 = field(default_factory=Vector3)
    angular_velocity: Vector3 = field(default_factory=Vector3)

    def to_dict(self) -> dict[str, Any]:
        return {
            "algorithm": int(self.algorithm),
            "other_parameters": self.other_parameters.hex(),
            "linear_acceleration": self.linear_acceleration.to_dict(),
            "angular_velocity": self.angular_velocity.to_dict(),
        }


@dataclass
class EntityStateRecord:
    """
    Canonical state of one DIS entity.

    Built from a full Entity State PDU, partially refreshed by Entity State
    Update PDUs, and used as the starting point for every dead reckoning
    step. Locations are ECEF metres in double precision.
    """
    entity_id: EntityID = field(default_factory=EntityID)
    entity_type: EntityType = field(default_factory=EntityType)
    force_id: int = ForceID.OTHER
    alternative_entity_type: EntityType = field(default_factory=EntityType)
    location: Vector3 = field(default_factory=Vector3)
    orientation: Orientation = field(default_factory=Orientation)
    linear_velocity: Vector3 = field(default_factory=Vector3)
    appearance: int = 0
    dead_reckoning: DeadReckoningParameters = field(default_factory=DeadReckoningParameters)
    marking: str = ""
    marking_character_set: int = 1
    capabilities: int = 0
    articulation_parameters: list[ArticulationParameter] = field(default_factory=list)

    @property
    def number_of_articulation_parameters(self) -> int:
        return len(self.articulation_parameters)

    @property
    def is_deactivated(self) -> bool:
        """True when appearance bit 23 is set."""
        return bool(self.appearance & (1 << DEACTIVATED_APPEARANCE_BIT))

    def with_pose(self, location: Vector3, orientation: Orientation) -> "EntityStateRecord":
        """Copy of this record with a new position and orientation."""
        return replace(self, location=location, orientation=orientation)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dictionary."""
        return {
            "entity_id": self.entity_id.to_dict(),
            "entity_type": self.entity_type.to_dict(),
            "force_id": int(self.force_id),
            "location": self.location.to_dict(),
            "orientation": self.orientation.to_dict(),
            "linear_velocity": self.linear_velocity.to_dict(),
            "appearance": self.appearance,
            "dead_reckoning": self.dead_reckoning.to_dict(),
            "marking": self.marking,
            "capabilities": self.capabilities,
            "number_of_articulation_parameters": self.number_of_articulation_parameters,
        }
