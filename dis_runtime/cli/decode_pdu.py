"""
Decode DIS PDUs from hex dumps.

Usage:
    dis-decode 06010101...
    dis-decode --file capture.txt

Each input line is one PDU as hex (whitespace ignored). Prints the
decoded fields as YAML, plus the geodetic pose for Entity State PDUs.
"""

import dataclasses
import sys
from enum import Enum
from typing import Any

import click
import yaml

from dis_runtime.codec.errors import PduDecodeError
from dis_runtime.codec.marshal import unmarshal
from dis_runtime.codec.pdus import EntityStatePdu
from dis_runtime.geodesy.frames import geodetic_pose


def _plain(value: Any) -> Any:
    """Reduce decoded records to YAML-safe builtins."""
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def decode_hex(text: str) -> dict[str, Any]:
    """Decode one hex-encoded PDU to a plain dict."""
    pdu = unmarshal(bytes.fromhex("".join(text.split())))
    result = {"pdu": type(pdu).__name__, "pdu_type": int(pdu.pdu_type)}
    result.update(_plain(dataclasses.asdict(pdu)))
    if isinstance(pdu, EntityStatePdu):
        result["geodetic"] = geodetic_pose(pdu.state).to_dict()
    return result


@click.command()
@click.argument("hex_pdus", nargs=-1)
@click.option("--file", "-f", "path", type=click.Path(exists=True), help="File with one hex PDU per line")
def main(hex_pdus: tuple[str, ...], path: str | None) -> None:
    """Decode hex-encoded DIS PDUs."""
    lines = list(hex_pdus)
    if path:
        with open(path) as f:
            lines.extend(line for line in f if line.strip() and not line.startswith("#"))

    failures = 0
    for line in lines:
        try:
            decoded = decode_hex(line)
        except (ValueError, PduDecodeError) as e:
            failures += 1
            print(f"✗ {e}")
            continue
        print(yaml.safe_dump(decoded, sort_keys=False))

    if failures:
        print(f"\n{failures} of {len(lines)} PDUs failed to decode")
        sys.exit(1)


if __name__ == "__main__":
    main()
