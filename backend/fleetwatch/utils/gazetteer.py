"""Reference location table (gazetteer) for destinations and port areas.

Loaded from config/reference_ports.yaml. A production deployment would back
this with an external gazetteer; lookups here are exact-name matches with a
case-insensitive fallback.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml

from fleetwatch.utils.geo import haversine_meters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferencePort:
    name: str
    lat: float
    lon: float
    radius_m: float

    def contains(self, lat: float, lon: float) -> bool:
        return haversine_meters(lat, lon, self.lat, self.lon) <= self.radius_m


class Gazetteer:
    def __init__(self, ports: Iterable[ReferencePort] = ()):
        self._ports: dict[str, ReferencePort] = {p.name: p for p in ports}
        self._folded = {name.casefold(): p for name, p in self._ports.items()}

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Gazetteer":
        config_path = Path(path)
        if not config_path.exists():
            logger.warning("reference_ports.yaml not found at %s", config_path)
            return cls()
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        ports = []
        for entry in raw.get("reference_ports", []):
            try:
                ports.append(ReferencePort(
                    name=str(entry["name"]).strip(),
                    lat=float(entry["lat"]),
                    lon=float(entry["lon"]),
                    radius_m=float(entry.get("radius_m", 5000)),
                ))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed reference port %r: %s", entry, exc)
        logger.info("Loaded %d reference ports", len(ports))
        return cls(ports)

    def resolve(self, name: str | None) -> ReferencePort | None:
        if not name:
            return None
        name = name.strip()
        return self._ports.get(name) or self._folded.get(name.casefold())

    def port_at(self, lat: float, lon: float) -> ReferencePort | None:
        """First reference port whose area contains the position."""
        for port in self._ports.values():
            if port.contains(lat, lon):
                return port
        return None

    def ports(self) -> list[ReferencePort]:
        return list(self._ports.values())

    def __len__(self) -> int:
        return len(self._ports)
