from typing import Any, Dict, Iterable, List, Optional, Tuple
import json
import os
import re

from planner.errors import CatalogError
from planner.obs.logger import log_event
from planner.types import Destination, TravelPackage


_DAYS = re.compile(r"(\d+)\s*Days?", re.IGNORECASE)
_NIGHTS = re.compile(r"(\d+)\s*Nights?", re.IGNORECASE)


def parse_duration_days(duration: Optional[str]) -> Optional[int]:
    """'5 Nights / 6 Days' -> 6; '4 Nights' -> 5; unparseable -> None."""
    if not duration:
        return None
    m = _DAYS.search(duration)
    if m:
        return int(m.group(1))
    m = _NIGHTS.search(duration)
    if m:
        return int(m.group(1)) + 1
    return None


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


class Catalog:
    """Immutable destinations and packages, loaded once and shared by all sessions.

    Package records may use snake_case keys or the spreadsheet headers the
    package sheet is exported with. Records without an id get a stable one
    derived from destination and position.
    """

    def __init__(self, packages: Iterable[Any] = (), destinations: Iterable[Any] = ()):
        self.packages: Tuple[TravelPackage, ...] = tuple(
            self._to_package(p, i) for i, p in enumerate(packages)
        )
        self.destinations: Tuple[Destination, ...] = tuple(
            d if isinstance(d, Destination) else Destination.model_validate(d)
            for d in destinations
        )
        self._by_id: Dict[str, TravelPackage] = {p.id: p for p in self.packages}
        if len(self._by_id) != len(self.packages):
            raise CatalogError("duplicate package ids in catalog")
        self._destinations_by_name: Dict[str, Destination] = {
            d.name.lower(): d for d in self.destinations
        }

    @staticmethod
    def _to_package(raw: Any, index: int) -> TravelPackage:
        if isinstance(raw, TravelPackage):
            if raw.duration_days is None:
                return raw.model_copy(update={"duration_days": parse_duration_days(raw.duration)})
            return raw
        data = dict(raw)
        name = data.get("destination_name") or data.get("Destination_Name") or ""
        if not data.get("id"):
            data["id"] = data.pop("Package_ID", None) or f"{_slug(name) or 'package'}-{index + 1}"
        if data.get("duration_days") is None:
            data["duration_days"] = parse_duration_days(data.get("duration") or data.get("Duration"))
        try:
            return TravelPackage.model_validate(data)
        except Exception as e:
            raise CatalogError(f"invalid package record #{index + 1}: {e}") from e

    @property
    def destination_names(self) -> List[str]:
        """Names the destination extractor matches against, in catalog order.

        Falls back to the packages' destination names when the catalog has no
        destination list.
        """
        if self.destinations:
            return [d.name for d in self.destinations]
        seen = set()
        names: List[str] = []
        for p in self.packages:
            key = p.destination_name.lower()
            if key not in seen:
                seen.add(key)
                names.append(p.destination_name)
        return names

    def get_destination(self, name: str) -> Optional[Destination]:
        return self._destinations_by_name.get((name or "").lower())

    def get_package(self, package_id: str) -> Optional[TravelPackage]:
        return self._by_id.get(package_id)

    def __len__(self) -> int:
        return len(self.packages)


def load_catalog(path: str) -> Catalog:
    """Read a catalog JSON file.

    Accepts ``{"destinations": [...], "packages": [...]}`` or a bare list of
    package records.
    """
    if not os.path.exists(path):
        raise CatalogError(f"catalog file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"could not read catalog {path}: {e}") from e

    if isinstance(raw, list):
        catalog = Catalog(packages=raw)
    elif isinstance(raw, dict):
        catalog = Catalog(packages=raw.get("packages", []), destinations=raw.get("destinations", []))
    else:
        raise CatalogError(f"unexpected catalog layout in {path}")

    log_event(
        "catalog_loaded",
        path=path,
        packages=len(catalog.packages),
        destinations=len(catalog.destination_names),
    )
    return catalog
