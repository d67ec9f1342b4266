"""JPL Small-Body Database (SBDB) client.

Fetches osculating orbital elements and physical parameters for single
objects and for the NEO/PHA catalog. The SBDB API is public and needs no
account.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

import requests

logger = logging.getLogger(__name__)

from neorisk.core.elements import Asteroid, OrbitalElements
from neorisk.core.errors import ValidationError

# SBDB query caps a single page at this many rows
MAX_QUERY_LIMIT = 10000

CATALOG_FIELDS = ("spkid", "full_name", "neo", "pha", "H", "diameter", "a", "e", "i", "om", "w", "ma", "epoch")


def _to_float(value: Any) -> float | None:
    """Parse an SBDB numeric field; SBDB sends numbers as strings and blanks as null."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass
class SBDBClient:
    """Client for the JPL SBDB object and query APIs.

    Attributes:
        timeout: Timeout for single-object requests in seconds.
        catalog_timeout: Timeout for catalog queries in seconds.
    """

    timeout: float = 10.0
    catalog_timeout: float = 30.0
    _session: requests.Session = field(default_factory=requests.Session, repr=False)

    BASE_URL = "https://ssd-api.jpl.nasa.gov"
    OBJECT_URL = f"{BASE_URL}/sbdb.api"
    QUERY_URL = f"{BASE_URL}/sbdb_query.api"

    def _get_json(self, url: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
        """GET a JSON document.

        Raises:
            requests.HTTPError: If the request fails.
        """
        response = self._session.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()

    def fetch_asteroid(self, designation: str) -> Asteroid:
        """Fetch orbital elements and physical data for one object.

        Args:
            designation: SBDB search string (e.g. "99942" for Apophis).

        Returns:
            Asteroid with orbital elements.

        Raises:
            ValueError: If the response carries no orbit data.
            ValidationError: If the returned elements are not a bound orbit.
            requests.HTTPError: If the request fails.
        """
        payload = self._get_json(
            self.OBJECT_URL,
            {"sstr": designation, "orbit-fmt": "json", "phys-par": "1"},
            self.timeout,
        )

        orbit = payload.get("orbit") or {}
        rows = orbit.get("elements")
        if not rows:
            logger.error("SBDB returned no orbit data for %s", designation)
            raise ValueError(f"No orbital data found for {designation}")

        values = {row.get("name"): row.get("value") for row in rows}
        elements = OrbitalElements.from_dict({
            "a": values.get("a"),
            "e": values.get("e"),
            "i": values.get("i"),
            "om": values.get("om"),
            "w": values.get("w"),
            "ma": values.get("ma"),
            "epoch": orbit.get("epoch"),
        })

        obj = payload.get("object") or {}
        physical = {row.get("name"): row.get("value") for row in payload.get("phys_par") or []}

        asteroid = Asteroid(
            name=obj.get("fullname") or obj.get("des") or designation,
            is_hazardous=obj.get("pha") is True,
            diameter_km=_to_float(physical.get("diameter")),
            absolute_magnitude=_to_float(physical.get("H")),
            orbital_elements=elements,
        )
        logger.debug("Fetched %s: a=%.4f AU e=%.4f", asteroid.name,
                     elements.semi_major_axis_au, elements.eccentricity)
        return asteroid

    def fetch_neo_catalog(self, *, limit: int = 1000, pha_only: bool = False) -> list[Asteroid]:
        """Fetch the near-Earth asteroid catalog.

        Rows without ``a``, ``e`` or ``epoch``, or whose elements are not a
        bound orbit, are skipped. Missing angles default to 0.

        Args:
            limit: Maximum rows to request (capped at 10,000).
            pha_only: Restrict the query to Potentially Hazardous Asteroids.

        Returns:
            List of Asteroid objects.

        Raises:
            requests.HTTPError: If the request fails.
        """
        params = {
            "fields": ",".join(CATALOG_FIELDS),
            "sb-kind": "a",
            "sb-group": "pha" if pha_only else "neo",
            "full-prec": "true",
            "limit": min(limit, MAX_QUERY_LIMIT),
        }
        payload = self._get_json(self.QUERY_URL, params, self.catalog_timeout)

        names = payload.get("fields") or []
        data = payload.get("data")
        if not isinstance(data, list):
            logger.info("SBDB catalog query returned no data")
            return []

        index = {name: i for i, name in enumerate(names)}
        asteroids: list[Asteroid] = []
        skipped = 0

        for row in data:
            def value(name: str) -> Any:
                i = index.get(name)
                return row[i] if i is not None and i < len(row) else None

            a, e, epoch = _to_float(value("a")), _to_float(value("e")), _to_float(value("epoch"))
            if a is None or e is None or epoch is None:
                skipped += 1
                continue

            try:
                elements = OrbitalElements(
                    semi_major_axis_au=a,
                    eccentricity=e,
                    inclination_deg=_to_float(value("i")) or 0.0,
                    longitude_asc_node_deg=_to_float(value("om")) or 0.0,
                    arg_perihelion_deg=_to_float(value("w")) or 0.0,
                    mean_anomaly_deg=_to_float(value("ma")) or 0.0,
                    epoch_jd=epoch,
                )
            except ValidationError as exc:
                logger.warning("Skipping %s: %s", value("full_name") or value("spkid"), exc)
                skipped += 1
                continue

            spkid = value("spkid")
            full_name = (value("full_name") or "").strip()
            asteroids.append(Asteroid(
                name=full_name or f"SPK{spkid}",
                is_hazardous=value("pha") == "Y",
                diameter_km=_to_float(value("diameter")),
                absolute_magnitude=_to_float(value("H")),
                orbital_elements=elements,
            ))

        if skipped:
            logger.warning("Skipped %d catalog rows with missing or invalid elements", skipped)
        logger.info("Fetched %d asteroids from SBDB (%s)", len(asteroids), "pha" if pha_only else "neo")
        return asteroids
