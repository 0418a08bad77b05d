"""Destination coordinates for the revealed mission.

Mission names ("Argentina Buenos Aires North") are not addresses, so the
lookup asks the extraction model for the coordinates of the mission's main
city, optionally giving it a gazetteer of known missions to disambiguate.
The result is cached in the KV store for 24 hours and is only computed for
callers the access policy lets see the reveal.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path

from callreveal.models.revelation import Destination
from callreveal.services.access_policy import AccessState
from callreveal.services.kv_store import KVStore
from callreveal.services.llm import LLMService
from callreveal.services.revelation import RevelationService

logger = logging.getLogger(__name__)

DESTINATION_CACHE_KEY = "revelation:destination"
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class GeocodingError(Exception):
    """Raised when the geocoding provider cannot be used."""


class InvalidGeocodeResponse(GeocodingError):
    """Raised when the provider's answer has no usable numeric coordinates."""


@dataclass(frozen=True, slots=True)
class Coordinates:
    lat: float
    lng: float


def load_missions_list(path: Path | None) -> str | None:
    """Read the optional gazetteer file. Missing file → None (logged)."""
    if path is None:
        return None
    try:
        text = path.read_text(encoding="utf-8").strip()
    except OSError:
        logger.warning("Missions list not readable at %s; geocoding without it", path, exc_info=True)
        return None
    return text or None


def _coordinate(value: object, limit: float, name: str) -> float:
    # bool is an int subclass; "true" is not a latitude
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidGeocodeResponse(f"{name} is not a number: {value!r}")
    number = float(value)
    if not math.isfinite(number) or abs(number) > limit:
        raise InvalidGeocodeResponse(f"{name} out of range: {number}")
    return number


def parse_coordinates(text: str) -> Coordinates:
    """Pull ``{"lat": .., "lng": ..}`` out of a model reply."""
    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        raise InvalidGeocodeResponse("Model did not return a JSON object")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise InvalidGeocodeResponse(f"Model returned invalid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise InvalidGeocodeResponse("Model returned a non-object JSON value")
    return Coordinates(
        lat=_coordinate(parsed.get("lat"), 90.0, "lat"),
        lng=_coordinate(parsed.get("lng"), 180.0, "lng"),
    )


class MissionGeocoder:
    """Mission name → approximate coordinates via the extraction model."""

    def __init__(self, llm: LLMService, missions_list: str | None = None) -> None:
        self._llm = llm
        self._missions_list = missions_list

    async def geocode(self, mission_name: str) -> Coordinates:
        """Raises LLMError if the model is unreachable, InvalidGeocodeResponse
        if its answer is unusable."""
        context = ""
        if self._missions_list:
            context = (
                "\nHere is a reference list of all known LDS missions and their "
                f"headquarters cities for context:\n{self._missions_list}\n"
            )
        prompt = (
            "Given the following LDS mission name, return the approximate latitude "
            "and longitude of the main city in that mission area. Return ONLY a valid "
            'JSON object with keys "lat" and "lng" as numbers, no extra text.\n'
            f"{context}\nMission name: {mission_name}\n\nJSON:"
        )
        response = await self._llm.generate(prompt, temperature=0.0)
        return parse_coordinates(response.text)


class DestinationService:
    """Gated, cached destination lookup."""

    def __init__(
        self,
        revelation_service: RevelationService,
        kv: KVStore,
        geocoder: MissionGeocoder,
        ttl_seconds: int = 86400,
    ) -> None:
        self._revelations = revelation_service
        self._kv = kv
        self._geocoder = geocoder
        self._ttl = ttl_seconds

    async def get_destination(self, is_admin: bool = False) -> Destination | None:
        """None when there is no record or the caller may not see the reveal.

        The cache is not invalidated when the record changes; a mission
        assignment does not change after it is revealed.
        """
        rev = self._revelations.find()
        if rev is None:
            return None
        if self._revelations.access_state(rev, is_admin) is not AccessState.OPEN:
            return None

        cached = self._kv.get(DESTINATION_CACHE_KEY)
        if cached is not None:
            return Destination.model_validate(cached)

        mission_name = self._revelations.decrypt_mission_name(rev)
        coords = await self._geocoder.geocode(mission_name)
        destination = Destination(lat=coords.lat, lng=coords.lng, mission_name=mission_name)
        self._kv.put(DESTINATION_CACHE_KEY, destination.model_dump(mode="json"), self._ttl)
        logger.info("Destination geocoded and cached for %ds", self._ttl)
        return destination
