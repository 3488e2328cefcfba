from typing import Optional

from ..errors import ConfigurationError
from ..vps_types import MapSelector, RequestPayload, ResizedQuery


def select_map(map_code: Optional[str], map_set_code: Optional[str], prefer: Optional[str] = None) -> MapSelector:
    """
    Resolve configured map / map-set codes into a single MapSelector.

    With `prefer` set ("map" or "map_set") that kind is used and its code must
    be non-empty. Without it, exactly one of the two codes must be set.
    """
    map_code = (map_code or "").strip()
    map_set_code = (map_set_code or "").strip()

    if prefer == MapSelector.MAP:
        if not map_code:
            raise ConfigurationError("mapCode is not configured")
        return MapSelector.map(map_code)
    if prefer == MapSelector.MAP_SET:
        if not map_set_code:
            raise ConfigurationError("mapSetCode is not configured")
        return MapSelector.map_set(map_set_code)
    if prefer is not None:
        raise ConfigurationError(f"Unknown map type: {prefer!r}")

    if map_code and map_set_code:
        raise ConfigurationError("Configure either mapCode or mapSetCode, not both")
    if map_code:
        return MapSelector.map(map_code)
    if map_set_code:
        return MapSelector.map_set(map_set_code)
    raise ConfigurationError("Neither mapCode nor mapSetCode is configured")


class QueryEncoder:
    """Strategy: turn a ResizedQuery into the multipart form the VPS service expects."""

    def encode(self, query: ResizedQuery, selector: Optional[MapSelector], right_handed: bool = True) -> RequestPayload:
        if selector is None:
            raise ConfigurationError("No map selector given")
        if selector.kind not in (MapSelector.MAP, MapSelector.MAP_SET):
            raise ConfigurationError(f"Unknown map selector kind: {selector.kind!r}")
        code = (selector.code or "").strip()
        if not code:
            raise ConfigurationError(f"{selector.field_name} is empty")

        fields = {
            "isRightHanded": "true" if right_handed else "false",
            "px": repr(float(query.px)),
            "py": repr(float(query.py)),
            "fx": repr(float(query.fx)),
            "fy": repr(float(query.fy)),
            "width": str(int(query.width)),
            "height": str(int(query.height)),
            selector.field_name: code,
        }
        return RequestPayload(
            fields=fields,
            image_bytes=query.image_bytes,
            mime_type=query.mime_type,
        )
