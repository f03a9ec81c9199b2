from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict

from .constants import FLAG_COMPRESSED, FLAG_PROTECTED
from .errors import InvalidManifest


@dataclass
class Manifest:
    data: Dict[str, Any] = field(default_factory=dict)

    def _flag(self, name: str) -> bool:
        # Only a real JSON boolean counts; anything else reads as false.
        value = self.data.get(name)
        return value if isinstance(value, bool) else False

    @property
    def protected(self) -> bool:
        return self._flag(FLAG_PROTECTED)

    @property
    def compressed(self) -> bool:
        return self._flag(FLAG_COMPRESSED)

    def dumps(self) -> str:
        return json.dumps(self.data, indent=2, sort_keys=True, ensure_ascii=False)


def parse_manifest(raw: bytes) -> Manifest:
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise InvalidManifest(f"invalid manifest: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidManifest("invalid manifest: expected a JSON object")
    return Manifest(data)
