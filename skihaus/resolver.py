"""Maps provider spellings of resort names onto canonical identifiers."""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterator, Mapping, Optional, Tuple

from .exceptions import UnmappedNameError

# Observed upstream spelling -> canonical identifier. Extend via the ``names``
# section of the config when a run logs ``resolver.unmapped``.
DEFAULT_NAME_MAP: Mapping[str, str] = {
    "Mountain Creek": "MOUNTAIN CREEK",
    "Killington Resort": "KILLINGTON",
    "Killington": "KILLINGTON",
    "Stowe Mountain Resort": "STOWE",
    "Stowe": "STOWE",
    "Stratton Mountain": "STRATTON",
    "Stratton": "STRATTON",
    "Sugarbush Resort": "SUGARBUSH",
    "Sugarbush": "SUGARBUSH",
    "Pico Mountain": "PICO MTN",
    "Pico": "PICO MTN",
    "Okemo Mountain Resort": "OKEMO",
    "Okemo": "OKEMO",
    "Mount Snow": "MOUNT SNOW",
    "Jay Peak": "JAY PEAK",
    "Jay Peak Resort": "JAY PEAK",
    "Burke Mountain": "BURKE MTN",
    "Bolton Valley": "BOLTON VALLEY",
    "Bolton Valley Resort": "BOLTON VALLEY",
    "Magic Mountain": "MAGIC MTN",
    "Hunter Mountain": "HUNTER MTN",
    "Whiteface Mountain": "WHITEFACE",
    "Whiteface": "WHITEFACE",
    "Gore Mountain": "GORE MTN",
    "Gore": "GORE MTN",
    "Belleayre Mountain": "BELLEAYRE",
    "Belleayre": "BELLEAYRE",
    "Catamount": "CATAMOUNT",
    "Greek Peak Mountain Resort": "GREEK PEAK",
    "Greek Peak": "GREEK PEAK",
    "West Mountain": "WEST MTN",
    "Camelback Mountain Resort": "CAMELBACK",
    "Camelback": "CAMELBACK",
    "Blue Mountain": "BLUE MTN PA",
    "Blue Mountain Resort": "BLUE MTN PA",
    "Shawnee Mountain": "SHAWNEE MTN",
    "Sunday River": "SUNDAY RIVER",
    "Sunday River Resort": "SUNDAY RIVER",
    "Sugarloaf": "SUGARLOAF",
    "Sugarloaf Mountain": "SUGARLOAF",
    "Saddleback Maine": "SADDLEBACK",
    "Saddleback Mountain": "SADDLEBACK",
    "Saddleback": "SADDLEBACK",
    "Loon Mountain": "LOON MTN",
    "Loon Mountain Resort": "LOON MTN",
    "Attitash": "ATTITASH",
    "Attitash Mountain Resort": "ATTITASH",
    "Wildcat Mountain": "WILDCAT",
    "Wildcat": "WILDCAT",
    "Cannon Mountain": "CANNON MTN",
    "Waterville Valley": "WATERVILLE VLY",
    "Waterville Valley Resort": "WATERVILLE VLY",
    "Mont-Tremblant": "MONT-TREMBLANT",
    "Tremblant": "MONT-TREMBLANT",
    "Le Massif de Charlevoix": "LE MASSIF",
    "Le Massif": "LE MASSIF",
    "Mont-Sainte-Anne": "MONT-STE-ANNE",
    "Mont Sainte Anne": "MONT-STE-ANNE",
}


def _fold(name: str) -> str:
    return " ".join(name.split()).casefold()


class NameResolver:
    """Append-only registry of name variants.

    Lookup tries the raw string, then the trimmed string, then a
    case/whitespace-insensitive match against registered variants. Canonical
    identifiers also resolve to themselves.
    """

    def __init__(self, mapping: Optional[Mapping[str, str]] = None) -> None:
        self._exact: Dict[str, str] = {}
        self._folded: Dict[str, str] = {}
        for raw, canonical in (mapping if mapping is not None else DEFAULT_NAME_MAP).items():
            self.register(raw, canonical)

    def register(self, raw: str, canonical: str) -> None:
        for key, table in ((raw, self._exact), (_fold(raw), self._folded)):
            existing = table.get(key)
            if existing is not None and existing != canonical:
                raise ValueError(
                    f"{raw!r} is already registered to {existing!r}; cannot remap to {canonical!r}"
                )
        self._exact[raw] = canonical
        self._folded[_fold(raw)] = canonical
        self._folded.setdefault(_fold(canonical), canonical)

    def extend(self, mapping: Mapping[str, str]) -> None:
        for raw, canonical in mapping.items():
            self.register(raw, canonical)

    def resolve(self, raw: Optional[str]) -> Optional[str]:
        if not raw:
            return None
        if raw in self._exact:
            return self._exact[raw]
        trimmed = raw.strip()
        if trimmed in self._exact:
            return self._exact[trimmed]
        return self._folded.get(_fold(trimmed))

    def require(self, raw: str) -> str:
        canonical = self.resolve(raw)
        if canonical is None:
            raise UnmappedNameError(raw)
        return canonical

    @property
    def canonical_names(self) -> FrozenSet[str]:
        return frozenset(self._exact.values())

    def variants(self) -> Iterator[Tuple[str, str]]:
        return iter(sorted(self._exact.items(), key=lambda item: (item[1], item[0])))

    def __contains__(self, raw: object) -> bool:
        return isinstance(raw, str) and self.resolve(raw) is not None

    def __len__(self) -> int:
        return len(self._exact)
