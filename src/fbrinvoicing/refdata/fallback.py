"""Static reference data served when the gateway is unreachable."""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence, Tuple

from fbrinvoicing.refdata.entries import ReferenceEntry, ReferenceKind

DEFAULT_BUCKET = "default"

_HS_CODES: Tuple[Tuple[str, str], ...] = (
    ("0101.10.00", "Live horses, pure-bred breeding animals"),
    ("0101.90.00", "Live horses, other than pure-bred breeding animals"),
    ("0102.10.00", "Live asses, pure-bred breeding animals"),
    ("0102.90.00", "Live asses, other than pure-bred breeding animals"),
    ("0103.10.00", "Live swine, pure-bred breeding animals"),
    ("0103.91.00", "Live swine, weighing less than 50 kg"),
    ("0103.92.00", "Live swine, weighing 50 kg or more"),
    ("0104.10.00", "Live sheep, pure-bred breeding animals"),
    ("0104.20.00", "Live sheep, other than pure-bred breeding animals"),
    ("0105.11.00", "Live goats, pure-bred breeding animals"),
    ("0105.12.00", "Live goats, other than pure-bred breeding animals"),
    ("0106.11.00", "Live poultry, turkeys, weighing not more than 185 g"),
    ("0106.12.00", "Live poultry, turkeys, weighing more than 185 g"),
    ("0106.19.00", "Live poultry, turkeys, other"),
    ("0106.20.00", "Live poultry, guinea fowls"),
    ("0106.31.00", "Live poultry, ducks, weighing not more than 185 g"),
    ("0106.32.00", "Live poultry, ducks, weighing more than 185 g"),
    ("0106.39.00", "Live poultry, ducks, other"),
    ("0106.41.00", "Live poultry, geese, weighing not more than 185 g"),
    ("0106.42.00", "Live poultry, geese, weighing more than 185 g"),
    ("0106.49.00", "Live poultry, geese, other"),
    ("0106.90.00", "Live poultry, other"),
    ("0201.10.00", "Meat of bovine animals, fresh or chilled, carcasses and half-carcasses"),
    ("0201.20.00", "Meat of bovine animals, fresh or chilled, other cuts with bone in"),
    ("0201.30.00", "Meat of bovine animals, fresh or chilled, boneless"),
    ("0202.10.00", "Meat of bovine animals, frozen, carcasses and half-carcasses"),
    ("0202.20.00", "Meat of bovine animals, frozen, other cuts with bone in"),
    ("0202.30.00", "Meat of bovine animals, frozen, boneless"),
    ("0203.11.00", "Meat of swine, fresh or chilled, carcasses and half-carcasses"),
    ("0203.12.00", "Meat of swine, fresh or chilled, hams, shoulders and cuts thereof, with bone in"),
    ("0203.19.00", "Meat of swine, fresh or chilled, other"),
    ("0203.21.00", "Meat of swine, frozen, carcasses and half-carcasses"),
    ("0203.22.00", "Meat of swine, frozen, hams, shoulders and cuts thereof, with bone in"),
    ("0203.29.00", "Meat of swine, frozen, other"),
    ("0204.10.00", "Meat of sheep or goats, carcasses and half-carcasses of lamb, fresh or chilled"),
    ("0204.21.00", "Meat of sheep or goats, carcasses and half-carcasses of sheep, frozen"),
    ("0204.22.00", "Meat of sheep or goats, carcasses and half-carcasses of goat, frozen"),
    ("0204.30.00", "Meat of sheep or goats, other cuts with bone in"),
    ("0204.41.00", "Meat of sheep or goats, boneless, of sheep"),
    ("0204.42.00", "Meat of sheep or goats, boneless, of goat"),
    ("0205.00.00", "Meat of horses, asses, mules or hinnies, fresh, chilled or frozen"),
    ("0206.10.00", "Edible offal of bovine animals, fresh or chilled"),
    ("0206.20.00", "Edible offal of swine, fresh or chilled"),
    ("0206.30.00", "Edible offal of sheep, fresh or chilled"),
    ("0206.41.00", "Edible offal of goats, fresh or chilled"),
    ("0206.49.00", "Edible offal of other animals, fresh or chilled"),
    ("0206.80.00", "Edible offal of bovine animals, swine, sheep, goats, horses, asses, mules or hinnies, frozen"),
    ("0207.11.00", "Meat and edible offal of fowls of the species Gallus domesticus, not cut in pieces, fresh or chilled"),
    ("0207.12.00", "Meat and edible offal of turkeys, not cut in pieces, fresh or chilled"),
    ("0207.13.00", "Meat and edible offal of ducks, geese or guinea fowls, not cut in pieces, fresh or chilled"),
    ("0207.14.00", "Meat and edible offal of other poultry, not cut in pieces, fresh or chilled"),
    ("0208.10.00", "Other meat and edible meat offal, of rabbits or hares"),
    ("0208.90.00", "Other meat and edible meat offal, other"),
    ("0209.00.00", "Pig fat and poultry fat, not rendered, fresh, chilled, frozen, salted, in brine, dried or smoked"),
    ("0210.11.00", "Meat of swine, salted, in brine, dried or smoked, hams, shoulders and cuts thereof, with bone in"),
    ("0210.20.00", "Meat of bovine animals, salted, in brine, dried or smoked"),
    ("0210.99.00", "Meat and edible meat offal of other animals, salted, in brine, dried or smoked, other"),
)

_KG_PCS: Tuple[Tuple[str, str], ...] = (("kg", "Kilogram"), ("pcs", "Pieces"))

_UOM: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "0101.10.00": _KG_PCS,
    "0101.90.00": _KG_PCS,
    "0102.10.00": _KG_PCS,
    "0102.90.00": _KG_PCS,
    DEFAULT_BUCKET: (
        ("kg", "Kilogram"),
        ("pcs", "Pieces"),
        ("ltr", "Litre"),
        ("mtr", "Meter"),
        ("sqm", "Square Meter"),
        ("cbm", "Cubic Meter"),
        ("ton", "Ton"),
        ("g", "Gram"),
        ("ml", "Millilitre"),
        ("cm", "Centimeter"),
        ("mm", "Millimeter"),
        ("km", "Kilometer"),
        ("doz", "Dozen"),
        ("pair", "Pair"),
        ("set", "Set"),
        ("box", "Box"),
        ("carton", "Carton"),
        ("bottle", "Bottle"),
        ("can", "Can"),
        ("bag", "Bag"),
        ("roll", "Roll"),
        ("sheet", "Sheet"),
        ("unit", "Unit"),
        ("bill_of_lading", "Bill of lading"),
        ("sqy", "SqY"),
    ),
}

_PROVINCES: Tuple[Tuple[str, str], ...] = (
    ("2", "BALOCHISTAN"),
    ("4", "AZAD JAMMU AND KASHMIR"),
    ("5", "CAPITAL TERRITORY"),
    ("6", "KHYBER PAKHTUNKHWA"),
    ("7", "PUNJAB"),
    ("8", "SINDH"),
    ("9", "GILGIT BALTISTAN"),
)

_DOC_TYPES: Tuple[Tuple[str, str], ...] = (("4", "Sale Invoice"), ("9", "Debit Note"))

# Keyed by the rate string itself; gateway rate ids are not known offline.
_RATES: Dict[str, Tuple[Tuple[str, str], ...]] = {
    DEFAULT_BUCKET: (
        ("18%", "18%"),
        ("17%", "17%"),
        ("16%", "16%"),
        ("5%", "5%"),
        ("0%", "0%"),
        ("Exempt", "Exempt"),
    ),
}

_SRO_SCHEDULE: Dict[str, Tuple[Tuple[str, str], ...]] = {
    DEFAULT_BUCKET: (("none", "No SRO schedule"),),
}


def _entries(pairs: Sequence[Tuple[str, str]]) -> List[ReferenceEntry]:
    return [ReferenceEntry(key=key, description=description) for key, description in pairs]


class FallbackTable:
    """Offline reference data keyed by kind (and lookup key for per-key kinds)."""

    def __init__(
        self,
        tables: Mapping[ReferenceKind, Sequence[Tuple[str, str]]] | None = None,
        per_key: Mapping[ReferenceKind, Mapping[str, Sequence[Tuple[str, str]]]] | None = None,
    ) -> None:
        self._tables = dict(tables) if tables is not None else {
            ReferenceKind.HS_CODES: _HS_CODES,
            ReferenceKind.PROVINCES: _PROVINCES,
            ReferenceKind.DOC_TYPES: _DOC_TYPES,
        }
        self._per_key = dict(per_key) if per_key is not None else {
            ReferenceKind.UOM: _UOM,
            ReferenceKind.RATES: _RATES,
            ReferenceKind.SRO_SCHEDULE: _SRO_SCHEDULE,
        }

    def table(self, kind: ReferenceKind) -> List[ReferenceEntry]:
        """Whole-table fallback; a fresh list on every call."""
        return _entries(self._tables.get(kind, ()))

    def for_key(self, kind: ReferenceKind, key: str | None) -> List[ReferenceEntry]:
        """Curated entries for ``key``, or the kind's default bucket."""
        buckets = self._per_key.get(kind, {})
        if key and key in buckets:
            return _entries(buckets[key])
        return _entries(buckets.get(DEFAULT_BUCKET, ()))

    def default(self, kind: ReferenceKind) -> List[ReferenceEntry]:
        return self.for_key(kind, None)


DEFAULT_FALLBACK = FallbackTable()
