import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

# pattern -> category name; order is match precedence
DEFAULT_RULES: tuple[tuple[str, str], ...] = (
    # Income
    ("LÖN", "Inkomst"),
    ("LOEN", "Inkomst"),
    ("SALARY", "Inkomst"),
    # Gemensamma
    ("TELE2", "Tele2"),
    ("NETFLIX", "Netflix"),
    ("MOTORHALLAND FIN", "Billån"),
    ("BILLÅN", "Billån"),
    ("BILLAN", "Billån"),
    ("IF SKADEFÖRS", "IF Skadeförsäkring"),
    ("IF SKADEF", "IF Skadeförsäkring"),
    ("HALMSTADS FASTIG", "Hyra"),
    ("HYRA", "Hyra"),
    ("RENT", "Hyra"),
    # Mina egna
    ("UNION AKASSA", "A-kassa"),
    ("A-KASSA", "A-kassa"),
    ("AKASSA", "A-kassa"),
    ("BLIWA", "Bliwa Sjuk & Olycksförsäkring"),
    ("COMVIQ", "Comviq mobil"),
    ("UNIONEN", "Fackavgift"),
    ("FACK", "Fackavgift"),
    ("CSN", "CSN"),
    ("SPOTIFY", "Spotify"),
    ("PLAYSTATION", "Playstation+"),
    ("BÄCKAMOT", "Bäckamot"),
    ("BACKAMOT", "Bäckamot"),
    ("MAT", "Mat"),
    ("FOOD", "Mat"),
    ("ICA", "Mat"),
    ("COOP", "Mat"),
    ("WILLYS", "Mat"),
    # Sparande
    ("SPARANDE", "Kontant"),
    ("SAVING", "Kontant"),
)

_RULES_KEYS = ("mappingRules", "MappingRules", "mapping_rules")


@dataclass(frozen=True)
class MappingRules:
    """Ordered, read-only pattern -> category name table."""
    rules: tuple[tuple[str, str], ...]
    source: str = "defaults"

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def match(self, mapping_key: str) -> Iterator[tuple[str, str]]:
        """Yield every (pattern, category name) whose pattern occurs in the key."""
        key = mapping_key.upper()
        for pattern, category_name in self.rules:
            if pattern.upper() in key:
                yield pattern, category_name


def default_rules() -> MappingRules:
    return MappingRules(rules=DEFAULT_RULES, source="defaults")


def _rules_from_document(document: object) -> tuple[tuple[str, str], ...]:
    if not isinstance(document, dict):
        raise ValueError("Mapping rules document must be a JSON object")
    for key in _RULES_KEYS:
        if key in document:
            table = document[key]
            break
    else:
        raise ValueError(f"Mapping rules document has none of {', '.join(_RULES_KEYS)}")
    if not isinstance(table, dict):
        raise ValueError("Mapping rules must be an object of pattern -> category name")
    rules = []
    for pattern, category_name in table.items():
        if not isinstance(category_name, str) or not pattern.strip() or not category_name.strip():
            logger.warning("Ignoring invalid mapping rule: %r -> %r", pattern, category_name)
            continue
        rules.append((pattern.strip(), category_name.strip()))
    return tuple(rules)


def load_mapping_rules(path: Path | None) -> MappingRules:
    """Load rules from a JSON file; fall back to the built-in table on any problem."""
    if path is None:
        logger.warning("No mapping rules file configured. Using default rules.")
        return default_rules()
    if not path.exists():
        logger.warning("Mapping rules file not found: %s. Using default rules.", path)
        return default_rules()
    try:
        with open(path, encoding="utf-8-sig") as f:
            document = json.loads(f.read())
        rules = _rules_from_document(document)
    except (OSError, ValueError) as exc:
        logger.warning("Failed to load mapping rules from %s (%s). Using default rules.", path, exc)
        return default_rules()

    logger.info("Loaded %d mapping rules from %s", len(rules), path)
    return MappingRules(rules=rules, source=str(path))


def save_mapping_rules(rules: MappingRules, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {"mappingRules": dict(rules.rules)}
    with open(path, "w", encoding="utf-8") as f:
        f.write(json.dumps(document, indent=2, ensure_ascii=False) + "\n")
