import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "budgetsync"
SETTINGS_PATH = CONFIG_DIR / "settings.json"

DEFAULTS = {
    "spreadsheet_id": "",
    "default_sheet_name": "",
    "mapping_rules_path": str(CONFIG_DIR / "mapping-rules.json"),
    "backup_dir": str(Path.home() / "Documents" / "budgetsync" / "backups"),
    "backup_before_update": True,
    "dry_run": True,
}


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def load_settings() -> dict:
    if SETTINGS_PATH.exists():
        with open(SETTINGS_PATH) as f:
            saved = json.loads(f.read())
        return {**DEFAULTS, **saved}
    return dict(DEFAULTS)


def save_settings(settings: dict) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_PATH, "w") as f:
        f.write(json.dumps(settings, indent=2) + "\n")


def resolve_mapping_rules_path(settings: dict) -> Path | None:
    """Relative paths are taken relative to the config directory."""
    raw = settings.get("mapping_rules_path")
    if not isinstance(raw, str) or not raw.strip():
        return None
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = CONFIG_DIR / path
    return path


def _text_setting(settings: dict, key: str, result: ValidationResult) -> str | None:
    """A string setting; None (with an error) when it holds another type."""
    value = settings.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        result.errors.append(f"{key} must be a string")
        return None
    return value


def validate_settings(settings: dict) -> ValidationResult:
    result = ValidationResult()

    spreadsheet_id = _text_setting(settings, "spreadsheet_id", result)
    if spreadsheet_id is None:
        pass
    elif not spreadsheet_id.strip():
        result.errors.append("spreadsheet_id is required")
    elif not Path(spreadsheet_id).expanduser().exists():
        result.warnings.append(f"spreadsheet_id points to a missing workbook: {spreadsheet_id}")

    default_sheet = _text_setting(settings, "default_sheet_name", result)
    if default_sheet is not None and not default_sheet.strip():
        result.warnings.append("default_sheet_name is not set; sheets are chosen by booking year")

    rules_path = resolve_mapping_rules_path(settings)
    if _text_setting(settings, "mapping_rules_path", result) is None:
        pass
    elif rules_path is None:
        result.warnings.append("mapping_rules_path is not set; built-in rules will be used")
    elif not rules_path.exists():
        result.warnings.append(f"mapping rules file not found: {rules_path}; built-in rules will be used")

    for key in ("backup_before_update", "dry_run"):
        if not isinstance(settings.get(key), bool):
            result.errors.append(f"{key} must be true or false")

    backup_dir = _text_setting(settings, "backup_dir", result)
    if settings.get("backup_before_update") is True and backup_dir is not None and not backup_dir.strip():
        result.errors.append("backup_dir is required when backup_before_update is enabled")

    return result
