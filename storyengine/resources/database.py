"""
Content Database.

Handles loading and validation of static story data (scenes, chapters,
side quests, endings, achievements, items) and locale string tables.
"""

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema

BUNDLED_SCHEMAS = Path(__file__).parent / "schemas"


class ContentDatabase:
    """
    Central storage for raw story records.

    Records are kept per category as lists in canonical declaration
    order: files sorted by name, records in file order.
    """

    CATEGORIES: dict[str, str] = {
        "scenes": "scene.schema.json",
        "chapters": "chapter.schema.json",
        "side_quests": "side_quest.schema.json",
        "endings": "ending.schema.json",
        "achievements": "achievement.schema.json",
        "items": "item.schema.json",
    }

    def __init__(self, data_path: Path | str, schema_path: Path | str | None = None):
        self._data_path = Path(data_path)
        self._schema_path = Path(schema_path) if schema_path else BUNDLED_SCHEMAS
        self._schemas: dict[str, Any] = {}

        self.records: dict[str, list[dict[str, Any]]] = {name: [] for name in self.CATEGORIES}
        self.rejected: list[str] = []

        self.logger = logging.getLogger(__name__)

    def load_all(self) -> dict[str, list[dict[str, Any]]]:
        """Load all categories from disk."""
        self._load_schemas()

        for category, schema_name in self.CATEGORIES.items():
            self.records[category] = self._load_category(category, schema_name)

        self.logger.info(
            "Loaded " + ", ".join(f"{len(v)} {k}" for k, v in self.records.items()) + "."
        )
        return self.records

    def _load_schemas(self) -> None:
        """Load JSON schemas."""
        if not self._schema_path.exists():
            self.logger.warning(f"Schema directory not found: {self._schema_path}")
            return

        for schema_file in sorted(self._schema_path.glob("*.schema.json")):
            try:
                with open(schema_file, 'r', encoding='utf-8') as f:
                    schema = json.load(f)
                jsonschema.Draft7Validator.check_schema(schema)
                self._schemas[schema_file.name] = schema
            except (OSError, json.JSONDecodeError, jsonschema.SchemaError) as e:
                self.logger.error(f"Failed to load schema {schema_file}: {e}")

    def _load_category(self, folder: str, schema_name: str) -> list[dict[str, Any]]:
        """Load all JSON files in a category folder."""
        category_dir = self._data_path / "story" / folder
        records: list[dict[str, Any]] = []

        if not category_dir.exists():
            self.logger.debug(f"Data directory not found: {category_dir}")
            return records

        schema = self._schemas.get(schema_name)
        if schema is None:
            self.logger.warning(f"No schema found for {folder} ({schema_name}), skipped")
            return records

        for file_path in sorted(category_dir.glob("*.json")):
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                self.logger.error(f"Failed to load {file_path}: {e}")
                continue

            items = data if isinstance(data, list) else [data]
            for item in items:
                try:
                    jsonschema.validate(instance=item, schema=schema)
                except jsonschema.ValidationError as e:
                    record_id = item.get('id', '?') if isinstance(item, dict) else '?'
                    self.logger.error(f"Validation error in {file_path} ({record_id}): {e.message}")
                    self.rejected.append(f"{folder}/{record_id}")
                    continue
                records.append(item)

        return records

    def load_strings(self, folder: str = "locales") -> dict[str, dict[str, str]]:
        """Load `<lang>.json` string tables from the data directory."""
        strings: dict[str, dict[str, str]] = {}
        locale_dir = self._data_path / folder
        if not locale_dir.exists():
            self.logger.warning(f"Locale directory not found: {locale_dir}")
            return strings

        for file_path in sorted(locale_dir.glob("*.json")):
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    strings[file_path.stem] = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                self.logger.error(f"Failed to load locale {file_path}: {e}")
        return strings

    def get(self, category: str, record_id: str) -> dict[str, Any] | None:
        for record in self.records.get(category, []):
            if record.get('id') == record_id:
                return record
        return None
