"""Curated place templates.

Templates live in a directory holding a ``templates.json`` index and one
JSON file of place records per template::

    templates/
        templates.json        [{"id", "displayName", "fileName"}, ...]
        state_capitols.json   [{"name", "streetAddress1", "city", ...}, ...]
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from place_importer.core.config import settings
from place_importer.models.address import GeneratedPlaceRecord

logger = logging.getLogger(__name__)

INDEX_FILE = "templates.json"


class TemplateLoaderError(Exception):
    """A template index or template file could not be loaded."""


class MapTemplate(BaseModel):
    """Index entry describing one template."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    display_name: str = Field(..., alias="displayName")
    file_name: str = Field(..., alias="fileName")


class TemplateLoader:
    """Reads template metadata and place records from disk."""

    def __init__(self, templates_dir: Path | str | None = None) -> None:
        self.templates_dir = Path(templates_dir or settings.TEMPLATES_DIR)

    def _read_json(self, path: Path) -> object:
        try:
            with path.open(encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise TemplateLoaderError(f"Template file not found: {path.name}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise TemplateLoaderError(f"Could not decode {path.name}: {e}") from e

    def available_templates(self) -> list[MapTemplate]:
        """List templates from the index file.

        Raises:
            TemplateLoaderError: If the index is missing or malformed
        """
        data = self._read_json(self.templates_dir / INDEX_FILE)
        if not isinstance(data, list):
            raise TemplateLoaderError(f"{INDEX_FILE} must contain a list")
        try:
            return [MapTemplate.model_validate(item) for item in data]
        except ValidationError as e:
            raise TemplateLoaderError(f"Invalid template metadata: {e}") from e

    def get_template(self, template_id: str) -> MapTemplate:
        for template in self.available_templates():
            if template.id == template_id:
                return template
        raise TemplateLoaderError(f"Unknown template: {template_id}")

    def load_records(self, template: MapTemplate | str) -> list[GeneratedPlaceRecord]:
        """Load the place records of a template.

        Records are returned as stored; completeness checks happen in the
        validator.

        Raises:
            TemplateLoaderError: If the file is missing or undecodable
        """
        if isinstance(template, str):
            template = self.get_template(template)

        path = self.templates_dir / f"{template.file_name}.json"
        data = self._read_json(path)
        if not isinstance(data, list):
            raise TemplateLoaderError(f"{path.name} must contain a list of places")
        try:
            records = [GeneratedPlaceRecord.model_validate(item) for item in data]
        except ValidationError as e:
            raise TemplateLoaderError(f"Could not decode {path.name}: {e}") from e

        logger.info(f"Loaded {len(records)} places from template '{template.id}'")
        return records
