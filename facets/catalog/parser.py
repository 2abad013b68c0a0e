"""YAML parser with ruamel.yaml for line number tracking."""

from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import MarkedYAMLError

from facets.core.exceptions import ParseError


class YAMLParser:
    """YAML parser with line number tracking."""

    def __init__(self):
        self.yaml = YAML(typ="safe")

    def parse_file(self, file_path: str | Path) -> dict[str, Any]:
        """Parse YAML file with error handling.

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed YAML data as dictionary

        Raises:
            ParseError: If YAML parsing fails
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ParseError(f"File not found: {file_path}")

        try:
            with file_path.open("r", encoding="utf-8") as f:
                data = self.yaml.load(f)
        except MarkedYAMLError as e:
            raise self._marked_error(e) from e
        except Exception as e:
            raise ParseError(f"Failed to parse YAML file {file_path}: {e}") from e

        if data is None:
            raise ParseError(f"Empty YAML file: {file_path}")
        return self._require_mapping(data)

    def parse_string(self, content: str) -> dict[str, Any]:
        """Parse YAML from string.

        Raises:
            ParseError: If YAML parsing fails
        """
        try:
            data = self.yaml.load(content)
        except MarkedYAMLError as e:
            raise self._marked_error(e) from e
        except Exception as e:
            raise ParseError(f"Failed to parse YAML content: {e}") from e

        if data is None:
            raise ParseError("Empty YAML content")
        return self._require_mapping(data)

    @staticmethod
    def _marked_error(e: MarkedYAMLError) -> ParseError:
        line = e.problem_mark.line + 1 if e.problem_mark else None
        column = e.problem_mark.column + 1 if e.problem_mark else None
        return ParseError(
            f"YAML parsing error at line {line}, column {column}: {e.problem}"
        )

    @staticmethod
    def _require_mapping(data: Any) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise ParseError(
                f"Catalog must be a mapping, got {type(data).__name__}"
            )
        return data
