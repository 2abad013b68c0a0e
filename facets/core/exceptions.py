"""Facets exceptions."""


class FacetsError(Exception):
    """Base exception for all facets errors."""


class FilterConfigError(FacetsError):
    """A filter was configured inconsistently (unknown nest, not nested, ...)."""


class CombineModeError(FilterConfigError):
    """An unknown combine mode reached the matcher."""

    def __init__(self, mode: object, axis: str = "blue"):
        self.mode = mode
        self.axis = axis
        super().__init__(f'Unhandled {axis} combine mode "{mode}"')


class InvalidMarkError(FacetsError):
    """A mark outside of ignored/required/excluded was written."""


class CatalogError(FacetsError):
    """Base exception for catalog loading errors."""


class ValidationError(CatalogError):
    """Validation error with line number information."""

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        file_path: str | None = None,
    ):
        self.message = message
        self.line = line
        self.column = column
        self.file_path = file_path

        location_parts = []
        if file_path:
            location_parts.append(f"File: {file_path}")
        if line is not None:
            location_parts.append(f"Line: {line}")
        if column is not None:
            location_parts.append(f"Column: {column}")

        if location_parts:
            full_message = f"{', '.join(location_parts)}: {message}"
        else:
            full_message = message

        super().__init__(full_message)


class ParseError(CatalogError):
    """YAML parsing error."""
