"""
Input validation functions for lumifyhub-sync.

Workspace and record slugs become directory and file names in the local
mirror, so they are validated before any path is built from them.
"""


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Workspace slug")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_slug(slug: str, field_name: str = "Slug") -> tuple[bool, str]:
    """
    Validate a workspace or record slug.

    Args:
        slug: The slug to validate
        field_name: Name used in the error message

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot be '.' or contain '..' (path traversal protection)
        - Cannot contain path separators
        - Cannot start with '.' (reserved for hidden and temporary files)
    """
    if not slug or not slug.strip():
        return (
            False,
            format_validation_error(field_name, "cannot be empty"),
        )

    if ".." in slug:
        return (
            False,
            format_validation_error(field_name, "cannot contain '..'"),
        )

    if "/" in slug or "\\" in slug:
        return (
            False,
            format_validation_error(
                field_name, "cannot contain path separators"
            ),
        )

    if slug.startswith("."):
        return (
            False,
            format_validation_error(field_name, "cannot start with '.'"),
        )

    return (True, "")


def require_slug(slug: str, field_name: str = "Slug") -> str:
    """Return *slug* unchanged, raising ``ValueError`` if it is invalid."""
    ok, message = validate_slug(slug, field_name)
    if not ok:
        raise ValueError(message)
    return slug
