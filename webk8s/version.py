"""Version of the package and substitution of it into display strings."""

VERSION = "0.0.0"
PLACEHOLDER = "{version}"


def version() -> str:
    """Return the bare version string, e.g. ``0.0.0``."""
    return VERSION


def format_version(text: str) -> str:
    """Replace every ``{version}`` in *text* with ``v`` followed by the version."""
    return text.replace(PLACEHOLDER, f"v{VERSION}")