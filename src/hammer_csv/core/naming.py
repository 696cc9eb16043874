"""Display-name helpers.

Composite names:
---------------
Operating systems are identified remotely by three fields (name, major,
minor) but appear in CSV as one display string:

    "RedHat 7.2"  <->  ("RedHat", "7", "2")
    "RedHat 7"    <->  ("RedHat", "7", "")
    "RedHat"      <->  ("RedHat", "", "")

The grammar is exactly BASE[ MAJOR[.MINOR]]. Missing segments are empty
strings, never None.
"""

import re

from ..utils.exceptions import MalformedCompositeNameError, ValidationError

# printf-style conversion, e.g. %d, %03d, %-5s, %.2f; %% is a literal
_PLACEHOLDER = re.compile(r"%[-+ #0]*(?:\d+)?(?:\.\d+)?[diouxXeEfFgGcrs]")


def decompose(display_name: str) -> tuple[str, str, str]:
    """
    Split a composite display name into (base, major, minor).

    Args:
        display_name: String of the form BASE[ MAJOR[.MINOR]]

    Returns:
        Tuple of base, major and minor; absent segments are ""

    Raises:
        MalformedCompositeNameError: If the string does not match the grammar
    """
    if display_name is None:
        raise MalformedCompositeNameError(str(display_name), "name is required")

    tokens = display_name.split()
    if not tokens:
        raise MalformedCompositeNameError(display_name, "name is empty")
    if len(tokens) > 2:
        raise MalformedCompositeNameError(
            display_name, "expected at most a base name and one version token"
        )

    base = tokens[0]
    if len(tokens) == 1:
        return base, "", ""

    parts = tokens[1].split(".")
    if len(parts) > 2:
        raise MalformedCompositeNameError(display_name, "version has more than major.minor")
    if any(part == "" for part in parts):
        raise MalformedCompositeNameError(display_name, "empty version segment")

    major = parts[0]
    minor = parts[1] if len(parts) == 2 else ""
    return base, major, minor


def compose(base: str, major: str | None = "", minor: str | None = "") -> str:
    """
    Build a composite display name from its fields.

    Args:
        base: Base name
        major: Major version, None or "" when absent
        minor: Minor version, None or "" when absent

    Returns:
        "base", "base major" or "base major.minor"

    Raises:
        MalformedCompositeNameError: If minor is given without major
    """
    major = "" if major is None else str(major)
    minor = "" if minor is None else str(minor)

    if minor and not major:
        raise MalformedCompositeNameError(
            f"{base} .{minor}", "minor version given without major version"
        )

    name = base
    if major:
        name += f" {major}"
    if minor:
        name += f".{minor}"
    return name


def namify(template: str, number: int) -> str:
    """
    Substitute a sequence number into a name template.

    Templates without a printf-style placeholder are returned unchanged, so
    "web" stays "web" while "web-%03d" becomes "web-007".

    Args:
        template: Name, optionally containing one placeholder
        number: Value to substitute

    Returns:
        The generated name

    Raises:
        ValidationError: If the template does not take exactly one value
    """
    if not _PLACEHOLDER.search(template.replace("%%", "")):
        return template
    try:
        return template % number
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid name template {template!r}: {e}", original_error=e) from e
