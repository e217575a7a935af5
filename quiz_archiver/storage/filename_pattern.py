"""Validation of folder and file name patterns with ``${variable}`` placeholders."""

import re
from collections.abc import Iterable

FOLDERNAME_FORBIDDEN_CHARACTERS = ("\\", ".", ":", ";", "*", "?", "!", '"', "<", ">", "|", "\0")
FILENAME_FORBIDDEN_CHARACTERS = ("/", *FOLDERNAME_FORBIDDEN_CHARACTERS)

VARIABLE_PATTERN = re.compile(r"\$\{\s*(?P<name>[^}\s]*)\s*\}")


def is_valid_filename_pattern(
    pattern: str,
    allowed_variables: Iterable[str],
    forbidden_characters: Iterable[str],
) -> bool:
    """Check that a pattern only uses allowed variables and no forbidden characters.

    Args:
        pattern: Pattern such as ``${username}/${attemptid}-${date}``.
        allowed_variables: Variable names that may appear inside ``${...}``.
        forbidden_characters: Characters that must not appear outside of variables.
    """
    if not pattern:
        return False

    allowed = set(allowed_variables)
    for match in VARIABLE_PATTERN.finditer(pattern):
        if match.group("name") not in allowed:
            return False

    residue = VARIABLE_PATTERN.sub("", pattern)
    if "$" in residue:
        return False
    return not any(char in residue for char in forbidden_characters)
