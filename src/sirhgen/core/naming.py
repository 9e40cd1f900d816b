"""Naming helpers shared by the schema synchronizer, maintainer and templates."""

from __future__ import annotations

_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "criterion": "criteria",
    "status": "statuses",
}
_IRREGULAR_SINGULARS = {plural: singular for singular, plural in _IRREGULAR_PLURALS.items()}

_VOWELS = "aeiou"


def to_snake_case(name: str) -> str:
    """Convert PascalCase/camelCase to snake_case (e.g., JobTitle -> job_title)."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0 and name[i - 1] != "_":
            result.append("_")
        result.append(char.lower())
    safe_name = "".join(result).replace(" ", "_").replace("-", "_")
    # Collapse multiple consecutive underscores
    while "__" in safe_name:
        safe_name = safe_name.replace("__", "_")
    return safe_name


def pluralize(word: str) -> str:
    """Pluralize the last word of a snake_case identifier.

    Examples:
        >>> pluralize("employee")
        'employees'
        >>> pluralize("job_category")
        'job_categories'
        >>> pluralize("address")
        'addresses'
    """
    if not word:
        return word
    head, _, last = word.rpartition("_")
    prefix = f"{head}_" if head else ""

    if last in _IRREGULAR_PLURALS:
        return prefix + _IRREGULAR_PLURALS[last]
    if last.endswith("y") and len(last) > 1 and last[-2] not in _VOWELS:
        return prefix + last[:-1] + "ies"
    if last.endswith(("s", "x", "z", "ch", "sh")):
        return prefix + last + "es"
    return prefix + last + "s"


def singularize(word: str) -> str:
    """Singularize the last word of a snake_case identifier.

    Examples:
        >>> singularize("employees")
        'employee'
        >>> singularize("job_categories")
        'job_category'
        >>> singularize("addresses")
        'address'
    """
    if not word:
        return word
    head, _, last = word.rpartition("_")
    prefix = f"{head}_" if head else ""

    if last in _IRREGULAR_SINGULARS:
        return prefix + _IRREGULAR_SINGULARS[last]
    if last.endswith("ies") and len(last) > 3:
        return prefix + last[:-3] + "y"
    if last.endswith(("sses", "xes", "zes", "ches", "shes")):
        return prefix + last[:-2]
    if last.endswith("s") and not last.endswith(("ss", "us", "is")):
        return prefix + last[:-1]
    return prefix + last


def default_table_name(entity_name: str) -> str:
    """Derive a physical table name from an entity name (JobTitle -> job_titles)."""
    return pluralize(to_snake_case(entity_name))


def module_name(entity_name: str) -> str:
    """Directory/module name used for an entity's generated artifacts."""
    return to_snake_case(entity_name)
