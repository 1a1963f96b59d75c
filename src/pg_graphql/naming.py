"""
Name derivation helpers.

Converts relational identifiers (snake_case table and column names) into
GraphQL names.
"""

from __future__ import annotations

import re

_INVALID_NAME_CHARS = re.compile(r"[^0-9A-Za-z_]+")

# Irregular plurals that don't follow standard rules
_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "datum": "data",
    "medium": "media",
    "criterion": "criteria",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
    "status": "statuses",
    "address": "addresses",
}


def sanitize_name(name: str) -> str:
    """Replace characters that are not valid in a GraphQL name with ``_``."""
    return _INVALID_NAME_CHARS.sub("_", name)


def to_pascal_case(name: str) -> str:
    """
    Convert a snake_case identifier to PascalCase.

    Examples:
        >>> to_pascal_case("blog_post")
        'BlogPost'
        >>> to_pascal_case("account")
        'Account'
    """
    return "".join(part[:1].upper() + part[1:].lower() for part in name.split("_"))


def to_camel_case(name: str) -> str:
    """
    Convert a snake_case identifier to camelCase.

    Examples:
        >>> to_camel_case("created_at")
        'createdAt'
        >>> to_camel_case("all_blog_posts")
        'allBlogPosts'
    """
    parts = name.split("_")
    head = parts[0]
    return head + "".join(part[:1].upper() + part[1:].lower() for part in parts[1:])


def pluralize(word: str) -> str:
    """
    Convert a singular English word to its plural form.

    CamelCase words only have their last component pluralized.

    Examples:
        >>> pluralize("blogPost")
        'blogPosts'
        >>> pluralize("category")
        'categories'
        >>> pluralize("person")
        'people'
    """
    if not word:
        return word

    lower_word = word.lower()

    if lower_word in _IRREGULAR_PLURALS:
        plural = _IRREGULAR_PLURALS[lower_word]
        if word[0].isupper():
            return plural.capitalize()
        return plural

    # blogPost -> blog + Post
    camel_match = re.match(r"^(.+?)([A-Z][a-z0-9]*)$", word)
    if camel_match:
        prefix, last_word = camel_match.groups()
        if prefix and last_word != word:
            return prefix + pluralize(last_word)

    if lower_word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    elif lower_word.endswith("y"):
        if len(word) > 1 and lower_word[-2] in "aeiou":
            return word + "s"
        return word[:-1] + "ies"
    return word + "s"


def table_name_for(schema: str, name: str, default_schema: str = "public") -> str:
    """
    Return the GraphQL-facing table name of a relation.

    Relations in the default schema keep their bare name; others are prefixed
    with their schema so names stay unique across schemas.
    """
    if schema == default_schema:
        return sanitize_name(name)
    return sanitize_name(f"{schema}_{name}")
