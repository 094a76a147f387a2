"""
Namespace patterns for filtering oplog entries.

``*`` matches any run of characters (including none); everything else is
matched literally and case-insensitively against the whole
``database.collection`` string. A bare database name such as ``"mydb"``
only matches that exact namespace, use ``"mydb.*"`` for the whole database.
"""

import re
from typing import Optional, Pattern

WILDCARD = "*"


class NamespaceMatcher:
    """Compiled namespace pattern."""

    def __init__(self, pattern: str = WILDCARD):
        self.pattern = pattern or WILDCARD
        literal_parts = [re.escape(part) for part in self.pattern.split(WILDCARD)]
        self.regex: Pattern[str] = re.compile(
            "^" + "(.*?)".join(literal_parts) + "$",
            re.IGNORECASE,
        )

    def test(self, namespace: Optional[str]) -> bool:
        if namespace is None:
            return False
        return self.regex.match(namespace) is not None

    __call__ = test

    def __repr__(self) -> str:
        return f"NamespaceMatcher({self.pattern!r})"


def compile_namespace(pattern: str = WILDCARD) -> NamespaceMatcher:
    return NamespaceMatcher(pattern)
