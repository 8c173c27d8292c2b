import re
from typing import Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r'\{(\w+)\}')


def render(template: str, variables: Mapping[str, Optional[str]]) -> str:
    """Replace `{name}` placeholders with values from `variables`.

    Placeholders with no entry, or whose value is None, are left verbatim.
    """
    if not template:
        return template or ""

    def _substitute(match: "re.Match[str]") -> str:
        value = variables.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, template)


def find_placeholders(template: str) -> list:
    """List placeholder names in order of first appearance"""
    seen = []
    for name in PLACEHOLDER_PATTERN.findall(template or ""):
        if name not in seen:
            seen.append(name)
    return seen
