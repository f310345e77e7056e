"""
Selector Matcher — A Small CSS Subset Over Flattened Elements

The collector does not ship a live DOM, only ElementRecords. DOM
rules are therefore written in a deliberately small selector
language, tried in this order (first syntax that fits decides):

  .name                 class attribute CONTAINS name (substring)
  #name                 id equals name
  [attr] [attr="v"] [attr*="v"]
                        attribute present / equal / contains;
                        attributes map first, then a top-level field
  tag[attr*="v"]        tag equals AND attribute contains
  tag                   bare lowercase word, tag equals
  anything else         exact equality with the element's selector

`.name` is substring containment, not class-token matching, so
`.foo` also hits class="foobar".
"""

from __future__ import annotations

import re
from typing import Optional

from pagedetect.schemas.signals import ElementRecord

PREVIEW_LENGTH = 50

_ATTRIBUTE = re.compile(
    r"""^\[\s*([^\s=*\]]+)\s*(?:(\*?=)\s*(?:"([^"]*)"|'([^']*)'|([^\]'"]*)))?\s*\]$"""
)
_TAG_ATTRIBUTE_CONTAINS = re.compile(
    r"""^(\w+)\[\s*([\w:-]+)\s*\*=\s*["']?([^"'\]]+)["']?\s*\]"""
)
_BARE_TAG = re.compile(r"^[a-z]+$")


def _attribute_value(element: ElementRecord, name: str) -> str:
    """Attribute from the attributes map, else a same-named top-level field."""
    return element.attributes.get(name) or element.field(name)


def _match_attribute(element: ElementRecord, selector: str) -> Optional[bool]:
    parsed = _ATTRIBUTE.match(selector)
    if not parsed:
        return None
    name, operator = parsed.group(1), parsed.group(2)
    expected = next((g for g in parsed.group(3, 4, 5) if g is not None), None)

    actual = _attribute_value(element, name)
    if not actual:
        return False
    if operator == "=":
        return actual == expected
    if operator == "*=":
        return bool(expected) and expected in actual
    return True


def match_selector(element: ElementRecord, selector: str) -> bool:
    """Check whether an element record satisfies a selector from the subset."""
    if not selector:
        return False

    if selector.startswith("."):
        element_class = element.class_ or element.attributes.get("class") or ""
        return selector[1:] in element_class

    if selector.startswith("#"):
        element_id = element.id or element.attributes.get("id") or ""
        return element_id == selector[1:]

    if selector.startswith("[") and selector.endswith("]"):
        result = _match_attribute(element, selector)
        if result is not None:
            return result

    if "[" in selector and "*=" in selector:
        parsed = _TAG_ATTRIBUTE_CONTAINS.match(selector)
        if parsed:
            tag, name, needle = parsed.groups()
            if element.selector != tag:
                return False
            return needle in _attribute_value(element, name)

    if _BARE_TAG.match(selector):
        return element.selector == selector

    return element.selector == selector


def element_preview(element: ElementRecord) -> str:
    """Element text shortened for display in a match value."""
    text = element.text or ""
    if len(text) > PREVIEW_LENGTH:
        return text[:PREVIEW_LENGTH] + "..."
    return text
