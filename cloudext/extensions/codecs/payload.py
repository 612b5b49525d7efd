"""XML helpers shared by the built-in codecs.

Payloads are flat PublicConfig/PrivateConfig documents.
"""

import xml.etree.ElementTree as ET
from typing import Any


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def add_element(
    parent: ET.Element, tag: str, value: Any, attrib: dict[str, str] | None = None
) -> ET.Element | None:
    """Append <tag>value</tag>; None values are omitted."""
    if value is None:
        return None
    element = ET.SubElement(parent, tag, attrib or {})
    element.text = _text(value)
    return element


def build_document(root_tag: str, elements: list[tuple[str, Any]]) -> ET.Element:
    """Root element with one child per (tag, value); None values are omitted."""
    root = ET.Element(root_tag)
    for tag, value in elements:
        add_element(root, tag, value)
    return root


def to_string(root: ET.Element) -> str:
    return ET.tostring(root, encoding="unicode")


def parse_document(payload: str, root_tag: str) -> ET.Element:
    """Parse a payload and check its root element. Raises ValueError."""
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise ValueError(f"Invalid {root_tag} payload: {e}") from e
    if _local_name(root.tag) != root_tag:
        raise ValueError(f"Expected <{root_tag}>, got <{_local_name(root.tag)}>")
    return root


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def find_child(root: ET.Element, tag: str) -> ET.Element | None:
    """First direct child with this local name, ignoring XML namespaces."""
    return next((c for c in root if _local_name(c.tag) == tag), None)


def child_text(root: ET.Element, tag: str) -> str | None:
    child = find_child(root, tag)
    return None if child is None else (child.text or "")


def child_bool(root: ET.Element, tag: str) -> bool | None:
    value = child_text(root, tag)
    if value is None:
        return None
    return value.strip().lower() in ("true", "1")
