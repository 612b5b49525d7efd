"""ExtensionConfiguration <-> host service XML document."""

import xml.etree.ElementTree as ET

from cloudext.extensions.codecs.payload import child_text, find_child, parse_document
from cloudext.extensions.models import ExtensionConfiguration

AZURE_NAMESPACE = "http://schemas.microsoft.com/windowsazure"


def _tag(name: str) -> str:
    return f"{{{AZURE_NAMESPACE}}}{name}"


def _extension_list(parent: ET.Element, ids: list[str]) -> None:
    for extension_id in ids:
        extension = ET.SubElement(parent, _tag("Extension"))
        ET.SubElement(extension, _tag("Id")).text = extension_id


def _read_ids(parent: ET.Element | None) -> list[str]:
    if parent is None:
        return []
    ids: list[str] = []
    for extension in parent:
        extension_id = child_text(extension, "Id")
        if extension_id:
            ids.append(extension_id.strip())
    return ids


def configuration_to_xml(configuration: ExtensionConfiguration) -> str:
    ET.register_namespace("", AZURE_NAMESPACE)
    root = ET.Element(_tag("ExtensionConfiguration"))
    _extension_list(ET.SubElement(root, _tag("AllRoles")), configuration.default)
    named = ET.SubElement(root, _tag("NamedRoles"))
    for role_name, ids in configuration.named_roles.items():
        role = ET.SubElement(named, _tag("Role"))
        ET.SubElement(role, _tag("RoleName")).text = role_name
        _extension_list(ET.SubElement(role, _tag("Extensions")), ids)
    return ET.tostring(root, encoding="unicode")


def configuration_from_xml(document: str) -> ExtensionConfiguration:
    """Parse an ExtensionConfiguration document. Raises ValueError."""
    root = parse_document(document, "ExtensionConfiguration")
    named_roles: dict[str, list[str]] = {}
    named = find_child(root, "NamedRoles")
    for role in named if named is not None else []:
        role_name = (child_text(role, "RoleName") or "").strip()
        if not role_name:
            raise ValueError("NamedRoles/Role without RoleName")
        named_roles.setdefault(role_name, []).extend(_read_ids(find_child(role, "Extensions")))
    return ExtensionConfiguration(
        default=_read_ids(find_child(root, "AllRoles")),
        named_roles=named_roles,
    )
