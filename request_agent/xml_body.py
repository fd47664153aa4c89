"""Dict-to-XML conversion for XML request bodies.

Produces the document shape web frameworks conventionally accept for
"params as XML": keys become elements (underscores dasherized), non-string
scalars carry a ``type`` attribute, lists become ``type="array"`` elements
whose children use the singular of the list's name, and ``None`` becomes
an empty element marked ``nil="true"``. ``{"a": "b"}`` with the default
root becomes::

    <?xml version="1.0" encoding="UTF-8"?>
    <post>
      <a>b</a>
    </post>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Mapping
from typing import Any


XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


def to_xml(data: Any, root: str = "post") -> str:
    """Serialize a map (or list) as an XML document.

    Args:
        data: Map whose keys become child elements of *root*, or a list
            whose items become repeated children of *root*.
        root: Name of the root element.

    Returns:
        XML text with a UTF-8 declaration and two-space indentation.

    Raises:
        ValueError: If *data* is neither a map nor a list.
    """
    if not isinstance(data, (Mapping, list)):
        raise ValueError(
            f"XML bodies must be built from a hash or an array, got {type(data).__name__}"
        )

    root_element = _to_element(root, data)
    ET.indent(root_element)
    return f"{XML_DECLARATION}\n{ET.tostring(root_element, encoding='unicode')}\n"


def _dasherize(name: str) -> str:
    return name.replace("_", "-")


def _singularize(name: str) -> str:
    """Best-effort English singular for array child tags."""
    if name.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if name.endswith(("sses", "xes", "ches", "shes")):
        return name[:-2]
    if name.endswith("s") and not name.endswith("ss") and len(name) > 1:
        return name[:-1]
    return name


def _to_element(tag: str, value: Any) -> ET.Element:
    """Recursively convert a tag + value pair into an XML Element.

    - Mapping → element with a child per key
    - list → ``type="array"`` element with singular-named children
    - bool/int/float → text plus a ``type`` attribute
    - None → empty element with ``nil="true"``
    - anything else → text content
    """
    element = ET.Element(_dasherize(str(tag)))

    if value is None:
        element.set("nil", "true")
    elif isinstance(value, Mapping):
        for key, child_value in value.items():
            element.append(_to_element(str(key), child_value))
    elif isinstance(value, list):
        element.set("type", "array")
        child_tag = _singularize(str(tag))
        for item in value:
            element.append(_to_element(child_tag, item))
    elif isinstance(value, bool):
        # bool before int: bool is an int subclass
        element.set("type", "boolean")
        element.text = "true" if value else "false"
    elif isinstance(value, int):
        element.set("type", "integer")
        element.text = str(value)
    elif isinstance(value, float):
        element.set("type", "float")
        element.text = str(value)
    else:
        element.text = str(value)

    return element
