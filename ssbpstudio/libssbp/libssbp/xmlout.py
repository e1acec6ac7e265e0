"""libssbp.xmlout

Small lxml helpers shared by the document renderers.

The authoring tool distinguishes two kinds of "nothing":

  <exportPath></exportPath>   blank text element (blank())
  <cellTags/>                 empty element       (empty())

Both are part of what the tool expects to find, so renderers pick one
explicitly instead of relying on serializer defaults.
"""

from __future__ import annotations

from typing import Iterable, Optional

from lxml import etree

from .binary import fmt_float

SCHEMA_VERSION = "2.00.00"

_XML_DECL = b'<?xml version="1.0" encoding="utf-8" standalone="yes"?>\n'


def new_document(root_tag: str) -> etree._Element:
    return etree.Element(root_tag, version=SCHEMA_VERSION)


def fmt(value: object) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        return fmt_float(value)
    return str(value)


def text(parent: etree._Element, tag: str, value: object) -> etree._Element:
    el = etree.SubElement(parent, tag)
    el.text = fmt(value)
    return el


def blank(parent: etree._Element, tag: str) -> etree._Element:
    el = etree.SubElement(parent, tag)
    el.text = ""
    return el


def empty(parent: etree._Element, tag: str, **attrs: str) -> etree._Element:
    return etree.SubElement(parent, tag, attrs)


def container(parent: etree._Element, tag: str) -> etree._Element:
    """Element that will get children; renders as <tag></tag> if it gets none."""
    el = etree.SubElement(parent, tag)
    el.text = ""
    return el


def text_list(parent: etree._Element, tag: str, item_tag: str, values: Iterable[object]) -> etree._Element:
    el = container(parent, tag)
    for v in values:
        text(el, item_tag, v)
    return el


def name_list(parent: etree._Element, tag: str, values: Iterable[str]) -> etree._Element:
    return text_list(parent, tag, "value", values)


def value_range(parent: etree._Element, tag: str, value: object, subvalue: object) -> etree._Element:
    return empty(parent, tag, value=fmt(value), subvalue=fmt(subvalue))


def pair(a: object, b: object) -> str:
    return f"{fmt(a)} {fmt(b)}"


def serialize(root: etree._Element, indent: Optional[str] = "\t") -> bytes:
    if indent is not None:
        etree.indent(root, space=indent)
    return _XML_DECL + etree.tostring(root, encoding="utf-8", xml_declaration=False)
