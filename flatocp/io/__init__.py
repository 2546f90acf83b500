"""
IO module for reading model descriptions.
"""

from flatocp.io.fmi_xml import (
    AttributeNode,
    ElementNode,
    FmiXmlReader,
    import_fmi_xml,
    load_fmi_xml_string,
)

__all__ = [
    "AttributeNode",
    "ElementNode",
    "FmiXmlReader",
    "import_fmi_xml",
    "load_fmi_xml_string",
]
