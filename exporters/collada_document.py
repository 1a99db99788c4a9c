#!/usr/bin/env python3
"""
COLLADA Document Module
Thin wrapper around an ElementTree root in the COLLADA 1.4.1 namespace.
"""

import os
import tempfile
from pathlib import Path
from typing import List, Optional
from xml.etree.ElementTree import Element, SubElement, register_namespace
from xml.parsers.expat import ExpatError

from core.errors import SerializationInternalError

from .xml_utils import xml_safe, xml_to_string

COLLADA_NAMESPACE = "http://www.collada.org/2005/11/COLLADASchema"
COLLADA_VERSION = "1.4.1"

# Default-namespace mapping for ElementTree find()/findall()
NAMESPACES = {'': COLLADA_NAMESPACE}

# Serialize COLLADA elements unprefixed, as the default namespace
register_namespace('', COLLADA_NAMESPACE)


def qname(tag: str) -> str:
    """Namespace-qualified tag name"""
    return f"{{{COLLADA_NAMESPACE}}}{tag}"


def sub_element(parent: Element, tag: str, text: Optional[str] = None, **attrib) -> Element:
    """Append a COLLADA child element, optionally with text content"""
    element = SubElement(parent, qname(tag), {k: xml_safe(str(v)) for k, v in attrib.items()})
    if text is not None:
        element.text = xml_safe(text)
    return element


class ColladaDocument:
    """A COLLADA XML document under construction or ready to be written

    Attributes:
        root: The <COLLADA> root element
    """

    def __init__(self, root: Optional[Element] = None):
        if root is None:
            root = Element(qname('COLLADA'), {'version': COLLADA_VERSION})
        self.root = root

    def find(self, path: str) -> Optional[Element]:
        """ElementTree find() with COLLADA tags written unprefixed"""
        return self.root.find(path, NAMESPACES)

    def findall(self, path: str) -> List[Element]:
        return self.root.findall(path, NAMESPACES)

    def to_string(self, pretty: bool = True) -> str:
        """Serialize the document

        Raises:
            SerializationInternalError: If ElementTree or minidom rejects the tree
        """
        try:
            return xml_to_string(self.root, pretty=pretty)
        except (ValueError, ExpatError) as e:
            raise SerializationInternalError(f"Cannot serialize COLLADA document: {e}") from e

    def to_bytes(self, pretty: bool = True) -> bytes:
        return self.to_string(pretty).encode('utf-8')

    def write(self, path) -> Path:
        """Write the document to path

        The bytes go to a temporary file in the target directory which then
        replaces path, so a failed write never leaves a partial .dae behind.

        Returns:
            Path: The written file
        """
        path = Path(path)
        data = self.to_bytes()
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return path
