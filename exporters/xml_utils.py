"""Small helpers shared by the XML writers: pretty printing, number lists and ids."""

import re
from typing import Iterable
from xml.dom import minidom
from xml.etree.ElementTree import Element, tostring

_INVALID_ID_CHARS = re.compile(r'[^A-Za-z0-9_.-]')

# Characters outside the XML 1.0 Char production
_INVALID_XML_CHARS = re.compile('[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]')


def xml_to_string(root: Element, pretty: bool = True) -> str:
    """Convert an ElementTree Element to an XML string (pretty-printed by default)."""
    rough = tostring(root, encoding='unicode')
    if not pretty:
        return '<?xml version="1.0" encoding="utf-8"?>\n' + rough
    parsed = minidom.parseString(rough)
    return parsed.toprettyxml(indent="  ", encoding='utf-8').decode('utf-8')


def xml_safe(text: str) -> str:
    """Replace characters XML cannot represent (control bytes, lone surrogates) with '_'."""
    return _INVALID_XML_CHARS.sub('_', text)


def format_float(value: float) -> str:
    text = f"{float(value):.9g}"
    return "0" if text == "-0" else text


def floats_to_str(values: Iterable[float]) -> str:
    return " ".join(format_float(v) for v in values)


def ints_to_str(values: Iterable[int]) -> str:
    return " ".join(str(int(v)) for v in values)


def sanitize_id(name: str) -> str:
    """Make a name usable as an XML id / COLLADA sid.

    Characters outside [A-Za-z0-9_.-] become '_'. A leading digit, '.' or
    '-' gets a '_' prefix since XML ids must start with a letter or '_'.
    """
    sanitized = _INVALID_ID_CHARS.sub('_', name)
    if sanitized and not (sanitized[0].isalpha() or sanitized[0] == '_'):
        sanitized = f"_{sanitized}"
    return sanitized or "unnamed"


class IdAllocator:
    """Hands out document-unique ids derived from arbitrary names"""

    def __init__(self, reserved: Iterable[str] = ()):
        self._used = set(reserved)

    def allocate(self, name: str) -> str:
        base = sanitize_id(name)
        candidate = base
        suffix = 2
        while candidate in self._used:
            candidate = f"{base}_{suffix}"
            suffix += 1
        self._used.add(candidate)
        return candidate

    def __contains__(self, item: str) -> bool:
        return item in self._used
