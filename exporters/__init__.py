#!/usr/bin/env python3
"""
Exporters Module
Writers that turn a SkeletalAsset into interchange formats (COLLADA)
"""

from .base_exporter import BaseExporter
from .collada_document import COLLADA_NAMESPACE, ColladaDocument
from .collada_exporter import ColladaExporter

__all__ = [
    'BaseExporter',
    'COLLADA_NAMESPACE',
    'ColladaDocument',
    'ColladaExporter',
]
