#!/usr/bin/env python3
"""
Readers Module
Skeletal animation file readers (.lab)
"""

from pathlib import Path

from .base_reader import BaseReader
from .binary_reader import BinaryReader
from .lab_reader import LabReader, decode

# Supported file extensions
LAB_EXTENSIONS = {'.lab'}
SUPPORTED_EXTENSIONS = LAB_EXTENSIONS


def create_reader(input_file, progress_callback=None):
    """Factory function to create appropriate reader based on file extension

    Args:
        input_file: Path to input file
        progress_callback: Optional progress callback forwarded to the reader

    Returns:
        BaseReader: LabReader instance

    Raises:
        ValueError: If file extension is not supported
    """
    ext = Path(input_file).suffix.lower()

    if ext in LAB_EXTENSIONS:
        return LabReader(input_file, progress_callback=progress_callback)
    raise ValueError(
        f"Unsupported file format: {ext or '(none)'}\n"
        f"Supported formats: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
    )


def get_file_type(input_file):
    """Get the file type string for a given file

    Returns:
        str: 'lab' or 'unknown'
    """
    ext = Path(input_file).suffix.lower()
    if ext in LAB_EXTENSIONS:
        return 'lab'
    return 'unknown'


def is_supported_format(input_file):
    return Path(input_file).suffix.lower() in SUPPORTED_EXTENSIONS


__all__ = [
    'BaseReader',
    'BinaryReader',
    'LabReader',
    'decode',
    'create_reader',
    'get_file_type',
    'is_supported_format',
    'LAB_EXTENSIONS',
    'SUPPORTED_EXTENSIONS',
]
