#!/usr/bin/env python3
"""
Base Reader Module
Abstract interface for reading skeletal animation files into a SkeletalAsset
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.skeleton import SkeletalAsset

logger = logging.getLogger(__name__)


class BaseReader(ABC):
    """Abstract base class for skeletal asset readers

    Provides a consistent interface for reading different source formats.
    Reading the file and decoding its bytes are separate steps so the
    orchestrator can report which one failed, and so decoding stays a pure
    function of the bytes.
    """

    def __init__(self, file_path: str, progress_callback=None):
        """Initialize reader with file path

        Args:
            file_path: Path to the source file
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
        """
        self.file_path = Path(file_path)
        self.progress_callback = progress_callback

    def log(self, message):
        """Send progress/status message"""
        if self.progress_callback:
            self.progress_callback(message)
        logger.info(message)

    @abstractmethod
    def get_format_name(self) -> str:
        """Return human-readable format name (e.g., 'LAB')"""
        pass

    def read_bytes(self) -> bytes:
        """Load the whole source file into memory

        Raises:
            OSError: If the file cannot be read
        """
        return self.file_path.read_bytes()

    @abstractmethod
    def decode(self, data: bytes) -> 'SkeletalAsset':
        """Decode raw bytes into a validated SkeletalAsset

        Args:
            data: Complete file contents

        Returns:
            SkeletalAsset: Asset satisfying every skeleton invariant

        Raises:
            DecodeError: If the bytes are malformed or unsupported
        """
        pass

    def extract_asset(self) -> 'SkeletalAsset':
        """Read and decode the source file in one step"""
        return self.decode(self.read_bytes())
