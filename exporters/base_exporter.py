#!/usr/bin/env python3
"""
Base Exporter Module
Abstract base class ensuring consistent interface across exporters

Exporters receive a converted SkeletalAsset, never a reader, so they stay
independent of the source format. Writing the built document is left to
the orchestrator, which owns output paths and stage-tagged errors.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.skeleton import SkeletalAsset

logger = logging.getLogger(__name__)


class BaseExporter(ABC):
    """Abstract base class for all format exporters

    Provides the shared logging; each format exporter implements build()
    and its format metadata.
    """

    def __init__(self, progress_callback=None):
        """Initialize exporter

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
        """
        self.progress_callback = progress_callback

    def log(self, message):
        """Send progress/status message"""
        if self.progress_callback:
            self.progress_callback(message)
        logger.info(message)

    @abstractmethod
    def build(self, asset: 'SkeletalAsset'):
        """Build the in-memory document for a skeletal asset

        Args:
            asset: Validated, space-converted SkeletalAsset

        Returns:
            The format's document object, ready to be written
        """
        pass

    @abstractmethod
    def get_format_name(self):
        """Return human-readable format name (e.g. "COLLADA")"""
        pass

    @abstractmethod
    def get_file_extension(self):
        """Return primary file extension for this format, without dot"""
        pass
