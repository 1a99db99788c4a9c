#!/usr/bin/env python3
"""
LAB to COLLADA Converter - Main Orchestrator Module
Runs reader -> space converter -> exporter for one .lab file

A conversion either produces one complete document or fails as a whole
with a ConversionError naming the stage that failed. Nothing is written
unless every earlier stage succeeded.
"""

import logging
from pathlib import Path

from core.errors import (
    ConversionError,
    ConversionStage,
    DecodeError,
    LabError,
    SerializationInternalError,
)
from core.settings import ConversionSettings
from core.space_converter import SpaceConverter
from exporters.collada_document import ColladaDocument
from exporters.collada_exporter import ColladaExporter
from readers import create_reader

logger = logging.getLogger(__name__)


class LabToColladaConverter:
    """.lab to COLLADA converter (orchestrator/facade)

    This class coordinates the conversion process:
    1. Read the input file bytes
    2. Decode them into a validated SkeletalAsset
    3. Convert coordinates and units (ConversionSettings)
    4. Build the COLLADA document, and write it when asked to
    """

    def __init__(self, progress_callback=None, settings=None):
        """Initialize converter

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
            settings: ConversionSettings (defaults: Y-up, unit scale 1, LINEAR)
        """
        self.progress_callback = progress_callback
        self.settings = settings or ConversionSettings()

    def log(self, message):
        """Send progress updates to callback"""
        if self.progress_callback:
            self.progress_callback(message)
        logger.info(message)

    def _read(self, input_file):
        source = str(input_file)
        try:
            reader = create_reader(input_file, progress_callback=self.progress_callback)
            return reader, reader.read_bytes()
        except (OSError, ValueError) as e:
            raise ConversionError(ConversionStage.READ, source, e) from e

    def _decode(self, reader, data, source):
        try:
            return reader.decode(data)
        except DecodeError as e:
            raise ConversionError(ConversionStage.DECODE, source, e) from e

    def convert_file(self, input_file) -> ColladaDocument:
        """Convert one .lab file into an in-memory COLLADA document

        Args:
            input_file: Path to the .lab file

        Returns:
            ColladaDocument: The complete document

        Raises:
            ConversionError: With the failing stage and the original error as cause
        """
        source = str(input_file)

        self.log(f"Step 1/4: Reading {Path(source).name}...")
        reader, data = self._read(input_file)
        self.log(f"  {len(data)} bytes")

        self.log("Step 2/4: Decoding skeleton and animation...")
        asset = self._decode(reader, data, source)

        self.log(
            f"Step 3/4: Converting to {self.settings.up_axis.collada_name} "
            f"(unit scale {self.settings.unit_scale:g})..."
        )
        try:
            converted = SpaceConverter(self.settings).convert(asset)
            converted.validate()
        except LabError as e:
            raise ConversionError(ConversionStage.CONVERT, source, e) from e

        self.log("Step 4/4: Building COLLADA document...")
        try:
            exporter = ColladaExporter(self.progress_callback, interpolation=self.settings.interpolation)
            return exporter.build(converted)
        except SerializationInternalError as e:
            raise ConversionError(ConversionStage.BUILD, source, e) from e

    def write(self, document: ColladaDocument, output_file, source="") -> Path:
        """Write a document

        Serialization failures map to a BUILD-stage ConversionError, I/O
        failures to a WRITE-stage one.
        """
        output_path = Path(output_file)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            return document.write(output_path)
        except SerializationInternalError as e:
            raise ConversionError(ConversionStage.BUILD, str(source or output_path), e) from e
        except OSError as e:
            raise ConversionError(ConversionStage.WRITE, str(source or output_path), e) from e

    def convert(self, input_file, output_file=None):
        """Convert a .lab file and write the .dae next to it (or to output_file)

        Args:
            input_file: Path to the .lab file
            output_file: Output .dae path (default: input path with .dae suffix)

        Returns:
            dict: Results with keys:
                - 'success': bool
                - 'dae_file': written file (on success)
                - 'files': list of created files
                - 'stage': failing stage name (on failure)
                - 'message': Summary message
        """
        input_path = Path(input_file)
        output_path = Path(output_file) if output_file else input_path.with_suffix('.dae')

        self.log(f"\n{'='*60}")
        self.log(f"Input: {input_path}")
        self.log(f"Output: {output_path}")
        self.log(f"{'='*60}")

        try:
            document = self.convert_file(input_path)
            written = self.write(document, output_path, input_path)
        except ConversionError as e:
            self.log(f"ERROR: {e}")
            return {
                'success': False,
                'stage': e.stage.value,
                'message': str(e),
                'files': [],
            }

        self.log(f"✓ Conversion complete: {written.name}")
        return {
            'success': True,
            'dae_file': str(written),
            'files': [str(written)],
            'message': f"Converted {input_path.name} -> {written.name}",
        }

    def describe(self, input_file):
        """Decode a .lab file and summarize it without converting

        Returns:
            dict: SkeletalAsset.summary() of the decoded asset

        Raises:
            ConversionError: If reading or decoding fails
        """
        source = str(input_file)
        reader, data = self._read(input_file)
        return self._decode(reader, data, source).summary()


def convert_file(path, settings=None, progress_callback=None) -> ColladaDocument:
    """Convert one .lab file into a COLLADA document

    Raises:
        ConversionError: Tagged with the stage that failed
    """
    return LabToColladaConverter(progress_callback, settings).convert_file(path)
