"""
Options and format constants
============================

Nothing here is read from disk. The two export switches travel as an
``ExportOptions`` value. ``RenderSettings`` carries the specular switch to
the reader's ``prepare_buffer`` hook; the converter never consults it.
"""
from __future__ import annotations

from dataclasses import dataclass

# Source text format
SOURCE_MAGIC = "MSHX1"

# Binary output format
BINARY_MAGIC = b"_CMSHX1_"
OUTPUT_SUFFIX = ".cmsh"

HEADER_SEPARATE_ARRAYS = 0x01
HEADER_MATERIAL_NAMES = 0x02

# Normal synthesis
DEGENERATE_EPS = 1e-8
MISSING_NORMAL_LEN2 = 0.1

# Exit codes of the command line tool
EXIT_OK = 0
EXIT_INPUT_UNREADABLE = 3
EXIT_CONVERSION_FAILED = 4
EXIT_OUTPUT_UNWRITABLE = 5
EXIT_VALIDATION_FAILED = 10


@dataclass(frozen=True)
class ExportOptions:
    """Export-time switches.

    flatten_vertices: write one interleaved record per vertex instead of
        three parallel arrays (positions, normals, texcoords).
    material_names: prefix every material record with its name.
    """
    flatten_vertices: bool = False
    material_names: bool = True

    @property
    def header_bits(self) -> int:
        bits = 0
        if not self.flatten_vertices:
            bits |= HEADER_SEPARATE_ARRAYS
        if self.material_names:
            bits |= HEADER_MATERIAL_NAMES
        return bits


@dataclass(frozen=True)
class RenderSettings:
    enable_specular: bool = False
