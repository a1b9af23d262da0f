# pymsh/cli.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import (EXIT_CONVERSION_FAILED, EXIT_INPUT_UNREADABLE, EXIT_OK, EXIT_OUTPUT_UNWRITABLE,
                     EXIT_VALIDATION_FAILED, OUTPUT_SUFFIX, ExportOptions)
from .errors import ValidationError
from .log import setup_logging
from .mesh import Mesh
from .reader import read_mesh_file
from .writer import validate, write

logger = logging.getLogger("pymsh.cli")

_DEF_HELP = """
Examples:
  pymsh ship.msh                    writes ship.cmsh, separate vertex arrays
  pymsh -s -i ship.msh -o out.cmsh  interleaved vertex records
  pymsh -m ship.msh                 material names are not written
"""


def _option_index(argv: List[str], flag: str, value: str) -> int:
    for i, tok in enumerate(argv):
        if tok == flag + value or (tok == value and i and argv[i - 1] == flag):
            return i
    return -1


def _positional_index(argv: List[str], value: str) -> int:
    for i, tok in enumerate(argv):
        if tok == value and not (i and argv[i - 1] in ("-i", "-o")):
            return i
    return -1


def default_output_path(input_path: str) -> Path:
    return Path(input_path).with_suffix(OUTPUT_SUFFIX)


def _log_summary(mesh: Mesh) -> None:
    logger.info("Group Count:    %d", len(mesh.groups))
    logger.info("Material Count: %d", len(mesh.materials))
    logger.info("Texture Count:  %d", len(mesh.textures))
    for g in mesh.groups:
        logger.info("Mesh Group: %s", g.label)
        logger.info("    Mat Index:     %d", g.material.wire_value())
        logger.info("    Texture Index: %d", g.texture.wire_value())
        logger.info("    Vertex Count:  %d", g.nvtx)
        logger.info("    Index Count:   %d", g.nidx)


def convert(input_path: str, output_path: Path, options: ExportOptions) -> int:
    """Run the text -> binary pipeline for one file and return the exit code."""
    try:
        mesh, report = read_mesh_file(input_path)
    except OSError as exc:
        logger.error("Could not open \"%s\": %s", input_path, exc)
        return EXIT_INPUT_UNREADABLE

    if not report.ok or not mesh.groups:
        logger.error("Could not convert \"%s\" data: %s", input_path, report.aborted or "no groups")
        return EXIT_CONVERSION_FAILED
    if report.skipped or report.dropped_groups:
        logger.warning("%d lines skipped, %d groups dropped", len(report.skipped), len(report.dropped_groups))

    try:
        validate(mesh)
    except ValidationError as exc:
        logger.error("Converted mesh failed validation: %s", exc)
        return EXIT_VALIDATION_FAILED

    _log_summary(mesh)
    try:
        nbytes = write(output_path, mesh, options)
    except OSError as exc:
        logger.error("Could not create \"%s\": %s", output_path, exc)
        return EXIT_OUTPUT_UNWRITABLE
    logger.info("Wrote %s (%d bytes)", output_path, nbytes)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="pymsh", description="pymsh: MSHX1 text mesh to binary .cmsh converter",
                                epilog=_DEF_HELP, formatter_class=argparse.RawTextHelpFormatter)
    p.add_argument("input", nargs="?", help="Input mesh file")
    p.add_argument("output", nargs="?", help="Output file (default: input with .cmsh extension)")
    p.add_argument("-i", dest="input_opt", metavar="INPUT", help="Input mesh file")
    p.add_argument("-o", dest="output_opt", metavar="OUTPUT", help="Output file")
    p.add_argument("-s", dest="flatten", action="store_true", help="All vertex elements in a single array")
    p.add_argument("-m", dest="no_names", action="store_true", help="Do not preserve material names")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    if argv is None:
        argv = sys.argv[1:]
    args = p.parse_intermixed_args(argv)
    input_path = args.input_opt or args.input
    output_path = args.output_opt or args.output
    if args.input_opt and args.input and not output_path:
        # "-i a.msh b.cmsh": a lone positional after -i is the output; before -i it was an overridden input
        if 0 <= _option_index(argv, "-i", args.input_opt) < _positional_index(argv, args.input):
            output_path = args.input

    if not input_path:
        p.print_help()
        return EXIT_OK

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    options = ExportOptions(flatten_vertices=args.flatten, material_names=not args.no_names)
    out = Path(output_path) if output_path else default_output_path(input_path)
    if out.resolve() == Path(input_path).resolve():
        logger.error("Output \"%s\" would overwrite the input", out)
        return EXIT_OUTPUT_UNWRITABLE
    return convert(input_path, out, options)
