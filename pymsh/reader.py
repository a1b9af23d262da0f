# pymsh/reader.py
"""
Reader for the line-oriented ``MSHX1`` mesh text format.

Layout::

    MSHX1
    [STATICMESH]
    GROUPS <n>
    <n group blocks: directives, then GEOM <nvtx> <ntri>, vertex lines, index lines>
    [MATERIALS <m>, m name lines, m blocks of MATERIAL <name> + 4 color lines]
    [TEXTURES <t>, t lines of <file> [D]]

The reader is permissive: a malformed line is skipped or defaulted and a
broken group is left out, and both are recorded in the ``ParseReport``.
Only a wrong magic line or an unreadable ``GROUPS`` line abort the parse,
which then yields an empty mesh.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import SOURCE_MAGIC, RenderSettings
from .errors import MeshError, MeshParseError
from .mesh import DEFAULT, INHERIT, Group, GroupFlag, IndexRef, Material, Mesh, Texture

logger = logging.getLogger(__name__)

BufferHook = Callable[[Group, RenderSettings], bool]


# -----------------------------
# Parse report
# -----------------------------

@dataclass
class LineOutcome:
    lineno: int
    text: str
    accepted: bool
    reason: str = ""


@dataclass
class ParseReport:
    outcomes: List[LineOutcome] = field(default_factory=list)
    dropped_groups: List[Tuple[int, str]] = field(default_factory=list)
    aborted: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.aborted is None

    @property
    def accepted(self) -> List[LineOutcome]:
        return [o for o in self.outcomes if o.accepted]

    @property
    def skipped(self) -> List[LineOutcome]:
        return [o for o in self.outcomes if not o.accepted]

    def accept(self, lineno: int, text: str, note: str = "") -> None:
        self.outcomes.append(LineOutcome(lineno, text, True, note))

    def skip(self, lineno: int, text: str, reason: str) -> None:
        logger.debug("line %d skipped: %s", lineno, reason)
        self.outcomes.append(LineOutcome(lineno, text, False, reason))

    def drop_group(self, ordinal: int, reason: str) -> None:
        logger.warning("group %d dropped: %s", ordinal, reason)
        self.dropped_groups.append((ordinal, reason))


# -----------------------------
# Field scanning
# -----------------------------

def _scan(fields: Sequence[str], conv: Callable[[str], Union[int, float]], limit: int) -> list:
    """Convert leading fields until the first one that does not parse."""
    out = []
    for tok in fields[:limit]:
        try:
            out.append(conv(tok))
        except ValueError:
            break
    return out


def _scan_floats(fields: Sequence[str], limit: int) -> List[float]:
    return _scan(fields, float, limit)


def _scan_ints(fields: Sequence[str], limit: int) -> List[int]:
    return _scan(fields, int, limit)


def _keyword(fields: Sequence[str]) -> str:
    return fields[0].upper() if fields else ""


def _color(values: Sequence[float], alpha: float) -> Tuple[float, float, float, float]:
    rgb = list(values[:3]) + [0.0] * (3 - min(len(values), 3))
    a = values[3] if len(values) > 3 else alpha
    return (rgb[0], rgb[1], rgb[2], a)


class _Lines:
    """Numbered line iterator with one line of push-back."""

    def __init__(self, lines: Iterable[str]):
        self._it: Iterator[str] = iter(lines)
        self._pushed: Optional[Tuple[int, str]] = None
        self.lineno = 0

    def next(self) -> Optional[Tuple[int, str]]:
        if self._pushed is not None:
            item, self._pushed = self._pushed, None
            return item
        try:
            text = next(self._it)
        except StopIteration:
            return None
        self.lineno += 1
        return self.lineno, text.rstrip("\r\n")

    def next_nonblank(self) -> Optional[Tuple[int, str]]:
        while True:
            item = self.next()
            if item is None or item[1].strip():
                return item

    def push_back(self, item: Tuple[int, str]) -> None:
        self._pushed = item


@dataclass
class _GroupState:
    material: IndexRef = INHERIT
    texture: IndexRef = INHERIT
    zbias: int = 0
    flags: GroupFlag = GroupFlag.NONE
    user_flag: int = 0
    label: str = ""
    has_normals: bool = True
    calc_normals: bool = False
    flip: bool = False


class _Truncated(Exception):
    pass


# -----------------------------
# Reader
# -----------------------------

class MeshReader:
    """
    One-shot parser. ``prepare_buffer`` is called with the group and ``render``
    for every group carrying the shadow/static bit so a renderer can build
    device buffers early; pass None when no such collaborator exists.
    """

    def __init__(self, lines: Iterable[str], prepare_buffer: Optional[BufferHook] = None,
                 render: Optional[RenderSettings] = None):
        self._lines = _Lines(lines)
        self._prepare_buffer = prepare_buffer
        self._render = render if render is not None else RenderSettings()
        self.mesh = Mesh()
        self.report = ParseReport()

    def read(self) -> Tuple[Mesh, ParseReport]:
        header = self._read_header()
        if header is None:
            self.mesh = Mesh()
            return self.mesh, self.report
        ngrp, static = header

        for ordinal in range(ngrp):
            if not self._read_group(ordinal, static):
                logger.warning("input ended after %d of %d groups", ordinal, ngrp)
                break
        else:
            self._read_materials()
            self._read_textures()

        self.mesh.recompute_derived()
        logger.debug("parsed %d groups, %d materials, %d textures (%d lines skipped)",
                     len(self.mesh.groups), len(self.mesh.materials), len(self.mesh.textures),
                     len(self.report.skipped))
        return self.mesh, self.report

    def _abort(self, reason: str, lineno: Optional[int] = None) -> None:
        where = f" at line {lineno}" if lineno is not None else ""
        logger.error("mesh parse aborted%s: %s", where, reason)
        self.report.aborted = reason

    # ---- header ----
    def _read_header(self) -> Optional[Tuple[int, bool]]:
        item = self._lines.next()
        if item is None or item[1].strip() != SOURCE_MAGIC:
            self._abort(f"first line is not {SOURCE_MAGIC}", 1)
            return None
        self.report.accept(*item)

        static = False
        while True:
            item = self._lines.next()
            if item is None:
                self._abort("no GROUPS directive")
                return None
            lineno, text = item
            fields = text.split()
            kw = _keyword(fields)
            if kw == "GROUPS":
                counts = _scan_ints(fields[1:], 1)
                if not counts or counts[0] < 0:
                    self._abort("GROUPS count does not parse", lineno)
                    return None
                self.report.accept(lineno, text)
                return counts[0], static
            if kw == "STATICMESH":
                static = True
                self.report.accept(lineno, text)
            elif fields:
                self.report.skip(lineno, text, "ignored before GROUPS")

    # ---- groups ----
    def _read_group(self, ordinal: int, static: bool) -> bool:
        """Read one group block; False once the input is exhausted."""
        st = _GroupState(flags=GroupFlag.SHADOW if static else GroupFlag.NONE)
        while True:
            item = self._lines.next()
            if item is None:
                return False
            lineno, text = item
            fields = text.split()
            kw = _keyword(fields)
            if not fields:
                continue
            if kw == "GEOM":
                counts = _scan_ints(fields[1:], 2)
                if len(counts) != 2 or min(counts) < 0:
                    self.report.skip(lineno, text, "GEOM needs vertex and triangle counts")
                    self.report.drop_group(ordinal, "unreadable GEOM line")
                    return True
                self.report.accept(lineno, text)
                try:
                    self._read_geometry(ordinal, st, *counts)
                except _Truncated:
                    self.report.drop_group(ordinal, "input ends inside GEOM block")
                    return False
                return True
            self._group_directive(st, kw, fields, lineno, text)

    def _group_directive(self, st: _GroupState, kw: str, fields: List[str], lineno: int, text: str) -> None:
        args = fields[1:]
        if kw in ("MATERIAL", "TEXTURE"):
            vals = _scan_ints(args, 1)
            if not vals or vals[0] < 0:
                self.report.skip(lineno, text, f"{kw} needs a non-negative index")
                return
            ref = IndexRef.explicit(vals[0] - 1) if vals[0] > 0 else DEFAULT
            if kw == "MATERIAL":
                st.material = ref
            else:
                st.texture = ref
        elif kw == "ZBIAS":
            vals = _scan_ints(args, 1)
            if not vals or not 0 <= vals[0] <= 0xFFFF:
                self.report.skip(lineno, text, "ZBIAS needs a 16-bit unsigned value")
                return
            st.zbias = vals[0]
        elif kw == "TEXWRAP":
            letters = args[0].upper() if args else ""
            if "U" in letters:
                st.flags |= GroupFlag.WRAP_U
            if "V" in letters:
                st.flags |= GroupFlag.WRAP_V
        elif kw == "NONORMAL":
            st.has_normals = False
            st.calc_normals = True
        elif kw == "FLAG":
            try:
                st.user_flag = int(args[0], 16) & 0xFFFFFFFF
            except (IndexError, ValueError):
                self.report.skip(lineno, text, "FLAG needs a hex value")
                return
        elif kw == "FLIP":
            st.flip = True
        elif kw == "LABEL":
            st.label = text.strip()[len(fields[0]):].strip()
        elif kw == "STATIC":
            st.flags |= GroupFlag.SHADOW
        elif kw == "DYNAMIC":
            st.flags ^= GroupFlag.SHADOW
        else:
            self.report.skip(lineno, text, f"unknown directive {fields[0]}")
            return
        self.report.accept(lineno, text)

    def _data_line(self) -> Tuple[int, str, List[str]]:
        item = self._lines.next()
        if item is None:
            raise _Truncated()
        lineno, text = item
        return lineno, text, text.split()

    def _read_geometry(self, ordinal: int, st: _GroupState, nvtx: int, ntri: int) -> None:
        vtx = np.zeros((nvtx, 8), dtype=np.float32)
        width = 8 if st.has_normals else 5
        for i in range(nvtx):
            lineno, text, fields = self._data_line()
            vals = _scan_floats(fields, width)
            if st.has_normals:
                vtx[i, :len(vals)] = vals
                if len(vals) < 6:
                    st.calc_normals = True
            else:
                vtx[i, :min(len(vals), 3)] = vals[:3]
                vtx[i, 6:6 + max(len(vals) - 3, 0)] = vals[3:5]
            if len(vals) < width:
                self.report.accept(lineno, text, f"{len(vals)} of {width} vertex fields, rest set to 0")
            else:
                self.report.accept(lineno, text)

        idx = np.zeros(ntri * 3, dtype=np.int64)
        for i in range(ntri):
            lineno, text, fields = self._data_line()
            vals = _scan_ints(fields, 3)
            idx[i * 3:i * 3 + len(vals)] = vals
            if len(vals) < 3:
                self.report.accept(lineno, text, f"{len(vals)} of 3 indices, rest set to 0")
            else:
                self.report.accept(lineno, text)

        if not nvtx or not ntri:
            self.report.drop_group(ordinal, "empty geometry")
            return
        if idx.min() < 0 or idx.max() >= nvtx:
            self.report.drop_group(ordinal, f"triangle index out of range for {nvtx} vertices")
            return
        try:
            grp = self.mesh.add_group(vtx, idx, st.material, st.texture, st.zbias, st.user_flag,
                                      flags=st.flags, label=st.label)
        except MeshError as exc:
            self.report.drop_group(ordinal, str(exc))
            return

        g = self.mesh.groups[grp]
        if st.flip:
            g.flip()
        if st.calc_normals:
            self.mesh.calc_normals(grp, missing_only=True)
        if g.flags & GroupFlag.SHADOW and self._prepare_buffer is not None:
            if not self._prepare_buffer(g, self._render):
                logger.debug("group %d: no eager vertex buffer", grp)

    # ---- trailing lists ----
    def _section(self, keyword: str) -> Optional[int]:
        item = self._lines.next_nonblank()
        if item is None:
            return None
        lineno, text = item
        fields = text.split()
        if _keyword(fields) != keyword:
            self._lines.push_back(item)
            return None
        counts = _scan_ints(fields[1:], 1)
        if not counts or counts[0] < 0:
            self.report.skip(lineno, text, f"{keyword} count does not parse")
            return None
        self.report.accept(lineno, text)
        return counts[0]

    def _read_materials(self) -> None:
        nmtrl = self._section("MATERIALS")
        if nmtrl is None:
            return
        names: List[str] = []
        for _ in range(nmtrl):
            item = self._lines.next()
            if item is None:
                break
            names.append(item[1].strip())
            self.report.accept(*item)

        materials: List[Material] = []
        try:
            for i in range(nmtrl):
                lineno, text, fields = self._data_line()
                if _keyword(fields) == "MATERIAL":
                    self.report.accept(lineno, text)
                else:
                    self.report.skip(lineno, text, "expected MATERIAL header")
                rows = [self._data_line() for _ in range(4)]
                diffuse = _color(_scan_floats(rows[0][2], 4), 1.0)
                alpha = diffuse[3]
                ambient = _color(_scan_floats(rows[1][2], 4), alpha)
                spec_vals = _scan_floats(rows[2][2], 5)
                specular = _color(spec_vals, alpha)
                power = spec_vals[4] if len(spec_vals) > 4 else 0.0
                emissive = _color(_scan_floats(rows[3][2], 4), alpha)
                for row in rows:
                    self.report.accept(row[0], row[1])
                name = names[i] if i < len(names) else ""
                materials.append(Material(diffuse, ambient, specular, emissive, power, name))
        except _Truncated:
            logger.warning("material list truncated after %d of %d entries", len(materials), nmtrl)
        self.mesh.extend_materials(materials)

    def _read_textures(self) -> None:
        ntex = self._section("TEXTURES")
        if ntex is None:
            return
        textures: List[Texture] = []
        for _ in range(ntex):
            item = self._lines.next()
            if item is None:
                logger.warning("texture list truncated after %d of %d entries", len(textures), ntex)
                break
            lineno, text = item
            fields = text.split()
            if not fields:
                self.report.skip(lineno, text, "empty texture line, stored as no texture")
                textures.append(Texture())
                continue
            name = "" if fields[0] == "0" else fields[0]
            uncompressed = len(fields) > 1 and fields[1][:1].upper() == "D"
            textures.append(Texture(name, uncompressed))
            self.report.accept(lineno, text)
        self.mesh.extend_textures(textures)


# -----------------------------
# Convenience entry points
# -----------------------------

def read_mesh(lines: Iterable[str], prepare_buffer: Optional[BufferHook] = None, strict: bool = False,
              render: Optional[RenderSettings] = None) -> Tuple[Mesh, ParseReport]:
    """Parse ``lines``; with ``strict`` a structural failure raises MeshParseError."""
    mesh, report = MeshReader(lines, prepare_buffer, render).read()
    if strict and not report.ok:
        raise MeshParseError(report.aborted)
    return mesh, report


def loads(text: str, prepare_buffer: Optional[BufferHook] = None) -> Mesh:
    return read_mesh(text.splitlines(), prepare_buffer)[0]


def read_mesh_file(path: Union[str, os.PathLike], prepare_buffer: Optional[BufferHook] = None,
                   strict: bool = False,
                   render: Optional[RenderSettings] = None) -> Tuple[Mesh, ParseReport]:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return read_mesh(f, prepare_buffer, strict, render)


def load(path: Union[str, os.PathLike], prepare_buffer: Optional[BufferHook] = None) -> Mesh:
    return read_mesh_file(path, prepare_buffer)[0]
