"""Quake ``.map`` file parser.

Parses the brace-nested text format written by Quake-family level editors::

    {                                   // entity
    "classname" "worldspawn"            // key/value property
    "wad" "gfx/base.wad"
    {                                   // brush
    ( x y z ) ( x y z ) ( x y z ) TEXNAME offX offY rotation scaleX scaleY
    ...
    }
    }

The Valve 220 face variant, which replaces ``offX offY`` with two bracketed
texture axes (``[ ux uy uz offset ] [ vx vy vz offset ]``), is accepted too.
``//`` starts a comment running to the end of the line.

Every point is remapped from Quake's Z-up space into the Y-up output space as
it is read, and each face plane is built from its points in ``(p0, p2, p1)``
order so the plane normal keeps pointing out of the brush.

Usage::

    from quakeview.maps.map_parser import parse_map

    with open("start.map", encoding="ascii", errors="replace") as fh:
        entities = parse_map(fh.read())

    for ent in entities:
        print(ent.classname, len(ent.brushes))
"""

from __future__ import annotations

from dataclasses import dataclass, field

from quakeview.common.errors import UnexpectedEndOfInputError, UnexpectedTokenError
from quakeview.maps.geometry import Plane, Vec2, Vec3, plane_from_points, remap_position


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BrushFace:
    """One half-space of a convex brush plus its texture placement.

    ``points`` are the three reference points after the coordinate remap.
    ``u_axis``/``v_axis`` are only set for Valve 220 faces; standard faces get
    their axes from the base-axis table at projection time.
    """

    points: tuple[Vec3, Vec3, Vec3]
    plane: Plane
    texture: str
    offset: Vec2
    rotation: float
    scale: Vec2
    u_axis: Vec3 | None = None
    v_axis: Vec3 | None = None
    line: int = 0


@dataclass
class Brush:
    """A convex solid: the intersection of the inside half-spaces of its faces."""

    faces: list[BrushFace] = field(default_factory=list)
    line: int = 0


@dataclass
class MapEntity:
    """One entity block: key/value properties and the brushes it owns."""

    properties: dict[str, str] = field(default_factory=dict)
    brushes: list[Brush] = field(default_factory=list)
    line: int = 0

    @property
    def classname(self) -> str:
        return self.properties.get("classname", "")


# ---------------------------------------------------------------------------
# Lexer
# ---------------------------------------------------------------------------

_PUNCT = frozenset("{}()[]\"")


class _Lexer:
    """Character-level reader with one-character lookahead and positions."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1

    def _advance(self, n: int = 1) -> None:
        for _ in range(n):
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def _skip_blank(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch.isspace():
                self._advance()
            elif text.startswith("//", self.pos):
                while self.pos < len(text) and text[self.pos] != "\n":
                    self._advance()
            else:
                break

    def peek(self) -> str | None:
        self._skip_blank()
        if self.pos >= len(self.text):
            return None
        return self.text[self.pos]

    def expect(self, ch: str, *, inside: str) -> None:
        found = self.peek()
        if found is None:
            raise UnexpectedEndOfInputError(inside=inside, line=self.line)
        if found != ch:
            raise UnexpectedTokenError(expected=repr(ch), found=found, line=self.line, column=self.column)
        self._advance()

    def quoted(self, *, inside: str) -> str:
        self.expect('"', inside=inside)
        end = self.text.find('"', self.pos)
        if end == -1:
            self.pos = len(self.text)
            raise UnexpectedEndOfInputError(inside="quoted string", line=self.line)
        value = self.text[self.pos : end]
        self._advance(end - self.pos + 1)
        return value

    def word(self, *, inside: str, raw: bool = False) -> str:
        """Read a bare token.

        With ``raw`` the token runs to the next whitespace (texture names may
        contain punctuation); otherwise punctuation also ends it.
        """

        if self.peek() is None:
            raise UnexpectedEndOfInputError(inside=inside, line=self.line)
        start = self.pos
        text = self.text
        end = start
        while end < len(text) and not text[end].isspace():
            if not raw and text[end] in _PUNCT:
                break
            end += 1
        if end == start:
            raise UnexpectedTokenError(expected="a token", found=text[start], line=self.line, column=self.column)
        self._advance(end - start)
        return text[start:end]

    def number(self, *, inside: str) -> float:
        line, column = self.line, self.column
        tok = self.word(inside=inside)
        try:
            return float(tok)
        except ValueError:
            raise UnexpectedTokenError(expected="a number", found=tok, line=line, column=column) from None


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------

def parse_map(text: str) -> list[MapEntity]:
    """Parse ``.map`` text into entities, in file order.

    Raises :class:`~quakeview.common.errors.UnexpectedTokenError` or
    :class:`~quakeview.common.errors.UnexpectedEndOfInputError` on malformed
    input.  Empty input yields an empty list.
    """

    lex = _Lexer(text)
    entities: list[MapEntity] = []
    while lex.peek() is not None:
        entities.append(_parse_entity(lex))
    return entities


def _parse_entity(lex: _Lexer) -> MapEntity:
    lex.peek()
    ent = MapEntity(line=lex.line)
    lex.expect("{", inside="map")

    while True:
        ch = lex.peek()
        if ch is None:
            raise UnexpectedEndOfInputError(inside="entity", line=lex.line)
        if ch == '"':
            key = lex.quoted(inside="entity")
            ent.properties[key] = lex.quoted(inside="entity")
        elif ch == "{":
            ent.brushes.append(_parse_brush(lex))
        elif ch == "}":
            if not ent.properties:
                raise UnexpectedTokenError(
                    expected='a "key" "value" property', found=ch, line=lex.line, column=lex.column
                )
            lex.expect("}", inside="entity")
            return ent
        else:
            raise UnexpectedTokenError(expected="'\"', '{' or '}'", found=ch, line=lex.line, column=lex.column)


def _parse_brush(lex: _Lexer) -> Brush:
    brush = Brush(line=lex.line)
    lex.expect("{", inside="entity")

    while True:
        ch = lex.peek()
        if ch is None:
            raise UnexpectedEndOfInputError(inside="brush", line=lex.line)
        if ch == "(":
            brush.faces.append(_parse_face(lex))
        elif ch == "}" and brush.faces:
            lex.expect("}", inside="brush")
            return brush
        else:
            expected = "'(' or '}'" if brush.faces else "'('"
            raise UnexpectedTokenError(expected=expected, found=ch, line=lex.line, column=lex.column)


def _parse_point(lex: _Lexer) -> Vec3:
    lex.expect("(", inside="brush")
    x = lex.number(inside="brush")
    y = lex.number(inside="brush")
    z = lex.number(inside="brush")
    lex.expect(")", inside="brush")
    return remap_position((x, y, z))


def _parse_axis(lex: _Lexer) -> tuple[Vec3, float]:
    lex.expect("[", inside="brush")
    x = lex.number(inside="brush")
    y = lex.number(inside="brush")
    z = lex.number(inside="brush")
    offset = lex.number(inside="brush")
    lex.expect("]", inside="brush")
    return remap_position((x, y, z)), offset


def _parse_face(lex: _Lexer) -> BrushFace:
    line = lex.line
    p0 = _parse_point(lex)
    p1 = _parse_point(lex)
    p2 = _parse_point(lex)
    texture = lex.word(inside="brush", raw=True)

    u_axis: Vec3 | None = None
    v_axis: Vec3 | None = None
    if lex.peek() == "[":
        u_axis, off_x = _parse_axis(lex)
        v_axis, off_y = _parse_axis(lex)
    else:
        off_x = lex.number(inside="brush")
        off_y = lex.number(inside="brush")
    rotation = lex.number(inside="brush")
    sx = lex.number(inside="brush")
    sy = lex.number(inside="brush")

    return BrushFace(
        points=(p0, p1, p2),
        plane=plane_from_points(p0, p2, p1),
        texture=texture,
        offset=(off_x, off_y),
        rotation=rotation,
        scale=(sx if sx != 0 else 1.0, sy if sy != 0 else 1.0),
        u_axis=u_axis,
        v_axis=v_axis,
        line=line,
    )
