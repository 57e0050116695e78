"""
Nginx Configuration Model

Architectural Intent:
- Structured builder for nginx configuration: blocks and directives
- A single serializer owns quoting, terminators and indentation, so callers
  cannot emit an unbalanced brace or an unterminated directive
- Pure data, testable without spawning nginx
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Union

_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
_NEEDS_QUOTES_RE = re.compile(r"[\s;{}\"'#\\]")


def quote(arg: str) -> str:
    if arg and not _NEEDS_QUOTES_RE.search(arg):
        return arg
    escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass(frozen=True)
class Directive:
    name: str
    args: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not _NAME_RE.match(self.name):
            raise ValueError(f"Invalid nginx directive name: {self.name!r}")


@dataclass(frozen=True)
class Comment:
    text: str

    def __post_init__(self) -> None:
        if "\n" in self.text:
            raise ValueError("Comments must be a single line")


@dataclass(frozen=True)
class Block:
    name: str
    args: tuple[str, ...] = ()
    children: tuple["Node", ...] = ()

    def __post_init__(self) -> None:
        if not _NAME_RE.match(self.name):
            raise ValueError(f"Invalid nginx block name: {self.name!r}")

    def find(self, name: str) -> list["Node"]:
        return [
            c for c in self.children
            if isinstance(c, (Directive, Block)) and c.name == name
        ]


Node = Union[Directive, Block, Comment]


def directive(name: str, *args: object) -> Directive:
    return Directive(name, tuple(str(a) for a in args))


def block(name: str, *args: object, children: list[Node]) -> Block:
    return Block(name, tuple(str(a) for a in args), tuple(children))


def _head(name: str, args: tuple[str, ...]) -> str:
    return " ".join([name, *(quote(a) for a in args)])


def render(nodes: list[Node], indent: str = "    ") -> str:
    lines: list[str] = []

    def emit(node: Node, depth: int) -> None:
        pad = indent * depth
        if isinstance(node, Comment):
            lines.append(f"{pad}# {node.text}")
        elif isinstance(node, Directive):
            lines.append(f"{pad}{_head(node.name, node.args)};")
        else:
            lines.append(f"{pad}{_head(node.name, node.args)} {{")
            for child in node.children:
                emit(child, depth + 1)
            lines.append(f"{pad}}}")

    for i, node in enumerate(nodes):
        if i and isinstance(node, Block):
            lines.append("")
        emit(node, 0)
    return "\n".join(lines) + "\n"
