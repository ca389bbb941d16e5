"""Tree-sitter powered source index for TypeScript sources."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from ..logging import get_logger
from ..models import ClassDecl, Marker, MemberDecl, SourceFile

_TYPESCRIPT = Language(tree_sitter_typescript.language_typescript())

_EXCLUDED_DIRS = {"node_modules", ".git", ".angular", "dist"}

_CLASS_TYPES = {"class_declaration", "abstract_class_declaration"}
_FIELD_TYPES = {"public_field_definition", "field_definition"}


class TypeScriptSourceIndex:
    """Enumerates and parses the `*.ts` files of the configured modules."""

    def __init__(self, root: Path, base_path: str, modules: Sequence[str]) -> None:
        self.root = Path(root)
        self.base_path = base_path
        self.modules = list(modules)
        self._parser = Parser(_TYPESCRIPT)
        self.logger = get_logger("source_index")

    def paths(self) -> List[Path]:
        """Return the TypeScript files under every existing module directory."""
        found: Dict[Path, None] = {}
        for module in self.modules:
            module_dir = self.root / self.base_path / module
            if not module_dir.is_dir():
                self.logger.debug("Module directory %s does not exist; skipping", module_dir)
                continue
            for path in sorted(module_dir.rglob("*.ts")):
                if any(part in _EXCLUDED_DIRS for part in path.relative_to(self.root).parts):
                    continue
                found.setdefault(path, None)
        return list(found)

    def list_files(self) -> Iterator[SourceFile]:
        for path in self.paths():
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.debug("Skipping unreadable file %s: %s", path, exc)
                continue
            yield self.parse(path.as_posix(), text)

    def parse(self, path: str, text: str) -> SourceFile:
        return _parse(self._parser, path, text)


def parse_source(path: str, text: str) -> SourceFile:
    """Parse a single in-memory TypeScript file."""
    return _parse(Parser(_TYPESCRIPT), path, text)


def _parse(parser: Parser, path: str, text: str) -> SourceFile:
    source_bytes = text.encode("utf-8")
    tree = parser.parse(source_bytes)
    return SourceFile(path=path, classes=tuple(_collect_classes(tree.root_node, source_bytes)))


def _node_text(node: Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def _collect_classes(root: Node, source_bytes: bytes) -> Iterator[ClassDecl]:
    # Top-level declarations only, including `export` and `export default` forms.
    for child in root.named_children:
        if child.type in _CLASS_TYPES:
            yield _build_class(child, (), source_bytes)
        elif child.type == "export_statement":
            declaration = child.child_by_field_name("declaration")
            if declaration is None or declaration.type not in _CLASS_TYPES:
                declaration = _first_child_of_type(child, _CLASS_TYPES)
            if declaration is None:
                continue
            leading = tuple(c for c in child.named_children if c.type == "decorator")
            yield _build_class(declaration, leading, source_bytes)


def _build_class(node: Node, leading: Tuple[Node, ...], source_bytes: bytes) -> ClassDecl:
    name_node = node.child_by_field_name("name")
    name = _node_text(name_node, source_bytes) if name_node is not None else ""
    decorators = leading + tuple(c for c in node.named_children if c.type == "decorator")
    markers = tuple(_build_marker(d, source_bytes) for d in decorators)

    members: List[MemberDecl] = []
    body = node.child_by_field_name("body")
    if body is not None:
        pending: List[Node] = []
        for child in body.named_children:
            if child.type == "decorator":
                # Some grammar versions attach member decorators as siblings.
                pending.append(child)
                continue
            if child.type == "comment":
                continue
            if child.type in _FIELD_TYPES:
                members.append(_build_member(child, pending, source_bytes))
            pending = []
    return ClassDecl(name=name, markers=markers, members=tuple(members))


def _build_member(node: Node, preceding: Sequence[Node], source_bytes: bytes) -> MemberDecl:
    name_node = node.child_by_field_name("name")
    name = _node_text(name_node, source_bytes) if name_node is not None else ""
    decorators = list(preceding) + [c for c in node.named_children if c.type == "decorator"]
    value = node.child_by_field_name("value")
    initializer = _node_text(value, source_bytes) if value is not None else None
    return MemberDecl(
        name=name,
        markers=tuple(_build_marker(d, source_bytes) for d in decorators),
        initializer=initializer,
    )


def _build_marker(node: Node, source_bytes: bytes) -> Marker:
    text = _node_text(node, source_bytes)
    expression = next((c for c in node.named_children if c.type != "comment"), None)
    if expression is None:
        return Marker(name="", text=text)

    arguments: Optional[Tuple[str, ...]] = None
    callee = expression
    if expression.type == "call_expression":
        callee = expression.child_by_field_name("function") or expression
        args_node = expression.child_by_field_name("arguments")
        if args_node is not None:
            arguments = tuple(
                _node_text(arg, source_bytes)
                for arg in args_node.named_children
                if arg.type != "comment"
            )
    return Marker(name=_callee_name(callee, source_bytes), text=text, arguments=arguments)


def _callee_name(node: Node, source_bytes: bytes) -> str:
    if node.type == "member_expression":
        prop = node.child_by_field_name("property")
        if prop is not None:
            return _node_text(prop, source_bytes)
    if node.type == "parenthesized_expression":
        inner = next((c for c in node.named_children if c.type != "comment"), None)
        if inner is not None:
            return _callee_name(inner, source_bytes)
    return _node_text(node, source_bytes)


def _first_child_of_type(node: Node, types: set[str]) -> Optional[Node]:
    for child in node.named_children:
        if child.type in types:
            return child
    return None


__all__ = ["TypeScriptSourceIndex", "parse_source"]
