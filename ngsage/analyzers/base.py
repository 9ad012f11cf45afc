from abc import ABC, abstractmethod
from bisect import bisect_right
from typing import Iterator, List, Optional, Tuple

from tree_sitter import Node, Tree

from ngsage.analyzers.ast_models import SourceRange


class LineIndex:
    """Maps byte offsets of a UTF-8 buffer to 1-based line/column pairs."""

    def __init__(self, source: bytes):
        self._starts: List[int] = [0]
        for i, byte in enumerate(source):
            if byte == 0x0A:
                self._starts.append(i + 1)

    def position(self, offset: int) -> Tuple[int, int]:
        row = bisect_right(self._starts, offset) - 1
        return row + 1, offset - self._starts[row] + 1

    def range(self, start: int, end: int) -> SourceRange:
        line, column = self.position(start)
        end_line, end_column = self.position(end)
        return SourceRange(
            start=start,
            end=end,
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
        )


class BaseParser(ABC):
    def __init__(self):
        self.tree: Optional[Tree] = None
        self._source: bytes = b""
        self._lines: Optional[LineIndex] = None

    def parse(self, source_code: str):
        self._source = source_code.encode("utf8")
        self._lines = LineIndex(self._source)
        self.tree = self._parse(self._source)

    @abstractmethod
    def _parse(self, source_code: bytes) -> Tree:
        raise NotImplementedError

    def first_error(self) -> Optional[Node]:
        """Returns the first ERROR or missing node in document order, if any."""
        if not self.tree or not self.tree.root_node.has_error:
            return None
        for node in self._walk(self.tree.root_node):
            if node.type == "ERROR" or node.is_missing:
                return node
        return self.tree.root_node

    def _walk(self, node):
        stack = [node]
        while stack:
            n = stack.pop()
            yield n
            stack.extend(reversed(n.children))

    def _text(self, node):
        return self._source[node.start_byte:node.end_byte].decode("utf8")

    def _range(self, node, offset: int = 0) -> SourceRange:
        return self._lines.range(node.start_byte + offset, node.end_byte + offset)

    def _descendants(self, node, *types: str) -> Iterator[Node]:
        for n in self._walk(node):
            if n.type in types:
                yield n
