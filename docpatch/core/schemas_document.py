"""Pydantic models for the block-tree document format.

Documents use ProseMirror-style JSON: a ``doc`` root whose ``content`` is an
ordered sequence of block nodes, each tagged by ``type``. The node set is
closed; anything outside it fails validation, which is what the recovery
pipeline relies on to reject malformed model output.

Top-level (flow) content: heading, paragraph, table, bulletList, orderedList.
Nested kinds: tableRow, tableCell, tableHeader, listItem, and text leaves.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _StrictNode(BaseModel):
    """Nodes reject unknown keys; attrs models carry them through."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# Inline
# =============================================================================


class Mark(_StrictNode):
    """Inline formatting mark on a text leaf."""

    type: Literal["bold", "italic", "underline"]


class TextNode(_StrictNode):
    type: Literal["text"]
    text: str
    marks: list[Mark] | None = None


# =============================================================================
# Attributes
# =============================================================================


class HeadingAttrs(BaseModel):
    model_config = ConfigDict(extra="allow")

    level: int = Field(default=1, ge=1, le=6)  # read-side default, not serialized unless given


class CellAttrs(BaseModel):
    model_config = ConfigDict(extra="allow")

    colspan: int = Field(default=1, ge=1)
    rowspan: int = Field(default=1, ge=1)
    colwidth: list[int] | None = None


# =============================================================================
# Blocks
# =============================================================================


class HeadingNode(_StrictNode):
    type: Literal["heading"]
    attrs: HeadingAttrs = Field(default_factory=HeadingAttrs)
    content: list[TextNode] = Field(default_factory=list)

    @property
    def level(self) -> int:
        return self.attrs.level


class ParagraphNode(_StrictNode):
    type: Literal["paragraph"]
    attrs: dict[str, Any] | None = None
    content: list[TextNode] = Field(default_factory=list)


class TableCellNode(_StrictNode):
    type: Literal["tableCell"]
    attrs: CellAttrs = Field(default_factory=CellAttrs)
    content: list[BlockNode] = Field(default_factory=list)


class TableHeaderNode(_StrictNode):
    type: Literal["tableHeader"]
    attrs: CellAttrs = Field(default_factory=CellAttrs)
    content: list[BlockNode] = Field(default_factory=list)


TableCell = Annotated[Union[TableCellNode, TableHeaderNode], Field(discriminator="type")]


class TableRowNode(_StrictNode):
    type: Literal["tableRow"]
    content: list[TableCell] = Field(default_factory=list)


class TableNode(_StrictNode):
    type: Literal["table"]
    attrs: dict[str, Any] | None = None
    content: list[TableRowNode] = Field(default_factory=list)


class ListItemNode(_StrictNode):
    type: Literal["listItem"]
    content: list[BlockNode] = Field(default_factory=list)


class BulletListNode(_StrictNode):
    type: Literal["bulletList"]
    content: list[ListItemNode] = Field(default_factory=list)


class OrderedListNode(_StrictNode):
    type: Literal["orderedList"]
    attrs: dict[str, Any] | None = None
    content: list[ListItemNode] = Field(default_factory=list)


BlockNode = Annotated[
    Union[HeadingNode, ParagraphNode, TableNode, BulletListNode, OrderedListNode],
    Field(discriminator="type"),
]

AnyNode = Union[
    TextNode,
    HeadingNode,
    ParagraphNode,
    TableNode,
    TableRowNode,
    TableCellNode,
    TableHeaderNode,
    BulletListNode,
    OrderedListNode,
    ListItemNode,
]

for _model in (TableCellNode, TableHeaderNode, TableRowNode, TableNode, ListItemNode):
    _model.model_rebuild()


class Document(BaseModel):
    """Root of a block-tree document."""

    model_config = ConfigDict(extra="allow")

    type: Literal["doc"] = "doc"
    content: list[BlockNode] = Field(default_factory=list)

    @property
    def title(self) -> str | None:
        """Concatenated text of the first level-1 heading, if any."""
        for node in self.content:
            if isinstance(node, HeadingNode) and node.level == 1:
                return node_text(node)
        return None


# =============================================================================
# Helpers
# =============================================================================

_BLOCK_LIST = TypeAdapter(list[BlockNode])


def validate_nodes(data: Any) -> list[BlockNode]:
    """Validate raw JSON data as a sequence of block nodes.

    Raises:
        pydantic.ValidationError: If any node violates the shape contract
    """
    return _BLOCK_LIST.validate_python(data)


def dump_nodes(nodes: list[BlockNode]) -> list[dict[str, Any]]:
    """Serialize block nodes back to plain JSON-compatible dicts.

    Only keys the nodes were built with are emitted, so defaults never appear
    in the output and explicit nulls (e.g. ``colwidth: null``) survive.
    """
    return _BLOCK_LIST.dump_python(nodes, mode="json", exclude_unset=True)


def node_text(node: AnyNode) -> str:
    """Concatenate every descendant text leaf of a node, in order."""
    if isinstance(node, TextNode):
        return node.text
    return "".join(node_text(child) for child in node.content)


def map_text_leaves(node: AnyNode, fn) -> AnyNode:
    """Return a deep copy of ``node`` with ``fn`` applied to every text leaf's text."""
    if isinstance(node, TextNode):
        return node.model_copy(update={"text": fn(node.text)})
    if not node.content:
        return node.model_copy(deep=True)
    children = [map_text_leaves(child, fn) for child in node.content]
    return node.model_copy(update={"content": children}, deep=True)
