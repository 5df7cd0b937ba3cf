"""Pydantic request/response schemas for API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from flow.model import TreeNode


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    input: str = Field(..., description="Work to decompose, becomes the root label")
    expand: bool = Field(default=False, description="Decompose recursively down to leaves")


class TreeRequest(BaseModel):
    """Replace the whole tree with a serialized snapshot."""
    tree: TreeNode


class ExpandRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    node_id: str = Field(..., alias="nodeId")


class ExpandAllRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    node_id: Optional[str] = Field(None, alias="nodeId")


class HoverRequest(BaseModel):
    """Hover a node (nodeId) or a connector (source + target)."""
    model_config = ConfigDict(populate_by_name=True)
    node_id: Optional[str] = Field(None, alias="nodeId")
    source: Optional[str] = None
    target: Optional[str] = None
