"""Pydantic models for YAML workflow definitions.

These mirror the snapshot structures in flowrun/types.py but accept the
looser shapes people write by hand (node type in any case, variables as a
name -> type mapping) and convert them into a WorkflowSnapshot.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from flowrun.ids import validate_id
from flowrun.types import (
    NodeType,
    SnapshotEdge,
    SnapshotNode,
    SnapshotVariable,
    WorkflowSnapshot,
)


class NodeYAML(BaseModel):
    """Validated schema for a node entry in a workflow file."""

    id: str
    type: NodeType = NodeType.ACTION
    label: Optional[str] = None
    config: dict[str, Any] = Field(default_factory=dict)
    disabled: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        if isinstance(v, str):
            return NodeType(v.lower())
        return v


class EdgeYAML(BaseModel):
    """Validated schema for an edge entry. ``id`` is derived when omitted."""

    id: Optional[str] = None
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    label: Optional[str] = None


class VariableYAML(BaseModel):
    name: str
    type: Optional[str] = None


class WorkflowYAML(BaseModel):
    """Root schema for a workflow file."""

    id: str
    name: str = ""
    version: str = "1.0.0"
    nodes: list[NodeYAML] = Field(default_factory=list)
    edges: list[EdgeYAML] = Field(default_factory=list)
    triggers: list[dict[str, Any]] = Field(default_factory=list)
    variables: Union[list[VariableYAML], dict[str, Optional[str]]] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def check_id(cls, v):
        return validate_id("workflow", v)

    def to_snapshot(self) -> WorkflowSnapshot:
        """Build the frozen snapshot an execution is created from."""
        if isinstance(self.variables, dict):
            variables = [SnapshotVariable(name=k, type=t) for k, t in self.variables.items()]
        else:
            variables = [SnapshotVariable(name=v.name, type=v.type) for v in self.variables]

        return WorkflowSnapshot(
            nodes=[
                SnapshotNode(
                    id=n.id,
                    type=n.type,
                    label=n.label,
                    config=n.config or None,
                    disabled=n.disabled,
                )
                for n in self.nodes
            ],
            edges=[
                SnapshotEdge(
                    id=e.id or f"ed_{i + 1}",
                    source=e.source,
                    target=e.target,
                    label=e.label,
                )
                for i, e in enumerate(self.edges)
            ],
            triggers=self.triggers or None,
            variables=variables or None,
        )
