"""Load and validate workflow YAML files into Python objects.

Resolution order for a workflow file:
  1. Path passed explicitly by caller
  2. ./workflow.yaml in current working directory
"""

from pathlib import Path
from typing import Optional

import yaml

from flowrun.config.schema import WorkflowYAML

_DEFAULT_NAME = "workflow.yaml"


def _find_file(name: str, explicit: Optional[Path]) -> Path:
    """Locate workflow file: explicit > cwd."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise FileNotFoundError(f"Workflow file not found: {p}")
        return p

    cwd_path = Path.cwd() / name
    if cwd_path.exists():
        return cwd_path

    raise FileNotFoundError(
        f"No {name} found. Create one in your project directory "
        f"or use load_workflow_yaml(path=...)."
    )


def load_workflow_yaml(path: Optional[Path] = None) -> WorkflowYAML:
    """Load a workflow YAML file → validated WorkflowYAML.

    Args:
        path: Explicit path to the file. If None, looks for ./workflow.yaml.

    Returns:
        Validated WorkflowYAML; call ``.to_snapshot()`` to start an execution.
    """
    resolved = _find_file(_DEFAULT_NAME, path)
    raw = yaml.safe_load(resolved.read_text())
    return WorkflowYAML.model_validate(raw or {})
