"""Application configuration + declarative YAML workflow loader for flowrun.

All env vars defined here with FLOWRUN_ prefix.
YAML loader: load_workflow_yaml()
"""

from pydantic_settings import BaseSettings

from flowrun.config.loader import load_workflow_yaml
from flowrun.config.schema import EdgeYAML, NodeYAML, VariableYAML, WorkflowYAML
from flowrun.types import Environment


class FlowrunConfig(BaseSettings):
    # ── App ──
    debug: bool = False                            # CLI logs at DEBUG when set
    log_level: str = "INFO"                        # CLI root logger level
    environment: Environment = Environment.DEVELOPMENT   # reported as {{system.environment}}

    # ── Execution state ──
    default_max_attempts: int = 1                  # 1 = no retries unless the node says otherwise

    # ── Expressions ──
    memoize_resolution: bool = True                # cache per expression within one node evaluation

    model_config = {"env_prefix": "FLOWRUN_", "env_file": ".env", "extra": "ignore"}


config = FlowrunConfig()


__all__ = [
    "FlowrunConfig",
    "config",
    "load_workflow_yaml",
    "WorkflowYAML",
    "NodeYAML",
    "EdgeYAML",
    "VariableYAML",
]
