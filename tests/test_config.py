"""Tests for FlowrunConfig and the YAML workflow loader."""

import pytest
from pydantic import ValidationError

from flowrun.config import FlowrunConfig, load_workflow_yaml
from flowrun.types import Environment, NodeType

WORKFLOW_YAML = """
id: wf_onboarding
name: Onboarding
nodes:
  - id: nd_fetch
    type: Action
    config:
      url: "{{input.url}}"
  - id: nd_mail
    type: action
edges:
  - source: nd_fetch
    target: nd_mail
variables:
  email: string
"""


def test_defaults():
    cfg = FlowrunConfig()
    assert cfg.default_max_attempts == 1
    assert cfg.memoize_resolution is True
    assert cfg.environment == Environment.DEVELOPMENT


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("FLOWRUN_DEFAULT_MAX_ATTEMPTS", "4")
    monkeypatch.setenv("FLOWRUN_ENVIRONMENT", "production")
    cfg = FlowrunConfig()
    assert cfg.default_max_attempts == 4
    assert cfg.environment == Environment.PRODUCTION


def test_load_workflow_yaml(tmp_path):
    path = tmp_path / "wf.yaml"
    path.write_text(WORKFLOW_YAML)
    workflow = load_workflow_yaml(path)
    assert workflow.id == "wf_onboarding"
    assert workflow.nodes[0].type == NodeType.ACTION

    snapshot = workflow.to_snapshot()
    assert [n.id for n in snapshot.nodes] == ["nd_fetch", "nd_mail"]
    assert snapshot.edges[0].id == "ed_1"
    assert snapshot.nodes[0].config == {"url": "{{input.url}}"}
    assert snapshot.nodes[1].config is None
    assert snapshot.variables[0].name == "email"


def test_load_from_cwd(tmp_path, monkeypatch):
    (tmp_path / "workflow.yaml").write_text(WORKFLOW_YAML)
    monkeypatch.chdir(tmp_path)
    assert load_workflow_yaml().name == "Onboarding"


def test_missing_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError):
        load_workflow_yaml()
    with pytest.raises(FileNotFoundError):
        load_workflow_yaml(tmp_path / "nope.yaml")


def test_bad_ids_rejected(tmp_path):
    path = tmp_path / "wf.yaml"
    path.write_text("id: onboarding\nnodes: []\n")
    with pytest.raises(ValidationError):
        load_workflow_yaml(path)

    path.write_text("id: wf_ok\nnodes:\n  - id: fetch\n")
    with pytest.raises(ValidationError):
        load_workflow_yaml(path).to_snapshot()
