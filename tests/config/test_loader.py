from pathlib import Path
import textwrap

import pytest

from clover.config.loader import load_config, state_dir_for
from clover.config.models import (
    AnsibleLocalProvisioner,
    AnsibleProvisioner,
    FileSpec,
    ShellProvisioner,
)
from clover.errors import ConfigurationError

FULL = textwrap.dedent("""
    nodes:
      - name: web
        provider:
          name: vagrant
          box: ubuntu/jammy64
          synced_folders:
            - src:/opt/src
          network:
            forwarded_port:
              - 80:8080:tcp
        provisioner:
          - name: shell
            content: echo first
          - name: ansible
            playbook: site.yml
            groups: [web, db]
            extra_vars: ["a=1", "b=2"]
          - name: shell
            content: echo ${GREETING}
          - name: ansible-local
            playbook: /clover/local.yml
        verifier:
          name: goss
          goss_file: /clover/goss.yaml
        files:
          - path: /etc/app.conf
            content: "key: value"
            user: app
            group: app
            mode: "0640"
          - path: /etc/motd
            content: hi
""")


def test_load_config_full(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("GREETING", "hello")
    f = tmp_path / "clover.yml"
    f.write_text(FULL)

    cfg = load_config(f)
    node = cfg.node("web")

    kinds = [type(p) for p in node.provisioner]
    assert kinds == [ShellProvisioner, AnsibleProvisioner, ShellProvisioner, AnsibleLocalProvisioner]
    assert node.provisioner[2].content == "echo hello"
    assert node.provisioner[1].extra_vars == ["a=1", "b=2"]
    assert node.verifier.goss_file == "/clover/goss.yaml"
    assert node.files[0].mode == 0o640
    assert node.files[1].mode == 0
    assert node.provider.network.forwarded_ports[0].host == 8080
    assert node.provider.folders[0].guest == "/opt/src"


def test_unsupported_provisioner_is_rejected_at_load(tmp_path: Path):
    f = tmp_path / "clover.yml"
    f.write_text(textwrap.dedent("""
        nodes:
          - name: web
            provider: {name: vagrant, box: b}
            provisioner:
              - name: puppet
                manifest: site.pp
    """))
    with pytest.raises(ConfigurationError, match="invalid configuration"):
        load_config(f)


@pytest.mark.parametrize(
    "provider",
    ["{name: docker, box: b}", "{name: vagrant}"],
)
def test_bad_provider_is_rejected(tmp_path: Path, provider):
    f = tmp_path / "clover.yml"
    f.write_text(f"nodes:\n  - name: web\n    provider: {provider}\n")
    with pytest.raises(ConfigurationError):
        load_config(f)


def test_unsupported_verifier_is_rejected(tmp_path: Path):
    f = tmp_path / "clover.yml"
    f.write_text(
        "nodes:\n  - name: web\n    provider: {name: vagrant, box: b}\n"
        "    verifier: {name: serverspec, spec_dir: spec}\n"
    )
    with pytest.raises(ConfigurationError):
        load_config(f)


def test_duplicate_node_names(tmp_path: Path):
    f = tmp_path / "clover.yml"
    f.write_text(
        "nodes:\n"
        "  - {name: web, provider: {name: vagrant, box: b}}\n"
        "  - {name: web, provider: {name: vagrant, box: c}}\n"
    )
    with pytest.raises(ConfigurationError, match="more than once"):
        load_config(f)


def test_missing_and_malformed_files(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "absent.yml")

    bad = tmp_path / "bad.yml"
    bad.write_text("nodes: [\n")
    with pytest.raises(ConfigurationError, match="not valid YAML"):
        load_config(bad)

    scalar = tmp_path / "scalar.yml"
    scalar.write_text("just a string\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_config(scalar)


def test_unknown_node_lookup(tmp_path: Path):
    f = tmp_path / "clover.yml"
    f.write_text("nodes:\n  - {name: web, provider: {name: vagrant, box: b}}\n")
    cfg = load_config(f)
    with pytest.raises(ConfigurationError, match="Configuration for node db was not found"):
        cfg.node("db")
    assert [n.name for n in cfg.select(None)] == ["web"]


def test_state_dir_for(tmp_path: Path):
    assert state_dir_for(tmp_path / "clover.yml") == tmp_path / ".clover"
    assert state_dir_for(tmp_path / "lab.yaml") == tmp_path / ".lab"
    assert state_dir_for(tmp_path / ".hidden.yml") == tmp_path / ".hidden"
    with pytest.raises(ConfigurationError, match=".yml or .yaml"):
        state_dir_for(tmp_path / "clover.json")


@pytest.mark.parametrize("mode, expected", [("0644", 0o644), ("755", 0o755), (0o600, 0o600), (0, 0)])
def test_file_mode_is_octal(mode, expected):
    spec = FileSpec(path="/etc/x", content="", mode=mode)
    assert spec.mode == expected


@pytest.mark.parametrize("kwargs", [{"path": "etc/x"}, {"path": "/etc/x", "mode": "rw-r--r--"}, {"path": "/x", "mode": 0o10000}])
def test_file_spec_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        FileSpec(content="", **kwargs)
