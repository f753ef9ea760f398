"""Tests for cascade.manifest.loader module."""

from __future__ import annotations

from pathlib import Path

import pytest

from cascade.core.result import Err, Ok
from cascade.manifest.loader import load_manifest, parse_manifest
from cascade.manifest.model import Command

MANIFEST = """\
manifest_version: 1
defaults:
  branch: main
  labels: [deps]
  tests:
    - cmd: go test ./...
  notifications:
    slack_channel: "#releases"
    on_success: false
  pr:
    reviewers: [alice]
modules:
  - name: lib
    module: github.com/acme/lib
    dependents:
      - repo: acme/api
        module: github.com/acme/api
        branch: develop
        timeout: 10m
        env:
          GOFLAGS: -mod=mod
        tests:
          - cmd: [make, test]
            dir: ./svc
      - repo: acme/worker
        skip: true
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / ".cascade.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadManifest:
    def test_full_document(self, tmp_path: Path) -> None:
        result = load_manifest(_write(tmp_path, MANIFEST))

        assert isinstance(result, Ok)
        manifest = result.value
        assert manifest.defaults.labels == ("deps",)
        assert manifest.defaults.tests == (Command(cmd=("go", "test", "./...")),)
        assert manifest.defaults.notifications.on_success is False
        assert manifest.defaults.pr.reviewers == ("alice",)

        module = manifest.find_module("github.com/acme/lib")
        assert module is not None
        api, worker = module.dependents
        assert api.branch == "develop"
        assert api.timeout == 600.0
        assert api.env == {"GOFLAGS": "-mod=mod"}
        assert api.tests == (Command(cmd=("make", "test"), dir="./svc"),)
        assert worker.skip is True
        assert worker.module == "github.com/acme/worker"
        assert worker.resolved_clone_url == "https://github.com/acme/worker.git"

    def test_find_module_by_short_name(self, tmp_path: Path) -> None:
        result = load_manifest(_write(tmp_path, MANIFEST))
        assert isinstance(result, Ok)
        module = result.value.find_module("lib")
        assert module is not None
        assert module.module == "github.com/acme/lib"
        assert result.value.find_module("other") is None

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_manifest(tmp_path / "missing.yaml")
        assert isinstance(result, Err)
        assert result.error.kind == "not_found"
        assert result.error.hint is not None

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        result = load_manifest(_write(tmp_path, "modules: [\n"))
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_yaml"

    def test_invalid_structure_keeps_path(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "modules:\n  - name: lib\n")
        result = load_manifest(path)
        assert isinstance(result, Err)
        assert result.error.kind == "invalid"
        assert result.error.path == path
        assert "modules[0].module is required" in result.error.message


class TestParseManifest:
    def test_root_must_be_mapping(self) -> None:
        result = parse_manifest(["nope"])
        assert isinstance(result, Err)
        assert "mapping" in result.error.message

    def test_unsupported_version(self) -> None:
        result = parse_manifest({"manifest_version": 2})
        assert isinstance(result, Err)
        assert "manifest_version" in result.error.message

    def test_duplicate_dependent(self) -> None:
        dep = {"repo": "acme/api"}
        result = parse_manifest({"modules": [{"module": "github.com/acme/lib", "dependents": [dep, dep]}]})
        assert isinstance(result, Err)
        assert "duplicate dependent acme/api" in result.error.message

    @pytest.mark.parametrize(
        ("dependent", "message"),
        [
            ({"module": "github.com/x/y"}, "repo is required"),
            ({"repo": "noslash"}, "owner/name"),
            ({"repo": "acme/api", "timeout": "soon"}, "timeout"),
            ({"repo": "acme/api", "tests": [{"cmd": ""}]}, "cmd must not be empty"),
            ({"repo": "acme/api", "tests": ["go test"]}, "must be a mapping"),
        ],
    )
    def test_invalid_dependent(self, dependent: dict[str, object], message: str) -> None:
        result = parse_manifest({"modules": [{"module": "github.com/acme/lib", "dependents": [dependent]}]})
        assert isinstance(result, Err)
        assert message in result.error.message

    def test_module_name_defaults_to_last_segment(self) -> None:
        result = parse_manifest({"modules": [{"module": "github.com/acme/lib/v2"}]})
        assert isinstance(result, Ok)
        assert result.value.modules[0].name == "v2"
