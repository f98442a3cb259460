# -*- coding: utf-8 -*-
"""
Shared fixtures for taskcatalog tests.

Created
-------
2026-10-19
"""

import textwrap

import pytest


TASK_TEMPLATE = textwrap.dedent("""\
    apiVersion: tekton.dev/v1beta1
    kind: {kind}
    metadata:
      name: {name}
    spec:
      params:
        - name: package
          description: package to build
      steps:
        - name: build
          image: golang:1.13
          script: go build ./...
    """)


def task_manifest(name: str, kind: str = "Task") -> str:
    return TASK_TEMPLATE.format(name=name, kind=kind)


@pytest.fixture
def write_manifest(tmp_path):
    """Write ``<root>/<kind_dir>/<name>/<version>/<name>.yaml``."""

    def _write(kind_dir, name, version, content=None, kind="Task", root=None):
        root = root or tmp_path
        path = root / kind_dir / name / version / f"{name}.yaml"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content if content is not None else task_manifest(name, kind))
        return path

    return _write
