# -*- coding: utf-8 -*-
"""
Manifest Validation - Per-kind validators for catalog resource manifests.

Each validator reads a manifest file, parses it into a document, fills
in the kind's defaults, checks the document against a JSON Schema and
then runs kind-specific semantic checks. Problems are aggregated into a
FieldError; an aggregate that carries no message is treated as success.

Validators are looked up by ResourceKind, so the scanner never needs to
know which kinds exist.

Dependencies
------------
pyyaml
jsonschema

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-10-19

Modified
--------
2026-10-19
"""

# Standard library
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

# Third-party
import yaml
from jsonschema import Draft202012Validator

# taskcatalog internal
from taskcatalog.core.errors import ValidationError

logger = logging.getLogger(__name__)


class ResourceKind(Enum):
    """Resource kinds that can appear in a catalog."""

    TASK = "Task"
    CLUSTER_TASK = "ClusterTask"
    PIPELINE = "Pipeline"


class FieldError:
    """Aggregate of field-level validation problems.

    Parameters
    ----------
    message : str
        Problem description. An empty message adds nothing.
    paths : Iterable[str]
        Document paths the problem applies to.
    """

    def __init__(self, message: str = "", paths: Iterable[str] = ()) -> None:
        self._entries: List[Tuple[str, Tuple[str, ...]]] = []
        if message:
            self._entries.append((message, tuple(paths)))

    def also(self, *others: 'FieldError') -> 'FieldError':
        """Merge other errors into this one and return self."""
        for other in others:
            if other is not None:
                self._entries.extend(other._entries)
        return self

    def __str__(self) -> str:
        parts = []
        for message, paths in self._entries:
            if paths:
                parts.append(f"{message}: {', '.join(paths)}")
            else:
                parts.append(message)
        return "; ".join(parts)

    def __bool__(self) -> bool:
        return bool(str(self))

    def __repr__(self) -> str:
        return f"FieldError({str(self)!r})"


def sanitize_error(error: Optional[FieldError]) -> Optional[FieldError]:
    """Normalize an error with no message content to None."""
    if error is None or not str(error):
        return None
    return error


_NAME = {"type": "string", "minLength": 1}
_STRINGS = {"type": "array", "items": {"type": "string"}}
_NAMED = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["name"],
        "properties": {"name": _NAME},
    },
}
_PARAM_SPEC = {
    "type": "object",
    "required": ["name", "type"],
    "properties": {
        "name": _NAME,
        "type": {"enum": ["string", "array"]},
        "description": {"type": "string"},
        "default": {"type": ["string", "array"]},
    },
}
_METADATA = {
    "type": "object",
    "required": ["name"],
    "properties": {"name": _NAME},
}
_API_VERSION = {"type": "string", "pattern": r"^tekton\.dev/"}

TASK_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["apiVersion", "kind", "metadata", "spec"],
    "properties": {
        "apiVersion": _API_VERSION,
        "kind": {"type": "string"},
        "metadata": _METADATA,
        "spec": {
            "type": "object",
            "required": ["steps"],
            "properties": {
                "description": {"type": "string"},
                "params": {"type": "array", "items": _PARAM_SPEC},
                "steps": {
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "required": ["image"],
                        "properties": {
                            "name": {"type": "string"},
                            "image": _NAME,
                            "command": _STRINGS,
                            "args": _STRINGS,
                            "script": {"type": "string"},
                            "workingDir": {"type": "string"},
                        },
                    },
                },
                "workspaces": _NAMED,
                "results": _NAMED,
            },
        },
    },
}

PIPELINE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["apiVersion", "kind", "metadata", "spec"],
    "properties": {
        "apiVersion": _API_VERSION,
        "kind": {"type": "string"},
        "metadata": _METADATA,
        "spec": {
            "type": "object",
            "required": ["tasks"],
            "properties": {
                "description": {"type": "string"},
                "params": {"type": "array", "items": _PARAM_SPEC},
                "workspaces": _NAMED,
                "tasks": {
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "required": ["name"],
                        "oneOf": [
                            {"required": ["taskRef"]},
                            {"required": ["taskSpec"]},
                        ],
                        "properties": {
                            "name": _NAME,
                            "taskRef": {
                                "type": "object",
                                "required": ["name", "kind"],
                                "properties": {
                                    "name": _NAME,
                                    "kind": {"enum": ["Task", "ClusterTask"]},
                                },
                            },
                            "taskSpec": {"type": "object"},
                            "runAfter": _STRINGS,
                            "params": _NAMED,
                        },
                    },
                },
            },
        },
    },
}


def _duplicates(names: Iterable[str]) -> List[str]:
    seen = set()
    dupes: List[str] = []
    for name in names:
        if name in seen and name not in dupes:
            dupes.append(name)
        seen.add(name)
    return dupes


def _default_params(params: Any) -> None:
    if not isinstance(params, list):
        return
    for param in params:
        if isinstance(param, dict) and not param.get('type'):
            param['type'] = (
                'array' if isinstance(param.get('default'), list) else 'string'
            )


def _check_params(params: List[dict], prefix: str) -> FieldError:
    errors = FieldError()
    dupes = _duplicates(p['name'] for p in params)
    if dupes:
        errors.also(FieldError(
            f"duplicate param names {dupes}", [f"{prefix}.params"]
        ))
    for i, param in enumerate(params):
        if 'default' not in param:
            continue
        is_array = isinstance(param['default'], list)
        if is_array != (param['type'] == 'array'):
            errors.also(FieldError(
                f"default does not match declared type {param['type']!r}",
                [f"{prefix}.params[{i}].default"],
            ))
    return errors


class ManifestValidator:
    """Validator for one resource kind.

    Subclasses set ``kind`` and ``schema`` and may override
    :meth:`set_defaults` and :meth:`check`.
    """

    kind: ResourceKind
    schema: Dict[str, Any] = {}

    def __init__(self) -> None:
        self._schema_validator = Draft202012Validator(self.schema)

    def __call__(self, path: Path) -> None:
        """Validate the manifest at path.

        Raises
        ------
        ValidationError
            If the file cannot be read or parsed, or fails validation.
        """
        document = self.load(path)
        self.set_defaults(document)
        error = sanitize_error(self.validate(document))
        if error is not None:
            logger.debug("%s validation failed for %s: %s",
                         self.kind.value, path, error)
            raise ValidationError(str(path), str(error))

    def load(self, path: Path) -> Dict[str, Any]:
        """Read and parse a manifest into a mapping."""
        try:
            # PyYAML detects the encoding of byte streams.
            with open(path, 'rb') as f:
                document = yaml.safe_load(f)
        except OSError as e:
            raise ValidationError(str(path), f"opening file failed: {e}") from e
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise ValidationError(str(path), f"yaml parse failed: {e}") from e
        if not isinstance(document, dict):
            raise ValidationError(str(path), "manifest is not a mapping")
        return document

    def set_defaults(self, document: Dict[str, Any]) -> None:
        """Fill in defaulted fields in place."""

    def validate(self, document: Dict[str, Any]) -> FieldError:
        """Run schema and semantic checks on a defaulted document."""
        errors = FieldError()
        kind = document.get('kind')
        if kind != self.kind.value:
            return FieldError(
                f"expected kind {self.kind.value!r}, got {kind!r}", ['kind']
            )
        schema_errors = sorted(
            self._schema_validator.iter_errors(document),
            key=lambda e: list(e.absolute_path),
        )
        for err in schema_errors:
            location = '.'.join(str(p) for p in err.absolute_path) or '<root>'
            errors.also(FieldError(err.message, [location]))
        if schema_errors:
            return errors
        return errors.also(self.check(document))

    def check(self, document: Dict[str, Any]) -> FieldError:
        """Kind-specific semantic checks on a schema-valid document."""
        return FieldError()


class TaskValidator(ManifestValidator):
    """Validates Task manifests."""

    kind = ResourceKind.TASK
    schema = TASK_SCHEMA

    def set_defaults(self, document: Dict[str, Any]) -> None:
        spec = document.get('spec')
        if isinstance(spec, dict):
            _default_params(spec.get('params'))

    def check(self, document: Dict[str, Any]) -> FieldError:
        spec = document['spec']
        errors = _check_params(spec.get('params', []), 'spec')

        steps = spec['steps']
        dupes = _duplicates(s['name'] for s in steps if s.get('name'))
        if dupes:
            errors.also(FieldError(
                f"duplicate step names {dupes}", ['spec.steps']
            ))
        for i, step in enumerate(steps):
            if step.get('script') and step.get('command'):
                errors.also(FieldError(
                    "script cannot be used with command",
                    [f"spec.steps[{i}].script"],
                ))
        return errors


class ClusterTaskValidator(TaskValidator):
    """Validates ClusterTask manifests; same shape as a Task."""

    kind = ResourceKind.CLUSTER_TASK


class PipelineValidator(ManifestValidator):
    """Validates Pipeline manifests."""

    kind = ResourceKind.PIPELINE
    schema = PIPELINE_SCHEMA

    def set_defaults(self, document: Dict[str, Any]) -> None:
        spec = document.get('spec')
        if not isinstance(spec, dict):
            return
        _default_params(spec.get('params'))
        tasks = spec.get('tasks')
        if not isinstance(tasks, list):
            return
        for task in tasks:
            ref = task.get('taskRef') if isinstance(task, dict) else None
            if isinstance(ref, dict) and not ref.get('kind'):
                ref['kind'] = 'Task'

    def check(self, document: Dict[str, Any]) -> FieldError:
        spec = document['spec']
        errors = _check_params(spec.get('params', []), 'spec')

        tasks = spec['tasks']
        names = [t['name'] for t in tasks]
        dupes = _duplicates(names)
        if dupes:
            errors.also(FieldError(
                f"duplicate pipeline task names {dupes}", ['spec.tasks']
            ))
        known = set(names)
        for i, task in enumerate(tasks):
            for dep in task.get('runAfter', []):
                if dep == task['name'] or dep not in known:
                    errors.also(FieldError(
                        f"invalid runAfter reference {dep!r}",
                        [f"spec.tasks[{i}].runAfter"],
                    ))
        return errors


Validator = Callable[[Path], None]

_VALIDATORS: Dict[ResourceKind, Validator] = {
    ResourceKind.TASK: TaskValidator(),
    ResourceKind.CLUSTER_TASK: ClusterTaskValidator(),
    ResourceKind.PIPELINE: PipelineValidator(),
}


def register_validator(kind: ResourceKind, validator: Validator) -> None:
    """Install or replace the validator for a kind."""
    _VALIDATORS[kind] = validator


def get_validator(kind: ResourceKind) -> Validator:
    """Return the validator registered for a kind.

    Raises
    ------
    KeyError
        If no validator is registered for the kind.
    """
    return _VALIDATORS[kind]


def validate_manifest(kind: ResourceKind, path: Path) -> None:
    """Validate the manifest at path as a resource of the given kind."""
    get_validator(kind)(Path(path))
