"""
Declaration file loader: YAML or JSON into Resource objects.

References are written `Kind[title]` (or `{type: Kind, title: ...}`) and are
converted to typed ResourceIds here, so the graph builder never matches on
strings.
"""
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml

from converge.config import Settings
from converge.detect import detect_format
from converge.errors import BuildError
from converge.models.resource import Resource, ResourceId, ResourceKind
from converge.providers import PROVIDERS

_RESERVED_KEYS = {"type", "title", "require", "notify"}


@dataclass
class Declaration:
    resources: List[Resource] = field(default_factory=list)
    vars: Dict[str, Any] = field(default_factory=dict)
    settings: Settings = field(default_factory=Settings)
    source_file: str = ""


def _parse_ref(val: Any, where: str) -> ResourceId:
    try:
        if isinstance(val, dict):
            return ResourceId(ResourceKind.lookup(str(val.get("type", ""))), str(val.get("title", "")))
        if isinstance(val, str):
            return ResourceId.parse(val)
    except ValueError as exc:
        raise BuildError(f"{where}: {exc}") from exc
    raise BuildError(f"{where}: unsupported reference {val!r}")


def _parse_refs(val: Any, where: str) -> List[ResourceId]:
    if val is None:
        return []
    if not isinstance(val, list):
        val = [val]
    refs: List[ResourceId] = []
    for item in val:
        ref = _parse_ref(item, where)
        if ref not in refs:
            refs.append(ref)
    return refs


def _parse_resource(entry: Any, index: int, filepath: str) -> Resource:
    where = f"{filepath or '<declaration>'}: resource #{index + 1}"
    if not isinstance(entry, dict):
        raise BuildError(f"{where}: expected a mapping, got {type(entry).__name__}")

    try:
        kind = ResourceKind.lookup(str(entry.get("type", "")))
    except ValueError as exc:
        raise BuildError(f"{where}: {exc}") from exc

    title = entry.get("title")
    if title is None or not str(title).strip():
        raise BuildError(f"{where}: {kind.value} resource needs a non-empty title")
    title = str(title).strip()
    where = f"{filepath or '<declaration>'}: {kind.value}[{title}]"

    attributes = {k: v for k, v in entry.items() if k not in _RESERVED_KEYS}
    problems = PROVIDERS[kind].validate(attributes)
    if problems:
        raise BuildError(f"{where}: " + "; ".join(problems))

    return Resource(
        kind=kind,
        title=title,
        attributes=attributes,
        dependencies=_parse_refs(entry.get("require"), f"{where} require"),
        notifies=_parse_refs(entry.get("notify"), f"{where} notify"),
        source_file=filepath,
        position=index,
    )


def parse_document(doc: Any, filepath: str = "") -> Declaration:
    if not isinstance(doc, dict):
        raise BuildError(f"{filepath or '<declaration>'}: top level must be a mapping")

    entries = doc.get("resources")
    if not isinstance(entries, list):
        raise BuildError(f"{filepath or '<declaration>'}: 'resources' must be a list")

    variables = doc.get("vars") or {}
    if not isinstance(variables, dict):
        raise BuildError(f"{filepath or '<declaration>'}: 'vars' must be a mapping")

    settings = doc.get("settings") or {}
    if not isinstance(settings, dict):
        raise BuildError(f"{filepath or '<declaration>'}: 'settings' must be a mapping")

    return Declaration(
        resources=[_parse_resource(e, i, filepath) for i, e in enumerate(entries)],
        vars=dict(variables),
        settings=Settings.from_mapping(settings),
        source_file=filepath,
    )


def parse_file(filepath: str) -> Declaration:
    if not os.path.isfile(filepath):
        raise BuildError(f"declaration file '{filepath}' does not exist")
    fmt = detect_format(filepath)
    if fmt == "unknown":
        raise BuildError(f"{filepath}: not a YAML or JSON declaration file")
    try:
        with open(filepath, encoding="utf-8") as fh:
            if fmt == "json":
                doc = json.load(fh)
            else:
                doc = yaml.safe_load(fh)
    except OSError as exc:
        raise BuildError(f"cannot read {filepath}: {exc}") from exc
    except (ValueError, yaml.YAMLError) as exc:
        raise BuildError(f"failed to parse {filepath}: {exc}") from exc

    return parse_document(doc, filepath)
