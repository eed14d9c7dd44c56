"""Generate JSON Schema and docs for the conformance YAML format."""

from __future__ import annotations

import json
from pathlib import Path

from domconform.config import ConformanceConfig
from domconform.evaluators import supported_kinds

# Fields every rule accepts, documented once instead of per kind
_COMMON_RULE_FIELDS = (
    "kind",
    "id",
    "selector",
    "scope",
    "scope_index",
    "index",
    "severity",
    "description",
)


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _collect_refs(obj: object) -> set[str]:
    """Return all ``$defs`` names referenced via ``$ref`` inside *obj*."""
    refs: set[str] = set()
    if isinstance(obj, dict):
        ref = obj.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/$defs/"):
            refs.add(ref.removeprefix("#/$defs/"))
        for v in obj.values():
            refs |= _collect_refs(v)
    elif isinstance(obj, list):
        for v in obj:
            refs |= _collect_refs(v)
    return refs


def _order_defs(defs: dict) -> dict:
    """Topologically sort ``$defs`` so referenced types precede referencing types."""
    ordered: dict[str, dict] = {}
    visited: set[str] = set()

    def _visit(name: str) -> None:
        if name in visited or name not in defs:
            return
        visited.add(name)
        for dep in _collect_refs(defs[name]):
            _visit(dep)
        ordered[name] = defs[name]

    for name in defs:
        _visit(name)
    return ordered


def generate_json_schema() -> dict:
    schema = ConformanceConfig.model_json_schema()
    if "$defs" in schema:
        schema["$defs"] = _order_defs(schema["$defs"])
    return schema


def write_json_schema(path: Path) -> None:
    _ensure_parent(path)
    schema = generate_json_schema()
    path.write_text(json.dumps(schema, indent=2) + "\n")


def _rule_defs(defs: dict) -> dict[str, dict]:
    """Map each rule kind to its model definition."""
    by_kind: dict[str, dict] = {}
    for model_def in defs.values():
        kind = model_def.get("properties", {}).get("kind", {})
        value = kind.get("const")
        if value is None and len(kind.get("enum", [])) == 1:
            value = kind["enum"][0]
        if value is not None:
            by_kind[value] = model_def
    return by_kind


def _describe_field(name: str, prop: dict, required: set[str]) -> str:
    default = prop.get("default")
    if name in required:
        suffix = " (required)"
    elif default is not None:
        suffix = f" (default: {json.dumps(default)})"
    else:
        suffix = ""
    return f"`{name}`{suffix}"


def generate_schema_doc() -> str:
    schema = generate_json_schema()
    defs = schema.get("$defs", {})
    rules = _rule_defs(defs)

    lines: list[str] = []
    lines.append("# domconform YAML Schema")
    lines.append("")
    lines.append("This doc is generated from the Pydantic models.")
    lines.append("")
    lines.append("## Top-level keys")
    lines.append("- `settings`: base URL, timeouts, fail-fast and worker count.")
    lines.append("- `targets`: mapping of target names to browser, viewport and url.")
    lines.append("- `rulesets`: list of rule sets, each with `name`, `path` and `rules`.")
    lines.append("")
    lines.append("A file with a top-level `rules:` list is read as a single rule set.")
    lines.append("")

    for title, def_name in (("Settings", "Settings"), ("Target", "TargetConfig")):
        props = defs.get(def_name, {}).get("properties", {})
        required = set(defs.get(def_name, {}).get("required", []))
        lines.append(f"## {title}")
        for name, prop in props.items():
            lines.append(f"- {_describe_field(name, prop, required)}")
        lines.append("")

    lines.append("## Rules")
    lines.append(
        "Every rule takes " + ", ".join(f"`{f}`" for f in _COMMON_RULE_FIELDS) + "."
    )
    lines.append("")
    for kind in supported_kinds():
        model_def = rules.get(kind, {})
        props = model_def.get("properties", {})
        required = set(model_def.get("required", []))
        extra = [
            _describe_field(name, prop, required)
            for name, prop in props.items()
            if name not in _COMMON_RULE_FIELDS
        ]
        detail = ", ".join(extra) if extra else "no extra fields"
        lines.append(f"- `{kind}`: {detail}")

    lines.append("")
    return "\n".join(lines)


def write_schema_doc(path: Path) -> None:
    _ensure_parent(path)
    path.write_text(generate_schema_doc())
