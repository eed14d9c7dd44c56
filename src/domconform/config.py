from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Any, Literal, Union
from urllib.parse import urljoin, urlparse

import yaml
from expandvars import expandvars
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from domconform.errors import RuleDefinitionError
from domconform.report import Severity

DEFAULT_BASE_URL = "http://localhost:8080"
HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6"

_VIEWPORT_RE = re.compile(r"^\s*(\d+)\s*[xX]\s*(\d+)\s*$")


def parse_viewport(value: str) -> tuple[int, int]:
    """Parse ``"1280x720"`` into ``(1280, 720)``."""
    m = _VIEWPORT_RE.match(value)
    if not m:
        raise ValueError(f"Viewport must look like WIDTHxHEIGHT, got '{value}'")
    width, height = int(m.group(1)), int(m.group(2))
    if width <= 0 or height <= 0:
        raise ValueError(f"Viewport dimensions must be positive, got '{value}'")
    return width, height


def _check_bound(exact: int | None, min_: int | None, max_: int | None) -> None:
    if exact is None and min_ is None and max_ is None:
        raise ValueError("one of exact, min or max is required")
    if exact is not None and (min_ is not None or max_ is not None):
        raise ValueError("exact cannot be combined with min/max")
    if min_ is not None and max_ is not None and min_ > max_:
        raise ValueError(f"min ({min_}) is greater than max ({max_})")


class Bound(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    exact: int | None = Field(default=None, ge=0)
    min: int | None = Field(default=None, ge=0)
    max: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_consistency(self) -> Bound:
        _check_bound(self.exact, self.min, self.max)
        return self

    def check(self, value: int) -> bool:
        if self.exact is not None:
            return value == self.exact
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def describe(self) -> str:
        if self.exact is not None:
            return f"exactly {self.exact}"
        if self.min is not None and self.max is not None:
            return f"between {self.min} and {self.max}"
        if self.min is not None:
            return f"at least {self.min}"
        return f"at most {self.max}"


def _as_list(v: Any) -> Any:
    if isinstance(v, str):
        return [v]
    return v


# A single string is accepted wherever a list of expected strings is
StrList = Annotated[list[str], BeforeValidator(_as_list)]


class _RuleBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    id: str
    selector: str
    scope: str | None = None
    scope_index: int = 0
    index: int | None = None
    severity: Severity = Severity.ERROR
    description: str | None = None

    @field_validator("id", "selector")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("scope")
    @classmethod
    def scope_must_not_be_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("scope must not be empty when given")
        return v


class ExistsRule(_RuleBase):
    kind: Literal["exists"]
    min: int = Field(default=1, ge=1)


class AttributeEqualsRule(_RuleBase):
    kind: Literal["attribute_equals"]
    attribute: str
    expected: str | None = None
    match: Literal["first", "all"] = "first"
    optional: bool = False
    length: Bound | None = None


class AttributeContainsRule(_RuleBase):
    kind: Literal["attribute_contains"]
    attribute: str
    expected: StrList
    match: Literal["first", "all"] = "first"
    optional: bool = False

    @field_validator("expected")
    @classmethod
    def expected_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("expected must not be empty")
        return v


class TextContainsRule(_RuleBase):
    kind: Literal["text_contains"]
    expected: StrList = []
    exact: bool = False
    match: Literal["first", "all"] = "first"
    optional: bool = False
    length: Bound | None = None

    @model_validator(mode="after")
    def check_expectation(self) -> TextContainsRule:
        if not self.expected and self.length is None:
            raise ValueError("text_contains needs expected text or a length bound")
        if self.exact and len(self.expected) != 1:
            raise ValueError("exact text match takes exactly one expected value")
        return self


class CountRule(_RuleBase):
    kind: Literal["count"]
    exact: int | None = Field(default=None, ge=0)
    min: int | None = Field(default=None, ge=0)
    max: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_bound(self) -> CountRule:
        _check_bound(self.exact, self.min, self.max)
        return self

    @property
    def bound(self) -> Bound:
        return Bound(exact=self.exact, min=self.min, max=self.max)


class OrderedSequenceRule(_RuleBase):
    kind: Literal["ordered_sequence"]
    expected: list[str]
    item: str | None = None
    attribute: str | None = None

    @field_validator("expected")
    @classmethod
    def expected_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("expected must not be empty")
        return v


class HeadingHierarchyRule(_RuleBase):
    kind: Literal["heading_hierarchy"]
    selector: str = HEADING_SELECTOR


class AriaCrossReferenceRule(_RuleBase):
    kind: Literal["aria_cross_reference"]
    selector: str = "[aria-labelledby]"
    attribute: str = "aria-labelledby"


class ElementStateRule(_RuleBase):
    kind: Literal["element_state"]
    state: Literal["visible", "hidden", "in_viewport", "focused"] = "visible"
    match: Literal["first", "all"] = "first"


class AccessibleNameRule(_RuleBase):
    kind: Literal["accessible_name"]
    attributes: list[str] = ["aria-label", "aria-labelledby", "title"]
    use_text: bool = True
    label_for: bool = False
    allow_empty: bool = False
    optional: bool = True

    @model_validator(mode="after")
    def has_a_source(self) -> AccessibleNameRule:
        if not (self.attributes or self.use_text or self.label_for):
            raise ValueError("accessible_name needs at least one name source")
        return self


class DoctypeRule(_RuleBase):
    kind: Literal["doctype"]
    selector: str = "html"
    expected: str = "html"

    @field_validator("expected")
    @classmethod
    def lower_case_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("expected doctype name must not be empty")
        return v.strip().lower()


class SourceExcludesRule(_RuleBase):
    """Fails when any forbidden string occurs in the serialized document."""

    kind: Literal["source_excludes"]
    selector: str = "html"
    forbidden: StrList
    case_sensitive: bool = True

    @field_validator("forbidden")
    @classmethod
    def forbidden_not_empty(cls, v: list[str]) -> list[str]:
        if not v or not all(s for s in v):
            raise ValueError("forbidden must be a non-empty list of non-empty strings")
        return v


Rule = Annotated[
    Union[
        ExistsRule,
        AttributeEqualsRule,
        AttributeContainsRule,
        TextContainsRule,
        CountRule,
        OrderedSequenceRule,
        HeadingHierarchyRule,
        AriaCrossReferenceRule,
        ElementStateRule,
        AccessibleNameRule,
        DoctypeRule,
        SourceExcludesRule,
    ],
    Field(discriminator="kind"),
]


class RuleSetConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    name: str
    path: str = "/"
    rules: tuple[Rule, ...]

    @field_validator("name")
    @classmethod
    def valid_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("rule set name must not be empty")
        if "/" in v:
            raise ValueError(f"Rule set name '{v}' must not contain '/'")
        return v

    @field_validator("rules")
    @classmethod
    def rules_must_not_be_empty(cls, v: tuple) -> tuple:
        if not v:
            raise ValueError("rules must not be empty")
        return v

    @model_validator(mode="after")
    def ids_must_be_unique(self) -> RuleSetConfig:
        seen: set[str] = set()
        duplicates: list[str] = []
        for rule in self.rules:
            if rule.id in seen and rule.id not in duplicates:
                duplicates.append(rule.id)
            seen.add(rule.id)
        if duplicates:
            raise ValueError(
                f"Rule set '{self.name}' has duplicate rule ids: {', '.join(duplicates)}"
            )
        return self


class TargetConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    browser: Literal["chromium", "firefox", "webkit", "static"] = "chromium"
    viewport: str = "1280x720"
    url: str | None = None

    @field_validator("viewport")
    @classmethod
    def valid_viewport(cls, v: str) -> str:
        parse_viewport(v)
        return v.strip().lower()

    @field_validator("url")
    @classmethod
    def expand_url(cls, v: str | None) -> str | None:
        return _expand(v) if v is not None else None

    @property
    def viewport_size(self) -> tuple[int, int]:
        return parse_viewport(self.viewport)


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    base_url: str = DEFAULT_BASE_URL
    action_timeout_ms: int = Field(default=10_000, gt=0)
    navigation_timeout_ms: int = Field(default=15_000, gt=0)
    run_timeout_ms: int | None = Field(default=None, gt=0)
    fail_fast: bool = False
    workers: int = Field(default=1, ge=1, le=64)

    @field_validator("base_url")
    @classmethod
    def expand_base_url(cls, v: str) -> str:
        return _expand(v)


def _expand(value: str) -> str:
    """Expand ``${VAR}`` / ``${VAR:-default}``; unset variables without a default are errors."""
    try:
        return expandvars(value, nounset=True)
    except Exception:
        raise ValueError(f"'{value}' references an unset environment variable")


class ConformanceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    settings: Settings = Settings()
    targets: dict[str, TargetConfig] = {"chromium": TargetConfig()}
    rulesets: list[RuleSetConfig]

    @field_validator("targets")
    @classmethod
    def valid_target_names(cls, v: dict) -> dict:
        if not v:
            raise ValueError("targets must not be empty")
        for name in v:
            if "/" in name:
                raise ValueError(f"Target name '{name}' must not contain '/'")
        return v

    @model_validator(mode="after")
    def rulesets_must_be_unique(self) -> ConformanceConfig:
        if not self.rulesets:
            raise ValueError("rulesets must not be empty")
        names = [rs.name for rs in self.rulesets]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate rule set names: {', '.join(dupes)}")
        return self

    def url_for(self, target: TargetConfig, ruleset: RuleSetConfig) -> str:
        """Resolve the page a rule set is evaluated on for a given target."""
        return resolve_url(target.url or self.settings.base_url, ruleset.path)


def is_local(location: str) -> bool:
    scheme = urlparse(location).scheme
    # single letters are Windows drive names, not schemes
    return scheme in ("", "file") or len(scheme) == 1


def local_path(location: str) -> Path:
    parsed = urlparse(location)
    if parsed.scheme == "file":
        return Path(parsed.path)
    return Path(location)


def resolve_url(base: str, path: str) -> str:
    if not is_local(base):
        return urljoin(base, path)
    base_path = local_path(base)
    if base_path.is_dir():
        relative = path.lstrip("/") or "index.html"
        return str(base_path / relative)
    if path.strip("/"):
        return str(base_path.parent / path.lstrip("/"))
    return str(base_path)


def _resolve_local(location: str, config_dir: Path) -> str:
    if not is_local(location):
        return location
    path = local_path(location)
    if path.is_absolute():
        return str(path)
    return str((config_dir / path).resolve())


def load_config(path: Path) -> ConformanceConfig:
    """Load and validate a conformance config from a YAML file.

    A file holding a single bare rule set (top-level ``rules:``) is accepted
    and wrapped into a config with default settings and targets.

    Raises RuleDefinitionError for unreadable YAML or invalid rules.
    """
    config_dir = path.parent.resolve()

    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RuleDefinitionError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise RuleDefinitionError(f"{path} must contain a YAML mapping")

    if "rules" in raw and "rulesets" not in raw:
        ruleset = {k: raw.pop(k) for k in ("name", "path", "rules") if k in raw}
        ruleset.setdefault("name", path.stem)
        raw["rulesets"] = [ruleset]

    try:
        config = ConformanceConfig(**raw)
    except ValidationError as e:
        raise RuleDefinitionError(f"Invalid rule definitions in {path}:\n{e}") from e

    # Resolve relative file targets relative to config file location
    settings = config.settings.model_copy(
        update={"base_url": _resolve_local(config.settings.base_url, config_dir)}
    )
    targets = {
        name: (
            t.model_copy(update={"url": _resolve_local(t.url, config_dir)})
            if t.url
            else t
        )
        for name, t in config.targets.items()
    }
    return config.model_copy(update={"settings": settings, "targets": targets})
