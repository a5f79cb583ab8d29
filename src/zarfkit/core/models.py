#!/usr/bin/env python3
"""
ZARFKIT CORE MODELS
-------------------
Defines the fundamental data structures used across the ZarfKit engine:
the package definition (zarf.yaml), its components and every resource a
component can carry.

Each model reads from and writes to the camelCase wire format of zarf.yaml.
Empty values are omitted on output so that a round-tripped definition stays
as small as the one the user wrote.

Author: ZarfKit Team
Date: 2026-02-03
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ZARF_PACKAGE_CONFIG = "ZarfPackageConfig"
ZARF_INIT_CONFIG = "ZarfInitConfig"


def _prune(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drops keys whose value is None, False, '', 0 or an empty container."""
    return {k: v for k, v in data.items() if v not in (None, False, "", 0, [], {})}


def _str_list(value: Any) -> List[str]:
    if not value:
        return []
    return [str(v) for v in value]


@dataclass
class ComponentImport:
    """The single `import` reference of a component (path XOR url)."""
    name: str = ""
    path: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ComponentImport":
        data = data or {}
        return cls(name=data.get("name", ""), path=data.get("path", ""), url=data.get("url", ""))

    def to_dict(self) -> Dict[str, Any]:
        return _prune({"name": self.name, "path": self.path, "url": self.url})

    def is_set(self) -> bool:
        return bool(self.path or self.url)


@dataclass
class OnlyCluster:
    architecture: str = ""
    distros: List[str] = field(default_factory=list)


@dataclass
class OnlyTarget:
    """Filter constraints: `only.localOS`, `only.cluster.*` and `only.flavor`."""
    local_os: str = ""
    cluster: OnlyCluster = field(default_factory=OnlyCluster)
    flavor: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "OnlyTarget":
        data = data or {}
        cluster = data.get("cluster") or {}
        return cls(
            local_os=data.get("localOS", ""),
            cluster=OnlyCluster(
                architecture=cluster.get("architecture", ""),
                distros=_str_list(cluster.get("distros")),
            ),
            flavor=data.get("flavor", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        cluster = _prune({"architecture": self.cluster.architecture, "distros": self.cluster.distros})
        return _prune({"localOS": self.local_os, "cluster": cluster, "flavor": self.flavor})


@dataclass
class ZarfFile:
    source: str
    target: str = ""
    shasum: str = ""
    executable: bool = False
    symlinks: List[str] = field(default_factory=list)
    extract_path: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ZarfFile":
        return cls(
            source=data.get("source", ""),
            target=data.get("target", ""),
            shasum=data.get("shasum", ""),
            executable=bool(data.get("executable", False)),
            symlinks=_str_list(data.get("symlinks")),
            extract_path=data.get("extractPath", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = _prune({
            "source": self.source,
            "shasum": self.shasum,
            "executable": self.executable,
            "symlinks": self.symlinks,
            "extractPath": self.extract_path,
        })
        out["target"] = self.target
        return out


@dataclass
class ZarfChart:
    name: str
    version: str = ""
    url: str = ""
    repo_name: str = ""
    git_path: str = ""
    local_path: str = ""
    namespace: str = ""
    release_name: str = ""
    no_wait: bool = False
    values_files: List[str] = field(default_factory=list)
    variables: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ZarfChart":
        return cls(
            name=data.get("name", ""),
            version=str(data.get("version", "") or ""),
            url=data.get("url", ""),
            repo_name=data.get("repoName", ""),
            git_path=data.get("gitPath", ""),
            local_path=data.get("localPath", ""),
            namespace=data.get("namespace", ""),
            release_name=data.get("releaseName", ""),
            no_wait=bool(data.get("noWait", False)),
            values_files=_str_list(data.get("valuesFiles")),
            variables=[dict(v) for v in data.get("variables") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return _prune({
            "name": self.name,
            "version": self.version,
            "url": self.url,
            "repoName": self.repo_name,
            "gitPath": self.git_path,
            "localPath": self.local_path,
            "namespace": self.namespace,
            "releaseName": self.release_name,
            "noWait": self.no_wait,
            "valuesFiles": self.values_files,
            "variables": self.variables,
        })


@dataclass
class ZarfManifest:
    name: str
    namespace: str = ""
    files: List[str] = field(default_factory=list)
    kustomizations: List[str] = field(default_factory=list)
    kustomize_allow_any_directory: bool = False
    no_wait: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ZarfManifest":
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace", ""),
            files=_str_list(data.get("files")),
            kustomizations=_str_list(data.get("kustomizations")),
            kustomize_allow_any_directory=bool(data.get("kustomizeAllowAnyDirectory", False)),
            no_wait=bool(data.get("noWait", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _prune({
            "name": self.name,
            "namespace": self.namespace,
            "files": self.files,
            "kustomizations": self.kustomizations,
            "kustomizeAllowAnyDirectory": self.kustomize_allow_any_directory,
            "noWait": self.no_wait,
        })


@dataclass
class DataInjection:
    source: str
    target: Dict[str, Any] = field(default_factory=dict)
    compress: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataInjection":
        return cls(
            source=data.get("source", ""),
            target=dict(data.get("target") or {}),
            compress=bool(data.get("compress", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _prune({"source": self.source, "target": self.target, "compress": self.compress})


@dataclass
class Action:
    """A single lifecycle command. `dir` stays None until it is resolved."""
    cmd: str = ""
    dir: Optional[str] = None
    env: List[str] = field(default_factory=list)
    mute: Optional[bool] = None
    max_total_seconds: Optional[int] = None
    max_retries: Optional[int] = None
    shell: Optional[Dict[str, Any]] = None
    description: str = ""
    set_variable: str = ""  # deprecated, see packager.deprecated
    set_variables: List[Dict[str, Any]] = field(default_factory=list)
    wait: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Action":
        return cls(
            cmd=data.get("cmd", ""),
            dir=data.get("dir"),
            env=_str_list(data.get("env")),
            mute=data.get("mute"),
            max_total_seconds=data.get("maxTotalSeconds"),
            max_retries=data.get("maxRetries"),
            shell=data.get("shell"),
            description=data.get("description", ""),
            set_variable=data.get("setVariable", ""),
            set_variables=[dict(v) for v in data.get("setVariables") or []],
            wait=data.get("wait"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = _prune({
            "cmd": self.cmd,
            "env": self.env,
            "shell": self.shell,
            "description": self.description,
            "setVariable": self.set_variable,
            "setVariables": self.set_variables,
            "wait": self.wait,
        })
        # explicit falsy values are meaningful on actions
        for key, value in (("dir", self.dir), ("mute", self.mute),
                           ("maxTotalSeconds", self.max_total_seconds),
                           ("maxRetries", self.max_retries)):
            if value is not None:
                out[key] = value
        return out


@dataclass
class ActionDefaults:
    mute: bool = False
    max_total_seconds: int = 0
    max_retries: int = 0
    dir: str = ""
    env: List[str] = field(default_factory=list)
    shell: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ActionDefaults":
        data = data or {}
        return cls(
            mute=bool(data.get("mute", False)),
            max_total_seconds=int(data.get("maxTotalSeconds", 0) or 0),
            max_retries=int(data.get("maxRetries", 0) or 0),
            dir=data.get("dir", ""),
            env=_str_list(data.get("env")),
            shell=data.get("shell"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _prune({
            "mute": self.mute,
            "maxTotalSeconds": self.max_total_seconds,
            "maxRetries": self.max_retries,
            "dir": self.dir,
            "env": self.env,
            "shell": self.shell,
        })


ACTION_BUCKETS = ("before", "after", "on_success", "on_failure")
_BUCKET_KEYS = {"before": "before", "after": "after", "on_success": "onSuccess", "on_failure": "onFailure"}


@dataclass
class ActionSet:
    defaults: ActionDefaults = field(default_factory=ActionDefaults)
    before: List[Action] = field(default_factory=list)
    after: List[Action] = field(default_factory=list)
    on_success: List[Action] = field(default_factory=list)
    on_failure: List[Action] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ActionSet":
        data = data or {}
        kwargs: Dict[str, Any] = {"defaults": ActionDefaults.from_dict(data.get("defaults"))}
        for attr, key in _BUCKET_KEYS.items():
            kwargs[attr] = [Action.from_dict(a) for a in data.get(key) or []]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"defaults": self.defaults.to_dict()}
        for attr, key in _BUCKET_KEYS.items():
            out[key] = [a.to_dict() for a in getattr(self, attr)]
        return _prune(out)


ACTION_SETS = ("on_create", "on_deploy", "on_remove")
_SET_KEYS = {"on_create": "onCreate", "on_deploy": "onDeploy", "on_remove": "onRemove"}


@dataclass
class ComponentActions:
    on_create: ActionSet = field(default_factory=ActionSet)
    on_deploy: ActionSet = field(default_factory=ActionSet)
    on_remove: ActionSet = field(default_factory=ActionSet)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ComponentActions":
        data = data or {}
        return cls(**{attr: ActionSet.from_dict(data.get(key)) for attr, key in _SET_KEYS.items()})

    def to_dict(self) -> Dict[str, Any]:
        return _prune({key: getattr(self, attr).to_dict() for attr, key in _SET_KEYS.items()})


@dataclass
class DeprecatedScripts:
    show_output: bool = False
    timeout_seconds: int = 0
    retry: bool = False
    prepare: List[str] = field(default_factory=list)
    before: List[str] = field(default_factory=list)
    after: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DeprecatedScripts":
        data = data or {}
        return cls(
            show_output=bool(data.get("showOutput", False)),
            timeout_seconds=int(data.get("timeoutSeconds", 0) or 0),
            retry=bool(data.get("retry", False)),
            prepare=_str_list(data.get("prepare")),
            before=_str_list(data.get("before")),
            after=_str_list(data.get("after")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _prune({
            "showOutput": self.show_output,
            "timeoutSeconds": self.timeout_seconds,
            "retry": self.retry,
            "prepare": self.prepare,
            "before": self.before,
            "after": self.after,
        })

    def is_empty(self) -> bool:
        return not self.to_dict()


@dataclass
class Component:
    """
    A named, independently selectable unit of a package.

    `required` and `optional` are both tri-state: None means "not declared".
    """
    name: str
    description: str = ""
    default: bool = False
    required: Optional[bool] = None
    optional: Optional[bool] = None
    only: OnlyTarget = field(default_factory=OnlyTarget)
    group: str = ""
    cosign_key_path: str = ""
    import_: ComponentImport = field(default_factory=ComponentImport)
    manifests: List[ZarfManifest] = field(default_factory=list)
    charts: List[ZarfChart] = field(default_factory=list)
    data_injections: List[DataInjection] = field(default_factory=list)
    files: List[ZarfFile] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    repos: List[str] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)
    scripts: DeprecatedScripts = field(default_factory=DeprecatedScripts)
    actions: ComponentActions = field(default_factory=ComponentActions)
    health_checks: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Component":
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            default=bool(data.get("default", False)),
            required=data.get("required"),
            optional=data.get("optional"),
            only=OnlyTarget.from_dict(data.get("only")),
            group=data.get("group", ""),
            cosign_key_path=data.get("cosignKeyPath", ""),
            import_=ComponentImport.from_dict(data.get("import")),
            manifests=[ZarfManifest.from_dict(m) for m in data.get("manifests") or []],
            charts=[ZarfChart.from_dict(c) for c in data.get("charts") or []],
            data_injections=[DataInjection.from_dict(d) for d in data.get("dataInjections") or []],
            files=[ZarfFile.from_dict(f) for f in data.get("files") or []],
            images=_str_list(data.get("images")),
            repos=_str_list(data.get("repos")),
            extensions=dict(data.get("extensions") or {}),
            scripts=DeprecatedScripts.from_dict(data.get("scripts")),
            actions=ComponentActions.from_dict(data.get("actions")),
            health_checks=[dict(h) for h in data.get("healthChecks") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        out = _prune({
            "name": self.name,
            "description": self.description,
            "default": self.default,
            "only": self.only.to_dict(),
            "group": self.group,
            "cosignKeyPath": self.cosign_key_path,
            "import": self.import_.to_dict(),
            "manifests": [m.to_dict() for m in self.manifests],
            "charts": [c.to_dict() for c in self.charts],
            "dataInjections": [d.to_dict() for d in self.data_injections],
            "files": [f.to_dict() for f in self.files],
            "images": self.images,
            "repos": self.repos,
            "extensions": self.extensions,
            "scripts": self.scripts.to_dict(),
            "actions": self.actions.to_dict(),
            "healthChecks": self.health_checks,
        })
        if self.required is not None:
            out["required"] = self.required
        if self.optional is not None:
            out["optional"] = self.optional
        return out

    def is_required(self, use_required_logic: bool = False) -> bool:
        """
        Packages built before the `optional` key existed only know `required`.
        Otherwise an explicit `optional` wins, then `required`, then optional.
        """
        if use_required_logic:
            return self.required is True
        if self.optional is not None:
            return not self.optional
        return self.required is True

    def clone(self) -> "Component":
        return copy.deepcopy(self)


@dataclass
class Variable:
    name: str
    description: str = ""
    default: str = ""
    prompt: bool = False
    sensitive: bool = False
    auto_indent: bool = False
    pattern: str = ""
    type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variable":
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            default=str(data.get("default", "") or ""),
            prompt=bool(data.get("prompt", False)),
            sensitive=bool(data.get("sensitive", False)),
            auto_indent=bool(data.get("autoIndent", False)),
            pattern=data.get("pattern", ""),
            type=data.get("type", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _prune({
            "name": self.name,
            "description": self.description,
            "default": self.default,
            "prompt": self.prompt,
            "sensitive": self.sensitive,
            "autoIndent": self.auto_indent,
            "pattern": self.pattern,
            "type": self.type,
        })


@dataclass
class Constant:
    name: str
    value: str = ""
    description: str = ""
    auto_indent: bool = False
    pattern: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Constant":
        return cls(
            name=data.get("name", ""),
            value=str(data.get("value", "") or ""),
            description=data.get("description", ""),
            auto_indent=bool(data.get("autoIndent", False)),
            pattern=data.get("pattern", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = _prune({
            "name": self.name,
            "description": self.description,
            "autoIndent": self.auto_indent,
            "pattern": self.pattern,
        })
        out["value"] = self.value
        return out


@dataclass
class Metadata:
    name: str = ""
    description: str = ""
    version: str = ""
    url: str = ""
    image: str = ""
    uncompressed: bool = False
    architecture: str = ""
    yolo: bool = False
    authors: str = ""
    documentation: str = ""
    source: str = ""
    vendor: str = ""
    aggregate_checksum: str = ""
    annotations: Dict[str, str] = field(default_factory=dict)

    _KEYS = {
        "name": "name", "description": "description", "version": "version", "url": "url",
        "image": "image", "uncompressed": "uncompressed", "architecture": "architecture",
        "yolo": "yolo", "authors": "authors", "documentation": "documentation",
        "source": "source", "vendor": "vendor", "aggregate_checksum": "aggregateChecksum",
        "annotations": "annotations",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Metadata":
        data = data or {}
        meta = cls()
        for attr, key in cls._KEYS.items():
            if key in data and data[key] is not None:
                value = data[key]
                if attr == "version":
                    value = str(value)
                setattr(meta, attr, dict(value) if attr == "annotations" else value)
        return meta

    def to_dict(self) -> Dict[str, Any]:
        return _prune({key: getattr(self, attr) for attr, key in self._KEYS.items()})


@dataclass
class BuildData:
    terminal: str = ""
    user: str = ""
    architecture: str = ""
    timestamp: str = ""
    version: str = ""
    migrations: List[str] = field(default_factory=list)
    registry_overrides: Dict[str, str] = field(default_factory=dict)
    differential: bool = False
    differential_package_version: str = ""
    differential_missing: List[str] = field(default_factory=list)
    last_non_breaking_version: str = ""
    flavor: str = ""

    _KEYS = {
        "terminal": "terminal", "user": "user", "architecture": "architecture",
        "timestamp": "timestamp", "version": "version", "migrations": "migrations",
        "registry_overrides": "registryOverrides", "differential": "differential",
        "differential_package_version": "differentialPackageVersion",
        "differential_missing": "differentialMissing",
        "last_non_breaking_version": "lastNonBreakingVersion", "flavor": "flavor",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BuildData":
        data = data or {}
        build = cls()
        for attr, key in cls._KEYS.items():
            if key in data and data[key] is not None:
                value = data[key]
                if isinstance(value, list):
                    value = list(value)
                elif isinstance(value, dict):
                    value = dict(value)
                setattr(build, attr, value)
        return build

    def to_dict(self) -> Dict[str, Any]:
        return _prune({key: getattr(self, attr) for attr, key in self._KEYS.items()})


@dataclass
class Package:
    """A named, versioned bundle of components plus build metadata."""
    kind: str = ZARF_PACKAGE_CONFIG
    metadata: Metadata = field(default_factory=Metadata)
    build: BuildData = field(default_factory=BuildData)
    components: List[Component] = field(default_factory=list)
    constants: List[Constant] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Package":
        data = data or {}
        return cls(
            kind=data.get("kind", ZARF_PACKAGE_CONFIG) or ZARF_PACKAGE_CONFIG,
            metadata=Metadata.from_dict(data.get("metadata")),
            build=BuildData.from_dict(data.get("build")),
            components=[Component.from_dict(c) for c in data.get("components") or []],
            constants=[Constant.from_dict(c) for c in data.get("constants") or []],
            variables=[Variable.from_dict(v) for v in data.get("variables") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind}
        out.update(_prune({
            "metadata": self.metadata.to_dict(),
            "build": self.build.to_dict(),
        }))
        out["components"] = [c.to_dict() for c in self.components]
        out.update(_prune({
            "constants": [c.to_dict() for c in self.constants],
            "variables": [v.to_dict() for v in self.variables],
        }))
        return out

    def is_init_config(self) -> bool:
        return self.kind == ZARF_INIT_CONFIG

    def find_component(self, name: str) -> Optional[Component]:
        for component in self.components:
            if component.name == name:
                return component
        return None

    def clone(self) -> "Package":
        return copy.deepcopy(self)


@dataclass
class SplitPackageData:
    """The zero-indexed header part of a split package."""
    count: int
    bytes: int
    sha256sum: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SplitPackageData":
        return cls(count=int(data["count"]), bytes=int(data["bytes"]), sha256sum=str(data["sha256sum"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "bytes": self.bytes, "sha256sum": self.sha256sum}
