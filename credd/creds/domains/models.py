"""Domain models for credential builds and uploads."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import InvalidConfigError


class CredType(str, Enum):
    SECRET = "secret"
    VARIABLE = "variable"


class BuildStatus(str, Enum):
    BUILT = "built"
    SKIPPED_EXISTING = "skipped-existing"
    FAILED = "failed"


class UploadStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


_SERVICE_KEYS = {
    "serviceName", "service_name", "token", "projectPath", "project_path",
    "projectId", "project_id", "server", "projectName", "project_name",
    "projectCredsUrl", "project_creds_url", "projectCredsOwner", "project_creds_owner",
}

_FILE_KEYS = {
    "name", "filename", "credType", "cred_type", "type", "handler",
    "credName", "cred_name",
}


@dataclass
class ServiceDescriptor:
    """Where and how credentials get uploaded."""
    service_name: Optional[str] = None
    token: Optional[str] = None
    project_path: Optional[str] = None
    project_id: Optional[str] = None
    server: Optional[str] = None
    project_name: Optional[str] = None
    project_creds_url: Optional[str] = None
    project_creds_owner: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ServiceDescriptor":
        if not isinstance(raw, Mapping):
            raise InvalidConfigError(f"'service' must be a mapping, got {type(raw).__name__}")
        project_id = _pick(raw, "projectId", "project_id")
        return cls(
            service_name=_pick(raw, "serviceName", "service_name"),
            token=raw.get("token"),
            project_path=_pick(raw, "projectPath", "project_path"),
            project_id=str(project_id) if project_id is not None else None,
            server=raw.get("server"),
            project_name=_pick(raw, "projectName", "project_name"),
            project_creds_url=_pick(raw, "projectCredsUrl", "project_creds_url"),
            project_creds_owner=_pick(raw, "projectCredsOwner", "project_creds_owner"),
            extra={k: v for k, v in raw.items() if k not in _SERVICE_KEYS},
        )


@dataclass
class FileSpec:
    """A declared artifact and the handler that computes its value."""
    name: str
    filename: str
    handler: Callable[..., Any]
    cred_type: CredType = CredType.SECRET
    type: str = "json"
    cred_name: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def credential_name(self) -> str:
        return self.cred_name or self.filename

    def __getitem__(self, key: str) -> Any:
        # Handlers written against the raw declaration may index it like a dict.
        if hasattr(self, key) and key != "extra":
            return getattr(self, key)
        return self.extra[key]

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], handler: Callable[..., Any]) -> "FileSpec":
        if not isinstance(raw, Mapping):
            raise InvalidConfigError(f"file entries must be mappings, got {type(raw).__name__}")
        filename = raw.get("filename")
        if not filename:
            raise InvalidConfigError(f"file entry {raw.get('name')!r} has no 'filename'")
        if Path(filename).name != filename:
            raise InvalidConfigError(f"filename {filename!r} must be a bare file name")
        raw_cred_type = _pick(raw, "credType", "cred_type", default=CredType.SECRET.value)
        try:
            cred_type = CredType(raw_cred_type)
        except ValueError:
            raise InvalidConfigError(
                f"file {filename!r}: credType must be 'secret' or 'variable', got {raw_cred_type!r}"
            )
        return cls(
            name=raw.get("name") or filename,
            filename=filename,
            handler=handler,
            cred_type=cred_type,
            type=raw.get("type") or "json",
            cred_name=_pick(raw, "credName", "cred_name"),
            extra={k: v for k, v in raw.items() if k not in _FILE_KEYS},
        )


@dataclass
class ProjectConfig:
    """Normalized configuration of one project."""
    service: ServiceDescriptor
    files: List[FileSpec] = field(default_factory=list)
    secrets: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)
    path: Optional[Path] = None

    def __post_init__(self):
        seen_names = set()
        seen_filenames = set()
        for spec in self.files:
            if spec.name in seen_names:
                raise InvalidConfigError(f"duplicate file name {spec.name!r}")
            if spec.filename in seen_filenames:
                raise InvalidConfigError(f"duplicate filename {spec.filename!r}")
            seen_names.add(spec.name)
            seen_filenames.add(spec.filename)

    @property
    def directory(self) -> Optional[Path]:
        return self.path.parent if self.path else None


@dataclass
class FileBuildOutcome:
    name: str
    filename: str
    path: Path
    status: BuildStatus
    reason: Optional[str] = None


@dataclass
class BuildResult:
    """Outcome of building every FileSpec of one project."""
    project_dir: Path
    build_dir: Path
    entries: List[FileBuildOutcome] = field(default_factory=list)

    @property
    def failed(self) -> List[FileBuildOutcome]:
        return [e for e in self.entries if e.status == BuildStatus.FAILED]

    @property
    def built(self) -> List[FileBuildOutcome]:
        return [e for e in self.entries if e.status == BuildStatus.BUILT]

    @property
    def skipped(self) -> List[FileBuildOutcome]:
        return [e for e in self.entries if e.status == BuildStatus.SKIPPED_EXISTING]

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class CredentialOutcome:
    name: str
    cred_type: CredType
    status: UploadStatus
    reason: Optional[str] = None
    code: Optional[str] = None


@dataclass
class UploadResult:
    """Outcome of uploading every credential of one project."""
    project_dir: Path
    service_name: str
    entries: List[CredentialOutcome] = field(default_factory=list)

    @property
    def failed(self) -> List[CredentialOutcome]:
        return [e for e in self.entries if e.status == UploadStatus.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed

    def get(self, name: str) -> Optional[CredentialOutcome]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None


@dataclass
class ProjectOutcome:
    project_dir: Path
    build: Optional[BuildResult] = None
    upload: Optional[UploadResult] = None
    error: Optional[BaseException] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        if self.build is not None and not self.build.ok:
            return False
        if self.upload is not None and not self.upload.ok:
            return False
        return True


@dataclass
class DeepReport:
    """Per-project outcomes of a deep run, in discovery order."""
    root: Path
    projects: List[ProjectOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ProjectOutcome]:
        return [p for p in self.projects if p.ok]

    @property
    def failed(self) -> List[ProjectOutcome]:
        return [p for p in self.projects if not p.ok]

    @property
    def ok(self) -> bool:
        return not self.failed
