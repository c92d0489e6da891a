"""Configuration for bucketsync.

Two layers live here:

* :class:`SyncConfig`, the validated options of one sync engine. It is
  passed explicitly to :class:`~bucketsync.sync.engine.SyncEngine`.
* :class:`Config`, user defaults for the command line tool, read from
  ``~/.config/bucketsync/config`` and the environment.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .exceptions import SyncConfigError
from .storage import default_region
from .utils import (
    DEFAULT_DOWNLOAD_CONCURRENCY,
    DEFAULT_UPLOAD_CONCURRENCY,
    normalize_prefix,
    validate_concurrency,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "BUCKETSYNC_"

# Accepted spellings of each option in dictionaries and JSON files
_KEY_ALIASES: dict[str, str] = {
    "bucket": "bucket",
    "prefix": "prefix",
    "workspaceDir": "workspace_dir",
    "workspace_dir": "workspace_dir",
    "region": "region",
    "endpointUrl": "endpoint_url",
    "endpoint_url": "endpoint_url",
    "downloadConcurrency": "download_concurrency",
    "download_concurrency": "download_concurrency",
    "uploadConcurrency": "upload_concurrency",
    "upload_concurrency": "upload_concurrency",
    "ignorePatterns": "ignore_patterns",
    "ignore_patterns": "ignore_patterns",
    "ignore": "ignore_patterns",
    "useIgnoreFile": "use_ignore_file",
    "use_ignore_file": "use_ignore_file",
    "deleteRemoteOnPush": "delete_remote_on_push",
    "delete_remote_on_push": "delete_remote_on_push",
    "hashAlgorithm": "hash_algorithm",
    "hash_algorithm": "hash_algorithm",
}


@dataclass
class SyncConfig:
    """Options of a sync engine.

    ``bucket``, ``prefix`` and ``workspace_dir`` are required. The prefix is
    normalized to end with a single ``/`` so that ``ws`` never matches keys
    of a sibling prefix such as ``ws2/``.
    """

    bucket: str
    prefix: str
    workspace_dir: Path
    region: Optional[str] = None
    download_concurrency: int = DEFAULT_DOWNLOAD_CONCURRENCY
    upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY
    ignore_patterns: list[str] = field(default_factory=list)
    content_type_resolver: Optional[Callable[[str], str]] = None
    use_ignore_file: bool = True
    delete_remote_on_push: bool = False
    endpoint_url: Optional[str] = None
    hash_algorithm: str = "md5"

    def __post_init__(self) -> None:
        if self.workspace_dir is None or self.workspace_dir == "":
            raise SyncConfigError("workspace_dir is required")
        if isinstance(self.workspace_dir, str):
            self.workspace_dir = Path(self.workspace_dir)
        if self.region is None:
            self.region = default_region()
        if self.ignore_patterns is None:
            self.ignore_patterns = []
        self.validate()
        self.prefix = normalize_prefix(self.prefix)

    def validate(self) -> None:
        """Check the options without touching the network or disk.

        Raises:
            SyncConfigError: If an option is missing or invalid
        """
        if not self.bucket or not isinstance(self.bucket, str):
            raise SyncConfigError("bucket is required")
        if self.prefix is None or not isinstance(self.prefix, str):
            raise SyncConfigError("prefix is required")
        if ".." in self.prefix.replace("\\", "/").split("/"):
            raise SyncConfigError(f"prefix must not contain '..': {self.prefix}")
        validate_concurrency(self.download_concurrency, "download_concurrency")
        validate_concurrency(self.upload_concurrency, "upload_concurrency")
        if not isinstance(self.ignore_patterns, list) or not all(
            isinstance(p, str) for p in self.ignore_patterns
        ):
            raise SyncConfigError("ignore_patterns must be a list of strings")
        if self.content_type_resolver is not None and not callable(
            self.content_type_resolver
        ):
            raise SyncConfigError("content_type_resolver must be callable")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncConfig":
        """Create a SyncConfig from a dictionary.

        camelCase and snake_case keys are both accepted.

        Raises:
            SyncConfigError: On unknown keys or invalid values
        """
        if not isinstance(data, dict):
            raise SyncConfigError("Sync configuration must be an object")
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _KEY_ALIASES.get(key)
            if name is None:
                raise SyncConfigError(f"Unknown configuration option: {key}")
            kwargs[name] = value
        for required in ("bucket", "prefix", "workspace_dir"):
            if required not in kwargs:
                raise SyncConfigError(f"Missing required option: {required}")
        return cls(**kwargs)

    @classmethod
    def from_env(
        cls, environ: Optional[dict[str, str]] = None, **overrides: Any
    ) -> "SyncConfig":
        """Create a SyncConfig from ``BUCKETSYNC_*`` environment variables.

        Keyword overrides win over the environment; ``None`` overrides are
        ignored so CLI options can be passed through unchanged.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        mapping = {
            "BUCKET": "bucket",
            "PREFIX": "prefix",
            "WORKSPACE_DIR": "workspace_dir",
            "REGION": "region",
            "ENDPOINT_URL": "endpoint_url",
            "DOWNLOAD_CONCURRENCY": "download_concurrency",
            "UPLOAD_CONCURRENCY": "upload_concurrency",
            "IGNORE": "ignore_patterns",
        }
        for suffix, name in mapping.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is None or raw == "":
                continue
            if name.endswith("_concurrency"):
                try:
                    values[name] = int(raw)
                except ValueError as e:
                    raise SyncConfigError(
                        f"{ENV_PREFIX}{suffix} must be an integer: {raw!r}"
                    ) from e
            elif name == "ignore_patterns":
                values[name] = [p.strip() for p in raw.split(",") if p.strip()]
            else:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        for required in ("bucket", "prefix", "workspace_dir"):
            if required not in values:
                raise SyncConfigError(
                    f"Missing required option: {required} "
                    f"(set {ENV_PREFIX}{required.upper()} or pass it explicitly)"
                )
        return cls(**values)


def load_sync_config_from_json(path: Union[str, Path]) -> SyncConfig:
    """Load a SyncConfig from a JSON file.

    Example file::

        {
            "bucket": "my-bucket",
            "prefix": "workspaces/demo",
            "workspaceDir": "/home/user/demo",
            "downloadConcurrency": 20,
            "ignorePatterns": ["*.tmp", "build/"]
        }

    Raises:
        SyncConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise SyncConfigError(f"Config file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise SyncConfigError(f"Invalid config file {path}: {e}") from e
    return SyncConfig.from_dict(data)


class Config:
    """User defaults for the command line tool.

    Values come from ``KEY=value`` lines in the config file; environment
    variables with the same names take precedence.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = config_path
        self._values: dict[str, str] = {}
        self._load()

    def get_config_path(self) -> Path:
        if self._config_path is not None:
            return self._config_path
        base = os.environ.get("XDG_CONFIG_HOME")
        root = Path(base) if base else Path.home() / ".config"
        return root / "bucketsync" / "config"

    def _load(self) -> None:
        path = self.get_config_path()
        if not path.is_file():
            return
        try:
            with open(path, encoding="utf-8") as f:
                for lineno, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue
                    if "=" not in line:
                        logger.warning(f"Ignoring malformed line {lineno} in {path}")
                        continue
                    key, value = line.split("=", 1)
                    self._values[key.strip()] = value.strip().strip('"').strip("'")
        except OSError as e:
            logger.warning(f"Could not read config file {path}: {e}")

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Look up ``BUCKETSYNC_<NAME>`` in the environment, then the file."""
        key = ENV_PREFIX + name.upper()
        return os.environ.get(key) or self._values.get(key) or default

    @property
    def bucket(self) -> Optional[str]:
        return self.get("bucket")

    @property
    def prefix(self) -> Optional[str]:
        return self.get("prefix")

    @property
    def region(self) -> Optional[str]:
        return self.get("region") or default_region()

    @property
    def endpoint_url(self) -> Optional[str]:
        return self.get("endpoint_url")

    def save(self, values: dict[str, str]) -> Path:
        """Write settings to the config file, merging with existing ones."""
        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        for name, value in values.items():
            self._values[ENV_PREFIX + name.upper()] = value
        with open(path, "w", encoding="utf-8") as f:
            for key in sorted(self._values):
                f.write(f"{key}={self._values[key]}\n")
        return path


config = Config()
