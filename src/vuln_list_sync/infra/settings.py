"""Runtime settings resolved from the environment and CLI overrides."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from ..errors import ConfigError
from .paths import (
    DEFAULT_CACHE_DIR,
    DEFAULT_UPDATER,
    DEFAULT_WORK_DIR,
    FAILED_TARGETS_FILE_NAME,
    LOCK_FILE_NAME,
)

SERVICE_NAME = "vuln-list-sync"
ACCOUNT_NAME = "token"


@dataclass(frozen=True)
class Settings:
    work_dir: Path = DEFAULT_WORK_DIR
    cache_dir: Path = DEFAULT_CACHE_DIR
    local_mode: bool = False
    updater: Path = DEFAULT_UPDATER
    targets: str = ""
    lock_file: Optional[Path] = None
    failed_targets_file: Optional[Path] = None
    gitlab_base_url: str = ""
    gitlab_group: str = ""
    gitlab_token: str = field(default="", repr=False)
    token_source: str = ""
    branches: Tuple[str, ...] = ("main", "master")
    author_name: str = "Vulnerability Updater"
    author_email: str = "vuln-updater@example.com"

    @property
    def repos_dir(self) -> Path:
        """Parent directory of every group's working copy."""
        return self.cache_dir if self.local_mode else self.work_dir

    @property
    def lock_path(self) -> Path:
        return self.lock_file or self.repos_dir / LOCK_FILE_NAME

    @property
    def failed_targets_path(self) -> Path:
        return self.failed_targets_file or self.repos_dir / FAILED_TARGETS_FILE_NAME

    def remote_url(self, group_id: str) -> str:
        url = f"{self.gitlab_base_url.rstrip('/')}/{self.gitlab_group.strip('/')}/{group_id}.git"
        return with_token(url, self.gitlab_token)

    def validate(self) -> "Settings":
        if self.local_mode:
            return self
        missing = [
            name
            for name, value in (
                ("GITLAB_BASE_URL", self.gitlab_base_url),
                ("GITLAB_GROUP", self.gitlab_group),
                ("GITLAB_TOKEN", self.gitlab_token),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"missing required setting(s): {', '.join(missing)}")
        if "://" not in self.gitlab_base_url:
            raise ConfigError(f"GITLAB_BASE_URL must include a scheme: {self.gitlab_base_url}")
        return self


def with_token(url: str, token: str) -> str:
    """Embed ``oauth2:<token>@`` after the URL scheme."""
    if not token or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    if "@" in rest.split("/", 1)[0]:
        return url
    return f"{scheme}://oauth2:{token}@{rest}"


def _keyring_available() -> bool:
    try:
        import keyring  # noqa: F401
        return True
    except Exception:
        return False


def _load_token_from_keyring() -> Optional[str]:
    import keyring
    return keyring.get_password(SERVICE_NAME, ACCOUNT_NAME)


def load_token(env: Mapping[str, str]) -> Tuple[str, str]:
    """Return ``(token, source)``; environment first, then the OS keychain."""
    token = (env.get("GITLAB_TOKEN") or "").strip()
    if token:
        return token, "env"

    if _keyring_available():
        try:
            token = (_load_token_from_keyring() or "").strip()
        except Exception:
            token = ""
        if token:
            return token, "keyring"

    return "", ""


def _split_branches(value: str) -> Tuple[str, ...]:
    branches = tuple(item.strip() for item in value.split(",") if item.strip())
    return branches or ("main", "master")


def _optional_path(value: Optional[str]) -> Optional[Path]:
    return Path(value) if value else None


def load_settings(env: Optional[Mapping[str, str]] = None, **overrides) -> Settings:
    """Build settings from ``env`` (defaults to ``os.environ``).

    Keyword overrides with a value of ``None`` are ignored so CLI options
    that were not given fall through to the environment.
    """
    if env is None:
        env = os.environ

    token, token_source = load_token(env)
    values = {
        "work_dir": Path(env.get("WORK_DIR") or DEFAULT_WORK_DIR),
        "cache_dir": Path(env.get("CACHE_DIR") or DEFAULT_CACHE_DIR),
        "updater": Path(env.get("VULN_LIST_UPDATER") or DEFAULT_UPDATER),
        "targets": env.get("VULN_LIST_TARGETS", ""),
        "lock_file": _optional_path(env.get("VULN_LIST_LOCK_FILE")),
        "failed_targets_file": _optional_path(env.get("FAILED_TARGETS_FILE")),
        "gitlab_base_url": (env.get("GITLAB_BASE_URL") or "").strip(),
        "gitlab_group": (env.get("GITLAB_GROUP") or "").strip(),
        "gitlab_token": token,
        "token_source": token_source,
        "branches": _split_branches(env.get("GIT_BRANCHES", "")),
        "author_name": env.get("GIT_AUTHOR_NAME") or "Vulnerability Updater",
        "author_email": env.get("GIT_AUTHOR_EMAIL") or "vuln-updater@example.com",
    }

    for key, value in overrides.items():
        if value is None:
            continue
        if key not in values and key != "local_mode":
            raise TypeError(f"unknown setting: {key}")
        if key in ("work_dir", "cache_dir", "updater", "lock_file", "failed_targets_file"):
            value = Path(value)
        values[key] = value

    return Settings(**values)
