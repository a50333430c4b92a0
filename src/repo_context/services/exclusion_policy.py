"""
Exclusion Policy Service

Decides whether a path or a chunk must stay out of the index.

Patterns come from <root>/<rag_dir>/indexing-exclude.txt, one per line.
Blank lines and lines starting with '#' are ignored. A missing file is
recreated with DEFAULT_EXCLUDE_PATTERNS.

Matching is case-insensitive:
- a pattern containing '*' is a wildcard matched anywhere in the text
- any other pattern is a plain substring match
"""

import re
from pathlib import Path
from typing import Iterable, List, Optional, Pattern, Union

from ..logging_config import configure_logger_for_debug_trace
from .index_types import Chunk

logger = configure_logger_for_debug_trace(__name__)

EXCLUSION_FILE_NAME = "indexing-exclude.txt"

DEFAULT_EXCLUDE_PATTERNS = (
    ".env",
    ".env.",
    "secrets",
    "secret",
    "private_key",
    "privatekey",
    "pem",
    "p12",
    "keystore",
    "keychain",
    "id_rsa",
    "id_dsa",
    "id_ed25519",
    "ssh_key",
    "apikey",
    "api_key",
    "token",
    "access_token",
    "refresh_token",
    "bearer",
    "authorization",
    "jwt",
    "session_key",
    "client_secret",
    "app_secret",
    "consumer_secret",
    "consumer_key",
    "oauth_token",
    "oauth_secret",
    "password",
    "passwd",
    "pwd",
    "db_password",
    "database_url",
    "connection_string",
    "dsn",
    "smtp_password",
    "mail_password",
    "redis_password",
    "mongodb_uri",
    "postgres_url",
    "mysql_url",
    "sqlite_url",
    "aws_access_key_id",
    "aws_secret_access_key",
    "aws_session_token",
    "aws_",
    "gcp_service_account",
    "google_application_credentials",
    "azure_client_secret",
    "azure_tenant_id",
    "azure_subscription_id",
    "keyvault",
    "vault",
    "vault_token",
    "kubeconfig",
    "k8s_secret",
    "ansible_vault",
    "sops",
    "doppler",
    "vercel_token",
    "netlify_auth_token",
    "github_token",
    "gitlab_token",
    "npm_token",
    "pypi_token",
    "slack_token",
    "discord_token",
    "stripe_secret",
    "paypal_secret",
    "twilio_auth_token",
    "sendgrid_api_key",
    "openai_api_key",
    "anthropic_api_key",
    "hf_token",
    "huggingface_token",
    "clerk_secret_key",
    "supabase_service_role_key",
    "firebase_private_key",
    "telegram_bot_token",
    "bot_token",
    "cookie_secret",
    "signing_key",
    "encryption_key",
    "master_key",
    "license_key",
    "prod.env",
    "*.pem",
    "*.key",
    "*.p12",
    "*.pfx",
)


def parse_patterns(content: str) -> List[str]:
    """Parse exclusion file content into lowercased patterns."""
    patterns = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        patterns.append(stripped.lower())
    return patterns


class ExclusionPattern:
    """A single compiled exclusion pattern."""

    def __init__(self, pattern: str):
        self.original = pattern
        self.pattern = pattern.lower()
        self._regex: Optional[Pattern[str]] = None
        if "*" in self.pattern:
            self._regex = re.compile(".*".join(re.escape(part) for part in self.pattern.split("*")))

    def matches(self, lowered_text: str) -> bool:
        """Check an already lowercased text against this pattern."""
        if self._regex is not None:
            return self._regex.search(lowered_text) is not None
        return self.pattern in lowered_text

    def __repr__(self) -> str:
        return f"ExclusionPattern({self.original!r})"


class ExclusionPolicy:
    """
    Answers "is this path/content excluded?" for one indexed root.

    Usage:
        policy = ExclusionPolicy.load(rag_dir)
        if policy.excludes_path("config/api_key_rotation.md"):
            ...
    """

    def __init__(self, patterns: Iterable[str]):
        self._patterns = [ExclusionPattern(p) for p in patterns if p and p.strip()]

    @property
    def patterns(self) -> List[str]:
        return [p.pattern for p in self._patterns]

    @classmethod
    def load(cls, rag_dir: Union[str, Path]) -> "ExclusionPolicy":
        """
        Load the pattern file, creating it with defaults when missing.

        Failure to create the file is not fatal: the default patterns are
        used in memory.

        Args:
            rag_dir: Reserved engine directory inside the indexed root.

        Returns:
            ExclusionPolicy for the loaded patterns.
        """
        exclusion_path = Path(rag_dir) / EXCLUSION_FILE_NAME
        content = _read_text(exclusion_path)
        if content is None:
            content = "\n".join(DEFAULT_EXCLUDE_PATTERNS)
            try:
                exclusion_path.parent.mkdir(parents=True, exist_ok=True)
                exclusion_path.write_text(content, encoding="utf-8")
                logger.debug(f"[Exclusion] Created default pattern file at {exclusion_path}")
            except OSError as e:
                logger.warning(f"Failed to initialize exclusion patterns file {exclusion_path}: {e}")

        policy = cls(parse_patterns(content))
        logger.debug(f"[Exclusion] Loaded {len(policy._patterns)} patterns")
        return policy

    def excludes_path(self, relative_path: str) -> bool:
        """Check a file's relative path before it is read."""
        return self._matches_any(relative_path.lower())

    def excludes_chunk(self, chunk: Chunk) -> bool:
        """Check a chunk's path and text before it is admitted to the index."""
        return self._matches_any(f"{chunk.file_path}\n{chunk.text}".lower())

    def _matches_any(self, lowered_text: str) -> bool:
        for pattern in self._patterns:
            if pattern.matches(lowered_text):
                return True
        return False


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
