"""
Collaborator interfaces used around the retrieval engine.

The engine itself never scans for secrets or calls a language model; the
prompt enhancer composes it with implementations of these interfaces.
"""

from abc import ABC, abstractmethod


class SecretScanner(ABC):
    """Checks outgoing text for sensitive content."""

    @abstractmethod
    def assert_no_secrets(self, label: str, text: str) -> None:
        """
        Raise SecretLeakageDetectedError when text contains secrets.

        Args:
            label: Short description of the text ("prompt", "context")
            text: Text to scan

        Any other exception means the scan itself could not be performed.
        """


class PromptRewriter(ABC):
    """Rewrites a prompt using retrieved repository context."""

    @abstractmethod
    def rewrite(self, prompt: str, context: str) -> str:
        """Return the enhanced prompt."""
