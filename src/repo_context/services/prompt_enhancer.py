"""
Prompt Enhancer Service

Composes retrieval with secret scanning and prompt rewriting:

    1. scan the prompt
    2. retrieve repository context for it
    3. scan the context
    4. rewrite the prompt with the context

Nothing is handed to the rewriter unless both scans passed.
"""

from dataclasses import dataclass
from typing import Optional

from ..context_exceptions import SecretLeakageDetectedError
from ..logging_config import configure_logger_for_debug_trace
from .collaborators import PromptRewriter, SecretScanner
from .context_retriever import ContextRetriever

logger = configure_logger_for_debug_trace(__name__)

SECRETS_DETECTED_MESSAGE = (
    "Potential secrets detected. Request was not forwarded to the LLM. "
    "Please redact secrets and retry."
)
SCAN_FAILED_MESSAGE = (
    "Secret scanning failed. Request was not forwarded to the LLM. "
    "Please retry later."
)


@dataclass
class EnhancementResult:
    """Outcome of one enhance() call."""
    prompt: str
    context: Optional[str] = None
    blocked: bool = False


class PromptEnhancer:
    """
    Enhances prompts with repository context.

    Usage:
        enhancer = PromptEnhancer(retriever, scanner, rewriter)
        result = enhancer.enhance("add retries to the uploader", active_file="src/upload.ts")
    """

    def __init__(self, retriever: ContextRetriever, scanner: SecretScanner, rewriter: PromptRewriter):
        self._retriever = retriever
        self._scanner = scanner
        self._rewriter = rewriter

    def enhance(self, prompt: str, active_file: Optional[str] = None) -> EnhancementResult:
        """
        Enhance one prompt.

        Args:
            prompt: User prompt
            active_file: Path of the file the user is focused on (optional)

        Returns:
            EnhancementResult. When blocked is True, prompt holds the
            message to show instead of an enhanced prompt.

        Raises:
            ValueError: prompt is empty
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt is required")

        blocked = self._scan("prompt", prompt)
        if blocked is not None:
            return blocked

        context = self._retriever.get_context(prompt, active_file)
        if context:
            blocked = self._scan("context", context)
            if blocked is not None:
                return blocked

        try:
            enhanced = self._rewriter.rewrite(prompt, context or "")
        except Exception as e:
            logger.warning(f"Prompt rewrite failed, returning original prompt: {e}")
            return EnhancementResult(prompt=prompt, context=context)

        return EnhancementResult(prompt=enhanced or prompt, context=context)

    def _scan(self, label: str, text: str) -> Optional[EnhancementResult]:
        try:
            self._scanner.assert_no_secrets(label, text)
        except SecretLeakageDetectedError as e:
            logger.warning(f"Blocked {label}: {len(e.findings)} potential secrets")
            return EnhancementResult(prompt=SECRETS_DETECTED_MESSAGE, blocked=True)
        except Exception as e:
            logger.error(f"Secret scanning of {label} failed: {e}")
            return EnhancementResult(prompt=SCAN_FAILED_MESSAGE, blocked=True)
        return None
