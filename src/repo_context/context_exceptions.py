"""
repo-context Exception Hierarchy

Contains all exception classes raised inside the retrieval engine.
None of them escape ContextRetriever.get_context(): the degrade
boundaries catch them and fall back to a cheaper behavior.
"""


class ContextRetrievalError(Exception):
    """Base exception for all retrieval engine operations."""
    pass


class IndexCacheError(ContextRetrievalError):
    """Exception for persisted index operations (save/load)."""
    pass


class IndexLoadError(IndexCacheError):
    """
    Raised when a persisted index cannot be used.

    Covers unreadable files, JSON parse failures, schema violations and
    version, fingerprint or chunking-parameter mismatches.
    """
    pass


class IndexPersistError(IndexCacheError):
    """Raised when writing the persisted index fails."""
    pass


class EmbeddingUnavailableError(ContextRetrievalError):
    """Raised when the embedding capability cannot produce vectors."""
    pass


class SecretLeakageDetectedError(ContextRetrievalError):
    """
    Raised by a secret scanner when text contains sensitive content.

    Only the first MAX_EXPOSED_MESSAGES findings are included in the message.
    """

    MAX_EXPOSED_MESSAGES = 5

    def __init__(self, findings):
        self.findings = list(findings)
        numbered = "\n".join(
            f"{index}. {entry}"
            for index, entry in enumerate(self.findings[:self.MAX_EXPOSED_MESSAGES], start=1)
        )
        super().__init__(f"secrets found:\n{numbered}")
