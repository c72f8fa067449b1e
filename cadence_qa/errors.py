"""
Error types raised inside the QA pipeline.

Analyzers never raise to their callers; these exceptions travel between the
text-generation client, the config loader and the orchestrator, which is the
only component that retries or falls back.
"""

from typing import Dict, Optional


class QAError(Exception):
    """Base class for pipeline errors"""

    def __init__(
        self,
        message: str,
        code: str = "QA_ERROR",
        recoverable: bool = True,
        context: Optional[Dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.context = context or {}

    def to_dict(self) -> Dict:
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class GenerationError(QAError):
    """The text-generation capability failed or timed out"""

    def __init__(self, message: str, code: str = "GENERATION_FAILED", context: Optional[Dict] = None):
        super().__init__(message, code=code, recoverable=True, context=context)


class ConfigError(QAError):
    """Invalid or unreadable configuration"""

    def __init__(self, message: str, code: str = "CONFIG_INVALID", context: Optional[Dict] = None):
        super().__init__(message, code=code, recoverable=False, context=context)
