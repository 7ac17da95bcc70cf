from typing import Iterable


class PipelineError(Exception):
    """Base class for every error raised by the attrition pipeline."""


class ConfigError(PipelineError, ValueError):
    pass


class MissingColumnError(PipelineError, KeyError):
    def __init__(self, columns: Iterable[str], where: str = "table"):
        self.columns = list(columns)
        self.where = where
        super().__init__(f"Missing column(s) in {where}: {', '.join(self.columns)}")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]


class MalformedInputError(PipelineError, ValueError):
    pass


class EmptyVocabularyError(PipelineError, ValueError):
    pass


class ServiceError(PipelineError, RuntimeError):
    def __init__(self, message: str, status: int = None):
        self.status = status
        super().__init__(message if status is None else f"{message} (HTTP {status})")


class UnsupportedLanguageError(PipelineError, ValueError):
    def __init__(self, language: str, supported: Iterable[str] = ()):
        self.language = language
        supported = sorted(supported)
        message = f"Unsupported language: {language!r}"
        if supported:
            message += f" (supported: {', '.join(supported)})"
        super().__init__(message)
