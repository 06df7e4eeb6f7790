"""Common base class for providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

__all__ = ["BaseProvider"]


class BaseProvider(ABC):
    """Holds the provider id and optional model name."""

    _name: str
    _model: str | None

    def __init__(self, *, name: str, model: str | None = None) -> None:
        name_text = name.strip()
        if not name_text:
            raise ValueError("provider name must be a non-empty string")
        self._name = name_text

        if model is None:
            self._model = None
        else:
            model_text = model.strip()
            if not model_text:
                raise ValueError("provider model must be a non-empty string")
            self._model = model_text

    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str | None:
        return self._model

    @abstractmethod
    def complete(self, prompt: str, deadline: float) -> str:
        """Return the completion for ``prompt`` before the monotonic ``deadline``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, model={self._model!r})"
