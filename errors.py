from __future__ import annotations

from typing import Any


class OracleError(Exception):
    """Base de todos os erros do oráculo de adjudicação."""


class MissingArgument(OracleError):
    """Argumento obrigatório (criteria/submission/segredo) ausente ou vazio."""


class ProviderError(OracleError):
    """O provider LLM respondeu com um envelope de erro."""

    def __init__(self, message: str, envelope: Any = None):
        super().__init__(message)
        self.envelope = envelope


class MalformedVerdict(OracleError):
    """Resposta do modelo não é um veredito JSON válido."""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


class ScoreOutOfRange(OracleError):
    """Score fora de [0, 100]: o modelo ignorou as instruções."""

    def __init__(self, score: int):
        super().__init__(f"Invalid score range: {score}")
        self.score = score


class ConfigurationError(OracleError):
    """Configuração local incompleta (apenas no harness)."""


class SandboxError(OracleError):
    """Violação de limite ou de contrato do sandbox emulado."""
