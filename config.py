from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

# 1) Carrega o .env ANTES de ler qualquer variável de ambiente
ROOT = Path(__file__).resolve().parent
load_dotenv(ROOT / ".env")


@dataclass(frozen=True)
class SandboxLimits:
    """Limites do ambiente de execução emulado (mesmos defaults da rede)."""
    max_execution_s: float = 10.0
    max_queries: int = 5
    max_query_s: float = 9.0
    max_query_url_length: int = 2048
    max_query_request_bytes: int = 2048
    max_query_response_bytes: int = 2 * 1024 * 1024
    max_on_chain_response_bytes: int = 256


def _limits_from_env() -> SandboxLimits:
    return SandboxLimits(
        max_execution_s=float(os.getenv("SANDBOX_MAX_EXECUTION_S", "10")),
        max_queries=int(os.getenv("SANDBOX_MAX_QUERIES", "5")),
        max_query_s=float(os.getenv("SANDBOX_MAX_QUERY_S", "9")),
        max_query_url_length=int(os.getenv("SANDBOX_MAX_QUERY_URL_LENGTH", "2048")),
        max_query_request_bytes=int(os.getenv("SANDBOX_MAX_QUERY_REQUEST_BYTES", "2048")),
        max_query_response_bytes=int(os.getenv("SANDBOX_MAX_QUERY_RESPONSE_BYTES", str(2 * 1024 * 1024))),
        max_on_chain_response_bytes=int(os.getenv("SANDBOX_MAX_ON_CHAIN_BYTES", "256")),
    )


@dataclass(frozen=True)
class Settings:
    # Chave do provider (injetada como segredo 'openaiKey')
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")

    # Modelo (opcional); vazio = default da unidade
    llm_model: str | None = os.getenv("LLM_MODEL") or None

    # Fonte da unidade de adjudicação (relativa à raiz do projeto)
    functions_source_path: str = os.getenv("FUNCTIONS_SOURCE_PATH", "judge_source.py")

    # Sandbox
    sandbox: SandboxLimits = _limits_from_env()


settings = Settings()
