from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

from config import Settings, settings
from encoding import ReturnType, decode_result
from errors import ConfigurationError
from judge_source import SECRET_NAME
from sandbox import SimulationResult, simulate_script

ROOT = Path(__file__).resolve().parent

# Caso representativo de aprovação (score esperado 90-100)
FIXTURE_ARGS: List[str] = [
    "Check if the submission discusses 'DeFi' or 'Finance'. If yes, score 90-100. If no, score 0.",
    "This article explains how Decentralized Finance (DeFi) is revolutionizing banking.",
]


def load_source(cfg: Settings) -> str:
    """Lê o fonte da unidade como texto opaco (não é importado)."""
    path = Path(cfg.functions_source_path)
    if not path.is_absolute():
        path = ROOT / path
    return path.read_text(encoding="utf-8")


def check_config(cfg: Settings) -> str:
    if not cfg.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is missing in .env")
    return cfg.openai_api_key


def report(result: SimulationResult) -> int:
    if result.error:
        print("[SIM_FAILED]", result.error_string)
        if result.captured_terminal_output:
            print("[SIM] logs:")
            print(result.captured_terminal_output.rstrip())
        return 1

    print("[OK] execution successful")
    if result.captured_terminal_output:
        print("[SIM] logs:")
        print(result.captured_terminal_output.rstrip())

    print("[SIM] hex output (for contract):", result.response_bytes_hexstring)
    print("[SIM] decoded uint256 =", decode_result(result.response_bytes_hexstring, ReturnType.uint256))
    return 0


def main(cfg: Optional[Settings] = None) -> int:
    cfg = cfg or settings

    # 1) Sem chave não há simulação (nem leitura do fonte, nem rede)
    try:
        api_key = check_config(cfg)
    except ConfigurationError as e:
        print("[CONFIG_ERROR]", e)
        print("Create .env in the project root and add: OPENAI_API_KEY=sk-...")
        return 1

    # 2) Fonte da unidade
    source = load_source(cfg)

    print("[SIM] simulating AI judge execution...")
    print(f'[SIM] prompt: "{FIXTURE_ARGS[0]}"')
    print(f'[SIM] submission: "{FIXTURE_ARGS[1]}"')

    args = list(FIXTURE_ARGS)
    if cfg.llm_model:
        args.append(cfg.llm_model)
        print("[SIM] model =", cfg.llm_model)

    # 3) Mesma injeção de args/segredos da rede
    result = simulate_script(
        source=source,
        args=args,
        bytes_args=[],
        secrets={SECRET_NAME: api_key},
        limits=cfg.sandbox,
        filename=str(cfg.functions_source_path),
    )

    return report(result)


if __name__ == "__main__":
    sys.exit(main())
