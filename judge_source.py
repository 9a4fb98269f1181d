"""
Unidade de adjudicação (juiz LLM) de bounties.

Este arquivo é carregado como texto pelo sandbox (produção ou simulate.py) e
executado via `main(args, bytes_args, secrets, functions)`. Nada aqui lê
variáveis de ambiente ou guarda estado entre execuções: tudo vem dos
parâmetros injetados pelo host.
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from jsonschema import ValidationError
from jsonschema import validate as js_validate

from encoding import encode_uint256
from errors import MalformedVerdict, MissingArgument, ProviderError, ScoreOutOfRange
from schemas import VERDICT_SCHEMA

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o-mini"
TEMPERATURE = 0.2
SECRET_NAME = "openaiKey"
SCORE_MIN = 0
SCORE_MAX = 100

# Contrato com o provider: texto e ordem dos campos devem ser mantidos.
SYSTEM_PROMPT = """You are an AI Judge for a bounty platform.
Your job is to evaluate a user submission based on specific criteria.
You must return a strict JSON object with no markdown formatting.
Format: { "score": <integer_0_to_100>, "reasoning": "<string_explanation>" }"""

USER_TEMPLATE = """
CRITERIA (The Rule):
{criteria}

USER SUBMISSION:
{submission}

Evaluate the submission against the criteria. Give a score from 0 to 100.
"""

_FENCE_OPEN = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*")
_FENCE_CLOSE = re.compile(r"```\s*$")


@dataclass(frozen=True)
class EvaluationRequest:
    criteria: str
    submission: str

    @classmethod
    def from_args(cls, args: Optional[Sequence[str]]) -> "EvaluationRequest":
        args = list(args or [])
        criteria = args[0] if len(args) > 0 else ""
        submission = args[1] if len(args) > 1 else ""
        return cls(criteria=criteria or "", submission=submission or "")

    def validate(self) -> None:
        if not self.criteria.strip() or not self.submission.strip():
            raise MissingArgument("Missing arguments: criteriaPrompt or submissionText")


@dataclass(frozen=True)
class ModelQuery:
    """Instrução de sistema + mensagem do usuário (uma por requisição)."""
    system: str
    user: str

    def to_messages(self) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


@dataclass(frozen=True)
class Verdict:
    score: int
    reasoning: str


def build_query(request: EvaluationRequest) -> ModelQuery:
    user = USER_TEMPLATE.format(criteria=request.criteria, submission=request.submission)
    return ModelQuery(system=SYSTEM_PROMPT, user=user)


def build_payload(query: ModelQuery, model: str = DEFAULT_MODEL) -> dict:
    return {
        "model": model,
        "messages": query.to_messages(),
        "temperature": TEMPERATURE,
    }


def _completion_text(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise ProviderError(
            f"OpenAI Error: response without choices[0].message.content: {json.dumps(data, default=str)}",
            envelope=data,
        )
    if not isinstance(content, str):
        raise ProviderError(f"OpenAI Error: non-text completion: {json.dumps(data, default=str)}", envelope=data)
    return content


def call_provider(
    query: ModelQuery,
    api_key: str,
    http_request: Callable[..., Any],
    model: str = DEFAULT_MODEL,
) -> str:
    """
    Uma única chamada ao endpoint de chat-completions.
    Sem retry e sem timeout próprio: isso é responsabilidade do host.
    """
    response = http_request(
        url=OPENAI_CHAT_URL,
        method="POST",
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        },
        data=build_payload(query, model),
    )

    if response.error:
        envelope = response.to_dict()
        raise ProviderError(f"OpenAI Error: {json.dumps(envelope, default=str)}", envelope=envelope)

    data = response.data
    if isinstance(data, dict) and data.get("error"):
        raise ProviderError(f"OpenAI Error: {json.dumps(data, default=str)}", envelope=data)

    return _completion_text(data)


def strip_fences(text: str) -> str:
    t = _FENCE_OPEN.sub("", text or "", count=1)
    t = _FENCE_CLOSE.sub("", t, count=1)
    return t.strip()


def round_score(value: float) -> int:
    """Arredonda meio para cima (x.5 -> x+1, -0.5 -> 0)."""
    if isinstance(value, int):
        return value
    # sem somar 0.5 antes do floor: 0.49999999999999994 + 0.5 arredonda para 1.0
    base = math.floor(value)
    return int(base) + (1 if value - base >= 0.5 else 0)


def extract_verdict(raw_text: str) -> Verdict:
    """
    Converte o texto do modelo em Verdict.

    Arredonda antes de validar a faixa: -0.4 vira 0 (aceito), 100.5 vira 101 (rejeitado).
    """
    try:
        obj = json.loads(strip_fences(raw_text))
    except (json.JSONDecodeError, TypeError):
        raise MalformedVerdict(f"Failed to parse AI response: {raw_text}", raw_text=raw_text)

    try:
        js_validate(instance=obj, schema=VERDICT_SCHEMA)
    except ValidationError as e:
        raise MalformedVerdict(
            f"AI response does not match verdict schema ({e.message}): {raw_text}",
            raw_text=raw_text,
        )

    raw_score = obj["score"]
    if isinstance(raw_score, float) and not math.isfinite(raw_score):
        raise MalformedVerdict(f"AI response has non-finite score: {raw_text}", raw_text=raw_text)

    score = round_score(raw_score)
    if score < SCORE_MIN or score > SCORE_MAX:
        raise ScoreOutOfRange(score)

    return Verdict(score=score, reasoning=obj["reasoning"])


def adjudicate(
    request: EvaluationRequest,
    secrets: Optional[Mapping[str, str]],
    http_request: Callable[..., Any],
    model: str = DEFAULT_MODEL,
    encode: Callable[[int], bytes] = encode_uint256,
) -> bytes:
    """(criteria, submission, secrets) -> score codificado. Qualquer falha é terminal."""
    request.validate()

    api_key = (secrets or {}).get(SECRET_NAME)
    if not api_key:
        raise MissingArgument(f"Missing secret: {SECRET_NAME}")

    query = build_query(request)
    text = call_provider(query, api_key, http_request, model=model)
    verdict = extract_verdict(text)

    print(f"AI Verdict: Score {verdict.score}. Reasoning: {verdict.reasoning}")

    return encode(verdict.score)


def main(
    args: Sequence[str],
    bytes_args: Sequence[str],
    secrets: Mapping[str, str],
    functions: Any,
) -> bytes:
    """Ponto de entrada chamado pelo host (args[2], se presente, troca o modelo)."""
    request = EvaluationRequest.from_args(args)
    model = args[2] if len(args or []) > 2 and args[2] else DEFAULT_MODEL
    return adjudicate(
        request,
        secrets,
        functions.make_http_request,
        model=model,
        encode=functions.encode_uint256,
    )
