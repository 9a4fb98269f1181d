from __future__ import annotations

import io
import itertools
import json
import sys
import threading
import types
from contextlib import redirect_stdout
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests

from config import SandboxLimits
from encoding import encode_int256, encode_string, encode_uint256, to_hex
from errors import SandboxError

_module_ids = itertools.count()


@dataclass
class HttpResponse:
    """Resposta entregue ao script; nunca lança exceção, erros vêm em `error`."""
    error: bool
    status: Optional[int] = None
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    message: str = ""
    code: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SimulationResult:
    response_bytes_hexstring: Optional[str] = None
    error_string: Optional[str] = None
    captured_terminal_output: str = ""
    queries: int = 0

    @property
    def error(self) -> bool:
        return self.error_string is not None


class FunctionsHost:
    """
    Interface do host vista pelo script: HTTP com limites + encoders.
    Uma instância por execução (o contador de queries não é compartilhado).
    """

    def __init__(self, limits: Optional[SandboxLimits] = None):
        self.limits = limits or SandboxLimits()
        self.queries = 0

    @staticmethod
    def _fail(code: str, message: str, status: Optional[int] = None, data: Any = None) -> HttpResponse:
        return HttpResponse(error=True, status=status, data=data, message=message, code=code)

    def make_http_request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Any = None,
        timeout_s: Optional[float] = None,
        response_type: str = "json",
    ) -> HttpResponse:
        lim = self.limits
        if self.queries >= lim.max_queries:
            return self._fail("ERR_QUERY_LIMIT", f"exceeded numAllowedQueries ({lim.max_queries})")
        self.queries += 1

        if len(url) > lim.max_query_url_length:
            return self._fail("ERR_URL_TOO_LONG", f"URL length exceeds {lim.max_query_url_length}")

        body: Optional[bytes] = None
        if data is not None:
            body = json.dumps(data, ensure_ascii=False).encode("utf-8")
            if len(body) > lim.max_query_request_bytes:
                return self._fail(
                    "ERR_REQUEST_TOO_LARGE",
                    f"request payload size {len(body)} exceeds {lim.max_query_request_bytes} bytes",
                )

        timeout = min(timeout_s or lim.max_query_s, lim.max_query_s)
        hdrs = dict(headers or {})
        if body is not None:
            hdrs.setdefault("Content-Type", "application/json")

        try:
            r = requests.request(method.upper(), url, headers=hdrs, params=params, data=body, timeout=timeout)
        except requests.Timeout:
            return self._fail("ERR_TIMEOUT", f"request exceeded {timeout}s")
        except requests.RequestException as e:
            return self._fail("ERR_NETWORK", f"{type(e).__name__}: {e}")

        if len(r.content) > lim.max_query_response_bytes:
            return self._fail(
                "ERR_RESPONSE_TOO_LARGE",
                f"response size exceeds {lim.max_query_response_bytes} bytes",
                status=r.status_code,
            )

        if response_type == "json":
            try:
                payload: Any = r.json()
            except ValueError:
                payload = r.text
        else:
            payload = r.text

        if not r.ok:
            return self._fail("ERR_BAD_RESPONSE", f"HTTP {r.status_code}", status=r.status_code, data=payload)

        return HttpResponse(error=False, status=r.status_code, data=payload, headers=dict(r.headers))

    # Encoders expostos ao script
    encode_uint256 = staticmethod(encode_uint256)
    encode_int256 = staticmethod(encode_int256)
    encode_string = staticmethod(encode_string)


class _WorkerStdout(io.TextIOBase):
    """
    stdout da execução: só a thread do worker escreve no buffer da execução.
    Qualquer outra thread (inclusive um worker antigo que estourou o tempo)
    escreve no stream original.
    """

    def __init__(self, worker: threading.Thread, buffer: io.StringIO, fallback: Any):
        self._worker = worker
        self._buffer = buffer
        self._fallback = fallback

    def writable(self) -> bool:
        return True

    def write(self, s: str) -> int:
        if threading.current_thread() is self._worker:
            return self._buffer.write(s)
        return self._fallback.write(s)

    def flush(self) -> None:
        self._fallback.flush()


def _describe(e: BaseException) -> str:
    return f"{type(e).__name__}: {e}"


def simulate_script(
    source: str,
    args: Optional[Sequence[str]] = None,
    bytes_args: Optional[Sequence[str]] = None,
    secrets: Optional[Dict[str, str]] = None,
    limits: Optional[SandboxLimits] = None,
    host: Optional[FunctionsHost] = None,
    entrypoint: str = "main",
    filename: str = "<functions-source>",
) -> SimulationResult:
    """
    Executa o fonte como a rede faria: namespace novo, args/segredos passados
    explicitamente à função de entrada, stdout capturado e limites aplicados.
    """
    limits = limits or SandboxLimits()
    host = host or FunctionsHost(limits)
    args_l: List[str] = list(args or [])
    bytes_l: List[str] = list(bytes_args or [])
    secrets_d: Dict[str, str] = dict(secrets or {})

    out = io.StringIO()
    # módulo registrado só durante o exec (dataclasses resolve anotações via sys.modules)
    module = types.ModuleType(f"functions_source_{next(_module_ids)}")
    module.__file__ = filename

    try:
        code = compile(source, filename, "exec")
        sys.modules[module.__name__] = module
        try:
            with redirect_stdout(out):
                exec(code, module.__dict__)
        finally:
            sys.modules.pop(module.__name__, None)
    except Exception as e:
        return SimulationResult(error_string=_describe(e), captured_terminal_output=out.getvalue())

    fn = getattr(module, entrypoint, None)
    if not callable(fn):
        return SimulationResult(
            error_string=_describe(SandboxError(f"source does not define callable '{entrypoint}'")),
            captured_terminal_output=out.getvalue(),
        )

    outcome: Dict[str, Any] = {}

    def _run() -> None:
        try:
            outcome["value"] = fn(args_l, bytes_l, secrets_d, host)
        except Exception as e:
            outcome["exc"] = e

    worker = threading.Thread(target=_run, name="functions-sandbox", daemon=True)
    with redirect_stdout(_WorkerStdout(worker, out, sys.stdout)):
        worker.start()
        worker.join(limits.max_execution_s)

    captured = out.getvalue()
    if worker.is_alive():
        err = SandboxError(f"script exceeded maximum execution time of {limits.max_execution_s}s")
        return SimulationResult(error_string=_describe(err), captured_terminal_output=captured, queries=host.queries)

    if "exc" in outcome:
        return SimulationResult(
            error_string=_describe(outcome["exc"]),
            captured_terminal_output=captured,
            queries=host.queries,
        )

    value = outcome.get("value")
    if not isinstance(value, (bytes, bytearray)):
        err = SandboxError(f"script must return bytes, got {type(value).__name__}")
        return SimulationResult(error_string=_describe(err), captured_terminal_output=captured, queries=host.queries)

    if len(value) > limits.max_on_chain_response_bytes:
        err = SandboxError(
            f"response of {len(value)} bytes exceeds {limits.max_on_chain_response_bytes} bytes"
        )
        return SimulationResult(error_string=_describe(err), captured_terminal_output=captured, queries=host.queries)

    return SimulationResult(
        response_bytes_hexstring=to_hex(bytes(value)),
        captured_terminal_output=captured,
        queries=host.queries,
    )
