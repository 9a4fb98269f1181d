from __future__ import annotations

from enum import Enum
from typing import Union

# Palavras de 32 bytes (mesmo layout do ABI do EVM).
WORD_BYTES = 32
UINT256_MAX = 2**256 - 1
INT256_MIN = -(2**255)
INT256_MAX = 2**255 - 1


class ReturnType(str, Enum):
    """Tipos de retorno aceitos pelo contrato consumidor."""
    uint256 = "uint256"
    int256 = "int256"
    string = "string"
    bytes = "bytes"


def encode_uint256(value: int) -> bytes:
    """Codifica um inteiro não-negativo como uint256 big-endian (32 bytes)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"encode_uint256 espera int, recebeu {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"valor fora da faixa de uint256: {value}")
    return value.to_bytes(WORD_BYTES, "big")


def encode_int256(value: int) -> bytes:
    """Codifica um inteiro com sinal como int256 (complemento de dois)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"encode_int256 espera int, recebeu {type(value).__name__}")
    if value < INT256_MIN or value > INT256_MAX:
        raise ValueError(f"valor fora da faixa de int256: {value}")
    return value.to_bytes(WORD_BYTES, "big", signed=True)


def encode_string(value: str) -> bytes:
    return value.encode("utf-8")


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def _strip_hex(hexstring: str) -> str:
    h = (hexstring or "").strip()
    if h[:2].lower() == "0x":
        h = h[2:]
    if len(h) % 2:
        raise ValueError(f"hex com número ímpar de dígitos: {hexstring!r}")
    return h


def decode_result(hexstring: str, return_type: ReturnType | str) -> Union[int, str]:
    """
    Decodifica o hex devolvido pelo sandbox de acordo com o tipo de retorno.

    - uint256 / int256: exige no máximo uma palavra de 32 bytes
    - string: UTF-8
    - bytes: devolve o próprio hex normalizado ('0x...')
    """
    rt = ReturnType(return_type)
    raw = bytes.fromhex(_strip_hex(hexstring))

    if rt in (ReturnType.uint256, ReturnType.int256):
        if len(raw) > WORD_BYTES:
            raise ValueError(f"{rt.value} não cabe em {WORD_BYTES} bytes: {len(raw)} bytes")
        if not raw:
            raise ValueError(f"resultado vazio não decodifica como {rt.value}")
        # palavras curtas são tratadas como alinhadas à direita
        word = raw.rjust(WORD_BYTES, b"\x00")
        return int.from_bytes(word, "big", signed=(rt == ReturnType.int256))

    if rt == ReturnType.string:
        return raw.decode("utf-8")

    return to_hex(raw)
