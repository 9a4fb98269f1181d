# Schema JSON para validar o veredito do juiz LLM.
# A faixa [0, 100] é checada depois do arredondamento, não aqui.

VERDICT_SCHEMA = {
    "type": "object",
    "required": ["score", "reasoning"],
    "properties": {
        "score": {"type": "number"},
        "reasoning": {"type": "string"},
    },
    "additionalProperties": True,
}
