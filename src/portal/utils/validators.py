from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

_CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_WEIGHTS_2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)

CANCEL_REASON_MIN = 10
CANCEL_REASON_MAX = 500


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def validate_monetary(value: str) -> str:
    """Validate and normalize a monetary value string.

    Accepts Brazilian input (``1.234,56``) as well as ``1234.56``.
    Returns the value with 2 decimal places.
    Raises ValueError for invalid or non-positive values.
    """
    text = value.strip().replace("R$", "").strip()
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        d = Decimal(text)
        if not d.is_finite():
            raise InvalidOperation
        if d <= 0:
            raise ValueError(f"Valor deve ser positivo: '{value}'")
    except InvalidOperation:
        raise ValueError(f"Valor numerico invalido: '{value}'") from None
    return f"{d:.2f}"


def validate_date(value: str) -> str:
    """Validate an ISO date string (YYYY-MM-DD).

    Returns the value unchanged if valid.
    Raises ValueError for invalid dates.
    """
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Data invalida: '{value}'. Use YYYY-MM-DD.") from None
    return value


def validate_percent(value: str) -> str:
    """Validate and normalize a percentage value (0.00-100.00)."""
    try:
        d = Decimal(value.strip().replace(",", "."))
        if not d.is_finite():
            raise InvalidOperation
    except InvalidOperation:
        raise ValueError(f"Percentual invalido: '{value}'") from None
    if d < 0 or d > 100:
        raise ValueError("Percentual deve estar entre 0.00 e 100.00")
    return f"{d:.2f}"


def _check_digit(digits: str, weights: tuple[int, ...]) -> int:
    rest = sum(int(d) * w for d, w in zip(digits, weights)) % 11
    return 0 if rest < 2 else 11 - rest


def validate_cnpj(value: str) -> str:
    """Validate a CNPJ (masked or not). Returns its 14 digits."""
    digits = _digits(value)
    if len(digits) != 14 or digits == digits[0] * 14:
        raise ValueError(f"CNPJ invalido: '{value}'")
    first = _check_digit(digits[:12], _CNPJ_WEIGHTS_1)
    second = _check_digit(digits[:13], _CNPJ_WEIGHTS_2)
    if digits[12:] != f"{first}{second}":
        raise ValueError(f"CNPJ invalido: '{value}'")
    return digits


def validate_cpf(value: str) -> str:
    """Validate a CPF (masked or not). Returns its 11 digits."""
    digits = _digits(value)
    if len(digits) != 11 or digits == digits[0] * 11:
        raise ValueError(f"CPF invalido: '{value}'")
    for size in (9, 10):
        total = sum(int(d) * w for d, w in zip(digits[:size], range(size + 1, 1, -1)))
        check = (total * 10) % 11 % 10
        if int(digits[size]) != check:
            raise ValueError(f"CPF invalido: '{value}'")
    return digits


def validate_documento(value: str, tipo: str) -> str:
    """Validate a payer document according to ``tipo`` ('pf' or 'pj')."""
    if tipo == "pf":
        return validate_cpf(value)
    return validate_cnpj(value)


def validate_cep(value: str) -> str:
    """Validate a CEP: 8 digits, masked or not. Returns the digits."""
    digits = _digits(value)
    if len(digits) != 8:
        raise ValueError("CEP: deve ter 8 digitos")
    return digits


def validate_email(value: str) -> str:
    if not re.fullmatch(r"[^@\s]+@[^@\s]+\.[^@\s]+", value.strip()):
        raise ValueError(f"E-mail invalido: '{value}'")
    return value.strip()


def validate_cnae(value: str) -> str:
    """Validate a CNAE subclass: 7 digits, optionally masked as XXXX-X/XX."""
    digits = _digits(value)
    if len(digits) != 7:
        raise ValueError("CNAE: deve ter 7 digitos (XXXX-X/XX)")
    return value


def validate_cancel_reason(value: str) -> str:
    """Validate an invoice cancellation reason (10 to 500 characters)."""
    reason = value.strip()
    if len(reason) < CANCEL_REASON_MIN:
        raise ValueError(
            f"Motivo do cancelamento deve ter pelo menos {CANCEL_REASON_MIN} caracteres"
        )
    if len(reason) > CANCEL_REASON_MAX:
        raise ValueError(
            f"Motivo do cancelamento deve ter no maximo {CANCEL_REASON_MAX} caracteres"
        )
    return reason
