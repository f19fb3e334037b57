from __future__ import annotations

GENERIC_ERROR_MESSAGE = "Não foi possível concluir a operação. Tente novamente."
CONNECTION_ERROR_MESSAGE = "Falha de comunicação com o servidor. Verifique sua conexão e tente novamente."


class ApiError(Exception):
    """Backend rejected the request; ``message`` is safe to show to the user."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ApiConnectionError(ApiError):
    """The request never got a response (DNS, refused connection, timeout)."""

    def __init__(self, message: str = CONNECTION_ERROR_MESSAGE) -> None:
        super().__init__(message)


class EmissionError(ApiError):
    """Emission failed after the draft was persisted; ``invoice_id`` identifies it."""

    def __init__(self, message: str, invoice_id: str, status_code: int | None = None) -> None:
        super().__init__(message, status_code)
        self.invoice_id = invoice_id
