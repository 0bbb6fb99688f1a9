from __future__ import annotations


class TxIndexerError(Exception):
    pass


class NetworkError(TxIndexerError):
    """Transport-level failure talking to a node or metadata service."""


class RpcError(TxIndexerError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class InvalidInputError(TxIndexerError):
    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
