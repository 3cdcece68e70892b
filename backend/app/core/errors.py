class WalletError(Exception):
    """Base class for errors surfaced by the store and the query engine."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(WalletError):
    status_code = 404


class DuplicateKey(WalletError):
    status_code = 409


class InvalidInput(WalletError):
    status_code = 400


class InvalidAmount(InvalidInput):
    pass


class InvalidFilter(InvalidInput):
    pass


class StorageUnavailable(WalletError):
    status_code = 503
