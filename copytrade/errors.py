class CopyTradeError(Exception):
    """Base copy-trading error."""
    def __init__(self, msg: str = ""):
        super().__init__(msg)
        self.msg = msg

    def __str__(self):
        return self.msg or self.__class__.__name__

class PayloadValidationError(CopyTradeError):
    """Collaborator payload is missing fields or carries malformed values."""

    def __init__(self, msg: str = "", **ctx):
        super().__init__(msg)
        self.ctx = ctx

    def __str__(self):
        base = super().__str__()
        if self.ctx:
            details = ", ".join(f"{k}={v}" for k, v in self.ctx.items())
            return f"{base} [{details}]"
        return base

class SizingError(CopyTradeError):
    """Mirrored size cannot be computed from the given inputs."""

class VaultReadError(CopyTradeError):
    """Vault valuation could not be read on-chain."""

class SubmissionError(CopyTradeError):
    """Transaction was rejected, failed on-chain, or never reached finality."""

class FeedError(CopyTradeError):
    """Account update feed failed to connect or dropped mid-stream."""

class ApiError(CopyTradeError):
    """Wrapper for API error codes/messages returned by a remote service."""
    service = "API"

    def __init__(self, code: str, msg: str):
        super().__init__(f"{self.service}[{code}]: {msg}")
        self.code = code
        self.detail = msg

class MerkleApiError(ApiError):
    service = "Merkle"

class AptosApiError(ApiError):
    service = "Aptos"
