"""
curvepool - Errors

Every rejection raised by the engine is a PoolError. Nothing is retried
internally: retrying would re-run minting and fee splitting.
"""


class PoolError(Exception):
    """Engine call rejected."""
    code = "pool_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidConfiguration(PoolError):
    """Construction parameters out of range. No engine is created."""
    code = "invalid_configuration"


class InvalidInput(PoolError):
    """Bad amount, ticket or recipient list. No state was mutated."""
    code = "invalid_input"


class ReconciliationMismatch(PoolError):
    """External balance does not match the recorded quantity."""
    code = "reconciliation_mismatch"


class FrequencyViolation(PoolError):
    """Second buy/sell initiation in the same transaction."""
    code = "frequency_violation"


class MissingHolder(PoolError):
    """Operation on a holder that was never registered."""
    code = "missing_holder"


class Unauthorized(PoolError):
    """Caller does not control the holder account."""
    code = "unauthorized"


class InsufficientReserve(PoolError):
    """A sale would take more value than the pool holds."""
    code = "insufficient_reserve"


class RPCError(PoolError):
    """Remote collaborator call failed."""
    code = "rpc_error"

    def __init__(self, rpc_code: int, message: str):
        self.rpc_code = rpc_code
        super().__init__(f"RPC Error {rpc_code}: {message}")
