class BonusEngineError(Exception):
    """Base class for errors raised by the bonus engine."""

    code = "BONUS_ENGINE_ERROR"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.context}


class RuleNotFound(BonusEngineError):
    code = "RULE_NOT_FOUND"


class WorkerNotFound(BonusEngineError):
    code = "WORKER_NOT_FOUND"


class RuleInactive(BonusEngineError):
    code = "RULE_INACTIVE"


class InvalidRuleConfiguration(BonusEngineError):
    code = "INVALID_RULE_CONFIGURATION"


class InvalidTierConfiguration(InvalidRuleConfiguration):
    code = "INVALID_TIER_CONFIGURATION"


class RuleLocked(BonusEngineError):
    """Raised when an update would change a rule that already has awards."""

    code = "RULE_LOCKED"


class WindowResolutionFailure(BonusEngineError):
    code = "WINDOW_RESOLUTION_FAILURE"


class ConcurrentProgressConflict(BonusEngineError):
    code = "CONCURRENT_PROGRESS_CONFLICT"


class PersistenceFailure(BonusEngineError):
    code = "PERSISTENCE_FAILURE"
