class StakerError(ValueError):
    pass

class InvalidAmount(StakerError):
    pass

class InvalidDuration(StakerError):
    pass

class WithdrawExceedsStake(StakerError):
    pass

class NoSurplusToSkim(StakerError):
    pass

class TokenError(ValueError):
    pass

class InsufficientBalance(TokenError):
    pass

class InsufficientAllowance(TokenError):
    pass
