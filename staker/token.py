from decimal import Decimal
from typing import Dict, List, Tuple

from staker.chain import Chain
from staker.errors import InsufficientAllowance, InsufficientBalance, InvalidAmount

DECIMALS = 18

def to_wei(amount, decimals: int = DECIMALS) -> int:
    return int(Decimal(str(amount)) * (10 ** decimals))

def from_wei(amount: int, decimals: int = DECIMALS) -> float:
    return float(Decimal(amount) / (10 ** decimals))

class MockToken:
    """
    In-memory fungible asset with the narrow interface the staker consumes.

    Every transfer validates before it mutates, so a failed transfer leaves
    balances and allowances untouched.
    """
    def __init__(self, chain: Chain, name: str, symbol: str, decimals: int = DECIMALS) -> None:
        self.chain = chain
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.address = chain.register(self)

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def mint(self, to: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount("Mint amount must be positive")
        self.balances[to] = self.balance_of(to) + amount
        self.total_supply += amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount("Allowance cannot be negative")
        self.allowances[(owner, spender)] = amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                f"{self.symbol}: allowance {allowed} of {spender} below {amount}"
            )
        self._move(owner, to, amount)
        self.allowances[(owner, spender)] = allowed - amount

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount("Transfer amount cannot be negative")
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalance(
                f"{self.symbol}: balance {balance} of {sender} below {amount}"
            )
        self.balances[sender] = balance - amount
        self.balances[to] = self.balance_of(to) + amount

class TokenFactory:
    def __init__(self, chain: Chain) -> None:
        self.chain = chain
        self.tokens: List[MockToken] = []
        self.address = chain.register(self)

    def create_token(self, name: str, symbol: str) -> MockToken:
        token = MockToken(self.chain, name, symbol)
        self.tokens.append(token)
        return token

    def get_tokens(self) -> List[MockToken]:
        return list(self.tokens)
