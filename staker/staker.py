from contextlib import contextmanager
from typing import Optional

from staker.chain import Chain
from staker.errors import (
    InvalidAmount,
    InvalidDuration,
    NoSurplusToSkim,
    WithdrawExceedsStake,
)
from staker.ledger import (
    REWARD_PRECISION,
    SHARE_PRECISION,
    Ledger,
    PositionView,
)
from staker.token import MockToken

class Staker:
    """
    Distributes a reward token to depositors of a stake token, pro rata to
    stake and to time spent inside funded campaigns.

    Every public mutation settles the ledger first, writes all ledger changes,
    and only then moves tokens. If anything raises, the ledger is restored to
    its state before the call.
    """
    def __init__(
        self,
        chain: Chain,
        stake_token: MockToken,
        reward_token: MockToken,
        owner: str,
        reward_precision: int = REWARD_PRECISION,
        share_precision: int = SHARE_PRECISION,
    ) -> None:
        if reward_precision <= 0 or share_precision <= 0:
            raise ValueError("Precision constants must be positive")
        self.chain = chain
        self.stake_token = stake_token
        self.reward_token = reward_token
        self.owner = owner
        self.ledger = Ledger(
            reward_precision=reward_precision,
            share_precision=share_precision,
        )
        self.address = chain.register(self)

    @contextmanager
    def _transaction(self):
        saved = self.ledger.copy()
        try:
            yield self.chain.now()
        except Exception:
            self.ledger = saved
            raise

    # Campaign controller

    def add_rewards(self, funder: str, amount: int, days: int) -> None:
        if amount <= 0:
            raise InvalidAmount("Reward amount must be positive")
        if days <= 0:
            raise InvalidDuration("Campaign length must be at least one day")

        with self._transaction() as now:
            self.ledger.settle(now)
            self.ledger.start_campaign(amount, days, now)
            self.reward_token.transfer_from(self.address, funder, self.address, amount)

    def reward_per_second(self) -> int:
        return self.ledger.campaign.reward_rate

    def reward_period_end_timestamp(self) -> int:
        return self.ledger.campaign.period_finish

    # Position ledger

    def deposit(self, user: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount("Deposit amount must be positive")

        with self._transaction() as now:
            position = self.ledger.settle_user(user, now)
            position.amount_staked += amount
            self.ledger.accrual.total_staked += amount
            self.stake_token.transfer_from(self.address, user, self.address, amount)

    def withdraw(self, user: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount("Withdraw amount must be positive")

        with self._transaction() as now:
            position = self.ledger.settle_user(user, now)
            if amount > position.amount_staked:
                raise WithdrawExceedsStake(
                    f"Cannot withdraw {amount}, only {position.amount_staked} staked"
                )
            position.amount_staked -= amount
            self.ledger.accrual.total_staked -= amount
            self.stake_token.transfer(self.address, user, amount)

    def claim(self, user: str) -> int:
        with self._transaction() as now:
            position = self.ledger.settle_user(user, now)
            reward = position.pending_reward
            if reward == 0:
                return 0
            position.pending_reward = 0
            position.total_claimed += reward
            self.reward_token.transfer(self.address, user, reward)
        return reward

    def exit(self, user: str) -> int:
        """Withdraw the whole stake and claim everything pending."""
        with self._transaction() as now:
            position = self.ledger.settle_user(user, now)
            amount = position.amount_staked
            if amount == 0:
                raise InvalidAmount("Nothing staked")
            reward = position.pending_reward
            position.amount_staked = 0
            position.pending_reward = 0
            position.total_claimed += reward
            self.ledger.accrual.total_staked -= amount
            self.stake_token.transfer(self.address, user, amount)
            if reward > 0:
                self.reward_token.transfer(self.address, user, reward)
        return reward

    def pending_rewards(self, user: str) -> int:
        return self.ledger.pending_at(user, self.chain.now())

    def position_of(self, user: str) -> PositionView:
        position = self.ledger.positions.get(user)
        if position is None:
            return PositionView(0, 0, 0)
        return PositionView(
            position.amount_staked,
            position.reward_debt,
            position.pending_reward,
        )

    def total_staked(self) -> int:
        return self.ledger.accrual.total_staked

    def acc_reward_per_share(self) -> int:
        return self.ledger.acc_reward_per_share_at(self.chain.now())

    def last_update_time(self) -> int:
        return self.ledger.accrual.last_update_time

    # Surplus reconciliation

    def surplus(self) -> int:
        return self.stake_token.balance_of(self.address) - self.ledger.accrual.total_staked

    def skim(self, caller: Optional[str] = None) -> int:
        # anyone may call; the surplus always goes to the owner
        surplus = self.surplus()
        if surplus <= 0:
            raise NoSurplusToSkim("Stake token balance does not exceed total staked")
        self.stake_token.transfer(self.address, self.owner, surplus)
        return surplus

    def stats(self) -> dict:
        now = self.chain.now()
        ledger = self.ledger
        return {
            'timestamp': now,
            'reward_rate': ledger.campaign.reward_rate,
            'period_finish': ledger.campaign.period_finish,
            'total_staked': ledger.accrual.total_staked,
            'acc_reward_per_share': ledger.acc_reward_per_share_at(now),
            'total_funded': ledger.campaign.total_funded,
            'total_claimed': ledger.total_claimed(),
            'total_pending': ledger.total_pending(now),
            'total_forfeited': ledger.accrual.total_forfeited,
            'total_discarded': ledger.campaign.total_discarded,
            'reward_balance': self.reward_token.balance_of(self.address),
            'stake_surplus': self.surplus(),
            'stakers': sum(1 for p in ledger.positions.values() if p.amount_staked > 0),
        }
