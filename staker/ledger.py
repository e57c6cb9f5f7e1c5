"""
Accrual state for a single stake/reward pair.

Rewards are tracked with a global "reward per unit of stake" index that is
only brought up to date when something touches the ledger. Each position
remembers the index value it was last settled at (its reward debt); the
difference times the stake is what the position earned since.

All arithmetic is integer and floors. Rates carry REWARD_PRECISION, the index
carries SHARE_PRECISION.
"""
import copy
from dataclasses import dataclass, field
from typing import Dict, NamedTuple

REWARD_PRECISION = 10 ** 7
SHARE_PRECISION = 10 ** 12
SECONDS_PER_DAY = 24 * 60 * 60

@dataclass
class Campaign:
    reward_rate: int = 0     # reward units per second, scaled by REWARD_PRECISION
    period_finish: int = 0   # timestamp after which reward_rate stops accruing

    # Bookkeeping
    total_funded: int = 0
    total_discarded: int = 0  # unspent remainder dropped when a campaign is replaced

@dataclass
class AccrualState:
    acc_reward_per_share: int = 0
    last_update_time: int = 0
    total_staked: int = 0
    total_forfeited: int = 0  # emission of windows with nothing staked

@dataclass
class UserPosition:
    amount_staked: int = 0
    reward_debt: int = 0
    pending_reward: int = 0
    total_claimed: int = 0

class PositionView(NamedTuple):
    amount_staked: int
    reward_debt: int
    pending_reward: int

@dataclass
class Ledger:
    campaign: Campaign = field(default_factory=Campaign)
    accrual: AccrualState = field(default_factory=AccrualState)
    positions: Dict[str, UserPosition] = field(default_factory=dict)
    reward_precision: int = REWARD_PRECISION
    share_precision: int = SHARE_PRECISION

    def copy(self) -> "Ledger":
        return copy.deepcopy(self)

    def _accrual_window(self, now: int):
        end = min(now, self.campaign.period_finish)
        return end, max(0, end - self.accrual.last_update_time)

    def acc_reward_per_share_at(self, now: int) -> int:
        acc = self.accrual
        _, elapsed = self._accrual_window(now)
        if elapsed == 0 or acc.total_staked == 0:
            return acc.acc_reward_per_share
        return acc.acc_reward_per_share + (
            elapsed * self.campaign.reward_rate * self.share_precision
            // acc.total_staked
            // self.reward_precision
        )

    def settle(self, now: int) -> None:
        acc = self.accrual
        end, elapsed = self._accrual_window(now)
        if elapsed > 0:
            if acc.total_staked > 0:
                acc.acc_reward_per_share = self.acc_reward_per_share_at(now)
            else:
                acc.total_forfeited += elapsed * self.campaign.reward_rate // self.reward_precision
        # the checkpoint never moves backwards, even when a campaign ended long ago
        acc.last_update_time = max(acc.last_update_time, end)

    def _owed(self, position: UserPosition, acc_reward_per_share: int) -> int:
        return (
            position.amount_staked
            * (acc_reward_per_share - position.reward_debt)
            // self.share_precision
        )

    def position(self, user: str) -> UserPosition:
        if user not in self.positions:
            self.positions[user] = UserPosition(
                reward_debt=self.accrual.acc_reward_per_share
            )
        return self.positions[user]

    def settle_user(self, user: str, now: int) -> UserPosition:
        self.settle(now)
        position = self.position(user)
        acc_reward_per_share = self.accrual.acc_reward_per_share
        position.pending_reward += self._owed(position, acc_reward_per_share)
        position.reward_debt = acc_reward_per_share
        return position

    def pending_at(self, user: str, now: int) -> int:
        position = self.positions.get(user)
        if position is None:
            return 0
        return position.pending_reward + self._owed(position, self.acc_reward_per_share_at(now))

    def start_campaign(self, amount: int, days: int, now: int) -> None:
        """Replace the running campaign; callers settle to ``now`` first."""
        campaign = self.campaign
        if campaign.period_finish > now:
            campaign.total_discarded += (
                campaign.reward_rate * (campaign.period_finish - now) // self.reward_precision
            )
        campaign.reward_rate = amount * self.reward_precision // days // SECONDS_PER_DAY
        campaign.period_finish = now + days * SECONDS_PER_DAY
        campaign.total_funded += amount
        self.accrual.last_update_time = now

    def total_pending(self, now: int) -> int:
        return sum(self.pending_at(user, now) for user in self.positions)

    def total_claimed(self) -> int:
        return sum(p.total_claimed for p in self.positions.values())
