from typing import List, Optional
from dataclasses import dataclass
from enum import Enum
import numpy as np
from numpy.random import Generator, PCG64

from staker.chain import GENESIS_TIMESTAMP, Chain
from staker.deploy import deploy
from staker.ledger import SECONDS_PER_DAY
from staker.schedule import CampaignSchedule
from staker.token import from_wei, to_wei

class EventType(Enum):
    CAMPAIGN_FUNDING = "campaign_funding"
    SKIM = "skim"

@dataclass
class Event:
    type: EventType
    epoch: int
    data: dict

@dataclass
class UserBehaviour:
    deposit_rate: float       # expected deposits per user per epoch
    deposit_fraction: float   # median share of free balance deposited
    deposit_sigma: float      # lognormal spread of deposit size
    withdraw_probability: float
    withdraw_fraction: float
    claim_probability: float

@dataclass
class SimulationParams:
    epochs: int
    num_users: int
    initial_balance: int
    behaviour: UserBehaviour
    schedule: CampaignSchedule
    epoch_length: int = SECONDS_PER_DAY
    donation_rate: float = 0.0     # expected direct transfers to the staker per epoch
    donation_amount: int = 0
    skim_interval: int = 0         # 0 disables periodic skims
    seed: Optional[int] = None
    verbose: bool = False

@dataclass
class UserState:
    address: str
    deposits: int = 0
    withdrawals: int = 0
    claims: int = 0
    claimed: int = 0

class StakingSimulation:
    def __init__(self, params: SimulationParams):
        if params.num_users <= 0:
            raise ValueError("Simulation needs at least one user")
        self.params = params
        # accounts[0] owns the staker, accounts[1] funds campaigns, the rest stake
        self.chain = Chain(num_accounts=params.num_users + 2)
        self.deployment = deploy(
            self.chain,
            initial_stake_balance=params.initial_balance,
            funded_accounts=0,
        )
        self.staker = self.deployment.staker
        self.owner = self.chain.accounts[0]
        self.funder = self.chain.accounts[1]
        self.users: List[UserState] = [
            UserState(address) for address in self.chain.accounts[2:]
        ]
        for user in self.users:
            self.deployment.stake_token.mint(user.address, params.initial_balance)

        self.start_time = self.chain.now()
        self.epoch = 0
        self.events: List[Event] = []
        self.rng = Generator(PCG64(params.seed))
        self.history: List[dict] = []
        self._init_events()

    def _init_events(self) -> None:
        for campaign in self.params.schedule.campaigns:
            if campaign.start_time < self.start_time:
                raise ValueError("Campaign starts before the simulation")
            self.events.append(Event(
                type=EventType.CAMPAIGN_FUNDING,
                epoch=(campaign.start_time - self.start_time) // self.params.epoch_length,
                data={"campaign": campaign}
            ))
        if self.params.skim_interval > 0:
            self.events.append(Event(
                type=EventType.SKIM,
                epoch=self.params.skim_interval,
                data={}
            ))

    def epoch_start(self, epoch: int) -> int:
        return self.start_time + epoch * self.params.epoch_length

    def run(self, epochs: Optional[int] = None) -> List[dict]:
        max_epochs = epochs or self.params.epochs
        for _ in range(max_epochs):
            self.step()
        return self.history

    def step(self) -> dict:
        self._process_events()
        self._simulate_donations()
        self._simulate_users()
        self._record_state()

        if self.params.verbose:
            record = self.history[-1]
            print(f"\nEnd of Epoch {self.epoch} Summary:")
            print(f"  Total Staked: {from_wei(record['total_staked']):.4f}")
            print(f"  Stakers: {record['stakers']}")
            print(f"  Claimed: {from_wei(record['total_claimed']):.4f}")
            print(f"  Pending: {from_wei(record['total_pending']):.4f}")
            print(f"  Forfeited: {from_wei(record['total_forfeited']):.4f}")

        self.epoch += 1
        self.chain.advance_to(self.epoch_start(self.epoch))
        return self.history[-1]

    def _process_events(self) -> None:
        current_events = [e for e in self.events if e.epoch == self.epoch]
        for event in current_events:
            if event.type == EventType.CAMPAIGN_FUNDING:
                self._fund_campaign(event.data["campaign"])

            elif event.type == EventType.SKIM:
                self._skim()
                self.events.append(Event(
                    type=EventType.SKIM,
                    epoch=self.epoch + self.params.skim_interval,
                    data={}
                ))
        self.events = [e for e in self.events if e.epoch != self.epoch]

    def _fund_campaign(self, campaign) -> None:
        # campaigns may start part-way through an epoch
        self.chain.advance_to(max(self.chain.now(), campaign.start_time))
        reward_token = self.deployment.reward_token
        reward_token.mint(self.funder, campaign.amount)
        reward_token.approve(self.funder, self.staker.address, campaign.amount)
        self.staker.add_rewards(self.funder, campaign.amount, campaign.days)
        if self.params.verbose:
            print(f"\nEpoch {self.epoch} Campaign Funded:")
            print(f"  Amount: {from_wei(campaign.amount):.4f} over {campaign.days} days")
            print(f"  Reward Rate: {self.staker.reward_per_second()}")

    def _skim(self) -> None:
        try:
            amount = self.staker.skim(self.owner)
        except ValueError:
            return
        if self.params.verbose:
            print(f"\nEpoch {self.epoch} Skimmed: {from_wei(amount):.4f}")

    def _simulate_donations(self) -> None:
        if self.params.donation_rate <= 0 or self.params.donation_amount <= 0:
            return
        stake_token = self.deployment.stake_token
        for _ in range(self.rng.poisson(self.params.donation_rate)):
            stake_token.mint(self.staker.address, self.params.donation_amount)

    def _deposit_amount(self, balance: int) -> int:
        behaviour = self.params.behaviour
        fraction = self.rng.lognormal(
            mean=np.log(behaviour.deposit_fraction),
            sigma=behaviour.deposit_sigma
        )
        return int(balance * min(fraction, 1.0))

    def _simulate_users(self) -> None:
        behaviour = self.params.behaviour
        stake_token = self.deployment.stake_token

        # users act in random order within the epoch
        for index in self.rng.permutation(len(self.users)):
            user = self.users[index]
            staked = self.staker.position_of(user.address).amount_staked

            for _ in range(self.rng.poisson(behaviour.deposit_rate)):
                amount = self._deposit_amount(stake_token.balance_of(user.address))
                stake_token.approve(user.address, self.staker.address, amount)
                try:
                    self.staker.deposit(user.address, amount)
                except ValueError:
                    continue
                user.deposits += 1
                staked += amount

            if staked > 0 and self.rng.random() < behaviour.withdraw_probability:
                amount = max(1, int(staked * behaviour.withdraw_fraction))
                try:
                    self.staker.withdraw(user.address, amount)
                except ValueError:
                    pass
                else:
                    user.withdrawals += 1

            if self.rng.random() < behaviour.claim_probability:
                reward = self.staker.claim(user.address)
                if reward > 0:
                    user.claims += 1
                    user.claimed += reward

    def _record_state(self) -> None:
        stats = self.staker.stats()
        now = stats['timestamp']
        stats.update({
            'epoch': self.epoch,
            'expected_emission': self.params.schedule.tokens_to_release(self.start_time, now),
            'campaign_active': self.params.schedule.is_active(now),
            'conservation_gap': (
                stats['total_funded'] - stats['total_claimed'] - stats['total_pending']
            ),
            'user_pending': {
                u.address: self.staker.pending_rewards(u.address) for u in self.users
            },
            'user_staked': {
                u.address: self.staker.position_of(u.address).amount_staked for u in self.users
            },
        })
        self.history.append(stats)

@dataclass
class DeterministicConfig:
    deposit_amount: int       # deposited by every user each interval
    deposit_interval: int     # epochs between deposits
    claim_interval: int       # epochs between claims
    withdraw_epoch: Optional[int] = None  # epoch at which every user exits

class DeterministicSimulation(StakingSimulation):
    def __init__(self, params: SimulationParams, det_config: DeterministicConfig):
        if det_config.deposit_interval <= 0 or det_config.claim_interval <= 0:
            raise ValueError("Intervals must be positive")
        super().__init__(params)
        self.det_config = det_config

    def _simulate_donations(self) -> None:
        pass

    def _simulate_users(self) -> None:
        config = self.det_config
        stake_token = self.deployment.stake_token
        for user in self.users:
            if self.epoch % config.deposit_interval == 0:
                stake_token.approve(user.address, self.staker.address, config.deposit_amount)
                try:
                    self.staker.deposit(user.address, config.deposit_amount)
                except ValueError:
                    pass
                else:
                    user.deposits += 1

            if config.withdraw_epoch is not None and self.epoch == config.withdraw_epoch:
                if self.staker.position_of(user.address).amount_staked > 0:
                    user.claimed += self.staker.exit(user.address)
                    user.withdrawals += 1
                continue

            if self.epoch % config.claim_interval == 0:
                reward = self.staker.claim(user.address)
                if reward > 0:
                    user.claims += 1
                    user.claimed += reward

def default_params(epochs: int = 60, num_users: int = 5, seed: Optional[int] = None) -> SimulationParams:
    schedule = CampaignSchedule()
    start = GENESIS_TIMESTAMP
    schedule.add_campaign(to_wei(300), 30, start)
    schedule.add_campaign(to_wei(600), 20, start + 40 * SECONDS_PER_DAY)
    return SimulationParams(
        epochs=epochs,
        num_users=num_users,
        initial_balance=to_wei(1_000),
        behaviour=UserBehaviour(
            deposit_rate=0.2,
            deposit_fraction=0.3,
            deposit_sigma=0.5,
            withdraw_probability=0.05,
            withdraw_fraction=0.5,
            claim_probability=0.1,
        ),
        schedule=schedule,
        seed=seed,
    )
