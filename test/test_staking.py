import pytest
from staker.deploy import deploy
from staker.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAmount,
    InvalidDuration,
    NoSurplusToSkim,
    WithdrawExceedsStake,
)
from staker.ledger import PositionView
from staker.token import to_wei

SECONDS_IN_DAY = 24 * 60 * 60
RPS_MULTIPLIER = 10 ** 7
SHARE_PRECISION = 10 ** 12

@pytest.fixture
def d():
    deployment = deploy()
    snapshot_id = deployment.chain.take_snapshot()
    yield deployment
    deployment.chain.revert_to_snapshot(snapshot_id)

@pytest.fixture
def accounts(d):
    return d.chain.accounts

def fund(d, amount, days):
    funder = d.chain.accounts[0]
    d.reward_token.mint(funder, amount)
    d.reward_token.approve(funder, d.staker.address, amount)
    d.staker.add_rewards(funder, amount, days)

def stake(d, user, amount):
    d.stake_token.approve(user, d.staker.address, amount)
    d.staker.deposit(user, amount)

def test_calculates_campaign_parameters(d):
    reward_amount = to_wei(300)
    days = 30

    fund(d, reward_amount, days)
    starting_time = d.chain.now()

    expected_rps = reward_amount * RPS_MULTIPLIER // days // SECONDS_IN_DAY
    assert d.staker.reward_per_second() == expected_rps

    expected_end_time = starting_time + days * SECONDS_IN_DAY
    assert d.staker.reward_period_end_timestamp() == expected_end_time
    assert d.reward_token.balance_of(d.staker.address) == reward_amount

def test_rate_multiplies_before_dividing(d):
    fund(d, 10, 3)
    assert d.staker.reward_per_second() == 10 * RPS_MULTIPLIER // 3 // SECONDS_IN_DAY == 385
    # dividing by days first truncates to 347
    assert d.staker.reward_per_second() != 10 // 3 * RPS_MULTIPLIER // SECONDS_IN_DAY

def test_single_staker_earns_and_claims(d, accounts):
    user = accounts[1]
    fund(d, to_wei(300), 30)
    rps = d.staker.reward_per_second()

    stake(d, user, to_wei(10))
    assert d.staker.pending_rewards(user) == 0

    d.chain.advance_time(7200)
    pending = d.staker.pending_rewards(user)
    expected = rps * 7200 // RPS_MULTIPLIER
    assert abs(pending - expected) <= rps // RPS_MULTIPLIER * 3

    balance_before = d.reward_token.balance_of(user)
    assert d.staker.claim(user) == pending
    assert d.reward_token.balance_of(user) == balance_before + pending
    assert d.staker.pending_rewards(user) == 0
    assert d.staker.position_of(user).pending_reward == 0

def test_claim_with_nothing_pending_is_a_noop(d, accounts):
    user = accounts[1]
    assert d.staker.claim(user) == 0
    stake(d, user, to_wei(10))
    assert d.staker.claim(user) == 0
    assert d.reward_token.balance_of(user) == 0

def test_withdraw_does_not_pay_rewards(d, accounts):
    user = accounts[1]
    fund(d, to_wei(300), 30)
    stake(d, user, to_wei(10))
    d.chain.advance_time(1000)

    d.staker.withdraw(user, to_wei(4))
    assert d.reward_token.balance_of(user) == 0
    assert d.staker.position_of(user).amount_staked == to_wei(6)
    assert d.staker.position_of(user).pending_reward > 0
    assert d.stake_token.balance_of(user) == to_wei(1_000_000) - to_wei(6)

def test_full_withdrawal_stops_accrual(d, accounts):
    user = accounts[1]
    fund(d, to_wei(300), 30)
    stake(d, user, to_wei(10))
    d.chain.advance_time(1000)

    d.staker.withdraw(user, to_wei(10))
    pending = d.staker.pending_rewards(user)
    assert pending > 0

    d.chain.advance_time(5000)
    assert d.staker.pending_rewards(user) == pending
    assert d.staker.total_staked() == 0

def test_withdraw_more_than_staked_fails_without_side_effects(d, accounts):
    user = accounts[1]
    fund(d, to_wei(300), 30)
    stake(d, user, to_wei(10))
    d.chain.advance_time(1000)

    position = d.staker.position_of(user)
    accrual = (d.staker.ledger.accrual.acc_reward_per_share, d.staker.last_update_time())
    balance = d.stake_token.balance_of(user)

    with pytest.raises(WithdrawExceedsStake):
        d.staker.withdraw(user, to_wei(11))

    assert d.staker.position_of(user) == position
    assert (d.staker.ledger.accrual.acc_reward_per_share, d.staker.last_update_time()) == accrual
    assert d.stake_token.balance_of(user) == balance
    assert d.staker.total_staked() == to_wei(10)

def test_deposit_without_approval_is_rolled_back(d, accounts):
    user = accounts[1]
    fund(d, to_wei(300), 30)
    d.chain.advance_time(100)

    with pytest.raises(InsufficientAllowance):
        d.staker.deposit(user, to_wei(10))

    assert d.staker.total_staked() == 0
    assert d.staker.position_of(user) == PositionView(0, 0, 0)
    assert user not in d.staker.ledger.positions

def test_deposit_beyond_balance_fails(d, accounts):
    user = accounts[3]
    d.stake_token.approve(user, d.staker.address, to_wei(10))
    with pytest.raises(InsufficientBalance):
        d.staker.deposit(user, to_wei(10))
    assert d.staker.total_staked() == 0

def test_rejects_zero_amounts_and_durations(d, accounts):
    user = accounts[1]
    with pytest.raises(InvalidAmount):
        d.staker.deposit(user, 0)
    with pytest.raises(InvalidAmount):
        d.staker.withdraw(user, 0)
    with pytest.raises(InvalidAmount):
        d.staker.add_rewards(accounts[0], 0, 30)
    with pytest.raises(InvalidDuration):
        d.staker.add_rewards(accounts[0], to_wei(300), 0)
    with pytest.raises(InvalidDuration):
        d.staker.add_rewards(accounts[0], to_wei(300), -1)

def test_unfunded_campaign_leaves_rate_untouched(d, accounts):
    funder = accounts[5]
    d.reward_token.approve(funder, d.staker.address, to_wei(300))

    with pytest.raises(InsufficientBalance):
        d.staker.add_rewards(funder, to_wei(300), 30)

    assert d.staker.reward_per_second() == 0
    assert d.staker.reward_period_end_timestamp() == 0
    assert d.staker.stats()['total_funded'] == 0

def test_stakers_share_pro_rata(d, accounts):
    alice, bob = accounts[1], accounts[2]
    fund(d, to_wei(300), 30)
    daily = d.staker.reward_per_second() * SECONDS_IN_DAY // RPS_MULTIPLIER

    # alice alone for a day, then alice:bob = 1:3 for four days
    stake(d, alice, to_wei(10))
    d.chain.advance_time(SECONDS_IN_DAY)
    stake(d, bob, to_wei(30))
    d.chain.advance_time(4 * SECONDS_IN_DAY)

    assert pytest.approx(d.staker.pending_rewards(alice), rel=1e-9) == 2 * daily
    assert pytest.approx(d.staker.pending_rewards(bob), rel=1e-9) == 3 * daily

    total = d.staker.pending_rewards(alice) + d.staker.pending_rewards(bob)
    assert total <= 5 * SECONDS_IN_DAY * d.staker.reward_per_second() // RPS_MULTIPLIER

def test_no_accrual_after_campaign_ends(d, accounts):
    user = accounts[1]
    amount = to_wei(300)
    fund(d, amount, 30)
    stake(d, user, to_wei(10))

    d.chain.advance_to(d.staker.reward_period_end_timestamp())
    at_finish = d.staker.pending_rewards(user)
    d.chain.advance_time(10 * SECONDS_IN_DAY)

    assert d.staker.pending_rewards(user) == at_finish
    assert at_finish <= amount
    assert amount - at_finish <= 10 ** 8

    d.staker.claim(user)
    d.chain.advance_time(SECONDS_IN_DAY)
    assert d.staker.claim(user) == 0

def test_gap_between_campaigns_earns_nothing(d, accounts):
    user = accounts[1]
    staked = to_wei(10)
    stake(d, user, staked)

    fund(d, to_wei(100), 1)
    first_rate = d.staker.reward_per_second()
    d.chain.advance_to(d.staker.reward_period_end_timestamp())
    after_first = d.staker.pending_rewards(user)

    # two idle days before the next campaign
    d.chain.advance_time(2 * SECONDS_IN_DAY)
    assert d.staker.pending_rewards(user) == after_first

    fund(d, to_wei(200), 1)
    second_rate = d.staker.reward_per_second()
    d.chain.advance_time(3 * SECONDS_IN_DAY)

    first_acc = SECONDS_IN_DAY * first_rate * SHARE_PRECISION // staked // RPS_MULTIPLIER
    second_acc = SECONDS_IN_DAY * second_rate * SHARE_PRECISION // staked // RPS_MULTIPLIER
    assert d.staker.pending_rewards(user) == staked * (first_acc + second_acc) // SHARE_PRECISION
    assert d.staker.stats()['total_forfeited'] == 0

def test_refunding_discards_unspent_remainder(d, accounts):
    user = accounts[1]
    stake(d, user, to_wei(10))
    fund(d, to_wei(100), 10)
    first_rate = d.staker.reward_per_second()
    first_finish = d.staker.reward_period_end_timestamp()

    d.chain.advance_time(5 * SECONDS_IN_DAY)
    earned = d.staker.pending_rewards(user)
    fund(d, to_wei(100), 10)

    stats = d.staker.stats()
    assert stats['total_discarded'] == first_rate * (first_finish - d.chain.now()) // RPS_MULTIPLIER
    assert stats['total_funded'] == to_wei(200)
    assert d.staker.reward_per_second() == to_wei(100) * RPS_MULTIPLIER // 10 // SECONDS_IN_DAY
    assert d.staker.reward_period_end_timestamp() == d.chain.now() + 10 * SECONDS_IN_DAY
    # accrual under the old rate is kept
    assert d.staker.pending_rewards(user) == earned

def test_empty_pool_forfeits_rewards(d, accounts):
    user = accounts[1]
    fund(d, to_wei(300), 30)
    rps = d.staker.reward_per_second()
    d.chain.advance_time(SECONDS_IN_DAY)

    stake(d, user, to_wei(10))
    assert d.staker.pending_rewards(user) == 0
    assert d.staker.stats()['total_forfeited'] == SECONDS_IN_DAY * rps // RPS_MULTIPLIER

    d.chain.advance_time(SECONDS_IN_DAY)
    assert pytest.approx(d.staker.pending_rewards(user), rel=1e-9) == SECONDS_IN_DAY * rps // RPS_MULTIPLIER

def test_skim_recovers_direct_transfers(d, accounts):
    owner, user, donor, caller = accounts[0], accounts[1], accounts[2], accounts[3]
    fund(d, to_wei(300), 30)
    stake(d, user, to_wei(10))
    d.chain.advance_time(600)

    with pytest.raises(NoSurplusToSkim):
        d.staker.skim(caller)

    d.stake_token.transfer(donor, d.staker.address, to_wei(5))
    position = d.staker.position_of(user)
    pending = d.staker.pending_rewards(user)

    assert d.staker.skim(caller) == to_wei(5)
    assert d.stake_token.balance_of(owner) == to_wei(5)
    assert d.stake_token.balance_of(caller) == 0
    assert d.staker.position_of(user) == position
    assert d.staker.pending_rewards(user) == pending
    assert d.staker.total_staked() == to_wei(10)
    assert d.stake_token.balance_of(d.staker.address) == to_wei(10)

    with pytest.raises(NoSurplusToSkim):
        d.staker.skim()

def test_exit_returns_stake_and_rewards(d, accounts):
    user = accounts[1]
    fund(d, to_wei(300), 30)
    stake(d, user, to_wei(10))
    d.chain.advance_time(SECONDS_IN_DAY)

    pending = d.staker.pending_rewards(user)
    assert d.staker.exit(user) == pending
    assert d.reward_token.balance_of(user) == pending
    assert d.stake_token.balance_of(user) == to_wei(1_000_000)
    assert d.staker.position_of(user).amount_staked == 0

    with pytest.raises(InvalidAmount):
        d.staker.exit(user)

def test_rewards_never_exceed_funding(d, accounts):
    alice, bob = accounts[1], accounts[2]
    fund(d, to_wei(300), 30)
    stake(d, alice, to_wei(7))
    d.chain.advance_time(3 * SECONDS_IN_DAY + 17)
    stake(d, bob, to_wei(13))
    d.chain.advance_time(11 * SECONDS_IN_DAY + 5)
    d.staker.claim(alice)
    d.staker.withdraw(bob, to_wei(3))
    d.chain.advance_time(40 * SECONDS_IN_DAY)
    d.staker.claim(bob)

    stats = d.staker.stats()
    assert stats['total_claimed'] + stats['total_pending'] <= stats['total_funded']
    assert d.reward_token.balance_of(d.staker.address) >= stats['total_pending']
    assert d.stake_token.balance_of(d.staker.address) >= d.staker.total_staked()
    assert d.staker.total_staked() == sum(
        p.amount_staked for p in d.staker.ledger.positions.values()
    )
