import pytest
from staker.chain import GENESIS_TIMESTAMP, Chain
from staker.deploy import deploy
from staker.token import MockToken, to_wei

def test_accounts_are_distinct():
    chain = Chain(num_accounts=4)
    assert len(set(chain.accounts)) == 4
    assert all(a.startswith("0x") and len(a) == 42 for a in chain.accounts)
    assert chain.now() == GENESIS_TIMESTAMP

def test_time_only_moves_forward():
    chain = Chain()
    assert chain.advance_time(60) == GENESIS_TIMESTAMP + 60
    assert chain.advance_to(GENESIS_TIMESTAMP + 100) == GENESIS_TIMESTAMP + 100
    with pytest.raises(ValueError):
        chain.advance_time(-1)
    with pytest.raises(ValueError):
        chain.advance_to(GENESIS_TIMESTAMP)

def test_revert_restores_balances_positions_and_time():
    d = deploy()
    user = d.chain.accounts[1]
    snapshot_id = d.chain.take_snapshot()

    d.reward_token.mint(d.chain.accounts[0], to_wei(300))
    d.reward_token.approve(d.chain.accounts[0], d.staker.address, to_wei(300))
    d.staker.add_rewards(d.chain.accounts[0], to_wei(300), 30)
    d.stake_token.approve(user, d.staker.address, to_wei(10))
    d.staker.deposit(user, to_wei(10))
    d.chain.advance_time(7200)
    late_token = MockToken(d.chain, "Late", "LATE")

    d.chain.revert_to_snapshot(snapshot_id)

    assert d.chain.now() == GENESIS_TIMESTAMP
    assert d.staker.reward_per_second() == 0
    assert d.staker.total_staked() == 0
    assert d.staker.pending_rewards(user) == 0
    assert d.stake_token.balance_of(user) == to_wei(1_000_000)
    assert d.reward_token.total_supply == 0
    assert d.chain.get_contract(late_token.address) is None

    # references between contracts survive the revert
    assert d.staker.stake_token is d.stake_token
    assert d.staker.chain is d.chain
    assert d.factory.get_tokens()[0] is d.reward_token

def test_snapshot_can_be_reused():
    chain = Chain()
    token = MockToken(chain, "Basic Token", "BT")
    snapshot_id = chain.take_snapshot()

    for _ in range(2):
        token.mint(chain.accounts[0], 5)
        chain.revert_to_snapshot(snapshot_id)
        assert token.balance_of(chain.accounts[0]) == 0

def test_unknown_snapshot():
    chain = Chain()
    first = chain.take_snapshot()
    second = chain.take_snapshot()
    chain.revert_to_snapshot(first)
    with pytest.raises(ValueError):
        chain.revert_to_snapshot(second)
    with pytest.raises(ValueError):
        chain.revert_to_snapshot(42)
