from dataclasses import dataclass
from typing import Optional

from staker.chain import Chain
from staker.staker import Staker
from staker.token import MockToken, TokenFactory, to_wei

INITIAL_STAKE_BALANCE = to_wei(1_000_000)

@dataclass
class Deployment:
    chain: Chain
    factory: TokenFactory
    stake_token: MockToken
    reward_token: MockToken
    staker: Staker

def deploy(
    chain: Optional[Chain] = None,
    initial_stake_balance: int = INITIAL_STAKE_BALANCE,
    funded_accounts: int = 2,
) -> Deployment:
    """
    Create both tokens through the factory, hand stake tokens to
    ``accounts[1:funded_accounts + 1]`` and deploy a staker owned by
    ``accounts[0]``.
    """
    chain = chain or Chain()
    deployer = chain.accounts[0]

    factory = TokenFactory(chain)
    reward_token = factory.create_token("Basic Token", "BT")
    stake_token = factory.create_token("LP BT-BNB", "LPToken")

    for account in chain.accounts[1:funded_accounts + 1]:
        stake_token.mint(account, initial_stake_balance)

    staker = Staker(chain, stake_token, reward_token, owner=deployer)
    return Deployment(chain, factory, stake_token, reward_token, staker)
