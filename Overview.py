import streamlit as st

st.set_page_config(
    page_title="Staker Reward Accrual Simulation",
    layout="wide",
)

st.markdown("""
# Staker Reward Accrual Overview

Users deposit a **stake token** into the staker and earn a separate **reward token**. Rewards are funded in
campaigns: a funder deposits an amount of reward tokens to be streamed over a number of days, and the stream
is shared between stakers in proportion to their stake and to the time they spend staked while a campaign runs.

## Core Components

### 1. Campaigns
- **Funding**: `add_rewards(amount, days)` sets the reward rate and the end of the reward period
  - rate = floor(amount * P / days / 86400), with P = 10^7
  - period end = now + days * 86400
- **Replacement**: funding a new campaign while one is running discards the unspent remainder of the old one
- **Gaps**: time between the end of one campaign and the funding of the next earns nothing

### 2. Accrual
Rewards are accounted lazily. A single index tracks reward earned per unit of stake:

    acc_reward_per_share += elapsed * rate * S / total_staked / P      (S = 10^12)

The index is only brought up to date when somebody deposits, withdraws, claims or funds a campaign.
Windows with nothing staked are forfeited rather than carried forward.

### 3. Positions
Each staker keeps:

    - amount_staked: stake tokens deposited
    - reward_debt: index value at last settlement
    - pending_reward: settled but unclaimed reward

Claiming is explicit; withdrawing stake never pays rewards by itself.

### 4. Surplus
Stake tokens sent straight to the staker (outside of `deposit`) are not counted as stake. Anyone can `skim`
them, and they always go to the staker's owner.

## Simulation Description

The simulation is event based. Campaign funding and periodic skims are scheduled events; every epoch
(one day by default):

1. **Process Events**
   - Campaign funding from the schedule
   - Skims

2. **Donations**
   - Poisson number of direct stake token transfers to the staker

3. **User Actions** (random order)
   - Poisson number of deposits, lognormal size relative to free balance
   - Partial withdrawals with a fixed probability
   - Claims with a fixed probability

4. **Metrics Update**
   - Funded, claimed, pending, forfeited and discarded rewards
   - Reference emission from the campaign schedule
   - Conservation gap: funded - claimed - pending, which must never go negative

The deterministic simulation replaces the random user behaviour with fixed deposits and claims at
fixed intervals and an optional exit epoch.
""")
