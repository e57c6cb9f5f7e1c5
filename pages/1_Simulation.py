import streamlit as st
import altair as alt
import pandas as pd
from staker.chain import GENESIS_TIMESTAMP
from staker.ledger import SECONDS_PER_DAY
from staker.schedule import CampaignSchedule
from staker.simulation import (
    StakingSimulation,
    SimulationParams,
    UserBehaviour,
    DeterministicConfig,
    DeterministicSimulation
)
from staker.token import from_wei, to_wei

st.set_page_config(layout="wide")

def create_simulation_inputs():
    st.sidebar.header("Simulation Parameters")

    st.sidebar.header("Simulation Mode")
    simulation_type = st.sidebar.radio(
        "Select Simulation Type",
        ["Stochastic", "Deterministic"]
    )

    with st.sidebar.expander("Campaigns"):
        num_campaigns = st.number_input(
            "Number of Campaigns",
            value=2,
            min_value=1,
            step=1,
            help="Campaigns are funded in order; a campaign funded while another "
                 "is running replaces it."
        )
        campaigns = []
        for i in range(num_campaigns):
            st.write(f"\nCampaign {i+1}")
            amount = st.number_input(
                f"Reward Amount (Campaign {i+1})",
                value=300 * (i + 1),
                step=100,
                help="Reward tokens streamed over the campaign."
            )
            days = st.number_input(
                f"Duration in Days (Campaign {i+1})",
                value=30,
                min_value=1,
                step=1
            )
            start_day = st.number_input(
                f"Start Day (Campaign {i+1})",
                value=40 * i,
                min_value=0,
                step=1,
                help="Day of the simulation at which the campaign is funded."
            )
            campaigns.append({"amount": amount, "days": days, "start_day": start_day})

    with st.sidebar.expander("User Parameters"):
        num_users = st.number_input(
            "Number of Users",
            value=5,
            min_value=1,
            step=1
        )
        initial_balance = st.number_input(
            "Initial Stake Token Balance",
            value=1_000,
            step=100,
            help="Stake tokens minted to every user before the simulation starts."
        )
        if simulation_type == "Stochastic":
            deposit_rate = st.slider(
                "Deposit Rate", 0.0, 2.0, 0.2, 0.05,
                help="Expected number of deposits per user per epoch (Poisson)."
            )
            deposit_fraction = st.slider(
                "Deposit Fraction", 0.01, 1.0, 0.3, 0.01,
                help="Median share of the free balance put in by a deposit."
            )
            deposit_sigma = st.slider("Deposit Size Spread", 0.0, 2.0, 0.5, 0.1)
            withdraw_probability = st.slider("Withdraw Probability", 0.0, 1.0, 0.05, 0.01)
            withdraw_fraction = st.slider("Withdraw Fraction", 0.01, 1.0, 0.5, 0.01)
            claim_probability = st.slider("Claim Probability", 0.0, 1.0, 0.1, 0.01)
        else:
            deposit_amount = st.number_input("Fixed Deposit Amount", value=100, step=10)
            deposit_interval = st.number_input("Deposit Interval (epochs)", value=10, min_value=1, step=1)
            claim_interval = st.number_input("Claim Interval (epochs)", value=7, min_value=1, step=1)
            withdraw_epoch = st.number_input(
                "Exit Epoch",
                value=0,
                min_value=0,
                step=1,
                help="Epoch at which every user exits. 0 disables exits."
            )

    with st.sidebar.expander("Surplus Parameters"):
        donation_rate = st.slider(
            "Donation Rate", 0.0, 1.0, 0.0, 0.05,
            help="Expected number of direct stake token transfers to the staker per epoch."
        )
        donation_amount = st.number_input("Donation Amount", value=10, step=1)
        skim_interval = st.number_input(
            "Skim Interval (epochs)",
            value=0,
            min_value=0,
            step=1,
            help="0 disables skims."
        )

    with st.sidebar.expander("General Parameters"):
        epochs = st.number_input(
            "Epochs to Simulate",
            value=90,
            step=1,
            help="Each epoch is one day."
        )
        seed = st.number_input("Random Seed", value=0, step=1)

    return {
        "simulation_type": simulation_type,
        "campaigns": campaigns,
        "users": {
            "num_users": num_users,
            "initial_balance": initial_balance,
        },
        "behaviour": UserBehaviour(
            deposit_rate=deposit_rate,
            deposit_fraction=deposit_fraction,
            deposit_sigma=deposit_sigma,
            withdraw_probability=withdraw_probability,
            withdraw_fraction=withdraw_fraction,
            claim_probability=claim_probability
        ) if simulation_type == "Stochastic" else None,
        "deterministic": DeterministicConfig(
            deposit_amount=to_wei(deposit_amount),
            deposit_interval=deposit_interval,
            claim_interval=claim_interval,
            withdraw_epoch=withdraw_epoch or None
        ) if simulation_type == "Deterministic" else None,
        "surplus": {
            "donation_rate": donation_rate,
            "donation_amount": donation_amount,
            "skim_interval": skim_interval
        },
        "general": {
            "epochs": epochs,
            "seed": seed
        }
    }

def create_simulation(config):
    schedule = CampaignSchedule()
    for campaign in config["campaigns"]:
        schedule.add_campaign(
            to_wei(campaign["amount"]),
            campaign["days"],
            GENESIS_TIMESTAMP + campaign["start_day"] * SECONDS_PER_DAY
        )

    # the deterministic run does not use random behaviour, but params require one
    behaviour = config["behaviour"] or UserBehaviour(0.0, 1.0, 0.0, 0.0, 0.0, 0.0)
    params = SimulationParams(
        epochs=config["general"]["epochs"],
        num_users=config["users"]["num_users"],
        initial_balance=to_wei(config["users"]["initial_balance"]),
        behaviour=behaviour,
        schedule=schedule,
        donation_rate=config["surplus"]["donation_rate"],
        donation_amount=to_wei(config["surplus"]["donation_amount"]),
        skim_interval=config["surplus"]["skim_interval"],
        seed=config["general"]["seed"]
    )

    if config["simulation_type"] == "Deterministic":
        return DeterministicSimulation(params, config["deterministic"])
    return StakingSimulation(params)

def history_frame(history):
    columns = [
        'epoch', 'total_staked', 'total_funded', 'total_claimed', 'total_pending',
        'total_forfeited', 'total_discarded', 'expected_emission', 'conservation_gap',
        'stake_surplus', 'reward_balance'
    ]
    df = pd.DataFrame(history)
    for column in columns[1:]:
        df[column] = df[column].apply(from_wei)
    df['reward_rate'] = df['reward_rate'].apply(lambda r: from_wei(r) / 10 ** 7 * SECONDS_PER_DAY)
    df['distributed'] = df['total_claimed'] + df['total_pending']
    return df

def create_reward_metrics_tab(df):
    st.header("Reward Accounting")

    col1, col2 = st.columns(2)

    with col1:
        # Distributed vs reference emission
        emission_chart = alt.Chart(df).transform_fold(
            ['distributed', 'expected_emission', 'total_forfeited'],
            as_=['metric', 'value']
        ).mark_line().encode(
            x=alt.X('epoch:Q', title='Epoch'),
            y=alt.Y('value:Q', title='Reward Tokens'),
            color=alt.Color('metric:N', title='Metric')
        ).properties(
            title='Distributed Rewards vs Schedule',
            width=400,
            height=300
        )
        st.altair_chart(emission_chart, use_container_width=True)

        # Reward rate
        rate_chart = alt.Chart(df).mark_line().encode(
            x=alt.X('epoch:Q', title='Epoch'),
            y=alt.Y('reward_rate:Q', title='Reward Tokens / Day'),
        ).properties(
            title='Campaign Reward Rate',
            width=400,
            height=300
        )
        st.altair_chart(rate_chart, use_container_width=True)

    with col2:
        # Claimed vs pending
        claim_chart = alt.Chart(df).transform_fold(
            ['total_claimed', 'total_pending'],
            as_=['metric', 'value']
        ).mark_area().encode(
            x=alt.X('epoch:Q', title='Epoch'),
            y=alt.Y('value:Q', title='Reward Tokens', stack=True),
            color=alt.Color('metric:N', title='Metric')
        ).properties(
            title='Claimed and Pending Rewards',
            width=400,
            height=300
        )
        st.altair_chart(claim_chart, use_container_width=True)

        # Conservation
        gap_chart = alt.Chart(df).mark_line(color='red').encode(
            x=alt.X('epoch:Q', title='Epoch'),
            y=alt.Y('conservation_gap:Q', title='Reward Tokens'),
        ).properties(
            title='Funded - Claimed - Pending (never negative)',
            width=400,
            height=300
        )
        st.altair_chart(gap_chart, use_container_width=True)

def create_stake_metrics_tab(df, history):
    st.header("Stake Metrics")

    user_data = []
    for record in history:
        for address, staked in record['user_staked'].items():
            user_data.append({
                'epoch': record['epoch'],
                'user': address[-4:],
                'staked': from_wei(staked),
                'pending': from_wei(record['user_pending'][address])
            })
    user_df = pd.DataFrame(user_data)

    col1, col2 = st.columns(2)

    with col1:
        staked_chart = alt.Chart(df).mark_line().encode(
            x=alt.X('epoch:Q', title='Epoch'),
            y=alt.Y('total_staked:Q', title='Stake Tokens'),
        ).properties(
            title='Total Staked',
            width=400,
            height=300
        )
        st.altair_chart(staked_chart, use_container_width=True)

        user_stake_chart = alt.Chart(user_df).mark_line().encode(
            x=alt.X('epoch:Q', title='Epoch'),
            y=alt.Y('staked:Q', title='Stake Tokens'),
            color=alt.Color('user:N', title='User')
        ).properties(
            title='Stake per User',
            width=400,
            height=300
        )
        st.altair_chart(user_stake_chart, use_container_width=True)

    with col2:
        surplus_chart = alt.Chart(df).mark_line().encode(
            x=alt.X('epoch:Q', title='Epoch'),
            y=alt.Y('stake_surplus:Q', title='Stake Tokens'),
        ).properties(
            title='Unskimmed Surplus',
            width=400,
            height=300
        )
        st.altair_chart(surplus_chart, use_container_width=True)

        user_pending_chart = alt.Chart(user_df).mark_line().encode(
            x=alt.X('epoch:Q', title='Epoch'),
            y=alt.Y('pending:Q', title='Reward Tokens'),
            color=alt.Color('user:N', title='User')
        ).properties(
            title='Pending Rewards per User',
            width=400,
            height=300
        )
        st.altair_chart(user_pending_chart, use_container_width=True)

def main():
    st.title("Staker Simulation")

    config = create_simulation_inputs()

    if st.sidebar.button("Run Simulation"):
        try:
            sim = create_simulation(config)
        except ValueError as e:
            st.error(str(e))
            return

        history = sim.run()
        df = history_frame(history)

        tab1, tab2 = st.tabs(["Reward Metrics", "Stake Metrics"])

        with tab1:
            create_reward_metrics_tab(df)

        with tab2:
            create_stake_metrics_tab(df, history)

if __name__ == "__main__":
    main()
