from staker.simulation import (
    StakingSimulation,
    default_params
)
from staker.token import from_wei

params = default_params(epochs=90, num_users=5, seed=42)
params.donation_rate = 0.1
params.donation_amount = 10 ** 19
params.skim_interval = 7
params.verbose = True

sim = StakingSimulation(params)

# Run simulation
history = sim.run()

final = history[-1]
print("\nFinal State:")
print(f"  Funded: {from_wei(final['total_funded']):.4f}")
print(f"  Claimed: {from_wei(final['total_claimed']):.4f}")
print(f"  Pending: {from_wei(final['total_pending']):.4f}")
print(f"  Forfeited: {from_wei(final['total_forfeited']):.4f}")
print(f"  Discarded: {from_wei(final['total_discarded']):.4f}")
print(f"  Reference Emission: {from_wei(final['expected_emission']):.4f}")
for user in sim.users:
    print(f"  {user.address}: {user.deposits} deposits, {user.claims} claims, "
          f"{from_wei(user.claimed):.4f} claimed")
