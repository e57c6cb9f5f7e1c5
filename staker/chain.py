import copy
from typing import Dict, List, Optional

GENESIS_TIMESTAMP = 1_600_000_000

class Chain:
    """
    Host environment for the contracts: a block timestamp, a pool of
    accounts and snapshot/revert of every registered contract.

    Time only moves when a caller advances it.
    """
    def __init__(self, num_accounts: int = 10, timestamp: int = GENESIS_TIMESTAMP) -> None:
        if num_accounts <= 0:
            raise ValueError("Number of accounts must be positive")
        self.timestamp = timestamp
        self._next_address = 1
        self.accounts: List[str] = [self.new_address() for _ in range(num_accounts)]
        self.contracts: Dict[str, object] = {}
        self._snapshots: Dict[int, tuple] = {}
        self._next_snapshot = 1

    def new_address(self) -> str:
        address = f"0x{self._next_address:040x}"
        self._next_address += 1
        return address

    def now(self) -> int:
        return self.timestamp

    def register(self, contract) -> str:
        contract.address = self.new_address()
        self.contracts[contract.address] = contract
        return contract.address

    def advance_time(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Cannot move time backwards")
        self.timestamp += seconds
        return self.timestamp

    def advance_to(self, timestamp: int) -> int:
        if timestamp < self.timestamp:
            raise ValueError("Cannot move time backwards")
        self.timestamp = timestamp
        return self.timestamp

    def take_snapshot(self) -> int:
        # contracts keep pointing at each other (and at the chain) after a revert
        memo = {id(self): self}
        memo.update({id(c): c for c in self.contracts.values()})
        state = {
            address: copy.deepcopy(contract.__dict__, memo)
            for address, contract in self.contracts.items()
        }
        snapshot_id = self._next_snapshot
        self._next_snapshot += 1
        self._snapshots[snapshot_id] = (self.timestamp, self._next_address, state)
        return snapshot_id

    def revert_to_snapshot(self, snapshot_id: int) -> None:
        if snapshot_id not in self._snapshots:
            raise ValueError(f"Unknown snapshot {snapshot_id}")
        timestamp, next_address, state = self._snapshots[snapshot_id]

        memo = {id(self): self}
        memo.update({id(c): c for c in self.contracts.values()})
        self.timestamp = timestamp
        self._next_address = next_address
        self.contracts = {
            address: contract
            for address, contract in self.contracts.items()
            if address in state
        }
        for address, contract in self.contracts.items():
            contract.__dict__.clear()
            contract.__dict__.update(copy.deepcopy(state[address], memo))

        # later snapshots no longer describe a reachable history
        self._snapshots = {
            k: v for k, v in self._snapshots.items() if k <= snapshot_id
        }

    def get_contract(self, address: str) -> Optional[object]:
        return self.contracts.get(address)
