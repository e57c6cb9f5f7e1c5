from typing import List

from staker.ledger import REWARD_PRECISION, SECONDS_PER_DAY

class PlannedCampaign:
    def __init__(self, amount: int, days: int, start_time: int,
                 reward_precision: int = REWARD_PRECISION) -> None:
        if amount <= 0:
            raise ValueError("Campaign amount must be positive")
        if days <= 0:
            raise ValueError("Campaign duration must be positive")
        if start_time < 0:
            raise ValueError("Start time cannot be negative")

        self.amount = amount
        self.days = days
        self.start_time = start_time
        self.duration = days * SECONDS_PER_DAY
        self.reward_precision = reward_precision
        self.reward_rate = amount * reward_precision // days // SECONDS_PER_DAY

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    def tokens_to_release(self, start: int, end: int) -> int:
        overlap = min(end, self.end_time) - max(start, self.start_time)
        if overlap <= 0:
            return 0
        return self.reward_rate * overlap // self.reward_precision

    def remaining_tokens(self, timestamp: int) -> int:
        if timestamp < self.start_time:
            return self.amount
        if timestamp >= self.end_time:
            return 0
        return self.amount - self.tokens_to_release(self.start_time, timestamp)

class CampaignSchedule:
    """
    Campaigns planned ahead of time, in the order they will be funded.

    A campaign funded while an earlier one still runs replaces it, so the
    earlier one only emits up to the later one's start.
    """
    def __init__(self, reward_precision: int = REWARD_PRECISION) -> None:
        self.reward_precision = reward_precision
        self.campaigns: List[PlannedCampaign] = []

    def add_campaign(self, amount: int, days: int, start_time: int) -> PlannedCampaign:
        campaign = PlannedCampaign(amount, days, start_time, self.reward_precision)
        self.campaigns.append(campaign)
        self.campaigns.sort(key=lambda c: c.start_time)
        return campaign

    def due(self, start: int, end: int) -> List[PlannedCampaign]:
        return [c for c in self.campaigns if start <= c.start_time < end]

    def _effective_windows(self):
        for i, campaign in enumerate(self.campaigns):
            end = campaign.end_time
            if i + 1 < len(self.campaigns):
                end = min(end, self.campaigns[i + 1].start_time)
            yield campaign, campaign.start_time, end

    def tokens_to_release(self, start: int, end: int) -> int:
        total = 0
        for campaign, window_start, window_end in self._effective_windows():
            total += campaign.tokens_to_release(max(start, window_start), min(end, window_end))
        return total

    def total_amount(self) -> int:
        return sum(c.amount for c in self.campaigns)

    def is_active(self, timestamp: int) -> bool:
        return any(s <= timestamp < e for _, s, e in self._effective_windows())

