"""Optional balance bookkeeping layered on top of round outcomes."""
import logging

from config.limbo_schema import DEFAULT_STARTING_BALANCE

logger = logging.getLogger("limbo.wallet")


class InsufficientFunds(ValueError):
    pass


def _cents(amount: float) -> float:
    return round(amount, 2)


class Wallet:
    """Player balance. The stake is taken when the round settles, not at start."""

    def __init__(self, balance: float = DEFAULT_STARTING_BALANCE):
        if balance < 0:
            raise ValueError(f"balance cannot be negative (got {balance})")
        self.balance = _cents(balance)

    def can_afford(self, amount: float) -> bool:
        return amount <= self.balance

    def settle(self, outcome) -> float:
        """Apply one finished round: balance - bet (+ payout on a win)."""
        if not self.can_afford(outcome.bet_amount):
            raise InsufficientFunds(
                f"cannot settle bet {outcome.bet_amount} against balance {self.balance}")
        delta = (outcome.payout or 0.0) - outcome.bet_amount
        self.balance = _cents(self.balance + delta)
        logger.debug(f"settled {outcome.status.value}: delta={delta:+.2f} balance={self.balance:.2f}")
        return self.balance
