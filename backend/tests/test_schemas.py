"""
Request model validation: amounts must be finite, trades strictly positive
"""

import pytest
from pydantic import ValidationError

from models.schemas import (
    TradeRequest,
    DepositCreate,
    BalanceUpdate,
    WalletRequestCreate,
    ListingCreate,
)


class TestFiniteAmounts:

    @pytest.mark.parametrize("amount", [float("inf"), float("-inf"), float("nan")])
    def test_trade_amount_must_be_finite(self, amount):
        with pytest.raises(ValidationError):
            TradeRequest(from_currency="BTC", to_currency="ETH", amount=amount)

    def test_trade_amount_must_be_positive(self):
        with pytest.raises(ValidationError):
            TradeRequest(from_currency="BTC", to_currency="ETH", amount=0)

    def test_trade_accepts_positive_amount(self):
        assert TradeRequest(from_currency="BTC", to_currency="ETH", amount=0.25).amount == 0.25

    def test_deposit_amount_infinity_rejected(self):
        with pytest.raises(ValidationError):
            DepositCreate(deposit_amount=float("inf"), currency="BTC", to_address="addr")

    def test_balance_nan_rejected(self):
        with pytest.raises(ValidationError):
            BalanceUpdate(balance=float("nan"))

    def test_manual_request_amount_infinity_rejected(self):
        with pytest.raises(ValidationError):
            WalletRequestCreate(wallet_type="manual-deposit", amount=float("inf"))

    def test_listing_price_infinity_rejected(self):
        with pytest.raises(ValidationError):
            ListingCreate(title="Lamp", category="home", price=float("inf"))
