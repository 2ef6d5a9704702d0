"""Model factories shared by the test modules."""

from tradejournal.models.profile import Profile
from tradejournal.models.trade import Trade


def make_trade(**overrides) -> Trade:
    fields = dict(
        profile_id=1,
        crypto_pair="BTC/USDT",
        direction="long",
        entry_price=100.0,
        position_size=1000.0,
        leverage=10,
    )
    fields.update(overrides)
    return Trade(**fields)


def make_profile(**overrides) -> Profile:
    fields = dict(full_name="Alice", telegram_chat_id="100")
    fields.update(overrides)
    return Profile(**fields)
