from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from vabot.config import RiskPolicy, TradingConfig
from vabot.errors import DailyLossExceeded, OrderFailed
from vabot.execution import BaseExecutor
from vabot.models import Candle, CloseReason, Position, Side
from vabot.risk import RiskState
from vabot.strategy import SignalEngine, generate_signal

from conftest import KLINE_ROW, FixedClock

THRESHOLDS = {"vah": 100.0, "val": 90.0}


class RecordingExecutor(BaseExecutor):
    def __init__(self, risk_state: RiskState, error: Exception | None = None) -> None:
        super().__init__(TradingConfig(), risk_state, api_key="k", api_secret="s")
        self.error = error
        self.orders: list[tuple[Side, float]] = []

    def place_order(self, side: Side, price: float) -> Position:
        self.orders.append((side, price))
        if self.error is not None:
            raise self.error
        position = Position(
            entry_price=price,
            quantity=0.01,
            side=side,
            entry_time=datetime(2024, 5, 10, 9, tzinfo=timezone.utc),
        )
        self.risk_state.add_position(position)
        return position


def _candle(close: float) -> Candle:
    return replace(Candle.from_kline_row(KLINE_ROW), close=close)


@pytest.mark.parametrize(
    ("close", "expected"),
    [(105.0, Side.BUY), (85.0, Side.SELL), (95.0, None), (100.0, None), (90.0, None)],
)
def test_generate_signal(close: float, expected: Side | None) -> None:
    assert generate_signal(close, THRESHOLDS) is expected


@pytest.mark.parametrize("thresholds", [{}, {"vah": 100.0}, {"val": 90.0}])
def test_no_signal_without_both_thresholds(thresholds: dict) -> None:
    assert generate_signal(150.0, thresholds) is None
    assert generate_signal(10.0, thresholds) is None


@pytest.fixture
def config() -> TradingConfig:
    return TradingConfig(
        trade_amount=0.01,
        risk_management=RiskPolicy(max_daily_loss_percentage=5.0),
    )


def test_buy_signal_is_reserved_and_executed(config: TradingConfig, clock: FixedClock) -> None:
    state = RiskState(daily_exposure=1.0, clock=clock)
    executor = RecordingExecutor(state)
    engine = SignalEngine(config, state, executor)

    decision = engine.process(_candle(105.0), THRESHOLDS)

    assert decision.signal is Side.BUY
    assert executor.orders == [(Side.BUY, 105.0)]
    assert decision.position is state.positions[0]
    assert state.daily_exposure == pytest.approx(2.05)


def test_no_signal_inside_value_area(config: TradingConfig, clock: FixedClock) -> None:
    state = RiskState(clock=clock)
    executor = RecordingExecutor(state)

    decision = SignalEngine(config, state, executor).process(_candle(95.0), THRESHOLDS)

    assert decision.signal is None
    assert executor.orders == []
    assert state.daily_exposure == 0.0


def test_exits_run_before_entry(config: TradingConfig, clock: FixedClock) -> None:
    open_sell = Position(
        entry_price=100.0,
        quantity=0.01,
        side=Side.SELL,
        entry_time=datetime(2024, 5, 9, tzinfo=timezone.utc),
    )
    state = RiskState([open_sell], clock=clock)
    executor = RecordingExecutor(state)

    decision = SignalEngine(config, state, executor).process(_candle(105.0), THRESHOLDS)

    assert [item.reason for item in decision.closed] == [CloseReason.STOP_LOSS]
    assert [position.side for position in state.positions] == [Side.BUY]


def test_daily_loss_gate_blocks_order(config: TradingConfig, clock: FixedClock) -> None:
    state = RiskState(daily_exposure=4.5, clock=clock)
    executor = RecordingExecutor(state)
    engine = SignalEngine(config, state, executor)

    with pytest.raises(DailyLossExceeded):
        engine.process(_candle(85.0), THRESHOLDS)

    assert executor.orders == []
    assert state.daily_exposure == 4.5
    assert engine.last_decision.signal is Side.SELL


def test_failed_order_keeps_reservation(config: TradingConfig, clock: FixedClock) -> None:
    state = RiskState(clock=clock)
    executor = RecordingExecutor(state, error=OrderFailed('{"code":-2010}', status_code=400))
    engine = SignalEngine(config, state, executor)

    with pytest.raises(OrderFailed):
        engine.process(_candle(85.0), THRESHOLDS)

    assert state.positions == []
    assert state.daily_exposure == pytest.approx(0.85)
    assert engine.last_decision.position is None
