from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List

import numpy as np
import pytest

from core.errors import ValidationError
from core.intensity import intensity
from core.stream import Stream
from shared.models import EPOCH, ImpactMessage
from test.fixtures.reference_models import ReferenceHighPass, ReferenceIntegrator, reference_peak
from test.fixtures.signal_generators import (
    make_constant_counts,
    make_impulse_counts,
    make_noise_counts,
    make_sine_counts,
)


def _feed(stream: Stream, blocks: List[np.ndarray], start: datetime) -> List[ImpactMessage]:
    """Process consecutive blocks with contiguous start times."""
    messages = []
    offset = 0
    for block in blocks:
        when = start + timedelta(seconds=offset / stream.rate)
        messages.append(stream.process_samples("test", "chan", when, block))
        offset += len(block)
    return messages


class TestCandidateEvent:
    def test_message_identity(self, velocity_stream, t0):
        msg = velocity_stream.process_samples("NZ.WEL", "NZ_WEL_10_HHZ", t0, make_noise_counts(10.0, 50, seed=1))
        assert msg.source == "NZ.WEL"
        assert msg.quality == "measured"
        assert msg.latitude == pytest.approx(-41.28)
        assert msg.longitude == pytest.approx(174.77)
        assert msg.comment == "WEL"

    def test_passthrough_peak_and_time(self, passthrough_stream, t0):
        msg = passthrough_stream.process_samples("src", "NZ_PASS_10_HHZ", t0, [0, 50, -200, 100])
        assert msg.time == t0 + timedelta(seconds=0.2)
        assert msg.mmi == intensity(2.0)
        assert msg.mmi == 10

    def test_first_maximum_wins(self, passthrough_stream, t0):
        msg = passthrough_stream.process_samples("src", "chan", t0, [1, 7, -7, 7])
        assert msg.time == t0 + timedelta(seconds=0.1)

    def test_all_zero_block(self, passthrough_stream, t0):
        msg = passthrough_stream.process_samples("src", "chan", t0, [0, 0, 0, 0, 0])
        assert msg.time == t0
        assert msg.mmi == 1

    def test_flat_block_through_highpass_is_quiet(self, velocity_stream, t0):
        msg = velocity_stream.process_samples("src", "chan", t0, make_constant_counts(8000, 100))
        assert msg.time == t0
        assert msg.mmi == 1

    def test_naive_and_posix_start_times(self, passthrough_stream):
        naive = datetime(2024, 1, 1, 0, 0, 0)
        msg = passthrough_stream.process_samples("src", "chan", naive, [0, 100])
        assert msg.time == datetime(2024, 1, 1, 0, 0, 0, 100000, tzinfo=timezone.utc)

        posix = naive.replace(tzinfo=timezone.utc).timestamp() + 0.2
        msg = passthrough_stream.process_samples("src", "chan", posix, [100, 0])
        assert msg.time == datetime(2024, 1, 1, 0, 0, 0, 200000, tzinfo=timezone.utc)

    def test_velocity_sine_intensity(self, velocity_stream, t0):
        # 0.04 m/s at 5 Hz -> raw 6.5
        signal = make_sine_counts(5.0, 0.04, 10.0, velocity_stream.rate, gain=velocity_stream.gain)
        messages = _feed(velocity_stream, np.array_split(signal, 10), t0)
        assert messages[-1].mmi == 6

    def test_acceleration_sine_intensity(self, acceleration_stream, t0):
        # 1.25 m/s^2 at 5 Hz integrates to ~0.04 m/s -> raw 6.5
        signal = make_sine_counts(5.0, 1.25, 10.0, acceleration_stream.rate, gain=acceleration_stream.gain)
        messages = _feed(acceleration_stream, np.array_split(signal, 10), t0)
        assert messages[-1].mmi == 6

    def test_louder_signal_is_more_intense(self, velocity_stream, t0):
        quiet = make_sine_counts(5.0, 0.001, 2.0, 100.0, gain=velocity_stream.gain)
        loud = make_sine_counts(5.0, 0.2, 2.0, 100.0, gain=velocity_stream.gain)
        messages = _feed(velocity_stream, [quiet, quiet, loud], t0)
        assert messages[2].mmi > messages[1].mmi


class TestLastProcessedEnd:
    def test_advances_to_last_sample(self, velocity_stream, t0):
        velocity_stream.process_samples("src", "chan", t0, make_noise_counts(5.0, 100, seed=2))
        assert velocity_stream.last == t0 + timedelta(seconds=0.99)

    def test_single_sample_block(self, passthrough_stream, t0):
        passthrough_stream.process_samples("src", "chan", t0, [3])
        assert passthrough_stream.last == t0


class TestValidation:
    def test_zero_rate(self, t0):
        stream = Stream(name="Z", rate=0.0, gain=1.0, q=0.0)
        stream.init("NZ_Z_10_HHZ", timedelta(seconds=1), 4)
        with pytest.raises(ValidationError) as info:
            stream.process_samples("src", "chan", t0, [1, 2, 3])
        assert "rate" in str(info.value)
        assert stream.last == EPOCH

    def test_partial_message_attached(self, t0):
        stream = Stream(name="Z", latitude=1.5, rate=-1.0, gain=1.0, q=0.0)
        with pytest.raises(ValidationError) as info:
            stream.process_samples("src", "chan", t0, [1])
        partial = info.value.message
        assert isinstance(partial, ImpactMessage)
        assert partial.comment == "Z"
        assert partial.latitude == 1.5

    def test_empty_block(self, velocity_stream, t0):
        velocity_stream.process_samples("src", "chan", t0, [1, 2, 3])
        before = velocity_stream.last
        state = velocity_stream.highpass.state
        with pytest.raises(ValidationError, match="no samples"):
            velocity_stream.process_samples("src", "chan", t0 + timedelta(seconds=1), [])
        assert velocity_stream.last == before
        assert velocity_stream.highpass.state == state

    def test_integrator_without_highpass(self, acceleration_stream, t0):
        acceleration_stream.highpass = None
        with pytest.raises(ValidationError, match="not fully initialised"):
            acceleration_stream.process_samples("src", "chan", t0, [1, 2, 3])
        assert acceleration_stream.last == EPOCH

    def test_passthrough_needs_positive_gain(self, t0):
        stream = Stream(name="G", rate=10.0, gain=0.0, q=0.0)
        with pytest.raises(ValidationError, match="gain"):
            stream.process_samples("src", "chan", t0, [1, 2, 3])

    def test_validation_error_is_value_error(self, t0):
        stream = Stream(name="Z", rate=0.0)
        with pytest.raises(ValueError):
            stream.process_samples("src", "chan", t0, [1])


class TestBreakDetection:
    def test_first_block_is_a_break(self, velocity_stream, t0, caplog):
        caplog.set_level(logging.INFO, logger="core.stream")
        velocity_stream.process_samples("src", "NZ_WEL_10_HHZ", t0, [1, 2, 3])
        assert any("reset stream" in rec.getMessage() for rec in caplog.records)

    def test_contiguous_block_is_not_a_break(self, velocity_stream, t0, caplog):
        velocity_stream.process_samples("src", "chan", t0, make_noise_counts(5.0, 100, seed=4))
        caplog.clear()
        caplog.set_level(logging.INFO, logger="core.stream")
        velocity_stream.process_samples("src", "chan", t0 + timedelta(seconds=1.0), make_noise_counts(5.0, 100, seed=5))
        assert not any("reset stream" in rec.getMessage() for rec in caplog.records)

    @pytest.mark.parametrize("jitter,is_break", [
        (0.0, False),
        (0.004, False),
        (-0.004, False),
        (0.006, True),
        (-0.006, True),
        (60.0, True),
    ])
    def test_half_period_tolerance(self, velocity_stream, t0, caplog, jitter, is_break):
        velocity_stream.process_samples("src", "chan", t0, make_noise_counts(5.0, 100, seed=6))
        caplog.clear()
        caplog.set_level(logging.INFO, logger="core.stream")
        start = t0 + timedelta(seconds=1.0 + jitter)
        velocity_stream.process_samples("src", "chan", start, make_noise_counts(5.0, 100, seed=7))
        reset = any("reset stream" in rec.getMessage() for rec in caplog.records)
        assert reset is is_break

    def test_break_resets_noise_times(self, velocity_stream, t0):
        velocity_stream.process_samples("src", "chan", t0, [1, 2, 3])
        velocity_stream.good = t0
        velocity_stream.bad = t0

        velocity_stream.process_samples("src", "chan", t0 + timedelta(seconds=0.03), [1, 2, 3])
        assert velocity_stream.good == t0

        velocity_stream.process_samples("src", "chan", t0 + timedelta(hours=1), [1, 2, 3])
        assert velocity_stream.good == EPOCH
        assert velocity_stream.bad == EPOCH

    def test_break_gives_different_state_than_continuation(self, t0):
        first = make_sine_counts(2.0, 0.01, 1.0, 100.0, gain=1.0e6)
        second = make_sine_counts(2.0, 0.03, 1.0, 100.0, gain=1.0e6, phase_rad=1.0)

        def run(gap: float) -> Stream:
            stream = Stream(name="B", rate=100.0, gain=1.0e6, q=0.98)
            stream.init("NZ_B_10_HHZ", timedelta(seconds=60), 4)
            stream.process_samples("src", "chan", t0, first)
            stream.process_samples("src", "chan", t0 + timedelta(seconds=1.0 + gap), second)
            return stream

        continued = run(0.0)
        broken = run(30.0)
        assert broken.highpass.state != continued.highpass.state
        assert broken.last == continued.last + timedelta(seconds=30.0)

    def test_break_matches_reverse_primed_reference(self, acceleration_stream, t0):
        block = make_sine_counts(3.0, 0.8, 1.0, acceleration_stream.rate, gain=acceleration_stream.gain, offset=2500.0)
        hp = ReferenceHighPass(acceleration_stream.gain, acceleration_stream.q)
        integ = ReferenceIntegrator(1.0, 1.0 / acceleration_stream.rate, acceleration_stream.q)
        peak, index, outputs = reference_peak(block, hp, integ, acceleration_stream.gain, prime=True)

        msg = acceleration_stream.process_samples("src", "chan", t0, block)

        assert msg.time == t0 + timedelta(seconds=index / acceleration_stream.rate)
        assert msg.mmi == intensity(peak)
        assert acceleration_stream.highpass.state.previous_output == pytest.approx(outputs[-1], rel=1e-9, abs=1e-12)

    def test_priming_is_discarded(self, velocity_stream, t0):
        # the reversed pass sees the closing spike first; only the forward
        # pass may place the event
        block = make_impulse_counts(100, 99, 50000, offset=1000)
        msg = velocity_stream.process_samples("src", "chan", t0, block)
        assert msg.time == t0 + timedelta(seconds=0.99)

