"""
End-to-end gate tests against the in-process todo service.

Per unit the nominal service allocates 600 bytes in a new buffer plus
400 bytes outside any buffer on its request thread, and performs one
database round trip (statement write/read + commit write/read) on port
5432. It also emits compiler-thread allocations and HTTP-port socket
writes that every scenario must filter out.
"""

import pytest

from tracegate.config import config
from tracegate.database.event_buffer_writer import read_framed_records
from tracegate.errors import PhaseError, SourceUnavailableError, WorkloadFailure
from tracegate.events.channel import EventChannel
from tracegate.events.source import socket_io_sources
from tracegate.harness.gate import BelowThreshold, CountEquals, Phase, RegressionGate
from tracegate.harness.scenario import (
    allocation_scenario,
    database_io_bytes_scenario,
    database_io_count_scenario,
    database_io_predicate,
    run_baseline,
    run_scenario,
)
from tracegate.harness.session import configure
from tracegate.metrics.extractor import contribution, extract
from tracegate.runtime.settings import ChannelSettings, HarnessSettings, WorkloadSettings
from tracegate.workload.http_workload import HttpWorkload

from todo_service import DB_PORT, TodoService

SETTINGS = HarnessSettings(warmup_iterations=20, iterations=10, progress_interval=0)


class TestAllocationScenario:

    def test_fixed_allocation_per_unit(self, channel, make_workload):
        verdict = run_scenario(channel, make_workload(), allocation_scenario(), SETTINGS)

        assert verdict.result.sum == 10_000
        assert verdict.result.per_unit == 1000
        assert verdict.result.event_count == 20
        assert verdict.passed

    def test_regression_fails_gate(self, channel, make_workload):
        nominal = run_scenario(channel, make_workload(), allocation_scenario(), SETTINGS)
        regressed = run_scenario(
            channel,
            make_workload(path_prefix="with-allocation-regression/"),
            allocation_scenario(),
            SETTINGS,
        )

        assert nominal.passed
        assert regressed.failed
        assert regressed.observed == 51_000
        assert regressed.observed >= 33_000

    def test_capturing_during_warmup_does_not_leak_into_measurement(
        self, channel, make_workload
    ):
        settings = HarnessSettings(
            warmup_iterations=20, iterations=10, capture_during_warmup=True, progress_interval=0
        )
        verdict = run_scenario(channel, make_workload(), allocation_scenario(), settings)
        assert verdict.result.sum == 10_000

    def test_session_released_after_run(self, channel, make_workload):
        run_scenario(channel, make_workload(), allocation_scenario(), SETTINGS)
        assert channel.owner is None
        assert channel.enabled_sources() == ()

    def test_settings_turn_on_event_persistence(self, channel, make_workload, tmp_path):
        settings = HarnessSettings(
            warmup_iterations=5,
            iterations=10,
            progress_interval=0,
            enable_logging=True,
            logs_dir=str(tmp_path),
            session_id="session_persist",
        )
        scenario = allocation_scenario()
        verdict = run_scenario(channel, make_workload(), scenario, settings)

        assert config.enable_logging is True
        path = tmp_path / "session_persist" / "data" / "test" / "events.msgpack"
        assert path.exists()

        records = read_framed_records(path)
        # request threads plus compiler-thread noise, measured units only
        assert len(records) == 30
        matched = [r for r in records if scenario.predicate(r)]
        assert len(matched) == verdict.result.event_count == 20
        assert sum(extract(r) for r in matched) == verdict.result.sum

    def test_default_settings_do_not_persist(self, channel, make_workload, tmp_path):
        settings = HarnessSettings(
            warmup_iterations=5, iterations=10, progress_interval=0, logs_dir=str(tmp_path)
        )
        run_scenario(channel, make_workload(), allocation_scenario(), settings)
        assert list(tmp_path.rglob("events.msgpack")) == []


class TestDatabaseIoScenario:

    def test_four_operations_per_unit(self, channel, make_workload):
        verdict = run_scenario(
            channel, make_workload(), database_io_count_scenario(DB_PORT), SETTINGS
        )
        assert verdict.result.event_count == 4 * SETTINGS.iterations
        assert verdict.observed == 4
        assert verdict.passed

    def test_bytes_per_unit(self, channel, make_workload):
        verdict = run_scenario(
            channel, make_workload(), database_io_bytes_scenario(DB_PORT), SETTINGS
        )
        assert verdict.result.per_unit == 140
        assert verdict.passed

    def test_extra_round_trip_fails_count_gate(self, channel, make_workload):
        verdict = run_scenario(
            channel,
            make_workload(path_prefix="with-io-regression/"),
            database_io_count_scenario(DB_PORT),
            SETTINGS,
        )
        assert verdict.observed == 6
        assert verdict.failed

    def test_other_port_matches_nothing(self, channel, make_workload):
        verdict = run_scenario(
            channel, make_workload(), database_io_count_scenario(port=1), SETTINGS
        )
        assert verdict.result.event_count == 0
        assert verdict.failed


class TestSourceThreshold:

    def _capture(self, channel, workload, threshold, units=5):
        with configure(channel, socket_io_sources(threshold=threshold)) as session:
            session.reset()
            for i in range(units):
                workload(i)
            session.flush()
            return [r.payload for r in session.events(database_io_predicate(DB_PORT))]

    def test_higher_threshold_yields_strict_subset(self, channel):
        svc = TodoService(channel, statement_bytes=(160, 150), commit_bytes=(20, 10))
        workload = HttpWorkload(WorkloadSettings(), seed=1, transport=svc.transport)
        try:
            everything = self._capture(channel, workload, threshold=0)
            large_only = self._capture(channel, workload, threshold=100)
        finally:
            workload.close()
            svc.close()

        assert len(large_only) < len(everything)
        assert large_only == [p for p in everything if contribution(p) >= 100]
        assert all(contribution(p) >= 100 for p in large_only)


class TestGatePhases:

    def _gate(self, session, workload, **kw):
        return RegressionGate(
            session=session,
            workload=workload,
            predicate=database_io_predicate(DB_PORT),
            threshold=CountEquals(4),
            iterations=3,
            warmup_iterations=2,
            **kw,
        )

    def test_phases_in_order(self, channel, make_workload):
        with configure(channel, socket_io_sources()) as session:
            gate = self._gate(session, make_workload())
            assert gate.phase is Phase.IDLE
            gate.warm_up()
            assert gate.phase is Phase.WARMING_UP
            gate.measure()
            assert gate.phase is Phase.MEASURING
            result = gate.reduce()
            assert gate.phase is Phase.REDUCED
            assert result.event_count == 12
            verdict = gate.gate()
            assert gate.phase is Phase.GATED
            assert verdict.passed

    def test_out_of_order_raises(self, channel, make_workload):
        with configure(channel, socket_io_sources()) as session:
            gate = self._gate(session, make_workload())
            with pytest.raises(PhaseError):
                gate.measure()
            with pytest.raises(PhaseError):
                gate.gate()
            gate.warm_up()
            with pytest.raises(PhaseError):
                gate.warm_up()

    def test_invalid_iterations(self, channel, make_workload):
        with configure(channel, socket_io_sources()) as session:
            with pytest.raises(ValueError):
                RegressionGate(
                    session=session,
                    workload=make_workload(),
                    predicate=database_io_predicate(DB_PORT),
                    threshold=BelowThreshold(1),
                    iterations=0,
                )

    def test_workload_failure_aborts_phase(self, channel, service):
        workload = HttpWorkload(
            WorkloadSettings(id_min=21, id_max=30), seed=3, transport=service.transport
        )
        try:
            with configure(channel, socket_io_sources()) as session:
                gate = self._gate(session, workload)
                with pytest.raises(WorkloadFailure) as exc:
                    gate.run()
                assert exc.value.status_code == 404
                assert gate.phase is Phase.FAILED
                with pytest.raises(PhaseError):
                    gate.measure()
        finally:
            workload.close()
        assert channel.owner is None

    def test_flush_failure_during_measure_reports_no_metric(self):
        ch = EventChannel(
            ChannelSettings(flush_timeout_sec=10.0, max_buffered_events=5), name="tiny"
        )
        svc = TodoService(ch)
        workload = HttpWorkload(WorkloadSettings(), seed=1, transport=svc.transport)
        try:
            with configure(ch, socket_io_sources()) as session:
                gate = self._gate(session, workload)
                gate.warm_up()
                with pytest.raises(SourceUnavailableError, match="overflowed"):
                    gate.measure()
                assert gate.phase is Phase.FAILED
                with pytest.raises(PhaseError):
                    gate.reduce()
                assert gate.result is None
                assert gate.verdict is None
        finally:
            workload.close()
            svc.close()
            ch.close()

    def test_closed_channel_fails_measure(self, channel, make_workload):
        with configure(channel, socket_io_sources()) as session:
            gate = self._gate(session, make_workload())
            gate.warm_up()
            channel.close()
            with pytest.raises(SourceUnavailableError):
                gate.measure()
            assert gate.phase is Phase.FAILED
            with pytest.raises(PhaseError):
                gate.reduce()

    def test_threshold_is_strictly_below(self):
        from tracegate.metrics.aggregate import AggregateResult

        at_limit = AggregateResult(total_units=10, sum=10_000, event_count=10)
        assert not BelowThreshold(1000).check(at_limit)
        assert BelowThreshold(1001).check(at_limit)


class TestBaseline:

    def test_windows(self, channel, make_workload):
        scenario = allocation_scenario()
        windows = list(
            run_baseline(
                channel,
                make_workload(),
                list(scenario.sources),
                scenario.predicate,
                total_iterations=30,
                window=10,
            )
        )
        assert [i for i, _ in windows] == [10, 20, 30]
        assert all(r.per_unit == 1000 for _, r in windows)
        assert channel.owner is None

    def test_partial_window_not_reported(self, channel, make_workload):
        scenario = allocation_scenario()
        windows = list(
            run_baseline(
                channel,
                make_workload(),
                list(scenario.sources),
                scenario.predicate,
                total_iterations=25,
                window=10,
                extractor=extract,
            )
        )
        assert len(windows) == 2
