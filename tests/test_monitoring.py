import logging
import threading
from typing import List

from smmpanel.infra import CLEANUP_ERROR, EventLog, ThreadingMonitor
from smmpanel.schema import OperationEvent


def _assert_conserved(monitor: ThreadingMonitor) -> None:
    metrics = monitor.metrics
    assert metrics.total_operations == (
        metrics.successful_operations + metrics.failed_operations + metrics.current_concurrency
    )
    assert metrics.current_concurrency == len(monitor.active_operation_ids())


def test_admission_stops_at_concurrency_ceiling(monitor):
    for index in range(10):
        assert monitor.start_operation(f"op-{index}", "order_sync", 5)

    assert monitor.start_operation("op-overflow", "order_sync") is False

    metrics = monitor.metrics
    assert metrics.current_concurrency == 10
    assert metrics.total_operations == 10
    assert metrics.peak_concurrency == 10
    assert not monitor.is_active("op-overflow")


def test_memory_pressure_rejects_without_mutation(monitor, memory):
    memory.used = 900

    assert monitor.start_operation("op-1", "service_import") is False

    metrics = monitor.metrics
    assert metrics.total_operations == 0
    assert metrics.current_concurrency == 0
    assert monitor.active_operation_ids() == []


def test_duplicate_in_flight_id_is_rejected(monitor):
    assert monitor.start_operation("op-1", "order_sync")
    assert monitor.start_operation("op-1", "order_sync") is False
    assert monitor.metrics.total_operations == 1

    monitor.complete_operation("op-1")
    assert monitor.start_operation("op-1", "order_sync")
    _assert_conserved(monitor)


def test_conservation_holds_across_mixed_transitions(monitor, clock):
    steps = [
        ("start", "a"),
        ("start", "b"),
        ("complete", "a"),
        ("start", "c"),
        ("fail", "b"),
        ("fail", "missing"),
        ("start", "d"),
        ("complete", "d"),
    ]
    for action, op_id in steps:
        clock.advance(25)
        if action == "start":
            monitor.start_operation(op_id, "bulk")
        elif action == "complete":
            monitor.complete_operation(op_id, 3)
        else:
            monitor.fail_operation(op_id, "provider unreachable")
        _assert_conserved(monitor)

    metrics = monitor.metrics
    assert (metrics.successful_operations, metrics.failed_operations, metrics.current_concurrency) == (2, 1, 1)
    assert metrics.last_error == "provider unreachable"


def test_terminal_transitions_are_idempotent(monitor):
    monitor.start_operation("op-1", "order_sync")
    monitor.start_operation("op-2", "order_sync")

    monitor.complete_operation("op-1", 4)
    monitor.complete_operation("op-1", 4)
    monitor.fail_operation("op-1", "late failure")
    monitor.fail_operation("op-2", "boom")
    monitor.fail_operation("op-2", "boom")

    metrics = monitor.metrics
    assert metrics.successful_operations == 1
    assert metrics.failed_operations == 1
    assert metrics.current_concurrency == 0


def test_average_response_time_is_running_mean(monitor, clock):
    for index, duration in enumerate((100, 200, 300)):
        monitor.start_operation(f"op-{index}", "bulk")
        clock.advance(duration)
        monitor.complete_operation(f"op-{index}")

    assert abs(monitor.metrics.average_response_time - 200) < 1e-6


def test_health_warns_on_high_concurrency(monitor):
    for index in range(9):
        monitor.start_operation(f"op-{index}", "bulk")

    health = monitor.get_system_health()

    assert health.status == "warning"
    assert any("concurrency" in item.lower() for item in health.recommendations)
    assert len(health.active_operations) == 9


def test_health_is_critical_under_memory_pressure(monitor, memory):
    monitor.start_operation("op-1", "bulk")
    memory.used = 950

    health = monitor.get_system_health()

    assert health.status == "critical"
    assert health.metrics.memory_usage.used == 950
    assert any("memory" in item.lower() for item in health.recommendations)


def test_critical_is_not_downgraded_by_later_warnings(monitor, memory, clock):
    for index in range(9):
        monitor.start_operation(f"op-{index}", "bulk")
    clock.advance(15_000)
    memory.used = 950

    health = monitor.get_system_health()

    assert health.status == "critical"
    assert len(health.recommendations) == 3


def test_health_warns_on_error_rate_and_stuck_operations(monitor, clock):
    monitor.start_operation("failing", "bulk")
    monitor.fail_operation("failing", "HTTP 500")
    monitor.start_operation("slow", "bulk")
    clock.advance(12_000)

    health = monitor.get_system_health()

    assert health.status == "warning"
    assert "High error rate detected. Check external service connectivity." in health.recommendations
    assert "1 operations are running longer than expected." in health.recommendations


def test_healthy_system_has_no_recommendations(monitor):
    monitor.start_operation("op-1", "bulk")
    monitor.complete_operation("op-1")

    health = monitor.get_system_health()

    assert health.status == "healthy"
    assert health.recommendations == []
    assert health.to_dict()["metrics"]["successfulOperations"] == 1


def test_cleanup_fails_operations_past_twice_the_threshold(monitor, clock):
    events: List[OperationEvent] = []
    monitor.subscribe(events.append)
    monitor.start_operation("stuck", "order_sync")
    clock.advance(15_000)
    monitor.start_operation("fresh", "order_sync")
    clock.advance(6_000)

    assert monitor.cleanup_stuck_operations() == 1
    assert monitor.cleanup_stuck_operations() == 0

    assert not monitor.is_active("stuck")
    assert monitor.is_active("fresh")
    assert monitor.metrics.failed_operations == 1
    assert [(event.operation_id, event.error) for event in events] == [("stuck", CLEANUP_ERROR)]
    _assert_conserved(monitor)


def test_reset_preserves_current_concurrency(monitor, clock):
    for index in range(3):
        monitor.start_operation(f"op-{index}", "bulk")
    clock.advance(50)
    monitor.complete_operation("op-0")

    monitor.reset_metrics()

    metrics = monitor.metrics
    assert metrics.total_operations == 0
    assert metrics.successful_operations == 0
    assert metrics.failed_operations == 0
    assert metrics.average_response_time == 0
    assert metrics.peak_concurrency == 0
    assert metrics.current_concurrency == 2
    assert len(monitor.active_operation_ids()) == 2


def test_listeners_receive_events_and_failures_are_contained(monitor, clock):
    log = EventLog(maxlen=10)

    def broken(event):
        raise RuntimeError("dashboard offline")

    monitor.subscribe(broken)
    unsubscribe = monitor.subscribe(log)

    monitor.start_operation("op-1", "service_import")
    clock.advance(40)
    monitor.complete_operation("op-1", 12)
    monitor.start_operation("op-2", "service_import")
    monitor.fail_operation("op-2", "timeout")
    unsubscribe()
    monitor.start_operation("op-3", "service_import")
    monitor.complete_operation("op-3")

    kinds = [(event.kind, event.operation_id) for event in log.events]
    assert kinds == [("operation_complete", "op-1"), ("operation_failed", "op-2")]
    assert log.events[0].items_processed == 12
    assert log.events[0].duration == 40
    assert log.recent(1)[0]["operationId"] == "op-2"


def test_broken_memory_sampler_counts_as_no_pressure(clock):
    def sampler():
        raise OSError("procfs unavailable")

    monitor = ThreadingMonitor(max_concurrency=2, memory_sampler=sampler, clock=clock)

    assert monitor.start_operation("op-1", "bulk")
    assert monitor.get_system_health().status == "healthy"


def test_performance_summary_mentions_status_and_counts(monitor, clock):
    monitor.start_operation("op-1", "bulk")
    clock.advance(120)
    monitor.complete_operation("op-1")

    summary = monitor.get_performance_summary()

    assert "Status: HEALTHY" in summary
    assert "Current Operations: 0/10" in summary
    assert "Avg Response: 120ms" in summary
    assert "All systems optimal" in summary


def test_conservation_holds_under_threaded_contention(memory):
    monitor = ThreadingMonitor(max_concurrency=1000, response_time_threshold=0, memory_sampler=memory)
    barrier = threading.Barrier(9)

    def worker(worker_id: int) -> None:
        barrier.wait()
        for index in range(200):
            op_id = f"{worker_id}-{index}"
            monitor.start_operation(op_id, "bulk")
            if index % 3 == 0:
                monitor.fail_operation(op_id, "provider unreachable")
            else:
                monitor.complete_operation(op_id, 1)

    def janitor() -> None:
        barrier.wait()
        for _ in range(200):
            monitor.cleanup_stuck_operations()
            monitor.get_system_health()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    threads.append(threading.Thread(target=janitor))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    _assert_conserved(monitor)
    metrics = monitor.metrics
    assert metrics.total_operations == 1600
    assert metrics.current_concurrency == 0


def test_rejection_logs_name_the_reason(monitor, memory, caplog):
    caplog.set_level(logging.WARNING, logger="smmpanel.infra.monitoring")
    for index in range(10):
        monitor.start_operation(f"op-{index}", "bulk")

    monitor.start_operation("over-limit", "bulk")
    monitor.complete_operation("op-0")
    memory.used = 900
    monitor.start_operation("under-pressure", "bulk")

    messages = [record.getMessage() for record in caplog.records]
    assert any("Concurrency limit" in text and "over-limit" in text for text in messages)
    assert any("Memory pressure" in text and "under-pressure" in text for text in messages)


def test_slow_completion_is_logged_but_counted_as_success(monitor, clock, caplog):
    caplog.set_level(logging.WARNING, logger="smmpanel.infra.monitoring")
    monitor.start_operation("slow-import", "service_import")
    clock.advance(10_500)

    monitor.complete_operation("slow-import", 40)

    assert monitor.metrics.successful_operations == 1
    assert any("Slow operation: slow-import" in record.getMessage() for record in caplog.records)
