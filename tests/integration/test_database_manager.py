"""Integration tests for DatabaseManager."""

import threading
import time
from pathlib import Path

import pytest

from sqlite_access import (
    BulkCallbackResult,
    DatabaseManager,
    ErrorKind,
    Parameter,
    TransactionOutcome,
    reset_shared_manager,
    shared_manager,
)
from sqlite_access.application import database_manager
from sqlite_access.infrastructure.config import Config, StoreConfig
from sqlite_access.infrastructure.container import get_container


def wait_until(predicate, timeout=5.0):
    """Poll ``predicate`` until it holds or fail the test."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not reached in time")
        time.sleep(0.005)


def count_of(db):
    return db.long_for_query("SELECT COUNT(*) FROM t")


class TestDatabaseManagerBasics:
    """Statement execution through the manager."""

    def test_insert_then_query(self, manager):
        """Insert a row and read it back."""
        assert manager.execute_update("INSERT INTO t (name, age) VALUES (?, ?)", ["alice", 30])
        assert manager.last_insert_row_id() == 1

        rows = manager.execute_query("SELECT * FROM t WHERE age > ?", [25])

        assert rows == [{"id": 1, "name": "alice", "age": 30}]
        assert rows[0]["name"] == "alice"

    def test_rolled_back_transaction_leaves_no_trace(self, manager):
        """A unit returning False discards its writes."""
        manager.execute_update("INSERT INTO t (name, age) VALUES (?, ?)", ["alice", 30])

        def add_bob(txn):
            txn.execute_update("INSERT INTO t (name, age) VALUES (?, ?)", ["bob", 20])
            return False

        assert manager.begin_transaction(add_bob) is False
        assert count_of(manager) == 1
        assert manager.execute_query("SELECT name FROM t WHERE age > ?", [25]) == [{"name": "alice"}]

    def test_committed_transaction(self, manager):
        """A unit returning True commits every statement."""
        def add_two(txn):
            return (
                txn.execute_update("INSERT INTO t (name, age) VALUES ('bob', 20)")
                and txn.execute_update("INSERT INTO t (name, age) VALUES ('carol', 41)")
            )

        assert manager.run_transaction(add_two) is TransactionOutcome.COMMITTED
        assert count_of(manager) == 2

    def test_empty_result_is_not_failure(self, manager):
        """No matching rows gives [], failure gives None."""
        assert manager.execute_query("SELECT * FROM t") == []
        assert manager.last_error is None

        assert manager.execute_query("SELECT * FROM missing") is None
        assert manager.last_error.kind is ErrorKind.PREPARE_FAILURE

    def test_bind_mismatch(self, manager):
        """Too few parameters is a bind failure."""
        assert not manager.execute_update("INSERT INTO t (name, age) VALUES (?, ?)", ["x"])

        assert manager.last_error.kind is ErrorKind.BIND_FAILURE
        assert count_of(manager) == 0

    def test_integer_out_of_range(self, manager):
        """Integers beyond signed 64 bits fail to bind instead of raising."""
        assert not manager.execute_update("INSERT INTO t (name, age) VALUES (?, ?)", ["big", 2**64])
        assert manager.last_error.kind is ErrorKind.BIND_FAILURE
        assert count_of(manager) == 0

        manager.clear_last_error()
        assert manager.long_for_query("SELECT ?", [2**70]) == 0
        assert manager.last_error.kind is ErrorKind.BIND_FAILURE

    def test_unencodable_text(self, manager):
        """Lone surrogates are bind failures as values, prepare failures as SQL."""
        assert manager.execute_query("SELECT ?", ["\ud800"]) is None
        assert manager.last_error.kind is ErrorKind.BIND_FAILURE

        assert manager.string_for_query("SELECT '\ud800'") == ""
        assert manager.last_error.kind is ErrorKind.PREPARE_FAILURE

    def test_constraint_violation(self, manager):
        """A UNIQUE violation is a step failure with the engine code."""
        manager.execute_update("INSERT INTO t (name) VALUES ('dup')")

        assert not manager.execute_update("INSERT INTO t (name) VALUES ('dup')")
        assert manager.last_error.kind is ErrorKind.STEP_FAILURE
        assert manager.last_error.code is not None

    def test_last_error_kept_until_cleared(self, manager):
        """Successful calls do not reset the last error."""
        manager.execute_update("NOT SQL")
        manager.execute_update("INSERT INTO t (name) VALUES ('ok')")
        assert manager.last_error is not None

        manager.clear_last_error()
        assert manager.last_error is None

    def test_scalar_helpers(self, manager):
        """Scalar helpers coerce the first column of the first row."""
        manager.execute_update("INSERT INTO t (name, age) VALUES ('alice', 30)")

        assert manager.long_for_query("SELECT age FROM t") == 30
        assert manager.int_for_query("SELECT age FROM t WHERE name = ?", ["alice"]) == 30
        assert manager.double_for_query("SELECT age / 4.0 FROM t") == 7.5
        assert manager.string_for_query("SELECT age FROM t") == "30"
        assert manager.string_for_query("SELECT name FROM t WHERE age > 99") == ""

    def test_explicit_parameters(self, manager):
        """Parameter values bind with their declared storage class."""
        manager.execute_update("INSERT INTO t (name, age) VALUES (?, ?)", [Parameter.text("n"), Parameter.null()])

        assert manager.string_for_query("SELECT typeof(age) FROM t") == "null"

    def test_execute_statements_with_abort(self, manager):
        """A callback abort stops the remaining statements."""
        script = (
            "INSERT INTO t (name, age) VALUES ('a', 1);"
            "SELECT name FROM t;"
            "INSERT INTO t (name, age) VALUES ('b', 2);"
        )

        ok = manager.execute_statements(script, lambda row: BulkCallbackResult.abort("stop"))

        assert not ok
        assert manager.last_error.kind is ErrorKind.BULK_CALLBACK_ABORT
        assert count_of(manager) == 1

    def test_memory_store(self, memory_manager):
        """The in-memory sentinel gives a private database."""
        assert memory_manager.execute_update("CREATE TABLE m (x)")
        assert memory_manager.execute_update("INSERT INTO m VALUES (?)", [b"\x00\x01"])

        assert memory_manager.execute_query("SELECT x FROM m") == [{"x": b"\x00\x01"}]


class TestDatabaseManagerLifecycle:
    """Opening, closing and path handling."""

    def test_context_manager(self, test_config, metrics_registry):
        """The context manager opens eagerly and closes on exit."""
        with DatabaseManager(config=test_config, metrics=metrics_registry) as db:
            assert db.is_open
            assert Path(db.db_path).exists()

        assert db.is_closed

    def test_lazy_open(self, test_config, metrics_registry):
        """Nothing is opened before the first operation."""
        db = DatabaseManager(config=test_config, metrics=metrics_registry)
        assert not db.is_open
        assert not Path(db.db_path).exists()
        assert db.last_insert_row_id() == 0
        assert db.last_error is None
        assert not db.is_open

        assert db.long_for_query("SELECT 1") == 1

        assert db.is_open
        db.close()

    def test_db_path_change(self, temp_dir, test_config, metrics_registry):
        """The path may change until the store is opened."""
        db = DatabaseManager(config=test_config, metrics=metrics_registry)
        db.db_path = temp_dir / "moved.db"
        assert db.open()
        assert (temp_dir / "moved.db").exists()

        with pytest.raises(RuntimeError):
            db.db_path = temp_dir / "again.db"
        db.close()

    def test_open_failure(self, temp_dir, metrics_registry):
        """An unusable path reports OPEN_FAILURE."""
        (temp_dir / "file").write_text("x")
        db = DatabaseManager(temp_dir / "file" / "db.sqlite", metrics=metrics_registry)

        assert not db.open()
        assert db.last_error.kind is ErrorKind.OPEN_FAILURE
        assert not db.execute_update("CREATE TABLE x (y)")

    def test_every_operation_fails_after_close(self, manager):
        """A closed manager is never reopened."""
        manager.close()
        assert manager.is_closed

        checks = [
            lambda: manager.execute_update("INSERT INTO t (name) VALUES ('x')") is False,
            lambda: manager.execute_query("SELECT * FROM t") is None,
            lambda: manager.execute_statements("SELECT 1") is False,
            lambda: manager.long_for_query("SELECT 1") == 0,
            lambda: manager.int_for_query("SELECT 1") == 0,
            lambda: manager.double_for_query("SELECT 1") == 0.0,
            lambda: manager.string_for_query("SELECT 1") == "",
            lambda: manager.last_insert_row_id() == 0,
            lambda: manager.begin_transaction(lambda txn: True) is False,
            lambda: manager.open() is False,
        ]
        for check in checks:
            manager.clear_last_error()
            assert check()
            assert manager.last_error.kind is ErrorKind.CONNECTION_CLOSED

        manager.clear_last_error()
        manager.close()
        assert manager.last_error.kind is ErrorKind.CONNECTION_CLOSED

    def test_data_survives_reopen(self, test_config, metrics_registry):
        """Committed data is on disk for the next manager."""
        with DatabaseManager(config=test_config, metrics=metrics_registry) as db:
            db.execute_update("CREATE TABLE kv (k TEXT PRIMARY KEY, v TEXT)")
            db.execute_update("INSERT INTO kv VALUES ('a', '1')")

        with DatabaseManager(config=test_config, metrics=metrics_registry) as db:
            assert db.string_for_query("SELECT v FROM kv WHERE k = 'a'") == "1"


class TestDatabaseManagerTransactions:
    """Transactions and calls made from inside a unit."""

    def test_manager_calls_inside_unit_join_the_transaction(self, manager):
        """Calls on the manager from the unit run in its transaction."""
        def unit(txn):
            manager.execute_update("INSERT INTO t (name) VALUES ('inner')")
            assert manager.long_for_query("SELECT COUNT(*) FROM t") == 1
            return False

        assert manager.run_transaction(unit) is TransactionOutcome.ROLLED_BACK
        assert count_of(manager) == 0

    def test_transaction_control_inside_unit_rejected(self, manager):
        """A unit cannot commit early through the manager or its handle."""
        results = []

        def unit(txn):
            txn.execute_update("INSERT INTO t (name) VALUES ('early')")
            results.append(manager.execute_update("COMMIT"))
            results.append(manager.execute_statements("COMMIT; BEGIN"))
            results.append(txn.execute_query("ROLLBACK"))
            return False

        assert manager.run_transaction(unit) is TransactionOutcome.ROLLED_BACK
        assert results == [False, False, None]
        assert manager.last_error.kind is ErrorKind.TRANSACTION_CONTROL_REJECTED
        assert count_of(manager) == 0

    def test_nested_begin_fails(self, manager):
        """A second transaction from inside a unit fails fast."""
        nested = []

        def unit(txn):
            nested.append(manager.begin_transaction(lambda inner: True))
            return txn.execute_update("INSERT INTO t (name) VALUES ('outer')")

        assert manager.begin_transaction(unit)
        assert nested == [False]
        assert manager.last_error.kind is ErrorKind.TRANSACTION_ALREADY_ACTIVE
        assert count_of(manager) == 1

    def test_close_inside_unit_refused(self, manager):
        """close() from a unit is refused and the connection stays open."""
        def unit(txn):
            manager.close()
            return True

        assert manager.begin_transaction(unit)
        assert manager.is_open
        assert manager.last_error.kind is ErrorKind.TRANSACTION_ALREADY_ACTIVE

    def test_unit_exception_propagates(self, manager):
        """An exception from the unit rolls back and propagates."""
        def unit(txn):
            txn.execute_update("INSERT INTO t (name) VALUES ('doomed')")
            raise RuntimeError("unit failed")

        with pytest.raises(RuntimeError, match="unit failed"):
            manager.begin_transaction(unit)

        assert manager.active_transaction is None
        assert count_of(manager) == 0
        assert manager.execute_update("INSERT INTO t (name) VALUES ('after')")

    def test_other_threads_wait_for_transaction(self, manager):
        """A caller on another thread sees only the committed result."""
        observed = []

        def reader():
            observed.append(manager.long_for_query("SELECT COUNT(*) FROM t"))

        readers = []

        def unit(txn):
            txn.execute_update("INSERT INTO t (name) VALUES ('first')")
            thread = threading.Thread(target=reader)
            thread.start()
            readers.append(thread)
            wait_until(lambda: manager.get_stats()["waiting"] == 1)
            txn.execute_update("INSERT INTO t (name) VALUES ('second')")
            return True

        assert manager.begin_transaction(unit)
        readers[0].join(timeout=5)

        assert observed == [2]


class TestDatabaseManagerConcurrency:
    """Many threads sharing one manager."""

    @pytest.mark.slow
    def test_concurrent_inserts(self, manager):
        """Every insert from every thread lands exactly once."""
        failures = []
        rowids = []
        lock = threading.Lock()

        def worker(n):
            for i in range(25):
                if not manager.execute_update(
                    "INSERT INTO t (name, age) VALUES (?, ?)", [f"w{n}-{i}", i]
                ):
                    failures.append((n, i))

        def txn_worker(n):
            for i in range(5):
                def unit(txn):
                    ok = txn.execute_update("INSERT INTO t (name) VALUES (?)", [f"txn{n}-{i}"])
                    with lock:
                        rowids.append(txn.last_insert_row_id())
                    return ok

                if not manager.begin_transaction(unit):
                    failures.append(("txn", n, i))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        threads += [threading.Thread(target=txn_worker, args=(n,)) for n in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert failures == []
        assert count_of(manager) == 8 * 25 + 2 * 5
        assert len(set(rowids)) == len(rowids) == 10
        assert manager.get_stats()["transactions"]["committed"] == 10


class TestDatabaseManagerObservability:
    """Statistics and metrics."""

    def test_get_stats(self, manager):
        """Statistics reflect operations and transactions."""
        manager.execute_update("INSERT INTO t (name) VALUES ('a')")
        manager.begin_transaction(lambda txn: False)
        manager.execute_query("SELECT nope")

        stats = manager.get_stats()

        assert stats["state"] == "open"
        assert stats["db_path"] == manager.db_path
        assert stats["last_insert_rowid"] == 1
        assert stats["operations"] >= 4
        assert stats["transactions"]["rolled_back"] == 1
        assert stats["last_error"].startswith("prepare_failure")

    def test_operation_metrics(self, manager, metrics_registry):
        """Each operation is counted with its status."""
        manager.execute_update("INSERT INTO t (name) VALUES ('a')")
        manager.execute_update("INSERT INTO t (name) VALUES ('a')")

        registry = metrics_registry.registry
        success = registry.get_sample_value(
            "sqlite_access_operations_total", {"operation": "execute_update", "status": "success"}
        )
        error = registry.get_sample_value(
            "sqlite_access_operations_total", {"operation": "execute_update", "status": "error"}
        )
        # the fixture's CREATE TABLE is the first success
        assert success == 2.0
        assert error == 1.0
        assert registry.get_sample_value("sqlite_access_serializer_waiting") == 0.0
        assert registry.get_sample_value("sqlite_access_errors_total", {"kind": "step_failure"}) == 1.0

    def test_repr(self, memory_manager):
        """repr shows path and state."""
        assert repr(memory_manager) == "DatabaseManager(db_path=':memory:', state=UNOPENED)"


class TestSharedManager:
    """The process-wide manager."""

    def test_shared_manager_lifecycle(self, temp_dir):
        """shared_manager is built once and closed on reset."""
        reset_shared_manager()
        config = Config(store=StoreConfig(db_path=str(temp_dir / "shared" / "app.db")))
        get_container().register_singleton(Config, config)

        db = shared_manager()
        assert shared_manager() is db
        assert db.db_path == config.store.db_path
        assert db.execute_update("CREATE TABLE s (x)")

        reset_shared_manager()

        assert db.is_closed
        get_container().register_singleton(Config, config)
        assert shared_manager() is not db
        reset_shared_manager()

    def test_exit_hook_registered_once(self, temp_dir, monkeypatch):
        """Rebuilding after reset does not stack exit hooks."""
        hooks = []
        monkeypatch.setattr(database_manager, "_exit_hook_registered", False)
        monkeypatch.setattr(database_manager.atexit, "register", hooks.append)
        config = Config(store=StoreConfig(db_path=str(temp_dir / "shared" / "hook.db")))

        for _ in range(3):
            reset_shared_manager()
            get_container().register_singleton(Config, config)
            shared_manager()
        current = shared_manager()

        assert hooks == [database_manager._close_shared_at_exit]

        hooks[0]()
        assert current.is_closed
        reset_shared_manager()
