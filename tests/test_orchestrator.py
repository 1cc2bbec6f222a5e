"""Tests for operation dispatch and the compare/migrate pipelines.

Uses the in-memory harness from conftest: ``DEV`` is ``shop_dev`` and
``PROD`` is ``shop_prod``; each is backed by a registered snapshot or,
when none is registered, is unreachable.
"""

from unittest.mock import AsyncMock

import pytest

from db_drift.config.store import ConnectionStore
from db_drift.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    DriverCapabilityError,
    StatementExecutionError,
    UnknownOperationError,
)
from db_drift.orchestration import (
    EQUALITY_ENUMERATED_TYPES,
    DriftContext,
    Orchestrator,
    PermissionProbeResult,
)
from db_drift.schema.exporter import SchemaExporter


def _statuses(rows) -> dict[str, str]:
    return {row.name: row.status for row in rows}


# ============================================================================
# Test: Dispatch
# ============================================================================


class TestDispatch:
    """Verify operation routing and payload pre-processing."""

    def test_supported_operations(self, harness) -> None:
        assert harness.orchestrator.operations == [
            "getSchemaObjects",
            "export",
            "compare",
            "migrate",
            "test-connection",
            "setup-restricted-user",
            "generate-user-setup-script",
            "probe-restricted-user",
        ]

    @pytest.mark.asyncio
    async def test_unknown_operation(self, harness) -> None:
        """Unknown tags fail before any driver is opened or config written."""
        with pytest.raises(UnknownOperationError, match="'foo'") as exc_info:
            await harness.orchestrator.execute(
                "foo", {"srcEnv": "QA", "sourceConfig": {"database": "shop_qa"}}
            )

        assert exc_info.value.operation == "foo"
        assert harness.drivers == []
        assert "QA" not in harness.context.config.environments

    @pytest.mark.asyncio
    async def test_inline_source_config_is_registered(self, harness, ddl: dict[str, str]) -> None:
        harness.add_schema("shop_qa", TABLE={"users": ddl["users"]})
        harness.add_schema("shop_prod", TABLE={"users": ddl["users"]})

        rows = await harness.orchestrator.execute(
            "compare",
            {
                "srcEnv": "QA",
                "destEnv": "PROD",
                "type": "tables",
                "sourceConfig": {"name": "shop_qa", "username": "qa"},
            },
        )

        entry = harness.context.config.get_connection("QA")
        assert entry.config.database == "shop_qa"
        assert entry.config.user == "qa"
        assert _statuses(rows) == {"users": "equal"}

    @pytest.mark.asyncio
    async def test_inline_target_config_replaces_existing(self, harness, ddl: dict[str, str]) -> None:
        harness.add_schema("shop_dev", TABLE={"users": ddl["users"]})
        harness.add_schema("shop_copy", TABLE={"users": ddl["users"]})

        await harness.orchestrator.execute(
            "compare",
            {"srcEnv": "DEV", "destEnv": "PROD", "targetConfig": {"database": "shop_copy"}},
        )

        assert harness.context.config.get_connection("PROD").config.database == "shop_copy"

    @pytest.mark.asyncio
    async def test_domain_normalization_is_registered(self, harness) -> None:
        harness.add_schema("shop_dev")

        await harness.orchestrator.execute(
            "getSchemaObjects",
            {
                "connection": {"database": "shop_dev"},
                "type": "tables",
                "domainNormalization": {"pattern": "dev", "replacement": "prod"},
            },
        )

        assert harness.context.config.normalize("dev.example.com") == "prod.example.com"

    @pytest.mark.asyncio
    async def test_malformed_inline_config(self, harness) -> None:
        with pytest.raises(ConfigurationError, match="sourceConfig"):
            await harness.orchestrator.execute(
                "compare", {"srcEnv": "DEV", "destEnv": "PROD", "sourceConfig": "oops"}
            )
        assert harness.drivers == []

    @pytest.mark.asyncio
    async def test_missing_required_field(self, harness) -> None:
        with pytest.raises(ConfigurationError, match="compare"):
            await harness.orchestrator.execute("compare", {"srcEnv": "DEV"})
        assert harness.drivers == []

    @pytest.mark.asyncio
    async def test_unknown_environment(self, harness) -> None:
        with pytest.raises(ConfigurationError, match="STAGE"):
            await harness.orchestrator.execute("compare", {"srcEnv": "STAGE", "destEnv": "PROD"})
        assert harness.drivers == []


# ============================================================================
# Test: getSchemaObjects
# ============================================================================


class TestGetSchemaObjects:
    """Verify name listing for one kind."""

    @pytest.mark.asyncio
    async def test_lists_tables(self, harness) -> None:
        harness.add_schema("shop_dev", TABLE={"t1": "x", "t2": "y"})

        names = await harness.orchestrator.execute(
            "getSchemaObjects", {"connection": {"database": "shop_dev"}, "type": "tables"}
        )

        assert names == ["t1", "t2"]
        assert len(harness.drivers) == 1
        assert harness.drivers[0].connect_calls == 1
        assert harness.drivers[0].disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_kind_tag_is_case_insensitive(self, harness, ddl: dict[str, str]) -> None:
        harness.add_schema("shop_dev", VIEW={"v_active_users": ddl["v_active_users"]})

        names = await harness.orchestrator.execute(
            "getSchemaObjects", {"connection": {"database": "shop_dev"}, "type": "VIEWS"}
        )

        assert names == ["v_active_users"]

    @pytest.mark.asyncio
    async def test_events_listed(self, harness) -> None:
        harness.add_schema("shop_dev", EVENT={"e_purge": "CREATE EVENT e_purge"})

        names = await harness.orchestrator.execute(
            "getSchemaObjects", {"connection": {"database": "shop_dev"}, "type": "events"}
        )

        assert names == ["e_purge"]

    @pytest.mark.asyncio
    async def test_unrecognized_kind_returns_empty(self, harness) -> None:
        harness.add_schema("shop_dev", TABLE={"t1": "x"})

        names = await harness.orchestrator.execute(
            "getSchemaObjects", {"connection": {"database": "shop_dev"}, "type": "sequences"}
        )

        assert names == []
        assert harness.drivers[0].disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_missing_connection(self, harness) -> None:
        with pytest.raises(ConfigurationError):
            await harness.orchestrator.execute("getSchemaObjects", {"type": "tables"})


# ============================================================================
# Test: compare (tables)
# ============================================================================


class TestCompareTables:
    """Verify the four-pass table classification."""

    def _scenario_a(self, harness, ddl: dict[str, str]) -> None:
        harness.add_schema("shop_dev", TABLE={"users": ddl["users"], "orders": ddl["orders"]})
        harness.add_schema("shop_prod", TABLE={"users": ddl["users"], "legacy": ddl["legacy"]})

    @pytest.mark.asyncio
    async def test_equal_and_one_sided_tables(self, harness, ddl: dict[str, str]) -> None:
        self._scenario_a(harness, ddl)

        rows = await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD", "type": "tables"}
        )
        by_name = {row.name: row for row in rows}

        assert _statuses(rows) == {
            "users": "equal",
            "orders": "missing_in_target",
            "legacy": "missing_in_source",
        }
        assert by_name["users"].ddl == []
        assert by_name["orders"].ddl == [ddl["orders"]]
        assert by_name["legacy"].ddl == ["DROP TABLE IF EXISTS `legacy`;"]
        assert all(row.type == "TABLES" for row in rows)

    @pytest.mark.asyncio
    async def test_different_table(self, harness, ddl: dict[str, str]) -> None:
        harness.add_schema("shop_dev", TABLE={"users": ddl["users"]})
        harness.add_schema("shop_prod", TABLE={"users": ddl["users_old"]})

        [row] = await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD"}
        )

        assert row.status == "different"
        assert row.ddl == [
            "ALTER TABLE `users` ADD COLUMN `name` varchar(100) DEFAULT NULL AFTER `email`;",
            "ALTER TABLE `users` MODIFY COLUMN `email` varchar(255) NOT NULL;",
            "ALTER TABLE `users` ADD UNIQUE KEY `uq_users_email` (`email`);",
        ]
        assert row.diff.source == ddl["users"]
        assert row.diff.target == ddl["users_old"]

    @pytest.mark.asyncio
    async def test_options_only_difference_has_statements(
        self, harness, ddl: dict[str, str]
    ) -> None:
        harness.add_schema("shop_dev", TABLE={"legacy": ddl["legacy"]})
        harness.add_schema("shop_prod", TABLE={"legacy": ddl["legacy"] + " COMMENT='old'"})

        [row] = await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD"}
        )

        assert row.status == "different"
        assert row.ddl == ["ALTER TABLE `legacy` COMMENT='';"]

    @pytest.mark.asyncio
    async def test_unresettable_destination_option_is_equal(self, harness) -> None:
        harness.add_schema("shop_dev", TABLE={"t": "CREATE TABLE `t` (\n  `id` int\n)"})
        harness.add_schema(
            "shop_prod", TABLE={"t": "CREATE TABLE `t` (\n  `id` int\n) ENGINE=InnoDB"}
        )

        [row] = await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD"}
        )

        assert row.status == "equal"
        assert row.ddl == []

    @pytest.mark.asyncio
    async def test_rows_partition_union_of_names(self, harness, ddl: dict[str, str]) -> None:
        harness.add_schema(
            "shop_dev",
            TABLE={"users": ddl["users"], "orders": ddl["orders"], "same": ddl["legacy"]},
        )
        harness.add_schema(
            "shop_prod",
            TABLE={"users": ddl["users_old"], "legacy": ddl["legacy"], "same": ddl["legacy"]},
        )

        rows = await harness.orchestrator.execute("compare", {"srcEnv": "DEV", "destEnv": "PROD"})
        names = [row.name for row in rows]

        assert len(names) == len(set(names))
        assert set(names) == {"users", "orders", "same", "legacy"}
        for row in rows:
            assert (row.ddl == []) == (row.status == "equal")

    @pytest.mark.asyncio
    async def test_repeated_compare_is_identical(self, harness, ddl: dict[str, str]) -> None:
        self._scenario_a(harness, ddl)
        payload = {"srcEnv": "DEV", "destEnv": "PROD", "type": "tables"}

        first = await harness.orchestrator.execute("compare", payload)
        second = await harness.orchestrator.execute("compare", payload)

        assert [r.model_dump() for r in first] == [r.model_dump() for r in second]

    @pytest.mark.asyncio
    async def test_every_row_persisted_once(self, harness, ddl: dict[str, str]) -> None:
        self._scenario_a(harness, ddl)

        rows = await harness.orchestrator.execute("compare", {"srcEnv": "DEV", "destEnv": "PROD"})

        records = [call.args[0] for call in harness.storage.save_comparison.await_args_list]
        assert len(records) == len(rows)
        assert {r.name: r.status for r in records} == _statuses(rows)
        legacy = next(r for r in records if r.name == "legacy")
        assert legacy.src_env == "DEV"
        assert legacy.dest_env == "PROD"
        assert legacy.database == "shop_dev"
        assert legacy.alter_statements == ["DROP TABLE IF EXISTS `legacy`;"]

    @pytest.mark.asyncio
    async def test_both_drivers_released(self, harness, ddl: dict[str, str]) -> None:
        self._scenario_a(harness, ddl)

        await harness.orchestrator.execute("compare", {"srcEnv": "DEV", "destEnv": "PROD"})

        assert len(harness.drivers) == 2
        assert [d.disconnect_calls for d in harness.drivers] == [1, 1]

    @pytest.mark.asyncio
    async def test_unreachable_destination(self, harness, ddl: dict[str, str]) -> None:
        """Source is released even though the destination never connected."""
        harness.add_schema("shop_dev", TABLE={"users": ddl["users"]})

        with pytest.raises(DatabaseConnectionError):
            await harness.orchestrator.execute("compare", {"srcEnv": "DEV", "destEnv": "PROD"})

        src, dest = harness.drivers
        assert src.connect_calls == 1
        assert src.disconnect_calls == 1
        assert dest.disconnect_calls == 1
        harness.storage.save_comparison.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_kind(self, harness) -> None:
        with pytest.raises(ConfigurationError, match="sequences"):
            await harness.orchestrator.execute(
                "compare", {"srcEnv": "DEV", "destEnv": "PROD", "type": "sequences"}
            )
        assert harness.drivers == []


# ============================================================================
# Test: compare (non-table objects)
# ============================================================================


class TestCompareObjects:
    """Verify object classification and the equality enumeration pass."""

    @pytest.mark.asyncio
    async def test_views(self, harness, ddl: dict[str, str]) -> None:
        harness.add_schema(
            "shop_dev",
            VIEW={
                "v_active_users": ddl["v_active_users"],
                "v_new": "CREATE VIEW `v_new` AS select 1",
                "v_changed": "CREATE VIEW `v_changed` AS select 2",
            },
        )
        harness.add_schema(
            "shop_prod",
            VIEW={
                "v_active_users": ddl["v_active_users"],
                "v_old": "CREATE VIEW `v_old` AS select 0",
                "v_changed": "CREATE VIEW `v_changed` AS select 1",
            },
        )

        rows = await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD", "type": "views"}
        )
        by_name = {row.name: row for row in rows}

        assert _statuses(rows) == {
            "v_active_users": "equal",
            "v_new": "missing_in_target",
            "v_old": "missing_in_source",
            "v_changed": "different",
        }
        assert by_name["v_new"].ddl == ["CREATE VIEW `v_new` AS select 1"]
        assert by_name["v_old"].ddl == ["DROP VIEW IF EXISTS `v_old`;"]
        assert by_name["v_changed"].ddl == ["CREATE OR REPLACE VIEW `v_changed` AS select 2"]
        assert by_name["v_changed"].diff.target == "CREATE VIEW `v_changed` AS select 1"
        assert by_name["v_old"].diff.source is None
        assert all(row.type == "VIEWS" for row in rows)

    @pytest.mark.asyncio
    async def test_other_kinds_are_filtered_out(self, harness) -> None:
        harness.add_schema(
            "shop_dev",
            PROCEDURE={"p_same": "CREATE PROCEDURE p_same() SELECT 1"},
            FUNCTION={"f_new": "CREATE FUNCTION f_new() RETURNS int RETURN 1"},
        )
        harness.add_schema(
            "shop_prod", PROCEDURE={"p_same": "CREATE PROCEDURE p_same() SELECT 1"}
        )

        rows = await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD", "type": "procedures"}
        )

        assert _statuses(rows) == {"p_same": "equal"}
        assert rows[0].type == "PROCEDURES"

    @pytest.mark.asyncio
    async def test_altered_trigger_drops_then_creates(self, harness) -> None:
        harness.add_schema("shop_dev", TRIGGER={"trg": "CREATE TRIGGER trg v2"})
        harness.add_schema("shop_prod", TRIGGER={"trg": "CREATE TRIGGER trg v1"})

        [row] = await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD", "type": "triggers"}
        )

        assert row.ddl == ["DROP TRIGGER IF EXISTS `trg`;", "CREATE TRIGGER trg v2"]

    @pytest.mark.asyncio
    async def test_identical_events_produce_no_row(self, harness) -> None:
        """Events are diffed but never enumerated as equal."""
        event = "CREATE EVENT e_same ON SCHEDULE EVERY 1 DAY DO SELECT 1"
        harness.add_schema(
            "shop_dev",
            EVENT={"e_same": event, "e_changed": "CREATE EVENT e_changed v2"},
        )
        harness.add_schema(
            "shop_prod",
            EVENT={"e_same": event, "e_changed": "CREATE EVENT e_changed v1"},
        )

        rows = await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD", "type": "events"}
        )

        assert "EVENT" not in EQUALITY_ENUMERATED_TYPES
        assert _statuses(rows) == {"e_changed": "different"}

    @pytest.mark.asyncio
    async def test_object_rows_persisted(self, harness) -> None:
        harness.add_schema("shop_dev", VIEW={"v": "CREATE VIEW v"})
        harness.add_schema("shop_prod", VIEW={"v": "CREATE VIEW v"})

        await harness.orchestrator.execute(
            "compare", {"srcEnv": "DEV", "destEnv": "PROD", "type": "views"}
        )

        [record] = [call.args[0] for call in harness.storage.save_comparison.await_args_list]
        assert (record.type, record.name, record.status) == ("VIEWS", "v", "equal")
        assert record.alter_statements == []


# ============================================================================
# Test: migrate
# ============================================================================


def _row(name: str, *ddl: str, status: str = "different") -> dict:
    return {"name": name, "type": "TABLES", "status": status, "ddl": list(ddl)}


class TestMigrate:
    """Verify per-row isolation and outcome persistence."""

    @pytest.mark.asyncio
    async def test_failing_row_is_isolated(self, harness) -> None:
        harness.add_schema("shop_prod")
        harness.fail_statements.add("ALTER TABLE `orders` ADD COLUMN `x` int;")

        result = await harness.orchestrator.execute(
            "migrate",
            {
                "srcEnv": "DEV",
                "destEnv": "PROD",
                "objects": [
                    _row("users", "ALTER TABLE `users` DROP COLUMN `tmp`;"),
                    _row("orders", "ALTER TABLE `orders` ADD COLUMN `x` int;"),
                    _row("legacy", "DROP TABLE IF EXISTS `legacy`;", status="missing_in_source"),
                ],
            },
        )

        assert result.success is True
        assert [row.name for row in result.successful] == ["users", "legacy"]
        assert [row.name for row in result.failed] == ["orders"]
        assert result.failed[0].error == "boom"

        calls = harness.storage.save_migration.await_args_list
        assert len(calls) == 3
        assert calls[1].args == (
            "PROD", "shop_prod", "TABLES", "orders", "different", "FAILED", "boom",
        )
        assert calls[2].args == (
            "PROD", "shop_prod", "TABLES", "legacy", "missing_in_source", "SUCCESS",
        )

    @pytest.mark.asyncio
    async def test_failure_aborts_rest_of_row_only(self, harness) -> None:
        harness.add_schema("shop_prod")
        harness.fail_statements.add("s2")

        result = await harness.orchestrator.execute(
            "migrate",
            {"destEnv": "PROD", "objects": [_row("a", "s1", "s2", "s3"), _row("b", "s4")]},
        )

        assert harness.drivers[0].statements == ["s1", "s2", "s4"]
        assert [row.name for row in result.failed] == ["a"]
        assert [row.name for row in result.successful] == ["b"]

    @pytest.mark.asyncio
    async def test_failed_row_keeps_extra_fields(self, harness) -> None:
        harness.add_schema("shop_prod")
        harness.fail_statements.add("s1")
        row = {**_row("a", "s1"), "diff": {"source": "x", "target": "y"}}

        result = await harness.orchestrator.execute(
            "migrate", {"destEnv": "PROD", "objects": [row]}
        )

        dumped = result.failed[0].model_dump()
        assert dumped["diff"] == {"source": "x", "target": "y"}
        assert dumped["error"] == "boom"

    @pytest.mark.asyncio
    async def test_string_ddl(self, harness) -> None:
        harness.add_schema("shop_prod")

        await harness.orchestrator.execute(
            "migrate",
            {"destEnv": "PROD", "objects": [{"name": "v", "type": "VIEWS", "ddl": "CREATE VIEW v"}]},
        )

        assert harness.drivers[0].statements == ["CREATE VIEW v"]

    @pytest.mark.asyncio
    async def test_single_driver_released_once(self, harness) -> None:
        harness.add_schema("shop_prod")

        await harness.orchestrator.execute(
            "migrate", {"destEnv": "PROD", "objects": [_row("a", "s1"), _row("b", "s2")]}
        )

        assert len(harness.drivers) == 1
        assert harness.drivers[0].connect_calls == 1
        assert harness.drivers[0].disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_unreachable_destination_raises(self, harness) -> None:
        with pytest.raises(DatabaseConnectionError):
            await harness.orchestrator.execute(
                "migrate", {"destEnv": "PROD", "objects": [_row("a", "s1")]}
            )
        harness.storage.save_migration.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_objects(self, harness) -> None:
        with pytest.raises(ConfigurationError):
            await harness.orchestrator.execute("migrate", {"destEnv": "PROD"})
        assert harness.drivers == []


# ============================================================================
# Test: test-connection
# ============================================================================


class TestTestConnection:
    """Verify structured connection test results."""

    @pytest.mark.asyncio
    async def test_success(self, harness) -> None:
        harness.add_schema("shop_dev")

        result = await harness.orchestrator.execute(
            "test-connection", {"connection": {"database": "shop_dev"}}
        )

        assert result.success is True
        assert harness.drivers[0].statements == ["SELECT 1"]
        assert harness.drivers[0].disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, harness) -> None:
        result = await harness.orchestrator.execute(
            "test-connection", {"connection": {"database": "shop_missing"}}
        )

        assert result.success is False
        assert "not found" in result.message

    @pytest.mark.asyncio
    async def test_payload_is_the_connection(self, harness) -> None:
        harness.add_schema("shop_dev")

        result = await harness.orchestrator.execute("test-connection", {"database": "shop_dev"})

        assert result.success is True

    @pytest.mark.asyncio
    async def test_unknown_driver_type_reported(self, harness) -> None:
        result = await harness.orchestrator.execute(
            "test-connection", {"connection": {"type": "oracle"}}
        )

        assert result.success is False
        assert "oracle" in result.message


# ============================================================================
# Test: setup-restricted-user
# ============================================================================


class TestSetupRestrictedUser:
    """Verify all-or-nothing-up-to-failure script execution."""

    SCRIPT = (
        "CREATE USER IF NOT EXISTS 'ro'@'%' IDENTIFIED BY 'pw';\n"
        "GRANT SELECT, SHOW VIEW ON `shop`.* TO 'ro'@'%';\n"
        "FLUSH PRIVILEGES;\n"
    )

    @pytest.mark.asyncio
    async def test_runs_each_statement(self, harness) -> None:
        harness.add_schema("shop_dev")

        result = await harness.orchestrator.execute(
            "setup-restricted-user",
            {"adminConnection": {"database": "shop_dev"}, "script": self.SCRIPT},
        )

        assert result.success is True
        assert harness.drivers[0].statements == [
            "CREATE USER IF NOT EXISTS 'ro'@'%' IDENTIFIED BY 'pw'",
            "GRANT SELECT, SHOW VIEW ON `shop`.* TO 'ro'@'%'",
            "FLUSH PRIVILEGES",
        ]

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self, harness) -> None:
        harness.add_schema("shop_dev")
        failing = "GRANT SELECT, SHOW VIEW ON `shop`.* TO 'ro'@'%'"
        harness.fail_statements.add(failing)

        with pytest.raises(StatementExecutionError) as exc_info:
            await harness.orchestrator.execute(
                "setup-restricted-user",
                {"adminConnection": {"database": "shop_dev"}, "script": self.SCRIPT},
            )

        assert exc_info.value.statement == failing
        assert failing in str(exc_info.value)
        assert "FLUSH PRIVILEGES" not in harness.drivers[0].statements
        assert harness.drivers[0].disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_semicolons_inside_quotes(self, harness) -> None:
        harness.add_schema("shop_dev")
        script = (
            "CREATE USER 'ro'@'%' IDENTIFIED BY 'a;b''c\\\\';\n"
            "GRANT SELECT ON `sh;op`.* TO 'ro'@'%';\n"
        )

        await harness.orchestrator.execute(
            "setup-restricted-user",
            {"adminConnection": {"database": "shop_dev"}, "script": script},
        )

        assert harness.drivers[0].statements == [
            "CREATE USER 'ro'@'%' IDENTIFIED BY 'a;b''c\\\\'",
            "GRANT SELECT ON `sh;op`.* TO 'ro'@'%'",
        ]

    @pytest.mark.asyncio
    async def test_generated_script_with_semicolon_password(self, harness) -> None:
        generator = Orchestrator(DriftContext(config=ConnectionStore(), storage=AsyncMock()))
        script = await generator.execute(
            "generate-user-setup-script",
            {
                "adminConnection": {"host": "db", "database": "shop"},
                "restrictedUser": {"username": "ro", "password": "p;w'x"},
                "permissions": {},
            },
        )
        harness.add_schema("shop_dev")

        await harness.orchestrator.execute(
            "setup-restricted-user",
            {"adminConnection": {"database": "shop_dev"}, "script": script},
        )

        statements = harness.drivers[0].statements
        assert len(statements) == 3
        assert statements[0].endswith("IDENTIFIED BY 'p;w''x'")
        assert statements[-1] == "FLUSH PRIVILEGES"

    @pytest.mark.asyncio
    async def test_script_as_list(self, harness) -> None:
        harness.add_schema("shop_dev")

        await harness.orchestrator.execute(
            "setup-restricted-user",
            {"adminConnection": {"database": "shop_dev"}, "script": ["A", " ", "B"]},
        )

        assert harness.drivers[0].statements == ["A", "B"]

    @pytest.mark.asyncio
    async def test_missing_script(self, harness) -> None:
        with pytest.raises(ConfigurationError):
            await harness.orchestrator.execute(
                "setup-restricted-user", {"adminConnection": {"database": "shop_dev"}}
            )
        assert harness.drivers == []


# ============================================================================
# Test: generate-user-setup-script
# ============================================================================


class TestGenerateUserSetupScript:
    """Verify capability gating and script generation."""

    @pytest.mark.asyncio
    async def test_capability_absent(self, harness) -> None:
        with pytest.raises(DriverCapabilityError) as exc_info:
            await harness.orchestrator.execute(
                "generate-user-setup-script",
                {
                    "adminConnection": {"database": "shop_dev"},
                    "restrictedUser": {"username": "ro"},
                    "permissions": {"writeAlter": False},
                },
            )

        assert "memory" in str(exc_info.value)
        assert "user setup generation" in str(exc_info.value)
        assert harness.drivers[0].connect_calls == 0

    @pytest.mark.asyncio
    async def test_mysql_script(self) -> None:
        orchestrator = Orchestrator(DriftContext(config=ConnectionStore(), storage=AsyncMock()))

        script = await orchestrator.execute(
            "generate-user-setup-script",
            {
                "adminConnection": {"host": "db", "database": "shop"},
                "restrictedUser": {"password": "pw"},
                "permissions": {"writeAlter": True},
            },
        )

        assert script.startswith("CREATE USER IF NOT EXISTS 'drift_user'@'%'")
        assert "ON `shop`.*" in script
        assert "ALTER" in script

    @pytest.mark.asyncio
    async def test_missing_permissions(self, harness) -> None:
        with pytest.raises(ConfigurationError):
            await harness.orchestrator.execute(
                "generate-user-setup-script",
                {"adminConnection": {}, "restrictedUser": {}},
            )


# ============================================================================
# Test: probe-restricted-user and export
# ============================================================================


class TestProbeAndExport:
    """Verify the probe and export operations through dispatch."""

    @pytest.mark.asyncio
    async def test_probe_writer(self, harness) -> None:
        harness.add_schema("shop_dev")

        result = await harness.orchestrator.execute(
            "probe-restricted-user",
            {"connection": {"database": "shop_dev"}, "permissions": {"writeAlter": True}},
        )

        assert result == PermissionProbeResult(baseConn="pass", schemaRead="pass", sandboxTest="pass")
        assert harness.drivers[0].disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_probe_unreachable(self, harness) -> None:
        result = await harness.orchestrator.execute(
            "probe-restricted-user", {"connection": {"database": "shop_missing"}}
        )

        assert result.base_conn == "fail"
        assert result.sandbox_test == "fail"

    @pytest.mark.asyncio
    async def test_export(self, harness, ddl: dict[str, str]) -> None:
        harness.add_schema("shop_dev", TABLE={"users": ddl["users"]})

        document = await harness.orchestrator.execute("export", {"env": "DEV"})

        assert document["database"] == "shop_dev"
        assert document["objects"] == {"TABLE": {"users": ddl["users"]}}

    def test_exporter_built_with_context(self) -> None:
        context = DriftContext(config=ConnectionStore(), storage=AsyncMock())

        assert isinstance(context.exporter, SchemaExporter)
