"""
Tests for Operations facade.

Exercises every orchestration path over the fake channel: fan-out reports
with partial failures, sequential table update plans, config get/set and
script routing plus local script files.
"""
from __future__ import annotations

import asyncio

import pytest

from mobile_services.aggregation import CollectionResult, PlanOutcome
from mobile_services.api import MobileServiceApi
from mobile_services.errors import (
    InvalidSettingValue,
    ResourceNotFound,
    ScriptNameNotRecognized,
    UnknownSettingKey,
)
from mobile_services.operations import Operations, OpsConfig
from mobile_services.operations.facade import (
    NOT_CONFIGURED,
    UNAVAILABLE,
    TableReport,
    build_table_update_plan,
    load_script_file,
    merge_config_report,
    require_table,
    save_script_file,
    validate_permissions,
)
from mobile_services.routing import SchedulerScript, TableOperation, TableScript

from .conftest import SERVICE


@pytest.fixture
def ops(api):
    return Operations(OpsConfig(), api)


def _seed_table(channel, table="orders"):
    channel.put(f"{SERVICE}/tables", [{"name": table}])
    channel.put(f"{SERVICE}/tables/{table}", {"name": table, "metrics": {"recordCount": 3}})
    channel.put(f"{SERVICE}/tables/{table}/permissions", {"insert": "user", "read": "public"})
    channel.put(f"{SERVICE}/tables/{table}/columns", [{"name": "id", "type": "string", "indexed": True}])
    channel.put(f"{SERVICE}/tables/{table}/scripts", [{"operation": "insert", "sizeBytes": 12}])


class TestServiceCommands:
    """Test the single-call service verbs."""

    def test_regenerate_key(self, ops, channel):
        channel.respond("POST", f"{SERVICE}/regenerateKey", {"masterKey": "new"})
        assert asyncio.run(ops.regenerate_key(SERVICE, "master")) == {"masterKey": "new"}

    def test_regenerate_key_rejects_unknown_type(self, ops, channel):
        with pytest.raises(ValueError, match='The key type must be "application" or "master".'):
            asyncio.run(ops.regenerate_key(SERVICE, "admin"))
        assert channel.calls == []

    def test_list_services_empty(self, ops, channel):
        channel.respond("GET", "", None)
        assert asyncio.run(ops.list_services()) == []


class TestConfigList:
    """Test the five-way settings fan-out."""

    def test_all_sources_read(self, ops):
        report = asyncio.run(ops.config_list(SERVICE))
        settings = report.settings

        assert settings["dynamicSchemaEnabled"] == "true"
        assert settings["logLevel"] == "error"
        assert settings["microsoftAccountClientId"] == "live-id"
        assert settings["microsoftAccountPackageSID"] == NOT_CONFIGURED
        assert settings["apnsMode"] == "dev"
        assert settings["apnsCertificate"] == "cert"
        assert settings["facebookClientSecret"] == "fb-secret"
        assert settings["twitterClientId"] == "tw-id"
        assert settings["googleClientId"] == NOT_CONFIGURED
        assert len(settings) == 14
        assert set(report.sources) == {"service", "live", "auth", "apns", "log"}

    def test_failed_source_is_unavailable(self, ops, channel):
        channel.fail("GET", f"{SERVICE}/authsettings")

        settings = asyncio.run(ops.config_list(SERVICE)).settings

        for provider in ("twitter", "facebook", "google"):
            assert settings[f"{provider}ClientId"] == UNAVAILABLE
            assert settings[f"{provider}ClientSecret"] == UNAVAILABLE
        assert settings["logLevel"] == "error"
        assert settings["apnsPassword"] == "pw"

    def test_every_source_failing(self, ops, channel):
        for path in ("settings", "livesettings", "authsettings", "apns/settings", "logsettings"):
            channel.fail("GET", f"{SERVICE}/{path}")

        settings = asyncio.run(ops.config_list(SERVICE)).settings

        assert set(settings.values()) == {UNAVAILABLE}

    def test_dynamic_schema_missing_flag(self):
        outcome = CollectionResult(results={"service": {"name": SERVICE}})
        assert merge_config_report(outcome).settings["dynamicSchemaEnabled"] == NOT_CONFIGURED

    def test_dynamic_schema_false(self):
        outcome = CollectionResult(results={"service": {"dynamicSchemaEnabled": False}})
        assert merge_config_report(outcome).settings["dynamicSchemaEnabled"] == "false"

    def test_malformed_payloads_keep_the_rest_of_the_report(self):
        outcome = CollectionResult(results={
            "service": {"dynamicSchemaEnabled": True},
            "log": "not an object",
            "live": ["unexpected"],
            "apns": 7,
            "auth": ["junk", {"provider": "google", "appId": "g-id", "secret": "g-secret"}],
        })

        settings = merge_config_report(outcome).settings

        assert settings["dynamicSchemaEnabled"] == "true"
        assert settings["logLevel"] == NOT_CONFIGURED
        assert settings["microsoftAccountClientId"] == NOT_CONFIGURED
        assert settings["apnsMode"] == NOT_CONFIGURED
        assert settings["googleClientId"] == "g-id"
        assert settings["facebookClientId"] == NOT_CONFIGURED


class TestConfigGetSet:
    """Test single-setting commands."""

    def test_get(self, ops):
        assert asyncio.run(ops.config_get(SERVICE, "apnsPassword")) == "pw"

    def test_get_unknown_key(self, ops):
        with pytest.raises(UnknownSettingKey):
            asyncio.run(ops.config_get(SERVICE, "bogus"))

    def test_set_coerces_boolean(self, ops, channel):
        asyncio.run(ops.config_set(SERVICE, "dynamicSchemaEnabled", "false"))
        assert channel.get(f"{SERVICE}/settings")["dynamicSchemaEnabled"] is False

    def test_set_invalid_boolean_makes_no_calls(self, ops, channel):
        with pytest.raises(InvalidSettingValue):
            asyncio.run(ops.config_set(SERVICE, "dynamicSchemaEnabled", "maybe"))
        assert channel.calls == []


class TestPermissions:
    """Test role validation."""

    def test_drops_unset_roles(self):
        assert validate_permissions({"insert": "admin", "read": None, "update": ""}) == {"insert": "admin"}

    def test_rejects_unknown_role(self):
        with pytest.raises(ValueError, match="Authorization role for delete operation must be one of "
                                             "user, public, application, admin."):
            validate_permissions({"delete": "owner"})


class TestTableCommands:
    """Test table verbs."""

    def test_create_with_permissions(self, ops, channel):
        asyncio.run(ops.table_create(SERVICE, "orders", {"insert": "admin", "read": "public"}))
        assert channel.get(f"{SERVICE}/tables") == {"name": "orders", "insert": "admin", "read": "public"}

    def test_create_rejects_role_before_calling(self, ops, channel):
        with pytest.raises(ValueError):
            asyncio.run(ops.table_create(SERVICE, "orders", {"insert": "root"}))
        assert channel.calls == []

    def test_show_full_report(self, ops, channel):
        _seed_table(channel)
        report = asyncio.run(ops.table_show(SERVICE, "orders"))
        assert report.table["name"] == "orders"
        assert report.permissions == {"insert": "user", "read": "public"}
        assert report.columns[0]["name"] == "id"
        assert report.scripts == [{"operation": "insert", "sizeBytes": 12}]

    def test_show_partial_report(self, ops, channel):
        _seed_table(channel)
        channel.fail("GET", f"{SERVICE}/tables/orders/columns")

        report = asyncio.run(ops.table_show(SERVICE, "orders"))

        assert report.columns is None
        assert report.permissions is not None
        assert "columns" not in report.as_dict()

    def test_require_table(self):
        with pytest.raises(ResourceNotFound, match="Table orders or mobile service todolist does not exist."):
            require_table(TableReport(), SERVICE, "orders")
        assert require_table(TableReport(table={"name": "orders"}), SERVICE, "orders") == {"name": "orders"}

    def test_data_paging(self, ops, channel):
        channel.put(f"{SERVICE}/tables/orders/data", [{"id": "1"}])
        assert asyncio.run(ops.table_data(SERVICE, "orders", top=5)) == [{"id": "1"}]
        assert channel.calls[-1][2] == {"$top": "5"}


class TestTableUpdate:
    """Test sequential table update plans."""

    def test_plan_order(self, api):
        plan = build_table_update_plan(
            api, SERVICE, "orders",
            permissions={"read": "admin"},
            delete_index="a,b",
            add_index="c",
            delete_column="d",
        )
        assert [step.progress for step in plan] == [
            "Updating permissions",
            "Deleting index from column a",
            "Deleting index from column b",
            "Adding index to column c",
            "Deleting column d",
        ]

    def test_empty_plan(self, ops, channel):
        outcome = asyncio.run(ops.table_update(SERVICE, "orders"))
        assert outcome.empty
        assert channel.calls == []

    def test_steps_run_in_order(self, ops, channel):
        outcome = asyncio.run(ops.table_update(
            SERVICE, "orders",
            permissions={"insert": "admin"},
            delete_index="a",
            add_index="b",
            delete_column="c",
        ))

        assert outcome == PlanOutcome(executed=4, failures=0)
        assert [(m, p[3:]) for m, p, _, _ in channel.calls] == [
            ("PUT", ("permissions",)),
            ("DELETE", ("indexes", "a")),
            ("PUT", ("indexes", "b")),
            ("DELETE", ("columns", "c")),
        ]

    def test_failure_does_not_stop_plan(self, ops, channel):
        channel.fail("PUT", f"{SERVICE}/tables/orders/permissions")

        outcome = asyncio.run(ops.table_update(
            SERVICE, "orders", permissions={"insert": "admin"}, add_index="b,c",
        ))

        assert outcome.executed == 3
        assert outcome.failures == 1
        assert channel.calls_to("PUT")[1:] == [
            (SERVICE, "tables", "orders", "indexes", "b"),
            (SERVICE, "tables", "orders", "indexes", "c"),
        ]

    def test_invalid_role_checked_before_any_step(self, ops, channel):
        with pytest.raises(ValueError):
            asyncio.run(ops.table_update(SERVICE, "orders", permissions={"read": "nobody"}, add_index="x"))
        assert channel.calls == []


class TestScripts:
    """Test script listing and routing."""

    def _seed_scripts(self, channel):
        _seed_table(channel)
        channel.put(f"{SERVICE}/apns/scripts/feedback", "feedback()")
        channel.put(f"{SERVICE}/scheduler/jobs", [{"name": "nightly", "status": "enabled"}])

    def test_list_all_kinds(self, ops, channel):
        self._seed_scripts(channel)
        listing = asyncio.run(ops.script_list(SERVICE))
        assert listing.table == [{"operation": "insert", "sizeBytes": 12, "table": "orders"}]
        assert listing.shared == [{"name": "apnsFeedback", "sizeBytes": 10}]
        assert listing.scheduler == [{"name": "nightly", "status": "enabled"}]

    def test_list_with_failed_kind(self, ops, channel):
        self._seed_scripts(channel)
        channel.fail("GET", f"{SERVICE}/scheduler/jobs")
        listing = asyncio.run(ops.script_list(SERVICE))
        assert listing.scheduler is None
        assert listing.shared is not None
        assert set(listing.as_dict()) == {"table", "shared"}

    def test_download(self, ops, channel):
        channel.put(f"{SERVICE}/scheduler/jobs/nightly/script", "run()")
        descriptor, source = asyncio.run(ops.script_download(SERVICE, "scheduler/nightly.js"))
        assert descriptor == SchedulerScript("nightly")
        assert source == "run()"

    def test_invalid_name_makes_no_calls(self, ops, channel):
        for call in (ops.script_download(SERVICE, "table/orders"),
                     ops.script_upload(SERVICE, "tables/orders.read", "x"),
                     ops.script_delete(SERVICE, "shared/other")):
            with pytest.raises(ScriptNameNotRecognized):
                asyncio.run(call)
        assert channel.calls == []

    def test_upload_and_delete(self, ops, channel):
        descriptor = asyncio.run(ops.script_upload(SERVICE, "table/orders.read", "read()"))
        assert descriptor == TableScript("orders", TableOperation.READ)
        assert channel.get(f"{SERVICE}/tables/orders/scripts/read/code") == "read()"

        asyncio.run(ops.script_delete(SERVICE, "table/orders.read"))
        assert channel.calls[-1][:2] == ("DELETE", (SERVICE, "tables", "orders", "scripts", "read"))


class TestScriptFiles:
    """Test local script file handling."""

    def test_save_to_default_location(self, tmp_path):
        descriptor = TableScript("orders", TableOperation.READ)
        path = save_script_file(descriptor, "read()", base_dir=str(tmp_path))
        assert path == tmp_path / "table" / "orders.read.js"
        assert path.read_text() == "read()"

    def test_save_refuses_to_overwrite(self, tmp_path):
        target = tmp_path / "script.js"
        target.write_text("old")
        with pytest.raises(ValueError, match="already exists. Use --override to override."):
            save_script_file(SchedulerScript("nightly"), "new", file=str(target))
        assert target.read_text() == "old"

    def test_save_overwrite(self, tmp_path):
        target = tmp_path / "script.js"
        target.write_text("old")
        save_script_file(SchedulerScript("nightly"), "new", file=str(target), overwrite=True)
        assert target.read_text() == "new"

    def test_load_default_location(self, tmp_path):
        (tmp_path / "scheduler").mkdir()
        (tmp_path / "scheduler" / "nightly.js").write_text("run()")
        path, source = load_script_file(SchedulerScript("nightly"), base_dir=str(tmp_path))
        assert source == "run()"
        assert path.name == "nightly.js"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="Unable to read script from file"):
            load_script_file(SchedulerScript("nightly"), file=str(tmp_path / "missing.js"))


class TestActionTimeout:
    """Test that the configured deadline reaches the collector."""

    @pytest.mark.slow
    def test_hung_source_is_unavailable(self, channel):
        channel.delay("GET", f"{SERVICE}/logsettings", 5)
        ops = Operations(OpsConfig(action_timeout_s=0.05), MobileServiceApi(channel))

        settings = asyncio.run(ops.config_list(SERVICE)).settings

        assert settings["logLevel"] == UNAVAILABLE
        assert settings["apnsMode"] == "dev"
