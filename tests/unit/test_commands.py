"""Unit tests for CSV commands."""

import csv

import pytest
import respx
from httpx import Response

from hammer_csv.commands import CommandOptions, CsvCommand, ResolveCommand, coerce_id
from hammer_csv.config import CsvConfig, DispatchConfig, FailurePolicy, ForemanConfig
from hammer_csv.utils.exceptions import (
    CSVValidationError,
    DispatchError,
    DispatcherConfigError,
    ResourceNotFoundError,
    UsageError,
)


def read_output(path):
    with open(path, newline="") as f:
        return list(csv.DictReader(f))


class TestCommandOptions:
    """Test option validation and connection settings."""

    def test_csv_file_required_for_import(self):
        command = CsvCommand(CommandOptions())
        with pytest.raises(UsageError, match="--csv-file required"):
            command.validate_options()

    def test_export_needs_no_csv_file(self):
        CsvCommand(CommandOptions(csv_export=True)).validate_options()

    def test_options_override_config(self, csv_config):
        csv_config.foreman.timeout = 90
        options = CommandOptions(csv_export=True, server="https://other", username="ops")

        config = CsvCommand(options, csv_config).foreman_config()

        assert config.base_url == "https://other"
        assert config.username == "ops"
        assert config.password == "changeme"
        assert config.timeout == 90

    def test_options_without_config(self):
        options = CommandOptions(server="https://f", username="u", password="p")

        config = CsvCommand(options).foreman_config()

        assert config == ForemanConfig(base_url="https://f", username="u", password="p")

    def test_missing_connection_settings(self):
        options = CommandOptions(server="https://f")

        with pytest.raises(UsageError, match="--username, --password"):
            CsvCommand(options).foreman_config()

    async def test_import_row_not_implemented(self, tmp_csv, directory):
        options = CommandOptions(csv_file=tmp_csv("Kind,Name,Id\ndomain,example.com,\n"))

        with pytest.raises(DispatchError) as excinfo:
            await CsvCommand(options).execute(client=directory)

        assert excinfo.value.failures[0].kind == "NotImplementedError"

    @pytest.mark.parametrize(
        "value,expected",
        [("7", 7), (" 12 ", 12), ("", ""), ("abc", "abc"), (5, 5), (None, None)],
    )
    def test_coerce_id(self, value, expected):
        assert coerce_id(value) == expected


class TestResolveImport:
    """Test filling Id from Name."""

    async def test_fills_ids_in_input_order(self, tmp_csv, tmp_path, directory):
        """Test names resolve to ids, comments pass through, output keeps order."""
        csv_file = tmp_csv(
            "Kind,Name,Id\n"
            "organization,Library,\n"
            "#organization,Skipped,\n"
            "operatingsystem,RedHat 7.2,\n"
            "ptable,,\n"
            "Organization,Library,\n"
            "domain,example.com,\n"
        )
        output = tmp_path / "out.csv"
        command = ResolveCommand(CommandOptions(threads=3, csv_file=csv_file, output=output))

        result = await command.execute(client=directory)

        assert read_output(output) == [
            {"Kind": "organization", "Name": "Library", "Id": "7"},
            {"Kind": "#organization", "Name": "Skipped", "Id": ""},
            {"Kind": "operatingsystem", "Name": "RedHat 7.2", "Id": "4"},
            {"Kind": "ptable", "Name": "", "Id": ""},
            {"Kind": "Organization", "Name": "Library", "Id": "7"},
            {"Kind": "domain", "Name": "example.com", "Id": "3"},
        ]
        assert result.processed == 5
        assert result.skipped == 1
        assert command.registry.organization.stats.remote_calls == 1
        assert directory.search.await_count == 3

    async def test_unknown_name_fails_row(self, tmp_csv, tmp_path, directory):
        """Test a missing entity fails its row while the others complete."""
        csv_file = tmp_csv(
            "Kind,Name,Id\norganization,Nope,\ndomain,example.com,\nhost,web01,\n"
        )
        output = tmp_path / "out.csv"
        config = CsvConfig(dispatch=DispatchConfig(failure_policy=FailurePolicy.CONTINUE))
        command = ResolveCommand(CommandOptions(csv_file=csv_file, output=output), config)

        with pytest.raises(DispatchError) as excinfo:
            await command.execute(client=directory)

        failures = excinfo.value.failures
        assert [f.index for f in failures] == [0, 2]
        assert isinstance(failures[0].error, ResourceNotFoundError)
        assert isinstance(failures[1].error, CSVValidationError)
        assert command.last_result.processed == 1
        assert read_output(output)[1]["Id"] == "3"

    async def test_empty_name_on_required_kind_fails(self, tmp_csv, tmp_path, directory):
        csv_file = tmp_csv("Kind,Name,Id\ndomain,,\n")
        command = ResolveCommand(CommandOptions(csv_file=csv_file, output=tmp_path / "o.csv"))

        with pytest.raises(DispatchError) as excinfo:
            await command.execute(client=directory)

        assert excinfo.value.failures[0].kind == "ValueError"

    async def test_invalid_thread_count(self, tmp_csv, tmp_path, directory):
        csv_file = tmp_csv("Kind,Name,Id\ndomain,example.com,\n")
        command = ResolveCommand(
            CommandOptions(threads=0, csv_file=csv_file, output=tmp_path / "o.csv")
        )

        with pytest.raises(DispatcherConfigError):
            await command.execute(client=directory)

    async def test_usage_error_before_any_lookup(self, directory):
        with pytest.raises(UsageError):
            await ResolveCommand(CommandOptions()).execute(client=directory)
        directory.search.assert_not_awaited()


class TestResolveExport:
    """Test filling Name from Id."""

    async def test_fills_names_from_csv(self, tmp_csv, tmp_path, directory):
        csv_file = tmp_csv(
            "Kind,Name,Id\ndomain,,3\noperatingsystem,,5\nptable,,\norganization,,7\n"
        )
        output = tmp_path / "out.csv"
        options = CommandOptions(threads=2, csv_export=True, csv_file=csv_file, output=output)

        await ResolveCommand(options).execute(client=directory)

        assert [row["Name"] for row in read_output(output)] == [
            "example.com",
            "CentOS 6",
            "",
            "Library",
        ]
        directory.search.assert_not_awaited()

    async def test_lists_every_entity(self, tmp_path, directory, foreman_records):
        """Test export without an input file dumps every kind."""
        output = tmp_path / "all.csv"
        options = CommandOptions(threads=4, csv_export=True, output=output)

        await ResolveCommand(options).execute(client=directory)

        rows = read_output(output)
        assert len(rows) == sum(len(records) for records in foreman_records.values())
        assert {"Kind": "organization", "Name": "Library", "Id": "7"} in rows
        assert {"Kind": "operatingsystem", "Name": "RedHat 7.2", "Id": "4"} in rows
        assert [row["Kind"] for row in rows][:2] == ["organization", "organization"]

    async def test_listing_fills_names_without_fetching(self, tmp_path, directory):
        """Test listed records seed the caches so no entity is fetched by id."""
        options = CommandOptions(threads=3, csv_export=True, output=tmp_path / "all.csv")
        command = ResolveCommand(options)

        await command.execute(client=directory)

        directory.fetch_by_id.assert_not_awaited()
        assert directory.search.await_count == 6
        assert {"Kind": "operatingsystem", "Name": "CentOS 6", "Id": "5"} in read_output(
            tmp_path / "all.csv"
        )
        assert command.registry.organization.stats.cache_hits == 2
        assert command.registry.organization.stats.remote_calls == 0

    async def test_export_to_stdout(self, tmp_csv, directory, capsys):
        csv_file = tmp_csv("Kind,Name,Id\norganization,,8\n")
        options = CommandOptions(csv_export=True, csv_file=csv_file)

        await ResolveCommand(options).execute(client=directory)

        assert capsys.readouterr().out.splitlines() == [
            "Kind,Name,Id",
            "organization,Engineering,8",
        ]


class TestResolveAgainstForeman:
    """Test a command end to end over HTTP."""

    async def test_execute_builds_client(self, tmp_csv, tmp_path, csv_config):
        csv_file = tmp_csv("Kind,Name,Id\norganization,Library,\n")
        output = tmp_path / "out.csv"
        command = ResolveCommand(CommandOptions(csv_file=csv_file, output=output), csv_config)

        with respx.mock(base_url="https://foreman.example.com/api") as respx_mock:
            route = respx_mock.get("/organizations").mock(
                return_value=Response(200, json={"results": [{"id": 7, "name": "Library"}]})
            )

            await command.execute()

        assert route.call_count == 1
        assert read_output(output) == [{"Kind": "organization", "Name": "Library", "Id": "7"}]
