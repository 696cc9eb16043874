"""Command base for CSV import and export.

A command reads CSV rows, translates names and identifiers through the
resolver caches, and fans the rows out to concurrent workers. Subclasses
provide the per-row work:

- import_row(row): called for each non-comment row of --csv-file
- export_rows(): produce and write rows when --csv-export is set

One ResolverRegistry is created per execute() and shared by every worker,
so each name or identifier costs at most one remote call per run.
"""

import dataclasses
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog

from ..config import CsvConfig, ForemanConfig
from ..constants import DEFAULT_THREAD_COUNT
from ..core.csv_io import read_rows, write_rows
from ..core.dispatcher import DispatchResult, RowCallback, RowDispatcher
from ..core.resolver import EntityResolver, ResolverRegistry
from ..foreman.client import DirectoryClient, ForemanClient
from ..foreman.response_models import unwrap_record
from ..utils.exceptions import CSVValidationError, DispatchError, UsageError

logger = structlog.get_logger(__name__)


@dataclasses.dataclass
class CommandOptions:
    """
    Options shared by every CSV command.

    Attributes:
        threads: Number of concurrent workers
        csv_export: Export current data instead of importing
        csv_file: CSV input (required unless exporting)
        output: CSV output; stdout when None
        server: Foreman URL, overrides configuration
        username: Foreman username, overrides configuration
        password: Foreman password, overrides configuration
        verbose: Log worker progress and cache activity
    """

    threads: int = DEFAULT_THREAD_COUNT
    csv_export: bool = False
    csv_file: Path | None = None
    output: Path | None = None
    server: str | None = None
    username: str | None = None
    password: str | None = None
    verbose: bool = False


class CsvCommand:
    """
    Base class for commands that translate CSV rows against Foreman.

    Usage:
        command = ResolveCommand(CommandOptions(csv_file=Path("in.csv")), config)
        result = await command.execute()
    """

    # Entity kinds whose resolvers the command needs; None means all
    kinds: list[str] | None = None

    def __init__(self, options: CommandOptions, config: CsvConfig | None = None) -> None:
        """
        Initialize command.

        Args:
            options: Command-line options
            config: Loaded configuration; options take precedence over it
        """
        self.options = options
        self.config = config or CsvConfig()
        self.registry: ResolverRegistry | None = None
        self.last_result: DispatchResult | None = None

    def validate_options(self) -> None:
        """
        Check option combinations.

        Raises:
            UsageError: If --csv-file is missing on import
        """
        if self.options.csv_file is None and not self.options.csv_export:
            raise UsageError("--csv-file required")

    def foreman_config(self) -> ForemanConfig:
        """
        Connection settings: --server/--username/--password over the config file.

        Raises:
            UsageError: If server or credentials are given nowhere
        """
        configured = self.config.foreman
        base_url = self.options.server or (configured.base_url if configured else None)
        username = self.options.username or (configured.username if configured else None)
        password = self.options.password or (configured.password if configured else None)

        missing = [
            option
            for option, value in (
                ("--server", base_url),
                ("--username", username),
                ("--password", password),
            )
            if not value
        ]
        if missing:
            raise UsageError(f"Foreman connection settings missing: {', '.join(missing)}")

        if configured:
            return dataclasses.replace(
                configured, base_url=base_url, username=username, password=password
            )
        return ForemanConfig(base_url=base_url, username=username, password=password)

    async def execute(self, client: DirectoryClient | None = None) -> DispatchResult | None:
        """
        Run the command.

        Args:
            client: Directory to resolve against; a ForemanClient built from
                the options and configuration when None

        Returns:
            DispatchResult of the last dispatch, None if nothing was dispatched

        Raises:
            UsageError: On invalid options
            DispatchError: If any row failed
        """
        self.validate_options()

        if client is not None:
            return await self._run(client)

        async with ForemanClient(self.foreman_config()) as foreman:
            return await self._run(foreman)

    async def _run(self, client: DirectoryClient) -> DispatchResult | None:
        self.registry = ResolverRegistry(client, self.kinds)
        logger.info(
            "Command started",
            command=type(self).__name__,
            mode="export" if self.options.csv_export else "import",
            threads=self.options.threads,
        )

        if self.options.csv_export:
            await self.export_rows()
        else:
            await self.import_rows()

        for kind, stats in self.registry.stats().items():
            if stats.total_queries:
                logger.info(
                    "Resolver cache",
                    kind=kind,
                    hits=stats.cache_hits,
                    misses=stats.cache_misses,
                    remote_calls=stats.remote_calls,
                    hit_rate=f"{stats.hit_rate():.2f}",
                )
        return self.last_result

    async def thread_import(
        self,
        per_row_fn: RowCallback,
        rows: Sequence[Any] | None = None,
    ) -> DispatchResult:
        """
        Dispatch rows to --threads concurrent workers.

        Args:
            per_row_fn: Work for one row
            rows: Rows to dispatch; read from --csv-file when None

        Returns:
            DispatchResult

        Raises:
            DispatchError: If any row failed
        """
        if rows is None:
            rows = read_rows(self.options.csv_file)

        dispatcher = RowDispatcher(
            self.options.threads,
            failure_policy=self.config.dispatch.failure_policy,
        )
        try:
            self.last_result = await dispatcher.run(rows, per_row_fn)
        except DispatchError as e:
            self.last_result = e.result
            raise
        return self.last_result

    async def import_rows(self) -> None:
        """Run import_row over every row of --csv-file."""
        await self.thread_import(self.import_row)

    async def import_row(self, row: dict[str, str]) -> None:
        raise NotImplementedError

    async def export_rows(self) -> None:
        raise NotImplementedError


class ResolveCommand(CsvCommand):
    """
    Translate Kind,Name,Id rows between names and identifiers.

    Import fills Id from Name; export fills Name from Id, or dumps every
    known entity when no input file is given. Output is written in input
    order once every worker has joined.
    """

    HEADER = ["Kind", "Name", "Id"]

    def __init__(self, options: CommandOptions, config: CsvConfig | None = None) -> None:
        super().__init__(options, config)
        self.rows: list[dict[str, Any]] = []

    async def import_rows(self) -> None:
        self.rows = read_rows(self.options.csv_file)
        try:
            await self.thread_import(self.import_row, self.rows)
        finally:
            self._write_output()

    async def export_rows(self) -> None:
        if self.options.csv_file is not None:
            self.rows = read_rows(self.options.csv_file)
        else:
            self.rows = await self.list_rows()
        try:
            await self.thread_import(self.export_row, self.rows)
        finally:
            self._write_output()

    async def import_row(self, row: dict[str, Any]) -> None:
        resolver = self.resolver_for(row)
        entity_id = await resolver.resolve(name=row.get("Name"))
        row["Id"] = "" if entity_id is None else str(entity_id)

    async def export_row(self, row: dict[str, Any]) -> None:
        resolver = self.resolver_for(row)
        row["Name"] = await resolver.resolve(id=coerce_id(row.get("Id")))

    async def list_rows(self) -> list[dict[str, Any]]:
        """One row per remote entity of every kind; the listing seeds the caches."""
        rows: list[dict[str, Any]] = []
        for resolver in self.registry:
            records = await resolver.client.search(resolver.kind, "")
            for record in records:
                name = await resolver.seed(record)
                entity_id = unwrap_record(resolver.kind, record)["id"]
                rows.append({"Kind": resolver.kind, "Name": name, "Id": str(entity_id)})
        logger.info("Listed entities", rows=len(rows))
        return rows

    def resolver_for(self, row: dict[str, Any]) -> EntityResolver:
        kind = (row.get("Kind") or "").strip().lower()
        if kind not in self.registry:
            raise CSVValidationError(f"Unknown entity kind: {row.get('Kind')!r}")
        return self.registry.get(kind)

    def _write_output(self) -> None:
        # Rows that failed or were never reached keep their input values
        write_rows(self.rows, self.HEADER, self.options.output)


def coerce_id(value: Any) -> Any:
    """Identifiers read from CSV are strings; Foreman ids are integers."""
    if isinstance(value, str):
        value = value.strip()
        if value.isdigit():
            return int(value)
    return value
