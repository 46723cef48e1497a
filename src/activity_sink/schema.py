from dataclasses import dataclass, field
from typing import List

import psycopg2
from loguru import logger

from .codec import ACTIVITY_COLUMNS
from .errors import ReconciliationError


@dataclass
class SchemaReport:
    unexpected: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def drifted(self) -> bool:
        return bool(self.unexpected or self.missing)


class SchemaReconciler:
    """
    Keeps the destination table in the exact shape ACTIVITY_COLUMNS describes.

    Drift in either direction (extra or missing columns) drops and recreates
    the table, losing its rows. Any database error is a ReconciliationError,
    the caller must not start consuming after one.
    """

    def __init__(self, repo, expected_columns=ACTIVITY_COLUMNS):
        self.repo = repo
        self.expected_columns = tuple(expected_columns)

    def ensure_table(self) -> SchemaReport:
        try:
            exists = self.repo.table_exists()
        except psycopg2.Error as e:
            raise ReconciliationError(f"could not check table {self.repo.table_name}: {e}") from e

        if not exists:
            self._create()
            return SchemaReport()
        return self.validate_schema()

    def validate_schema(self) -> SchemaReport:
        try:
            live = self.repo.fetch_columns()
        except psycopg2.Error as e:
            raise ReconciliationError(f"could not read columns of {self.repo.table_name}: {e}") from e

        # fresh descriptor for every pass
        expected = {name: False for name in self.expected_columns}
        report = SchemaReport()

        for column in live:
            name = column[0]
            if name in expected:
                expected[name] = True
            else:
                logger.warning(f"Unexpected column found: {name}")
                report.unexpected.append(name)

        for name, found in expected.items():
            if not found:
                logger.error(f"Missing column: {name}")
                report.missing.append(name)

        if report.drifted:
            logger.warning("Schema issues detected. Recreating table...")
            self.recreate()
        else:
            logger.info("Table schema validation passed.")
        return report

    def recreate(self) -> None:
        try:
            self.repo.drop_table()
        except psycopg2.Error as e:
            raise ReconciliationError(f"error dropping table {self.repo.table_name}: {e}") from e
        logger.warning(f"🗑️ Dropped existing table '{self.repo.table_name}'.")
        self._create()

    def _create(self) -> None:
        try:
            self.repo.create_table()
        except psycopg2.Error as e:
            raise ReconciliationError(f"error creating table {self.repo.table_name}: {e}") from e
        logger.info(f"✅ Table '{self.repo.table_name}' created successfully.")

    def log_table_structure(self) -> None:
        """Print the live column layout. Failures here are only logged."""
        try:
            columns = self.repo.fetch_columns()
        except psycopg2.Error as e:
            logger.error(f"Error inspecting table structure: {e}")
            return

        lines = ["Current table structure:",
                 f"{'Column Name':<20} | {'Data Type':<28} | {'Nullable':<8} | Default"]
        for name, data_type, is_nullable, default in columns:
            default_val = "NULL" if default is None else default
            lines.append(f"{name:<20} | {data_type:<28} | {is_nullable:<8} | {default_val}")
        logger.info("\n".join(lines))
