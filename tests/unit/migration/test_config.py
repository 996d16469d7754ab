"""
Unit tests for MigrationConfig and the progress reporters.
"""

from unittest.mock import MagicMock, patch

import pytest

from jobsched.exceptions import MigrationConfigError
from jobsched.migration.config import MigrationConfig
from jobsched.migration.progress import (
    NullProgressReporter,
    ProgressReporter,
    TqdmProgressReporter,
)


class TestMigrationConfig:
    """Tests for MigrationConfig."""

    def test_setters_chain(self):
        store, job_logger = MagicMock(), MagicMock()

        config = MigrationConfig().set_source_store(store).set_destination_logger(job_logger)

        assert config.source_store is store
        assert config.destination_logger is job_logger

    @pytest.mark.parametrize(
        "field",
        ["source_store", "source_logger", "destination_store", "destination_logger"],
    )
    def test_missing_part_raises(self, field):
        with pytest.raises(MigrationConfigError) as exc_info:
            getattr(MigrationConfig(), field)
        assert exc_info.value.field == field

    def test_optional_parts(self):
        config = MigrationConfig()

        assert config.progress_reporter is None
        assert config.dry_run is False

        reporter = NullProgressReporter()
        config.set_progress_reporter(reporter).set_dry_run(1)  # type: ignore[arg-type]

        assert config.progress_reporter is reporter
        assert config.dry_run is True

    def test_repr_names_backend_classes(self):
        class LegacyStore:
            pass

        config = MigrationConfig().set_source_store(LegacyStore())  # type: ignore[arg-type]

        assert repr(config) == (
            "MigrationConfig(source_store=LegacyStore, source_logger=None, "
            "destination_store=None, destination_logger=None, dry_run=False)"
        )


class TestProgressReporters:
    """Tests for the progress reporters."""

    def test_implementations_match_protocol(self):
        assert isinstance(NullProgressReporter(), ProgressReporter)
        assert isinstance(TqdmProgressReporter(disable=True), ProgressReporter)

    def test_tqdm_bar_per_batch(self):
        with patch("jobsched.migration.progress.tqdm") as tqdm_cls:
            reporter = TqdmProgressReporter(leave=False)

            reporter.start("Migrating 3 jobs", 3)
            reporter.tick()
            reporter.tick(2)
            reporter.finish()

        tqdm_cls.assert_called_once_with(
            total=3, desc="Migrating 3 jobs", unit="job", disable=False, leave=False
        )
        bar = tqdm_cls.return_value
        assert [call.args for call in bar.update.call_args_list] == [(1,), (2,)]
        bar.close.assert_called_once()

    def test_start_closes_previous_bar(self):
        with patch("jobsched.migration.progress.tqdm") as tqdm_cls:
            first, second = MagicMock(), MagicMock()
            tqdm_cls.side_effect = [first, second]
            reporter = TqdmProgressReporter()

            reporter.start("one", 1)
            reporter.start("two", 2)

        first.close.assert_called_once()
        second.close.assert_not_called()

    def test_tick_without_bar_is_noop(self):
        reporter = TqdmProgressReporter(disable=True)
        reporter.tick()
        reporter.finish()
