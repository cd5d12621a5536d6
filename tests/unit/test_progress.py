from __future__ import annotations

from unittest.mock import patch

from station_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    def test_init_with_tty_enabled(self):
        with patch('station_import.services.progress.is_tty_enabled', return_value=True), \
             patch('station_import.services.progress.tqdm') as mock_tqdm:

            tracker = ProgressTracker(5, description="Test batches")

            assert tracker.total_batches == 5
            assert tracker.current_batch == 0
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Test batches",
                unit="batch",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('station_import.services.progress.is_tty_enabled', return_value=False), \
             patch('station_import.services.progress.tqdm') as mock_tqdm:
            tracker = ProgressTracker(3)
            assert tracker.enabled is False
            assert tracker.pbar is None
            mock_tqdm.assert_not_called()
            # no-ops without a bar
            tracker.start_batch(100)
            tracker.finish_batch()
            tracker.set_postfix(written=1)
            tracker.close()
            assert tracker.current_batch == 1

    def test_batch_updates_and_close(self):
        with patch('station_import.services.progress.is_tty_enabled', return_value=True), \
             patch('station_import.services.progress.tqdm') as mock_tqdm:
            pbar = mock_tqdm.return_value
            with ProgressTracker(2) as tracker:
                tracker.start_batch(100)
                tracker.finish_batch()
                tracker.set_postfix(written=99, errors=1)

            pbar.update.assert_called_once_with(1)
            pbar.set_postfix.assert_called_once_with(written=99, errors=1)
            pbar.close.assert_called_once()
            assert tracker.pbar is None
