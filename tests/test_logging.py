"""Test logger setup helpers."""

import sys
import os
import logging

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tycoon_sim import setup_logger, get_logger


def test_setup_logger_replaces_handlers():
    configured = setup_logger("tycoon_sim.test_console", level=logging.DEBUG)
    configured = setup_logger("tycoon_sim.test_console", level=logging.WARNING)

    assert len(configured.handlers) == 1
    assert configured.level == logging.WARNING
    assert configured.handlers[0].formatter._fmt == '%(levelname)s - %(message)s'
    print("✓ Reconfiguring doesn't duplicate handlers")


def test_setup_logger_writes_file(tmp_path):
    configured = setup_logger("tycoon_sim.test_file", log_to_file=True, log_dir=str(tmp_path))

    file_handlers = [h for h in configured.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    configured.info("day report")
    file_handlers[0].flush()

    log_files = list(tmp_path.glob("tycoon_*.log"))
    assert len(log_files) == 1
    assert "day report" in log_files[0].read_text(encoding="utf-8")

    for handler in file_handlers:
        handler.close()
    configured.handlers.clear()


def test_get_logger_configures_once():
    first = get_logger("tycoon_sim.test_get")
    second = get_logger("tycoon_sim.test_get")

    assert first is second
    assert len(second.handlers) == 1


def run_all_tests():
    """Run the tests that don't need fixtures."""
    print("Running logging tests...\n")

    test_setup_logger_replaces_handlers()
    test_get_logger_configures_once()

    print("\n✅ All logging tests passed!")


if __name__ == "__main__":
    run_all_tests()
