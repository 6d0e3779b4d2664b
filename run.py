#!/usr/bin/env python3
"""
Запуск бота GetMeChai: python run.py

У токена может быть только один polling, поэтому перед стартом
предыдущий процесс из PID-файла останавливается.
"""
import asyncio
import os
import signal
import sys
import time
from contextlib import contextmanager
from pathlib import Path

PID_FILE = Path(__file__).parent / ".bot.pid"


def _wait_exit(pid: int, timeout: float = 3.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            os.kill(pid, 0)
        except OSError:
            return
        time.sleep(0.1)


@contextmanager
def single_instance(pid_file: Path = PID_FILE):
    """PID-файл на время работы; чужой живой процесс получает SIGTERM."""
    try:
        old_pid = int(pid_file.read_text().strip())
    except (FileNotFoundError, ValueError):
        old_pid = None

    if old_pid and old_pid != os.getpid():
        try:
            os.kill(old_pid, signal.SIGTERM)
        except OSError:
            pass
        else:
            _wait_exit(old_pid)
            print(f"Предыдущий процесс {old_pid} остановлен")

    pid_file.write_text(str(os.getpid()))
    try:
        yield
    finally:
        pid_file.unlink(missing_ok=True)


if __name__ == "__main__":
    try:
        from tablebot.main import main
    except ModuleNotFoundError as e:
        sys.exit(f"❌ {e.name} не найден. Установи зависимости: pip install -e .")

    with single_instance():
        asyncio.run(main())
