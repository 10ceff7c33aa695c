import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .settings import settings

logger = logging.getLogger(__name__)

REFRESH_LOG = "refresh_log.jsonl"
LOG_FILE = "sentinel.log"
# A 3-minute earthquake cycle alone writes ~480 lines a day
REFRESH_LOG_KEEP = 2000


def setup_logging(level: int = logging.INFO, logs_dir: Optional[Path] = None) -> None:
    """Console plus a file under logs/. Safe to call more than once."""
    logs_dir = logs_dir or settings.logs_dir
    root = logging.getLogger()
    if root.handlers:
        return

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logs_dir / LOG_FILE, encoding="utf-8"))
    except OSError as e:
        print(f"[WARN] file logging disabled: {e}")

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def append_refresh_log(record: dict, logs_dir: Optional[Path] = None) -> None:
    """One JSON line per widget refresh cycle."""
    logs_dir = logs_dir or settings.logs_dir
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        line = {"logged_at": datetime.now(timezone.utc).isoformat(), **record}
        with (logs_dir / REFRESH_LOG).open("a", encoding="utf-8") as f:
            f.write(json.dumps(line, ensure_ascii=False, default=str) + "\n")
    except OSError as e:
        logger.warning(f"Failed writing refresh log: {e}")


def rotate_logs(logs_dir: Optional[Path] = None, keep: int = REFRESH_LOG_KEEP) -> None:
    """Drop the oldest refresh cycles so refresh_log.jsonl holds at most ``keep`` lines."""
    path = (logs_dir or settings.logs_dir) / REFRESH_LOG
    if not path.exists():
        return

    try:
        total = 0
        newest: deque[str] = deque(maxlen=keep)
        with path.open("r", encoding="utf-8") as f:
            for line in f:
                total += 1
                newest.append(line)
        if total <= keep:
            return
        path.write_text("".join(newest), encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to rotate {path}: {e}")
        return

    logger.info(f"Rotated {REFRESH_LOG}: kept {keep} of {total} cycles")
