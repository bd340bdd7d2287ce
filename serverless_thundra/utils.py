import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def remove_dir(dir_path: Path | str) -> None:
    """
    Recursively remove a directory.
    A missing directory is not an error, so this can run after every hook.
    """
    path = Path(dir_path)
    if not path.exists():
        return
    logger.debug(f"Removing {path}")
    shutil.rmtree(path)


def write_files(target_dir: Path, files: dict[str, str]) -> list[Path]:
    """Write `{file name: content}` under target_dir, creating it if needed."""
    target_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, content in files.items():
        path = target_dir / name
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        written.append(path)
    return written
