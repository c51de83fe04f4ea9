# 失败列表模块
#
# 主要功能：
#   - save_failed_targets()：把失败的目标保存为可直接复用的选择表达式
#   - load_selection_file()：读取失败列表，用于只重跑失败的目标
#   - clear_failed_targets()：每次运行开始时清空旧的失败列表

from pathlib import Path
from typing import Iterable, List

from ..infra.logger import log_info, log_warning


def render_selection(target_ids: Iterable[str]) -> str:
    return ",".join(target_ids)


def clear_failed_targets(failed_targets_file: Path) -> None:
    if not failed_targets_file.exists():
        return
    try:
        failed_targets_file.unlink()
    except OSError as exc:
        log_warning(f"could not remove old failed list {failed_targets_file}: {exc}")


def save_failed_targets(failed_ids: List[str], failed_targets_file: Path) -> None:
    """Write failed ids as one selection expression line.

    Nothing is written when ``failed_ids`` is empty; a stale file is removed.
    """
    if not failed_ids:
        clear_failed_targets(failed_targets_file)
        return

    try:
        failed_targets_file.parent.mkdir(parents=True, exist_ok=True)
        failed_targets_file.write_text(render_selection(failed_ids) + "\n", encoding="utf-8")
    except OSError as exc:
        log_warning(f"could not save failed list {failed_targets_file}: {exc}")
        return

    log_info(f"failed targets saved to: {failed_targets_file}")
    log_info(f"rerun them with: --from-file {failed_targets_file}")


def load_selection_file(path: Path) -> str:
    """Read a selection expression from a file.

    Lines are joined with commas; blank lines and ``#`` comments are ignored.
    """
    text = Path(path).read_text(encoding="utf-8")
    tokens = []
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            tokens.append(line)
    return ",".join(tokens)
