# 命令行入口：解析参数并执行一次完整的更新
#
# 主要功能：
#   - parse_args()：解析命令行参数（run / list 子命令）
#   - main()：选择目标、加锁、按仓库分组执行更新、输出统计报告
#
# 退出码：
#   0 全部成功，1 有目标失败，2 参数/配置/选择错误，3 已有运行持有锁，130 被中断

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .application.execution import run_update
from .application.summary import (
    EXIT_FAILED,
    EXIT_LOCKED,
    EXIT_OK,
    EXIT_USAGE,
    print_summary,
)
from .core.failed_targets import load_selection_file
from .core.run_lock import lock_owner
from .domain.registry import REGISTRY, TargetRegistry
from .errors import ConfigError, RunLockedError, SelectionError
from .infra.logger import log_error, log_info
from .infra.settings import Settings, load_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vuln-list-sync",
        description="Run vuln-list update targets and commit results per repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  %(prog)s                              # run every target (or VULN_LIST_TARGETS)
  %(prog)s run -t nvd,debian            # two targets only
  %(prog)s run -t fast                  # everything except the Red Hat group
  %(prog)s run -f failed-targets.txt    # rerun the targets that failed last time
  %(prog)s run --local                  # refresh local cache directories, no git
  %(prog)s list                         # show targets, groups and aliases
        """,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    run_parser = subparsers.add_parser("run", help="run update targets (default)")
    _add_run_arguments(run_parser, default=argparse.SUPPRESS)
    subparsers.add_parser("list", help="list targets, repository groups and aliases")

    # bare invocation behaves like ``run``
    _add_run_arguments(parser)
    return parser


def _add_run_arguments(parser: argparse.ArgumentParser, default=None) -> None:
    # SUPPRESS on the subcommand keeps options given before ``run`` intact
    parser.add_argument(
        "-t", "--targets",
        default=default,
        metavar="EXPR",
        help="comma separated target ids or aliases (default: VULN_LIST_TARGETS or all)",
    )
    parser.add_argument(
        "-f", "--from-file",
        default=default,
        metavar="FILE",
        help="read the selection expression from FILE, e.g. a saved failed-targets list",
    )
    parser.add_argument(
        "--local",
        action="store_true",
        default=default,
        help="update plain directories under CACHE_DIR without git",
    )
    parser.add_argument("--work-dir", default=default, metavar="DIR", help="git working copies (WORK_DIR)")
    parser.add_argument("--cache-dir", default=default, metavar="DIR", help="local cache directories (CACHE_DIR)")
    parser.add_argument("--updater", default=default, metavar="PATH", help="updater executable (VULN_LIST_UPDATER)")
    parser.add_argument("--lock-file", default=default, metavar="PATH", help="lock marker (VULN_LIST_LOCK_FILE)")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        args.command = "run"
    if args.targets is not None and args.from_file is not None:
        parser.error("--targets and --from-file are mutually exclusive")
    return args


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return load_settings(
        local_mode=args.local,
        work_dir=args.work_dir,
        cache_dir=args.cache_dir,
        updater=args.updater,
        lock_file=args.lock_file,
    )


def list_targets(settings: Settings, registry: TargetRegistry = REGISTRY) -> int:
    for group_id in registry.all_group_ids():
        group = registry.group(group_id)
        kind = "shared" if group.shared else "solo"
        suffix = ", slow" if group.slow else ""
        print(f"{group_id} ({kind}{suffix})")
        for target in registry.list_group(group_id):
            subdir = f"  [{target.owned_subdir}/]" if target.owned_subdir else ""
            print(f"  {target.target_id:<16} {target.description}{subdir}")

    print()
    print("aliases:")
    for alias, members in registry.aliases().items():
        if registry.group(alias) is None:
            print(f"  {alias:<16} {len(members)} targets")

    owner = lock_owner(settings.lock_path)
    if owner is not None:
        print()
        print(f"lock held: {settings.lock_path} (pid {owner or 'unknown'})")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    settings = _settings_from_args(args)

    if args.command == "list":
        return list_targets(settings)

    expression = args.targets
    if args.from_file:
        try:
            expression = load_selection_file(Path(args.from_file))
        except OSError as exc:
            log_error(f"cannot read selection file {args.from_file}: {exc}")
            return EXIT_USAGE

    log_info("vuln-list update starting")
    log_info(f"mode: {'local cache' if settings.local_mode else 'git'}, directory: {settings.repos_dir}")
    if settings.token_source:
        log_info(f"access token loaded from {settings.token_source}")

    try:
        settings.validate()
        report = run_update(settings, expression)
    except (SelectionError, ConfigError) as exc:
        log_error(str(exc))
        return EXIT_USAGE
    except RunLockedError as exc:
        log_error(str(exc))
        return EXIT_LOCKED

    print_summary(report)
    if report.exit_code == EXIT_OK:
        log_info("all updates completed successfully")
    elif report.exit_code == EXIT_FAILED:
        log_error(f"failed updates: {' '.join(report.failed)}")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
