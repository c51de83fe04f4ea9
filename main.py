#!/usr/bin/env python3
# vuln-list 批量更新脚本：按仓库分组执行更新目标并提交结果
#
# 执行流程：
#   1. 解析命令行参数与环境变量
#   2. 展开目标选择表达式（去重、保持顺序）
#   3. 获取运行锁（已有运行则立即退出）
#   4. 按固定优先级逐个处理仓库分组：准备工作副本 -> 逐个运行目标 -> 失败时回滚 -> 统一提交
#   5. 输出统计报告并返回退出码
#
# 使用方式：
#   python main.py [run] [-t EXPR] [-f FILE] [--local]
#   python main.py list

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vuln_list_sync.cli import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
