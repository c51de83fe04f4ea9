# 路径处理模块：默认目录和文件位置
#
# 主要功能：
#   - 默认工作目录（git 工作副本）、本地缓存目录、更新程序路径
#   - 锁文件与失败列表文件名

from pathlib import Path

DEFAULT_WORK_DIR = Path("/workspace")
DEFAULT_CACHE_DIR = Path("/var/cache/trivy-db")
DEFAULT_UPDATER = Path("/app/vuln-list-update")

LOCK_FILE_NAME = ".vuln-list-sync.lock"
FAILED_TARGETS_FILE_NAME = "failed-targets.txt"
