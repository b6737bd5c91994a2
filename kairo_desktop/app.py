"""
命令行入口

打开一个仓库，加载其中的扩展，并输出每个扩展的状态。
"""

import asyncio
import logging
from typing import List, Optional

from .config import RuntimeConfig
from .extensions import ExtensionRegistry, LogLevel
from .logger import configure_root_logger


logger = logging.getLogger(__name__)


def format_status(registry: ExtensionRegistry) -> List[str]:
    """每个扩展一行状态，最后一行是错误/警告统计"""
    lines = []
    for extension in registry.extensions.values():
        line = f"{extension.id:<24} {extension.manifest.version:<10} {extension.state.value}"
        if extension.policy_blocked:
            line += " (policy-blocked)"
        if extension.error:
            line += f"  {extension.error}"
        lines.append(line)

    logs = registry.logs
    lines.append(
        f"{len(lines)} extension(s), "
        f"{logs.count(LogLevel.ERROR)} error(s), {logs.count(LogLevel.WARN)} warning(s)"
    )
    return lines


async def run(vault: str, config: RuntimeConfig) -> int:
    """
    打开仓库并加载扩展

    Returns:
        int: 进程退出码，存在错误状态的扩展时为 1
    """
    registry = ExtensionRegistry.from_config(config)
    await registry.open_vault(vault)

    if registry.logs.console_open:
        for entry in reversed(registry.logs.entries):
            print(f"[{entry.level.value:<5}] [{entry.extension_id}] {entry.message}")

    for line in format_status(registry):
        print(line)

    failed = [ext.id for ext in registry.extensions.values() if ext.error]
    return 1 if failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    """入口函数"""
    import argparse

    parser = argparse.ArgumentParser(
        prog="kairo_desktop", description="Load the extensions of a Kairo vault"
    )
    parser.add_argument("vault", help="Vault directory")
    parser.add_argument("-c", "--config", help="Config file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    config = RuntimeConfig.load(args.config)
    configure_root_logger(
        level=logging.DEBUG if args.verbose else config.log.level,
        use_colors=config.log.use_colors,
        log_file=config.log.log_file or None,
    )

    return asyncio.run(run(args.vault, config))
