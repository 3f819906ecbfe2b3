# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/database/mysql.py

"""
MySQL dumps for the database backup flow.

The list and dump commands are templates so the dump tool and its options stay
a deployment decision. Placeholders:

- ``{login}``: credentials, ``--login-path=...`` or ``--user=...``
- ``{dbname}``: database name (dump only)
- ``{output}``: output file path (dump only)

A configured password is handed to the client through ``MYSQL_PWD`` and
never appears in a command line.

A dump command must print nothing on success; any output other than
``[Warning]`` lines is treated as an error message.
"""

import shlex
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from titor.config.manager import DatabaseConfig
from titor.system.exceptions import ConfigError, DumpError
from titor.system.execution import CommandExecutor as ce


DUMP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

DEFAULT_LIST_COMMAND = "mysql -Bs {login} -e 'SHOW DATABASES;'"
DEFAULT_DUMP_COMMAND = "mysqldump {login} -Q -C -E -a -e {dbname} > {output}"

# Internal schemas that are never dumped
ALWAYS_EXCLUDE = frozenset({"information_schema", "performance_schema"})


class MySQLDumper:

    def __init__(self, config: DatabaseConfig, timeout: Optional[float] = None) -> None:
        self.config = config
        self.timeout = timeout
        self.list_command = config.list_command or DEFAULT_LIST_COMMAND
        self.dump_command = config.dump_command or DEFAULT_DUMP_COMMAND
        self.login = self._login_arguments(config)
        self.env = None
        if not config.login_path and config.password:
            self.env = {"MYSQL_PWD": config.password}

    @staticmethod
    def _login_arguments(config: DatabaseConfig) -> str:
        if config.login_path:
            return f"--login-path={shlex.quote(config.login_path)}"
        if config.username and config.password:
            return f"--user={shlex.quote(config.username)}"
        raise ConfigError("No auth credentials specified for MySQL")

    def list_databases(self) -> list[str]:
        """Names of every database on the server, one per output line."""
        cmd = shlex.split(self.list_command.format(login=self.login))
        result = ce.run_local(cmd, timeout=self.timeout, error=DumpError, env=self.env)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def backup_database(self, name: str, outdir: Path, now: Optional[datetime] = None) -> Path:
        """Dump ``name`` to ``<outdir>/<name>_<YYYYMMDD-HHMMSS>.sql``."""
        stamp = (now or datetime.now()).strftime(DUMP_TIMESTAMP_FORMAT)
        output = outdir / f"{name}_{stamp}.sql"

        command = self.dump_command.format(
            login=self.login,
            dbname=shlex.quote(name),
            output=shlex.quote(str(output)),
        )
        result = ce.run_shell(command, timeout=self.timeout, error=DumpError, env=self.env)

        messages = [
            line for line in (result.stdout + result.stderr).splitlines()
            if line.strip() and "[Warning]" not in line
        ]
        if messages:
            raise DumpError(
                f"Dump of database '{name}' failed: {' '.join(messages)}",
                command=command,
                output="\n".join(messages),
            )
        if not output.exists():
            raise DumpError(f"Dump of database '{name}' produced no file at {output}", command=command)

        logger.info(f"Dumped database '{name}' to {output}")
        return output

    def backup_all(self, outdir: Path, exclude: Iterable[str] = (), now: Optional[datetime] = None) -> list[Path]:
        """Dump every database except internal schemas and ``exclude``."""
        skip = ALWAYS_EXCLUDE | set(self.config.exclude) | set(exclude)
        names = [name for name in self.list_databases() if name not in skip]
        logger.debug(f"Dumping {len(names)} database(s): {', '.join(names)}")

        stamp_time = now or datetime.now()
        return [self.backup_database(name, outdir, stamp_time) for name in names]


def create_dumper(config: DatabaseConfig, timeout: Optional[float] = None) -> MySQLDumper:
    """Dumper for the configured engine."""
    if config.engine == "mysql":
        return MySQLDumper(config, timeout=timeout)
    raise ConfigError(f"Unsupported database engine '{config.engine}'")
