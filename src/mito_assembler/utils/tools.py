"""
External tool helpers for MitoAssembler.
Resolves binaries on PATH, probes optional capabilities and runs commands
with logging and uniform error handling.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from src.mito_assembler.core.exceptions import StageFailed, ToolMissing
from src.mito_assembler.core.models import Capability

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("bowtie2", "bowtie2-build", "samtools", "bcftools")

Command = Iterable[Union[str, Path]]

def check_required_tools(tools: Iterable[str] = REQUIRED_TOOLS) -> None:
    """
    Ensure required external binaries are available.

    :param tools: Executable names to resolve.
    :raises ToolMissing: Listing every executable that could not be found.
    """
    missing = [exe for exe in tools if shutil.which(exe) is None]
    if missing:
        raise ToolMissing(missing)

def probe_capabilities() -> FrozenSet[Capability]:
    """
    Probe optional tools once and return the set of available capabilities.
    """
    available = frozenset(c for c in Capability if shutil.which(c.value) is not None)
    for capability in Capability:
        state = "available" if capability in available else "not available"
        logger.info(f"Optional tool {capability.value} ({capability.name}): {state}")
    return available

def _as_strings(command: Command) -> List[str]:
    # Path objects are accepted anywhere in a command
    return [str(part) for part in command]

def _log_stderr(stderr: Optional[str], tool: str) -> None:
    if not stderr:
        return
    for line in stderr.splitlines():
        if line.strip():
            logger.debug(f"[{tool}] {line}")

def run_command(
    command: Command,
    stage: str,
    *,
    stdout_path: Optional[Path] = None,
    capture_output: bool = False,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Run one external command, logging it and its stderr.

    :param command: Command and arguments.
    :param stage: Pipeline stage name used in errors.
    :param stdout_path: If given, standard output is written to this file.
    :param capture_output: Capture standard output as text on the result.
    :param env: Extra environment variables.
    :return: The completed process.
    :raises StageFailed: If the command exits with a non-zero status.
    """
    cmd_list = _as_strings(command)
    log_cmd = " ".join(cmd_list)
    logger.info(f"Running command: {log_cmd}")
    merged_env = os.environ.copy()
    if env:
        merged_env.update({k: str(v) for k, v in env.items()})

    try:
        if stdout_path is not None:
            with open(stdout_path, "w", encoding="utf-8") as handle:
                result = subprocess.run(cmd_list, stdout=handle, stderr=subprocess.PIPE,
                                        text=True, env=merged_env)
        else:
            result = subprocess.run(
                cmd_list,
                stdout=subprocess.PIPE if capture_output else subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                env=merged_env,
            )
    except FileNotFoundError as e:
        raise StageFailed(stage, log_cmd, 127, str(e)) from e

    _log_stderr(result.stderr, cmd_list[0])
    if result.returncode != 0:
        logger.error(f"Command failed with exit code {result.returncode}: {log_cmd}")
        raise StageFailed(stage, log_cmd, result.returncode, result.stderr)
    return result

def run_piped(
    producer: Command,
    consumer: Command,
    stage: str,
) -> str:
    """
    Run `producer | consumer`, failing if either side exits non-zero.

    :param producer: Command whose standard output feeds the consumer.
    :param consumer: Command reading from standard input.
    :param stage: Pipeline stage name used in errors.
    :return: The producer's standard error, which some tools use for summaries.
    :raises StageFailed: If either command fails.
    """
    producer_list = _as_strings(producer)
    consumer_list = _as_strings(consumer)
    log_cmd = f"{' '.join(producer_list)} | {' '.join(consumer_list)}"
    logger.info(f"Running command: {log_cmd}")

    # Producer stderr is spooled to a file so a chatty tool cannot fill the pipe
    with tempfile.TemporaryFile() as err_spool:
        try:
            upstream = subprocess.Popen(producer_list, stdout=subprocess.PIPE, stderr=err_spool)
        except FileNotFoundError as e:
            raise StageFailed(stage, log_cmd, 127, str(e)) from e
        try:
            downstream = subprocess.run(consumer_list, stdin=upstream.stdout, stdout=subprocess.DEVNULL,
                                        stderr=subprocess.PIPE)
        except FileNotFoundError as e:
            upstream.kill()
            upstream.wait()
            raise StageFailed(stage, log_cmd, 127, str(e)) from e
        finally:
            # Let the producer receive SIGPIPE if the consumer exits early
            upstream.stdout.close()
        upstream.wait()
        err_spool.seek(0)
        producer_err = err_spool.read().decode("utf-8", errors="replace")

    consumer_err = downstream.stderr.decode("utf-8", errors="replace")
    _log_stderr(producer_err, producer_list[0])
    _log_stderr(consumer_err, consumer_list[0])

    for returncode, err in ((upstream.returncode, producer_err), (downstream.returncode, consumer_err)):
        if returncode != 0:
            logger.error(f"Command failed with exit code {returncode}: {log_cmd}")
            raise StageFailed(stage, log_cmd, returncode, err)
    return producer_err
