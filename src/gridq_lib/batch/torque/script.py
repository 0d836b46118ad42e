# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import shlex

from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import JobDescription

from ..slurm.script import JOB_NAME, resolve_path

logger = get_logger(__name__)


def format_walltime(minutes: int) -> str:
    """Format a number of minutes as a Torque walltime ('HH:MM:SS')."""
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:00"


def generate_torque_script(description: JobDescription, entry_path: str) -> str:
    """
    Generate a Torque batch script running the job.

    Args:
        description (JobDescription): Description of the job.
        entry_path (str): Directory against which a relative working directory is resolved.

    Returns:
        str: The batch script, to be passed to `qsub` on standard input.
    """
    script = "#!/bin/sh\n"
    script += "#PBS -S /bin/sh\n"
    script += f"#PBS -N {JOB_NAME}\n"

    if description.working_directory is not None:
        workdir = resolve_path(entry_path, description.working_directory)
        script += f"#PBS -d {shlex.quote(workdir)}\n"

    if description.queue_name is not None:
        script += f"#PBS -q {description.queue_name}\n"

    script += (
        f"#PBS -l nodes={description.node_count}:ppn={description.processes_per_node}\n"
    )
    script += f"#PBS -l walltime={format_walltime(description.max_runtime)}\n"

    # output is discarded unless requested
    script += f"#PBS -o {shlex.quote(description.stdout or '/dev/null')}\n"
    script += f"#PBS -e {shlex.quote(description.stderr or '/dev/null')}\n"

    for key, value in description.environment.items():
        script += f"export {key}={shlex.quote(value)}\n"

    script += "\n"
    script += shlex.join([description.executable or "", *description.arguments])
    if description.stdin is not None:
        script += f" < {shlex.quote(description.stdin)}"
    script += "\n"

    logger.debug(f"Created job script:\n{script}")
    return script
