# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import posixpath
import shlex

from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import JobDescription

logger = get_logger(__name__)

# name of every job submitted by gridq
JOB_NAME = "gridq"


def resolve_path(entry_path: str, path: str) -> str:
    """Return the path resolved against the entry path, unless it is absolute."""
    if path.startswith("/"):
        return path

    return posixpath.normpath(posixpath.join(entry_path, path))


def generate_slurm_script(description: JobDescription, entry_path: str) -> str:
    """
    Generate a Slurm batch script running the job.

    The executable is started through `srun`, so one copy of it runs
    per allocated task.

    Args:
        description (JobDescription): Description of the job.
        entry_path (str): Directory against which a relative working directory is resolved.

    Returns:
        str: The batch script, to be passed to `sbatch` on standard input.
    """
    script = "#!/bin/sh\n"
    script += f"#SBATCH --job-name {JOB_NAME}\n"

    if description.working_directory is not None:
        workdir = resolve_path(entry_path, description.working_directory)
        script += f"#SBATCH --chdir={shlex.quote(workdir)}\n"

    if description.queue_name is not None:
        script += f"#SBATCH --partition={description.queue_name}\n"

    script += f"#SBATCH --nodes={description.node_count}\n"
    script += f"#SBATCH --ntasks-per-node={description.processes_per_node}\n"
    script += f"#SBATCH --time={description.max_runtime}\n"

    if description.stdin is not None:
        script += f"#SBATCH --input={shlex.quote(description.stdin)}\n"

    # output is discarded unless requested
    script += f"#SBATCH --output={shlex.quote(description.stdout or '/dev/null')}\n"
    script += f"#SBATCH --error={shlex.quote(description.stderr or '/dev/null')}\n"

    for key, value in description.environment.items():
        script += f"export {key}={shlex.quote(value)}\n"

    script += "\n"
    script += shlex.join(["srun", description.executable or "", *description.arguments])
    script += "\n"

    logger.debug(f"Created job script:\n{script}")
    return script
