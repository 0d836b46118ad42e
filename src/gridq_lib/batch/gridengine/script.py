# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import shlex

from gridq_lib.core.error import InvalidJobDescriptionError
from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import JobDescription

from ..slurm.script import JOB_NAME, resolve_path
from ..torque.script import format_walltime
from .cluster import GridEngineSetup
from .parser import ADAPTOR_NAME

logger = get_logger(__name__)

JOB_OPTION_JOB_SCRIPT = "job.script"
JOB_OPTION_PARALLEL_ENVIRONMENT = "parallel.environment"
JOB_OPTION_PARALLEL_SLOTS = "parallel.slots"
JOB_OPTION_RESOURCES = "resources"


def parallel_slots(description: JobDescription, setup: GridEngineSetup) -> int:
    """
    Return the number of slots requested from the parallel environment of the job.

    The 'parallel.slots' option takes precedence over the slots calculated
    from the cluster setup.

    Raises:
        InvalidJobDescriptionError: If the option is not a number or the slots cannot be calculated.
    """
    options = description.job_options
    if (raw := options.get(JOB_OPTION_PARALLEL_SLOTS)) is None:
        return setup.calculateSlots(
            options[JOB_OPTION_PARALLEL_ENVIRONMENT],
            description.queue_name,
            description.node_count,
        )

    try:
        return int(raw)
    except ValueError as e:
        raise InvalidJobDescriptionError(
            f"Error in parsing parallel slots option '{raw}'.", ADAPTOR_NAME
        ) from e


def generate_gridengine_script(
    description: JobDescription, entry_path: str, setup: GridEngineSetup
) -> str:
    """
    Generate a Grid Engine batch script running the job.

    Jobs with more than one process start the processes over ssh on every
    host listed in the host file of the parallel environment.

    Args:
        description (JobDescription): Description of the job.
        entry_path (str): Directory against which a relative working directory is resolved.
        setup (GridEngineSetup): Cluster setup used to calculate the number of slots.

    Returns:
        str: The batch script, to be passed to `qsub` on standard input.
    """
    script = "#!/bin/sh\n"
    script += "#$ -S /bin/sh\n"
    script += f"#$ -N {JOB_NAME}\n"

    if description.working_directory is not None:
        workdir = resolve_path(entry_path, description.working_directory)
        script += f"#$ -wd {shlex.quote(workdir)}\n"

    if description.queue_name is not None:
        script += f"#$ -q {description.queue_name}\n"

    if (pe := description.job_options.get(JOB_OPTION_PARALLEL_ENVIRONMENT)) is not None:
        script += f"#$ -pe {pe} {parallel_slots(description, setup)}\n"

    script += f"#$ -l h_rt={format_walltime(description.max_runtime)}\n"

    if (resources := description.job_options.get(JOB_OPTION_RESOURCES)) is not None:
        script += f"#$ -l {resources}\n"

    if description.stdin is not None:
        script += f"#$ -i {shlex.quote(description.stdin)}\n"

    script += f"#$ -o {shlex.quote(description.stdout or '/dev/null')}\n"
    script += f"#$ -e {shlex.quote(description.stderr or '/dev/null')}\n"

    for key, value in description.environment.items():
        script += f"export {key}={shlex.quote(value)}\n"

    script += "\n"

    command = shlex.join([description.executable or "", *description.arguments])
    if description.node_count == 1 and description.processes_per_node == 1:
        script += command + "\n"
    else:
        script += 'for host in `cat $PE_HOSTFILE | cut -d " " -f 1` ; do\n'
        # $(pwd) is expanded by the job script before ssh runs
        remote = '"cd \\"$(pwd)\\" && "' + shlex.quote(command)
        for _ in range(description.processes_per_node):
            script += f"  ssh -o StrictHostKeyChecking=false $host {remote} &\n"
        script += "done\n\n"
        script += "wait\n"
        script += "exit 0\n"

    logger.debug(f"Created job script:\n{script}")
    return script
