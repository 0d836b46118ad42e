# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from gridq_lib.batch.local.scheduler import JobQueueScheduler
from gridq_lib.batch.scripting.transport import Transport
from gridq_lib.core.logger import get_logger

logger = get_logger(__name__)


class SshJobQueueScheduler(JobQueueScheduler):
    """
    Job queue scheduler running its jobs on a remote host.

    The scheduler owns the transport of its launcher and closes it together
    with the scheduler, after all remaining jobs have been killed.
    """

    def __init__(self, *args, transport: Transport, **kwargs):
        self._transport = transport
        super().__init__(*args, **kwargs)

    def getTransport(self) -> Transport:
        return self._transport

    def close(self) -> None:
        super().close()
        logger.debug(f"Closing transport of scheduler '{self._unique_id}'.")
        self._transport.close()
