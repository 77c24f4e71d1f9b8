"""Logging helpers."""

import logging

from mpi4py import MPI


class RankFilter(logging.Filter):
    """Adds the MPI rank to every record as ``record.rank``.

    Referenced from the ``job_logging`` section of conf/config.yaml.
    """

    def __init__(self, name: str = ""):
        super().__init__(name)
        self.rank = MPI.COMM_WORLD.Get_rank()

    def filter(self, record):
        record.rank = self.rank
        return True
