"""
Icon/label presentation for job statuses.
"""
from __future__ import annotations

from typing import NamedTuple, Union, assert_never

from ..models import JobStatus


class StatusDisplay(NamedTuple):
    icon: str
    label: str
    spinning: bool
    downloadable: bool


def status_display(status: Union[JobStatus, str]) -> StatusDisplay:
    status = JobStatus(status)
    match status:
        case JobStatus.PENDING:
            return StatusDisplay(icon="loader", label="Pending", spinning=True, downloadable=False)
        case JobStatus.PROCESSING:
            return StatusDisplay(icon="loader", label="Processing", spinning=True, downloadable=False)
        case JobStatus.COMPLETED:
            return StatusDisplay(icon="check-circle", label="Completed", spinning=False, downloadable=True)
        case JobStatus.FAILED:
            return StatusDisplay(icon="x-circle", label="Failed", spinning=False, downloadable=False)
        case _:
            assert_never(status)
