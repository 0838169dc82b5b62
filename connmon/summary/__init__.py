from .aggregate import aggregate
from .snapshot import Report, ReportBoard
