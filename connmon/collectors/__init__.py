from .loop import MonitorScheduler, build_reader
from .reader import ConnectionTableReader, TableSource
from .resolver import ProcessNameResolver
