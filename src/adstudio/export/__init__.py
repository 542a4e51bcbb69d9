"""Aggregate export of completed videos."""

from adstudio.export.coordinator import ExportCoordinator, ExportSink, SimulatedExportSink

__all__ = [
    "ExportCoordinator",
    "ExportSink",
    "SimulatedExportSink",
]
