"""PEScope output: Rich console rendering and JSON reports."""

from pescope.output.console import PEScopeConsoleOutput
from pescope.output.report import PEScopeReportGenerator

__all__ = ["PEScopeConsoleOutput", "PEScopeReportGenerator"]
