"""
PEScope Report Generator
=========================

Generates structured JSON reports from export/import analysis results,
suitable for machine consumption and downstream tooling.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pescope import __version__
from pescope.analyzers.dependencies import summarize_dependencies
from pescope.core.models import AnalysisResult


class PEScopeReportGenerator:
    """Generate JSON reports from analysis results.

    Usage::

        generator = PEScopeReportGenerator()
        generator.generate_json(result, "report.json")
    """

    def build_report(self, result: AnalysisResult) -> dict[str, Any]:
        """Return the report for *result* as a JSON-serialisable dict."""
        summary = summarize_dependencies(result)
        return {
            "report_type": "pescope_export_import_analysis",
            "version": __version__,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "file": {
                "path": result.file_path,
                "name": result.file_name,
                "machine": result.machine,
                "is_64bit": result.is_64bit,
                "is_dll": result.is_dll,
            },
            "exports": [
                {"ordinal": e.ordinal, "name": e.name, "rva": e.rva}
                for e in result.exports
            ],
            "imports": [
                {
                    "module": module.name,
                    "functions": [
                        {"ordinal": f.ordinal}
                        if f.is_ordinal
                        else {"name": f.name, "hint": f.hint}
                        for f in module.functions
                    ],
                }
                for module in result.imports
            ],
            "summary": summary.model_dump(mode="json"),
        }

    def generate_json(
        self,
        result: AnalysisResult,
        output_path: str,
    ) -> str:
        """Write the JSON report for *result*.

        Args:
            result: The analysis to report.
            output_path: Filesystem path for the output JSON file.

        Returns:
            The absolute path of the generated report.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.build_report(result), f, indent=2, ensure_ascii=False, default=str)

        return str(path.resolve())
