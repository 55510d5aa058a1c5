"""
PEScope Console Output
=======================

Rich-powered terminal display for export/import analysis results:
an information panel, the export table (named exports first), the
imported modules with a short preview of their functions, and a
dependency summary.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from shared.console import ScopeConsole

from pescope.analyzers.dependencies import summarize_dependencies
from pescope.core.models import AnalysisResult, ExportedFunction, ImportedModule


_SYSTEM_DLL_PREVIEW = 5


class PEScopeConsoleOutput:
    """Rich terminal display for :class:`AnalysisResult`.

    Usage::

        output = PEScopeConsoleOutput()
        output.display(result, max_exports=50)
    """

    def __init__(
        self,
        console: ScopeConsole | None = None,
        import_preview_count: int = 10,
    ) -> None:
        self._console: ScopeConsole = console or ScopeConsole()
        self._import_preview_count = import_preview_count

    def display(
        self,
        result: AnalysisResult,
        include_imports: bool = True,
        max_exports: int = 100,
    ) -> None:
        """Display the complete analysis result.

        Args:
            result: The analysis to render.
            include_imports: Render the imported modules section.
            max_exports: Maximum exports listed; ``0`` lists all of them.
        """
        self._console.title(f"Native DLL Analysis: {result.file_name}")
        self._console.blank()
        self.display_header(result)
        self.display_exports(result.exports, max_exports)
        if include_imports:
            self.display_imports(result.imports)
        self.display_summary(result)

    def display_header(self, result: AnalysisResult) -> None:
        """Display the PE file information panel."""
        architecture = "64-bit (PE32+)" if result.is_64bit else "32-bit (PE32)"
        lines = [
            f"[bold]Path:[/bold]          {escape(result.file_path)}",
            f"[bold]Machine:[/bold]       {escape(result.machine)}",
            f"[bold]Architecture:[/bold]  {architecture}",
            f"[bold]Type:[/bold]          {'DLL' if result.is_dll else 'Executable'}",
        ]
        panel = Panel(
            "\n".join(lines),
            title="[bold bright_cyan]PE File Information[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(1, 2),
        )
        self._console.rich.print(panel)
        self._console.blank()

    def display_exports(
        self,
        exports: tuple[ExportedFunction, ...],
        max_exports: int = 100,
    ) -> None:
        """Display exported functions, named ones first.

        Named exports are sorted by name, ordinal-only exports by ordinal
        and shown with their RVA.
        """
        self._console.section(f"Exported Functions ({len(exports)} total)")

        if not exports:
            self._console.info("No exported functions found.")
            self._console.blank()
            return

        named = sorted((e for e in exports if e.is_named), key=lambda e: e.name or "")
        ordinal_only = sorted((e for e in exports if not e.is_named), key=lambda e: e.ordinal)

        self._console.rich.print(
            f"[bold]Named exports:[/bold] {len(named)}  "
            f"[bold]Ordinal-only exports:[/bold] {len(ordinal_only)}"
        )

        limit = min(max_exports, len(exports)) if max_exports > 0 else len(exports)
        shown = (named + ordinal_only)[:limit]

        tbl = Table(
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=False,
            padding=(0, 1),
        )
        tbl.add_column("Ordinal", justify="right", width=8)
        tbl.add_column("Name", min_width=30)
        tbl.add_column("RVA", justify="right", width=12)

        for export in shown:
            tbl.add_row(
                str(export.ordinal),
                escape(export.name) if export.name is not None else "[dim](ordinal only)[/dim]",
                f"0x{export.rva:08X}",
            )

        self._console.rich.print(tbl)
        if len(exports) > limit:
            self._console.info(f"... and {len(exports) - limit} more exports")
        self._console.blank()

    def display_imports(self, imports: tuple[ImportedModule, ...]) -> None:
        """Display imported modules sorted by name with a function preview."""
        self._console.section(f"Imported Modules (Dependencies) ({len(imports)} modules)")

        if not imports:
            self._console.info("No imports found.")
            self._console.blank()
            return

        preview = self._import_preview_count
        for module in sorted(imports, key=lambda m: m.name):
            self._console.rich.print(
                f"[bold bright_cyan]\\[{escape(module.name)}][/bold bright_cyan] "
                f"[dim]({len(module.functions)} functions)[/dim]"
            )
            for function in module.functions[:preview]:
                label = f"[yellow]{function}[/yellow]" if function.is_ordinal else escape(str(function))
                self._console.rich.print(f"      {label}")
            if len(module.functions) > preview:
                self._console.rich.print(
                    f"      [dim]... and {len(module.functions) - preview} more functions[/dim]"
                )

        self._console.blank()

    def display_summary(self, result: AnalysisResult) -> None:
        """Display totals and the system / other DLL split."""
        summary = summarize_dependencies(result)
        lines = [
            f"[bold]Total Exports:[/bold]           {summary.total_exports}",
            f"[bold]Named Exports:[/bold]           {summary.named_exports}",
            f"[bold]Total Import Modules:[/bold]    {summary.import_module_count}",
            f"[bold]Total Import Functions:[/bold]  {summary.import_function_count}",
        ]

        if summary.system_dlls:
            shown = ", ".join(summary.system_dlls[:_SYSTEM_DLL_PREVIEW])
            lines.append("")
            lines.append(f"[bold]System DLLs:[/bold] {escape(shown)}")
            hidden = len(summary.system_dlls) - _SYSTEM_DLL_PREVIEW
            if hidden > 0:
                lines.append(f"             ... and {hidden} more")

        if summary.other_dlls:
            lines.append(f"[bold]Other DLLs:[/bold]  {escape(', '.join(summary.other_dlls))}")

        panel = Panel(
            "\n".join(lines),
            title="[bold bright_cyan]Summary[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(1, 2),
        )
        self._console.rich.print(panel)

    def display_search(
        self,
        result: AnalysisResult,
        pattern: str,
        matches: list[ExportedFunction],
    ) -> None:
        """Display the exports of *result* matching *pattern*."""
        self._console.title(f"Search results for '{pattern}' in {result.file_name}")

        if not matches:
            self._console.info("No matching exports found.")
            return

        self._console.info(f"Found {len(matches)} matching export(s)")
        self._console.table(
            "",
            ["Ordinal", "Name", "RVA"],
            [(m.ordinal, m.name, f"0x{m.rva:08X}") for m in matches],
            styles=["dim", "bold", ""],
        )
