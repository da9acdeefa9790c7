"""
Console reporting for benchmark results.

Provides the ranked CLI table, per-endpoint detail and progress lines.
"""

from typing import Optional

from .progress import FailureNotice
from .results import EndpointResult, ProjectResult


class ConsoleReporter:
    """Generates console/CLI reports."""

    def __init__(self, use_color: bool = True):
        self.use_color = use_color

    def _color(self, text: str, color: str) -> str:
        """Apply ANSI color if enabled."""
        if not self.use_color:
            return text

        colors = {
            "green": "\033[92m",
            "red": "\033[91m",
            "yellow": "\033[93m",
            "blue": "\033[94m",
            "bold": "\033[1m",
            "reset": "\033[0m",
        }

        return f"{colors.get(color, '')}{text}{colors['reset']}"

    def format_duration(self, ms: Optional[float]) -> str:
        """Format duration for display."""
        if ms is None:
            return "N/A"
        if ms < 1000:
            return f"{ms:.1f}ms"
        return f"{ms / 1000:.2f}s"

    def format_progress(self, fraction: float) -> str:
        return f"{fraction * 100:5.1f}%"

    def format_failure(self, notice: FailureNotice) -> str:
        return self._color(f"Warning: {notice}", "yellow")

    def single_result(self, result: EndpointResult, rank: Optional[int] = None) -> str:
        """Generate report for a single endpoint."""
        lines = []
        title = f"[{result.index}] {result.uri}"
        if rank is not None:
            title = f"#{rank + 1} {title}"
        lines.append(self._color(title, "bold"))

        lines.append(f"  Attempts: {len(result.attempts)} "
                     f"({result.success_count} ok, {result.failure_count} failed)")

        metrics = result.metrics
        if metrics is None:
            lines.append(f"  {self._color('No successful attempts', 'red')}")
            return "\n".join(lines)

        lines.append(f"  {'Mean:':<10} {self.format_duration(metrics.mean)}")
        lines.append(f"  {'Std dev:':<10} {self.format_duration(metrics.std_dev)}")
        lines.append(f"  {'Std err:':<10} {self.format_duration(metrics.std_err)}")
        lines.append(f"  {'Min:':<10} {self.format_duration(metrics.min)}")
        lines.append(f"  {'Q1:':<10} {self.format_duration(metrics.quartiles.q1)}")
        lines.append(f"  {'Median:':<10} {self.format_duration(metrics.median)}")
        lines.append(f"  {'Q3:':<10} {self.format_duration(metrics.quartiles.q3)}")
        lines.append(f"  {'Max:':<10} {self.format_duration(metrics.max)}")
        lines.append(f"  {'IQR:':<10} {self.format_duration(metrics.iqr)}")

        return "\n".join(lines)

    def ranking_table(self, project: ProjectResult) -> str:
        """Ranked table of all sampled endpoints, fastest first."""
        if not project.results:
            return "No results to display"

        headers = ["Rank", "Mean", "Std dev", "Median", "IQR", "Success", "URI"]
        col_widths = [6, 12, 12, 12, 12, 10, 40]

        lines = []
        lines.append(self._color(f"\n{'=' * sum(col_widths)}", "blue"))
        title = "Latency Ranking"
        if project.cancelled:
            title += " (cancelled, partial data)"
        lines.append(self._color(title, "bold"))
        lines.append(self._color(f"{'=' * sum(col_widths)}", "blue"))

        header_row = ""
        for i, header in enumerate(headers):
            header_row += f"{header:<{col_widths[i]}}"
        lines.append(self._color(header_row, "bold"))
        lines.append("-" * sum(col_widths))

        for result, rank in zip(project.results, project.ranks):
            metrics = result.metrics
            row = []

            rank_str = str(rank + 1)
            if rank == 0 and metrics is not None:
                rank_str = self._color(f"{rank_str:<{col_widths[0]}}", "green")
            else:
                rank_str = f"{rank_str:<{col_widths[0]}}"
            row.append(rank_str)

            row.append(f"{self.format_duration(metrics.mean if metrics else None):<{col_widths[1]}}")
            row.append(f"{self.format_duration(metrics.std_dev if metrics else None):<{col_widths[2]}}")
            row.append(f"{self.format_duration(metrics.median if metrics else None):<{col_widths[3]}}")
            row.append(f"{self.format_duration(metrics.iqr if metrics else None):<{col_widths[4]}}")

            success = f"{result.success_count}/{len(result.attempts)}"
            if metrics is None:
                success = self._color(f"{success:<{col_widths[5]}}", "red")
            else:
                success = f"{success:<{col_widths[5]}}"
            row.append(success)

            row.append(result.uri)
            lines.append("".join(row))

        lines.append(f"\nTotal duration: {project.duration_seconds:.1f}s")
        if project.output_directory:
            lines.append(f"Output directory: {project.output_directory}")

        return "\n".join(lines)

    def full_report(self, project: ProjectResult) -> str:
        """Ranking table followed by per-endpoint detail."""
        sections = [self.ranking_table(project)]
        for result, rank in zip(project.results, project.ranks):
            sections.append(self.single_result(result, rank))
        return "\n\n".join(sections)
