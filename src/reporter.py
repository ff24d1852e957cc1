"""Campaign report generation: Excel workbook and HTML dashboard.

After a campaign writes its prices, operators get two artifacts:
- an Excel workbook with every valuation record, an outcome summary and a
  player x grade price pivot;
- a standalone Plotly dashboard showing the outcome split and the median
  price per grade.
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from config.settings import GlobalConfig, get_config
from src.exceptions import ReportGenerationError
from src.logger import get_logger
from src.models import SEASON_ID_SPAN, Outcome, ValuationRecord, parse_price_text

log = get_logger(__name__)

OUTCOME_COLORS = {
    Outcome.SUCCESS.value: "#27ae60",
    Outcome.TIMEOUT.value: "#f39c12",
    Outcome.NAVIGATION_ERROR.value: "#e74c3c",
    Outcome.EXTRACTION_ERROR.value: "#9b59b6",
    Outcome.SKIPPED.value: "#95a5a6",
}


def records_to_dataframe(records: Sequence[ValuationRecord]) -> pd.DataFrame:
    """Flatten valuation records into one row per record."""
    rows = [
        {
            "entity_id": record.entity_id,
            "season": record.entity_id // SEASON_ID_SPAN,
            "grade": record.grade,
            "outcome": record.outcome.value,
            "price": record.value,
            "price_value": parse_price_text(record.value),
            "error": record.error,
            "completed_at": record.completed_at.replace(tzinfo=None),
        }
        for record in records
    ]
    columns = [
        "entity_id", "season", "grade", "outcome",
        "price", "price_value", "error", "completed_at",
    ]
    return pd.DataFrame(rows, columns=columns)


class ReportGenerator:
    """Generates Excel and HTML reports from campaign records.

    Example:
        reporter = ReportGenerator(config)
        paths = reporter.generate_all(records)
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()
        self._timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")

    def _ensure_output_dir(self) -> Path:
        try:
            self.config.output_dir.mkdir(parents=True, exist_ok=True)
            return self.config.output_dir
        except OSError as exc:
            raise ReportGenerationError(
                report_type="output_directory",
                reason=f"Cannot create output directory: {exc}",
                output_path=str(self.config.output_dir),
            ) from exc

    def _summary(self, df: pd.DataFrame) -> dict[str, Any]:
        dispatched = df[df["outcome"] != Outcome.SKIPPED.value]
        succeeded = int((df["outcome"] == Outcome.SUCCESS.value).sum())
        summary: dict[str, Any] = {
            "Report Generated": datetime.now(UTC).isoformat(),
            "Total Records": len(df),
            "Players": int(df["entity_id"].nunique()),
            "Success Rate": (
                f"{succeeded / len(dispatched):.1%}" if len(dispatched) else "N/A"
            ),
        }
        for outcome in Outcome:
            summary[outcome.value] = int((df["outcome"] == outcome.value).sum())
        return summary

    def generate_excel(
        self,
        records: Sequence[ValuationRecord],
        filename: str | None = None,
    ) -> Path:
        """Write the valuation workbook.

        Raises:
            ReportGenerationError: If the workbook cannot be written.
        """
        output_dir = self._ensure_output_dir()
        filename = filename or f"playervalue_export_{self._timestamp}"
        output_path = output_dir / f"{filename}.xlsx"

        log.info("Generating Excel report", output_path=str(output_path))

        try:
            df = records_to_dataframe(records)
            successes = df[df["outcome"] == Outcome.SUCCESS.value]

            with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
                df.to_excel(writer, sheet_name="Valuations", index=False)
                pd.DataFrame([self._summary(df)]).to_excel(
                    writer, sheet_name="Summary", index=False
                )
                if len(successes):
                    pivot = successes.pivot_table(
                        index="entity_id",
                        columns="grade",
                        values="price",
                        aggfunc="last",
                    )
                    pivot.to_excel(writer, sheet_name="Grade Pivot")

            log.info("Excel report generated", output_path=str(output_path), records=len(df))
            return output_path

        except Exception as exc:
            raise ReportGenerationError(
                report_type="Excel",
                reason=str(exc),
                output_path=str(output_path),
            ) from exc

    def generate_dashboard(
        self,
        records: Sequence[ValuationRecord],
        filename: str | None = None,
    ) -> Path:
        """Write the standalone HTML dashboard.

        Raises:
            ReportGenerationError: If there is nothing to plot or writing fails.
        """
        output_dir = self._ensure_output_dir()
        filename = filename or f"playervalue_dashboard_{self._timestamp}"
        output_path = output_dir / f"{filename}.html"

        log.info("Generating HTML dashboard", output_path=str(output_path))

        try:
            df = records_to_dataframe(records)

            if len(df) == 0:
                raise ReportGenerationError(
                    report_type="Dashboard",
                    reason="No data available for visualization",
                    output_path=str(output_path),
                )

            fig = make_subplots(
                rows=1,
                cols=2,
                subplot_titles=("Extraction Outcomes", "Median Price by Grade"),
                specs=[[{"type": "pie"}, {"type": "bar"}]],
                horizontal_spacing=0.1,
            )

            outcome_counts = df["outcome"].value_counts()
            fig.add_trace(
                go.Pie(
                    labels=outcome_counts.index.tolist(),
                    values=outcome_counts.values.tolist(),
                    marker_colors=[OUTCOME_COLORS[o] for o in outcome_counts.index],
                    hovertemplate="%{label}: %{value} (%{percent})<extra></extra>",
                ),
                row=1,
                col=1,
            )

            priced = df.dropna(subset=["price_value"])
            by_grade = priced.groupby("grade")["price_value"].median().reset_index()
            fig.add_trace(
                go.Bar(
                    x=by_grade["grade"],
                    y=by_grade["price_value"],
                    marker_color="#3498db",
                    hovertemplate="Grade %{x}<br>Median: %{y:,.0f}<extra></extra>",
                ),
                row=1,
                col=2,
            )

            fig.update_layout(
                title={
                    "text": (
                        f"<b>{self.config.app_name} Campaign</b><br>"
                        f"<sup>Records: {len(df)} | "
                        f"Players: {df['entity_id'].nunique()} | "
                        f"Generated: {datetime.now(UTC).strftime('%Y-%m-%d %H:%M UTC')}</sup>"
                    ),
                    "x": 0.5,
                    "xanchor": "center",
                },
                showlegend=False,
                height=500,
                template="plotly_white",
            )
            fig.update_xaxes(title_text="Grade", row=1, col=2)
            fig.update_yaxes(title_text="Median Price", row=1, col=2)

            fig.write_html(str(output_path), include_plotlyjs=True, full_html=True)

            log.info("HTML dashboard generated", output_path=str(output_path))
            return output_path

        except ReportGenerationError:
            raise
        except Exception as exc:
            raise ReportGenerationError(
                report_type="Dashboard",
                reason=str(exc),
                output_path=str(output_path),
            ) from exc

    def generate_all(self, records: Sequence[ValuationRecord]) -> dict[str, Path]:
        return {
            "excel": self.generate_excel(records),
            "dashboard": self.generate_dashboard(records),
        }
