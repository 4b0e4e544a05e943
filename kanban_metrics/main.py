from __future__ import annotations

import csv
import logging
from io import BytesIO, StringIO
from typing import Any

from flask import Flask, abort, jsonify, make_response, request, send_file
from matplotlib import pyplot as plt
from openpyxl import Workbook

from .analytics import build_flow_metrics
from .config import build_catalog, load_config
from .jira_client import JiraClient, JiraClientError, JiraConfig, build_window_jql
from .metrics import PortfolioMetrics, duration_days
from .period import resolve_analysis_window
from .stats import NOT_COMPUTABLE


logger = logging.getLogger(__name__)


def _cell(value: float | None) -> float | str:
    if value is None:
        return NOT_COMPUTABLE
    return round(value, 2)


def create_app(
    config_path: str | None = None,
    jira_client: JiraClient | None = None,
    config: dict[str, Any] | None = None,
) -> Flask:
    app = Flask(__name__)
    cfg = config or load_config(config_path)

    def get_runtime_client() -> JiraClient:
        if jira_client is not None:
            return jira_client

        return JiraClient(JiraConfig.from_settings(cfg))

    def collect_metrics() -> tuple[PortfolioMetrics, str]:
        try:
            window = resolve_analysis_window(request.args.get("start"), request.args.get("end"))
        except ValueError as error:
            abort(make_response(jsonify({"error": str(error)}), 400))
        catalog = build_catalog(cfg)
        search = build_window_jql(
            cfg["project"],
            cfg["status_mapping"]["done"],
            window.first_day,
            window.last_day,
            exclude_issue_types=cfg.get("exclude_issue_types"),
        )
        custom_jql = (request.args.get("jql") or "").strip()
        if custom_jql:
            search = f"{search} AND ({custom_jql})"

        client = get_runtime_client()
        jql_preview = client.build_search_jql(search)
        logger.info("Metrics JQL: %s", jql_preview)
        issues = client.get_issues_by_jql(search)
        return build_flow_metrics(issues, catalog, window), jql_preview

    @app.errorhandler(JiraClientError)
    def handle_jira_error(error: JiraClientError):
        return jsonify({"error": str(error)}), 502

    @app.get("/api/metrics")
    def api_metrics():
        metrics, jql_preview = collect_metrics()
        return jsonify({"jql_preview": jql_preview, **metrics.to_dict()})

    @app.get("/api/export/csv")
    def api_export_csv():
        metrics, _ = collect_metrics()

        output = StringIO()
        writer = csv.writer(output, delimiter=";")
        writer.writerow(["key", "start", "end", "wip_days", "epic_link", "issue_type", "outlier"])
        for point in metrics.scatter:
            writer.writerow(
                [
                    point.key,
                    point.start.date().isoformat() if point.start else "",
                    point.end.date().isoformat() if point.end else "",
                    point.wip_days,
                    point.epic_link or "",
                    point.issue_type,
                    "yes" if point.outlier else "no",
                ]
            )

        buffer = BytesIO(output.getvalue().encode("utf-8"))
        return send_file(buffer, as_attachment=True, download_name="flow_metrics.csv", mimetype="text/csv")

    @app.get("/api/export/xlsx")
    def api_export_xlsx():
        metrics, _ = collect_metrics()

        workbook = Workbook()
        details = workbook.active
        details.title = "Issues"
        details.append(["Key", "Issue Type", "Start", "End", "WIP Days", "Epic Link", "Labels", "Resolved", "Outlier"])
        for point in metrics.scatter:
            details.append(
                [
                    point.key,
                    point.issue_type,
                    point.start.date().isoformat() if point.start else None,
                    point.end.date().isoformat() if point.end else None,
                    point.wip_days,
                    point.epic_link,
                    ", ".join(point.labels),
                    point.resolved,
                    point.outlier,
                ]
            )

        by_status = workbook.create_sheet("By Status")
        by_status.append(["Status", "Category", "Days", "% of WIP", "% of Total"])
        for share in (*metrics.status_shares, *metrics.category_shares):
            by_status.append(
                [
                    share.name,
                    share.category,
                    duration_days(share.duration),
                    _cell(share.percent_of_wip),
                    _cell(share.percent_of_total),
                ]
            )

        lead_time = workbook.create_sheet("Lead Time")
        lead_time.append(["Issue Type", "Issues", "Resolved", "Mean", "Median", "Std Dev", "90% Bound"])
        throughput = {row.issue_type: row.count for row in metrics.throughput_by_type}
        for row in metrics.lead_time_by_type:
            lead_time.append(
                [
                    row.issue_type,
                    row.count,
                    throughput.get(row.issue_type, 0),
                    _cell(row.mean),
                    _cell(row.median),
                    _cell(row.std_dev),
                    _cell(row.confidence_bound),
                ]
            )

        binary = BytesIO()
        workbook.save(binary)
        binary.seek(0)
        return send_file(
            binary,
            as_attachment=True,
            download_name="flow_metrics.xlsx",
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

    @app.get("/api/export/png")
    def api_export_png():
        metrics, _ = collect_metrics()
        points = [point for point in metrics.scatter if point.end is not None]

        fig, ax = plt.subplots(figsize=(12, 5))
        regular = [point for point in points if not point.outlier]
        outliers = [point for point in points if point.outlier]
        ax.scatter([point.end for point in regular], [point.wip_days for point in regular], label="Issues")
        ax.scatter([point.end for point in outliers], [point.wip_days for point in outliers], color="red", label="Outliers")
        for point in outliers:
            ax.annotate(point.key, (point.end, point.wip_days), fontsize=8)

        ax.set_title(f"Lead Time Scatterplot {metrics.project}".strip())
        ax.set_xlabel("Finished")
        ax.set_ylabel("WIP days")
        ax.legend()

        image = BytesIO()
        fig.tight_layout()
        fig.savefig(image, format="png")
        plt.close(fig)
        image.seek(0)
        return send_file(image, as_attachment=True, download_name="lead_time_scatter.png", mimetype="image/png")

    return app


def _bootstrap_default_app() -> Flask:
    try:
        return create_app()
    except (FileNotFoundError, ValueError) as error:
        fallback = Flask(__name__)
        error_message = f"Configuration required before startup: {error}"

        @fallback.get("/")
        def config_error():
            return jsonify({"error": error_message}), 500

        return fallback


app = _bootstrap_default_app()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host="127.0.0.1", port=5000, debug=True)
