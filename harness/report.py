"""Report generation for verification results."""

import html
import json

from catalog.registry import Registry
from harness.engine import VerificationReport

OUTCOME_COLORS = {
    "Compromised": "\033[91m",  # Red
    "Rejected": "\033[93m",     # Yellow
    "Safe": "\033[92m",         # Green
}
PASS = "\033[92mPASS\033[0m"
FAIL = "\033[91mFAIL\033[0m"
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"


def _outcome(value) -> str:
    value = str(value)
    return f"{OUTCOME_COLORS.get(value, '')}{value}{RESET}"


def format_terminal_report(report: VerificationReport) -> str:
    """Format verification report for terminal output."""
    lines = []
    summary = report.summary

    lines.append("")
    lines.append(f"{BOLD}Exemplar Verification Report{RESET}")
    lines.append("=" * 60)
    lines.append(f"Exemplars checked: {report.exemplars_checked}")
    lines.append(f"Scenarios run:     {report.scenarios_run}")
    lines.append(f"Elapsed:           {report.elapsed:.2f}s")
    lines.append("")
    lines.append(
        f"  \033[92mPassed: {summary['passed']}{RESET}  "
        f"\033[91mFailed: {summary['failed']}{RESET}  "
        f"\033[93mHarness errors: {summary['harness_errors']}{RESET}"
    )
    lines.append("")

    if report.results:
        lines.append(f"{BOLD}Results ({len(report.results)}):{RESET}")
        lines.append("-" * 60)
        for result in report.results:
            status = PASS if result.passed else FAIL
            lines.append(f"  [{status}] {BOLD}{result.kind}{RESET} #{result.ordinal} {result.scenario}")
            lines.append(
                f"         vulnerable: {_outcome(result.vulnerable_outcome)}   "
                f"secure: {_outcome(result.secure_outcome)}"
            )
            if not result.passed:
                lines.append(f"         {DIM}vulnerable: {result.vulnerable_detail}{RESET}")
                lines.append(f"         {DIM}secure:     {result.secure_detail}{RESET}")

    if report.failures:
        lines.append("")
        lines.append(f"{BOLD}Harness errors ({len(report.failures)}):{RESET}")
        lines.append("-" * 60)
        for failure in report.failures:
            where = f" [{failure.scenario}]" if failure.scenario else ""
            lines.append(f"  \033[91m{failure.error_type}{RESET} {failure.kind}{where}")
            lines.append(f"    {failure.message}")

    lines.append("")
    lines.append("=" * 60)
    verdict = "\033[92mAll exemplars verified.\033[0m" if report.ok else "\033[91mVerification failed.\033[0m"
    lines.append(verdict)
    lines.append("")

    return "\n".join(lines)


def format_json_report(report: VerificationReport, indent: int = 2) -> str:
    """Format verification report as JSON."""
    return report.to_json(indent=indent)


def format_html_report(report: VerificationReport) -> str:
    """Format verification report as standalone HTML."""
    summary = report.summary

    rows_html = ""
    for result in report.results:
        status = "pass" if result.passed else "fail"
        rows_html += f"""
            <tr class="{status}">
                <td><span class="badge {status}">{status.upper()}</span></td>
                <td>{html.escape(str(result.kind))}</td>
                <td>{result.ordinal}</td>
                <td><code>{html.escape(result.scenario)}</code></td>
                <td class="outcome {str(result.vulnerable_outcome).lower()}">{result.vulnerable_outcome}</td>
                <td class="outcome {str(result.secure_outcome).lower()}">{result.secure_outcome}</td>
            </tr>"""

    failures_html = ""
    for failure in report.failures:
        failures_html += f"""
        <div class="failure">
            <strong>{html.escape(failure.error_type)}</strong> {html.escape(str(failure.kind))}
            {f"<code>{html.escape(failure.scenario)}</code>" if failure.scenario else ""}
            <pre>{html.escape(failure.message)}</pre>
        </div>"""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Exemplar Verification Report</title>
    <style>
        * {{ margin: 0; padding: 0; box-sizing: border-box; }}
        body {{ font-family: 'Inter', -apple-system, BlinkMacSystemFont, sans-serif;
               background: #0F1117; color: #E0E0E0; padding: 2rem; }}
        .container {{ max-width: 960px; margin: 0 auto; }}
        h1 {{ color: #9945FF; font-size: 1.8rem; margin-bottom: 0.5rem; }}
        h2 {{ color: #14F195; font-size: 1.1rem; margin: 2rem 0 0.8rem; }}
        .meta {{ display: flex; gap: 2rem; margin-bottom: 2rem; color: #888; font-size: 0.9rem; }}
        .summary-bar {{ display: flex; gap: 1.5rem; margin-bottom: 2rem;
                       padding: 1rem; background: #1A1D2E; border-radius: 8px; }}
        .summary-item {{ text-align: center; }}
        .summary-item .count {{ font-size: 1.5rem; font-weight: bold; }}
        .summary-item .label {{ font-size: 0.8rem; color: #888; }}
        .passed .count {{ color: #00C853; }}
        .failed .count {{ color: #FF4444; }}
        .errors .count {{ color: #FFA500; }}
        table {{ width: 100%; border-collapse: collapse; background: #1A1D2E; border-radius: 8px; }}
        th, td {{ padding: 0.5rem 0.8rem; text-align: left; border-bottom: 1px solid #2A2D3E;
                 font-size: 0.9rem; }}
        th {{ color: #888; font-weight: normal; }}
        .badge {{ padding: 2px 8px; border-radius: 4px; font-size: 0.75rem; font-weight: bold; }}
        .badge.pass {{ background: #00C85333; color: #00C853; }}
        .badge.fail {{ background: #FF444433; color: #FF4444; }}
        .outcome.compromised {{ color: #FF4444; }}
        .outcome.rejected {{ color: #FFA500; }}
        .outcome.safe {{ color: #00C853; }}
        .failure {{ background: #1A1D2E; border-radius: 8px; padding: 1rem; margin-bottom: 1rem;
                   border-left: 4px solid #FFA500; }}
        pre {{ background: #0a0c12; padding: 0.8rem; border-radius: 4px; margin-top: 0.5rem;
              overflow-x: auto; font-size: 0.85rem; color: #ccc; white-space: pre-wrap; }}
        code {{ font-family: 'JetBrains Mono', 'Fira Code', monospace; font-size: 0.85rem; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Exemplar Verification Report</h1>

        <div class="meta">
            <span>Exemplars: <strong>{report.exemplars_checked}</strong></span>
            <span>Scenarios: <strong>{report.scenarios_run}</strong></span>
            <span>Time: <strong>{report.elapsed:.2f}s</strong></span>
        </div>

        <div class="summary-bar">
            <div class="summary-item passed"><div class="count">{summary['passed']}</div><div class="label">Passed</div></div>
            <div class="summary-item failed"><div class="count">{summary['failed']}</div><div class="label">Failed</div></div>
            <div class="summary-item errors"><div class="count">{summary['harness_errors']}</div><div class="label">Harness errors</div></div>
        </div>

        <h2>Results</h2>
        <table>
            <tr><th>Status</th><th>Kind</th><th>#</th><th>Scenario</th><th>Vulnerable</th><th>Secure</th></tr>
            {rows_html}
        </table>

        {"<h2>Harness errors</h2>" + failures_html if report.failures else ""}
    </div>
</body>
</html>"""


def format_annotations_json(registry: Registry, indent: int = 2) -> str:
    """Source/sink annotations of every registered exemplar, keyed by kind."""
    payload = {
        exemplar.kind.value: [a.to_dict() for a in exemplar.annotations()]
        for exemplar in registry.all()
    }
    return json.dumps(payload, indent=indent)
