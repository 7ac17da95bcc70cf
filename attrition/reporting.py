import io
from typing import List

import pandas as pd
from reportlab.pdfgen import canvas

from .evaluate import format_report


def _report_lines(result) -> List[str]:
    lines = [
        "Employee attrition pipeline report",
        "",
        f"Rows: {result.n_train} train / {result.n_test} test",
        f"Selected features ({len(result.selected_features)}): {', '.join(result.selected_features)}",
        f"Class counts before balancing: {result.balance.counts_before}",
        f"Class counts after balancing: {result.balance.counts_after}",
        "",
        f"Tabular models (positive class = {result.config.positive_label}):",
    ]
    lines.extend(format_report(result.report).splitlines())
    lines.extend(["", "Cross-validation:"])
    lines.extend(_cv_lines(result.models))

    if result.text is not None:
        text = result.text
        lines.extend([
            "",
            f"Text models (vocabulary: {text.vocabulary_size} terms, weighting: {result.config.text_weighting}):",
        ])
        lines.extend(format_report(text.report).splitlines())
        terms = ", ".join(f"{term} ({value:g})" for term, value in text.top_terms.items())
        lines.extend(["", f"Most frequent terms: {terms}"])

    return lines


def _cv_lines(models) -> List[str]:
    lines = []
    for row in models.summary().itertuples(index=False):
        score = "n/a" if pd.isna(row.cv_accuracy) else f"{row.cv_accuracy:.4f}"
        params = ", ".join(f"{k}={v}" for k, v in sorted(row.best_params.items())) or "-"
        lines.append(f"  {row.model}: accuracy {score}; {params}")
    return lines


def report_to_text(result) -> str:
    return "\n".join(_report_lines(result))


def report_to_pdf(result) -> bytes:
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer)
    y = 800
    c.setFont("Courier", 8)
    for line in _report_lines(result):
        c.drawString(40, y, line[:120])
        y -= 12
        if y < 60:
            c.showPage()
            c.setFont("Courier", 8)
            y = 800
    c.save()
    buffer.seek(0)
    return buffer.getvalue()
