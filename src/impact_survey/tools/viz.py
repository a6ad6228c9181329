from pathlib import Path
from typing import Optional, Sequence

import matplotlib
import matplotlib.pyplot as plt
import numpy as np

from impact_survey.db.models import AnalysisRow

matplotlib.use('Agg')


def _short_label(text: str, width: int = 28) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def plot_score_change(
    rows: Sequence[AnalysisRow],
    output_path: Optional[str] = None,
    dpi: int = 120,
) -> plt.Figure:
    """
    Grouped bar chart of initial vs final average score per question.

    Questions with neither average (structural questions, or no data yet) are left out.
    Missing bars are drawn at zero height and labelled "n/a".

    Args:
        rows: Analysis rows in catalog order.
        output_path: If given, the figure is also saved there as PNG.
        dpi: Resolution used when saving.

    Returns:
        plt.Figure: The created figure.
    """
    plotted = [r for r in rows if r.average_initial_score is not None or r.average_final_score is not None]

    fig, ax = plt.subplots(figsize=(max(6, 1.4 * len(plotted) + 2), 5))

    if not plotted:
        ax.text(0.5, 0.5, "No scores available yet", ha="center", va="center", transform=ax.transAxes)
        ax.set_axis_off()
    else:
        x = np.arange(len(plotted))
        width = 0.38
        initial = [r.average_initial_score or 0.0 for r in plotted]
        final = [r.average_final_score or 0.0 for r in plotted]

        bars_initial = ax.bar(x - width / 2, initial, width, label="Initial")
        bars_final = ax.bar(x + width / 2, final, width, label="Final")

        for bars, values in ((bars_initial, [r.average_initial_score for r in plotted]),
                             (bars_final, [r.average_final_score for r in plotted])):
            ax.bar_label(bars, labels=["n/a" if v is None else f"{v:.2f}" for v in values], fontsize=8)

        ax.set_xticks(x)
        ax.set_xticklabels([_short_label(r.question) for r in plotted], rotation=30, ha="right")
        ax.set_ylabel("Average score")
        ax.legend()
        ax.grid(True, axis='y', linestyle='--', alpha=0.7)

    ax.set_title("Initial vs final average score")
    fig.tight_layout()

    if output_path:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi)

    return fig
