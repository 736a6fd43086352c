#!/usr/bin/env python3
"""
library_reports.py

Lending analytics over a Library snapshot.

This module provides functions to:
- Flatten a library's borrow history into a DataFrame joined with item and member data
- Compute lending aggregates (loans per item type, fines per member, status counts)
- Produce visualisations and save them to disk
- Export aggregate CSVs and a summary Excel workbook when possible

Typical usage:
    python library_reports.py --out library_outputs

The public entrypoint is `analyze(library, out)` which orchestrates the full
pipeline and returns a small summary dictionary.
"""
from __future__ import annotations
import argparse
import datetime
import logging
import math
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from library_system import Library, build_demo_library

plt.rcParams.update({"figure.max_open_warning": 0})

logger = logging.getLogger("LibrarySystem.analytics")

RECORD_FRAME_COLUMNS = ["record_id", "item_id", "item_type", "title", "member_id", "member_name", "member_status",
                        "borrow_date", "due_date", "return_date", "returned", "overdue", "days_overdue", "fine",
                        "status"]


# -------------------- Loading -------------------- #
def load_records(library: Library, as_of: Optional[datetime.date] = None) -> pd.DataFrame:
    """
    Flatten the borrow history of `library` into one row per record.

    Item and member details are joined by id; records whose item or member has
    since been removed keep their ids and get "Unknown" labels.

    Args:
        library: Library to read from.
        as_of: reference date for overdue/fine columns (default: the library clock).

    Returns:
        DataFrame with the columns in RECORD_FRAME_COLUMNS.
    """
    today = as_of or library.today()
    rows = []
    for r in library.records:
        item = library.find_item(r.item_id)
        member = library.find_member(r.member_id)
        rows.append({
            "record_id": r.record_id,
            "item_id": r.item_id,
            "item_type": item.item_type.display_name if item else "Unknown",
            "title": item.title if item else r.item_id,
            "member_id": r.member_id,
            "member_name": member.name if member else "Unknown",
            "member_status": member.status.value if member else "Unknown",
            "borrow_date": pd.Timestamp(r.borrow_date),
            "due_date": pd.Timestamp(r.due_date),
            "return_date": pd.Timestamp(r.return_date) if r.return_date else pd.NaT,
            "returned": not r.is_active,
            "overdue": r.is_overdue(today),
            "days_overdue": r.days_overdue(today),
            "fine": float(library.service.calculate_fine(r, today)),
        })
    df = pd.DataFrame(rows, columns=RECORD_FRAME_COLUMNS[:-1])
    if df.empty:
        df["status"] = pd.Series(dtype=str)
        return df
    returned = df["returned"].astype(bool).to_numpy()
    overdue = df["overdue"].astype(bool).to_numpy()
    df["status"] = np.where(returned,
                            np.where(overdue, "Returned late", "Returned"),
                            np.where(overdue, "Overdue", "Active"))
    return df


# -------------------- Aggregates -------------------- #
def lending_metrics(df: pd.DataFrame) -> dict:
    """
    Compute lending aggregates from the output of `load_records`.

    Produces:
      - total_loans / active_loans / overdue_loans: scalar counts
      - total_fines: sum of fines over all records
      - loans_by_type: loans per item type, most borrowed first
      - fines_by_member: fine total and loan count per member, highest fine first
      - status_counts: number of records per status label
      - type_status: item type x status crosstab

    Args:
        df: DataFrame produced by `load_records`.

    Returns:
        Dict with the keys above; tables are empty DataFrames when there are no records.
    """
    if df.empty:
        return {
            "total_loans": 0,
            "active_loans": 0,
            "overdue_loans": 0,
            "total_fines": 0.0,
            "loans_by_type": pd.DataFrame(columns=["Item Type", "Loans"]),
            "fines_by_member": pd.DataFrame(columns=["Member", "Loans", "Fine"]),
            "status_counts": pd.DataFrame(columns=["Status", "Records"]),
            "type_status": pd.DataFrame(),
        }

    loans_by_type = (df.groupby("item_type").size().reset_index(name="Loans")
                     .rename(columns={"item_type": "Item Type"})
                     .sort_values("Loans", ascending=False))
    fines_by_member = (df.groupby("member_name")
                       .agg(Loans=("record_id", "count"), Fine=("fine", "sum"))
                       .reset_index().rename(columns={"member_name": "Member"})
                       .sort_values(["Fine", "Loans"], ascending=False))
    status_counts = (df["status"].value_counts().rename_axis("Status").reset_index(name="Records"))
    type_status = pd.crosstab(df["item_type"], df["status"])

    return {
        "total_loans": int(len(df)),
        "active_loans": int((~df["returned"].astype(bool)).sum()),
        "overdue_loans": int((df["overdue"].astype(bool) & ~df["returned"].astype(bool)).sum()),
        "total_fines": float(df["fine"].sum()),
        "loans_by_type": loans_by_type,
        "fines_by_member": fines_by_member,
        "status_counts": status_counts,
        "type_status": type_status,
    }


# -------------------- Plot helpers -------------------- #
def save_plot(fig, path: Path) -> None:
    """
    Save a matplotlib figure to disk ensuring the parent directory exists.

    Args:
        fig: matplotlib.figure.Figure instance.
        path: Path to the PNG file to write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)


def annotate_bar_values(ax, fmt="{:.0f}", fontsize=8, va="bottom"):
    """
    Add numeric labels on top of bar containers in an Axes.

    Bars with NaN or zero heights are skipped.
    """
    for p in ax.patches:
        height = p.get_height()
        if height is None or (isinstance(height, float) and math.isnan(height)):
            continue
        if abs(height) < 1e-12:
            continue
        x = p.get_x() + p.get_width() / 2
        ax.text(x, height, fmt.format(height), ha="center", va=va, fontsize=fontsize, rotation=0)


# -------------------- Visualisations -------------------- #
def create_visualisations(metrics: dict, out_dir: Path) -> list:
    """
    Create and persist charts for the computed aggregates.

    Each chart is produced independently: a chart that cannot be drawn is
    logged and skipped so the remaining ones are still written.

    Args:
        metrics: Output of `lending_metrics`.
        out_dir: Base directory where `plots/` will be created.

    Returns:
        List[Path] of saved plot file paths.
    """
    plots = []
    plots_dir = out_dir / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)

    # 1) Loans per item type
    loans_by_type = metrics.get("loans_by_type")
    if isinstance(loans_by_type, pd.DataFrame) and not loans_by_type.empty:
        try:
            fig, ax = plt.subplots(figsize=(8, 5))
            loans_by_type.set_index("Item Type")["Loans"].plot(kind="bar", ax=ax)
            ax.set_title("Loans by Item Type")
            ax.set_ylabel("Loans")
            ax.set_xlabel("")
            plt.xticks(rotation=30, ha="right")
            annotate_bar_values(ax)
            p = plots_dir / "01_loans_by_type.png"
            save_plot(fig, p)
            plots.append(p)
        except (ValueError, TypeError, OSError) as e:
            logger.warning("Could not plot loans by type: %s", e)

    # 2) Fines per member
    fines = metrics.get("fines_by_member")
    if isinstance(fines, pd.DataFrame) and not fines.empty and fines["Fine"].sum() > 0:
        try:
            fig, ax = plt.subplots(figsize=(8, 5))
            fines.head(15).set_index("Member")["Fine"].plot(kind="bar", ax=ax, color="tab:red")
            ax.set_title("Fines by Member")
            ax.set_ylabel("Fine")
            ax.set_xlabel("")
            plt.xticks(rotation=30, ha="right")
            annotate_bar_values(ax, fmt="{:.2f}")
            p = plots_dir / "02_fines_by_member.png"
            save_plot(fig, p)
            plots.append(p)
        except (ValueError, TypeError, OSError) as e:
            logger.warning("Could not plot fines by member: %s", e)

    # 3) Item type x status heatmap
    type_status = metrics.get("type_status")
    if isinstance(type_status, pd.DataFrame) and not type_status.empty:
        try:
            fig, ax = plt.subplots(figsize=(8, 5))
            sns.heatmap(type_status, annot=True, fmt="d", cmap="Blues", cbar_kws={"label": "Records"}, ax=ax)
            ax.set_title("Borrow Records by Item Type and Status")
            ax.set_xlabel("")
            ax.set_ylabel("")
            p = plots_dir / "03_type_status_heatmap.png"
            save_plot(fig, p)
            plots.append(p)
        except (ValueError, TypeError, OSError) as e:
            logger.warning("Could not plot type/status heatmap: %s", e)

    return plots


# -------------------- Exports -------------------- #
def try_save_excel(dfs: dict, out_path: Path) -> tuple:
    """
    Attempt to write multiple DataFrames into an Excel workbook.

    Uses pandas.ExcelWriter which requires openpyxl (or an appropriate engine)
    to be available. On failure returns (False, error_message) so callers can
    rely on the CSV exports instead.

    Returns:
        Tuple[bool, Optional[str]]: (success_flag, error_message_or_None).
    """
    try:
        with pd.ExcelWriter(out_path) as writer:
            for name, df in dfs.items():
                df.to_excel(writer, sheet_name=name[:31], index=False)
        return True, None
    except (ImportError, ValueError, OSError) as e:
        return False, str(e)


def save_aggregates(out_dir: Path, metrics: dict, df: pd.DataFrame) -> tuple:
    """
    Persist aggregate CSVs under out_dir/aggregates/ and attempt an Excel workbook.

    Args:
        out_dir: Base output directory.
        metrics: Output of `lending_metrics`.
        df: Record-level DataFrame from `load_records`.

    Returns:
        Tuple[bool, Optional[str]] from `try_save_excel`.
    """
    agg_dir = out_dir / "aggregates"
    agg_dir.mkdir(parents=True, exist_ok=True)

    df.to_csv(agg_dir / "borrow_records.csv", index=False)
    metrics["loans_by_type"].to_csv(agg_dir / "loans_by_type.csv", index=False)
    metrics["fines_by_member"].to_csv(agg_dir / "fines_by_member.csv", index=False)
    metrics["status_counts"].to_csv(agg_dir / "status_counts.csv", index=False)

    dfs_for_excel = {name: metrics[name] for name in ("loans_by_type", "fines_by_member", "status_counts")
                     if not metrics[name].empty}
    if not dfs_for_excel:
        return True, None
    return try_save_excel(dfs_for_excel, agg_dir / "key_aggregates.xlsx")


# -------------------- Orchestrator -------------------- #
def analyze(library: Library, out: str = "library_outputs", as_of: Optional[datetime.date] = None) -> dict:
    """
    Run the full analytics pipeline on `library`.

    Steps:
      1. Flatten the borrow history
      2. Compute lending aggregates
      3. Create visualisations and save aggregates to disk

    Args:
        library: Library to analyse.
        out: Output directory for plots and aggregates.
        as_of: reference date for overdue/fine computations.

    Returns:
        Summary dict with keys: total_loans, active_loans, overdue_loans,
        total_fines, top_item_type, plots.
    """
    out_dir = Path(out)
    out_dir.mkdir(parents=True, exist_ok=True)

    logger.info("Loading borrow records...")
    df = load_records(library, as_of)
    metrics = lending_metrics(df)

    logger.info("Creating visualisations...")
    plots = create_visualisations(metrics, out_dir)

    logger.info("Saving aggregates...")
    ok, err = save_aggregates(out_dir, metrics, df)
    if not ok:
        logger.warning("Excel write failed (openpyxl may be missing); CSV aggregates were written. Error: %s", err)

    top_type = None
    if not metrics["loans_by_type"].empty:
        top_type = metrics["loans_by_type"].iloc[0]["Item Type"]

    logger.info("Saved plots and aggregates to %s", out_dir.resolve())
    return {
        "total_loans": metrics["total_loans"],
        "active_loans": metrics["active_loans"],
        "overdue_loans": metrics["overdue_loans"],
        "total_fines": metrics["total_fines"],
        "top_item_type": top_type,
        "plots": plots,
    }


# -------------------- CLI -------------------- #
def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Lending analytics over the demo library")
    parser.add_argument("--out", default="library_outputs", help="Output folder for plots & aggregates")
    args = parser.parse_args(argv)

    library = build_demo_library()
    member_ids = [m.id for m in library.members]
    for idx, item in enumerate(library.loanable_items()):
        library.borrow_item(item.id, member_ids[idx % len(member_ids)])

    summary = analyze(library, args.out)
    print("\n=== Lending summary ===")
    print(f"Total loans: {summary['total_loans']}")
    print(f"Active loans: {summary['active_loans']}")
    print(f"Overdue loans: {summary['overdue_loans']}")
    print(f"Outstanding fines: {summary['total_fines']:.2f}")
    if summary["top_item_type"]:
        print(f"Most borrowed item type: {summary['top_item_type']}")


if __name__ == "__main__":
    main()
