"""Command-line interface for DTR recognition.

Subcommands extract a single time sheet to JSON, process a folder of
time sheets into a CSV of attendance rows, and list the registered
formats in match order.
"""

import argparse
import csv
import json
import sys
from pathlib import Path

from src.container import Container, build_container
from src.extraction.field_extractor import DTRPrediction
from src.utils.config import load_config
from src.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.png", "*.jpg", "*.jpeg", "*.tiff", "*.tif", "*.pdf", "*.txt")
_CSV_COLUMNS = [
    "filename",
    "page",
    "status",
    "employee_id",
    "employee_name",
    "date",
    "time_in",
    "time_out",
    "break_hours",
    "overtime_hours",
    "regular_hours",
    "format_name",
    "confidence",
    "needs_review",
    "intake_id",
    "error",
]


def _find_documents(input_dir: Path) -> list[Path]:
    """Find all supported time sheet files in a directory, sorted by name."""
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def _process_file(
    container: Container, file_path: Path, company_id: int | None
) -> list[DTRPrediction]:
    """Run one file through the pipeline; text files skip OCR."""
    if file_path.suffix.lower() == ".txt":
        return [container.pipeline.process_text(file_path.read_text(), company_id=company_id)]
    return container.pipeline.process_document(file_path, company_id=company_id)


def _prediction_row(filename: str, page: int, prediction: DTRPrediction) -> dict[str, object]:
    row: dict[str, object] = {
        key: value for key, value in prediction.to_dict().items() if key in _CSV_COLUMNS
    }
    row.update(
        filename=filename,
        page=page,
        status="review" if prediction.needs_review else "ok",
        confidence=round(prediction.confidence, 3),
    )
    return row


def process_folder(
    input_dir: Path,
    output_csv: Path,
    company_id: int | None = None,
    verbose: bool = False,
    container: Container | None = None,
) -> dict[str, int]:
    """Process every time sheet in a folder and write one CSV row per page.

    Args:
        input_dir: Directory containing images, PDFs or OCR text files.
        output_csv: Path for the output CSV file.
        company_id: Company scope for format selection.
        verbose: Whether to print per-file progress.
        container: Pre-built services; built from config when omitted.

    Returns:
        Counts of files and of pages recognized, needing review, or failed.
    """
    container = container or build_container(load_config())

    files = _find_documents(input_dir)
    summary = {"total": len(files), "recognized": 0, "review": 0, "failed": 0}
    if not files:
        logger.warning("No documents found in %s", input_dir)
        return summary

    logger.info("Found %d documents to process", len(files))
    rows: list[dict[str, object]] = []

    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")
        try:
            predictions = _process_file(container, file_path, company_id)
        except Exception as exc:
            logger.error("Failed to process %s: %s", file_path.name, exc)
            rows.append({"filename": file_path.name, "status": "failed", "error": str(exc)})
            summary["failed"] += 1
            continue

        for page, prediction in enumerate(predictions, 1):
            rows.append(_prediction_row(file_path.name, page, prediction))
            summary["review" if prediction.needs_review else "recognized"] += 1

    _write_csv(rows, output_csv)
    logger.info("Results written to %s", output_csv)
    _print_summary(summary, output_csv)
    return summary


def _write_csv(rows: list[dict[str, object]], output_path: Path) -> None:
    """Write attendance rows to a CSV file with a fixed column order."""
    if not rows:
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("DTR Batch Complete")
    print(f"{'=' * 50}")
    print(f"Files:        {summary['total']}")
    print(f"Recognized:   {summary['recognized']}")
    print(f"Needs review: {summary['review']}")
    print(f"Failed:       {summary['failed']}")
    print(f"Output:       {output_csv}")


def extract_single(
    file_path: Path,
    company_id: int | None = None,
    container: Container | None = None,
) -> dict[str, object]:
    """Recognize one time sheet and return its predictions.

    Returns:
        Dictionary with the filename and one prediction dict per page.
    """
    container = container or build_container(load_config())
    predictions = _process_file(container, file_path, company_id)
    return {
        "filename": file_path.name,
        "predictions": [p.to_dict() for p in predictions],
    }


def list_formats(
    company_id: int | None = None,
    include_inactive: bool = False,
    container: Container | None = None,
) -> list[dict[str, object]]:
    """Registered formats in match order, as plain dicts."""
    container = container or build_container(load_config())
    registry = container.registry
    formats = (
        [f for f in registry.list_all() if f.applies_to(company_id)]
        if include_inactive
        else registry.list_active(company_id)
    )
    return [
        {
            "id": f.id,
            "name": f.name,
            "company_id": f.company_id,
            "is_active": f.is_active,
            "fields": sorted(f.extraction_rules),
        }
        for f in formats
    ]


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="DTR time sheet recognizer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    batch_parser = subparsers.add_parser("batch", help="Process a folder of time sheets")
    batch_parser.add_argument("input_dir", type=Path, help="Input directory with documents")
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("dtr_results.csv"),
        help="Output CSV file (default: dtr_results.csv)",
    )
    batch_parser.add_argument("--company-id", type=int, help="Company scope for format selection")
    batch_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    single_parser = subparsers.add_parser("extract", help="Process a single time sheet")
    single_parser.add_argument("file", type=Path, help="Image, PDF or OCR text file")
    single_parser.add_argument("--company-id", type=int, help="Company scope for format selection")
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    formats_parser = subparsers.add_parser("formats", help="List registered DTR formats")
    formats_parser.add_argument("--company-id", type=int, help="Only formats usable for this company")
    formats_parser.add_argument("--all", action="store_true", help="Include inactive formats")

    args = parser.parse_args(argv)

    setup_logging()

    if args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(args.input_dir, args.output, args.company_id, args.verbose)
    elif args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        result = extract_single(args.file, args.company_id)
        output_str = json.dumps(result, indent=2)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str)
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    elif args.command == "formats":
        for entry in list_formats(args.company_id, args.all):
            scope = entry["company_id"] if entry["company_id"] is not None else "global"
            status = "" if entry["is_active"] else " (inactive)"
            print(f"{entry['id']:>4}  {entry['name']} [{scope}]{status}: {', '.join(entry['fields'])}")
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
