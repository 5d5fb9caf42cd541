"""
Invoice Engine - CLI Entry Point

Usage:
    python main.py --input <path/to/invoice.yaml> [--config business.yaml] [--format pdf|xlsx|escpos] [--output <path>]
    python main.py --input invoice.json --allocate-number --format escpos
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import yaml

from invoice_engine.config import load_config
from invoice_engine.engine import InvoiceEngine
from invoice_engine.errors import (
    ArithmeticMismatchError,
    ConfigLoadError,
    InvalidInvoiceStructureError,
    MissingInvoiceNumberError,
    NoLineItemsError,
    RenderError,
)
from invoice_engine.validator import parse_invoice_payload

logger = logging.getLogger(__name__)

FORMATS = ("pdf", "xlsx", "escpos")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )


def load_invoice_file(input_path: str) -> dict:
    """Load an invoice payload from a JSON or YAML file."""
    path = Path(input_path)

    if not path.exists():
        raise InvalidInvoiceStructureError(f"Invoice file not found: {input_path}")

    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            try:
                payload = json.load(f)
            except ValueError as e:
                raise InvalidInvoiceStructureError(f"Invalid JSON in {input_path}: {e}")
        else:
            try:
                payload = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise InvalidInvoiceStructureError(f"Invalid YAML in {input_path}: {e}")

    logger.info(f"Loaded invoice payload: {path.name}")
    return payload


async def allocate_number(engine: InvoiceEngine, date_string: Optional[str]) -> str:
    try:
        return await engine.allocate_invoice_number(date_string)
    finally:
        await engine.aclose()


def run(input_path: str, config_path: Optional[str], output_format: str,
        output_path: Optional[str], allocate: bool, date_string: Optional[str]) -> str:
    """
    Compute and render one invoice, writing the artifact to disk.

    Returns:
        The path of the written file.
    """
    business, settings = load_config(config_path)
    engine = InvoiceEngine.from_settings(business, settings)

    request = parse_invoice_payload(load_invoice_file(input_path))

    if allocate:
        number = asyncio.run(allocate_number(engine, date_string))
        request = request.model_copy(update={"invoice_number": number})

    if output_format == "pdf":
        result = engine.render_pdf(request)
    elif output_format == "xlsx":
        result = engine.render_xlsx(request)
    else:
        result = engine.render_receipt(request)

    if not result.success:
        raise RENDER_FAILURES.get(result.error_type, RenderError)(result.error)

    document = result.data
    if output_path is None:
        output_path = str(Path(input_path).parent / "output" / document.file_name)

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "wb") as f:
        f.write(document.content)

    logger.info(f"SUCCESS: {output_format} written to {output_path}")
    return output_path


RENDER_FAILURES = {
    cls.__name__: cls
    for cls in (
        ArithmeticMismatchError,
        InvalidInvoiceStructureError,
        MissingInvoiceNumberError,
        NoLineItemsError,
        RenderError,
    )
}


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Invoice Engine - compute GST and render invoices as PDF, XLSX or ESC/POS receipts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --input invoice.yaml
  python main.py --input invoice.yaml --format escpos --output receipt.bin
  python main.py --input invoice.json --config business.yaml --allocate-number
        """,
    )

    parser.add_argument("--input", "-i", required=True, help="Path to the invoice payload (YAML or JSON)")
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to the business configuration YAML (default: bundled template)",
    )
    parser.add_argument("--format", "-f", choices=FORMATS, default="pdf", help="Output format (default: pdf)")
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Path for the output file (default: ./output/<suggested file name>)",
    )
    parser.add_argument(
        "--allocate-number",
        action="store_true",
        help="Allocate a fresh invoice number instead of using the one in the payload",
    )
    parser.add_argument("--date", default=None, help="Invoice date (YYYY-MM-DD) used when allocating a number")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()
    configure_logging(args.verbose)

    try:
        result = run(args.input, args.config, args.format, args.output, args.allocate_number, args.date)
        print(f"\n[SUCCESS] Invoice rendered successfully!")
        print(f"   Output: {result}")
        sys.exit(0)

    except (ConfigLoadError, InvalidInvoiceStructureError, MissingInvoiceNumberError,
            NoLineItemsError, ArithmeticMismatchError, RenderError) as e:
        error_type = type(e).__name__
        print(f"\n[ERROR] {error_type}: {e}", file=sys.stderr)
        print(f"  File: {args.input}", file=sys.stderr)
        sys.exit(1)

    except Exception as e:
        print(f"\n[ERROR] Unexpected error: {e}", file=sys.stderr)
        print(f"  File: {args.input}", file=sys.stderr)
        logger.exception("Unexpected error while rendering invoice")
        sys.exit(1)


if __name__ == "__main__":
    main()
