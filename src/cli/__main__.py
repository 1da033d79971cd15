# src/cli/__main__.py
import json
import sys
from datetime import date
from pathlib import Path

from src.core.errors import QuotationValidationError, SnapshotImportError
from src.core.quotation_state import QuotationState
from src.server.settings.config import settings
from src.services.exchange_rate import DEFAULT_USD_RATE, valid_rate
from src.services.quote_document import (
    CompanyInfo,
    QuotationDocument,
    build_context_from_quotation,
    render_quotation_html,
)
from src.services.quote_pdf import export_quotation_pdf, pdf_filename

USAGE = """Usage:
  python -m src.cli render <snapshot.json> [--theme=light|dark] [--date=YYYY-MM-DD] [--rate=60.50] [--out=out.html]
  python -m src.cli pdf <snapshot.json> [--theme=light|dark] [--date=YYYY-MM-DD] [--rate=60.50] [--out=out.pdf]

Examples:
  python -m src.cli render cotizacion.json --out=out.html
  python -m src.cli pdf cotizacion.json --theme=dark
"""


def _fail(msg: str, code: int = 2):
    print(msg, file=sys.stderr)
    sys.exit(code)


def _load_json(p: str):
    try:
        return json.loads(Path(p).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        _fail(f"Error reading JSON '{p}': {e}")


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)
    if len(argv) < 2:
        _fail(USAGE, 1)

    cmd = argv[0].lower()
    snapshot_path = argv[1]

    # defaults
    theme = "light"
    generated_on = date.today()
    rate = DEFAULT_USD_RATE
    out_path = None

    # parse optional args (order-agnostic)
    for arg in argv[2:]:
        if arg.startswith("--out="):
            out_path = arg.split("=", 1)[1]
        elif arg.startswith("--theme="):
            theme = arg.split("=", 1)[1]
        elif arg.startswith("--date="):
            try:
                generated_on = date.fromisoformat(arg.split("=", 1)[1])
            except ValueError:
                _fail(f"Invalid date: {arg}")
        elif arg.startswith("--rate="):
            try:
                rate = valid_rate(float(arg.split("=", 1)[1])) or DEFAULT_USD_RATE
            except ValueError:
                _fail(f"Invalid rate: {arg}")

    if cmd not in ("render", "pdf"):
        _fail(USAGE, 1)

    state = QuotationState(modules=[])
    try:
        state.import_snapshot(_load_json(snapshot_path))
    except SnapshotImportError as e:
        _fail(str(e))

    doc = QuotationDocument.from_state(state, usd_rate=rate)
    company = CompanyInfo.from_settings(settings.company)

    try:
        if cmd == "render":
            ctx = build_context_from_quotation(doc, company, theme=theme, generated_on=generated_on)
            html = render_quotation_html(ctx)
            if out_path:
                Path(out_path).write_text(html, encoding="utf-8")
            else:
                sys.stdout.write(html)
            return 0

        pdf = export_quotation_pdf(doc, company, theme=theme, generated_on=generated_on)
    except QuotationValidationError as e:
        _fail(str(e))

    out = Path(out_path or pdf_filename(company.short_name, doc.client_name, generated_on))
    out.write_bytes(pdf)
    print(out)
    return 0


if __name__ == "__main__":
    main()
