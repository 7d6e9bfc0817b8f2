"""
Module entry point for: python -m pdfdesk

Allows running the toolkit directly as a module:
    python -m pdfdesk merge <a.pdf> <b.pdf> [options]
    python -m pdfdesk split <pdf_path> --start 2 --end 5
    python -m pdfdesk serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
