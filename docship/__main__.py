"""
__main__.py — Permite ejecutar Docship como módulo.

Esto hace posible ejecutar:
    python -m docship run --dry-run

En vez de tener que especificar el archivo:
    python docship/cli.py run --dry-run
"""

from docship.cli import main

if __name__ == "__main__":
    main()
