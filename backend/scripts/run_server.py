"""
Script de serveur de développement.

Lance l'API de contenu avec uvicorn et des valeurs par défaut locales (mailer
en mémoire), sans broker SMTP à disposition.
"""

import os

# Ensure local-friendly defaults BEFORE importing app/modules
os.environ.setdefault("MAILER_BACKEND", "memory")

import uvicorn  # noqa: E402

from backend.app.main import app  # noqa: E402


def main():
    """Point d'entrée du serveur: écoute sur `HOST`/`PORT` (défaut 0.0.0.0:8000)."""
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run(app, host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
