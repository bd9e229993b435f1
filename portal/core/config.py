from __future__ import annotations

import os


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///portal.db",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Relative paths resolve against the Flask instance folder.
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
    MAX_UPLOAD_BYTES = 5 * 1024 * 1024
    MAX_CONTENT_LENGTH = 60 * 1024 * 1024

    DIRECTORY_API_URL = os.getenv("DIRECTORY_API_URL", "https://daa-documentos.unamad.edu.pe:8081/api")
    DIRECTORY_API_TOKEN = os.getenv("DIRECTORY_API_TOKEN", "")
    DIRECTORY_TIMEOUT = float(os.getenv("DIRECTORY_TIMEOUT", "10"))
