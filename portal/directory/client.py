from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)


class DirectoryError(RuntimeError):
    """The external directory failed or answered something unusable."""


class DirectoryClient:
    """Thin wrapper over the UNAMAD directory service.

    Every lookup returns the raw payload, or ``None`` when the directory has
    no record. Any other failure raises ``DirectoryError``.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _get(self, path: str):
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Directory request to %s failed: %s", url, exc)
            raise DirectoryError("No se pudo conectar con el servicio de consulta") from exc

        if resp.status_code == 404:
            return None
        if resp.status_code == 401:
            logger.error("Directory rejected the configured token")
            raise DirectoryError("Error de autenticación con el servidor")
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise DirectoryError(f"Error al obtener datos: {resp.status_code}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            raise DirectoryError("Respuesta inválida del servicio de consulta") from exc

    def student_by_dni(self, dni: str) -> dict | None:
        data = self._get(f"data/student/{dni}")
        return data if isinstance(data, dict) and data else None

    def student_by_code(self, code: str) -> dict | None:
        data = self._get(f"getStudentInfo/{code}")
        if isinstance(data, list):
            data = data[0] if data else None
        return data if isinstance(data, dict) and data else None

    def student_profile_by_code(self, code: str) -> dict | None:
        data = self._get(f"data/student/v2/{code}")
        return data if isinstance(data, dict) and data.get("infoStudent") else None

    def teacher_by_dni(self, dni: str) -> dict | None:
        data = self._get(f"data/teacher/{dni}")
        return data if isinstance(data, dict) and data else None

    def close(self) -> None:
        self.session.close()
