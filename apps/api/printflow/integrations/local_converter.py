import subprocess
import tempfile
from pathlib import Path

from printflow.config import settings
from printflow.integrations.errors import (
    IntegrationBadGatewayError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)

_SERVICE = "libreoffice"


class LocalOfficeConverter:
    """Headless office-suite conversion run as a subprocess in a scratch directory."""

    name = "local_cli"

    def __init__(self, binary: str, timeout_s: float) -> None:
        self.binary = binary
        self.timeout_s = timeout_s

    def convert(self, docx_bytes: bytes) -> bytes:
        with tempfile.TemporaryDirectory(prefix="printflow-convert-") as workdir:
            source = Path(workdir) / "document.docx"
            source.write_bytes(docx_bytes)
            command = [
                self.binary,
                "--headless",
                "--convert-to",
                "pdf",
                "--outdir",
                workdir,
                str(source),
            ]
            try:
                completed = subprocess.run(
                    command,
                    capture_output=True,
                    timeout=self.timeout_s,
                    check=False,
                )
            except FileNotFoundError as err:
                raise IntegrationUnavailableError(
                    _SERVICE, f"{self.binary} is not installed"
                ) from err
            except subprocess.TimeoutExpired as err:
                raise IntegrationTimeoutError(_SERVICE, "Local conversion timed out") from err

            if completed.returncode != 0:
                stderr = completed.stderr.decode(errors="replace").strip()
                raise IntegrationBadGatewayError(
                    _SERVICE, f"{self.binary} exited with {completed.returncode}: {stderr[:200]}"
                )

            output = source.with_suffix(".pdf")
            if not output.exists():
                raise IntegrationBadGatewayError(_SERVICE, "Local conversion produced no PDF")
            return output.read_bytes()


def get_local_converter() -> LocalOfficeConverter:
    return LocalOfficeConverter(
        binary=settings.libreoffice_binary,
        timeout_s=settings.local_conversion_timeout_s,
    )
