"""Resource loading — resume text extraction and auxiliary instructions."""

from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from autoapply.errors import ResourceError

TEXT_EXTENSIONS = (".txt", ".md")
SUPPORTED_RESUME_EXTENSIONS = (".pdf",) + TEXT_EXTENSIONS


class ResourceLoader:
    """Reads the resources a run needs from local disk.

    Calls are blocking; async callers should run them in a worker thread.
    """

    def load_resume(self, path: str) -> str:
        file_path = Path(path)
        if not file_path.is_file():
            raise ResourceError(f"Resume not found: {file_path}")

        ext = file_path.suffix.lower()
        if ext in TEXT_EXTENSIONS:
            return file_path.read_text(encoding="utf-8").strip()
        if ext == ".pdf":
            try:
                reader = PdfReader(str(file_path))
            except (PdfReadError, OSError) as exc:
                raise ResourceError(f"Could not read PDF resume {file_path}: {exc}") from exc
            return "\n".join((page.extract_text() or "") for page in reader.pages).strip()
        raise ResourceError(
            f"Unsupported resume extension '{ext}'. Supported: {SUPPORTED_RESUME_EXTENSIONS}"
        )

    def load_extra_prompts(self, path: str | None) -> str | None:
        """Return the raw text of the extra prompts file, or None if no path was given."""
        if not path:
            return None
        file_path = Path(path)
        try:
            return file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ResourceError(f"Could not read extra prompts {file_path}: {exc}") from exc
