"""
Document loading: PDF (one document per page) and plain text files.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pypdf import PdfReader

from ..errors import RequestValidationError

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".text"}


@dataclass
class Document:
    text: str
    source_id: str
    metadata: dict = field(default_factory=dict)


def load_document(path: str | Path) -> list[Document]:
    """
    Load a file into one or more Documents.

    PDFs yield one Document per page that has extractable text; text files
    yield a single Document. The file name is used as the source id.
    """
    path = Path(path)
    if not path.is_file():
        raise RequestValidationError(f"Document not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".pdf":
        return _load_pdf(path)
    if suffix in TEXT_SUFFIXES:
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            logger.warning(f"{path.name} is empty")
            return []
        return [Document(text=text, source_id=path.name, metadata={"source": path.name})]

    raise RequestValidationError(f"Unsupported document type: {path.suffix or path.name}")


def _load_pdf(path: Path) -> list[Document]:
    reader = PdfReader(path)

    title = None
    if reader.metadata:
        title = reader.metadata.get("/Title")

    documents = []
    for page_number, page in enumerate(reader.pages, 1):
        page_text = page.extract_text()
        if not page_text or not page_text.strip():
            continue
        metadata = {"source": path.name, "page": page_number}
        if title:
            metadata["title"] = str(title)
        documents.append(Document(text=page_text, source_id=path.name, metadata=metadata))

    if not documents:
        logger.warning(f"No extractable text in {path.name} (possibly scanned)")
    else:
        logger.info(f"Loaded {len(documents)} of {len(reader.pages)} pages from {path.name}")
    return documents
