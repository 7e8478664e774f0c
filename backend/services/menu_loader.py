"""Menu loading service: text extraction from menu images and PDFs."""
import logging
import os
from pathlib import Path
from typing import List

import fitz  # PyMuPDF

from config import IMAGE_EXTENSIONS, ALLOWED_EXTENSIONS, OCR_LANGUAGE, OCR_DPI
from models.document import MenuDocument

logger = logging.getLogger(__name__)


class MenuLoaderError(Exception):
    """Raised when a menu file cannot be read or transcribed."""


class MenuLoader:
    """Transcribes menu photos and PDFs to plain text.

    Images are OCR'd through PyMuPDF's Tesseract integration, which needs a
    Tesseract install with language data on the host. PDFs use their text
    layer and only fall back to OCR for pages without one.
    """

    def __init__(self, language: str = OCR_LANGUAGE, dpi: int = OCR_DPI):
        """
        Initialize MenuLoader.

        Args:
            language: Tesseract language code(s), e.g. "eng" or "eng+fra"
            dpi: Resolution used when rasterising pages for OCR
        """
        self.language = language
        self.dpi = dpi

    def extract_text(self, data: bytes, filename: str) -> str:
        """
        Extract the text of one menu file.

        Args:
            data: Raw file bytes
            filename: Original filename; its extension selects the decoder

        Returns:
            Transcribed text, pages separated by blank lines

        Raises:
            MenuLoaderError: If the type is unsupported or decoding/OCR fails
        """
        extension = Path(filename).suffix.lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise MenuLoaderError(
                f"File type '{extension}' not supported. "
                f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
            )
        if not data:
            raise MenuLoaderError(f"{filename} is empty")

        try:
            document = fitz.open(stream=data, filetype=extension.lstrip("."))
        except Exception as e:
            raise MenuLoaderError(f"Could not open {filename}: {str(e)}") from e

        try:
            force_ocr = extension in IMAGE_EXTENSIONS
            pages = [
                self._page_text(document[page_num], force_ocr)
                for page_num in range(len(document))
            ]
        except Exception as e:
            logger.error(f"Failed to transcribe {filename}: {str(e)}")
            raise MenuLoaderError(f"Failed to transcribe {filename}: {str(e)}") from e
        finally:
            document.close()

        text = "\n\n".join(page.strip() for page in pages if page.strip())
        logger.info(f"Extracted {len(text)} characters from {filename} ({len(pages)} pages)")
        return text

    def _page_text(self, page, force_ocr: bool) -> str:
        if not force_ocr:
            text = page.get_text()
            if text.strip():
                return text
            logger.debug(f"Page {page.number + 1} has no text layer, running OCR")

        textpage = page.get_textpage_ocr(language=self.language, dpi=self.dpi, full=True)
        return page.get_text(textpage=textpage)

    def load_directory(self, directory: str) -> List[MenuDocument]:
        """
        Load every supported menu file in a directory.

        The restaurant name is taken from the file stem, with underscores
        read as spaces. Files that fail to load are skipped.

        Args:
            directory: Path to directory containing menu files

        Returns:
            List of MenuDocument objects with extracted text
        """
        documents = []

        if not os.path.exists(directory):
            logger.error(f"Menu directory not found: {directory}")
            return documents

        menu_files = [
            f for f in os.listdir(directory)
            if Path(f).suffix.lower() in ALLOWED_EXTENSIONS
        ]
        logger.info(f"Found {len(menu_files)} menu files in {directory}")

        for filename in sorted(menu_files):
            filepath = os.path.join(directory, filename)

            try:
                with open(filepath, "rb") as handle:
                    text = self.extract_text(handle.read(), filename)
            except (OSError, MenuLoaderError) as e:
                logger.error(f"Error loading {filename}: {str(e)}", exc_info=True)
                continue

            documents.append(MenuDocument(
                filename=filename,
                restaurant_name=Path(filename).stem.replace("_", " ").strip(),
                text=text
            ))

        logger.info(f"Successfully loaded {len(documents)} menus")
        return documents
