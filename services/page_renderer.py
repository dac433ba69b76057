import io
import logging

from PIL import Image, UnidentifiedImageError
from pdf2image import convert_from_bytes, pdfinfo_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)

from config.settings import settings
from models.submission import PageImage
from utils.errors import RenderError, STAGE_RENDER

logger = logging.getLogger(__name__)

PDF_MAGIC = b'%PDF'


class PageRenderer:
    """
    Turns an uploaded document into page image URLs.

    PDFs are rendered one page at a time with poppler (pdf2image); a plain
    PNG/JPEG upload counts as a one-page document. Each page is uploaded
    through the storage service before its URL is yielded.
    """

    def __init__(self, storage, dpi=None):
        self.storage = storage
        self.dpi = dpi or settings.PAGE_DPI

    def render(self, document, folder):
        """
        Validate `document` and return a lazy iterator of PageImage.

        Raises RenderError right away for undecodable or empty documents;
        the pages themselves are rendered and uploaded as the iterator is
        consumed. Calling render again renders everything again.
        """
        if not document:
            raise RenderError("Submission document is empty", stage=STAGE_RENDER)

        if document[:len(PDF_MAGIC)] == PDF_MAGIC:
            page_count = self._pdf_page_count(document)
            return self._pdf_pages(document, page_count, folder)

        image = self._open_image(document)
        return self._single_page(image, folder)

    def _pdf_page_count(self, document):
        try:
            info = pdfinfo_from_bytes(document)
        except PDFInfoNotInstalledError as e:
            logger.error("poppler is not installed; cannot render PDF submissions")
            raise RenderError(f"PDF renderer unavailable: {e}", stage=STAGE_RENDER) from e
        except (PDFPageCountError, PDFSyntaxError, PDFPopplerTimeoutError, ValueError) as e:
            raise RenderError(f"Document is not a readable PDF: {e}", stage=STAGE_RENDER) from e

        pages = int(info.get('Pages') or 0)
        if pages < 1:
            raise RenderError("Document has no pages", stage=STAGE_RENDER)
        return pages

    def _open_image(self, document):
        try:
            image = Image.open(io.BytesIO(document))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise RenderError(f"Document is neither a PDF nor an image: {e}", stage=STAGE_RENDER) from e
        return image

    def _pdf_pages(self, document, page_count, folder):
        for page_number in range(1, page_count + 1):
            try:
                images = convert_from_bytes(document, dpi=self.dpi,
                                            first_page=page_number, last_page=page_number)
            except (PDFPageCountError, PDFSyntaxError, PDFPopplerTimeoutError) as e:
                raise RenderError(f"Failed to render page {page_number}: {e}", stage=STAGE_RENDER) from e
            if not images:
                raise RenderError(f"Page {page_number} rendered empty", stage=STAGE_RENDER)
            yield self._upload(images[0], page_number, folder)

    def _single_page(self, image, folder):
        yield self._upload(image, 1, folder)

    def _upload(self, image, page_number, folder):
        if image.mode not in ('RGB', 'L'):
            image = image.convert('RGB')
        buf = io.BytesIO()
        image.save(buf, format='PNG')
        url = self.storage.save_bytes(buf.getvalue(), folder, f"page_{page_number}.png", 'image/png')
        logger.debug("Rendered page %d -> %s", page_number, url)
        return PageImage(page_number, url)
