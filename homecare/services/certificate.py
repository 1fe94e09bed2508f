import logging
import os
import tempfile
import webbrowser
from typing import Optional, Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape

from homecare.schemas.exam import ExamCertificate

logger = logging.getLogger(__name__)

DEFAULT_RECIPIENT = "Candidate"
DEFAULT_EXAM_TITLE = "Training Examination"
DEFAULT_APPROVER = "Training Administrator"
ORGANIZATION = "Teamwork Homecare Training Division"


class CertificatePrinter(Protocol):
    def print_html(self, html: str, title: str) -> None:
        ...


class BrowserCertificatePrinter:
    """Writes the document to a temp file and opens it in the local browser."""

    def print_html(self, html: str, title: str) -> None:
        with tempfile.NamedTemporaryFile("w", suffix=".html", prefix="certificate-", delete=False,
                                         encoding="utf-8") as f:
            f.write(html)
            path = f.name
        logger.info(f"Opening certificate {title} at {path}")
        webbrowser.open(f"file://{path}")


def _format_score(score: float) -> str:
    return str(int(score)) if float(score).is_integer() else f"{score:g}"


class CertificateService:
    _template_env = None

    @classmethod
    def _get_template_env(cls):
        if cls._template_env is None:
            template_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "templates")
            cls._template_env = Environment(
                loader=FileSystemLoader(template_dir),
                autoescape=select_autoescape(["html"]),
            )
        return cls._template_env

    @classmethod
    def render(cls, certificate: ExamCertificate, auto_print: bool = False) -> str:
        issued = certificate.issued_at
        context = {
            "organization": ORGANIZATION,
            "recipient_name": certificate.user_name or DEFAULT_RECIPIENT,
            "exam_title": certificate.exam_title or DEFAULT_EXAM_TITLE,
            "score": _format_score(certificate.score),
            "certificate_number": certificate.certificate_number,
            "issued_date": f"{issued.month}/{issued.day}/{issued.year}",
            "approved_by": certificate.approved_by_name or DEFAULT_APPROVER,
            "auto_print": auto_print,
        }
        try:
            template = cls._get_template_env().get_template("certificate.html")
            return template.render(**context)
        except Exception as e:
            logger.error(f"Error rendering certificate {certificate.certificate_number}: {e}")
            raise

    @classmethod
    def print_certificate(cls, certificate: ExamCertificate,
                          printer: Optional[CertificatePrinter] = None) -> str:
        html = cls.render(certificate)
        (printer or BrowserCertificatePrinter()).print_html(html, certificate.certificate_number)
        return html
