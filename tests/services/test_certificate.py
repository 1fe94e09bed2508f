from homecare.schemas.exam import ExamCertificate
from homecare.services.certificate import CertificateService
from tests.helpers.backend import certificate_payload


class RecordingPrinter:
    def __init__(self):
        self.printed = []

    def print_html(self, html, title):
        self.printed.append((title, html))


def test_render_includes_certificate_details():
    certificate = ExamCertificate.model_validate(certificate_payload(
        status="APPROVED", score=92.5, approvedByName="Dr. Ade", issuedAt="2024-03-07T10:00:00Z",
    ))

    html = CertificateService.render(certificate)

    assert "Grace Nurse" in html
    assert "Infection Control Basics" in html
    assert "92.5%" in html
    assert "TH-2024-0001" in html
    assert "3/7/2024" in html
    assert "Dr. Ade" in html
    assert "window.print" not in html


def test_render_falls_back_for_missing_names():
    certificate = ExamCertificate.model_validate(certificate_payload(
        userName=None, examTitle=None, score=90,
    ))

    html = CertificateService.render(certificate)

    assert "Candidate" in html
    assert "Training Examination" in html
    assert "Training Administrator" in html
    assert "90%" in html


def test_names_are_escaped():
    certificate = ExamCertificate.model_validate(certificate_payload(userName="<script>alert(1)</script>"))

    html = CertificateService.render(certificate)

    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html


def test_print_certificate_hands_document_to_printer():
    certificate = ExamCertificate.model_validate(certificate_payload(status="APPROVED"))
    printer = RecordingPrinter()

    html = CertificateService.print_certificate(certificate, printer=printer)

    assert printer.printed == [("TH-2024-0001", html)]


def test_auto_print_document_triggers_print():
    certificate = ExamCertificate.model_validate(certificate_payload(status="APPROVED"))

    assert "window.print" in CertificateService.render(certificate, auto_print=True)
