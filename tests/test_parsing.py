import pytest
from unittest.mock import patch

from app.helpers.parsing import (
    PROFILE_FIELDS,
    extract_contact_info,
    extract_from_html,
    extract_from_pdf,
    identify_sections,
    parse_resume_text,
)
from app.utils.exceptions import EmptyDocumentError, ProcessingError, UnsupportedFormatError


class TestExtractFromPdf:
    """Test cases for PDF text extraction"""

    @patch('app.helpers.parsing.pdf_extract')
    def test_rejects_missing_signature_before_parsing(self, mock_extract):
        """Buffers without the %PDF signature are rejected without a parse attempt"""
        with pytest.raises(UnsupportedFormatError) as exc_info:
            extract_from_pdf(b"PK\x03\x04 this is a zip file")

        mock_extract.assert_not_called()
        assert exc_info.value.error_code == "UNSUPPORTED_FORMAT"

    def test_rejects_empty_buffer(self):
        with pytest.raises(UnsupportedFormatError):
            extract_from_pdf(b"")

    @patch('app.helpers.parsing.count_pages', return_value=1)
    @patch('app.helpers.parsing.pdf_extract', return_value="  \n\t ")
    def test_whitespace_only_text_is_empty_document(self, mock_extract, mock_pages):
        with pytest.raises(EmptyDocumentError):
            extract_from_pdf(b"%PDF-1.7 fake body")

    @patch('app.helpers.parsing.count_pages', return_value=2)
    @patch('app.helpers.parsing.pdf_extract', return_value="Jane Doe\nPython developer")
    def test_returns_text_and_page_count(self, mock_extract, mock_pages):
        result = extract_from_pdf(b"%PDF-1.4 fake body")

        assert result.text == "Jane Doe\nPython developer"
        assert result.page_count == 2

    @patch('app.helpers.parsing.pdf_extract', side_effect=Exception("broken xref table"))
    def test_parser_failures_are_wrapped(self, mock_extract):
        with pytest.raises(ProcessingError) as exc_info:
            extract_from_pdf(b"%PDF-1.4 truncated")

        assert "broken xref table" in exc_info.value.message


class TestExtractFromHtml:
    """Test cases for selector-based profile extraction"""

    def test_extracts_top_card_fields(self, profile_html):
        profile = extract_from_html(profile_html)

        assert profile.source == "linkedin"
        assert profile.name == "Jane Doe"
        assert profile.headline == "Lead Backend Engineer at Acme"
        assert profile.location == "Berlin, Germany"
        assert profile.connections == "500+ connections"

    def test_experience_entries_need_title_and_company(self, profile_html):
        profile = extract_from_html(profile_html)

        assert len(profile.experience) == 1
        entry = profile.experience[0]
        assert entry.title == "Lead Engineer"
        assert entry.company == "Acme Corp"
        assert entry.duration == "2 yrs 3 mos"

    def test_skills_list(self, profile_html):
        profile = extract_from_html(profile_html)
        assert profile.skills == ["Python", "Kubernetes"]

    def test_completeness_flags(self, profile_html):
        profile = extract_from_html(profile_html)

        assert profile.missing_fields == ["summary", "education"]
        assert profile.completeness == round(5 / 7, 2)
        assert "No summary/about section found" in profile.warnings

    def test_name_falls_back_to_title_tag(self):
        html = "<html><head><title>John Smith | LinkedIn</title></head><body></body></html>"
        assert extract_from_html(html).name == "John Smith"

    def test_later_selector_used_when_first_misses(self):
        html = '<div class="top-card-layout__title">  Ada   Lovelace </div>'
        assert extract_from_html(html).name == "Ada Lovelace"

    def test_location_skips_connection_counts(self):
        html = '<span class="text-body-small inline t-black--light break-words">500+ connections</span>'
        profile = extract_from_html(html)

        assert profile.location == ""

    def test_total_miss_never_raises(self):
        profile = extract_from_html("<html><body><p>nothing useful</p></body></html>")

        assert profile.name == ""
        assert profile.experience == []
        assert profile.completeness == 0.0
        assert profile.missing_fields == PROFILE_FIELDS

    def test_empty_input(self):
        profile = extract_from_html("")
        assert profile.completeness == 0.0
        assert profile.raw_text == ""


class TestResumeText:
    """Test cases for plain-text resume parsing"""

    def test_identify_sections(self, resume_text):
        sections = identify_sections(resume_text)

        assert sections["other"] == "Jane Doe\njane.doe@example.com"
        assert sections["summary"].startswith("Senior Python developer")
        assert sections["skills"] == "Python, Django, Docker"
        assert set(sections) == {"other", "summary", "experience", "skills", "education"}

    def test_long_lines_are_not_headers(self):
        text = "Experience\nExperienced engineer who led the platform migration across three regions\n"
        sections = identify_sections(text)

        assert list(sections) == ["experience"]

    def test_contact_info(self):
        text = "Jane Doe\nCall +1 555-123-4567 or jane@example.com\nlinkedin.com/in/jane-doe github.com/janedoe"
        contact = extract_contact_info(text)

        assert contact["name"] == "Jane Doe"
        assert contact["email"] == "jane@example.com"
        assert contact["phone"] == "+1 555-123-4567"
        assert contact["linkedin"] == "https://linkedin.com/in/jane-doe"
        assert contact["github"] == "https://github.com/janedoe"

    def test_first_line_email_is_not_a_name(self):
        contact = extract_contact_info("jane@example.com\nPython developer")
        assert "name" not in contact

    def test_parse_resume_text(self, resume_text):
        profile = parse_resume_text(resume_text)

        assert profile.source == "pdf"
        assert profile.name == "Jane Doe"
        assert profile.email == "jane.doe@example.com"
        assert profile.skills == ["Python", "Django", "Docker"]

        assert len(profile.experience) == 1
        job = profile.experience[0]
        assert job.title == "Senior Engineer"
        assert job.company == "Acme Corp"
        assert job.duration == "3 yrs"
        assert "Django" in job.description

        assert profile.education[0].degree == "Bachelor in Computer Science"
        assert profile.education[0].school == "State University"
        assert profile.education[0].year == "2014"
        assert "headline" in profile.missing_fields
