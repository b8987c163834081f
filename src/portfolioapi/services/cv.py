"""
=============================================================================
CV RENDERING
=============================================================================

Turns the cached portfolio reads into a downloadable CV:

    format=json  → the raw CV data
    format=html  → a styled standalone HTML document
    format=pdf   → wkhtmltopdf(html) when the binary is installed,
                   otherwise the HTML document with print styles

    ┌─────────────────────────────────────────────────────────────────────┐
    │  header      full name, title, contact lines                       │
    │  summary     bio                                                   │
    │  skills      grouped by category, "Python (9/10)"                  │
    │  experience  position, company | Mon YYYY - Present                │
    │  projects    top 3 by priority                                     │
    │  education   degree, institution | YYYY - YYYY                     │
    └─────────────────────────────────────────────────────────────────────┘

Every value is HTML-escaped before it goes into the document.
=============================================================================
"""

import logging
import os
import re
import shutil
import subprocess
import tempfile
from datetime import date
from html import escape
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


FORMATS = ("pdf", "html", "json")

TOP_PROJECTS = 3

PDF_TIMEOUT = 60

CV_STYLES = """
    body { font-family: 'Helvetica Neue', Arial, sans-serif; color: #222; background: #f4f4f4; margin: 0; }
    .cv-container { max-width: 820px; margin: 24px auto; background: #fff; padding: 40px;
                    box-shadow: 0 2px 8px rgba(0, 0, 0, 0.08); }
    .cv-header { border-bottom: 2px solid #2c3e50; padding-bottom: 16px; margin-bottom: 24px; }
    .cv-header h1 { margin: 0; font-size: 28pt; color: #2c3e50; }
    .cv-header h2 { margin: 4px 0 12px; font-weight: normal; color: #555; }
    .contact-info p { margin: 2px 0; font-size: 10pt; }
    .cv-section { margin-bottom: 24px; }
    .cv-section h3 { color: #2c3e50; border-bottom: 1px solid #ddd; padding-bottom: 4px; }
    .skills-grid { display: flex; flex-wrap: wrap; gap: 16px; }
    .skill-category { min-width: 200px; }
    .skill-category h4 { margin: 0 0 4px; }
    .skill-category ul { margin: 0; padding-left: 18px; }
    .company { color: #666; font-style: italic; }
"""

PRINT_STYLES = """
    @media print {
        body { background: white; font-size: 12pt; }
        .cv-container { margin: 0; padding: 0; box-shadow: none; max-width: none; }
        .cv-section, .experience-item, .project-item, .education-item { page-break-inside: avoid; }
        .cv-header { page-break-after: avoid; }
    }
    @page { margin: 1in; size: A4; }
"""


def safe_filename(name: str) -> str:
    """``Jane Doe`` → ``Jane_Doe`` (anything but ASCII letters/digits → _)."""
    return re.sub(r"[^A-Za-z0-9]", "_", name or "cv")


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _month_year(value: Any) -> str:
    parsed = _parse_date(value)
    return parsed.strftime("%b %Y") if parsed else "Present"


def _year(value: Any) -> str:
    parsed = _parse_date(value)
    return str(parsed.year) if parsed else "Present"


def _e(value: Any) -> str:
    return escape("" if value is None else str(value))


class PdfUnavailable(Exception):
    """wkhtmltopdf is missing or failed; callers fall back to HTML."""


class CvRenderer:
    """
    Args:
        pdf_command: Name or path of the wkhtmltopdf binary.
    """

    def __init__(self, pdf_command: str = "wkhtmltopdf"):
        self.pdf_command = pdf_command

    @staticmethod
    def build_data(personal_info: Dict[str, Any], skills: List[Dict[str, Any]],
                   experience: List[Dict[str, Any]], education: List[Dict[str, Any]],
                   projects: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "personal_info": personal_info,
            "skills": skills,
            "experience": experience,
            "education": education,
            "projects": projects[:TOP_PROJECTS],
        }

    # =========================================================================
    # HTML
    # =========================================================================

    def render_html(self, cv: Dict[str, Any], print_optimized: bool = False) -> str:
        info = cv["personal_info"]
        parts = [
            "<!DOCTYPE html>",
            "<html lang='en'>",
            "<head>",
            "<meta charset='UTF-8'>",
            "<meta name='viewport' content='width=device-width, initial-scale=1.0'>",
            f"<title>CV - {_e(info.get('full_name'))}</title>",
            f"<style>{CV_STYLES}{PRINT_STYLES if print_optimized else ''}</style>",
            "</head>",
            "<body>",
            "<div class='cv-container'>",
            "<header class='cv-header'>",
            f"<h1>{_e(info.get('full_name'))}</h1>",
            f"<h2>{_e(info.get('title'))}</h2>",
            "<div class='contact-info'>",
        ]
        for label, key in (("Email", "email"), ("Phone", "phone"),
                           ("Location", "location"), ("Website", "website")):
            if info.get(key):
                parts.append(f"<p><strong>{label}:</strong> {_e(info[key])}</p>")
        parts += [
            "</div>",
            "</header>",
            "<section class='cv-section'>",
            "<h3>Professional Summary</h3>",
            f"<p>{_e(info.get('bio'))}</p>",
            "</section>",
        ]

        if cv["skills"]:
            grouped: Dict[str, List[Dict[str, Any]]] = {}
            for skill in cv["skills"]:
                grouped.setdefault(skill["category"], []).append(skill)
            parts.append("<section class='cv-section'><h3>Technical Skills</h3><div class='skills-grid'>")
            for category, skills in grouped.items():
                parts.append(f"<div class='skill-category'><h4>{_e(str(category).capitalize())}</h4><ul>")
                parts.extend(
                    f"<li>{_e(s['name'])} ({_e(s['proficiency_level'])}/10)</li>" for s in skills
                )
                parts.append("</ul></div>")
            parts.append("</div></section>")

        if cv["experience"]:
            parts.append("<section class='cv-section'><h3>Professional Experience</h3>")
            for job in cv["experience"]:
                end = "Present" if job.get("is_current") else _month_year(job.get("end_date"))
                parts.append(
                    "<div class='experience-item'>"
                    f"<h4>{_e(job['position'])}</h4>"
                    f"<p class='company'>{_e(job['company'])} | "
                    f"{_month_year(job.get('start_date'))} - {end}</p>"
                    f"<p>{_e(job.get('description'))}</p>"
                    "</div>"
                )
            parts.append("</section>")

        if cv["projects"]:
            parts.append("<section class='cv-section'><h3>Key Projects</h3>")
            for project in cv["projects"]:
                parts.append(
                    "<div class='project-item'>"
                    f"<h4>{_e(project['title'])}</h4>"
                    f"<p>{_e(project.get('short_description'))}</p>"
                    f"<p><strong>Technologies:</strong> {_e(project.get('technologies'))}</p>"
                    "</div>"
                )
            parts.append("</section>")

        if cv["education"]:
            parts.append("<section class='cv-section'><h3>Education</h3>")
            for entry in cv["education"]:
                parts.append(
                    "<div class='education-item'>"
                    f"<h4>{_e(entry['degree'])}</h4>"
                    f"<p>{_e(entry['institution'])} | "
                    f"{_year(entry.get('start_date'))} - {_year(entry.get('end_date'))}</p>"
                    f"<p>{_e(entry.get('description'))}</p>"
                    "</div>"
                )
            parts.append("</section>")

        parts += ["</div>", "</body>", "</html>"]
        return "\n".join(parts)

    # =========================================================================
    # PDF
    # =========================================================================

    def pdf_available(self) -> bool:
        return shutil.which(self.pdf_command) is not None

    def render_pdf(self, html_document: str) -> bytes:
        """
        Convert an HTML document with wkhtmltopdf.

        Raises:
            PdfUnavailable: Binary missing, conversion failed or timed out.
        """
        binary = shutil.which(self.pdf_command)
        if binary is None:
            raise PdfUnavailable(f"{self.pdf_command} not found")

        with tempfile.TemporaryDirectory(prefix="cv_") as workdir:
            source = os.path.join(workdir, "cv.html")
            target = os.path.join(workdir, "cv.pdf")
            with open(source, "w", encoding="utf-8") as f:
                f.write(html_document)

            command = [
                binary, "--quiet", "--page-size", "A4",
                "--margin-top", "0.75in", "--margin-right", "0.75in",
                "--margin-bottom", "0.75in", "--margin-left", "0.75in",
                source, target,
            ]
            try:
                subprocess.run(command, check=True, capture_output=True, timeout=PDF_TIMEOUT)
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
                logger.error(f"PDF conversion failed: {e}")
                raise PdfUnavailable(str(e))

            if not os.path.exists(target):
                raise PdfUnavailable("wkhtmltopdf produced no output")
            with open(target, "rb") as f:
                return f.read()
