"""Fill ``{{ placeholder }}`` fields in DOCX templates.

Word frequently splits a typed placeholder across several runs, so the
matcher allows markup between the braces. Markup found inside a placeholder is
kept after the substituted value so the document XML stays balanced.
"""

import io
import re
import zipfile
from xml.sax.saxutils import escape

from printflow.services.errors import TemplateFillError

_DOCUMENT_PART = "word/document.xml"
_EXTRA_PART = re.compile(r"^word/(header|footer)\d*\.xml$")
_MARKUP = r"(?:<[^>]+>)*"
# groups: markup between the opening braces, field body, markup between the closing braces
_PLACEHOLDER = re.compile(
    r"\{(" + _MARKUP + r")\{((?:<[^>]+>|[^{}<])*?)\}(" + _MARKUP + r")\}"
)
_TAG = re.compile(r"<[^>]+>")
_VALID_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_\s]*$")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    return _WHITESPACE.sub("_", name.strip())


def _placeholder_name(raw: str) -> str | None:
    name = _TAG.sub("", raw).strip()
    if not name or not _VALID_NAME.match(name):
        return None
    return name


def _lookup(values: dict[str, object], name: str) -> str | None:
    normalized = normalize_name(name)
    by_normalized = {normalize_name(key): key for key in values}
    candidates = (
        name,
        normalized,
        by_normalized.get(normalized),
        name.lower(),
        normalized.lower(),
    )
    for key in candidates:
        if key is None or key not in values:
            continue
        value = values[key]
        if value is None or str(value).strip() == "":
            continue
        return str(value)
    return None


def _template_parts(archive: zipfile.ZipFile) -> list[str]:
    names = archive.namelist()
    if _DOCUMENT_PART not in names:
        raise TemplateFillError("Document XML not found in DOCX file")
    return [_DOCUMENT_PART] + sorted(n for n in names if _EXTRA_PART.match(n))


def _open(docx_bytes: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(docx_bytes))
    except zipfile.BadZipFile as err:
        raise TemplateFillError("Template is not a valid DOCX archive") from err


def extract_placeholders(docx_bytes: bytes) -> list[str]:
    with _open(docx_bytes) as archive:
        found: list[str] = []
        for part in _template_parts(archive):
            xml = archive.read(part).decode("utf-8")
            for match in _PLACEHOLDER.finditer(xml):
                name = _placeholder_name(match.group(2))
                if name and name not in found:
                    found.append(name)
        return found


def missing_fields(placeholders: list[str], values: dict[str, object]) -> list[str]:
    return [name for name in placeholders if _lookup(values, name) is None]


def require_fields(docx_bytes: bytes, values: dict[str, object]) -> None:
    missing = missing_fields(extract_placeholders(docx_bytes), values)
    if missing:
        raise TemplateFillError(
            f"Missing values for: {', '.join(missing)}", missing_fields=missing
        )


def fill_xml(xml: str, values: dict[str, object]) -> str:
    def replace(match: re.Match) -> str:
        name = _placeholder_name(match.group(2))
        if name is None:
            return match.group(0)
        value = _lookup(values, name)
        if value is None:
            return match.group(0)
        return escape(value) + "".join(_TAG.findall("".join(match.groups())))

    return _PLACEHOLDER.sub(replace, xml)


def fill_template(docx_bytes: bytes, values: dict[str, object]) -> bytes:
    output = io.BytesIO()
    with _open(docx_bytes) as source:
        parts = set(_template_parts(source))
        with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as target:
            for item in source.infolist():
                data = source.read(item.filename)
                if item.filename in parts:
                    data = fill_xml(data.decode("utf-8"), values).encode("utf-8")
                target.writestr(item, data)
    return output.getvalue()
