"""
Bulk guard import from the company roster workbook.

Each company keeps its roster on its own sheet; sheets are picked by a
company marker in the sheet name. The header row is not always the first
row (rosters usually carry a title block), so it is located by scanning
for a row that names both a site column and a name column.
"""
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import openpyxl
import structlog
from sqlalchemy.orm import Session

from ..auth.security import get_password_hash
from ..config import settings
from ..models.models import Site, User
from .accounts import default_password, normalize_phone, unique_username


logger = structlog.get_logger(__name__)

COMPANY_MARKERS: Tuple[Tuple[str, str], ...] = (
    ("미래", "mirae_abm"),
    ("mirae", "mirae_abm"),
    ("다원", "dawon_pmc"),
    ("dawon", "dawon_pmc"),
)
SITE_LABELS = ("현장", "site")
NAME_LABELS = ("성명", "이름", "name")
PHONE_LABELS = ("연락처", "전화", "휴대폰", "phone")


class ImportFormatError(ValueError):
    """The workbook could not be read or holds no importable sheet."""


def company_for_sheet(sheet_name: str) -> Optional[str]:
    lowered = (sheet_name or "").lower()
    for marker, company in COMPANY_MARKERS:
        if marker in lowered:
            return company
    return None


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _find_column(cells: Sequence[str], labels: Iterable[str], skip: Optional[int] = None) -> Optional[int]:
    for idx, text in enumerate(cells):
        if idx == skip:
            continue
        lowered = text.lower().replace(" ", "")
        if lowered and any(label in lowered for label in labels):
            return idx
    return None


def find_header(rows: Sequence[Sequence[Any]], scan_rows: int = 20) -> Optional[Tuple[int, Dict[str, int]]]:
    """Return (row index, {site, name, phone?: column}) of the header row, or None."""
    for row_idx, row in enumerate(rows[:scan_rows]):
        cells = [_cell_text(v) for v in row]
        site_col = _find_column(cells, SITE_LABELS)
        name_col = _find_column(cells, NAME_LABELS, skip=site_col)
        if site_col is None or name_col is None:
            continue
        columns = {"site": site_col, "name": name_col}
        phone_col = _find_column(cells, PHONE_LABELS, skip=name_col)
        if phone_col is not None:
            columns["phone"] = phone_col
        return row_idx, columns
    return None


def _get(row: Sequence[Any], col: Optional[int]) -> str:
    if col is None or col >= len(row):
        return ""
    return _cell_text(row[col])


def _get_or_create_site(db: Session, name: str, company: str) -> Site:
    site = db.query(Site).filter(Site.name == name, Site.company == company).first()
    if site is None:
        site = Site(name=name, company=company)
        db.add(site)
        db.flush()
    return site


def import_guards(db: Session, data: bytes) -> Dict[str, Any]:
    try:
        workbook = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ImportFormatError(f"Unreadable workbook: {e}")

    summary: Dict[str, Any] = {"created": 0, "updated": 0, "skipped": 0, "errors": 0, "error_messages": []}
    errors: List[str] = summary["error_messages"]

    guards_by_phone: Dict[str, str] = {}
    for guard in db.query(User).filter(User.role == "guard", User.phone.isnot(None)).all():
        digits = normalize_phone(guard.phone)
        if digits:
            guards_by_phone.setdefault(digits, guard.id)

    company_sheets = 0
    try:
        for sheet in workbook.worksheets:
            company = company_for_sheet(sheet.title)
            if company is None:
                continue
            company_sheets += 1
            rows = [tuple(r) for r in sheet.iter_rows(values_only=True)]
            header = find_header(rows, settings.import_header_scan_rows)
            if header is None:
                errors.append(f"{sheet.title}: header row not found")
                summary["errors"] += 1
                continue
            header_idx, cols = header

            for row_idx, row in enumerate(rows[header_idx + 1:], start=header_idx + 2):
                name = _get(row, cols["name"])
                if not name:
                    summary["skipped"] += 1
                    continue
                phone = normalize_phone(_get(row, cols.get("phone")))
                site_name = _get(row, cols["site"])
                if not phone:
                    errors.append(f"{sheet.title} row {row_idx}: missing phone number for {name}")
                    summary["errors"] += 1
                    continue
                try:
                    with db.begin_nested():
                        site = _get_or_create_site(db, site_name, company) if site_name else None
                        existing_id = guards_by_phone.get(phone)
                        if existing_id is not None:
                            guard = db.get(User, existing_id)
                            guard.name = name
                            guard.company = company
                            if site is not None:
                                guard.site_id = site.id
                            created = False
                        else:
                            guard = User(
                                username=unique_username(db, name),
                                name=name,
                                phone=phone,
                                company=company,
                                site_id=site.id if site else None,
                                role="guard",
                                password_hash=get_password_hash(default_password(phone)),
                            )
                            db.add(guard)
                            db.flush()
                            created = True
                except Exception as e:
                    errors.append(f"{sheet.title} row {row_idx}: {e}")
                    summary["errors"] += 1
                    logger.warning("guard_import_row_failed", sheet=sheet.title, row=row_idx, error=str(e))
                    continue
                if created:
                    guards_by_phone[phone] = guard.id
                    summary["created"] += 1
                else:
                    summary["updated"] += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        workbook.close()

    if company_sheets == 0:
        raise ImportFormatError("No company sheet found (expected a sheet name containing 미래 or 다원)")
    logger.info(
        "guard_import_finished",
        created=summary["created"],
        updated=summary["updated"],
        skipped=summary["skipped"],
        errors=summary["errors"],
    )
    return summary
