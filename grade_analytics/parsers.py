"""Grade sheet parsing and normalization into student grade histories."""

import logging
import re
from io import BytesIO
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from grade_analytics.models import GradeEntry, StudentGradeData

logger = logging.getLogger(__name__)

# Canonical column name -> accepted header variants (normalized form)
COLUMN_ALIASES: Dict[str, List[str]] = {
    "Student#": ["student#", "student", "student number", "student id", "studentid", "studentnum", "id"],
    "Student Name": ["student name", "studentname", "name", "full name"],
    "Course": ["course", "course id", "courseid", "course code", "program", "program name"],
    "Assignment ID": ["assignment id", "assignmentid", "assessment id"],
    "Assignment": ["assignment", "assignment name", "assessment", "assessment name", "task"],
    "Grade": ["grade", "score", "marks", "mark", "points", "grade %", "percentage"],
    "Max Grade": ["max grade", "maxgrade", "max score", "max points", "out of", "possible points", "total points"],
    "Submitted At": ["submitted at", "submitted", "submission date", "date submitted", "date", "submitted on"],
    "Late": ["late", "is late", "islate", "late submission"],
    "Category": ["category", "type", "assignment type"],
    "Enrollment Date": ["enrollment date", "enrolled", "enrolled on"],
}

REQUIRED_COLUMNS = ["Student#", "Student Name", "Assignment", "Grade", "Submitted At"]

TRUE_VALUES = {"true", "yes", "y", "1", "late", "t"}
FALSE_VALUES = {"false", "no", "n", "0", "on time", "ontime", "f", ""}


def _normalize_header(col_name) -> str:
    """Lowercase, trim and collapse whitespace in a header."""
    if pd.isna(col_name):
        return ""
    normalized = str(col_name).strip().lower()
    normalized = re.sub(r'[._]', ' ', normalized)
    normalized = re.sub(r'\s+', ' ', normalized)
    return normalized.strip()


def load_grade_sheet(file_bytes: bytes, filename: str) -> pd.DataFrame:
    """
    Load the first worksheet of an Excel file, or a CSV file.

    Args:
        file_bytes: Raw file contents
        filename: Original file name, used to pick the reader

    Returns:
        Raw DataFrame
    """
    lowered = filename.lower()
    if lowered.endswith((".xlsx", ".xls")):
        return pd.read_excel(BytesIO(file_bytes), sheet_name=0, engine="openpyxl")
    if lowered.endswith(".csv"):
        return pd.read_csv(BytesIO(file_bytes))
    raise ValueError(f"Unsupported file type: {filename}")


def normalize_grade_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename header variants onto the canonical column names.

    Args:
        df: Raw DataFrame

    Returns:
        Copy of df with canonical column names

    Raises:
        ValueError: if a required column cannot be found
    """
    df = df.copy()

    rename = {}
    claimed = set()
    for col in df.columns:
        normalized = _normalize_header(col)
        for target, variants in COLUMN_ALIASES.items():
            if target in claimed:
                continue
            if normalized == _normalize_header(target) or normalized in variants:
                rename[col] = target
                claimed.add(target)
                break

    df = df.rename(columns=rename)
    logger.debug("Renamed grade sheet columns: %s", rename)

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(
            f"Grade sheet is missing required column(s) {missing}. Columns: {list(df.columns)}"
        )
    return df


def normalize_percentage(value, fraction: bool = False) -> Optional[float]:
    """
    Normalize a percentage cell to the 0-100 scale.

    Args:
        value: Raw cell, a number or text such as '72%'
        fraction: The whole column holds 0-1 fractions, scale by 100

    Returns:
        Percentage, or None for blank or unparseable values
    """
    if value is None or pd.isna(value):
        return None

    if isinstance(value, str):
        value = value.strip().replace('%', '').strip()
        if not value:
            return None
    try:
        val = float(value)
    except (ValueError, TypeError):
        return None

    if np.isnan(val) or np.isinf(val):
        return None
    if fraction:
        return val * 100.0
    return val


def is_fraction_column(values) -> bool:
    """True when every parsable grade in the column lies in [0, 1]."""
    if any(isinstance(v, str) and '%' in v for v in values):
        return False
    parsed = [normalize_percentage(v) for v in values]
    parsed = [v for v in parsed if v is not None]
    return bool(parsed) and all(0 <= v <= 1.0 for v in parsed)


def normalize_late_flag(value) -> bool:
    """Parse yes/no, true/false and 1/0 style late markers."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return False
    if isinstance(value, (bool, np.bool_, int, float, np.number)):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f"Unrecognized late flag: {value!r}")


def _to_number(value) -> Optional[float]:
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        return None
    return float(number)


def records_to_students(df: pd.DataFrame, default_course_id: str = "course") -> List[StudentGradeData]:
    """
    Group grade rows into one StudentGradeData per student and course.

    Without a Max Grade column the Grade column is read as a percentage
    (scaled from 0-1 only when every grade in the column is a fraction).
    Rows without a usable grade, max grade or submission time, or with a
    grade above its max grade, are dropped and logged.

    Args:
        df: DataFrame with canonical column names
        default_course_id: Course used when the sheet has no Course column

    Returns:
        Student grade histories in first-appearance order
    """
    has_max = "Max Grade" in df.columns
    fraction = False
    if not has_max:
        fraction = is_fraction_column(df["Grade"])
        logger.info("No 'Max Grade' column; reading grades as %s",
                    "0-1 fractions" if fraction else "percentages")

    submitted = pd.to_datetime(df["Submitted At"], errors="coerce")
    enrolled = pd.to_datetime(df["Enrollment Date"], errors="coerce") if "Enrollment Date" in df.columns else None

    students: Dict[tuple, dict] = {}
    dropped = 0

    for idx, row in df.iterrows():
        student_id = str(row["Student#"]).strip()
        if not student_id or student_id.lower() == "nan":
            dropped += 1
            continue

        if has_max:
            grade = _to_number(row["Grade"])
            max_grade = _to_number(row["Max Grade"])
        else:
            grade = normalize_percentage(row["Grade"], fraction=fraction)
            max_grade = 100.0

        if (grade is None or max_grade is None or max_grade <= 0 or grade < 0
                or grade > max_grade or pd.isna(submitted[idx])):
            logger.warning("Dropping grade row %s for student %s: incomplete or invalid values", idx, student_id)
            dropped += 1
            continue

        course_id = default_course_id
        if "Course" in df.columns and not pd.isna(row["Course"]):
            course_id = str(row["Course"]).strip()

        assignment_name = str(row["Assignment"]).strip()
        assignment_id = assignment_name
        if "Assignment ID" in df.columns and not pd.isna(row["Assignment ID"]):
            assignment_id = str(row["Assignment ID"]).strip()

        category = None
        if "Category" in df.columns and not pd.isna(row["Category"]):
            category = str(row["Category"]).strip()

        key = (student_id, course_id)
        if key not in students:
            enrollment = None
            if enrolled is not None and not pd.isna(enrolled[idx]):
                enrollment = enrolled[idx].to_pydatetime()
            students[key] = {
                "student_id": student_id,
                "student_name": str(row["Student Name"]).strip(),
                "course_id": course_id,
                "enrollment_date": enrollment,
                "grades": [],
            }

        students[key]["grades"].append(GradeEntry(
            assignment_id=assignment_id,
            assignment_name=assignment_name,
            grade=grade,
            max_grade=max_grade,
            submitted_at=submitted[idx].to_pydatetime(),
            is_late=normalize_late_flag(row["Late"]) if "Late" in df.columns else False,
            category=category,
        ))

    if dropped:
        logger.warning("Dropped %d of %d grade rows", dropped, len(df))

    return [StudentGradeData(**fields) for fields in students.values()]
