"""CLI script to write the teacher hours report as CSV.
Usage: python scripts/export_report.py [--from YYYY-MM-DD] [--to YYYY-MM-DD] [--teacher ID] [--school ID] [--out FILE]
"""
import sys
import argparse
import pathlib
from typing import Optional
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from scheduleme.database import engine, create_db_and_tables
from datetime import date
from scheduleme import services
from scheduleme.utils.dates import format_date
from scheduleme.utils.reports import rows_to_csv


def main(date_from: Optional[str] = None, date_to: Optional[str] = None,
         teacher_id: Optional[str] = None, school_id: Optional[str] = None,
         out: Optional[str] = None):
    """Write the filtered report to `out`, or to the default dated filename."""
    create_db_and_tables()
    with Session(engine) as session:
        report = services.ReportService(session).teacher_hours(
            date_from=date_from, date_to=date_to, teacher_id=teacher_id, school_id=school_id,
        )
    totals = report["totals"]
    content = rows_to_csv(report["rows"])
    filename = f"teacher_hours_{format_date(date.today())}.csv"
    target = pathlib.Path(out or filename)
    target.write_text(content, encoding='utf-8')
    print(f"Wrote {totals['totalLessons']} lessons "
          f"({totals['totalHours']}h {totals['remainingMinutes']}m) to {target}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--from', dest='date_from', help='First date to include (YYYY-MM-DD)')
    parser.add_argument('--to', dest='date_to', help='Last date to include (YYYY-MM-DD)')
    parser.add_argument('--teacher', dest='teacher_id', help='Only lessons of this teacher id')
    parser.add_argument('--school', dest='school_id', help='Only lessons at this school id')
    parser.add_argument('--out', help='Output file path')
    args = parser.parse_args()
    main(args.date_from, args.date_to, args.teacher_id, args.school_id, args.out)
